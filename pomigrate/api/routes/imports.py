"""Import execution endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..models import (
    ImportRequest,
    ImportResponse,
    ValidateRequest,
    ValidateResponse,
)
from ...exceptions import ConfigurationError, MigrationError, describe_error
from ...models.migration import ImportConfig
from ...orchestrator import ImportOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator() -> ImportOrchestrator:
    """Build an orchestrator from the environment for each request."""
    try:
        config = ImportConfig.from_env()
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=describe_error(e))
    return ImportOrchestrator(config)


@router.post("", response_model=ImportResponse)
def run_import(data: ImportRequest, orchestrator: ImportOrchestrator = Depends(get_orchestrator)):
    """
    Import one project.

    Runs synchronously; the response carries the full run result, including
    record errors and warnings. A run that fails after the workspace exists
    still returns 200 with success false.
    """
    try:
        result = orchestrator.run_import(
            data.source,
            destination_ref=data.destination_id,
            dry_run=data.dry_run,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=describe_error(e))
    except MigrationError as e:
        logger.error(f"Import aborted: {describe_error(e)}")
        raise HTTPException(status_code=502, detail=describe_error(e))
    return result.to_dict()


@router.post("/validate", response_model=ValidateResponse)
def validate_source(data: ValidateRequest, orchestrator: ImportOrchestrator = Depends(get_orchestrator)):
    """Check a source before importing it."""
    try:
        validation = orchestrator.validate_source(data.source)
    except MigrationError as e:
        raise HTTPException(status_code=400, detail=describe_error(e))
    return validation.to_dict()
