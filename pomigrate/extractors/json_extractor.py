"""Extractor for project exports saved as JSON files."""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from .base import BaseExtractor, ENTITY_KEYS
from ..exceptions import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)


def _unwrap(value: Any) -> Any:
    """Strip OData envelopes: {"d": ...}, {"value": [...]}, {"results": [...]}."""
    while isinstance(value, dict):
        if "d" in value and len(value) == 1:
            value = value["d"]
        elif "value" in value and isinstance(value["value"], list):
            value = value["value"]
        elif "results" in value and isinstance(value["results"], list):
            value = value["results"]
        else:
            break
    return value


class JSONExtractor(BaseExtractor):
    """
    Reads a project export file of the form
    {"project": {...}, "tasks": [...], "resources": [...], "assignments": [...]}.

    Keys are matched case-insensitively and OData envelopes are accepted.
    """

    def __init__(self, encoding: str = "utf-8", **kwargs):
        super().__init__(**kwargs)
        self.encoding = encoding

    @staticmethod
    def handles(source_ref: str) -> bool:
        """True when source_ref looks like an export file path."""
        return str(source_ref).lower().endswith(".json")

    def fetch_raw(self, source_ref: str) -> Dict[str, Any]:
        path = Path(source_ref)
        if not path.is_file():
            raise ConfigurationError(
                f"Export file not found: {source_ref}",
                actionable="Check the --source path",
            )
        with open(path, "r", encoding=self.encoding) as f:
            try:
                content = json.load(f)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Export file {source_ref} is not valid JSON: {e}")

        if not isinstance(content, dict):
            raise ValidationError(f"Export file {source_ref} must contain a JSON object")

        lowered = {str(k).lower(): v for k, v in content.items()}
        project = _unwrap(lowered.get("project"))
        if isinstance(project, list):
            project = project[0] if project else {}
        raw: Dict[str, Any] = {"project": project or {}}
        for key in ENTITY_KEYS:
            items = _unwrap(lowered.get(key)) or []
            if not isinstance(items, list):
                raise ValidationError(f"'{key}' in {source_ref} must be a list")
            raw[key] = items

        logger.info(f"Loaded export file {path.name}")
        return raw

    def test_connection(self) -> bool:
        return True

    def source_exists(self, source_ref: str) -> bool:
        return Path(source_ref).is_file()

