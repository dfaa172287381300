"""Pydantic models for API requests and responses."""

from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime


class ImportStageEnum(str, Enum):
    INIT = "Init"
    REFERENCE_SETUP = "ReferenceSetup"
    CONTAINER_CREATION = "ContainerCreation"
    SUMMARY_CONFIG = "SummaryConfig"
    TASK_IMPORT = "TaskImport"
    TASK_CONFIG = "TaskConfig"
    RESOURCE_IMPORT = "ResourceImport"
    ASSIGNMENT_CONFIG = "AssignmentConfig"
    DONE = "Done"
    FAILED = "Failed"


class StageStatusEnum(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


# Request Models
class ImportRequest(BaseModel):
    source: str = Field(..., min_length=1, description="Project GUID or path to a JSON export")
    destination_id: Optional[int] = Field(None, description="Existing workspace id")
    dry_run: bool = True


class ValidateRequest(BaseModel):
    source: str = Field(..., min_length=1)


# Response Models
class StageResponse(BaseModel):
    stage: ImportStageEnum
    status: StageStatusEnum
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    rows_created: int = 0
    rows_skipped: int = 0
    rows_updated: int = 0
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ImportResponse(BaseModel):
    id: str
    success: bool
    project_name: str
    container_id: Optional[int] = None
    container_name: Optional[str] = None
    dry_run: bool
    stage: ImportStageEnum
    tasks_imported: int = 0
    resources_imported: int = 0
    assignments_imported: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    stages: List[StageResponse] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ValidateResponse(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
