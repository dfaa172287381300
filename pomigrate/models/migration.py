"""Import run models and configuration."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from enum import Enum
from datetime import datetime
import os
import uuid

from ..exceptions import ConfigurationError


class ImportStage(str, Enum):
    """Stages of an import run, in execution order."""
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


class StageStatus(str, Enum):
    """Status of a single stage."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class StageProgress:
    """Progress event emitted on every stage transition."""
    stage_name: str
    units_done: int
    units_total: int


@dataclass
class StageRecord:
    """Bookkeeping for one executed stage."""
    stage: ImportStage
    status: StageStatus = StageStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    rows_created: int = 0
    rows_skipped: int = 0
    rows_updated: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "stage": self.stage.value,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "rows_created": self.rows_created,
            "rows_skipped": self.rows_skipped,
            "rows_updated": self.rows_updated,
            "errors": self.errors,
            "warnings": self.warnings,
        }

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


@dataclass
class ImportResult:
    """Outcome of one import run."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    success: bool = False
    project_name: str = ""
    container_id: Optional[int] = None
    container_name: Optional[str] = None
    dry_run: bool = False
    stage: ImportStage = ImportStage.INIT

    tasks_imported: int = 0
    resources_imported: int = 0
    assignments_imported: int = 0

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    stages: List[StageRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "success": self.success,
            "project_name": self.project_name,
            "container_id": self.container_id,
            "container_name": self.container_name,
            "dry_run": self.dry_run,
            "stage": self.stage.value,
            "tasks_imported": self.tasks_imported,
            "resources_imported": self.resources_imported,
            "assignments_imported": self.assignments_imported,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "stages": [s.to_dict() for s in self.stages],
            "errors": self.errors,
            "warnings": self.warnings,
        }

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def add_stage(self, stage: ImportStage) -> StageRecord:
        """Add a new stage record to the run."""
        record = StageRecord(stage=stage)
        self.stages.append(record)
        return record

    def get_stage(self, stage: ImportStage) -> Optional[StageRecord]:
        for record in self.stages:
            if record.stage == stage:
                return record
        return None


@dataclass
class SourceValidation:
    """Result of a pre-flight source check."""
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors}


def _parse_int(name: str, value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"{name} must be an integer, got {value!r}",
            actionable=f"Set {name} to a numeric id",
        )


def _parse_float(name: str, value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"{name} must be a number, got {value!r}",
            actionable=f"Set {name} to a number",
        )


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ImportConfig:
    """Configuration for an import run."""

    # Target
    smartsheet_api_token: Optional[str] = None
    smartsheet_base_url: str = "https://api.smartsheet.com/2.0"
    pmo_standards_workspace_id: Optional[int] = None
    template_workspace_id: Optional[int] = None

    # Source
    project_online_url: Optional[str] = None
    project_online_access_token: Optional[str] = None

    # Resilience
    max_retries: int = 5
    retry_min_delay: float = 1.0
    retry_max_delay: float = 30.0
    rate_limit_per_minute: int = 300
    request_timeout: float = 30.0

    # Transformation
    hours_per_day: float = 8.0
    max_indent: int = 15

    # Execution
    dry_run: bool = False
    output_dir: Optional[str] = None
    log_level: str = "INFO"

    # Environment variable -> field name
    ENV_VARS = {
        "SMARTSHEET_API_TOKEN": "smartsheet_api_token",
        "SMARTSHEET_BASE_URL": "smartsheet_base_url",
        "PMO_STANDARDS_WORKSPACE_ID": "pmo_standards_workspace_id",
        "TEMPLATE_WORKSPACE_ID": "template_workspace_id",
        "PROJECT_ONLINE_URL": "project_online_url",
        "PROJECT_ONLINE_ACCESS_TOKEN": "project_online_access_token",
        "MAX_RETRIES": "max_retries",
        "RETRY_MIN_DELAY": "retry_min_delay",
        "RETRY_MAX_DELAY": "retry_max_delay",
        "RATE_LIMIT_PER_MINUTE": "rate_limit_per_minute",
        "REQUEST_TIMEOUT": "request_timeout",
        "HOURS_PER_DAY": "hours_per_day",
        "MAX_INDENT": "max_indent",
        "DRY_RUN": "dry_run",
        "OUTPUT_DIR": "output_dir",
        "LOG_LEVEL": "log_level",
    }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation. Secrets are omitted."""
        return {
            "smartsheet_base_url": self.smartsheet_base_url,
            "pmo_standards_workspace_id": self.pmo_standards_workspace_id,
            "template_workspace_id": self.template_workspace_id,
            "project_online_url": self.project_online_url,
            "max_retries": self.max_retries,
            "retry_min_delay": self.retry_min_delay,
            "retry_max_delay": self.retry_max_delay,
            "rate_limit_per_minute": self.rate_limit_per_minute,
            "request_timeout": self.request_timeout,
            "hours_per_day": self.hours_per_day,
            "max_indent": self.max_indent,
            "dry_run": self.dry_run,
            "output_dir": self.output_dir,
            "log_level": self.log_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportConfig":
        """Create from dictionary representation."""
        config = cls(
            smartsheet_api_token=data.get("smartsheet_api_token"),
            smartsheet_base_url=data.get("smartsheet_base_url") or cls.smartsheet_base_url,
            pmo_standards_workspace_id=_parse_int(
                "pmo_standards_workspace_id", data.get("pmo_standards_workspace_id")
            ),
            template_workspace_id=_parse_int(
                "template_workspace_id", data.get("template_workspace_id")
            ),
            project_online_url=data.get("project_online_url"),
            project_online_access_token=data.get("project_online_access_token"),
            max_retries=_parse_int("max_retries", data.get("max_retries"), 5),
            retry_min_delay=_parse_float("retry_min_delay", data.get("retry_min_delay"), 1.0),
            retry_max_delay=_parse_float("retry_max_delay", data.get("retry_max_delay"), 30.0),
            rate_limit_per_minute=_parse_int(
                "rate_limit_per_minute", data.get("rate_limit_per_minute"), 300
            ),
            request_timeout=_parse_float("request_timeout", data.get("request_timeout"), 30.0),
            hours_per_day=_parse_float("hours_per_day", data.get("hours_per_day"), 8.0),
            max_indent=_parse_int("max_indent", data.get("max_indent"), 15),
            dry_run=_parse_bool(data.get("dry_run", False)),
            output_dir=data.get("output_dir"),
            log_level=str(data.get("log_level") or "INFO").upper(),
        )
        if config.max_retries < 1:
            raise ConfigurationError("max_retries must be at least 1")
        if config.retry_min_delay <= 0:
            raise ConfigurationError("retry_min_delay must be positive")
        if config.hours_per_day <= 0:
            raise ConfigurationError("hours_per_day must be positive")
        return config

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ImportConfig":
        """
        Load configuration from environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)
            overrides: Values that take precedence over the environment

        Returns:
            ImportConfig
        """
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        for var, name in cls.ENV_VARS.items():
            if environ.get(var):
                data[name] = environ[var]
        data.update({k: v for k, v in (overrides or {}).items() if v is not None})
        return cls.from_dict(data)

    def validate(self, require_source: bool = True) -> List[str]:
        """
        Check that everything a live run needs is present.

        Args:
            require_source: Also require Project Online settings

        Returns:
            List of problems, empty when valid
        """
        problems = []
        if not self.smartsheet_api_token:
            problems.append("SMARTSHEET_API_TOKEN is not set")
        if require_source:
            if not self.project_online_url:
                problems.append("PROJECT_ONLINE_URL is not set")
            elif not self.project_online_url.startswith("https://"):
                problems.append("PROJECT_ONLINE_URL must start with https://")
            if not self.project_online_access_token:
                problems.append("PROJECT_ONLINE_ACCESS_TOKEN is not set")
        return problems
