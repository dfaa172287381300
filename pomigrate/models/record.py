"""Typed source records produced by the validation boundary."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar
from enum import Enum
from datetime import datetime


class DependencyType(str, Enum):
    """Predecessor link types."""
    FS = "FS"  # Finish-to-start
    SS = "SS"  # Start-to-start
    FF = "FF"  # Finish-to-finish
    SF = "SF"  # Start-to-finish


class ResourceFamily(str, Enum):
    """Assignment families a resource can belong to."""
    PEOPLE = "People"
    MATERIAL = "Material"
    COST = "Cost"


@dataclass
class RecordIssue:
    """An error or warning attached to a source record."""
    field: str
    message: str
    record_id: Optional[str] = None
    entity: str = ""
    error_type: str = "validation"
    severity: str = "error"  # error, warning
    value: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "record_id": self.record_id,
            "entity": self.entity,
            "field": self.field,
            "message": self.message,
            "error_type": self.error_type,
            "severity": self.severity,
            "value": self.value,
        }

    def __str__(self) -> str:
        prefix = f"{self.entity} {self.record_id}" if self.record_id else self.entity
        return f"{prefix}: {self.field}: {self.message}".strip(": ")


@dataclass
class PredecessorLink:
    """A single predecessor link declared on a task."""
    predecessor_id: str
    dependency_type: DependencyType = DependencyType.FS
    lag_days: float = 0.0


@dataclass
class ProjectRecord:
    """A Project Online project."""
    id: str
    name: str
    description: Optional[str] = None
    owner: Optional[str] = None
    owner_email: Optional[str] = None
    start_date: Optional[datetime] = None
    finish_date: Optional[datetime] = None
    created_date: Optional[datetime] = None
    modified_date: Optional[datetime] = None
    status: Optional[str] = None
    project_type: Optional[int] = None
    priority: Optional[int] = None
    percent_complete: Optional[float] = None


@dataclass
class TaskRecord:
    """A Project Online task. Outline level 1 is the top of the tree."""
    id: str
    name: str
    outline_level: int = 1
    start: Optional[datetime] = None
    finish: Optional[datetime] = None
    duration_hours: Optional[float] = None
    work_hours: Optional[float] = None
    actual_work_hours: Optional[float] = None
    percent_complete: Optional[float] = None
    priority: Optional[int] = None
    is_milestone: bool = False
    notes: Optional[str] = None
    predecessors: List[PredecessorLink] = field(default_factory=list)
    constraint_type: Optional[str] = None
    constraint_date: Optional[datetime] = None
    deadline: Optional[datetime] = None
    late_start: Optional[datetime] = None
    late_finish: Optional[datetime] = None
    total_slack_hours: Optional[float] = None
    free_slack_hours: Optional[float] = None
    created_date: Optional[datetime] = None
    modified_date: Optional[datetime] = None


@dataclass
class ResourceRecord:
    """A Project Online enterprise or project resource."""
    id: str
    name: str
    email: Optional[str] = None
    resource_type: Optional[str] = None  # Work, Material, Cost
    max_units: Optional[float] = None
    standard_rate: Optional[float] = None
    overtime_rate: Optional[float] = None
    cost_per_use: Optional[float] = None
    department: Optional[str] = None
    code: Optional[str] = None
    is_active: bool = True
    is_generic: bool = False
    created_date: Optional[datetime] = None
    modified_date: Optional[datetime] = None


@dataclass
class AssignmentRecord:
    """A resource assigned to a task."""
    id: str
    task_id: str
    resource_id: str
    start: Optional[datetime] = None
    finish: Optional[datetime] = None
    work_hours: Optional[float] = None
    actual_work_hours: Optional[float] = None
    remaining_work_hours: Optional[float] = None
    percent_work_complete: Optional[float] = None
    units: Optional[float] = None
    cost: Optional[float] = None
    notes: Optional[str] = None


@dataclass
class ProjectImportData:
    """Everything extracted for a single project."""
    project: ProjectRecord
    tasks: List[TaskRecord] = field(default_factory=list)
    resources: List[ResourceRecord] = field(default_factory=list)
    assignments: List[AssignmentRecord] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "tasks": len(self.tasks),
            "resources": len(self.resources),
            "assignments": len(self.assignments),
        }


T = TypeVar("T")


@dataclass
class ParseResult(Generic[T]):
    """Outcome of parsing one raw record: a typed record or an error."""
    record: Optional[T] = None
    error: Optional[RecordIssue] = None
    warnings: List[RecordIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.record is not None and self.error is None
