"""Data models for the migration engine."""

from .record import (
    DependencyType,
    ResourceFamily,
    RecordIssue,
    PredecessorLink,
    ProjectRecord,
    TaskRecord,
    ResourceRecord,
    AssignmentRecord,
    ProjectImportData,
    ParseResult,
)
from .migration import (
    ImportConfig,
    ImportResult,
    ImportStage,
    StageProgress,
    StageRecord,
    StageStatus,
    SourceValidation,
)
from .target import (
    ColumnType,
    Contact,
    MultiValue,
    ColumnLink,
    ColumnSpec,
    Column,
    Row,
    RowPlacement,
    RowSpec,
    RowUpdate,
    Table,
    Container,
    ValueSetHandle,
    ReferenceContext,
    sanitize_container_name,
    table_name,
)

__all__ = [
    "DependencyType",
    "ResourceFamily",
    "RecordIssue",
    "PredecessorLink",
    "ProjectRecord",
    "TaskRecord",
    "ResourceRecord",
    "AssignmentRecord",
    "ProjectImportData",
    "ParseResult",
    "ImportConfig",
    "ImportResult",
    "ImportStage",
    "StageProgress",
    "StageRecord",
    "StageStatus",
    "SourceValidation",
    "ColumnType",
    "Contact",
    "MultiValue",
    "ColumnLink",
    "ColumnSpec",
    "Column",
    "Row",
    "RowPlacement",
    "RowSpec",
    "RowUpdate",
    "Table",
    "Container",
    "ValueSetHandle",
    "ReferenceContext",
    "sanitize_container_name",
    "table_name",
]
