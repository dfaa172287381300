"""Entity transformers writing typed records to Smartsheet sheets."""

from .base import BaseTransformer, TransformResult, clear_placeholder_rows
from .task import TaskTransformer
from .resource import ResourceTransformer
from .assignment import AssignmentTransformer
from .project import ProjectTables, ProjectTransformer

__all__ = [
    "BaseTransformer",
    "TransformResult",
    "clear_placeholder_rows",
    "TaskTransformer",
    "ResourceTransformer",
    "AssignmentTransformer",
    "ProjectTables",
    "ProjectTransformer",
]
