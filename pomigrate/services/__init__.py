"""Service layer for the migration engine."""

from .idempotency import ensure, get_or_create
from .resilience import RateLimiter, ResiliencePolicy
from .hierarchy import HierarchyBuilder, HierarchyResult, Placement, derive_levels
from .dependencies import DependencyMapper, DependencyMapping
from .resource_families import AssignmentColumnPlan, classify, plan_assignment_columns
from .validator import RecordValidator
from .progress import ProgressRecorder, ProgressReporter

__all__ = [
    "ensure",
    "get_or_create",
    "RateLimiter",
    "ResiliencePolicy",
    "HierarchyBuilder",
    "HierarchyResult",
    "Placement",
    "derive_levels",
    "DependencyMapper",
    "DependencyMapping",
    "AssignmentColumnPlan",
    "classify",
    "plan_assignment_columns",
    "RecordValidator",
    "ProgressRecorder",
    "ProgressReporter",
]
