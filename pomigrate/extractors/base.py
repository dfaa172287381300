"""Base extractor interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime
import logging

from ..models.record import ProjectImportData, RecordIssue
from ..services.conversions import DEFAULT_HOURS_PER_DAY
from ..services.validator import RecordValidator

logger = logging.getLogger(__name__)

ENTITY_KEYS = ("tasks", "resources", "assignments")


@dataclass
class ExtractionResult:
    """Result of extracting one project."""
    source_ref: str
    data: Optional[ProjectImportData] = None
    errors: List[RecordIssue] = field(default_factory=list)
    warnings: List[RecordIssue] = field(default_factory=list)
    raw_counts: Dict[str, int] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def success(self) -> bool:
        """True when the project itself was usable."""
        return self.data is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "source_ref": self.source_ref,
            "raw_counts": self.raw_counts,
            "valid_counts": self.data.counts() if self.data else {},
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


class BaseExtractor(ABC):
    """
    Base class for project extractors.

    Subclasses fetch raw records; this class runs them through the
    validation boundary so only typed records leave the extractor.
    """

    def __init__(self, hours_per_day: float = DEFAULT_HOURS_PER_DAY):
        """
        Initialize the extractor.

        Args:
            hours_per_day: Working hours per day for duration parsing
        """
        self.validator = RecordValidator(hours_per_day)

    @abstractmethod
    def fetch_raw(self, source_ref: str) -> Dict[str, Any]:
        """
        Fetch raw records for one project.

        Returns:
            Dict with "project" (a dict) and "tasks", "resources",
            "assignments" (lists of dicts)
        """
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test connectivity to the source."""
        pass

    def extract_project(self, source_ref: str) -> ExtractionResult:
        """
        Extract and validate one project.

        Args:
            source_ref: Project id or export file path

        Returns:
            ExtractionResult with typed import data and record issues
        """
        result = ExtractionResult(source_ref=source_ref, started_at=datetime.utcnow())
        raw = self.fetch_raw(source_ref)
        result.raw_counts = {key: len(raw.get(key) or []) for key in ENTITY_KEYS}

        data, errors, warnings = self.validator.parse_import_data(
            raw.get("project") or {},
            raw.get("tasks") or [],
            raw.get("resources") or [],
            raw.get("assignments") or [],
        )
        result.data = data
        result.errors = errors
        result.warnings = warnings
        result.completed_at = datetime.utcnow()

        logger.info(
            f"Extracted {source_ref}: "
            + ", ".join(f"{count} {key}" for key, count in result.raw_counts.items())
            + f" ({len(errors)} rejected, {len(warnings)} warnings)"
        )
        return result
