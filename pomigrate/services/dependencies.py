"""Render predecessor links as Smartsheet predecessor tokens."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from ..models.record import PredecessorLink

logger = logging.getLogger(__name__)


@dataclass
class DependencyMapping:
    """Rendered predecessor value for one task plus dropped-link warnings."""
    value: str = ""
    warnings: List[str] = field(default_factory=list)


def format_lag(lag_days: float) -> str:
    """Render a signed lag, e.g. 2 -> "+2d", -1.5 -> "-1.5d", 0 -> ""."""
    lag = round(float(lag_days or 0), 2)
    if lag == 0:
        return ""
    text = str(int(lag)) if lag == int(lag) else f"{lag:g}"
    sign = "+" if lag > 0 else ""
    return f"{sign}{text}d"


def format_token(row_number: int, dependency_type: str, lag_days: float = 0.0) -> str:
    """Build one token: row number, type code, optional signed lag."""
    return f"{row_number}{dependency_type}{format_lag(lag_days)}"


class DependencyMapper:
    """
    Maps predecessor links onto destination row numbers.

    Must run only after rows have been placed and their row numbers read
    back. Output is deterministic for identical input.
    """

    def map_links(
        self,
        task_id: str,
        links: Sequence[PredecessorLink],
        row_numbers: Dict[str, int],
    ) -> DependencyMapping:
        """
        Render the predecessor value for one task.

        Args:
            task_id: Source id of the successor task
            links: Declared predecessor links, in declaration order
            row_numbers: Source task id -> destination row number

        Returns:
            DependencyMapping; unresolvable links are dropped with a warning
        """
        mapping = DependencyMapping()
        tokens = []
        for link in links:
            if link.predecessor_id == task_id:
                mapping.warnings.append(f"Task {task_id}: dropped self-referencing predecessor")
                continue
            row_number = row_numbers.get(link.predecessor_id)
            if row_number is None:
                mapping.warnings.append(
                    f"Task {task_id}: predecessor {link.predecessor_id} not found, link dropped"
                )
                continue
            dependency_type = getattr(link.dependency_type, "value", link.dependency_type)
            tokens.append(format_token(row_number, dependency_type, link.lag_days))

        mapping.value = ",".join(tokens)
        for warning in mapping.warnings:
            logger.warning(warning)
        return mapping
