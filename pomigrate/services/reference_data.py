"""Shared reference workspace holding the standard picklist value sets."""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from .conversions import PRIORITY_LABELS, PROJECT_STATUSES, TASK_STATUSES
from .idempotency import get_or_create
from ..exceptions import AuthorizationError, ConfigurationError, DataIntegrityError
from ..loaders.base import BaseLoader
from ..models.target import (
    ColumnSpec,
    Container,
    ReferenceContext,
    RowPlacement,
    RowSpec,
    ValueSetHandle,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

REFERENCE_CONTAINER_NAME = "PMO Standards"
VALUE_COLUMN = "Name"

STANDARD_VALUE_SETS: Dict[str, List[str]] = {
    "Project - Status": PROJECT_STATUSES,
    "Project - Priority": PRIORITY_LABELS,
    "Task - Status": TASK_STATUSES,
    "Task - Priority": PRIORITY_LABELS,
    "Task - Constraint Type": ["ASAP", "ALAP", "SNET", "SNLT", "FNET", "FNLT", "MSO", "MFO"],
    "Resource - Type": ["Work", "Material", "Cost"],
}

DEPARTMENT_SET = "Resource - Department"


def discover_values(records: Iterable[T], selector: Callable[[T], Optional[str]]) -> List[str]:
    """
    Collect the distinct non-empty values of one attribute.

    Args:
        records: Source records
        selector: Extracts the attribute from a record

    Returns:
        Sorted unique values
    """
    values = set()
    for record in records:
        value = selector(record)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            values.add(value)
    return sorted(values)


def _dedupe(values: Sequence[str]) -> List[str]:
    seen = set()
    ordered = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


class ReferenceDataManager:
    """
    Sets up the reference workspace and keeps its value sets complete.

    Values are only ever appended; existing rows are never changed,
    reordered or deleted.
    """

    def __init__(self, loader: BaseLoader):
        self.loader = loader

    def setup_reference_container(
        self,
        existing_id: Optional[int] = None,
        discovered: Optional[Dict[str, List[str]]] = None,
    ) -> ReferenceContext:
        """
        Resolve or create the reference workspace and ensure every value set.

        Args:
            existing_id: Id of an existing reference workspace
            discovered: Extra value sets discovered from source data

        Returns:
            ReferenceContext for the run

        Raises:
            ConfigurationError: If existing_id does not resolve
        """
        container = self._resolve_container(existing_id)
        logger.info(f"Using reference workspace '{container.name}' ({container.id})")

        value_sets: Dict[str, ValueSetHandle] = {}
        for name, seeds in STANDARD_VALUE_SETS.items():
            value_sets[name] = self.ensure_value_set(container, name, seeds)
        for name, seeds in (discovered or {}).items():
            value_sets[name] = self.ensure_value_set(container, name, seeds)

        return ReferenceContext(container, value_sets)

    def _resolve_container(self, existing_id: Optional[int]) -> Container:
        if existing_id is None:
            return get_or_create(
                REFERENCE_CONTAINER_NAME,
                lambda: self.loader.find_container(REFERENCE_CONTAINER_NAME),
                lambda: self.loader.create_container(REFERENCE_CONTAINER_NAME),
            )

        try:
            container = self.loader.get_container(existing_id)
        except AuthorizationError as e:
            raise ConfigurationError(
                f"Reference workspace {existing_id} is not accessible: {e.message}",
                actionable="Check PMO_STANDARDS_WORKSPACE_ID and the token's sharing permissions",
            )
        if container is None:
            raise ConfigurationError(
                f"Reference workspace {existing_id} does not exist",
                actionable="Fix PMO_STANDARDS_WORKSPACE_ID or unset it to create a new one",
            )
        return container

    def ensure_value_set(
        self,
        container: Container,
        name: str,
        seed_values: Sequence[str],
    ) -> ValueSetHandle:
        """
        Make sure a value set exists and contains every seed value.

        Args:
            container: Reference workspace
            name: Value set (sheet) name
            seed_values: Values that must be present, in insertion order

        Returns:
            ValueSetHandle listing existing values followed by appended ones
        """
        table = get_or_create(
            name,
            lambda: self.loader.find_table(container.id, name),
            lambda: self.loader.create_table(
                container.id, name, [ColumnSpec(title=VALUE_COLUMN, primary=True)]
            ),
        )
        table = self.loader.get_table(table.id)
        if table is None:
            raise DataIntegrityError(f"Value set '{name}' disappeared while being set up")

        column = table.find_column(VALUE_COLUMN) or table.primary_column
        if column is None:
            raise DataIntegrityError(f"Value set '{name}' has no '{VALUE_COLUMN}' column")

        existing = []
        for row in table.rows:
            value = row.get(column.id)
            if value not in (None, ""):
                existing.append(str(value))

        present = set(existing)
        missing = [v for v in _dedupe(seed_values) if v not in present]
        if missing:
            self.loader.add_rows_batched(
                table.id,
                [RowSpec(cells={column.id: value}, placement=RowPlacement()) for value in missing],
            )
            logger.info(f"Value set '{name}': added {len(missing)} values")

        return ValueSetHandle(
            name=name,
            table_id=table.id,
            column_id=column.id,
            values=_dedupe(existing) + missing,
        )
