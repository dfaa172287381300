"""Base transformer and shared helpers for writing entities to sheets."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

from ..exceptions import DataIntegrityError
from ..loaders.base import BaseLoader
from ..models.record import RecordIssue
from ..models.target import (
    Column,
    ColumnSpec,
    ColumnType,
    ReferenceContext,
    Row,
    Table,
)
from ..services.conversions import DEFAULT_HOURS_PER_DAY
from ..services.idempotency import ensure

logger = logging.getLogger(__name__)


@dataclass
class TransformResult:
    """Outcome of writing one entity type to its sheet."""
    entity: str
    table_id: Optional[int] = None
    rows_created: int = 0
    rows_skipped: int = 0
    rows_updated: int = 0
    records_mapped: int = 0
    column_handles: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def add_issues(self, issues: Iterable[RecordIssue]) -> None:
        for issue in issues:
            if issue.severity == "error":
                self.errors.append(str(issue))
            else:
                self.warnings.append(str(issue))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "entity": self.entity,
            "table_id": self.table_id,
            "rows_created": self.rows_created,
            "rows_skipped": self.rows_skipped,
            "rows_updated": self.rows_updated,
            "records_mapped": self.records_mapped,
            "column_handles": self.column_handles,
            "errors": self.errors,
            "warnings": self.warnings,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class BaseTransformer(ABC):
    """
    Base class for entity transformers.

    A transformer owns one sheet layout: it ensures the sheet's columns,
    turns typed records into rows, skips rows that already exist (matched
    on the hidden source-id column) and links picklist columns to the
    reference value sets.
    """

    entity = ""
    source_id_column = ""

    # Column title -> reference value set name
    VALUE_SET_COLUMNS: Dict[str, str] = {}

    def __init__(self, loader: BaseLoader, hours_per_day: float = DEFAULT_HOURS_PER_DAY):
        """
        Initialize the transformer.

        Args:
            loader: Destination loader
            hours_per_day: Working hours per day for duration conversions
        """
        self.loader = loader
        self.hours_per_day = hours_per_day

    @classmethod
    @abstractmethod
    def column_specs(cls) -> List[ColumnSpec]:
        """Columns of the sheet this transformer writes."""
        pass

    @abstractmethod
    def transform(
        self,
        records: Sequence[Any],
        table: Table,
        references: ReferenceContext,
    ) -> TransformResult:
        """
        Write records to the sheet.

        Args:
            records: Typed source records
            table: Destination sheet
            references: Reference value sets for picklist columns

        Returns:
            TransformResult with counts, column handles and issues
        """
        pass

    def _new_result(self, table: Table) -> TransformResult:
        return TransformResult(entity=self.entity, table_id=table.id, started_at=datetime.utcnow())

    def _finish(self, result: TransformResult) -> TransformResult:
        result.completed_at = datetime.utcnow()
        logger.info(
            f"{self.entity}: {result.rows_created} created, {result.rows_skipped} skipped, "
            f"{result.rows_updated} updated, {len(result.errors)} errors, "
            f"{len(result.warnings)} warnings"
        )
        return result

    def check_identity(self, record: Any, result: TransformResult) -> bool:
        """Reject a record without an id or name. Returns True when usable."""
        if not getattr(record, "id", None):
            result.errors.append(f"{self.entity}: record without id rejected")
            return False
        if not getattr(record, "name", None):
            result.errors.append(f"{self.entity} {record.id}: record without name rejected")
            return False
        return True

    def resolve_spec(self, spec: ColumnSpec, references: Optional[ReferenceContext]) -> ColumnSpec:
        """Fill picklist options and source link from the column's value set."""
        set_name = spec.value_set or self.VALUE_SET_COLUMNS.get(spec.title)
        if not set_name or references is None:
            return spec
        handle = references.get(set_name)
        if handle is None:
            return spec
        return replace(
            spec,
            type=ColumnType.PICKLIST,
            value_set=set_name,
            options=list(handle.values),
            source_link=handle.link,
        )

    def ensure_columns(
        self,
        table_id: int,
        specs: Sequence[ColumnSpec],
        references: Optional[ReferenceContext] = None,
    ) -> Dict[str, int]:
        """
        Make sure every column exists, creating missing ones by title.

        Args:
            table_id: Sheet id
            specs: Required columns
            references: Used to configure picklists on newly created columns

        Returns:
            Column title -> column id for the whole sheet
        """
        table = self.loader.get_table(table_id)
        if table is None:
            raise DataIntegrityError(f"Sheet {table_id} does not exist")

        columns: Dict[str, Column] = {c.title: c for c in table.columns}
        for spec in specs:
            if spec.primary and spec.title not in columns and table.primary_column is not None:
                # A sheet has exactly one primary column; reuse it under its own title
                continue
            column, _ = ensure(
                spec.title,
                lambda: columns.get(spec.title),
                lambda: self.loader.add_column(table_id, self.resolve_spec(spec, references)),
            )
            columns[column.title] = column

        column_map = {title: column.id for title, column in columns.items()}
        primary = table.primary_column
        for spec in specs:
            if spec.primary and spec.title not in column_map and primary is not None:
                column_map[spec.title] = primary.id
        return column_map

    def configure_value_set_columns(
        self,
        table_id: int,
        references: ReferenceContext,
        result: TransformResult,
    ) -> int:
        """
        Point picklist columns at their reference value sets.

        Columns already configured the same way are left alone.

        Returns:
            Number of columns updated
        """
        table = self.loader.get_table(table_id)
        if table is None:
            raise DataIntegrityError(f"Sheet {table_id} does not exist")

        updated = 0
        for title, set_name in self.VALUE_SET_COLUMNS.items():
            column = table.find_column(title)
            handle = references.get(set_name)
            if column is None:
                continue
            if handle is None:
                result.warnings.append(f"{self.entity}: value set '{set_name}' missing, '{title}' left as is")
                continue
            if (
                column.type == ColumnType.PICKLIST
                and column.options == handle.values
                and column.source_link == handle.link
            ):
                continue
            spec = ColumnSpec(
                title=title,
                type=ColumnType.PICKLIST,
                options=list(handle.values),
                value_set=set_name,
                source_link=handle.link,
            )
            self.loader.update_column(table_id, column.id, spec)
            updated += 1
        if updated:
            logger.info(f"{self.entity}: linked {updated} picklist columns to reference sets")
        return updated

    def existing_rows(self, table_id: int, column_map: Dict[str, int]) -> Dict[str, Row]:
        """Rows already in the sheet, keyed by source id."""
        return self.loader.index_rows(table_id, column_map[self.source_id_column])

    @staticmethod
    def build_cells(column_map: Dict[str, int], values: Dict[str, Any]) -> Dict[int, Any]:
        """Map title -> value onto column ids, dropping empty values."""
        return {
            column_map[title]: value
            for title, value in values.items()
            if title in column_map and value is not None and value != ""
        }


def clear_placeholder_rows(loader: BaseLoader, table_id: int) -> int:
    """
    Delete every row of a sheet.

    Only for sheets just copied from a template workspace; never used on
    sheets holding imported data.

    Returns:
        Number of rows deleted
    """
    rows = loader.list_rows(table_id)
    top_level = [row.id for row in rows if row.parent_id is None]
    if not top_level:
        return 0
    loader.delete_rows(table_id, top_level)
    logger.info(f"Cleared {len(rows)} placeholder rows from sheet {table_id}")
    return len(rows)
