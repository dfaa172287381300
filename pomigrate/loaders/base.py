"""Base loader interface for the destination service."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging

from ..models.target import (
    Column,
    ColumnSpec,
    Container,
    Row,
    RowSpec,
    RowUpdate,
    Table,
)
from ..services.resilience import ResiliencePolicy, NO_RETRY

logger = logging.getLogger(__name__)


class BaseLoader(ABC):
    """
    Base class for destination loaders.

    Loaders expose workspace, sheet, column and row primitives. They do
    not decide what to create; transformers do that through the
    idempotency layer.
    """

    def __init__(
        self,
        target_service: str,
        dry_run: bool = False,
        batch_size: int = 100,
        policy: Optional[ResiliencePolicy] = None,
    ):
        """
        Initialize the loader.

        Args:
            target_service: Name of the target service
            dry_run: True when the loader writes to a sandbox
            batch_size: Maximum rows per add/update call
            policy: Resilience policy wrapped around every call
        """
        self.target_service = target_service
        self.dry_run = dry_run
        self.batch_size = batch_size
        self.policy = policy or NO_RETRY

    # Containers

    @abstractmethod
    def get_container(self, container_id: int) -> Optional[Container]:
        """Get a workspace by id, or None if it does not exist."""
        pass

    @abstractmethod
    def find_container(self, name: str) -> Optional[Container]:
        """Find a workspace by exact name."""
        pass

    @abstractmethod
    def create_container(self, name: str) -> Container:
        pass

    @abstractmethod
    def copy_container(self, source_id: int, name: str) -> Container:
        """Copy a workspace, including sheets and their rows."""
        pass

    # Tables

    @abstractmethod
    def list_tables(self, container_id: int) -> List[Table]:
        """List the sheets in a workspace. Columns and rows are not loaded."""
        pass

    @abstractmethod
    def get_table(self, table_id: int) -> Optional[Table]:
        """Get a sheet with its columns and rows, or None if missing."""
        pass

    @abstractmethod
    def create_table(self, container_id: int, name: str, columns: List[ColumnSpec]) -> Table:
        pass

    @abstractmethod
    def rename_table(self, table_id: int, name: str) -> Table:
        pass

    @abstractmethod
    def enable_dependencies(self, table_id: int) -> None:
        """Turn on dependency tracking so predecessor columns resolve."""
        pass

    # Columns

    @abstractmethod
    def add_column(self, table_id: int, spec: ColumnSpec, index: Optional[int] = None) -> Column:
        pass

    @abstractmethod
    def update_column(self, table_id: int, column_id: int, spec: ColumnSpec) -> Column:
        pass

    # Rows

    @abstractmethod
    def add_rows(self, table_id: int, rows: List[RowSpec]) -> List[Row]:
        """Add rows that share the same placement."""
        pass

    @abstractmethod
    def update_rows(self, table_id: int, updates: List[RowUpdate]) -> List[Row]:
        pass

    @abstractmethod
    def delete_rows(self, table_id: int, row_ids: List[int]) -> int:
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test that the destination is reachable with the configured credentials."""
        pass

    # Helpers built on the primitives

    def find_table(self, container_id: int, name: str) -> Optional[Table]:
        """Find a sheet in a workspace by exact name."""
        for table in self.list_tables(container_id):
            if table.name == name:
                return table
        return None

    def find_table_containing(self, container_id: int, fragment: str) -> Optional[Table]:
        """Find the first sheet whose name contains fragment (case-insensitive)."""
        fragment = fragment.lower()
        for table in self.list_tables(container_id):
            if fragment in table.name.lower():
                return table
        return None

    def list_rows(self, table_id: int) -> List[Row]:
        table = self.get_table(table_id)
        return table.rows if table else []

    def add_rows_batched(self, table_id: int, rows: List[RowSpec]) -> List[Row]:
        """
        Add rows in batches, splitting wherever placement changes.

        Args:
            table_id: Sheet id
            rows: Rows to add, in order

        Returns:
            Created rows in input order
        """
        created: List[Row] = []
        batch: List[RowSpec] = []
        for spec in rows:
            if batch and (spec.placement != batch[0].placement or len(batch) >= self.batch_size):
                created.extend(self.add_rows(table_id, batch))
                batch = []
            batch.append(spec)
        if batch:
            created.extend(self.add_rows(table_id, batch))
        return created

    def update_rows_batched(self, table_id: int, updates: List[RowUpdate]) -> List[Row]:
        updated: List[Row] = []
        for start in range(0, len(updates), self.batch_size):
            updated.extend(self.update_rows(table_id, updates[start:start + self.batch_size]))
        return updated

    def index_rows(self, table_id: int, column_id: int) -> Dict[str, Row]:
        """Map the string value of one column to its row, skipping blanks."""
        index: Dict[str, Row] = {}
        for row in self.list_rows(table_id):
            value = row.get(column_id)
            if value not in (None, ""):
                index.setdefault(str(value), row)
        return index
