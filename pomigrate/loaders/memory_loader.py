"""In-memory destination used for dry runs and tests."""

import copy
import itertools
import logging
from collections import Counter
from typing import Dict, List, Optional

from .base import BaseLoader
from ..exceptions import ConfigurationError
from ..models.target import (
    Column,
    ColumnSpec,
    Container,
    Row,
    RowSpec,
    RowUpdate,
    Table,
)
from ..services.resilience import ResiliencePolicy

logger = logging.getLogger(__name__)


class InMemoryLoader(BaseLoader):
    """
    A sandbox that behaves like the Smartsheet loader without network I/O.

    Rows keep tree order: a row added under a parent lands after the
    parent's last descendant, and row numbers are positions in that order.
    """

    def __init__(
        self,
        dry_run: bool = True,
        batch_size: int = 100,
        policy: Optional[ResiliencePolicy] = None,
    ):
        super().__init__("sandbox", dry_run, batch_size, policy)
        self._ids = itertools.count(1000)
        self.containers: Dict[int, Container] = {}
        self.tables: Dict[int, Table] = {}
        self._table_container: Dict[int, int] = {}
        self.calls: Counter = Counter()

    def _next_id(self) -> int:
        return next(self._ids)

    def _table(self, table_id: int) -> Table:
        table = self.tables.get(table_id)
        if table is None:
            raise ConfigurationError(f"Sheet {table_id} does not exist")
        return table

    def _renumber(self, table: Table) -> None:
        for position, row in enumerate(table.rows, start=1):
            row.row_number = position

    def _build_column(self, spec: ColumnSpec, index: int) -> Column:
        return Column(
            id=self._next_id(),
            title=spec.title,
            type=spec.type,
            index=index,
            primary=spec.primary,
            hidden=spec.hidden,
            locked=spec.locked,
            options=list(spec.options),
            source_link=spec.source_link,
        )

    # Containers

    def get_container(self, container_id: int) -> Optional[Container]:
        self.calls["get_container"] += 1
        container = self.containers.get(container_id)
        return copy.deepcopy(container) if container else None

    def find_container(self, name: str) -> Optional[Container]:
        self.calls["find_container"] += 1
        for container in self.containers.values():
            if container.name == name:
                return copy.deepcopy(container)
        return None

    def create_container(self, name: str) -> Container:
        self.calls["create_container"] += 1
        container = Container(id=self._next_id(), name=name)
        self.containers[container.id] = container
        logger.debug(f"Sandbox: created workspace '{name}' ({container.id})")
        return copy.deepcopy(container)

    def copy_container(self, source_id: int, name: str) -> Container:
        self.calls["copy_container"] += 1
        if source_id not in self.containers:
            raise ConfigurationError(f"Workspace {source_id} does not exist")
        container = Container(id=self._next_id(), name=name)
        self.containers[container.id] = container

        for table_id, owner in list(self._table_container.items()):
            if owner != source_id:
                continue
            original = self.tables[table_id]
            clone = Table(id=self._next_id(), name=original.name)
            column_ids = {}
            for column in original.columns:
                new_column = copy.deepcopy(column)
                new_column.id = self._next_id()
                column_ids[column.id] = new_column.id
                clone.columns.append(new_column)
            row_ids = {}
            for row in original.rows:
                new_id = self._next_id()
                row_ids[row.id] = new_id
                clone.rows.append(Row(
                    id=new_id,
                    row_number=row.row_number,
                    parent_id=row_ids.get(row.parent_id),
                    cells={column_ids[c]: copy.deepcopy(v) for c, v in row.cells.items()},
                ))
            clone.dependencies_enabled = original.dependencies_enabled
            self.tables[clone.id] = clone
            self._table_container[clone.id] = container.id
        return copy.deepcopy(container)

    # Tables

    def list_tables(self, container_id: int) -> List[Table]:
        self.calls["list_tables"] += 1
        return [
            Table(id=t.id, name=t.name)
            for t_id, t in self.tables.items()
            if self._table_container[t_id] == container_id
        ]

    def get_table(self, table_id: int) -> Optional[Table]:
        self.calls["get_table"] += 1
        table = self.tables.get(table_id)
        return copy.deepcopy(table) if table else None

    def create_table(self, container_id: int, name: str, columns: List[ColumnSpec]) -> Table:
        self.calls["create_table"] += 1
        if container_id not in self.containers:
            raise ConfigurationError(f"Workspace {container_id} does not exist")
        titles = [c.title for c in columns]
        if len(titles) != len(set(titles)):
            raise ValueError(f"Duplicate column titles in sheet '{name}'")
        table = Table(id=self._next_id(), name=name)
        table.columns = [self._build_column(spec, i) for i, spec in enumerate(columns)]
        self.tables[table.id] = table
        self._table_container[table.id] = container_id
        return copy.deepcopy(table)

    def rename_table(self, table_id: int, name: str) -> Table:
        self.calls["rename_table"] += 1
        table = self._table(table_id)
        table.name = name
        return copy.deepcopy(table)

    def enable_dependencies(self, table_id: int) -> None:
        self.calls["enable_dependencies"] += 1
        self._table(table_id).dependencies_enabled = True

    # Columns

    def add_column(self, table_id: int, spec: ColumnSpec, index: Optional[int] = None) -> Column:
        self.calls["add_column"] += 1
        table = self._table(table_id)
        if table.find_column(spec.title):
            raise ValueError(f"Column '{spec.title}' already exists in sheet {table_id}")
        position = len(table.columns) if index is None else index
        column = self._build_column(spec, position)
        table.columns.insert(position, column)
        for i, existing in enumerate(table.columns):
            existing.index = i
        return copy.deepcopy(column)

    def update_column(self, table_id: int, column_id: int, spec: ColumnSpec) -> Column:
        self.calls["update_column"] += 1
        table = self._table(table_id)
        for column in table.columns:
            if column.id == column_id:
                column.title = spec.title
                column.type = spec.type
                column.options = list(spec.options)
                column.source_link = spec.source_link
                return copy.deepcopy(column)
        raise ConfigurationError(f"Column {column_id} does not exist in sheet {table_id}")

    # Rows

    def _insert_position(self, table: Table, parent_id: Optional[int]) -> int:
        if parent_id is None:
            return len(table.rows)
        parents = {row.id: row.parent_id for row in table.rows}
        position = None
        for i, row in enumerate(table.rows):
            if row.id == parent_id:
                position = i + 1
                continue
            if position is None:
                continue
            ancestor = row.parent_id
            while ancestor is not None and ancestor != parent_id:
                ancestor = parents.get(ancestor)
            if ancestor == parent_id:
                position = i + 1
            else:
                break
        if position is None:
            raise ConfigurationError(f"Parent row {parent_id} does not exist in sheet {table.id}")
        return position

    def add_rows(self, table_id: int, rows: List[RowSpec]) -> List[Row]:
        self.calls["add_rows"] += 1
        table = self._table(table_id)
        known = {c.id for c in table.columns}
        created = []
        for spec in rows:
            unknown = set(spec.cells) - known
            if unknown:
                raise ValueError(f"Unknown column ids {sorted(unknown)} for sheet {table_id}")
            row = Row(
                id=self._next_id(),
                parent_id=spec.placement.parent_id,
                cells={k: v for k, v in spec.cells.items() if v is not None},
            )
            table.rows.insert(self._insert_position(table, spec.placement.parent_id), row)
            created.append(row)
        self._renumber(table)
        return [copy.deepcopy(r) for r in created]

    def update_rows(self, table_id: int, updates: List[RowUpdate]) -> List[Row]:
        self.calls["update_rows"] += 1
        table = self._table(table_id)
        by_id = {row.id: row for row in table.rows}
        updated = []
        for update in updates:
            row = by_id.get(update.row_id)
            if row is None:
                raise ValueError(f"Row {update.row_id} does not exist in sheet {table_id}")
            for column_id, value in update.cells.items():
                if value is None:
                    row.cells.pop(column_id, None)
                else:
                    row.cells[column_id] = value
            updated.append(copy.deepcopy(row))
        return updated

    def delete_rows(self, table_id: int, row_ids: List[int]) -> int:
        self.calls["delete_rows"] += 1
        table = self._table(table_id)
        doomed = set(row_ids)
        # Deleting a parent deletes its children
        changed = True
        while changed:
            changed = False
            for row in table.rows:
                if row.parent_id in doomed and row.id not in doomed:
                    doomed.add(row.id)
                    changed = True
        before = len(table.rows)
        table.rows = [row for row in table.rows if row.id not in doomed]
        self._renumber(table)
        return before - len(table.rows)

    def test_connection(self) -> bool:
        return True
