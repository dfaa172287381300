"""Assignment transformer: family columns on the Tasks sheet."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .base import BaseTransformer, TransformResult
from .task import TaskTransformer
from ..exceptions import DataIntegrityError
from ..models.record import AssignmentRecord, ResourceFamily, ResourceRecord
from ..models.target import (
    ColumnLink,
    ColumnSpec,
    Contact,
    MultiValue,
    ReferenceContext,
    RowUpdate,
    Table,
)
from ..services.conversions import DEFAULT_HOURS_PER_DAY, make_contact
from ..services.idempotency import ensure
from ..services.resource_families import (
    AssignmentColumnPlan,
    classify,
    plan_assignment_columns,
)

logger = logging.getLogger(__name__)


class AssignmentTransformer(BaseTransformer):
    """
    Adds one shared assignment column per resource family to the Tasks
    sheet, sources it from the Resources sheet and fills each task's
    assigned resources.

    Runs after both sheets exist, so the cross-sheet links point at
    stable column ids.
    """

    entity = "assignment"
    source_id_column = TaskTransformer.source_id_column

    def __init__(
        self,
        loader,
        resources: Sequence[ResourceRecord],
        resources_table: Table,
        hours_per_day: float = DEFAULT_HOURS_PER_DAY,
    ):
        super().__init__(loader, hours_per_day)
        self.resources = {r.id: r for r in resources}
        self.resources_table = resources_table

    @classmethod
    def column_specs(cls) -> List[ColumnSpec]:
        return []

    def _source_link(self, plan: AssignmentColumnPlan) -> Optional[ColumnLink]:
        table = self.loader.get_table(self.resources_table.id)
        if table is None:
            raise DataIntegrityError(f"Resources sheet {self.resources_table.id} does not exist")
        column = table.find_column(plan.source_column)
        if column is None:
            return None
        return ColumnLink(table_id=table.id, column_id=column.id)

    def ensure_assignment_columns(
        self,
        tasks_table: Table,
        plans: Sequence[AssignmentColumnPlan],
        result: TransformResult,
    ) -> Dict[ResourceFamily, int]:
        """Create (or re-link) the family columns. Returns family -> column id."""
        table = self.loader.get_table(tasks_table.id)
        if table is None:
            raise DataIntegrityError(f"Tasks sheet {tasks_table.id} does not exist")

        columns = {}
        for plan in plans:
            link = self._source_link(plan)
            if link is None:
                result.warnings.append(
                    f"Resources sheet has no '{plan.source_column}' column, '{plan.title}' left unlinked"
                )
            spec = ColumnSpec(title=plan.title, type=plan.column_type, source_link=link)
            column, created = ensure(
                plan.title,
                lambda: table.find_column(plan.title),
                lambda: self.loader.add_column(tasks_table.id, spec),
            )
            if not created and link is not None and column.source_link != link:
                column = self.loader.update_column(tasks_table.id, column.id, spec)
            columns[plan.family] = column.id
            result.column_handles[plan.title] = column.id
        return columns

    def _cell_value(self, resource: ResourceRecord, family: ResourceFamily) -> Any:
        if family == ResourceFamily.PEOPLE:
            return make_contact(resource.name, resource.email)
        return resource.name

    @staticmethod
    def _drop(result: TransformResult, assignment: AssignmentRecord, reason: str) -> None:
        message = f"assignment {assignment.id}: {reason}, dropped"
        logger.warning(message)
        result.warnings.append(message)

    @staticmethod
    def _same(current: Any, value: MultiValue) -> bool:
        if isinstance(current, MultiValue):
            return current == value
        if isinstance(current, Contact) and len(value.values) == 1:
            return current == value.values[0]
        return (current or "") == value.display

    def transform(
        self,
        records: Sequence[AssignmentRecord],
        table: Table,
        references: ReferenceContext,
    ) -> TransformResult:
        """
        Fill the family columns on task rows.

        Args:
            records: Assignments
            table: Tasks sheet
            references: Unused; assignment columns source from the Resources sheet

        Returns:
            TransformResult; rows_updated counts task rows whose cells changed
        """
        result = self._new_result(table)
        plans = plan_assignment_columns(self.resources.values())
        if not plans:
            return self._finish(result)
        family_columns = self.ensure_assignment_columns(table, plans, result)

        source_column = table.find_column(self.source_id_column)
        if source_column is None:
            refreshed = self.loader.get_table(table.id)
            source_column = refreshed.find_column(self.source_id_column) if refreshed else None
        if source_column is None:
            raise DataIntegrityError(f"Tasks sheet has no '{self.source_id_column}' column")
        task_rows = self.loader.index_rows(table.id, source_column.id)

        # task id -> family -> ordered unique values
        planned: Dict[str, Dict[ResourceFamily, List[Any]]] = {}
        for assignment in records:
            if not assignment.id:
                result.errors.append("assignment: record without id rejected")
                continue
            resource = self.resources.get(assignment.resource_id)
            if resource is None:
                self._drop(result, assignment, f"resource {assignment.resource_id} not found")
                continue
            if assignment.task_id not in task_rows:
                self._drop(result, assignment, f"task {assignment.task_id} not found")
                continue
            family = classify(resource)
            value = self._cell_value(resource, family)
            if value is None:
                continue
            values = planned.setdefault(assignment.task_id, {}).setdefault(family, [])
            if value not in values:
                values.append(value)
        assigned = sum(len(v) for families in planned.values() for v in families.values())

        updates = []
        for task_id, families in planned.items():
            row = task_rows[task_id]
            cells = {}
            for family, values in families.items():
                column_id = family_columns.get(family)
                if column_id is None:
                    continue
                value = MultiValue(tuple(values))
                if not self._same(row.get(column_id), value):
                    cells[column_id] = value
            if cells:
                updates.append(RowUpdate(row_id=row.id, cells=cells))

        if updates:
            self.loader.update_rows_batched(table.id, updates)
        result.rows_updated = len(updates)
        result.records_mapped = assigned
        result.rows_skipped = len(planned) - len(updates)
        logger.info(f"Mapped {assigned} resource assignments onto {len(planned)} tasks")
        return self._finish(result)
