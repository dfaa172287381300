"""Task transformer: hierarchy-aware row placement and predecessor links."""

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Sequence

from .base import BaseTransformer, TransformResult
from ..models.record import TaskRecord
from ..models.target import (
    ColumnSpec,
    ColumnType,
    ReferenceContext,
    RowPlacement,
    RowSpec,
    RowUpdate,
    Table,
)
from ..services.conversions import (
    DEFAULT_HOURS_PER_DAY,
    derive_task_status,
    hours_to_day_string,
    hours_to_days,
    hours_to_effort_string,
    map_priority,
    percent_string,
    to_date_string,
)
from ..services.dependencies import DependencyMapper
from ..services.hierarchy import DEFAULT_MAX_INDENT, HierarchyBuilder

logger = logging.getLogger(__name__)

PREDECESSORS_COLUMN = "Predecessors"


class TaskTransformer(BaseTransformer):
    """
    Writes tasks to the Tasks sheet.

    Rows are created level by level so every child is placed under an
    already existing parent row. Predecessors are written in a second
    pass, once the final row numbers are known.
    """

    entity = "task"
    source_id_column = "Project Online Task ID"

    VALUE_SET_COLUMNS = {
        "Status": "Task - Status",
        "Priority": "Task - Priority",
        "Constraint Type": "Task - Constraint Type",
    }

    def __init__(
        self,
        loader,
        hours_per_day: float = DEFAULT_HOURS_PER_DAY,
        max_indent: int = DEFAULT_MAX_INDENT,
    ):
        super().__init__(loader, hours_per_day)
        self.hierarchy = HierarchyBuilder(max_indent)
        self.mapper = DependencyMapper()

    @classmethod
    def column_specs(cls) -> List[ColumnSpec]:
        return [
            ColumnSpec("Task Name", primary=True, width=300),
            ColumnSpec("Project Online Task ID", hidden=True, locked=True),
            ColumnSpec("Start Date", type=ColumnType.DATE),
            ColumnSpec("End Date", type=ColumnType.DATE),
            ColumnSpec("Duration"),
            ColumnSpec("% Complete"),
            ColumnSpec("Status", type=ColumnType.PICKLIST, value_set="Task - Status"),
            ColumnSpec("Priority", type=ColumnType.PICKLIST, value_set="Task - Priority"),
            ColumnSpec("Work (hrs)"),
            ColumnSpec("Actual Work (hrs)"),
            ColumnSpec("Milestone", type=ColumnType.CHECKBOX),
            ColumnSpec("Notes", width=250),
            ColumnSpec(PREDECESSORS_COLUMN, type=ColumnType.PREDECESSOR),
            ColumnSpec("Constraint Type", type=ColumnType.PICKLIST, value_set="Task - Constraint Type"),
            ColumnSpec("Constraint Date", type=ColumnType.DATE),
            ColumnSpec("Deadline", type=ColumnType.DATE),
            ColumnSpec("Late Start", type=ColumnType.DATE),
            ColumnSpec("Late Finish", type=ColumnType.DATE),
            ColumnSpec("Total Slack (days)"),
            ColumnSpec("Free Slack (days)"),
            ColumnSpec("Project Online Created Date", type=ColumnType.DATE),
            ColumnSpec("Project Online Modified Date", type=ColumnType.DATE),
        ]

    def row_values(self, task: TaskRecord) -> Dict[str, Any]:
        """Cell values for one task, keyed by column title."""
        return {
            "Task Name": task.name,
            "Project Online Task ID": task.id,
            "Start Date": to_date_string(task.start),
            "End Date": to_date_string(task.finish),
            "Duration": hours_to_day_string(task.duration_hours, self.hours_per_day),
            "% Complete": percent_string(task.percent_complete),
            "Status": derive_task_status(task.percent_complete) if task.percent_complete is not None else None,
            "Priority": map_priority(task.priority) if task.priority is not None else None,
            "Work (hrs)": hours_to_effort_string(task.work_hours),
            "Actual Work (hrs)": hours_to_effort_string(task.actual_work_hours),
            "Milestone": True if task.is_milestone else None,
            "Notes": task.notes,
            "Constraint Type": task.constraint_type,
            "Constraint Date": to_date_string(task.constraint_date),
            "Deadline": to_date_string(task.deadline),
            "Late Start": to_date_string(task.late_start),
            "Late Finish": to_date_string(task.late_finish),
            "Total Slack (days)": hours_to_days(task.total_slack_hours, self.hours_per_day),
            "Free Slack (days)": hours_to_days(task.free_slack_hours, self.hours_per_day),
            "Project Online Created Date": to_date_string(task.created_date),
            "Project Online Modified Date": to_date_string(task.modified_date),
        }

    def transform(
        self,
        records: Sequence[TaskRecord],
        table: Table,
        references: ReferenceContext,
    ) -> TransformResult:
        """
        Create task rows in hierarchy order, then map predecessors.

        Args:
            records: Tasks in source (outline) order
            table: Tasks sheet
            references: Reference value sets

        Returns:
            TransformResult
        """
        result = self._new_result(table)
        tasks = [t for t in records if self.check_identity(t, result)]

        if not table.dependencies_enabled:
            self.loader.enable_dependencies(table.id)
        column_map = self.ensure_columns(table.id, self.column_specs(), references)
        result.column_handles = column_map

        hierarchy = self.hierarchy.build(
            [t.outline_level for t in tasks],
            labels=[t.id for t in tasks],
        )
        result.warnings.extend(hierarchy.warnings)

        existing = self.existing_rows(table.id, column_map)
        row_ids: Dict[str, int] = {task_id: row.id for task_id, row in existing.items()}
        result.rows_skipped = sum(1 for t in tasks if t.id in existing)

        # Level by level; within a level, grouped by parent in source order
        levels: Dict[int, "OrderedDict[Any, List[int]]"] = {}
        for placement in hierarchy.placements:
            group = levels.setdefault(placement.level, OrderedDict())
            group.setdefault(placement.parent_index, []).append(placement.index)

        for level in sorted(levels):
            specs: List[RowSpec] = []
            pending: List[TaskRecord] = []
            for parent_index, indexes in levels[level].items():
                parent_row = row_ids.get(tasks[parent_index].id) if parent_index is not None else None
                placement = RowPlacement(parent_id=parent_row, to_bottom=True)
                for index in indexes:
                    task = tasks[index]
                    if task.id in row_ids:
                        continue
                    specs.append(RowSpec(
                        cells=self.build_cells(column_map, self.row_values(task)),
                        placement=placement,
                    ))
                    pending.append(task)
            if not specs:
                continue
            created = self.loader.add_rows_batched(table.id, specs)
            for task, row in zip(pending, created):
                row_ids[task.id] = row.id
            result.rows_created += len(created)
            logger.debug(f"Placed {len(created)} tasks at level {level}")

        result.rows_updated = self._map_dependencies(table.id, tasks, column_map, result)
        return self._finish(result)

    def _map_dependencies(
        self,
        table_id: int,
        tasks: Sequence[TaskRecord],
        column_map: Dict[str, int],
        result: TransformResult,
    ) -> int:
        """Second pass: write predecessor tokens using final row numbers."""
        predecessor_column = column_map.get(PREDECESSORS_COLUMN)
        source_column = column_map[self.source_id_column]
        if predecessor_column is None:
            return 0

        rows = {}
        row_numbers: Dict[str, int] = {}
        for row in self.loader.list_rows(table_id):
            task_id = row.get(source_column)
            if task_id in (None, ""):
                continue
            rows[str(task_id)] = row
            row_numbers[str(task_id)] = row.row_number

        updates = []
        for task in tasks:
            row = rows.get(task.id)
            if row is None:
                continue
            mapping = self.mapper.map_links(task.id, task.predecessors, row_numbers)
            result.warnings.extend(mapping.warnings)
            current = row.get(predecessor_column) or ""
            if str(current) == mapping.value:
                continue
            updates.append(RowUpdate(
                row_id=row.id,
                cells={predecessor_column: mapping.value or None},
            ))

        if updates:
            self.loader.update_rows_batched(table_id, updates)
            logger.info(f"Updated predecessors on {len(updates)} tasks")
        return len(updates)

    def configure(self, table: Table, references: ReferenceContext) -> TransformResult:
        """Link Status, Priority and Constraint Type to their value sets."""
        result = self._new_result(table)
        result.rows_updated = 0
        self.configure_value_set_columns(table.id, references, result)
        return self._finish(result)
