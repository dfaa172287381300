"""Project transformer: workspace, sheet set and the Summary sheet."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .base import BaseTransformer, TransformResult, clear_placeholder_rows
from .task import TaskTransformer
from .resource import ResourceTransformer
from ..exceptions import ConfigurationError, ValidationError
from ..models.record import ProjectRecord
from ..models.target import (
    ColumnSpec,
    ColumnType,
    Container,
    ReferenceContext,
    RowPlacement,
    RowSpec,
    Table,
    sanitize_container_name,
    table_name,
)
from ..services.conversions import (
    PROJECT_STATUSES,
    make_contact,
    map_priority,
    percent_string,
    to_date_string,
)
from ..services.idempotency import ensure, get_or_create

logger = logging.getLogger(__name__)

SUMMARY_SUFFIX = "Summary"
TASKS_SUFFIX = "Tasks"
RESOURCES_SUFFIX = "Resources"


@dataclass
class ProjectTables:
    """The workspace and the three sheets of one imported project."""
    container: Container
    summary: Table
    tasks: Table
    resources: Table
    created: bool = False


class ProjectTransformer(BaseTransformer):
    """Creates the project workspace and writes the one-row Summary sheet."""

    entity = "project"
    source_id_column = "Project Online Project ID"

    VALUE_SET_COLUMNS = {
        "Status": "Project - Status",
        "Priority": "Project - Priority",
    }

    @classmethod
    def column_specs(cls) -> List[ColumnSpec]:
        return [
            ColumnSpec("Project Online Project ID", hidden=True, locked=True),
            ColumnSpec("Project Name", primary=True, width=300),
            ColumnSpec("Description", width=300),
            ColumnSpec("Owner", type=ColumnType.CONTACT_LIST),
            ColumnSpec("Start Date", type=ColumnType.DATE),
            ColumnSpec("Finish Date", type=ColumnType.DATE),
            ColumnSpec("Status", type=ColumnType.PICKLIST, value_set="Project - Status"),
            ColumnSpec("Priority", type=ColumnType.PICKLIST, value_set="Project - Priority"),
            ColumnSpec("% Complete"),
            ColumnSpec("Project Online Created Date", type=ColumnType.DATE),
            ColumnSpec("Project Online Modified Date", type=ColumnType.DATE),
        ]

    def prepare_container(
        self,
        project: ProjectRecord,
        destination_id: Optional[int] = None,
        template_id: Optional[int] = None,
        references: Optional[ReferenceContext] = None,
    ) -> ProjectTables:
        """
        Resolve or create the project workspace and its three sheets.

        Args:
            project: Project being imported
            destination_id: Existing workspace to import into
            template_id: Workspace to copy when creating a new one
            references: Used to configure picklists on new sheets

        Returns:
            ProjectTables

        Raises:
            ConfigurationError: If destination_id does not resolve
            ValidationError: If the project name is unusable
        """
        name = sanitize_container_name(project.name)
        if not name:
            raise ValidationError(
                f"Project name {project.name!r} is empty after sanitising",
                record_id=project.id,
                field="name",
            )

        created = False
        if destination_id is not None:
            container = self.loader.get_container(destination_id)
            if container is None:
                raise ConfigurationError(
                    f"Destination workspace {destination_id} does not exist",
                    actionable="Pass an existing workspace id or omit --destination",
                )
        else:
            container, created = ensure(
                name,
                lambda: self.loader.find_container(name),
                lambda: self._create_container(name, template_id),
            )
            if created and template_id is not None:
                self._adopt_template_sheets(container)

        layouts: Dict[str, List[ColumnSpec]] = {
            SUMMARY_SUFFIX: self.column_specs(),
            TASKS_SUFFIX: TaskTransformer.column_specs(),
            RESOURCES_SUFFIX: ResourceTransformer.column_specs(),
        }
        tables = {}
        for suffix, specs in layouts.items():
            sheet_name = table_name(container.name, suffix)
            tables[suffix] = get_or_create(
                sheet_name,
                lambda: self.loader.find_table(container.id, sheet_name),
                lambda: self.loader.create_table(
                    container.id, sheet_name, [self.resolve_spec(s, references) for s in specs]
                ),
            )

        return ProjectTables(
            container=container,
            summary=tables[SUMMARY_SUFFIX],
            tasks=tables[TASKS_SUFFIX],
            resources=tables[RESOURCES_SUFFIX],
            created=created,
        )

    def _create_container(self, name: str, template_id: Optional[int]) -> Container:
        if template_id is None:
            return self.loader.create_container(name)
        if self.loader.get_container(template_id) is None:
            raise ConfigurationError(
                f"Template workspace {template_id} does not exist",
                actionable="Fix TEMPLATE_WORKSPACE_ID or unset it",
            )
        return self.loader.copy_container(template_id, name)

    def _adopt_template_sheets(self, container: Container) -> None:
        """Rename copied template sheets and drop their placeholder rows."""
        for suffix in (SUMMARY_SUFFIX, TASKS_SUFFIX, RESOURCES_SUFFIX):
            table = self.loader.find_table_containing(container.id, suffix)
            if table is None:
                logger.warning(f"Template has no '{suffix}' sheet, a new one will be created")
                continue
            target_name = table_name(container.name, suffix)
            if table.name != target_name:
                self.loader.rename_table(table.id, target_name)
            clear_placeholder_rows(self.loader, table.id)

    def _status(self, project: ProjectRecord, result: TransformResult) -> str:
        if project.status in PROJECT_STATUSES:
            return project.status
        if project.status:
            result.warnings.append(
                f"project {project.id}: status {project.status!r} not in value set, derived from progress"
            )
        if project.percent_complete is not None and project.percent_complete >= 100:
            return "Completed"
        return "Active"

    def transform(
        self,
        records: Sequence[ProjectRecord],
        table: Table,
        references: ReferenceContext,
    ) -> TransformResult:
        """Write the Summary row for the project and link its picklists."""
        result = self._new_result(table)
        column_map = self.ensure_columns(table.id, self.column_specs(), references)
        result.column_handles = column_map
        existing = self.existing_rows(table.id, column_map)

        new_rows = []
        for project in records:
            if not self.check_identity(project, result):
                continue
            if project.id in existing:
                result.rows_skipped += 1
                continue
            values = {
                "Project Online Project ID": project.id,
                "Project Name": project.name,
                "Description": project.description,
                "Owner": make_contact(project.owner, project.owner_email),
                "Start Date": to_date_string(project.start_date),
                "Finish Date": to_date_string(project.finish_date),
                "Status": self._status(project, result),
                "Priority": map_priority(project.priority) if project.priority is not None else None,
                "% Complete": percent_string(project.percent_complete),
                "Project Online Created Date": to_date_string(project.created_date),
                "Project Online Modified Date": to_date_string(project.modified_date),
            }
            new_rows.append(RowSpec(cells=self.build_cells(column_map, values), placement=RowPlacement()))

        if new_rows:
            self.loader.add_rows_batched(table.id, new_rows)
            result.rows_created += len(new_rows)

        self.configure_value_set_columns(table.id, references, result)
        return self._finish(result)
