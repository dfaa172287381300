"""Resource transformer: one row per resource, identity routed by family."""

import logging
from typing import Any, Dict, List, Sequence

from .base import BaseTransformer, TransformResult
from ..models.record import ResourceFamily, ResourceRecord
from ..models.target import (
    ColumnSpec,
    ColumnType,
    ReferenceContext,
    RowPlacement,
    RowSpec,
    Table,
)
from ..services.conversions import make_contact, ratio_to_percent, to_date_string
from ..services.resource_families import IDENTITY_COLUMNS, classify

logger = logging.getLogger(__name__)

# Resource - Type value for each family
FAMILY_TYPE_VALUES = {
    ResourceFamily.PEOPLE: "Work",
    ResourceFamily.MATERIAL: "Material",
    ResourceFamily.COST: "Cost",
}


class ResourceTransformer(BaseTransformer):
    """
    Writes resources to the Resources sheet.

    The identity value lands in exactly one of Team Members (a contact),
    Materials or Cost Resources (plain text), depending on the family.
    """

    entity = "resource"
    source_id_column = "Project Online Resource ID"

    VALUE_SET_COLUMNS = {
        "Resource Type": "Resource - Type",
        "Department": "Resource - Department",
    }

    @classmethod
    def column_specs(cls) -> List[ColumnSpec]:
        return [
            ColumnSpec("Resource Name", primary=True, width=200),
            ColumnSpec("Project Online Resource ID", hidden=True, locked=True),
            ColumnSpec(IDENTITY_COLUMNS[ResourceFamily.PEOPLE], type=ColumnType.CONTACT_LIST, width=200),
            ColumnSpec(IDENTITY_COLUMNS[ResourceFamily.MATERIAL], width=200),
            ColumnSpec(IDENTITY_COLUMNS[ResourceFamily.COST], width=200),
            ColumnSpec("Resource Type", type=ColumnType.PICKLIST, value_set="Resource - Type"),
            ColumnSpec("Max Units"),
            ColumnSpec("Standard Rate"),
            ColumnSpec("Overtime Rate"),
            ColumnSpec("Cost Per Use"),
            ColumnSpec("Department", type=ColumnType.PICKLIST, value_set="Resource - Department"),
            ColumnSpec("Code"),
            ColumnSpec("Is Active", type=ColumnType.CHECKBOX),
            ColumnSpec("Is Generic", type=ColumnType.CHECKBOX),
            ColumnSpec("Project Online Created Date", type=ColumnType.DATE),
            ColumnSpec("Project Online Modified Date", type=ColumnType.DATE),
        ]

    def row_values(self, resource: ResourceRecord) -> Dict[str, Any]:
        """Cell values for one resource, keyed by column title."""
        family = classify(resource)
        identity: Dict[str, Any] = {title: None for title in IDENTITY_COLUMNS.values()}
        if family == ResourceFamily.PEOPLE:
            identity[IDENTITY_COLUMNS[family]] = make_contact(resource.name, resource.email)
        else:
            identity[IDENTITY_COLUMNS[family]] = resource.name

        values = {
            "Resource Name": resource.name,
            "Project Online Resource ID": resource.id,
            "Resource Type": FAMILY_TYPE_VALUES[family],
            "Max Units": ratio_to_percent(resource.max_units),
            "Standard Rate": resource.standard_rate,
            "Overtime Rate": resource.overtime_rate,
            "Cost Per Use": resource.cost_per_use,
            "Department": resource.department,
            "Code": resource.code,
            "Is Active": resource.is_active,
            "Is Generic": resource.is_generic,
            "Project Online Created Date": to_date_string(resource.created_date),
            "Project Online Modified Date": to_date_string(resource.modified_date),
        }
        values.update(identity)
        return values

    def transform(
        self,
        records: Sequence[ResourceRecord],
        table: Table,
        references: ReferenceContext,
    ) -> TransformResult:
        """Create missing resource rows and link the picklist columns."""
        result = self._new_result(table)
        column_map = self.ensure_columns(table.id, self.column_specs(), references)
        result.column_handles = column_map
        existing = self.existing_rows(table.id, column_map)

        seen = set()
        new_rows = []
        for resource in records:
            if not self.check_identity(resource, result):
                continue
            if resource.id in existing or resource.id in seen:
                result.rows_skipped += 1
                continue
            seen.add(resource.id)
            new_rows.append(RowSpec(
                cells=self.build_cells(column_map, self.row_values(resource)),
                placement=RowPlacement(),
            ))

        if new_rows:
            created = self.loader.add_rows_batched(table.id, new_rows)
            result.rows_created += len(created)

        self.configure_value_set_columns(table.id, references, result)
        return self._finish(result)
