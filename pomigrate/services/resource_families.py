"""Resource family classification and assignment column planning."""

from dataclasses import dataclass
from typing import Iterable, List

from ..models.record import ResourceFamily, ResourceRecord
from ..models.target import ColumnType

# Resources sheet column holding each family's identity values
IDENTITY_COLUMNS = {
    ResourceFamily.PEOPLE: "Team Members",
    ResourceFamily.MATERIAL: "Materials",
    ResourceFamily.COST: "Cost Resources",
}


@dataclass(frozen=True)
class AssignmentColumnPlan:
    """One shared assignment column on the Tasks sheet."""
    family: ResourceFamily
    title: str
    column_type: str
    source_column: str


_PLANS = [
    AssignmentColumnPlan(
        family=ResourceFamily.PEOPLE,
        title="Assigned To",
        column_type=ColumnType.MULTI_CONTACT_LIST,
        source_column=IDENTITY_COLUMNS[ResourceFamily.PEOPLE],
    ),
    AssignmentColumnPlan(
        family=ResourceFamily.MATERIAL,
        title="Materials",
        column_type=ColumnType.MULTI_PICKLIST,
        source_column=IDENTITY_COLUMNS[ResourceFamily.MATERIAL],
    ),
    AssignmentColumnPlan(
        family=ResourceFamily.COST,
        title="Cost Resources",
        column_type=ColumnType.MULTI_PICKLIST,
        source_column=IDENTITY_COLUMNS[ResourceFamily.COST],
    ),
]


def classify(resource: ResourceRecord) -> ResourceFamily:
    """
    Decide a resource's family from its category attribute.

    Only the exact tags "Material" and "Cost" select those families;
    anything else, including an absent category, is People.
    """
    if resource.resource_type == ResourceFamily.MATERIAL.value:
        return ResourceFamily.MATERIAL
    if resource.resource_type == ResourceFamily.COST.value:
        return ResourceFamily.COST
    return ResourceFamily.PEOPLE


def plan_assignment_columns(resources: Iterable[ResourceRecord]) -> List[AssignmentColumnPlan]:
    """One plan per family present among the resources, People first."""
    present = {classify(r) for r in resources}
    return [plan for plan in _PLANS if plan.family in present]
