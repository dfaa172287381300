import pytest

from pomigrate.models.record import ResourceFamily, ResourceRecord
from pomigrate.models.target import ColumnType
from pomigrate.services.resource_families import classify, plan_assignment_columns


@pytest.mark.parametrize("category,family", [
    ("Material", ResourceFamily.MATERIAL),
    ("Cost", ResourceFamily.COST),
    ("Work", ResourceFamily.PEOPLE),
    (None, ResourceFamily.PEOPLE),
    ("material", ResourceFamily.PEOPLE),
    ("Materials", ResourceFamily.PEOPLE),
])
def test_every_resource_gets_exactly_one_family(category, family):
    assert classify(ResourceRecord(id="r", name="R", resource_type=category)) == family


def test_material_resources_get_a_material_column():
    resources = [ResourceRecord(id="r-2", name="Laptop", resource_type="Material")]

    plans = plan_assignment_columns(resources)

    assert len(plans) == 1
    assert plans[0].family == ResourceFamily.MATERIAL
    assert plans[0].title == "Materials"
    assert plans[0].column_type == ColumnType.MULTI_PICKLIST
    assert plans[0].source_column == "Materials"


def test_plans_in_family_order():
    resources = [
        ResourceRecord(id="1", name="Travel", resource_type="Cost"),
        ResourceRecord(id="2", name="Ada"),
        ResourceRecord(id="3", name="Laptop", resource_type="Material"),
    ]

    titles = [p.title for p in plan_assignment_columns(resources)]

    assert titles == ["Assigned To", "Materials", "Cost Resources"]


def test_no_resources_no_columns():
    assert plan_assignment_columns([]) == []
