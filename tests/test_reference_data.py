import pytest

from pomigrate.exceptions import ConfigurationError
from pomigrate.models.record import ResourceRecord
from pomigrate.services.conversions import PRIORITY_LABELS, TASK_STATUSES, derive_task_status
from pomigrate.services.reference_data import (
    DEPARTMENT_SET,
    REFERENCE_CONTAINER_NAME,
    STANDARD_VALUE_SETS,
    ReferenceDataManager,
    discover_values,
)

from conftest import column_values, table_by_name


def test_creates_container_and_standard_sets(loader):
    context = ReferenceDataManager(loader).setup_reference_container()

    assert context.container.name == REFERENCE_CONTAINER_NAME
    for name, values in STANDARD_VALUE_SETS.items():
        assert context.get(name).values == values
        assert column_values(table_by_name(loader, name), "Name") == values


def test_setup_is_idempotent(loader):
    manager = ReferenceDataManager(loader)
    first = manager.setup_reference_container(discovered={DEPARTMENT_SET: ["Engineering"]})
    rows_before = {t.id: len(t.rows) for t in loader.tables.values()}
    creates_before = loader.calls["create_table"]

    second = manager.setup_reference_container(discovered={DEPARTMENT_SET: ["Engineering"]})

    assert second.container.id == first.container.id
    assert {t.id: len(t.rows) for t in loader.tables.values()} == rows_before
    assert loader.calls["create_table"] == creates_before
    assert len(loader.containers) == 1


def test_discovered_values_are_appended_not_replaced(loader):
    manager = ReferenceDataManager(loader)
    manager.setup_reference_container(discovered={DEPARTMENT_SET: ["Engineering", "Finance"]})

    context = manager.setup_reference_container(discovered={DEPARTMENT_SET: ["Finance", "Legal"]})

    assert context.get(DEPARTMENT_SET).values == ["Engineering", "Finance", "Legal"]
    table = table_by_name(loader, DEPARTMENT_SET)
    assert column_values(table, "Name") == ["Engineering", "Finance", "Legal"]


def test_existing_container_is_used(loader):
    container = loader.create_container("Team Standards")

    context = ReferenceDataManager(loader).setup_reference_container(existing_id=container.id)

    assert context.container.id == container.id
    assert loader.find_container(REFERENCE_CONTAINER_NAME) is None


def test_unknown_container_id_is_a_configuration_error(loader):
    with pytest.raises(ConfigurationError):
        ReferenceDataManager(loader).setup_reference_container(existing_id=424242)


def test_context_is_read_only(loader):
    context = ReferenceDataManager(loader).setup_reference_container()

    with pytest.raises(TypeError):
        context.value_sets["Project - Status"] = None
    assert "Project - Status" in context


def test_discover_values():
    resources = [
        ResourceRecord(id="1", name="A", department="Finance"),
        ResourceRecord(id="2", name="B", department=" Engineering "),
        ResourceRecord(id="3", name="C", department="Finance"),
        ResourceRecord(id="4", name="D"),
    ]

    assert discover_values(resources, lambda r: r.department) == ["Engineering", "Finance"]


def test_standard_sets_match_value_mappers():
    assert STANDARD_VALUE_SETS["Project - Priority"] == PRIORITY_LABELS
    assert STANDARD_VALUE_SETS["Task - Status"] == TASK_STATUSES
    assert "Completed" in STANDARD_VALUE_SETS["Project - Status"]
    assert derive_task_status(50) in STANDARD_VALUE_SETS["Task - Status"]
