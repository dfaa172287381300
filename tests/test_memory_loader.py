import pytest

from pomigrate.exceptions import ConfigurationError
from pomigrate.loaders.memory_loader import InMemoryLoader
from pomigrate.models.target import ColumnSpec, RowPlacement, RowSpec, RowUpdate


@pytest.fixture
def sheet(loader):
    container = loader.create_container("Sandbox")
    table = loader.create_table(container.id, "Sandbox - Tasks", [
        ColumnSpec("Name", primary=True),
        ColumnSpec("Source ID", hidden=True),
    ])
    return table


def test_children_land_after_last_descendant(loader, sheet):
    name = sheet.columns[0].id
    top_a, top_b = loader.add_rows(sheet.id, [
        RowSpec({name: "A"}), RowSpec({name: "B"}),
    ])
    loader.add_rows(sheet.id, [RowSpec({name: "A.1"}, RowPlacement(parent_id=top_a.id))])
    loader.add_rows(sheet.id, [RowSpec({name: "A.2"}, RowPlacement(parent_id=top_a.id))])

    rows = loader.list_rows(sheet.id)

    assert [r.get(name) for r in rows] == ["A", "A.1", "A.2", "B"]
    assert [r.row_number for r in rows] == [1, 2, 3, 4]
    assert rows[1].parent_id == top_a.id


def test_unknown_parent_rejected(loader, sheet):
    with pytest.raises(ConfigurationError):
        loader.add_rows(sheet.id, [RowSpec({}, RowPlacement(parent_id=1))])


def test_batches_split_on_placement_change(loader, sheet):
    name = sheet.columns[0].id
    parent = loader.add_rows(sheet.id, [RowSpec({name: "P"})])[0]
    loader.calls.clear()

    loader.add_rows_batched(sheet.id, [
        RowSpec({name: "c1"}, RowPlacement(parent_id=parent.id)),
        RowSpec({name: "c2"}, RowPlacement(parent_id=parent.id)),
        RowSpec({name: "top"}),
    ])

    assert loader.calls["add_rows"] == 2


def test_batches_respect_batch_size():
    small = InMemoryLoader(batch_size=2)
    container = small.create_container("Small")
    table = small.create_table(container.id, "Small - Tasks", [ColumnSpec("Name", primary=True)])
    column = table.columns[0].id

    small.add_rows_batched(table.id, [RowSpec({column: str(i)}) for i in range(5)])

    assert small.calls["add_rows"] == 3
    assert len(small.list_rows(table.id)) == 5


def test_update_and_clear_cells(loader, sheet):
    name, source = sheet.columns[0].id, sheet.columns[1].id
    row = loader.add_rows(sheet.id, [RowSpec({name: "A", source: "t-1"})])[0]

    loader.update_rows(sheet.id, [RowUpdate(row.id, {name: "A2", source: None})])

    stored = loader.list_rows(sheet.id)[0]
    assert stored.get(name) == "A2"
    assert source not in stored.cells


def test_index_rows_by_source_id(loader, sheet):
    source = sheet.columns[1].id
    loader.add_rows(sheet.id, [RowSpec({source: "t-1"}), RowSpec({source: "t-2"}), RowSpec({})])

    index = loader.index_rows(sheet.id, source)

    assert sorted(index) == ["t-1", "t-2"]


def test_delete_cascades_to_children(loader, sheet):
    name = sheet.columns[0].id
    parent = loader.add_rows(sheet.id, [RowSpec({name: "P"})])[0]
    loader.add_rows(sheet.id, [RowSpec({name: "C"}, RowPlacement(parent_id=parent.id))])

    assert loader.delete_rows(sheet.id, [parent.id]) == 2
    assert loader.list_rows(sheet.id) == []


def test_duplicate_column_rejected(loader, sheet):
    with pytest.raises(ValueError):
        loader.add_column(sheet.id, ColumnSpec("Name"))


def test_copy_container_clones_sheets(loader, sheet):
    name = sheet.columns[0].id
    loader.add_rows(sheet.id, [RowSpec({name: "placeholder"})])
    source = loader.find_container("Sandbox")

    copy = loader.copy_container(source.id, "Copy")

    tables = loader.list_tables(copy.id)
    assert [t.name for t in tables] == ["Sandbox - Tasks"]
    cloned = loader.get_table(tables[0].id)
    assert len(cloned.rows) == 1
    assert cloned.columns[0].id != name


def test_find_table_containing_ignores_case(loader, sheet):
    container = loader.find_container("Sandbox")

    assert loader.find_table_containing(container.id, "tasks").id == sheet.id
    assert loader.find_table(container.id, "Sandbox - Tasks").id == sheet.id
    assert loader.find_table(container.id, "Missing") is None
