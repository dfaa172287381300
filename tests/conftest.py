"""Shared fixtures for the import tests."""

import json
from typing import Any, Dict, List

import pytest

from pomigrate.loaders.memory_loader import InMemoryLoader
from pomigrate.models.migration import ImportConfig
from pomigrate.models.target import Table
from pomigrate.services.progress import ProgressRecorder
from pomigrate.services.validator import RecordValidator

PROJECT_ID = "2f7a8c1e-4b3d-4e5f-9a0b-1c2d3e4f5a6b"


def sample_export() -> Dict[str, Any]:
    """A small project: two summary tasks, three resources, five assignments."""
    return {
        "project": {
            "Id": PROJECT_ID,
            "Name": "Website Redesign",
            "Description": "Refresh of the public site",
            "Owner": "Ada Lovelace",
            "OwnerEmail": "ada@example.com",
            "StartDate": "2024-01-08T08:00:00Z",
            "FinishDate": "2024-03-29T17:00:00Z",
            "ProjectStatus": "Active",
            "Priority": 500,
            "PercentComplete": 25,
        },
        "tasks": [
            {
                "Id": "t-1",
                "TaskName": "Discovery",
                "OutlineLevel": 1,
                "Start": "2024-01-08T08:00:00Z",
                "Finish": "2024-01-19T17:00:00Z",
                "Duration": "PT80H",
                "PercentComplete": 100,
            },
            {
                "Id": "t-2",
                "TaskName": "Stakeholder interviews",
                "OutlineLevel": 2,
                "Duration": "5d",
                "Work": "PT40H",
                "PercentComplete": 100,
            },
            {
                "Id": "t-3",
                "TaskName": "Research report",
                "OutlineLevel": 2,
                "Duration": "PT24H",
                "PercentComplete": 50,
                "Predecessors": [
                    {"PredecessorTaskId": "t-2", "DependencyType": "FS", "LagDays": 2},
                ],
            },
            {
                "Id": "t-4",
                "TaskName": "Build",
                "OutlineLevel": 1,
                "Priority": 950,
                "ConstraintType": 4,
                "ConstraintDate": "2024-01-22T08:00:00Z",
                "Predecessors": [{"PredecessorTaskId": "t-1", "LinkType": 1}],
            },
        ],
        "resources": [
            {
                "Id": "r-1",
                "Name": "Ada Lovelace",
                "Email": "ada@example.com",
                "ResourceType": "Work",
                "MaxUnits": 1.0,
                "StandardRate": 120,
                "Department": "Engineering",
            },
            {"Id": "r-2", "Name": "Laptop", "ResourceType": "Material", "StandardRate": 1500},
            {"Id": "r-3", "Name": "Travel", "ResourceType": "Cost"},
        ],
        "assignments": [
            {"Id": "a-1", "TaskId": "t-2", "ResourceId": "r-1", "Work": "PT40H"},
            {"Id": "a-2", "TaskId": "t-3", "ResourceId": "r-1"},
            {"Id": "a-3", "TaskId": "t-4", "ResourceId": "r-2"},
            {"Id": "a-4", "TaskId": "t-4", "ResourceId": "r-3"},
            {"Id": "a-5", "TaskId": "t-4", "ResourceId": "r-1"},
        ],
    }


def table_by_name(loader: InMemoryLoader, name: str) -> Table:
    for table in loader.tables.values():
        if table.name == name:
            return table
    raise AssertionError(f"No sheet named {name!r}")


def column_values(table: Table, title: str) -> List[Any]:
    """Values of one column in row order."""
    column = table.find_column(title)
    assert column is not None, f"missing column {title!r}"
    return [row.get(column.id) for row in table.rows]


def row_for(table: Table, id_column: str, source_id: str):
    column = table.find_column(id_column)
    for row in table.rows:
        if row.get(column.id) == source_id:
            return row
    raise AssertionError(f"No row for {source_id!r}")


@pytest.fixture
def export_data() -> Dict[str, Any]:
    return sample_export()


@pytest.fixture
def export_file(tmp_path, export_data):
    path = tmp_path / "export.json"
    path.write_text(json.dumps(export_data))
    return path


@pytest.fixture
def import_data(export_data):
    data, errors, _ = RecordValidator().parse_import_data(
        export_data["project"],
        export_data["tasks"],
        export_data["resources"],
        export_data["assignments"],
    )
    assert errors == []
    return data


@pytest.fixture
def loader() -> InMemoryLoader:
    return InMemoryLoader()


@pytest.fixture
def config(tmp_path) -> ImportConfig:
    return ImportConfig(dry_run=True, output_dir=str(tmp_path / "output"))


@pytest.fixture
def recorder() -> ProgressRecorder:
    return ProgressRecorder()
