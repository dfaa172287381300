import json

import pytest

from pomigrate.exceptions import ConfigurationError, ValidationError
from pomigrate.extractors.json_extractor import JSONExtractor


@pytest.fixture
def extractor():
    return JSONExtractor()


def write(tmp_path, content, name="export.json"):
    path = tmp_path / name
    path.write_text(content if isinstance(content, str) else json.dumps(content))
    return str(path)


def test_handles_only_json_paths():
    assert JSONExtractor.handles("exports/project.JSON")
    assert not JSONExtractor.handles("2f7a8c1e-4b3d-4e5f-9a0b-1c2d3e4f5a6b")


def test_extracts_sample_export(extractor, export_file):
    result = extractor.extract_project(str(export_file))

    assert result.success
    assert result.raw_counts == {"tasks": 4, "resources": 3, "assignments": 5}
    assert result.errors == []
    assert result.completed_at is not None


def test_envelopes_and_key_case(extractor, tmp_path):
    path = write(tmp_path, {
        "Project": {"d": {"Id": "p-1", "Name": "Enveloped"}},
        "Tasks": {"value": [{"Id": "t-1", "TaskName": "One"}]},
        "RESOURCES": {"d": {"results": [{"Id": "r-1", "Name": "Laptop", "ResourceType": "Material"}]}},
    })

    result = extractor.extract_project(path)

    assert result.data.project.name == "Enveloped"
    assert [t.name for t in result.data.tasks] == ["One"]
    assert [r.resource_type for r in result.data.resources] == ["Material"]
    assert result.data.assignments == []


def test_project_list_takes_first(extractor, tmp_path):
    path = write(tmp_path, {"project": [{"Id": "p-1", "Name": "First"}, {"Id": "p-2", "Name": "Second"}]})

    assert extractor.extract_project(path).data.project.id == "p-1"


def test_missing_file_is_a_configuration_error(extractor, tmp_path):
    with pytest.raises(ConfigurationError):
        extractor.extract_project(str(tmp_path / "missing.json"))


def test_invalid_json(extractor, tmp_path):
    with pytest.raises(ValidationError):
        extractor.extract_project(write(tmp_path, "{not json"))


def test_top_level_must_be_object(extractor, tmp_path):
    with pytest.raises(ValidationError):
        extractor.extract_project(write(tmp_path, [1, 2]))


def test_entity_section_must_be_list(extractor, tmp_path):
    with pytest.raises(ValidationError):
        extractor.extract_project(write(tmp_path, {"project": {"Id": "p", "Name": "P"}, "tasks": "t-1"}))


def test_invalid_project_yields_no_data(extractor, tmp_path):
    result = extractor.extract_project(write(tmp_path, {"project": {"Name": "No id"}}))

    assert not result.success
    assert result.errors[0].entity == "project"
