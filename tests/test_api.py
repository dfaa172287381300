import pytest
from fastapi.testclient import TestClient

from pomigrate.api.main import app
from pomigrate.api.routes.imports import get_orchestrator
from pomigrate.models.migration import ImportConfig
from pomigrate.orchestrator import ImportOrchestrator


@pytest.fixture
def client(loader):
    app.dependency_overrides[get_orchestrator] = lambda: ImportOrchestrator(ImportConfig(), loader=loader)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_import_dry_run(client, export_file):
    response = client.post("/api/imports", json={"source": str(export_file)})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["dry_run"] is True
    assert body["stage"] == "Done"
    assert body["tasks_imported"] == 4
    assert [s["stage"] for s in body["stages"]][:2] == ["ReferenceSetup", "ContainerCreation"]


def test_import_missing_file_is_bad_request(client, tmp_path):
    response = client.post("/api/imports", json={"source": str(tmp_path / "missing.json")})

    assert response.status_code == 400
    assert "CONFIGURATION_ERROR" in response.json()["detail"]


def test_import_requires_source(client):
    assert client.post("/api/imports", json={"source": ""}).status_code == 422


def test_validate(client, export_file):
    ok = client.post("/api/imports/validate", json={"source": str(export_file)})
    bad = client.post("/api/imports/validate", json={"source": "project-42"})

    assert ok.json() == {"valid": True, "errors": []}
    assert bad.status_code == 200
    assert bad.json()["valid"] is False
