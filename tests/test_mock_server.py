"""Tests for the generated mock server."""

from __future__ import annotations

import importlib.util
import json
import sys
import uuid
from pathlib import Path
from types import ModuleType

import pytest
from fastapi.testclient import TestClient

from mocksandbox.errors import ArtifactWriteError, InvalidConfigurationError
from mocksandbox.events import EventType
from mocksandbox.generate import generate_mock_server, to_route_path
from mocksandbox.generate.mock_server import route_table
from mocksandbox.models import MockGraphQLEntry, MockRestEntry, MockSpec, MockSpecMeta


def load_server(entry_file: Path) -> ModuleType:
    name = f"mock_server_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(name, entry_file)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def mock_spec() -> MockSpec:
    return MockSpec(
        rest=[
            MockRestEntry(method="GET", path="/api/users/:param", example_response={"id": "by-id"}),
            MockRestEntry(method="GET", path="/api/users/me", example_response={"id": "me"}),
            MockRestEntry(method="GET", path="/api/todos", example_response=[{"id": "1", "message": "Mock response"}]),
            MockRestEntry(method="POST", path="/api/todos", example_response={"id": "1", "message": "Resource created"}),
            MockRestEntry(method="POST", path="/api/uploads", status=201, example_response={"ok": True}),
        ],
        graphql=[
            MockGraphQLEntry(operation_name="GetUsers", example_response={"data": {"users": []}}),
            MockGraphQLEntry(operation_type="mutation", operation_name="AddUser", example_response={"data": {"addUser": {"id": "2"}}}),
        ],
        meta=MockSpecMeta(base_urls=["/api"], model_id="test", source_count=7),
    )


@pytest.fixture
def client(mock_spec: MockSpec, tmp_path: Path) -> TestClient:
    artifacts = generate_mock_server(mock_spec, tmp_path / "mock-server", port=9100, latency=(0, 0))
    return TestClient(load_server(artifacts.entry_file).app)


class TestRoutePaths:
    @pytest.mark.parametrize(
        "path,route",
        [
            ("/api/todos", "/api/todos"),
            ("/api/users/:param", "/api/users/{param}"),
            ("/a/:param/b/:param", "/a/{param}/b/{param_2}"),
            ("/a/:id-x", "/a/{id_x}"),
            ("/a/:1", "/a/{p_1}"),
            ("/", "/"),
        ],
    )
    def test_to_route_path(self, path: str, route: str) -> None:
        assert to_route_path(path) == route

    def test_literal_routes_first(self, mock_spec: MockSpec) -> None:
        rows = route_table(mock_spec)
        assert rows[-1] == ("GET", "/api/users/{param}", 0)
        assert rows[0] == ("GET", "/api/users/me", 1)


class TestGenerateMockServer:
    def test_writes_artifacts(self, mock_spec: MockSpec, tmp_path: Path) -> None:
        artifacts = generate_mock_server(mock_spec, tmp_path / "out", port=9100)

        assert artifacts.entry_file.name == "server.py"
        assert artifacts.port == 9100
        assert "fastapi" in artifacts.manifest_file.read_text()
        assert "uvicorn" in artifacts.manifest_file.read_text()
        assert json.loads(artifacts.spec_file.read_text()) == mock_spec.to_dict()
        source = artifacts.entry_file.read_text()
        assert 'os.environ.get("PORT", "9100")' in source
        assert "LATENCY_MS = (100, 300)" in source

    def test_spec_uses_camel_case(self, mock_spec: MockSpec, tmp_path: Path) -> None:
        data = json.loads(generate_mock_server(mock_spec, tmp_path).spec_file.read_text())
        assert "exampleResponse" in data["rest"][0]
        assert data["meta"]["modelId"] == "test"

    def test_idempotent(self, mock_spec: MockSpec, tmp_path: Path) -> None:
        first = generate_mock_server(mock_spec, tmp_path)
        before = {p.name: p.read_bytes() for p in tmp_path.iterdir()}
        generate_mock_server(mock_spec, tmp_path)
        after = {p.name: p.read_bytes() for p in tmp_path.iterdir()}

        assert before == after
        assert sorted(before) == ["mock-spec.json", "requirements.txt", "server.py"]
        assert first.out_dir == tmp_path

    @pytest.mark.parametrize(
        "kwargs",
        [{"port": 0}, {"port": 70000}, {"latency": (300, 100)}, {"latency": (-1, 10)}],
    )
    def test_invalid_options(self, mock_spec: MockSpec, tmp_path: Path, kwargs: dict) -> None:
        with pytest.raises(InvalidConfigurationError):
            generate_mock_server(mock_spec, tmp_path, **kwargs)

    def test_write_failure(self, mock_spec: MockSpec, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(ArtifactWriteError):
            generate_mock_server(mock_spec, blocker / "out")

    def test_emits_artifacts_written(self, mock_spec: MockSpec, tmp_path: Path, channel) -> None:
        generate_mock_server(mock_spec, tmp_path, events=channel)

        assert channel.types() == [EventType.ARTIFACTS_WRITTEN]
        payload = channel.received[0][1]
        assert payload["path"] == str(tmp_path)
        assert len(payload["files"]) == 3


class TestGeneratedServer:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "mocks": 7}

    def test_rest_routes(self, client: TestClient) -> None:
        response = client.get("/api/todos")
        assert response.status_code == 200
        assert response.json() == [{"id": "1", "message": "Mock response"}]

        response = client.post("/api/todos", json={"title": "x"})
        assert response.status_code == 200
        assert response.json() == {"id": "1", "message": "Resource created"}

    def test_stored_status(self, client: TestClient) -> None:
        assert client.post("/api/uploads").status_code == 201

    def test_path_parameters(self, client: TestClient) -> None:
        assert client.get("/api/users/42").json() == {"id": "by-id"}
        assert client.get("/api/users/me").json() == {"id": "me"}

    def test_graphql_by_operation_name(self, client: TestClient) -> None:
        response = client.post("/graphql", json={"operationName": "AddUser", "query": "mutation AddUser { x }"})
        assert response.status_code == 200
        assert response.json() == {"data": {"addUser": {"id": "2"}}}

    def test_graphql_name_from_query(self, client: TestClient) -> None:
        response = client.post("/graphql", json={"query": "query GetUsers { users { id } }"})
        assert response.json() == {"data": {"users": []}}

    def test_graphql_unknown_operation(self, client: TestClient) -> None:
        response = client.post("/graphql", json={"operationName": "Nope"})
        assert response.status_code == 404
        assert response.json() == {"errors": [{"message": "Operation not found"}]}

    def test_catch_all_not_found(self, client: TestClient) -> None:
        response = client.get("/api/missing")
        assert response.status_code == 404
        assert response.json() == {"error": "Mock endpoint not found", "path": "/api/missing"}

    def test_cors(self, client: TestClient) -> None:
        response = client.get("/api/todos", headers={"Origin": "http://localhost:5173"})
        assert response.headers["access-control-allow-origin"] == "*"
