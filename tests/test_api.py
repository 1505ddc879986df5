"""
API 端点测试
"""
import sys

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from flow_runtime.api.app import create_app
from flow_runtime.api.dependencies import get_flow_engine, get_app_state


posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")


FLOW_REQUEST = {
    "name": "API flow",
    "description": "created in tests",
    "workspaceId": "ws-1",
    "status": "active",
    "nodes": [
        {"id": "start", "type": "trigger", "label": "Start", "config": {"triggerType": "manual"}},
        {
            "id": "say",
            "type": "action",
            "label": "Say",
            "x": 100,
            "config": {"actionType": "shell.exec", "config": {"command": "echo {{trigger.payload.word}}"}},
        },
    ],
    "edges": [{"source": "start", "target": "say"}],
}


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def flow_id(client):
    response = client.post("/api/v1/flows/", json=FLOW_REQUEST)
    assert response.status_code == 201
    return response.json()["id"]


class TestFlowAPI:
    """流程 API"""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"
        assert "X-Request-ID" in response.headers

    def test_create_flow(self, client):
        response = client.post("/api/v1/flows/", json=FLOW_REQUEST)

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "API flow"
        assert data["workspaceId"] == "ws-1"
        assert data["status"] == "active"
        assert [node["id"] for node in data["nodes"]] == ["start", "say"]
        assert data["nodes"][1]["x"] == 100
        assert data["edges"][0]["source"] == "start"
        assert "createdAt" in data

    def test_get_flow(self, client, flow_id):
        response = client.get(f"/api/v1/flows/{flow_id}")

        assert response.status_code == 200
        assert response.json()["id"] == flow_id

    def test_get_unknown_flow(self, client):
        response = client.get("/api/v1/flows/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "flow_not_found"

    def test_list_flows_with_filters(self, client, flow_id):
        draft = dict(FLOW_REQUEST, name="Draft", status="draft", workspaceId="ws-2")
        client.post("/api/v1/flows/", json=draft)

        everything = client.get("/api/v1/flows/").json()
        active = client.get("/api/v1/flows/", params={"status": "active"}).json()
        workspace = client.get("/api/v1/flows/", params={"workspaceId": "ws-2"}).json()

        assert len(everything) == 2
        assert [flow["id"] for flow in active] == [flow_id]
        assert [flow["name"] for flow in workspace] == ["Draft"]

    def test_validate(self, client):
        broken = dict(FLOW_REQUEST, nodes=[
            FLOW_REQUEST["nodes"][0],
            {"id": "say", "type": "action", "config": {"actionType": "shell.exec", "config": {"command": ""}}},
        ])
        flow_id = client.post("/api/v1/flows/", json=broken).json()["id"]

        response = client.post(f"/api/v1/flows/{flow_id}/validate")

        assert response.status_code == 200
        assert response.json() == {
            "valid": False,
            "errors": [{"message": "Shell action requires a command", "nodeId": "say"}],
        }

    def test_run_invalid_flow(self, client):
        invalid = dict(FLOW_REQUEST, edges=[])
        flow_id = client.post("/api/v1/flows/", json=invalid).json()["id"]

        response = client.post(f"/api/v1/flows/{flow_id}/run")

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation_error"
        assert {"message": "Trigger node has no outgoing connections", "nodeId": "start"} in body["details"]

    def test_run_unknown_flow(self, client):
        assert client.post("/api/v1/flows/missing/run").status_code == 404

    def test_export_and_import(self, client, flow_id):
        exported = client.get(f"/api/v1/flows/{flow_id}/export")
        assert exported.status_code == 200
        document = exported.json()
        assert document["version"] == 1

        response = client.post("/api/v1/flows/import", json=document, params={"workspaceId": "ws-9"})

        assert response.status_code == 201
        data = response.json()
        assert data["id"] != flow_id
        assert data["workspaceId"] == "ws-9"
        assert len(data["nodes"]) == 2

    def test_import_malformed_document(self, client):
        response = client.post("/api/v1/flows/import", json={"nodes": "nope"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_flow_document"

    def test_delete_flow(self, client, flow_id):
        assert client.delete(f"/api/v1/flows/{flow_id}").status_code == 204
        assert client.get(f"/api/v1/flows/{flow_id}").status_code == 404
        assert client.delete(f"/api/v1/flows/{flow_id}").status_code == 404


@posix_only
class TestExecutionAPI:
    """执行 API"""

    def run(self, client, flow_id):
        response = client.post(f"/api/v1/flows/{flow_id}/run", json={"payload": {"word": "ping"}, "wait": True})
        assert response.status_code == 202
        return response.json()["executionId"]

    def test_run_and_inspect(self, client, flow_id):
        execution_id = self.run(client, flow_id)

        response = client.get(f"/api/v1/executions/{execution_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["flowId"] == flow_id
        assert data["triggerType"] == "manual"
        assert [step["nodeId"] for step in data["steps"]] == ["start", "say"]
        assert all(step["executionId"] == execution_id for step in data["steps"])
        assert '"stdout": "ping\\n"' in data["steps"][1]["output"]

    def test_list_executions(self, client, flow_id):
        first = self.run(client, flow_id)
        second = self.run(client, flow_id)

        response = client.get(f"/api/v1/flows/{flow_id}/executions")

        assert response.status_code == 200
        assert {execution["id"] for execution in response.json()} == {first, second}
        assert client.get(f"/api/v1/flows/{flow_id}/executions", params={"status": "failed"}).json() == []

    def test_cancel_finished_execution(self, client, flow_id):
        execution_id = self.run(client, flow_id)

        response = client.post(f"/api/v1/executions/{execution_id}/cancel")

        assert response.status_code == 200
        assert response.json() == {"executionId": execution_id, "cancelled": False}

    def test_unknown_execution(self, client):
        assert client.get("/api/v1/executions/missing").status_code == 404
        assert client.post("/api/v1/executions/missing/cancel").status_code == 404


def test_dependencies_require_initialised_state():
    state = get_app_state()
    saved = dict(state)
    state.clear()
    try:
        with pytest.raises(HTTPException) as exc_info:
            get_flow_engine()
    finally:
        state.update(saved)

    assert exc_info.value.status_code == 503
    assert exc_info.value.detail["error"] == "service_unavailable"
