#!/usr/bin/env python3
"""
Integration tests for the HTTP transport (http_api.py).
"""

import json

import pytest
from fastapi.testclient import TestClient

from rp_mcp.context import HeaderContextResolver
from rp_mcp.dispatcher import Dispatcher
from rp_mcp.http_api import MCP_PATHS, SESSION_HEADER, create_app

from tests.support import PROJECT, RP_HOST, TOKEN_A, TOKEN_B, bearer


@pytest.fixture
def client(registry, backend):
    """HTTP client for the app, backed by the recording backend."""
    dispatcher = Dispatcher(registry, HeaderContextResolver(RP_HOST, PROJECT), http_client=backend.http_client())
    return TestClient(create_app(dispatcher))


def rpc(method, params=None, request_id=1):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


def call(name, arguments=None, request_id=1):
    return rpc("tools/call", {"name": name, "arguments": arguments or {}}, request_id)


class TestServiceEndpoints:
    """Health and info endpoints."""

    @pytest.mark.integration
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "tools": 15, "prompts": 2}

    @pytest.mark.integration
    def test_info(self, client):
        info = client.get("/info").json()

        assert info["name"] == "reportportal-mcp-server"
        assert info["transport"] == "http"
        assert info["endpoints"] == list(MCP_PATHS)


class TestMCPEndpoint:
    """JSON-RPC over HTTP."""

    @pytest.mark.integration
    def test_initialize_issues_session(self, client):
        response = client.post("/mcp", json=rpc("initialize", {"protocolVersion": "2024-11-05"}))

        assert response.status_code == 200
        body = response.json()
        assert body["result"]["serverInfo"]["name"] == "reportportal-mcp-server"
        assert body["result"]["capabilities"]["tools"] == {"listChanged": False}
        assert response.headers[SESSION_HEADER]

    @pytest.mark.integration
    @pytest.mark.parametrize("path", MCP_PATHS)
    def test_every_path_serves_listings_without_credentials(self, client, path):
        body = client.post(path, json=rpc("tools/list")).json()

        assert len(body["result"]["tools"]) == 15

    @pytest.mark.integration
    def test_session_header_is_echoed(self, client):
        response = client.post("/mcp", json=rpc("ping"), headers={SESSION_HEADER: "abc"})

        assert response.json() == {"jsonrpc": "2.0", "id": 1, "result": {}}
        assert response.headers[SESSION_HEADER] == "abc"

    @pytest.mark.integration
    def test_notification_is_accepted(self, client):
        response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})

        assert response.status_code == 202
        assert response.content == b""

    @pytest.mark.integration
    def test_request_without_id_runs_but_gets_no_response(self, client, backend):
        backend.add("GET", "/api/v1/demo/launch/7", {"id": 7})
        message = call("get_launch_by_id", {"launch_id": 7})
        del message["id"]

        response = client.post("/mcp", json=message, headers=bearer())

        assert response.status_code == 202
        assert response.content == b""
        assert backend.last.url.path == "/api/v1/demo/launch/7"

    @pytest.mark.integration
    def test_null_id_is_still_answered(self, client):
        body = client.post("/mcp", json={"jsonrpc": "2.0", "id": None, "method": "ping"}).json()

        assert body == {"jsonrpc": "2.0", "id": None, "result": {}}

    @pytest.mark.integration
    def test_parse_error(self, client):
        response = client.post("/mcp", content=b"{not json", headers={"Content-Type": "application/json"})

        body = response.json()
        assert body["id"] is None
        assert body["error"]["code"] == -32700

    @pytest.mark.integration
    def test_invalid_request(self, client):
        body = client.post("/mcp", json={"jsonrpc": "2.0", "id": 4, "params": {}}).json()

        assert body["id"] == 4
        assert body["error"]["code"] == -32600

    @pytest.mark.integration
    def test_unknown_method(self, client):
        body = client.post("/mcp", json=rpc("sampling/createMessage")).json()

        assert body["error"]["code"] == -32601
        assert "sampling/createMessage" in body["error"]["message"]

    @pytest.mark.integration
    def test_missing_tool_name(self, client):
        body = client.post("/mcp", json=rpc("tools/call", {"arguments": {}})).json()

        assert body["error"]["code"] == -32602
        assert body["error"]["data"]["kind"] == "validation"


class TestToolCalls:
    """tools/call over HTTP."""

    @pytest.mark.integration
    def test_call_with_bearer_token(self, client, backend):
        backend.add("GET", "/api/v1/demo/launch/7", {"id": 7, "name": "nightly"})

        response = client.post("/mcp", json=call("get_launch_by_id", {"launch_id": 7}), headers=bearer(TOKEN_A))

        content = response.json()["result"]["content"]
        assert json.loads(content[0]["text"]) == {"id": 7, "name": "nightly"}
        assert backend.last.headers["Authorization"] == f"Bearer {TOKEN_A}"

    @pytest.mark.integration
    def test_missing_token(self, client, backend):
        body = client.post("/mcp", json=call("get_launch_by_id", {"launch_id": 7})).json()

        assert body["error"]["code"] == -32001
        assert body["error"]["data"]["kind"] == "authentication"
        assert backend.requests == []

    @pytest.mark.integration
    def test_not_found(self, client):
        body = client.post("/mcp", json=call("get_launch_by_id", {"launch_id": 404}), headers=bearer()).json()

        assert body["error"]["data"] == {"kind": "not_found", "status_code": 404}

    @pytest.mark.integration
    def test_batch(self, client, backend):
        backend.add("GET", "/api/v1/demo/launch/1", {"id": 1})
        backend.add("GET", "/api/v1/demo/launch/2", {"id": 2})
        batch = [
            call("get_launch_by_id", {"launch_id": 1}, request_id=1),
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            call("get_launch_by_id", {"launch_id": 2}, request_id=2),
        ]

        body = client.post("/mcp", json=batch, headers=bearer(TOKEN_B)).json()

        assert [item["id"] for item in body] == [1, 2]
        assert [json.loads(item["result"]["content"][0]["text"])["id"] for item in body] == [1, 2]
        assert all(request.headers["Authorization"] == f"Bearer {TOKEN_B}" for request in backend.requests)

    @pytest.mark.integration
    def test_empty_batch(self, client):
        body = client.post("/mcp", json=[]).json()
        assert body["error"]["code"] == -32600


class TestPromptsAndResources:
    """prompts/* and resources/* over HTTP."""

    @pytest.mark.integration
    def test_prompt_get(self, client):
        body = client.post(
            "/mcp",
            json=rpc("prompts/get", {"name": "reportportal_investigate_test_item", "arguments": {"test_item_id": "9"}}),
        ).json()

        messages = body["result"]["messages"]
        assert messages[0]["role"] == "user"
        assert "ID '9'" in messages[0]["content"]["text"]

    @pytest.mark.integration
    def test_resource_read(self, client, backend):
        backend.add("GET", "/api/v1/demo/item/5", {"id": 5})

        body = client.post(
            "/mcp", json=rpc("resources/read", {"uri": "reportportal://demo/testitem/5"}), headers=bearer()
        ).json()

        assert json.loads(body["result"]["contents"][0]["text"]) == {"id": 5}

    @pytest.mark.integration
    def test_resource_templates(self, client):
        body = client.post("/mcp", json=rpc("resources/templates/list")).json()
        assert len(body["result"]["resourceTemplates"]) == 2
