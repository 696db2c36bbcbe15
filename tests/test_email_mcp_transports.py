"""stdio MCP server binding and HTTP JSON-RPC front."""

import pytest
from fastapi.testclient import TestClient
from mcp import types

from email_mcp_http import create_app
from email_mcp_server import build_server


# ── stdio (mcp low-level Server) ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_tools_advertises_schemas(dispatcher):
    server = build_server(dispatcher)

    result = await server.request_handlers[types.ListToolsRequest](
        types.ListToolsRequest(method="tools/list")
    )

    tools = {tool.name: tool for tool in result.root.tools}
    assert set(tools) == {"sendEmail", "sendEmailWithTemplate", "listTemplates", "getDeliveryStats"}
    assert "templateModel" in tools["sendEmailWithTemplate"].inputSchema["properties"]


async def _call(server, name, arguments):
    result = await server.request_handlers[types.CallToolRequest](
        types.CallToolRequest(
            method="tools/call",
            params=types.CallToolRequestParams(name=name, arguments=arguments),
        )
    )
    return result.root


@pytest.mark.asyncio
async def test_call_tool_returns_text(dispatcher):
    result = await _call(build_server(dispatcher), "sendEmail", {
        "to": "a@example.com", "subject": "Hi", "textBody": "Hello",
    })

    assert not result.isError
    assert "To: a@example.com" in result.content[0].text


@pytest.mark.asyncio
async def test_call_tool_flags_errors(dispatcher, fake_postmark):
    result = await _call(build_server(dispatcher), "sendEmailWithTemplate", {
        "to": "a@example.com", "templateModel": {}, "templateId": 1, "templateAlias": "x",
    })

    assert result.isError
    assert fake_postmark.calls == []


# ── HTTP JSON-RPC ────────────────────────────────────────────────────────────

@pytest.fixture
def http(dispatcher):
    with TestClient(create_app(dispatcher)) as client:
        yield client


def _rpc(http, method, params=None, request_id=1):
    body = {"jsonrpc": "2.0", "method": method, "params": params or {}}
    if request_id is not None:
        body["id"] = request_id
    return http.post("/", json=body)


def test_health(http):
    assert http.get("/").json() == {"status": "ok", "service": "postmark-mcp"}


def test_initialize(http):
    result = _rpc(http, "initialize").json()["result"]
    assert result["serverInfo"]["name"] == "postmark-mcp"
    assert "tools" in result["capabilities"]


def test_tools_list(http):
    tools = _rpc(http, "tools/list").json()["result"]["tools"]
    assert [t["name"] for t in tools] == [
        "sendEmail", "sendEmailWithTemplate", "listTemplates", "getDeliveryStats",
    ]


def test_tools_call(http):
    response = _rpc(http, "tools/call", {"name": "listTemplates", "arguments": {}}, request_id=7).json()
    assert response["id"] == 7
    assert response["result"]["isError"] is False
    assert response["result"]["content"][0]["text"].startswith("Found 2 templates:")


def test_tools_call_validation_error_is_tool_result(http):
    response = _rpc(http, "tools/call", {"name": "getDeliveryStats", "arguments": {"fromDate": "May 1"}}).json()
    assert response["result"]["isError"] is True
    assert "fromDate" in response["result"]["content"][0]["text"]


def test_unknown_tool_is_protocol_error(http):
    response = _rpc(http, "tools/call", {"name": "nope"}).json()
    assert response["error"]["code"] == -32601
    assert "nope" in response["error"]["message"]


def test_unknown_method(http):
    assert _rpc(http, "resources/list").json()["error"]["code"] == -32601


def test_notifications_get_no_body(http):
    response = _rpc(http, "notifications/initialized", request_id=None)
    assert response.status_code == 204
    assert response.content == b""


def test_malformed_body(http):
    response = http.post("/", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.json()["error"]["code"] == -32700
