import pytest
from httpx import AsyncClient

from sqlite_babel import security
from sqlite_babel.tools.sqlite_babel.options import HLINE


def _call(tool: str, arguments: dict, req_id: int = 1) -> dict:
    return {"jsonrpc": "2.0", "id": req_id, "method": "tools/call", "params": {"name": tool, "arguments": arguments}}


@pytest.mark.asyncio
async def test_initialize(client: AsyncClient):
    response = await client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "initialize"})

    assert response.status_code == 200
    data = response.json()
    assert data["result"]["serverInfo"]["name"] == "SQLITE-BABEL-SERVER"


@pytest.mark.asyncio
async def test_tools_list(client: AsyncClient):
    response = await client.post("/mcp", json={"jsonrpc": "2.0", "id": 2, "method": "tools/list"})

    names = {tool["name"] for tool in response.json()["result"]["tools"]}
    assert names == {"sqlite_babel_execute", "sqlite_babel_expand", "sqlite_babel_prep_session"}


@pytest.mark.asyncio
async def test_tools_call_execute(client: AsyncClient, fake_sqlite3):
    fake_sqlite3.respond(stdout="a,b\n1,2\n")

    response = await client.post(
        "/mcp", json=_call("sqlite_babel_execute", {"body": "SELECT 1, 2;", "header_args": ":db t.db :colnames yes"})
    )

    result = response.json()["result"]
    assert result["isError"] is False
    assert result["structuredContent"]["result"] == [["a", "b"], HLINE, [1, 2]]
    assert "| a | b |" in result["content"][0]["text"]


@pytest.mark.asyncio
async def test_tools_call_missing_db_is_invalid_params(client: AsyncClient, fake_sqlite3):
    response = await client.post("/mcp", json=_call("sqlite_babel_execute", {"body": "SELECT 1;"}))

    error = response.json()["error"]
    assert error["code"] == -32602
    assert error["data"]["error_type"] == "ConfigurationError"
    assert not (fake_sqlite3.directory / "argv.txt").exists()


@pytest.mark.asyncio
async def test_tools_call_prep_session_is_unsupported(client: AsyncClient):
    response = await client.post("/mcp", json=_call("sqlite_babel_prep_session", {"session": "s"}))

    error = response.json()["error"]
    assert error["code"] == -32004
    assert error["data"]["error_type"] == "UnsupportedFeatureError"


@pytest.mark.asyncio
async def test_tools_call_execution_error_is_tool_error(client: AsyncClient, fake_sqlite3):
    fake_sqlite3.respond(stderr="Error: near \"SELEC\": syntax error\n", exit_code=1)

    response = await client.post("/mcp", json=_call("sqlite_babel_execute", {"body": "SELEC 1;", "params": {"db": "t.db"}}))

    result = response.json()["result"]
    assert result["isError"] is True
    assert "syntax error" in result["content"][0]["text"]


@pytest.mark.asyncio
async def test_unknown_method(client: AsyncClient):
    response = await client.post("/mcp", json={"jsonrpc": "2.0", "id": 9, "method": "nope"})

    assert response.json()["error"]["code"] == -32601


@pytest.mark.asyncio
async def test_unknown_tool(client: AsyncClient):
    response = await client.post("/mcp", json=_call("nope", {}))

    assert response.json()["error"]["code"] == -32601


@pytest.mark.asyncio
async def test_invalid_json(client: AsyncClient):
    response = await client.post("/mcp", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.json()["error"]["code"] == -32700


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/mcp")

    data = response.json()
    assert data["status"] == "ok"
    assert data["tools_loaded"] == 3


@pytest.mark.asyncio
async def test_api_key_required_when_configured(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(security, "API_KEYS", {"secret": {"tools": ["sqlite_babel_*"]}})

    missing = await client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "initialize"})
    wrong = await client.post(
        "/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "initialize"}, headers={"Authorization": "Bearer nope"}
    )
    ok = await client.post(
        "/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "initialize"}, headers={"Authorization": "Bearer secret"}
    )

    assert missing.status_code == 401
    assert wrong.status_code == 403
    assert ok.status_code == 200


@pytest.mark.asyncio
async def test_database_allow_list(client: AsyncClient, monkeypatch, fake_sqlite3):
    monkeypatch.setattr(security, "API_KEYS", {"secret": {"tools": ["*"], "databases": ["/srv/allowed/*.db"]}})
    fake_sqlite3.respond(stdout="1\n")
    headers = {"Authorization": "Bearer secret"}

    denied = await client.post(
        "/mcp", json=_call("sqlite_babel_execute", {"body": "SELECT 1;", "params": {"db": "/srv/other/x.db"}}), headers=headers
    )
    allowed = await client.post(
        "/mcp", json=_call("sqlite_babel_execute", {"body": "SELECT 1;", "params": {"db": "/srv/allowed/x.db"}}), headers=headers
    )

    assert "Permission denied" in denied.json()["error"]["message"]
    assert allowed.json()["result"]["structuredContent"]["result"] == 1


@pytest.mark.asyncio
async def test_excluded_tool_is_denied(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(
        security, "API_KEYS", {"secret": {"tools": ["*"], "exclude_tools": ["sqlite_babel_expand"]}}
    )
    headers = {"Authorization": "Bearer secret"}

    listed = await client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"}, headers=headers)
    called = await client.post("/mcp", json=_call("sqlite_babel_expand", {"body": "x"}), headers=headers)

    assert "sqlite_babel_expand" not in {tool["name"] for tool in listed.json()["result"]["tools"]}
    assert "Permission denied" in called.json()["error"]["message"]
