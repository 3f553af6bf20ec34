from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from browser_tool_hub.hub import ToolHub
from browser_tool_hub.server import create_app


def test_health_and_tools(hub: ToolHub) -> None:
    client = TestClient(create_app(hub))

    health = client.get("/health")
    tools = client.get("/tools")

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert health.json()["tools"] == len(tools.json())
    assert any(tool["name"] == "execute_action_sequence" for tool in tools.json())


def test_call_tool_returns_envelope(hub: ToolHub) -> None:
    client = TestClient(create_app(hub))

    opened = client.post("/tools/call", json={"name": "open_browser", "arguments": {"browserId": "web"}})
    missing = client.post("/tools/call", json={"name": "no_such_tool"})

    assert opened.status_code == 200
    assert opened.json()["success"] is True
    assert missing.json() == {
        "success": False,
        "message": "Unknown tool: no_such_tool",
        "data": None,
        "error": "ToolNotFound",
    }


def test_browsers_endpoints(hub: ToolHub) -> None:
    client = TestClient(create_app(hub))
    hub.dispatch("open_browser", {"browserId": "web", "label": "ui"})

    listing = client.get("/browsers").json()

    assert [item["id"] for item in listing] == ["web"]
    assert client.get("/browsers/web").json()["label"] == "ui"
    assert client.get("/browsers/ghost").status_code == 404


def test_plugins_endpoint(registry, engine) -> None:
    hub = ToolHub(
        registry=registry,
        engine=engine,
        plugins=[{"name": "broken"}],
    )
    client = TestClient(create_app(hub))

    body = client.get("/plugins").json()

    assert body["plugins"] == []
    assert body["failures"][0]["source"] == "<inline>"


def test_lifespan_shutdown_closes_browsers(hub: ToolHub, driver) -> None:
    with TestClient(create_app(hub)) as client:
        client.post("/tools/call", json={"name": "open_browser", "arguments": {"browserId": "web"}})

    assert driver.handles[0].closed


def test_lifespan_runs_async_plugin_cleanup(registry, engine, driver) -> None:
    cleaned: list[str] = []

    async def cleanup() -> None:
        await asyncio.sleep(0)
        cleaned.append("cleaned")

    plugin = {
        "name": "hooks",
        "version": "1.0",
        "description": "Async cleanup",
        "tools": [{"name": "noop"}],
        "handlers": {"noop": lambda args: None},
        "cleanup": cleanup,
    }
    hub = ToolHub(registry=registry, engine=engine, plugins=[plugin])

    with TestClient(create_app(hub)) as client:
        opened = client.post("/tools/call", json={"name": "open_browser", "arguments": {"browserId": "s"}})
        assert opened.json()["success"] is True

    assert cleaned == ["cleaned"]
    assert driver.handles[0].closed
