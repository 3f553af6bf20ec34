"""HTTP surface exposing the tool protocol."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from .dispatch.builtins import serialize_summary
from .hub import ToolHub
from .models import ToolResult


class ToolCallRequest(BaseModel):
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class LoadFailureModel(BaseModel):
    source: str
    reason: str


def create_app(hub: ToolHub) -> FastAPI:
    """Build the FastAPI application serving ``hub``.

    The hub is started eagerly so the tool table is available to clients
    that do not run the lifespan; it is shut down when the app stops.
    """

    hub.start()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await run_in_threadpool(hub.shutdown)

    app = FastAPI(title="Browser Tool Hub", lifespan=lifespan)

    @app.get("/health")
    def get_health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "tools": len(hub.dispatcher.table),
            "browsers": len(hub.registry),
            "plugins": len(hub.plugins.names()),
        }

    @app.get("/tools")
    def list_tools() -> List[Dict[str, Any]]:
        return hub.list_tools()

    @app.post("/tools/call", response_model=ToolResult)
    def call_tool(payload: ToolCallRequest) -> ToolResult:
        return hub.dispatch(payload.name, payload.arguments)

    @app.get("/plugins")
    def list_plugins() -> Dict[str, Any]:
        return {
            "plugins": [plugin.summary() for plugin in hub.plugins.all()],
            "failures": [
                LoadFailureModel(source=str(failure.source), reason=failure.reason).model_dump()
                for failure in hub.load_failures
            ],
        }

    @app.get("/browsers")
    def list_browsers() -> List[Dict[str, Any]]:
        return [serialize_summary(summary) for summary in hub.registry.list()]

    @app.get("/browsers/{browser_id}")
    def get_browser(browser_id: str) -> Dict[str, Any]:
        for summary in hub.registry.list():
            if summary.id == browser_id:
                return serialize_summary(summary)
        raise HTTPException(status_code=404, detail="Browser not found")

    return app
