"""Plugin data structures and the restricted context handed to plugins."""

from __future__ import annotations

import asyncio
import inspect
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from ..engine.actions import ActionDescriptor, parse_steps
from ..engine.sequence import ActionSequenceEngine, ErrorPolicy, ExecutionReport, StepOutcome
from ..errors import DriverError
from ..sessions.registry import Session, SessionRegistry

ToolHandler = Callable[..., Any]


@dataclass(frozen=True)
class ToolSpec:
    """Name and input shape of a tool contributed by a plugin."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass
class Plugin:
    """A validated capability package."""

    name: str
    version: str
    description: str
    tools: list[ToolSpec]
    handlers: dict[str, ToolHandler]
    initialize: Optional[Callable[..., Any]] = None
    cleanup: Optional[Callable[..., Any]] = None
    source: str = "<memory>"
    init_error: Optional[str] = None

    @property
    def flagged(self) -> bool:
        return self.init_error is not None

    def tool(self, name: str) -> Optional[ToolSpec]:
        for spec in self.tools:
            if spec.name == name:
                return spec
        return None

    def summary(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "source": self.source,
            "tools": [spec.name for spec in self.tools],
            "initError": self.init_error,
        }


class SessionView:
    """Operations on one session, as seen by plugin code."""

    __slots__ = ("_session", "_engine")

    def __init__(self, session: Session, engine: ActionSequenceEngine) -> None:
        self._session = session
        self._engine = engine

    @property
    def id(self) -> str:
        return self._session.id

    @property
    def label(self) -> Optional[str]:
        return self._session.label

    def navigate(self, url: str, timeout_ms: Optional[float] = None) -> None:
        self._step(kind="navigate", url=url, timeout=timeout_ms)

    def click(self, selector: str, by: str = "css", timeout_ms: Optional[float] = None) -> None:
        self._step(kind="click", selector=selector, by=by, timeout=timeout_ms)

    def type_text(
        self,
        selector: str,
        text: str,
        by: str = "css",
        timeout_ms: Optional[float] = None,
    ) -> None:
        self._step(kind="type", selector=selector, text=text, by=by, timeout=timeout_ms)

    def wait_for_element(
        self,
        selector: str,
        by: str = "css",
        timeout_ms: Optional[float] = None,
    ) -> None:
        self._step(kind="wait_for_element", selector=selector, by=by, timeout=timeout_ms)

    def evaluate(self, script: str, *args: Any) -> Any:
        outcome = self._step(kind="evaluate", script=script, args=list(args))
        return outcome.data["result"]

    def screenshot(self, filename: Optional[str] = None, full_page: bool = False) -> Optional[str]:
        outcome = self._step(kind="screenshot", filename=filename, full_page=full_page)
        return outcome.data.get("filepath")

    def title(self) -> str:
        return self._engine.page_title(self._session)

    def url(self) -> str:
        return self._engine.page_url(self._session)

    def run_sequence(
        self,
        actions: Sequence[Any],
        *,
        continue_on_error: bool = False,
        stop_on_error: bool = True,
    ) -> ExecutionReport:
        policy = ErrorPolicy(continue_on_error=continue_on_error, stop_on_error=stop_on_error)
        return self._engine.run(self._session, parse_steps(list(actions)), policy)

    def _step(self, **fields: Any) -> StepOutcome:
        step = ActionDescriptor.model_validate({k: v for k, v in fields.items() if v is not None})
        outcome = self._engine.run_step(self._session, step)
        if not outcome.success:
            raise DriverError(outcome.message)
        return outcome


class PluginContext:
    """Narrow capability object passed to plugin hooks and handlers.

    Plugins can look up sessions by id and nothing else; the registry and
    engine stay private to the hub.
    """

    __slots__ = ("_sessions", "_engine", "_plugin_name")

    def __init__(
        self,
        sessions: SessionRegistry,
        engine: ActionSequenceEngine,
        plugin_name: Optional[str] = None,
    ) -> None:
        self._sessions = sessions
        self._engine = engine
        self._plugin_name = plugin_name

    @property
    def plugin_name(self) -> Optional[str]:
        return self._plugin_name

    @property
    def logger(self) -> logging.Logger:
        suffix = self._plugin_name or "anonymous"
        return logging.getLogger(f"browser_tool_hub.plugins.{suffix}")

    def session(self, session_id: str) -> SessionView:
        """Return a view of the open session ``session_id``."""

        return SessionView(self._sessions.require(session_id), self._engine)

    def session_ids(self) -> list[str]:
        return self._sessions.ids()

    def for_plugin(self, plugin_name: str) -> "PluginContext":
        return PluginContext(self._sessions, self._engine, plugin_name)


def call_hook(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a plugin callable, running it to completion if it is async.

    Awaitables get their own event loop. When the caller is already inside a
    running loop, that loop runs on a separate thread.
    """

    result = fn(*args)
    if not inspect.isawaitable(result):
        return result
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_await(result))
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="plugin-hook") as executor:
        return executor.submit(asyncio.run, _await(result)).result()


async def _await(awaitable: Any) -> Any:
    return await awaitable
