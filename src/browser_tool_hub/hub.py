"""Composition root tying sessions, engine, plugins and dispatch together."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Sequence

from .dispatch.builtins import BUILTIN_TOOLS, BuiltinServices
from .dispatch.dispatcher import ToolDispatcher
from .dispatch.table import BuiltinTool, ToolTable
from .engine.sequence import ActionSequenceEngine
from .errors import NameCollisionError, PluginValidationError
from .models import ToolResult
from .plugins.base import Plugin, PluginContext
from .plugins.loader import LoadFailure, LoadResult, PluginLoader, PluginSource, validate
from .plugins.manager import PluginManager
from .sessions.registry import SessionRegistry

LOGGER = logging.getLogger(__name__)


class ToolHub:
    """Own the lifecycle of every component behind the tool protocol.

    Plugins are loaded and the tool table is built once in :meth:`start`;
    :meth:`shutdown` runs plugin cleanup hooks and closes every session.
    """

    def __init__(
        self,
        *,
        registry: SessionRegistry,
        engine: ActionSequenceEngine,
        loader: Optional[PluginLoader] = None,
        plugin_sources: Sequence[PluginSource] = (),
        plugins: Iterable[Any] = (),
        use_entry_points: bool = False,
        namespace_separator: str = ".",
        builtins: Sequence[BuiltinTool] = BUILTIN_TOOLS,
    ) -> None:
        self.registry = registry
        self.engine = engine
        self.plugins = PluginManager()
        self.load_failures: list[LoadFailure] = []
        self._loader = loader
        self._plugin_sources = list(plugin_sources)
        self._inline_plugins = list(plugins)
        self._use_entry_points = use_entry_points
        self._separator = namespace_separator
        self._builtins = list(builtins)
        self._context = PluginContext(registry, engine)
        self._dispatcher: Optional[ToolDispatcher] = None

    @property
    def started(self) -> bool:
        return self._dispatcher is not None

    @property
    def dispatcher(self) -> ToolDispatcher:
        if self._dispatcher is None:
            raise RuntimeError("Tool hub has not been started")
        return self._dispatcher

    def start(self) -> "ToolHub":
        if self._dispatcher is not None:
            return self
        ToolTable.build(self._builtins, separator=self._separator)
        loaded = self._discover()
        self.load_failures.extend(loaded.failures)
        accepted: list[Plugin] = []
        for plugin in loaded.plugins:
            try:
                ToolTable.build(self._builtins, [*accepted, plugin], separator=self._separator)
                self.plugins.register(plugin, self._context)
            except (NameCollisionError, PluginValidationError) as exc:
                LOGGER.error("Rejected plugin %s from %s: %s", plugin.name, plugin.source, exc)
                self.load_failures.append(LoadFailure(source=plugin.source, reason=str(exc)))
                continue
            accepted.append(plugin)
        table = ToolTable.build(self._builtins, accepted, separator=self._separator)
        self._dispatcher = ToolDispatcher(
            table,
            BuiltinServices(registry=self.registry, engine=self.engine),
            self.plugins,
            self._context,
        )
        LOGGER.info(
            "Tool hub ready with %s tools (%s plugins, %s load failures)",
            len(table),
            len(accepted),
            len(self.load_failures),
        )
        return self

    def dispatch(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        return self.dispatcher.dispatch(name, arguments)

    def list_tools(self) -> list[dict[str, Any]]:
        return self.dispatcher.list_tools()

    def shutdown(self) -> None:
        LOGGER.info("Shutting down tool hub")
        self.plugins.teardown()
        closed = self.registry.close_all()
        if closed:
            LOGGER.info("Closed %s browser sessions", closed)

    def __enter__(self) -> "ToolHub":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _discover(self) -> LoadResult:
        result = LoadResult()
        taken: set[str] = set()
        for candidate in self._inline_plugins:
            try:
                plugin = validate(candidate, taken, source="<inline>")
            except PluginValidationError as exc:
                result.failures.append(LoadFailure(source="<inline>", reason=str(exc)))
                continue
            taken.add(plugin.name)
            result.plugins.append(plugin)
        if self._loader is None:
            return result
        from_sources = self._loader.load_from(self._plugin_sources, existing_names=taken)
        result.extend(from_sources)
        taken.update(plugin.name for plugin in from_sources.plugins)
        if self._use_entry_points:
            result.extend(self._loader.load_entry_points(existing_names=taken))
        return result
