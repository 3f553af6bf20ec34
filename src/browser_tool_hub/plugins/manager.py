"""Registration, lifecycle and invocation of loaded plugins."""

from __future__ import annotations

import inspect
import logging
import threading
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from ..errors import (
    PluginHandlerError,
    PluginNotFoundError,
    PluginValidationError,
    ToolNotFoundError,
)
from ..models import ToolResult
from .base import Plugin, PluginContext, ToolHandler, call_hook

LOGGER = logging.getLogger(__name__)


class PluginManager:
    """Hold registered plugins and call into them through a :class:`PluginContext`."""

    def __init__(self) -> None:
        self._plugins: dict[str, Plugin] = {}
        self._lock = threading.Lock()

    def names(self) -> list[str]:
        with self._lock:
            return list(self._plugins)

    def get(self, name: str) -> Optional[Plugin]:
        with self._lock:
            return self._plugins.get(name)

    def all(self) -> list[Plugin]:
        with self._lock:
            return list(self._plugins.values())

    def register(self, plugin: Plugin, context: Optional[PluginContext] = None) -> Plugin:
        """Add ``plugin`` and run its initialize hook once.

        A failing hook is logged and recorded on the plugin, which stays
        registered.
        """

        with self._lock:
            if plugin.name in self._plugins:
                raise PluginValidationError(f"A plugin named {plugin.name!r} is already registered")
            self._plugins[plugin.name] = plugin
        if plugin.initialize is not None:
            scoped = context.for_plugin(plugin.name) if context is not None else None
            try:
                call_hook(plugin.initialize, scoped)
            except Exception as exc:
                LOGGER.exception("Initialize hook of plugin %s failed", plugin.name)
                plugin.init_error = str(exc) or exc.__class__.__name__
        return plugin

    def unregister(self, name: str) -> Optional[Plugin]:
        with self._lock:
            plugin = self._plugins.pop(name, None)
        if plugin is not None:
            self._run_cleanup(plugin)
        return plugin

    def teardown(self) -> None:
        """Run every cleanup hook once, most recently registered first."""

        with self._lock:
            plugins = list(self._plugins.values())
            self._plugins.clear()
        for plugin in reversed(plugins):
            self._run_cleanup(plugin)

    def invoke(
        self,
        plugin_name: str,
        tool_name: str,
        args: Mapping[str, Any],
        context: PluginContext,
    ) -> ToolResult:
        plugin = self.get(plugin_name)
        if plugin is None:
            raise PluginNotFoundError(f"Plugin not found: {plugin_name}")
        handler = plugin.handlers.get(tool_name)
        if handler is None:
            raise ToolNotFoundError(f"Tool not found: {tool_name} in plugin {plugin_name}")
        LOGGER.info("Invoking plugin tool %s.%s", plugin_name, tool_name)
        try:
            result = _call_handler(handler, dict(args), context.for_plugin(plugin_name))
        except Exception as exc:
            LOGGER.exception("Plugin tool %s.%s raised", plugin_name, tool_name)
            raise PluginHandlerError(
                f"Plugin tool {plugin_name}.{tool_name} failed: {exc}"
            ) from exc
        try:
            return normalize_result(result)
        except ValidationError as exc:
            raise PluginHandlerError(
                f"Plugin tool {plugin_name}.{tool_name} returned an invalid result: {exc}"
            ) from exc

    def _run_cleanup(self, plugin: Plugin) -> None:
        if plugin.cleanup is None:
            return
        try:
            call_hook(plugin.cleanup)
        except Exception:
            LOGGER.exception("Cleanup hook of plugin %s failed", plugin.name)


def _call_handler(handler: ToolHandler, args: dict[str, Any], context: PluginContext) -> Any:
    if _accepts_context(handler):
        return call_hook(handler, args, context)
    return call_hook(handler, args)


def _accepts_context(handler: ToolHandler) -> bool:
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        return True
    positional = 0
    for parameter in signature.parameters.values():
        if parameter.kind == inspect.Parameter.VAR_POSITIONAL:
            return True
        if parameter.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            positional += 1
    return positional >= 2


def normalize_result(result: Any) -> ToolResult:
    """Coerce whatever a plugin handler returned into a :class:`ToolResult`."""

    if isinstance(result, ToolResult):
        return result
    if isinstance(result, Mapping):
        if "success" in result and "message" in result:
            return ToolResult.model_validate(dict(result))
        content = result.get("content")
        if isinstance(content, list):
            texts = [
                str(item.get("text", ""))
                for item in content
                if isinstance(item, Mapping) and item.get("type") == "text"
            ]
            return ToolResult.ok("\n".join(texts), data=None if texts else dict(result))
        return ToolResult.ok("Tool completed", data=dict(result))
    if isinstance(result, str):
        return ToolResult.ok(result)
    if result is None:
        return ToolResult.ok("Tool completed")
    return ToolResult.ok("Tool completed", data=result)
