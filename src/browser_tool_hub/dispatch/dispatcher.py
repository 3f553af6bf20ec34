"""Single entry point turning named tool requests into normalized results."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import ValidationError

from ..errors import HubError, ToolNotFoundError
from ..models import ToolResult
from ..plugins.base import PluginContext
from ..plugins.manager import PluginManager
from .builtins import BuiltinServices
from .table import ToolEntry, ToolTable

LOGGER = logging.getLogger(__name__)


class ToolDispatcher:
    """Resolve tool names against the table and execute them.

    Every call returns a :class:`ToolResult`; nothing raised by a built-in or
    a plugin escapes :meth:`dispatch`.
    """

    def __init__(
        self,
        table: ToolTable,
        services: BuiltinServices,
        plugins: PluginManager,
        context: PluginContext,
    ) -> None:
        self._table = table
        self._services = services
        self._plugins = plugins
        self._context = context

    @property
    def table(self) -> ToolTable:
        return self._table

    def list_tools(self) -> list[dict[str, Any]]:
        return self._table.describe()

    def dispatch(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        entry = self._table.resolve(name)
        if entry is None:
            LOGGER.warning("Unknown tool requested: %s", name)
            return ToolResult.failure(f"Unknown tool: {name}", error=ToolNotFoundError.code)
        if arguments is not None and not isinstance(arguments, Mapping):
            return ToolResult.failure(
                f"Arguments for {name} must be an object",
                error="InvalidArguments",
            )
        LOGGER.debug("Dispatching %s", name)
        try:
            return self._execute(entry, dict(arguments or {}))
        except ValidationError as exc:
            return ToolResult.failure(
                f"Invalid arguments for {name}: {_describe_validation(exc)}",
                error="InvalidArguments",
            )
        except HubError as exc:
            LOGGER.info("Tool %s failed: %s", name, exc)
            return ToolResult.failure(str(exc), error=exc.code)
        except Exception as exc:
            LOGGER.exception("Tool %s failed unexpectedly", name)
            return ToolResult.failure(f"Tool {name} failed: {exc}", error="InternalError")

    def _execute(self, entry: ToolEntry, arguments: dict[str, Any]) -> ToolResult:
        if entry.builtin is not None:
            return entry.builtin.invoke(self._services, arguments)
        assert entry.plugin_name is not None and entry.tool_name is not None
        return self._plugins.invoke(entry.plugin_name, entry.tool_name, arguments, self._context)


def _describe_validation(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or str(exc)
