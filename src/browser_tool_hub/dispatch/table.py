"""Collision-checked table of every dispatchable tool."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator, Optional

from pydantic import BaseModel

from ..errors import NameCollisionError
from ..models import ToolResult
from ..plugins.base import Plugin

if TYPE_CHECKING:
    from .builtins import BuiltinServices


@dataclass(frozen=True)
class BuiltinTool:
    """A tool implemented by the hub itself."""

    name: str
    description: str
    arguments: type[BaseModel]
    handler: Callable[["BuiltinServices", Any], ToolResult]

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.arguments.model_json_schema(by_alias=True)

    def invoke(self, services: "BuiltinServices", raw_arguments: dict[str, Any]) -> ToolResult:
        return self.handler(services, self.arguments.model_validate(raw_arguments))


@dataclass(frozen=True)
class ToolEntry:
    """One resolvable row of the tool table."""

    name: str
    description: str
    input_schema: dict[str, Any]
    builtin: Optional[BuiltinTool] = None
    plugin_name: Optional[str] = None
    tool_name: Optional[str] = None

    @property
    def is_builtin(self) -> bool:
        return self.builtin is not None

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def qualified_name(plugin_name: str, tool_name: str, separator: str = ".") -> str:
    return f"{plugin_name}{separator}{tool_name}"


class ToolTable:
    """Immutable mapping from qualified tool name to :class:`ToolEntry`."""

    def __init__(self, entries: Iterable[ToolEntry]) -> None:
        entries = list(entries)
        counts = Counter(entry.name for entry in entries)
        duplicates = [name for name, count in counts.items() if count > 1]
        if duplicates:
            raise NameCollisionError(duplicates)
        self._entries = MappingProxyType({entry.name: entry for entry in entries})

    @classmethod
    def build(
        cls,
        builtins: Iterable[BuiltinTool],
        plugins: Iterable[Plugin] = (),
        *,
        separator: str = ".",
    ) -> "ToolTable":
        """Merge built-in tools with namespaced plugin tools.

        Raises :class:`NameCollisionError` if any two tools end up with the
        same qualified name.
        """

        entries = [
            ToolEntry(
                name=tool.name,
                description=tool.description,
                input_schema=tool.input_schema,
                builtin=tool,
            )
            for tool in builtins
        ]
        for plugin in plugins:
            for spec in plugin.tools:
                entries.append(
                    ToolEntry(
                        name=qualified_name(plugin.name, spec.name, separator),
                        description=spec.description or f"{spec.name} ({plugin.name})",
                        input_schema=dict(spec.input_schema),
                        plugin_name=plugin.name,
                        tool_name=spec.name,
                    )
                )
        return cls(entries)

    def resolve(self, name: str) -> Optional[ToolEntry]:
        return self._entries.get(name)

    def names(self) -> list[str]:
        return list(self._entries)

    def describe(self) -> list[dict[str, Any]]:
        return [entry.describe() for entry in self._entries.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[ToolEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
