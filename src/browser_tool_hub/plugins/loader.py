"""Discovery and validation of plugin packages."""

from __future__ import annotations

import importlib
import importlib.util
import logging
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from pathlib import Path
from types import ModuleType
from typing import Any, Optional, Union

from ..errors import PluginValidationError
from .base import Plugin, ToolSpec

LOGGER = logging.getLogger(__name__)

PluginSource = Union[str, Path]

_MODULE_PREFIX = "browser_tool_hub_plugin_"


@dataclass(frozen=True)
class LoadFailure:
    """A source that could not be turned into a registered plugin."""

    source: str
    reason: str


@dataclass
class LoadResult:
    plugins: list[Plugin] = field(default_factory=list)
    failures: list[LoadFailure] = field(default_factory=list)

    def extend(self, other: "LoadResult") -> None:
        self.plugins.extend(other.plugins)
        self.failures.extend(other.failures)


class PluginLoader:
    """Turn plugin sources into validated :class:`Plugin` objects.

    A source is a path to a ``.py`` file, a package directory, a directory
    scanned for plugin files, or a dotted module name optionally followed by
    ``:attribute``. Every source is loaded independently; a broken one is
    reported as a :class:`LoadFailure` and never stops the others.
    """

    def __init__(self, entry_point_group: Optional[str] = None) -> None:
        self._entry_point_group = entry_point_group

    def load_from(
        self,
        sources: Iterable[PluginSource],
        existing_names: Iterable[str] = (),
    ) -> LoadResult:
        result = LoadResult()
        taken = set(existing_names)
        for source in sources:
            for label, loader in self._expand(source, result):
                try:
                    candidate = loader()
                    plugin = validate(candidate, taken, source=label)
                except Exception as exc:
                    LOGGER.error("Failed to load plugin from %s: %s", label, exc)
                    result.failures.append(LoadFailure(source=label, reason=str(exc)))
                    continue
                taken.add(plugin.name)
                result.plugins.append(plugin)
                LOGGER.info("Loaded plugin %s v%s from %s", plugin.name, plugin.version, label)
        return result

    def load_entry_points(self, existing_names: Iterable[str] = ()) -> LoadResult:
        result = LoadResult()
        if not self._entry_point_group:
            return result
        taken = set(existing_names)
        for entry_point in entry_points(group=self._entry_point_group):
            label = f"entry point {entry_point.name} ({entry_point.value})"
            try:
                candidate = _unwrap(entry_point.load())
                plugin = validate(candidate, taken, source=label)
            except Exception as exc:
                LOGGER.error("Failed to load plugin from %s: %s", label, exc)
                result.failures.append(LoadFailure(source=label, reason=str(exc)))
                continue
            taken.add(plugin.name)
            result.plugins.append(plugin)
            LOGGER.info("Loaded plugin %s v%s from %s", plugin.name, plugin.version, label)
        return result

    def _expand(self, source: PluginSource, result: LoadResult) -> list[tuple[str, Any]]:
        """Return ``(label, thunk)`` pairs, one per candidate in ``source``."""

        if isinstance(source, Path) or _looks_like_path(source):
            path = Path(source)
            if path.is_dir() and not (path / "__init__.py").exists():
                return [
                    (str(child), _file_thunk(child))
                    for child in _plugin_files(path)
                ]
            if path.exists():
                return [(str(path), _file_thunk(path))]
            LOGGER.debug("Plugin path %s does not exist", path)
            result.failures.append(LoadFailure(source=str(path), reason="Path does not exist"))
            return []
        return [(str(source), lambda: _import_object(str(source)))]


def validate(
    candidate: Any,
    existing_names: Iterable[str] = (),
    *,
    source: str = "<memory>",
) -> Plugin:
    """Check a duck-typed plugin candidate and build a :class:`Plugin`.

    Raises :class:`PluginValidationError` when a required field is missing,
    a declared tool has no handler, or the name is already registered.
    """

    if candidate is None:
        raise PluginValidationError("Plugin candidate is empty")
    name = _required_text(candidate, "name")
    version = _required_text(candidate, "version")
    description = _required_text(candidate, "description")

    raw_tools = _get(candidate, "tools")
    if not isinstance(raw_tools, (list, tuple)) or not raw_tools:
        raise PluginValidationError(f"Plugin {name!r} must declare a non-empty tools list")
    tools = [_tool_spec(name, raw) for raw in raw_tools]
    seen: set[str] = set()
    for spec in tools:
        if spec.name in seen:
            raise PluginValidationError(f"Plugin {name!r} declares tool {spec.name!r} twice")
        seen.add(spec.name)

    raw_handlers = _get(candidate, "handlers")
    if not isinstance(raw_handlers, Mapping):
        raise PluginValidationError(f"Plugin {name!r} must provide a handlers mapping")
    handlers: dict[str, Any] = {}
    for spec in tools:
        handler = raw_handlers.get(spec.name)
        if not callable(handler):
            raise PluginValidationError(
                f"Plugin {name!r} has no callable handler for tool {spec.name!r}"
            )
        handlers[spec.name] = handler

    initialize = _get(candidate, "initialize")
    cleanup = _get(candidate, "cleanup")
    for hook_name, hook in (("initialize", initialize), ("cleanup", cleanup)):
        if hook is not None and not callable(hook):
            raise PluginValidationError(f"Plugin {name!r} hook {hook_name!r} is not callable")

    if name in set(existing_names):
        raise PluginValidationError(f"A plugin named {name!r} is already registered")

    return Plugin(
        name=name,
        version=version,
        description=description,
        tools=tools,
        handlers=handlers,
        initialize=initialize,
        cleanup=cleanup,
        source=source,
    )


def _get(candidate: Any, key: str) -> Any:
    if isinstance(candidate, Mapping):
        return candidate.get(key)
    return getattr(candidate, key, None)


def _required_text(candidate: Any, key: str) -> str:
    value = _get(candidate, key)
    if not isinstance(value, str) or not value.strip():
        raise PluginValidationError(f"Plugin is missing required field {key!r}")
    return value.strip()


def _tool_spec(plugin_name: str, raw: Any) -> ToolSpec:
    if isinstance(raw, ToolSpec):
        return raw
    tool_name = _get(raw, "name")
    if not isinstance(tool_name, str) or not tool_name.strip():
        raise PluginValidationError(f"Plugin {plugin_name!r} declares a tool without a name")
    schema = _get(raw, "inputSchema") or _get(raw, "input_schema")
    if schema is None:
        schema = {"type": "object", "properties": {}}
    if not isinstance(schema, Mapping):
        raise PluginValidationError(
            f"Plugin {plugin_name!r} tool {tool_name!r} has a non-object input schema"
        )
    return ToolSpec(
        name=tool_name.strip(),
        description=str(_get(raw, "description") or ""),
        input_schema=dict(schema),
    )


def _looks_like_path(source: str) -> bool:
    return source.endswith(".py") or "/" in source or "\\" in source or Path(source).exists()


def _plugin_files(directory: Path) -> list[Path]:
    children: list[Path] = []
    for child in sorted(directory.iterdir()):
        if child.name.startswith(("_", ".")):
            continue
        if child.is_file() and child.suffix == ".py":
            children.append(child)
        elif child.is_dir() and (child / "__init__.py").exists():
            children.append(child)
    return children


def _file_thunk(path: Path) -> Any:
    return lambda: _unwrap(_import_path(path))


def _import_path(path: Path) -> ModuleType:
    target = path / "__init__.py" if path.is_dir() else path
    module_name = _MODULE_PREFIX + path.stem.replace("-", "_")
    spec = importlib.util.spec_from_file_location(
        module_name,
        target,
        submodule_search_locations=[str(path)] if path.is_dir() else None,
    )
    if spec is None or spec.loader is None:
        raise PluginValidationError(f"Cannot import plugin from {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


def _import_object(reference: str) -> Any:
    module_name, _, attribute = reference.partition(":")
    module = importlib.import_module(module_name)
    if not attribute:
        return _unwrap(module)
    target: Any = module
    for part in attribute.split("."):
        target = getattr(target, part)
    return _unwrap(target)


def _unwrap(obj: Any) -> Any:
    """Pick the plugin object out of a module or factory."""

    if isinstance(obj, ModuleType):
        for attribute in ("plugin", "PLUGIN"):
            if hasattr(obj, attribute):
                return _unwrap(getattr(obj, attribute))
        factory = getattr(obj, "create_plugin", None)
        if callable(factory):
            return factory()
        return obj
    if _is_factory(obj):
        return obj()
    return obj


def _is_factory(obj: Any) -> bool:
    """Return True for zero-argument plugin factories such as classes."""

    if isinstance(obj, type):
        return True
    return callable(obj) and getattr(obj, "__name__", "") == "create_plugin"
