"""Configuration models for the browser tool hub."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import BrowserOptions


class BrowserConfig(BaseModel):
    """Default launch settings applied when a caller omits them."""

    headless: bool = False
    viewport_width: int = 1280
    viewport_height: int = 720
    navigation_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for a page load before failing the navigation.",
    )

    def default_options(self) -> BrowserOptions:
        return BrowserOptions(
            headless=self.headless,
            width=self.viewport_width,
            height=self.viewport_height,
        )


class SequenceConfig(BaseModel):
    """Timing defaults for element actions and action sequences."""

    default_step_timeout_ms: int = Field(default=3000)
    call_grace_seconds: float = Field(
        default=5.0,
        description="Extra seconds the engine waits beyond a step timeout before giving up on the driver.",
    )
    open_timeout_seconds: float = Field(default=60.0)


class PluginConfig(BaseModel):
    """Where plugins are discovered from."""

    enabled: bool = True
    paths: list[Path] = Field(default_factory=lambda: [Path("plugins")])
    modules: list[str] = Field(default_factory=list)
    entry_point_group: Optional[str] = Field(default="browser_tool_hub.plugins")
    namespace_separator: str = "."

    @field_validator("paths")
    @classmethod
    def _unique_paths(cls, paths: list[Path]) -> list[Path]:
        return list(dict.fromkeys(paths))


class ServerConfig(BaseModel):
    """Settings for the HTTP tool endpoint."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8766)


class HubConfig(BaseSettings):
    """Top-level configuration for the hub process."""

    model_config = SettingsConfigDict(
        env_prefix="BROWSER_TOOL_HUB_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    sequence: SequenceConfig = Field(default_factory=SequenceConfig)
    plugins: PluginConfig = Field(default_factory=PluginConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    artifacts_dir: Path = Field(default=Path("./artifacts"))


def load_config(
    path: Path | None = None,
    *,
    env_file: Path | None = None,
    **overrides: object,
) -> HubConfig:
    """Load configuration from env sources, an optional YAML file and overrides.

    Later sources win: ``.env``/environment, then the YAML file, then keyword
    overrides. Relative ``plugins.paths`` in the YAML file are resolved
    against the file's directory.
    """

    settings_kwargs: dict[str, object] = {}
    if env_file is not None:
        settings_kwargs["_env_file"] = env_file
    layered: dict[str, Any] = {}
    if path is not None:
        layered = _merge(layered, _read_yaml(path))
    if overrides:
        layered = _merge(layered, overrides)
    if not layered:
        return HubConfig(**settings_kwargs)

    base = HubConfig(**settings_kwargs).model_dump(mode="python")
    return HubConfig.model_validate(_merge(base, layered))


def _read_yaml(path: Path) -> dict[str, Any]:
    loaded = yaml.safe_load(path.read_text()) or {}
    if not isinstance(loaded, Mapping):
        raise ValueError(f"Configuration file {path} must contain a mapping, not {type(loaded).__name__}")
    data = dict(loaded)
    plugins = data.get("plugins")
    if isinstance(plugins, Mapping) and isinstance(plugins.get("paths"), list):
        data["plugins"] = {
            **plugins,
            "paths": [path.parent / Path(entry) for entry in plugins["paths"]],
        }
    return data


def _merge(base: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``updates`` layered on top; nested mappings merge."""

    merged = dict(base)
    for key, value in updates.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged
