"""Factories for constructing components from configuration."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import BrowserConfig, HubConfig, PluginConfig
from .driver.base import AutomationDriver
from .driver.playwright_driver import PlaywrightDriver
from .engine.artifacts import ArtifactStore
from .engine.sequence import ActionSequenceEngine
from .hub import ToolHub
from .plugins.loader import PluginLoader, PluginSource
from .sessions.registry import SessionRegistry

LOGGER = logging.getLogger(__name__)


def build_driver(config: BrowserConfig) -> AutomationDriver:
    return PlaywrightDriver(config)


def build_artifacts(config: HubConfig) -> ArtifactStore:
    return ArtifactStore(config.artifacts_dir)


def build_registry(config: HubConfig, driver: AutomationDriver) -> SessionRegistry:
    timeout = config.sequence.open_timeout_seconds
    return SessionRegistry(
        driver,
        default_options=config.browser.default_options(),
        open_timeout=timeout,
        close_timeout=timeout,
    )


def build_engine(
    config: HubConfig,
    driver: AutomationDriver,
    artifacts: ArtifactStore,
) -> ActionSequenceEngine:
    return ActionSequenceEngine(
        driver,
        artifacts=artifacts,
        default_timeout_ms=config.sequence.default_step_timeout_ms,
        navigation_timeout=config.browser.navigation_timeout,
        grace_seconds=config.sequence.call_grace_seconds,
    )


def plugin_sources(config: PluginConfig) -> list[PluginSource]:
    sources: list[PluginSource] = []
    for path in config.paths:
        if Path(path).exists():
            sources.append(Path(path))
        else:
            LOGGER.debug("Plugin path %s does not exist; skipping", path)
    sources.extend(config.modules)
    return sources


def build_hub(config: HubConfig, driver: AutomationDriver | None = None) -> ToolHub:
    driver = driver or build_driver(config.browser)
    registry = build_registry(config, driver)
    engine = build_engine(config, driver, build_artifacts(config))
    if not config.plugins.enabled:
        return ToolHub(registry=registry, engine=engine, namespace_separator=config.plugins.namespace_separator)
    return ToolHub(
        registry=registry,
        engine=engine,
        loader=PluginLoader(config.plugins.entry_point_group),
        plugin_sources=plugin_sources(config.plugins),
        use_entry_points=bool(config.plugins.entry_point_group),
        namespace_separator=config.plugins.namespace_separator,
    )
