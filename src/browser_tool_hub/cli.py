"""Command line interface for browser-tool-hub."""

from __future__ import annotations

import json
import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import HubConfig, load_config
from .factory import build_hub
from .server import create_app

app = typer.Typer(help="Browser Tool Hub entry point")
console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to YAML configuration."),
]
EnvFileOption = Annotated[
    Optional[Path],
    typer.Option("--env-file", help="Path to an .env file with default configuration values."),
]
PluginPathOption = Annotated[
    Optional[list[Path]],
    typer.Option("--plugin-path", "-p", help="Additional plugin file or directory."),
]


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure logging before executing any command."""

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def version() -> None:
    """Print the package version."""

    try:
        typer.echo(get_version("browser-tool-hub"))
    except PackageNotFoundError:  # pragma: no cover - when running from source tree
        typer.echo("0.0.0")


def _load(
    config_path: Optional[Path],
    env_file: Optional[Path],
    plugin_paths: Optional[list[Path]] = None,
    headless: Optional[bool] = None,
) -> HubConfig:
    overrides: dict[str, Any] = {}
    if headless is not None:
        overrides["browser"] = {"headless": headless}
    config = load_config(config_path, env_file=env_file, **overrides)
    if plugin_paths:
        config.plugins.paths = [*config.plugins.paths, *plugin_paths]
    return config


@app.command()
def serve(
    config_path: ConfigOption = None,
    env_file: EnvFileOption = None,
    plugin_path: PluginPathOption = None,
    host: Annotated[
        Optional[str],
        typer.Option("--host", help="Binding address for the HTTP endpoint."),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", help="HTTP port for the tool endpoint."),
    ] = None,
    headless: Annotated[
        Optional[bool],
        typer.Option("--headless/--headed", help="Launch browsers headless (or headed) by default."),
    ] = None,
) -> None:
    """Serve the tool protocol over HTTP."""

    import uvicorn

    config = _load(config_path, env_file, plugin_path, headless)
    hub = build_hub(config)
    application = create_app(hub)
    for failure in hub.load_failures:
        console.print(f"[yellow]Plugin load failed[/yellow] {failure.source}: {failure.reason}")
    uvicorn.run(
        application,
        host=host or config.server.host,
        port=port or config.server.port,
    )


@app.command()
def tools(
    config_path: ConfigOption = None,
    env_file: EnvFileOption = None,
    plugin_path: PluginPathOption = None,
) -> None:
    """List every tool the hub would expose."""

    hub = build_hub(_load(config_path, env_file, plugin_path)).start()
    try:
        table = Table(title="Tools")
        table.add_column("Name", style="cyan")
        table.add_column("Description")
        for tool in hub.list_tools():
            table.add_row(tool["name"], tool["description"])
        console.print(table)
    finally:
        hub.shutdown()


@app.command()
def plugins(
    config_path: ConfigOption = None,
    env_file: EnvFileOption = None,
    plugin_path: PluginPathOption = None,
) -> None:
    """Show loaded plugins and the sources that failed to load."""

    hub = build_hub(_load(config_path, env_file, plugin_path)).start()
    try:
        table = Table(title="Plugins")
        table.add_column("Name", style="cyan")
        table.add_column("Version")
        table.add_column("Tools")
        table.add_column("Status")
        for plugin in hub.plugins.all():
            status = f"[red]init failed: {plugin.init_error}[/red]" if plugin.flagged else "[green]ok[/green]"
            table.add_row(plugin.name, plugin.version, ", ".join(spec.name for spec in plugin.tools), status)
        console.print(table)
        for failure in hub.load_failures:
            console.print(f"[yellow]Failed[/yellow] {failure.source}: {failure.reason}")
    finally:
        hub.shutdown()


@app.command()
def call(
    name: Annotated[str, typer.Argument(help="Tool name, e.g. open_browser or plugin.tool")],
    arguments: Annotated[
        str,
        typer.Option("--args", "-a", help="Tool arguments as a JSON object."),
    ] = "{}",
    config_path: ConfigOption = None,
    env_file: EnvFileOption = None,
    plugin_path: PluginPathOption = None,
) -> None:
    """Invoke a single tool and print its result envelope.

    Browsers opened by the call are closed before the command exits.
    """

    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Arguments are not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise typer.BadParameter("Arguments must be a JSON object")

    hub = build_hub(_load(config_path, env_file, plugin_path)).start()
    try:
        result = hub.dispatch(name, parsed)
    finally:
        hub.shutdown()
    typer.echo(result.model_dump_json(indent=2))
    if not result.success:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
