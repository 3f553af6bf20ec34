from pathlib import Path

import pytest

from browser_tool_hub.config import HubConfig, load_config


def test_defaults() -> None:
    config = HubConfig()

    assert config.sequence.default_step_timeout_ms == 3000
    assert config.plugins.namespace_separator == "."
    assert config.plugins.entry_point_group == "browser_tool_hub.plugins"
    assert config.browser.default_options().width == 1280


def test_load_config_reads_env_file(tmp_path: Path) -> None:
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "BROWSER_TOOL_HUB_BROWSER__HEADLESS=true",
                "BROWSER_TOOL_HUB_SEQUENCE__DEFAULT_STEP_TIMEOUT_MS=500",
                "BROWSER_TOOL_HUB_SERVER__PORT=9100",
                "BROWSER_TOOL_HUB_ARTIFACTS_DIR=/tmp/shots",
            ]
        )
    )

    config = load_config(env_file=env_path)

    assert config.browser.headless is True
    assert config.sequence.default_step_timeout_ms == 500
    assert config.server.port == 9100
    assert config.artifacts_dir == Path("/tmp/shots")


def test_load_config_prioritises_overrides(tmp_path: Path) -> None:
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "BROWSER_TOOL_HUB_SERVER__HOST=0.0.0.0",
                "BROWSER_TOOL_HUB_SERVER__PORT=9100",
            ]
        )
    )

    config_path = tmp_path / "hub.yaml"
    config_path.write_text(
        "\n".join(
            [
                "server:",
                "  port: 9200",
                "plugins:",
                "  modules: ['acme.plugins:plugin']",
            ]
        )
    )

    config = load_config(config_path, env_file=env_path, plugins={"namespace_separator": "__"})

    assert config.server.port == 9200
    assert config.plugins.modules == ["acme.plugins:plugin"]
    assert config.plugins.namespace_separator == "__"


def test_yaml_plugin_paths_resolve_against_file(tmp_path: Path) -> None:
    config_dir = tmp_path / "conf"
    config_dir.mkdir()
    config_path = config_dir / "hub.yaml"
    config_path.write_text(
        "\n".join(
            [
                "plugins:",
                "  paths: ['local', 'local', '/opt/hub/plugins']",
                "  enabled: false",
            ]
        )
    )

    config = load_config(config_path, plugins={"modules": ["acme:plugin"]})

    assert config.plugins.paths == [config_dir / "local", Path("/opt/hub/plugins")]
    assert config.plugins.enabled is False
    assert config.plugins.modules == ["acme:plugin"]
    assert config.plugins.namespace_separator == "."


def test_yaml_must_be_a_mapping(tmp_path: Path) -> None:
    config_path = tmp_path / "hub.yaml"
    config_path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError, match="must contain a mapping"):
        load_config(config_path)
