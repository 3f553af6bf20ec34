from __future__ import annotations

import pytest

from browser_tool_hub.dispatch.builtins import BUILTIN_TOOLS
from browser_tool_hub.dispatch.table import ToolTable, qualified_name
from browser_tool_hub.errors import NameCollisionError
from browser_tool_hub.hub import ToolHub
from browser_tool_hub.plugins.loader import validate


def _plugin(name: str, *tools: str):
    return validate(
        {
            "name": name,
            "version": "1.0",
            "description": "test",
            "tools": [{"name": tool} for tool in tools],
            "handlers": {tool: (lambda args: None) for tool in tools},
        }
    )


def test_table_namespaces_plugin_tools() -> None:
    table = ToolTable.build(BUILTIN_TOOLS, [_plugin("extract", "links")])

    entry = table.resolve("extract.links")
    assert entry is not None and not entry.is_builtin
    assert entry.plugin_name == "extract" and entry.tool_name == "links"
    assert "links" not in table
    assert len(table) == len(BUILTIN_TOOLS) + 1


def test_table_rejects_collisions() -> None:
    with pytest.raises(NameCollisionError) as excinfo:
        ToolTable.build(BUILTIN_TOOLS, [_plugin("a", "b.c"), _plugin("a.b", "c")])

    assert excinfo.value.names == ["a.b.c"]
    assert excinfo.value.code == "NameCollisionAtLoad"


def test_table_collision_with_builtin_under_custom_separator() -> None:
    with pytest.raises(NameCollisionError):
        ToolTable.build(BUILTIN_TOOLS, [_plugin("close", "browser")], separator="_")


def test_qualified_name() -> None:
    assert qualified_name("p", "t") == "p.t"
    assert qualified_name("p", "t", "__") == "p__t"


def test_builtin_schemas_use_camel_case(hub: ToolHub) -> None:
    tools = {tool["name"]: tool for tool in hub.list_tools()}

    schema = tools["execute_action_sequence"]["inputSchema"]
    assert {"browserId", "actions", "continueOnError", "stopOnError"} <= set(schema["properties"])
    assert set(schema["required"]) == {"browserId", "actions"}


def test_unknown_tool(hub: ToolHub) -> None:
    result = hub.dispatch("fly_to_moon", {})

    assert not result.success
    assert result.error == "ToolNotFound"


def test_invalid_arguments(hub: ToolHub) -> None:
    missing = hub.dispatch("navigate_to", {"url": "https://example.com"})
    wrong_type = hub.dispatch("list_browsers", ["not", "a", "mapping"])  # type: ignore[arg-type]

    assert missing.error == "InvalidArguments"
    assert "browserId" in missing.message
    assert wrong_type.error == "InvalidArguments"


def test_browser_lifecycle_end_to_end(hub: ToolHub, driver) -> None:
    opened = hub.dispatch("open_browser", {"browserId": "b1", "headless": True, "label": "tester"})
    assert opened.success and opened.data["browserId"] == "b1"
    assert driver.handles[0].options.headless is True

    assert hub.dispatch("navigate_to", {"browserId": "b1", "url": "https://example.com"}).success
    assert hub.dispatch("type_text", {"browserId": "b1", "selector": "#q", "text": "hi"}).success
    assert hub.dispatch("get_page_title", {"browserId": "b1"}).data == {"title": "Title of https://example.com"}
    assert hub.dispatch("get_page_url", {"browserId": "b1"}).data == {"url": "https://example.com"}

    listing = hub.dispatch("list_browsers")
    assert listing.data["count"] == 1
    assert listing.data["browsers"][0]["label"] == "tester"

    info = hub.dispatch("get_browser_info", {"browserId": "b1"})
    assert info.data["options"]["headless"] is True

    assert hub.dispatch("close_browser", {"browserId": "b1"}).success
    assert hub.dispatch("close_browser", {"browserId": "b1"}).success
    assert driver.handles[0].closed


def test_duplicate_open_is_reported(hub: ToolHub) -> None:
    hub.dispatch("open_browser", {"browserId": "dup"})

    result = hub.dispatch("open_browser", {"browserId": "dup"})

    assert not result.success
    assert result.error == "DuplicateSessionId"


def test_missing_session(hub: ToolHub) -> None:
    result = hub.dispatch("click_element", {"browserId": "ghost", "selector": "#a"})

    assert result.error == "SessionNotFound"
    assert "ghost" in result.message


def test_action_sequence_tool_reports_failure(hub: ToolHub, driver) -> None:
    hub.dispatch("open_browser", {"browserId": "seq"})
    driver.missing.add("#missing")

    result = hub.dispatch(
        "execute_action_sequence",
        {
            "browserId": "seq",
            "actions": [
                {"action": "navigate", "value": "https://example.com"},
                {"action": "click", "selector": "#missing"},
                {"action": "type", "selector": "#q", "value": "hello"},
            ],
        },
    )

    assert not result.success
    assert result.error == "DriverCallFailed"
    assert result.message.startswith("Action sequence completed: 1 successful, 1 failed")
    assert result.data["halted"] is True
    assert [step["index"] for step in result.data["steps"]] == [1, 2]


def test_action_sequence_continue_wins_over_stop(hub: ToolHub, driver) -> None:
    hub.dispatch("open_browser", {"browserId": "seq"})
    driver.missing.add("#missing")

    result = hub.dispatch(
        "execute_action_sequence",
        {
            "browserId": "seq",
            "continueOnError": True,
            "stopOnError": True,
            "actions": [
                {"action": "click", "selector": "#missing"},
                {"action": "hover", "selector": "#menu"},
            ],
        },
    )

    assert result.data["successCount"] == 1
    assert result.data["failureCount"] == 1


def test_set_label_and_close_all(hub: ToolHub, driver) -> None:
    hub.dispatch("open_browser", {"browserId": "one"})
    hub.dispatch("open_browser", {"browserId": "two"})

    labelled = hub.dispatch("set_browser_label", {"browserId": "one", "label": "primary"})
    closed = hub.dispatch("close_all_browsers")

    assert labelled.data["rendered"] is True
    assert closed.data == {"closed": 2}
    assert all(handle.closed for handle in driver.handles)


def test_plugin_tool_dispatch(registry, engine) -> None:
    def boom(args):
        raise ValueError("bad input")

    plugin = {
        "name": "calc",
        "version": "1.0",
        "description": "Arithmetic",
        "tools": [{"name": "add"}, {"name": "boom"}],
        "handlers": {"add": lambda args: {"sum": args["a"] + args["b"]}, "boom": boom},
    }
    with ToolHub(registry=registry, engine=engine, plugins=[plugin]) as hub:
        added = hub.dispatch("calc.add", {"a": 2, "b": 3})
        failed = hub.dispatch("calc.boom", {})

    assert added.data == {"sum": 5}
    assert failed.error == "PluginHandlerThrew"
    assert "bad input" in failed.message
