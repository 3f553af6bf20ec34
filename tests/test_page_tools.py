from __future__ import annotations

from typing import Any

import pytest

from browser_tool_hub.driver import scripts
from browser_tool_hub.engine.sequence import ActionSequenceEngine
from browser_tool_hub.hub import ToolHub
from browser_tool_hub.sessions.registry import SessionRegistry

CONSOLE = [
    {"level": "log", "message": "booted", "timestamp": "2024-01-01T00:00:00Z"},
    {"level": "error", "message": "boom", "timestamp": "2024-01-01T00:00:01Z"},
    {"level": "warn", "message": "careful", "timestamp": "2024-01-01T00:00:02Z"},
    {"level": "error", "message": "again", "timestamp": "2024-01-01T00:00:03Z"},
]


class PageScripts:
    """Answers page scripts like a small page would, recording each query."""

    def __init__(self) -> None:
        self.console = list(CONSOLE)
        self.queries: list[list[Any]] = []

    def __call__(self, code: str, args: list[Any]) -> Any:
        self.queries.append(args)
        if code == scripts.READ_CONSOLE:
            return list(self.console)
        if code == scripts.COUNT_CONSOLE:
            return len(self.console)
        if code == scripts.CLEAR_CONSOLE:
            cleared = len(self.console)
            self.console.clear()
            return cleared
        if code == scripts.CHECK_ELEMENT:
            selector, _by = args
            return {"exists": selector == "#here", "count": int(selector == "#here"), "visible": True}
        if code == scripts.QUERY_ELEMENTS:
            elements = [{"index": 0, "tagName": "button", "text": "Go", "displayed": True, "enabled": True}]
            return {"total": 7, "elements": elements}
        return None


@pytest.fixture
def page(driver) -> PageScripts:
    driver.script_result = PageScripts()
    return driver.script_result


@pytest.fixture
def browser(hub: ToolHub) -> str:
    assert hub.dispatch("open_browser", {"browserId": "p"}).success
    return "p"


def test_console_logs_filter_and_limit(hub: ToolHub, page: PageScripts, browser: str) -> None:
    everything = hub.dispatch("get_console_logs", {"browserId": browser})
    errors = hub.dispatch("get_console_logs", {"browserId": browser, "level": "error", "limit": 1})

    assert everything.data["total"] == 4 and len(everything.data["logs"]) == 4
    assert errors.message == "Retrieved 1 console log entries (filtered by level: error)"
    assert errors.data["filtered"] == 2
    assert [entry["message"] for entry in errors.data["logs"]] == ["again"]


def test_console_count_and_clear(hub: ToolHub, page: PageScripts, browser: str) -> None:
    before = hub.dispatch("get_console_log_count", {"browserId": browser})
    cleared = hub.dispatch("clear_console_logs", {"browserId": browser})
    after = hub.dispatch("get_console_log_count", {"browserId": browser})

    assert before.message == "Console has 4 log entries"
    assert cleared.message == "Console logs cleared successfully"
    assert cleared.data == {"cleared": 4}
    assert after.data == {"count": 0}


def test_console_level_is_validated(hub: ToolHub, page: PageScripts, browser: str) -> None:
    result = hub.dispatch("get_console_logs", {"browserId": browser, "level": "fatal"})

    assert result.error == "InvalidArguments"


def test_page_elements_pass_selector_and_limit(hub: ToolHub, page: PageScripts, browser: str) -> None:
    result = hub.dispatch("get_page_elements", {"browserId": browser, "selector": "button", "limit": 5})

    assert result.message == "Found 7 elements matching selector: button"
    assert result.data["elements"][0]["tagName"] == "button"
    assert page.queries[-1] == [{"selector": "button", "limit": 5}]


def test_interactive_elements_only_visible(hub: ToolHub, page: PageScripts, browser: str) -> None:
    result = hub.dispatch("get_interactive_elements", {"browserId": browser})

    options = page.queries[-1][0]
    assert result.success
    assert options["visibleOnly"] is True
    assert options["limit"] == 50
    assert options["selector"] == scripts.INTERACTIVE_SELECTOR


def test_list_elements_translates_filter(hub: ToolHub, page: PageScripts, browser: str) -> None:
    hub.dispatch(
        "list_elements",
        {
            "browserId": browser,
            "filter": {"type": "link", "containsText": "Docs", "hasAttribute": {"name": "target"}},
            "includeHidden": True,
        },
    )

    options = page.queries[-1][0]
    assert options["selector"] == "a[href]"
    assert options["containsText"] == "Docs"
    assert options["attribute"] == {"name": "target", "value": None}
    assert options["visibleOnly"] is False


def test_check_element_exists(hub: ToolHub, page: PageScripts, browser: str) -> None:
    present = hub.dispatch("check_element_exists", {"browserId": browser, "selector": "#here"})
    absent = hub.dispatch("check_element_exists", {"browserId": browser, "selector": "//nope", "by": "xpath"})

    assert present.success and present.data["exists"] is True
    assert absent.success and absent.data["exists"] is False
    assert absent.message == "Element //nope does not exist"
    assert page.queries[-1] == ["//nope", "xpath"]


def test_inspection_requires_open_session(hub: ToolHub, page: PageScripts) -> None:
    result = hub.dispatch("get_console_logs", {"browserId": "ghost"})

    assert result.error == "SessionNotFound"


def test_select_option_and_drag(hub: ToolHub, driver, browser: str) -> None:
    selected = hub.dispatch("select_option", {"browserId": browser, "selector": "#size", "option": "Large"})
    dragged = hub.dispatch(
        "drag_and_drop",
        {"browserId": browser, "sourceSelector": "#card", "targetSelector": "#lane"},
    )

    assert selected.success and selected.data == {"selector": "#size", "option": "Large"}
    assert dragged.message == "Successfully dragged element #card to #lane"
    assert driver.calls[-2:] == [("select", ("#size", "css", "Large")), ("drag", ("#card", "#lane"))]


def test_drag_reports_missing_target(hub: ToolHub, driver, browser: str) -> None:
    driver.missing.add("#lane")

    result = hub.dispatch(
        "drag_and_drop",
        {"browserId": browser, "sourceSelector": "#card", "targetSelector": "#lane"},
    )

    assert not result.success
    assert result.error == "DriverCallFailed"


def test_fill_form_types_fields_then_submits(hub: ToolHub, driver, browser: str) -> None:
    result = hub.dispatch(
        "fill_form",
        {
            "browserId": browser,
            "fields": {
                "user": {"selector": "#user", "value": "ada"},
                "mail": {"selector": "email", "by": "name", "value": "ada@example.com"},
            },
            "submitAfter": True,
        },
    )

    assert result.success
    assert result.data["successCount"] == 3
    assert driver.calls == [
        ("type", ("#user", "css", "ada")),
        ("type", ("email", "name", "ada@example.com")),
        ("click", ("[type=submit]", "css", None)),
    ]


def test_fill_form_stops_at_missing_field(hub: ToolHub, driver, browser: str) -> None:
    driver.missing.add("#user")

    result = hub.dispatch(
        "fill_form",
        {
            "browserId": browser,
            "fields": {
                "user": {"selector": "#user", "value": "ada"},
                "pass": {"selector": "#pass", "value": "secret"},
            },
        },
    )

    assert not result.success
    assert result.data["halted"] is True
    assert driver.kinds() == ["type"]


def test_wait_for_page_change_sees_new_url(registry: SessionRegistry, driver) -> None:
    def redirect(seconds: float) -> None:
        driver.handles[0].url = "https://example.com/done"

    engine = ActionSequenceEngine(driver, grace_seconds=2.0, sleep=redirect)
    with ToolHub(registry=registry, engine=engine) as hub:
        hub.dispatch("open_browser", {"browserId": "w"})
        result = hub.dispatch("wait_for_page_change", {"browserId": "w", "toUrlPattern": r"/done$"})

    assert result.success
    assert result.data == {"fromUrl": "about:blank", "url": "https://example.com/done"}


def test_wait_for_page_change_times_out(hub: ToolHub, sleeps: list[float], browser: str) -> None:
    result = hub.dispatch("wait_for_page_change", {"browserId": browser, "timeout": 1000})

    assert not result.success
    assert result.error == "StepTimeout"
    assert sleeps == [0.25] * 4


def test_wait_for_page_change_rejects_bad_pattern(hub: ToolHub, browser: str) -> None:
    result = hub.dispatch("wait_for_page_change", {"browserId": browser, "toUrlPattern": "("})

    assert result.error == "InvalidArguments"
