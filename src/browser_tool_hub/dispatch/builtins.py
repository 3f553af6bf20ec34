"""Tools implemented directly on top of the session registry and engine."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..driver import scripts
from ..engine.actions import ActionDescriptor, parse_steps
from ..engine.sequence import ActionSequenceEngine, ErrorPolicy, ExecutionReport, StepOutcome
from ..errors import SessionNotFoundError
from ..models import BrowserOptions, LocatorStrategy, ToolResult
from ..sessions.registry import SessionRegistry, SessionSummary
from .table import BuiltinTool


@dataclass
class BuiltinServices:
    """Collaborators the built-in tools operate on."""

    registry: SessionRegistry
    engine: ActionSequenceEngine


# Argument models -------------------------------------------------------------


class ToolArguments(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NoArguments(ToolArguments):
    pass


class BrowserArguments(ToolArguments):
    browser_id: str = Field(alias="browserId", description="ID of the browser to use.")


class OpenBrowserArguments(ToolArguments):
    browser_id: Optional[str] = Field(
        default=None,
        alias="browserId",
        description="Optional ID for the new browser. A unique ID is generated when omitted.",
    )
    headless: Optional[bool] = Field(default=None, description="Run the browser without a window.")
    width: Optional[int] = Field(default=None, gt=0, description="Viewport width.")
    height: Optional[int] = Field(default=None, gt=0, description="Viewport height.")
    x: Optional[int] = Field(default=None, description="Window x position.")
    y: Optional[int] = Field(default=None, description="Window y position.")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")
    proxy: Optional[str] = Field(default=None, description="Proxy server (host:port).")
    kiosk: Optional[bool] = None
    label: Optional[str] = Field(default=None, description="Label shown on pages for diagnostics.")


class NavigateArguments(BrowserArguments):
    url: str = Field(description="The URL to navigate to.")


class ElementArguments(BrowserArguments):
    selector: str = Field(description="Selector used to find the element.")
    by: LocatorStrategy = Field(default=LocatorStrategy.CSS, description="Type of selector.")
    timeout: Optional[float] = Field(default=None, ge=0, description="Timeout in milliseconds.")


class TypeTextArguments(ElementArguments):
    text: str = Field(description="Text to type.")


class ExecuteScriptArguments(BrowserArguments):
    script: str = Field(description="JavaScript function body; use `return` to produce a value.")
    args: list[Any] = Field(default_factory=list, description="Values available as `arguments`.")


class ScreenshotArguments(BrowserArguments):
    filename: Optional[str] = None
    full_page: bool = Field(default=False, alias="fullPage")


class ActionSequenceArguments(BrowserArguments):
    actions: list[Any] = Field(description="Actions to execute in order.")
    continue_on_error: bool = Field(
        default=False,
        alias="continueOnError",
        description="Keep going after a failed step. Takes precedence over stopOnError.",
    )
    stop_on_error: bool = Field(
        default=True,
        alias="stopOnError",
        description="Stop at the first failed step unless continueOnError is set.",
    )


class LabelArguments(BrowserArguments):
    label: str


class SelectOptionArguments(ElementArguments):
    option: str = Field(description="Value or visible text of the option to select.")


class DragAndDropArguments(BrowserArguments):
    source_selector: str = Field(alias="sourceSelector", description="Selector of the element to drag.")
    target_selector: str = Field(alias="targetSelector", description="Selector of the drop zone.")
    source_by: LocatorStrategy = Field(default=LocatorStrategy.CSS, alias="sourceBy")
    target_by: LocatorStrategy = Field(default=LocatorStrategy.CSS, alias="targetBy")
    timeout: Optional[float] = Field(default=None, ge=0, description="Timeout in milliseconds.")


class FormField(ToolArguments):
    selector: str
    value: str
    by: LocatorStrategy = LocatorStrategy.CSS


class FillFormArguments(BrowserArguments):
    fields: dict[str, FormField] = Field(description="Form fields keyed by a descriptive name.")
    submit_after: bool = Field(default=False, alias="submitAfter")
    submit_selector: str = Field(
        default="[type=submit]",
        alias="submitSelector",
        description="Element clicked when submitAfter is set.",
    )


class WaitForPageChangeArguments(BrowserArguments):
    from_url: Optional[str] = Field(
        default=None,
        alias="fromUrl",
        description="URL to move away from; defaults to the current URL.",
    )
    to_url_pattern: Optional[str] = Field(
        default=None,
        alias="toUrlPattern",
        description="Regular expression the new URL must match.",
    )
    timeout: float = Field(default=10000, ge=0, description="Timeout in milliseconds.")

    ("to_url_pattern")
    
    def _compiles(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid pattern: {exc}") from exc
        return value


class ConsoleLogArguments(BrowserArguments):
    level: Optional[Literal["log", "error", "warn", "info", "debug"]] = Field(
        default=None,
        description="Only return entries of this level.",
    )
    limit: int = Field(default=100, gt=0, description="Maximum number of most recent entries.")


class PageElementsArguments(BrowserArguments):
    selector: str = Field(default="*", description="CSS selector used to filter elements.")
    limit: int = Field(default=100, gt=0)


class InteractiveElementsArguments(BrowserArguments):
    limit: int = Field(default=50, gt=0)


class AttributeFilter(ToolArguments):
    name: str
    value: Optional[str] = None


class ElementFilter(ToolArguments):
    type: Optional[Literal["button", "input", "link", "form", "select", "any"]] = None
    tag_name: Optional[str] = Field(default=None, alias="tagName")
    css_selector: Optional[str] = Field(default=None, alias="cssSelector")
    contains_text: Optional[str] = Field(default=None, alias="containsText")
    has_attribute: Optional[AttributeFilter] = Field(default=None, alias="hasAttribute")
    visible_only: bool = Field(default=True, alias="visibleOnly")

    def selector(self) -> str:
        if self.css_selector:
            return self.css_selector
        if self.tag_name:
            return self.tag_name
        return scripts.ELEMENT_TYPE_SELECTORS[self.type or "any"]


class ListElementsArguments(BrowserArguments):
    filter: ElementFilter = Field(default_factory=ElementFilter)
    limit: int = Field(default=50, gt=0)
    include_hidden: bool = Field(default=False, alias="includeHidden")


class CheckElementArguments(BrowserArguments):
    selector: str
    by: LocatorStrategy = LocatorStrategy.CSS


# Handlers --------------------------------------------------------------------


def open_browser(services: BuiltinServices, args: OpenBrowserArguments) -> ToolResult:
    updates = {
        key: value
        for key, value in args.model_dump(exclude={"browser_id", "label"}).items()
        if value is not None
    }
    options = services.registry.default_options.model_copy(update=updates)
    session = services.registry.create(args.browser_id, options=options, label=args.label)
    return ToolResult.ok(
        f"Browser opened successfully (Browser ID: {session.id})",
        data={"browserId": session.id, "label": session.label},
    )


def navigate_to(services: BuiltinServices, args: NavigateArguments) -> ToolResult:
    return _single_step(services, args.browser_id, kind="navigate", url=args.url)


def _element_handler(kind: str):
    def handler(services: BuiltinServices, args: ElementArguments) -> ToolResult:
        return _single_step(
            services,
            args.browser_id,
            kind=kind,
            selector=args.selector,
            by=args.by,
            timeout=args.timeout,
        )

    handler.__name__ = f"{kind}_element"
    return handler


def type_text(services: BuiltinServices, args: TypeTextArguments) -> ToolResult:
    return _single_step(
        services,
        args.browser_id,
        kind="type",
        selector=args.selector,
        by=args.by,
        text=args.text,
        timeout=args.timeout,
    )


def execute_script(services: BuiltinServices, args: ExecuteScriptArguments) -> ToolResult:
    return _single_step(services, args.browser_id, kind="evaluate", script=args.script, args=args.args)


def take_screenshot(services: BuiltinServices, args: ScreenshotArguments) -> ToolResult:
    return _single_step(
        services,
        args.browser_id,
        kind="screenshot",
        filename=args.filename,
        full_page=args.full_page,
    )


def get_page_title(services: BuiltinServices, args: BrowserArguments) -> ToolResult:
    title = services.engine.page_title(services.registry.require(args.browser_id))
    return ToolResult.ok(f"Page title: {title}", data={"title": title})


def get_page_url(services: BuiltinServices, args: BrowserArguments) -> ToolResult:
    url = services.engine.page_url(services.registry.require(args.browser_id))
    return ToolResult.ok(f"Current URL: {url}", data={"url": url})


def execute_action_sequence(services: BuiltinServices, args: ActionSequenceArguments) -> ToolResult:
    session = services.registry.require(args.browser_id)
    policy = ErrorPolicy(continue_on_error=args.continue_on_error, stop_on_error=args.stop_on_error)
    return _from_report(services.engine.run(session, parse_steps(args.actions), policy))


def select_option(services: BuiltinServices, args: SelectOptionArguments) -> ToolResult:
    return _single_step(
        services,
        args.browser_id,
        kind="select",
        selector=args.selector,
        by=args.by,
        value=args.option,
        timeout=args.timeout,
    )


def drag_and_drop(services: BuiltinServices, args: DragAndDropArguments) -> ToolResult:
    return _single_step(
        services,
        args.browser_id,
        kind="drag_and_drop",
        selector=args.source_selector,
        by=args.source_by,
        target=args.target_selector,
        target_by=args.target_by,
        timeout=args.timeout,
    )


def fill_form(services: BuiltinServices, args: FillFormArguments) -> ToolResult:
    """Type every field in order, then optionally click the submit element."""

    session = services.registry.require(args.browser_id)
    steps = [
        ActionDescriptor(
            kind="type",
            selector=field.selector,
            by=field.by,
            text=field.value,
            description=f"fill {name}",
        )
        for name, field in args.fields.items()
    ]
    if args.submit_after:
        steps.append(ActionDescriptor(kind="click", selector=args.submit_selector, description="submit form"))
    return _from_report(services.engine.run(session, steps))


def wait_for_page_change(services: BuiltinServices, args: WaitForPageChangeArguments) -> ToolResult:
    session = services.registry.require(args.browser_id)
    previous, current = services.engine.wait_for_url_change(
        session,
        from_url=args.from_url,
        pattern=args.to_url_pattern,
        timeout_ms=args.timeout,
    )
    return ToolResult.ok(
        f"Page changed from {previous} to {current}",
        data={"fromUrl": previous, "url": current},
    )


def get_console_logs(services: BuiltinServices, args: ConsoleLogArguments) -> ToolResult:
    entries = list(_inspect(services, args.browser_id, scripts.READ_CONSOLE) or [])
    filtered = [entry for entry in entries if args.level is None or entry.get("level") == args.level]
    logs = filtered[-args.limit:]
    message = f"Retrieved {len(logs)} console log entries"
    if args.level:
        message += f" (filtered by level: {args.level})"
    return ToolResult.ok(
        message,
        data={"logs": logs, "total": len(entries), "filtered": len(filtered), "level": args.level},
    )


def clear_console_logs(services: BuiltinServices, args: BrowserArguments) -> ToolResult:
    cleared = _inspect(services, args.browser_id, scripts.CLEAR_CONSOLE) or 0
    return ToolResult.ok("Console logs cleared successfully", data={"cleared": cleared})


def get_console_log_count(services: BuiltinServices, args: BrowserArguments) -> ToolResult:
    count = _inspect(services, args.browser_id, scripts.COUNT_CONSOLE) or 0
    return ToolResult.ok(f"Console has {count} log entries", data={"count": count})


def get_page_elements(services: BuiltinServices, args: PageElementsArguments) -> ToolResult:
    found = _query_elements(services, args.browser_id, selector=args.selector, limit=args.limit)
    return ToolResult.ok(
        f"Found {found['total']} elements matching selector: {args.selector}",
        data=found,
    )


def get_interactive_elements(services: BuiltinServices, args: InteractiveElementsArguments) -> ToolResult:
    found = _query_elements(
        services,
        args.browser_id,
        selector=scripts.INTERACTIVE_SELECTOR,
        limit=args.limit,
        visibleOnly=True,
    )
    return ToolResult.ok(f"Found {found['total']} interactive elements", data=found)


def list_elements(services: BuiltinServices, args: ListElementsArguments) -> ToolResult:
    criteria = args.filter
    attribute = criteria.has_attribute.model_dump() if criteria.has_attribute else None
    found = _query_elements(
        services,
        args.browser_id,
        selector=criteria.selector(),
        limit=args.limit,
        visibleOnly=criteria.visible_only and not args.include_hidden,
        containsText=criteria.contains_text,
        attribute=attribute,
    )
    return ToolResult.ok(f"Found {found['total']} elements", data=found)


def check_element_exists(services: BuiltinServices, args: CheckElementArguments) -> ToolResult:
    found = _inspect(services, args.browser_id, scripts.CHECK_ELEMENT, args.selector, args.by.value) or {}
    exists = bool(found.get("exists"))
    verdict = "exists" if exists else "does not exist"
    return ToolResult.ok(
        f"Element {args.selector} {verdict}",
        data={
            "selector": args.selector,
            "by": args.by.value,
            "exists": exists,
            "count": found.get("count", 0),
            "visible": bool(found.get("visible")),
        },
    )


def set_browser_label(services: BuiltinServices, args: LabelArguments) -> ToolResult:
    session = services.registry.require(args.browser_id)
    session.touch(label=args.label)
    rendered = services.engine.apply_label(session)
    return ToolResult.ok(
        f"Label for browser {session.id} set to {args.label!r}",
        data={"browserId": session.id, "label": args.label, "rendered": rendered},
    )


def close_browser(services: BuiltinServices, args: BrowserArguments) -> ToolResult:
    if services.registry.close(args.browser_id):
        message = f"Browser closed successfully (Browser ID: {args.browser_id})"
    else:
        message = f"No open browser with ID {args.browser_id}; nothing to close"
    return ToolResult.ok(message, data={"browserId": args.browser_id})


def close_all_browsers(services: BuiltinServices, args: NoArguments) -> ToolResult:
    closed = services.registry.close_all()
    return ToolResult.ok(f"Closed {closed} browsers", data={"closed": closed})


def list_browsers(services: BuiltinServices, args: NoArguments) -> ToolResult:
    browsers = [serialize_summary(summary) for summary in services.registry.list()]
    return ToolResult.ok(
        f"Found {len(browsers)} active browser instances",
        data={"count": len(browsers), "browsers": browsers},
    )


def get_browser_info(services: BuiltinServices, args: BrowserArguments) -> ToolResult:
    session = services.registry.get(args.browser_id)
    if session is None:
        raise SessionNotFoundError(args.browser_id, services.registry.ids())
    info = serialize_summary(session.summary())
    info["options"] = session.options.model_dump()
    return ToolResult.ok(f"Browser info for ID: {session.id}", data=info)


def serialize_summary(summary: SessionSummary) -> dict[str, Any]:
    return {
        "id": summary.id,
        "label": summary.label,
        "createdAt": summary.created_at.isoformat(),
        "lastUsed": summary.last_used.isoformat(),
        "alive": summary.alive,
        "stale": summary.stale,
    }


def _inspect(services: BuiltinServices, browser_id: str, script: str, *args: Any) -> Any:
    return services.engine.inspect(services.registry.require(browser_id), script, *args)


def _query_elements(services: BuiltinServices, browser_id: str, **options: Any) -> dict[str, Any]:
    found = _inspect(services, browser_id, scripts.QUERY_ELEMENTS, options) or {}
    elements = list(found.get("elements") or [])
    return {"total": found.get("total", len(elements)), "elements": elements}


def _single_step(services: BuiltinServices, browser_id: str, **fields: Any) -> ToolResult:
    session = services.registry.require(browser_id)
    step = ActionDescriptor.model_validate({k: v for k, v in fields.items() if v is not None})
    return _from_outcome(services.engine.run_step(session, step))


def _from_outcome(outcome: StepOutcome) -> ToolResult:
    return ToolResult(
        success=outcome.success,
        message=outcome.message,
        data=outcome.data,
        error=outcome.error,
    )


def _from_report(report: ExecutionReport) -> ToolResult:
    first_failure = next((outcome for outcome in report.outcomes if not outcome.success), None)
    return ToolResult(
        success=report.success,
        message=report.summary(),
        data=report.to_dict(),
        error=first_failure.error if first_failure else None,
    )


BUILTIN_TOOLS: tuple[BuiltinTool, ...] = (
    BuiltinTool("open_browser", "Open a new browser instance", OpenBrowserArguments, open_browser),
    BuiltinTool("navigate_to", "Navigate to a specific URL", NavigateArguments, navigate_to),
    BuiltinTool("click_element", "Click on an element", ElementArguments, _element_handler("click")),
    BuiltinTool("type_text", "Type text into an input field", TypeTextArguments, type_text),
    BuiltinTool("hover_element", "Move the mouse over an element", ElementArguments, _element_handler("hover")),
    BuiltinTool(
        "double_click_element",
        "Double-click on an element",
        ElementArguments,
        _element_handler("double_click"),
    ),
    BuiltinTool(
        "right_click_element",
        "Right-click on an element",
        ElementArguments,
        _element_handler("right_click"),
    ),
    BuiltinTool(
        "wait_for_element",
        "Wait until an element is visible",
        ElementArguments,
        _element_handler("wait_for_element"),
    ),
    BuiltinTool("execute_script", "Execute JavaScript in the browser", ExecuteScriptArguments, execute_script),
    BuiltinTool("take_screenshot", "Take a screenshot of the current page", ScreenshotArguments, take_screenshot),
    BuiltinTool("get_page_title", "Get the current page title", BrowserArguments, get_page_title),
    BuiltinTool("get_page_url", "Get the current page URL", BrowserArguments, get_page_url),
    BuiltinTool(
        "execute_action_sequence",
        "Execute a sequence of actions on the page in order",
        ActionSequenceArguments,
        execute_action_sequence,
    ),
    BuiltinTool("select_option", "Select an option in a dropdown", SelectOptionArguments, select_option),
    BuiltinTool(
        "drag_and_drop",
        "Drag an element and drop it onto another element",
        DragAndDropArguments,
        drag_and_drop,
    ),
    BuiltinTool("fill_form", "Fill several form fields and optionally submit", FillFormArguments, fill_form),
    BuiltinTool(
        "wait_for_page_change",
        "Wait until the page URL changes",
        WaitForPageChangeArguments,
        wait_for_page_change,
    ),
    BuiltinTool("get_console_logs", "Get console logs from the browser", ConsoleLogArguments, get_console_logs),
    BuiltinTool("clear_console_logs", "Clear all console logs from the browser", BrowserArguments, clear_console_logs),
    BuiltinTool(
        "get_console_log_count",
        "Get the number of console log entries",
        BrowserArguments,
        get_console_log_count,
    ),
    BuiltinTool("get_page_elements", "Get elements on the current page", PageElementsArguments, get_page_elements),
    BuiltinTool(
        "get_interactive_elements",
        "List visible clickable elements (buttons, inputs, links)",
        InteractiveElementsArguments,
        get_interactive_elements,
    ),
    BuiltinTool("list_elements", "List page elements matching a filter", ListElementsArguments, list_elements),
    BuiltinTool(
        "check_element_exists",
        "Check whether an element exists on the page",
        CheckElementArguments,
        check_element_exists,
    ),
    BuiltinTool("set_browser_label", "Set the diagnostic label of a browser", LabelArguments, set_browser_label),
    BuiltinTool("close_browser", "Close a browser instance", BrowserArguments, close_browser),
    BuiltinTool("close_all_browsers", "Close every open browser instance", NoArguments, close_all_browsers),
    BuiltinTool("list_browsers", "List all active browser instances", NoArguments, list_browsers),
    BuiltinTool("get_browser_info", "Get information about a browser instance", BrowserArguments, get_browser_info),
)
