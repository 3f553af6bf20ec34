"""Playwright-powered Automation Driver implementation."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from playwright.sync_api import Browser, BrowserContext, Error, Page, Playwright, sync_playwright

from ..config import BrowserConfig
from ..errors import DriverError
from ..models import BrowserOptions, ElementAction, Locator, LocatorStrategy
from .base import AutomationDriver, DriverHandle
from .scripts import CONSOLE_HOOK

LOGGER = logging.getLogger(__name__)

# Runs caller scripts with Selenium-style semantics: the body may ``return``
# a value and reads its arguments through ``arguments``.
_SCRIPT_WRAPPER = "(args) => (function() {{\n{body}\n}}).apply(null, args)"


@dataclass
class PlaywrightHandle(DriverHandle):
    playwright: Playwright
    browser: Browser
    context: BrowserContext
    page: Page


class PlaywrightDriver(AutomationDriver):
    """Automation Driver backed by Playwright's synchronous Chromium API."""

    def __init__(self, config: Optional[BrowserConfig] = None) -> None:
        self._config = config or BrowserConfig()

    def open(self, options: BrowserOptions) -> PlaywrightHandle:
        LOGGER.debug("Starting Playwright browser with %s", options)
        args = [
            "--no-sandbox",
            "--disable-dev-shm-usage",
            "--disable-gpu",
            "--disable-infobars",
        ]
        if options.x is not None or options.y is not None:
            args.append(f"--window-position={options.x or 0},{options.y or 0}")
        if options.kiosk:
            args.append("--kiosk")
        launch_kwargs: dict[str, Any] = {"headless": options.headless, "args": args}
        if options.proxy:
            launch_kwargs["proxy"] = {"server": options.proxy}
        context_kwargs: dict[str, Any] = {
            "viewport": {"width": options.width, "height": options.height},
        }
        if options.user_agent:
            context_kwargs["user_agent"] = options.user_agent

        playwright = sync_playwright().start()
        try:
            browser = playwright.chromium.launch(**launch_kwargs)
            context = browser.new_context(**context_kwargs)
            context.add_init_script(CONSOLE_HOOK)
            page = context.new_page()
        except Error as exc:
            playwright.stop()
            raise DriverError(f"Failed to open browser: {exc}") from exc
        return PlaywrightHandle(playwright=playwright, browser=browser, context=context, page=page)

    def navigate(self, handle: DriverHandle, url: str, timeout: Optional[float] = None) -> None:
        page = _page(handle)
        if timeout is None:
            timeout = self._config.navigation_timeout
        try:
            page.goto(url, wait_until="load", timeout=_to_timeout(timeout))
        except Error as exc:
            raise DriverError(f"Failed to navigate to {url}: {exc}") from exc

    def locate_and_act(
        self,
        handle: DriverHandle,
        locator: Locator,
        action: ElementAction,
        value: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        page = _page(handle)
        selector = to_playwright_selector(locator)
        millis = _to_timeout(timeout)
        try:
            if action == ElementAction.CLICK:
                page.click(selector, timeout=millis)
            elif action == ElementAction.DOUBLE_CLICK:
                page.dblclick(selector, timeout=millis)
            elif action == ElementAction.RIGHT_CLICK:
                page.click(selector, button="right", timeout=millis)
            elif action == ElementAction.HOVER:
                page.hover(selector, timeout=millis)
            elif action == ElementAction.TYPE:
                page.fill(selector, value or "", timeout=millis)
            elif action == ElementAction.SELECT:
                if value is None:
                    raise DriverError(f"Select on {locator} requires an option")
                page.select_option(selector, value, timeout=millis)
            elif action == ElementAction.WAIT:
                page.wait_for_selector(selector, state="visible", timeout=millis)
            else:
                raise DriverError(f"Unsupported element action: {action}")
        except Error as exc:
            raise DriverError(f"Failed to {action.value} element {locator}: {exc}") from exc

    def drag(
        self,
        handle: DriverHandle,
        source: Locator,
        target: Locator,
        timeout: Optional[float] = None,
    ) -> None:
        page = _page(handle)
        try:
            page.drag_and_drop(
                to_playwright_selector(source),
                to_playwright_selector(target),
                timeout=_to_timeout(timeout),
            )
        except Error as exc:
            raise DriverError(f"Failed to drag {source} onto {target}: {exc}") from exc

    def evaluate(self, handle: DriverHandle, code: str, args: Sequence[Any] = ()) -> Any:
        page = _page(handle)
        try:
            return page.evaluate(_SCRIPT_WRAPPER.format(body=code), list(args))
        except Error as exc:
            raise DriverError(f"Failed to execute script: {exc}") from exc

    def capture(self, handle: DriverHandle, full_page: bool = False) -> bytes:
        page = _page(handle)
        try:
            return page.screenshot(full_page=full_page, type="png")
        except Error as exc:
            raise DriverError(f"Failed to take screenshot: {exc}") from exc

    def title(self, handle: DriverHandle) -> str:
        try:
            return _page(handle).title()
        except Error as exc:
            raise DriverError(f"Failed to get page title: {exc}") from exc

    def url(self, handle: DriverHandle) -> str:
        return _page(handle).url

    def close(self, handle: DriverHandle) -> None:
        if not isinstance(handle, PlaywrightHandle):
            raise DriverError("Handle does not belong to the Playwright driver")
        LOGGER.debug("Stopping Playwright browser")
        try:
            try:
                handle.context.close()
            finally:
                handle.browser.close()
        except Error as exc:
            raise DriverError(f"Failed to close browser: {exc}") from exc
        finally:
            handle.playwright.stop()


def to_playwright_selector(locator: Locator) -> str:
    """Translate a :class:`Locator` into a Playwright selector string."""

    selector = locator.selector
    if locator.by == LocatorStrategy.CSS:
        return selector
    if locator.by == LocatorStrategy.XPATH:
        return f"xpath={selector}"
    if locator.by == LocatorStrategy.ID:
        return f"[id={json.dumps(selector)}]"
    if locator.by == LocatorStrategy.NAME:
        return f"[name={json.dumps(selector)}]"
    if locator.by == LocatorStrategy.CLASS_NAME:
        return f"[class~={json.dumps(selector)}]"
    return selector


def _page(handle: DriverHandle) -> Page:
    if not isinstance(handle, PlaywrightHandle):
        raise DriverError("Handle does not belong to the Playwright driver")
    return handle.page


def _to_timeout(timeout: Optional[float]) -> Optional[int]:
    # Playwright reads 0 as "wait forever".
    if timeout is None:
        return None
    return max(1, round(timeout * 1000))
