"""Automation Driver abstraction consumed by the session registry."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from ..models import BrowserOptions, ElementAction, Locator


class DriverHandle(ABC):
    """Opaque handle identifying one browser instance inside a driver."""


class AutomationDriver(ABC):
    """Interface for the primitives the hub needs from a browser backend.

    Every method blocks until the browser answers and raises
    :class:`~browser_tool_hub.errors.DriverError` on failure. A handle is only
    ever used from the thread that opened it.
    """

    @abstractmethod
    def open(self, options: BrowserOptions) -> DriverHandle:
        """Launch a browser and return its handle."""

    @abstractmethod
    def navigate(self, handle: DriverHandle, url: str, timeout: Optional[float] = None) -> None:
        """Load ``url`` in the handle's page."""

    @abstractmethod
    def locate_and_act(
        self,
        handle: DriverHandle,
        locator: Locator,
        action: ElementAction,
        value: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Find the element addressed by ``locator`` and perform ``action`` on it.

        ``value`` carries the text for ``TYPE`` and the option value or label
        for ``SELECT``.
        """

    @abstractmethod
    def drag(
        self,
        handle: DriverHandle,
        source: Locator,
        target: Locator,
        timeout: Optional[float] = None,
    ) -> None:
        """Drag the element at ``source`` and drop it onto ``target``."""

    @abstractmethod
    def evaluate(self, handle: DriverHandle, code: str, args: Sequence[Any] = ()) -> Any:
        """Run a script in the page and return its JSON-compatible result."""

    @abstractmethod
    def capture(self, handle: DriverHandle, full_page: bool = False) -> bytes:
        """Return a PNG screenshot of the page."""

    @abstractmethod
    def title(self, handle: DriverHandle) -> str:
        """Return the page title."""

    @abstractmethod
    def url(self, handle: DriverHandle) -> str:
        """Return the current page URL."""

    @abstractmethod
    def close(self, handle: DriverHandle) -> None:
        """Release every resource held by ``handle``."""
