from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

import pytest

from browser_tool_hub.driver.base import AutomationDriver, DriverHandle
from browser_tool_hub.engine.artifacts import ArtifactStore
from browser_tool_hub.engine.sequence import ActionSequenceEngine
from browser_tool_hub.errors import DriverError
from browser_tool_hub.hub import ToolHub
from browser_tool_hub.models import BrowserOptions, ElementAction, Locator
from browser_tool_hub.sessions.registry import SessionRegistry


@dataclass
class FakeHandle(DriverHandle):
    index: int
    options: BrowserOptions
    url: str = "about:blank"
    title: str = ""
    closed: bool = False
    threads: set[int] = field(default_factory=set)


class FakeDriver(AutomationDriver):
    """In-memory driver recording every primitive call."""

    def __init__(
        self,
        *,
        missing: Sequence[str] = (),
        delays: Optional[dict[str, float]] = None,
        script_result: Any = None,
    ) -> None:
        self.missing = set(missing)
        self.delays = dict(delays or {})
        self.script_result = script_result
        self.handles: list[FakeHandle] = []
        self.calls: list[tuple[str, Any]] = []
        self.open_gate: Optional[threading.Event] = None
        self.open_started = threading.Event()
        self.closed_event = threading.Event()
        self.fail_close = False
        self._lock = threading.Lock()

    def _record(self, handle: FakeHandle, name: str, detail: Any = None) -> None:
        handle.threads.add(threading.get_ident())
        with self._lock:
            self.calls.append((name, detail))
        delay = self.delays.get(name)
        if delay:
            time.sleep(delay)

    def open(self, options: BrowserOptions) -> FakeHandle:
        self.open_started.set()
        if self.open_gate is not None:
            self.open_gate.wait(5)
        with self._lock:
            handle = FakeHandle(index=len(self.handles), options=options)
            self.handles.append(handle)
        handle.threads.add(threading.get_ident())
        return handle

    def navigate(self, handle: FakeHandle, url: str, timeout: Optional[float] = None) -> None:
        self._record(handle, "navigate", url)
        handle.url = url
        handle.title = f"Title of {url}"

    def locate_and_act(
        self,
        handle: FakeHandle,
        locator: Locator,
        action: ElementAction,
        value: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._record(handle, action.value, (locator.selector, locator.by.value, value))
        if locator.selector in self.missing:
            raise DriverError(f"Element not found: {locator.selector}")

    def drag(
        self,
        handle: FakeHandle,
        source: Locator,
        target: Locator,
        timeout: Optional[float] = None,
    ) -> None:
        self._record(handle, "drag", (source.selector, target.selector))
        for locator in (source, target):
            if locator.selector in self.missing:
                raise DriverError(f"Element not found: {locator.selector}")

    def evaluate(self, handle: FakeHandle, code: str, args: Sequence[Any] = ()) -> Any:
        self._record(handle, "evaluate", list(args))
        if callable(self.script_result):
            return self.script_result(code, list(args))
        return self.script_result

    def capture(self, handle: FakeHandle, full_page: bool = False) -> bytes:
        self._record(handle, "capture", full_page)
        return b"\x89PNG fake"

    def title(self, handle: FakeHandle) -> str:
        self._record(handle, "title")
        return handle.title

    def url(self, handle: FakeHandle) -> str:
        self._record(handle, "url")
        return handle.url

    def close(self, handle: FakeHandle) -> None:
        handle.closed = True
        self.closed_event.set()
        if self.fail_close:
            raise DriverError("close failed")

    def kinds(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def registry(driver: FakeDriver) -> Iterator[SessionRegistry]:
    registry = SessionRegistry(driver, open_timeout=5, close_timeout=5)
    yield registry
    registry.close_all()


@pytest.fixture
def artifacts(tmp_path: Path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "artifacts")


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def engine(driver: FakeDriver, artifacts: ArtifactStore, sleeps: list[float]) -> ActionSequenceEngine:
    return ActionSequenceEngine(driver, artifacts=artifacts, grace_seconds=2.0, sleep=sleeps.append)


@pytest.fixture
def hub(registry: SessionRegistry, engine: ActionSequenceEngine) -> Iterator[ToolHub]:
    hub = ToolHub(registry=registry, engine=engine).start()
    yield hub
    hub.shutdown()
