"""Registry of live browser sessions addressed by identifier."""

from __future__ import annotations

import contextlib
import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional, TypeVar

from ..driver.base import AutomationDriver, DriverHandle
from ..errors import DriverError, DuplicateSessionError, SessionNotFoundError, StepTimeoutError
from ..models import BrowserOptions

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionSummary:
    """Read-only snapshot of a session's metadata."""

    id: str
    label: Optional[str]
    created_at: datetime
    last_used: datetime
    alive: bool
    stale: bool


class Session:
    """One live browser instance and the worker thread that drives it.

    Every driver call for the handle runs on the session's single worker
    thread, so calls against one browser never overlap and browser backends
    with thread affinity stay on the thread that opened them.
    """

    def __init__(
        self,
        session_id: str,
        options: BrowserOptions,
        *,
        label: Optional[str] = None,
    ) -> None:
        self.id = session_id
        self.options = options
        self.label = label
        self.created_at = _utcnow()
        self.last_used = self.created_at
        self.alive = False
        self.stale = False
        self.closing = False
        self.handle: Optional[DriverHandle] = None
        self._lock = threading.RLock()
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"session-{session_id}")

    def touch(self, label: Optional[str] = None) -> None:
        self.last_used = _utcnow()
        if label is not None:
            self.label = label

    @contextlib.contextmanager
    def exclusive(self) -> Iterator["Session"]:
        """Hold the session for a whole operation so sequences never interleave."""

        with self._lock:
            yield self

    def submit(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> "Future[T]":
        return self._worker.submit(fn, *args, **kwargs)

    def execute(
        self,
        fn: Callable[..., T],
        *args: Any,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> T:
        """Run ``fn`` on the worker thread, waiting at most ``timeout`` seconds.

        A timeout does not cancel the call; it keeps running on the worker and
        the session is flagged stale.
        """

        future = self.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            self.stale = True
            LOGGER.warning(
                "Driver call on session %s exceeded %.2fs and may still be running; "
                "consider closing and reopening the session",
                self.id,
                timeout or 0.0,
            )
            raise StepTimeoutError(
                f"Timed out after {timeout:.2f}s waiting for the browser"
            ) from None

    def drive(
        self,
        primitive: Callable[..., T],
        *args: Any,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> T:
        """Call a driver primitive with this session's handle prepended."""

        if not self.alive or self.handle is None:
            raise DriverError(f"Browser {self.id} is not open")
        self.touch()
        return self.execute(primitive, self.handle, *args, timeout=timeout, **kwargs)

    def summary(self) -> SessionSummary:
        return SessionSummary(
            id=self.id,
            label=self.label,
            created_at=self.created_at,
            last_used=self.last_used,
            alive=self.alive,
            stale=self.stale,
        )

    def shutdown(self) -> None:
        self._worker.shutdown(wait=False)


class SessionRegistry:
    """Own the mapping from session id to live browser session."""

    def __init__(
        self,
        driver: AutomationDriver,
        *,
        default_options: Optional[BrowserOptions] = None,
        open_timeout: Optional[float] = None,
        close_timeout: Optional[float] = None,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self._driver = driver
        self._default_options = default_options or BrowserOptions()
        self._open_timeout = open_timeout
        self._close_timeout = close_timeout
        self._id_factory = id_factory
        self._sessions: dict[str, Session] = {}
        self._opening: set[str] = set()
        self._lock = threading.Lock()

    @property
    def driver(self) -> AutomationDriver:
        return self._driver

    @property
    def default_options(self) -> BrowserOptions:
        return self._default_options

    def create(
        self,
        requested_id: Optional[str] = None,
        *,
        options: Optional[BrowserOptions] = None,
        label: Optional[str] = None,
    ) -> Session:
        """Open a new browser and register it under ``requested_id`` or a fresh id."""

        with self._lock:
            session_id = requested_id or self._generate_id()
            if session_id in self._sessions or session_id in self._opening:
                raise DuplicateSessionError(session_id)
            self._opening.add(session_id)
        session = Session(session_id, options or self._default_options, label=label)
        try:
            future = session.submit(self._driver.open, session.options)
            try:
                session.handle = future.result(timeout=self._open_timeout)
            except FutureTimeout:
                future.add_done_callback(self._release_late_handle)
                raise StepTimeoutError(
                    f"Timed out after {self._open_timeout}s opening browser {session_id}"
                ) from None
        except BaseException:
            session.shutdown()
            with self._lock:
                self._opening.discard(session_id)
            raise
        session.alive = True
        with self._lock:
            self._opening.discard(session_id)
            self._sessions[session_id] = session
        LOGGER.info("Opened browser session %s", session_id)
        return session

    def get(self, session_id: str) -> Optional[Session]:
        """Return the live session for ``session_id`` and mark it used."""

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.closing:
                return None
            session.touch()
            return session

    def require(self, session_id: str) -> Session:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id, self.ids())
        return session

    def ids(self) -> list[str]:
        with self._lock:
            return [key for key, session in self._sessions.items() if not session.closing]

    def list(self) -> list[SessionSummary]:
        with self._lock:
            sessions = [s for s in self._sessions.values() if not s.closing]
        return sorted((s.summary() for s in sessions), key=lambda item: item.created_at)

    def __len__(self) -> int:
        return len(self.ids())

    def close(self, session_id: str) -> bool:
        """Release and remove a session. Closing an unknown id is a no-op."""

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.closing:
                return False
            session.closing = True
        try:
            self._release(session)
        finally:
            with self._lock:
                self._sessions.pop(session_id, None)
        LOGGER.info("Closed browser session %s", session_id)
        return True

    def close_all(self) -> int:
        closed = 0
        for session_id in self.ids():
            if self.close(session_id):
                closed += 1
        return closed

    def _release(self, session: Session) -> None:
        try:
            with session.exclusive():
                if session.handle is not None:
                    session.execute(self._driver.close, session.handle, timeout=self._close_timeout)
        except Exception:
            LOGGER.exception("Failed to release browser session %s", session.id)
        finally:
            session.alive = False
            session.handle = None
            session.shutdown()

    def _release_late_handle(self, future: "Future[DriverHandle]") -> None:
        if future.cancelled() or future.exception() is not None:
            return
        try:
            self._driver.close(future.result())
        except Exception:
            LOGGER.exception("Failed to release browser that finished opening after timeout")

    def _generate_id(self) -> str:
        session_id = self._id_factory()
        while session_id in self._sessions or session_id in self._opening:
            session_id = self._id_factory()
        return session_id
