"""Ordered execution of action sequences against one browser session."""

from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional, Sequence

from ..driver.base import AutomationDriver
from ..errors import HubError, StepTimeoutError, UnknownActionKindError
from ..models import ElementAction, Locator
from ..sessions.registry import Session
from .actions import ELEMENT_KINDS, ActionDescriptor, ActionKind
from .artifacts import ArtifactStore

LOGGER = logging.getLogger(__name__)

_ELEMENT_ACTIONS: dict[ActionKind, ElementAction] = {
    ActionKind.CLICK: ElementAction.CLICK,
    ActionKind.TYPE: ElementAction.TYPE,
    ActionKind.HOVER: ElementAction.HOVER,
    ActionKind.DOUBLE_CLICK: ElementAction.DOUBLE_CLICK,
    ActionKind.RIGHT_CLICK: ElementAction.RIGHT_CLICK,
    ActionKind.WAIT_FOR_ELEMENT: ElementAction.WAIT,
    ActionKind.SELECT: ElementAction.SELECT,
}

_ELEMENT_VERBS: dict[ActionKind, str] = {
    ActionKind.CLICK: "Clicked",
    ActionKind.HOVER: "Hovered over",
    ActionKind.DOUBLE_CLICK: "Double-clicked",
    ActionKind.RIGHT_CLICK: "Right-clicked",
    ActionKind.WAIT_FOR_ELEMENT: "Found visible element",
}

LABEL_SCRIPT = """
const label = arguments[0];
let badge = document.getElementById('__browser_tool_hub_label');
if (!badge) {
  badge = document.createElement('div');
  badge.id = '__browser_tool_hub_label';
  badge.style.cssText = 'position:fixed;top:4px;right:4px;z-index:2147483647;'
    + 'padding:2px 6px;font:12px monospace;background:rgba(0,0,0,.7);'
    + 'color:#fff;border-radius:3px;pointer-events:none';
  (document.body || document.documentElement).appendChild(badge);
}
badge.textContent = label;
return true;
"""


@dataclass(frozen=True)
class ErrorPolicy:
    """How a sequence reacts to a failed step.

    The run halts after a failure only when ``stop_on_error`` is set and
    ``continue_on_error`` is not: ``continue_on_error=True`` takes precedence
    when both are set, and a run with both flags false continues as well.
    """

    continue_on_error: bool = False
    stop_on_error: bool = True

    @property
    def halts_on_failure(self) -> bool:
        return self.stop_on_error and not self.continue_on_error


@dataclass
class StepOutcome:
    """Result of one attempted step."""

    index: int
    kind: str
    description: str
    success: bool
    message: str
    elapsed: float
    data: Any = None
    error: Optional[str] = None

    def line(self) -> str:
        mark = "✓" if self.success else "✗"
        return f"Step {self.index}: {mark} {self.message}"


@dataclass
class ExecutionReport:
    """Order-preserving outcome of an action sequence."""

    outcomes: list[StepOutcome] = field(default_factory=list)
    total_steps: int = 0
    halted: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def success(self) -> bool:
        return self.failure_count == 0

    def summary(self) -> str:
        lines = [
            f"Action sequence completed: {self.success_count} successful, "
            f"{self.failure_count} failed"
        ]
        if self.halted:
            skipped = self.total_steps - len(self.outcomes)
            lines.append(f"Stopped after step {len(self.outcomes)}; {skipped} step(s) not attempted")
        if self.outcomes:
            lines.append("")
            lines.extend(outcome.line() for outcome in self.outcomes)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "totalSteps": self.total_steps,
            "halted": self.halted,
            "steps": [asdict(outcome) for outcome in self.outcomes],
        }


class ActionSequenceEngine:
    """Run action descriptors in order against a session's driver handle."""

    def __init__(
        self,
        driver: AutomationDriver,
        *,
        artifacts: Optional[ArtifactStore] = None,
        default_timeout_ms: int = 3000,
        navigation_timeout: float = 30.0,
        grace_seconds: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._driver = driver
        self._artifacts = artifacts
        self._default_timeout_ms = default_timeout_ms
        self._navigation_timeout = navigation_timeout
        self._grace_seconds = grace_seconds
        self._sleep = sleep

    def run(
        self,
        session: Session,
        steps: Sequence[ActionDescriptor],
        policy: Optional[ErrorPolicy] = None,
    ) -> ExecutionReport:
        """Execute ``steps`` in order and report every attempted step.

        Step-level problems never raise; they are recorded in the report.
        """

        policy = policy or ErrorPolicy()
        report = ExecutionReport(total_steps=len(steps))
        with session.exclusive():
            for index, step in enumerate(steps, start=1):
                outcome = self._attempt(session, index, step)
                report.outcomes.append(outcome)
                if not outcome.success and policy.halts_on_failure:
                    report.halted = index < len(steps)
                    break
        LOGGER.info(
            "Sequence on session %s finished: %s successful, %s failed",
            session.id,
            report.success_count,
            report.failure_count,
        )
        return report

    def run_step(self, session: Session, step: ActionDescriptor) -> StepOutcome:
        """Execute a single step under the session's exclusive hold."""

        with session.exclusive():
            return self._attempt(session, 1, step)

    def page_title(self, session: Session) -> str:
        with session.exclusive():
            return session.drive(self._driver.title, timeout=self._grace_seconds)

    def page_url(self, session: Session) -> str:
        with session.exclusive():
            return session.drive(self._driver.url, timeout=self._grace_seconds)

    def inspect(self, session: Session, script: str, *args: Any) -> Any:
        """Evaluate a read-only page script outside of any sequence."""

        with session.exclusive():
            return session.drive(
                self._driver.evaluate,
                script,
                list(args),
                timeout=self._seconds(self._default_timeout_ms) + self._grace_seconds,
            )

    def wait_for_url_change(
        self,
        session: Session,
        *,
        from_url: Optional[str] = None,
        pattern: Optional[str] = None,
        timeout_ms: float = 10000,
        interval: float = 0.25,
    ) -> tuple[str, str]:
        """Poll the page URL until it leaves ``from_url`` or matches ``pattern``.

        Returns ``(previous, current)``. Raises :class:`StepTimeoutError` when
        no change is seen within ``timeout_ms``.
        """

        matcher = re.compile(pattern) if pattern else None
        previous = from_url if from_url is not None else self.page_url(session)
        polls = max(1, math.ceil(timeout_ms / 1000 / interval))
        for _ in range(polls):
            current = self.page_url(session)
            if matcher is not None and matcher.search(current):
                return previous, current
            if matcher is None and current != previous:
                return previous, current
            self._sleep(interval)
        expectation = f"match {pattern!r}" if pattern else f"change from {previous}"
        raise StepTimeoutError(f"Page URL did not {expectation} within {timeout_ms:g}ms")

    def apply_label(self, session: Session) -> bool:
        """Show the session label on the current page, best-effort."""

        if not session.label:
            return False
        try:
            session.drive(
                self._driver.evaluate,
                LABEL_SCRIPT,
                [session.label],
                timeout=self._grace_seconds,
            )
        except HubError as exc:
            LOGGER.debug("Could not render label for session %s: %s", session.id, exc)
            return False
        return True

    def _attempt(self, session: Session, index: int, step: ActionDescriptor) -> StepOutcome:
        LOGGER.info("Session %s step %s: %s", session.id, index, step.describe())
        started = time.perf_counter()
        try:
            message, data = self._perform(session, step)
        except HubError as exc:
            return self._failed(index, step, started, str(exc), exc.code)
        except ValueError as exc:
            return self._failed(index, step, started, str(exc), "InvalidArguments")
        except Exception as exc:
            LOGGER.exception("Unexpected failure in session %s step %s", session.id, index)
            return self._failed(index, step, started, str(exc), "InternalError")
        return StepOutcome(
            index=index,
            kind=step.kind,
            description=step.describe(),
            success=True,
            message=message,
            elapsed=time.perf_counter() - started,
            data=data,
        )

    def _failed(
        self,
        index: int,
        step: ActionDescriptor,
        started: float,
        reason: str,
        code: str,
    ) -> StepOutcome:
        LOGGER.warning("Step %s (%s) failed: %s", index, step.kind, reason)
        return StepOutcome(
            index=index,
            kind=step.kind,
            description=step.describe(),
            success=False,
            message=f"Failed to {step.describe()} - {reason}",
            elapsed=time.perf_counter() - started,
            error=code,
        )

    def _perform(self, session: Session, step: ActionDescriptor) -> tuple[str, Any]:
        if step.invalid_reason:
            raise ValueError(f"Invalid action: {step.invalid_reason}")
        kind = step.resolved_kind
        if kind is None:
            raise UnknownActionKindError(f"Unknown action: {step.kind}")

        if kind == ActionKind.NAVIGATE:
            url = step.target_url()
            if not url:
                raise ValueError("Navigate action requires a URL")
            timeout = self._seconds(step.timeout) if step.timeout is not None else self._navigation_timeout
            session.drive(self._driver.navigate, url, timeout, timeout=timeout + self._grace_seconds)
            self.apply_label(session)
            return f"Navigated to {url}", {"url": url}

        if kind in ELEMENT_KINDS and not step.selector:
            raise ValueError(f"{kind.value} action requires a selector")

        if kind == ActionKind.DRAG_AND_DROP:
            if not step.target:
                raise ValueError("drag_and_drop action requires a target selector")
            source = Locator(selector=step.selector, by=step.by)
            target = Locator(selector=step.target, by=step.target_by)
            timeout = self._seconds(step.timeout if step.timeout is not None else self._default_timeout_ms)
            session.drive(self._driver.drag, source, target, timeout, timeout=timeout + self._grace_seconds)
            return (
                f"Successfully dragged element {step.selector} to {step.target}",
                {"source": step.selector, "target": step.target},
            )

        if kind in _ELEMENT_ACTIONS:
            locator = Locator(selector=step.selector, by=step.by)
            value = None
            if kind in (ActionKind.TYPE, ActionKind.SELECT):
                value = step.input_text()
                if value is None:
                    raise ValueError(f"{kind.value} action requires a value")
            timeout = self._seconds(step.timeout if step.timeout is not None else self._default_timeout_ms)
            session.drive(
                self._driver.locate_and_act,
                locator,
                _ELEMENT_ACTIONS[kind],
                value,
                timeout,
                timeout=timeout + self._grace_seconds,
            )
            if kind == ActionKind.TYPE:
                return f'Typed "{value}" into {step.selector}', {"selector": step.selector, "text": value}
            if kind == ActionKind.SELECT:
                return f'Selected "{value}" in {step.selector}', {"selector": step.selector, "option": value}
            return f"{_ELEMENT_VERBS[kind]} {step.selector}", {"selector": step.selector}

        if kind == ActionKind.EVALUATE:
            script = step.source()
            if not script:
                raise ValueError("evaluate action requires a script")
            result = session.drive(
                self._driver.evaluate,
                script,
                step.args,
                timeout=self._wait_for(step),
            )
            return "Executed script", {"result": result}

        if kind == ActionKind.SCREENSHOT:
            content = session.drive(self._driver.capture, step.full_page, timeout=self._wait_for(step))
            if self._artifacts is None:
                return "Captured screenshot", {"bytes": len(content)}
            filename = step.filename or (step.value if isinstance(step.value, str) else None)
            path = self._artifacts.save_screenshot(session.id, content, filename)
            return f"Screenshot saved to: {path}", {"filepath": str(path)}

        if kind == ActionKind.WAIT:
            raw = step.value if step.value is not None else step.timeout
            try:
                millis = float(raw or 0)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"wait action requires a duration in milliseconds, got {raw!r}") from exc
            self._sleep(max(millis, 0.0) / 1000)
            return f"Waited {millis:g}ms", {"milliseconds": millis}

        raise UnknownActionKindError(f"Unknown action: {step.kind}")

    def _wait_for(self, step: ActionDescriptor) -> float:
        millis = step.timeout if step.timeout is not None else self._default_timeout_ms
        return self._seconds(millis) + self._grace_seconds

    @staticmethod
    def _seconds(millis: float) -> float:
        return millis / 1000
