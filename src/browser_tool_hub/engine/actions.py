"""Action descriptors accepted by the action sequence engine."""

from __future__ import annotations

import enum
from typing import Any, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..models import LocatorStrategy


class ActionKind(str, enum.Enum):
    """Closed set of steps a sequence may contain."""

    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    EVALUATE = "evaluate"
    SCREENSHOT = "screenshot"
    HOVER = "hover"
    DOUBLE_CLICK = "double_click"
    RIGHT_CLICK = "right_click"
    WAIT_FOR_ELEMENT = "wait_for_element"
    SELECT = "select"
    DRAG_AND_DROP = "drag_and_drop"
    WAIT = "wait"


_KIND_ALIASES: dict[str, ActionKind] = {
    "navigate_to": ActionKind.NAVIGATE,
    "type_text": ActionKind.TYPE,
    "execute_script": ActionKind.EVALUATE,
    "take_screenshot": ActionKind.SCREENSHOT,
    "capture": ActionKind.SCREENSHOT,
    "click_element": ActionKind.CLICK,
    "hover_element": ActionKind.HOVER,
    "double_click_element": ActionKind.DOUBLE_CLICK,
    "right_click_element": ActionKind.RIGHT_CLICK,
    "select_option": ActionKind.SELECT,
    "drag": ActionKind.DRAG_AND_DROP,
}

ELEMENT_KINDS = frozenset(
    {
        ActionKind.CLICK,
        ActionKind.TYPE,
        ActionKind.HOVER,
        ActionKind.DOUBLE_CLICK,
        ActionKind.RIGHT_CLICK,
        ActionKind.WAIT_FOR_ELEMENT,
        ActionKind.SELECT,
        ActionKind.DRAG_AND_DROP,
    }
)


def resolve_kind(name: str) -> Optional[ActionKind]:
    """Map an action name (or one of its aliases) to an :class:`ActionKind`."""

    normalized = name.strip().lower()
    try:
        return ActionKind(normalized)
    except ValueError:
        return _KIND_ALIASES.get(normalized)


class ActionDescriptor(BaseModel):
    """One step of an ordered action sequence.

    ``timeout`` is expressed in milliseconds, like the tool arguments it is
    parsed from.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    kind: str = Field(validation_alias=AliasChoices("kind", "action"))
    selector: Optional[str] = None
    by: LocatorStrategy = LocatorStrategy.CSS
    target: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("target", "targetSelector"),
    )
    target_by: LocatorStrategy = Field(
        default=LocatorStrategy.CSS,
        validation_alias=AliasChoices("target_by", "targetBy"),
    )
    value: Any = None
    text: Optional[str] = None
    url: Optional[str] = None
    script: Optional[str] = None
    args: list[Any] = Field(default_factory=list)
    timeout: Optional[float] = Field(default=None, ge=0)
    full_page: bool = Field(
        default=False,
        validation_alias=AliasChoices("full_page", "fullPage", "checked"),
    )
    filename: Optional[str] = None
    description: Optional[str] = None
    invalid_reason: Optional[str] = Field(default=None, exclude=True)

    @classmethod
    def invalid(cls, raw: Any, reason: str) -> "ActionDescriptor":
        """Build a placeholder for input that could not be parsed."""

        kind = "<invalid>"
        if isinstance(raw, Mapping):
            candidate = raw.get("action") or raw.get("kind")
            if isinstance(candidate, str) and candidate:
                kind = candidate
        return cls(kind=kind, invalid_reason=reason)

    @property
    def resolved_kind(self) -> Optional[ActionKind]:
        return resolve_kind(self.kind)

    def target_url(self) -> Optional[str]:
        if self.url:
            return self.url
        if isinstance(self.value, str) and self.value:
            return self.value
        return None

    def input_text(self) -> Optional[str]:
        if self.text is not None:
            return self.text
        if self.value is not None:
            return str(self.value)
        return None

    def source(self) -> Optional[str]:
        if self.script:
            return self.script
        if isinstance(self.value, str) and self.value:
            return self.value
        return None

    def describe(self) -> str:
        if self.description:
            return self.description
        if self.selector:
            return f"{self.kind} on {self.selector}"
        target = self.target_url()
        if target and self.resolved_kind == ActionKind.NAVIGATE:
            return f"{self.kind} {target}"
        return self.kind


def parse_steps(raw_steps: Any) -> list[ActionDescriptor]:
    """Convert caller input into descriptors, one per input item.

    Items that fail validation become placeholder descriptors so the engine
    reports them as failed steps in their original position.
    """

    if not isinstance(raw_steps, (list, tuple)):
        raise ValueError("actions must be a list of action objects")
    steps: list[ActionDescriptor] = []
    for raw in raw_steps:
        if isinstance(raw, ActionDescriptor):
            steps.append(raw)
            continue
        if not isinstance(raw, Mapping):
            steps.append(ActionDescriptor.invalid(raw, "Action must be an object"))
            continue
        try:
            steps.append(ActionDescriptor.model_validate(dict(raw)))
        except ValidationError as exc:
            steps.append(ActionDescriptor.invalid(raw, _first_error(exc)))
    return steps


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
