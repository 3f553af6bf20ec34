from __future__ import annotations

import pytest

from browser_tool_hub.engine.actions import ActionDescriptor, ActionKind, parse_steps, resolve_kind
from browser_tool_hub.models import LocatorStrategy


def test_parse_steps_accepts_action_alias_and_keeps_order() -> None:
    steps = parse_steps(
        [
            {"action": "navigate", "value": "https://example.com"},
            {"kind": "click", "selector": "#go", "by": "id"},
            {"action": "type_text", "selector": "input", "text": "hello"},
        ]
    )

    assert [step.resolved_kind for step in steps] == [ActionKind.NAVIGATE, ActionKind.CLICK, ActionKind.TYPE]
    assert steps[0].target_url() == "https://example.com"
    assert steps[1].by is LocatorStrategy.ID
    assert steps[2].input_text() == "hello"


def test_parse_steps_turns_bad_items_into_placeholders() -> None:
    steps = parse_steps([{"action": "click", "by": "bogus"}, "not an object", {"selector": "x"}])

    assert len(steps) == 3
    assert all(step.invalid_reason for step in steps)
    assert steps[0].kind == "click"
    assert steps[1].kind == "<invalid>"


def test_parse_steps_requires_list() -> None:
    with pytest.raises(ValueError):
        parse_steps({"action": "click"})


def test_unknown_kind_is_kept_for_reporting() -> None:
    (step,) = parse_steps([{"action": "teleport"}])

    assert step.invalid_reason is None
    assert step.resolved_kind is None


def test_resolve_kind_aliases() -> None:
    assert resolve_kind("execute_script") is ActionKind.EVALUATE
    assert resolve_kind(" Screenshot ") is ActionKind.SCREENSHOT
    assert resolve_kind("unknown") is None


def test_descriptor_is_immutable() -> None:
    step = ActionDescriptor(kind="click", selector="#a")

    with pytest.raises(Exception):
        step.selector = "#b"  # type: ignore[misc]


def test_describe_prefers_description() -> None:
    assert ActionDescriptor(kind="click", selector="#a").describe() == "click on #a"
    assert ActionDescriptor(kind="click", selector="#a", description="Press go").describe() == "Press go"
    assert ActionDescriptor(kind="navigate", url="https://x.test").describe() == "navigate https://x.test"
