"""Error taxonomy shared by the session, engine, plugin and dispatch layers."""

from __future__ import annotations

from typing import Iterable


class HubError(RuntimeError):
    """Base class for every error the hub reports to callers."""

    code = "HubError"


class SessionNotFoundError(HubError):
    """Raised when a request addresses a session id that is not open."""

    code = "SessionNotFound"

    def __init__(self, session_id: str, available: Iterable[str] = ()) -> None:
        self.session_id = session_id
        self.available = list(available)
        listing = ", ".join(self.available) or "none"
        super().__init__(
            f"Browser with ID '{session_id}' not found. Available browsers: {listing}"
        )


class DuplicateSessionError(HubError):
    """Raised when opening a session with an id that is already live."""

    code = "DuplicateSessionId"

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(
            f"Browser with ID {session_id} already exists. "
            "Use a different ID or close the existing browser first."
        )


class StepTimeoutError(HubError):
    """Raised when a driver call does not return within its wait timeout."""

    code = "StepTimeout"


class UnknownActionKindError(HubError):
    """Raised for action descriptors whose kind is not recognised."""

    code = "UnknownActionKind"


class DriverError(HubError):
    """Raised when an Automation Driver primitive fails."""

    code = "DriverCallFailed"


class PluginValidationError(HubError):
    """Raised when a plugin candidate has an invalid shape or a taken name."""

    code = "PluginValidationFailed"


class PluginNotFoundError(HubError):
    code = "PluginNotFound"


class PluginHandlerError(HubError):
    """Wraps an exception raised from inside a plugin handler."""

    code = "PluginHandlerThrew"


class ToolNotFoundError(HubError):
    code = "ToolNotFound"


class NameCollisionError(HubError):
    """Raised when two tools resolve to the same qualified name."""

    code = "NameCollisionAtLoad"

    def __init__(self, names: Iterable[str]) -> None:
        self.names = sorted(set(names))
        super().__init__(f"Tool name collision: {', '.join(self.names)}")
