"""Shared models used across the browser tool hub."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field


class LocatorStrategy(str, enum.Enum):
    """Ways a caller may address an element on the page."""

    CSS = "css"
    XPATH = "xpath"
    ID = "id"
    NAME = "name"
    CLASS_NAME = "className"
    TAG_NAME = "tagName"


class ElementAction(str, enum.Enum):
    """Interactions the driver performs on a located element."""

    CLICK = "click"
    DOUBLE_CLICK = "double_click"
    RIGHT_CLICK = "right_click"
    HOVER = "hover"
    TYPE = "type"
    SELECT = "select"
    WAIT = "wait"


@dataclass(frozen=True)
class Locator:
    """Element address understood by the Automation Driver."""

    selector: str
    by: LocatorStrategy = LocatorStrategy.CSS

    def __str__(self) -> str:
        return f"{self.selector} ({self.by.value})"


class BrowserOptions(BaseModel):
    """Launch options for a single browser instance."""

    headless: bool = False
    width: int = 1280
    height: int = 720
    x: Optional[int] = None
    y: Optional[int] = None
    user_agent: Optional[str] = None
    proxy: Optional[str] = Field(default=None, description="Proxy server as host:port")
    kiosk: bool = False


class ToolResult(BaseModel):
    """Envelope returned for every tool invocation, successful or not."""

    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[str] = Field(
        default=None,
        description="Taxonomy name of the failure, when success is false.",
    )

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ToolResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def failure(cls, message: str, *, error: Optional[str] = None, data: Any = None) -> "ToolResult":
        return cls(success=False, message=message, data=data, error=error)
