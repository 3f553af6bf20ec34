"""Persistence of screenshots captured by browser sessions."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)


class ArtifactStore:
    """Write captured screenshots below a per-session directory."""

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = base_dir
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def save_screenshot(self, session_id: str, content: bytes, filename: Optional[str] = None) -> Path:
        """Store ``content`` and return the path it was written to."""

        if not filename:
            filename = self._next_name(session_id)
        elif not filename.endswith(".png"):
            filename = f"{filename}.png"
        path = self.resolve(session_id, filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        LOGGER.debug("Wrote screenshot %s", path)
        return path

    def list_screenshots(self, session_id: str) -> list[str]:
        directory = self._base_dir / session_id
        if not directory.exists():
            return []
        return sorted(path.name for path in directory.glob("*.png"))

    def resolve(self, session_id: str, name: str) -> Path:
        """Return the path for ``name``, refusing names outside the session directory."""

        candidate = Path(name)
        if candidate.is_absolute():
            raise ValueError("Screenshot name must be relative")
        root = self._base_dir.resolve()
        base_dir = (root / session_id).resolve()
        resolved = (base_dir / candidate).resolve()
        try:
            base_dir.relative_to(root)
            resolved.relative_to(base_dir)
        except ValueError as exc:
            raise ValueError("Screenshot name escapes artifact directory") from exc
        return resolved

    def _next_name(self, session_id: str) -> str:
        with self._lock:
            index = self._counters.get(session_id, 0)
            self._counters[session_id] = index + 1
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        return f"screenshot-{stamp}-{index:04d}.png"
