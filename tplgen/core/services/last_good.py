"""
Last-good cache — most recent successfully generated output per unit.

Keyed by template path. Written only after render, format and write all
succeed; read when a later attempt fails so the previous output can be
put back. In-memory for the session, never persisted.
"""

from __future__ import annotations

import threading
from pathlib import Path


class LastGoodCache:
    """Thread-safe map of template path → last good formatted output."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[Path, str] = {}

    def get(self, template_path: Path) -> str | None:
        with self._lock:
            return self._entries.get(template_path)

    def remember(self, template_path: Path, content: str) -> None:
        with self._lock:
            self._entries[template_path] = content

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, template_path: object) -> bool:
        with self._lock:
            return template_path in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
