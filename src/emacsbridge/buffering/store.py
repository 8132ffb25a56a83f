"""Per-buffer output coalescing.

High-volume writers (compiler output, log streams) would otherwise cost one
round trip per line. While a buffer name has a pending entry here, appends
to it accumulate locally; flushing removes the entry and hands back the
whole text so it can be sent as a single command.
"""

from __future__ import annotations

import threading


class BufferingStore:
    """Pending text per editor buffer name.

    Example::

        store = BufferingStore()
        store.start("*compilation*")
        store.append("*compilation*", "line 1\\n")   # True: held back
        text = store.pop("*compilation*")           # "line 1\\n"
    """

    def __init__(self) -> None:
        self._pending: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    def start(self, name: str) -> None:
        """Begin buffering ``name``. A no-op if it is already buffering."""
        with self._lock:
            self._pending.setdefault(name, [])

    def append(self, name: str, text: str) -> bool:
        """Hold ``text`` back if ``name`` is buffering.

        Returns False when there is no pending entry, meaning the caller
        must send the text immediately.
        """
        with self._lock:
            parts = self._pending.get(name)
            if parts is None:
                return False
            parts.append(text)
            return True

    def pop(self, name: str) -> str | None:
        """End buffering ``name`` and return its accumulated text, or None."""
        with self._lock:
            parts = self._pending.pop(name, None)
        if parts is None:
            return None
        return "".join(parts)

    def is_buffering(self, name: str) -> bool:
        with self._lock:
            return name in self._pending

    @property
    def active_buffers(self) -> list[str]:
        """Return buffer names that currently hold back output."""
        with self._lock:
            return list(self._pending.keys())
