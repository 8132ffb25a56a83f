"""Error types raised while bringing the editor channel up.

These never reach facade callers: the supervisor catches them at the
`ensure_running` boundary, logs them, tears the channel down and reports
failure as a plain `False`.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for channel errors.

    Attributes:
        message: Human-readable description of what failed.
        hint: Optional actionable suggestion for the log.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class PortExhausted(BridgeError):
    """No free port was found in the configured scan range."""


class ProcessLaunchFailed(BridgeError):
    """The editor executable could not be started."""


class AcceptFailed(BridgeError):
    """The spawned editor never connected back (or accept errored)."""


class StreamIOError(BridgeError):
    """Read or write failure on an established connection."""
