"""Logging handler that writes records into an editor buffer."""

from __future__ import annotations

import logging
import threading

from emacsbridge.channel.command_channel import CommandChannel

DEFAULT_FORMAT = "%(levelname)s: %(message)s"

# Loggers of the channel itself. Their records are never written back into
# the editor: they are produced while the channel is being started or
# written to.
BRIDGE_LOGGER = "emacsbridge"


def _not_from_bridge(record: logging.LogRecord) -> bool:
    name = record.name
    return not (name == BRIDGE_LOGGER or name.startswith(BRIDGE_LOGGER + "."))


class EmacsBufferHandler(logging.Handler):
    """Appends formatted log records to a named editor buffer.

    In compilation mode the buffer is (re)made a compilation buffer before
    each record, so file:line references in messages become clickable.
    Closing the handler kills the buffer if the editor is still up.
    Records from the bridge's own loggers are dropped, so the handler can
    sit on the root logger.
    """

    def __init__(
        self,
        channel: CommandChannel,
        buffer_name: str = "*log*",
        compilation_mode: bool = False,
        level: int = logging.NOTSET,
    ) -> None:
        super().__init__(level)
        self.channel = channel
        self.buffer_name = buffer_name
        self.compilation_mode = compilation_mode
        self.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        self.addFilter(_not_from_bridge)
        self._local = threading.local()

    def emit(self, record: logging.LogRecord) -> None:
        # Records logged while this thread is already writing (from an action
        # handler, say) are dropped
        if getattr(self._local, "busy", False):
            return
        self._local.busy = True
        try:
            msg = self.format(record) + "\n"
            if self.compilation_mode:
                self.channel.create_compilation_buffer(self.buffer_name)
            self.channel.append_to_buffer(self.buffer_name, msg)
        except Exception:
            self.handleError(record)
        finally:
            self._local.busy = False

    def close(self) -> None:
        try:
            if self.channel.alive():
                self.channel.kill_buffer(self.buffer_name)
        finally:
            super().close()
