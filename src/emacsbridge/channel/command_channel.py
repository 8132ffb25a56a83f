"""Command channel — the public face of the editor connection.

Composes the supervisor (process, socket, reader), the action registry
(inbound commands) and the buffering store (coalesced output). Every
operation first makes sure the editor is running and returns False instead
of raising when it cannot be reached.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Iterator, TextIO

from emacsbridge.actions.registry import ActionRegistry, Handler
from emacsbridge.buffering.store import BufferingStore
from emacsbridge.config import BridgeConfig
from emacsbridge.protocol import sexp
from emacsbridge.supervisor.supervisor import ChannelSupervisor, Launcher

logger = logging.getLogger(__name__)

FILL_CHUNK = 8192


class CommandChannel:
    """Drives one external editor as a display and command surface.

    Usage::

        channel = CommandChannel(BridgeConfig(app_name="MyTool"))
        channel.register_action("goto", on_goto)
        channel.add_start_hook("(my-tool-mode 1)")
        channel.visit_file_position("/src/main.c", 12, 0)
        channel.start_buffering("*compilation*")
        for line in compiler_output:
            channel.append_to_buffer("*compilation*", line)
        channel.flush_buffer("*compilation*")
        channel.close()
    """

    def __init__(self, config: BridgeConfig | None = None, launcher: Launcher | None = None) -> None:
        self._config = config or BridgeConfig()
        self._actions = ActionRegistry()
        self._buffering = BufferingStore()
        self._supervisor = ChannelSupervisor(
            self._config,
            on_command=self._actions.dispatch,
            launcher=launcher,
        )

    @property
    def supervisor(self) -> ChannelSupervisor:
        return self._supervisor

    @property
    def actions(self) -> ActionRegistry:
        return self._actions

    @property
    def buffering(self) -> BufferingStore:
        return self._buffering

    # ── Lifecycle ──

    def start_emacs(self) -> bool:
        """Bring the editor up now instead of on the first command."""
        return self._supervisor.ensure_running()

    def alive(self) -> bool:
        return self._supervisor.is_alive()

    def close(self) -> None:
        self._supervisor.close()

    def register_action(self, name: str, handler: Handler) -> None:
        """Run ``handler(*args)`` whenever the editor sends ``name args...``."""
        self._actions.register(name, handler)

    def add_start_hook(self, sexp_string: str) -> None:
        """Send ``sexp_string`` after every future (re)start of the editor,
        e.g. to load a major mode for the application."""
        self._supervisor.add_start_hook(sexp_string)

    # ── Commands ──

    def send_raw(self, sexp_string: str) -> bool:
        """Send an s-expression verbatim."""
        if not self._supervisor.ensure_running():
            return False
        return self._supervisor.write(sexp_string)

    def visit_file_position(self, path: str, line: int, col: int, mode: str = "") -> bool:
        """Show ``path`` at ``line`` (1-based) and ``col`` (0-based).

        If ``mode`` is "disabled" the file is opened read-only.
        """
        full = os.path.abspath(path)
        return self.send_raw(sexp.visit(os.path.dirname(full), os.path.basename(full), line, col, mode))

    def exit_emacs(self) -> bool:
        """Ask the editor to save and quit. Nothing to do if it isn't running."""
        if not self._supervisor.is_alive():
            return True
        return self.send_raw(sexp.save_buffers_kill())

    def kill_buffer(self, name: str) -> bool:
        return self.send_raw(sexp.kill_buffer(name))

    def clear_buffer(self, name: str) -> bool:
        return self.send_raw(sexp.clear_buffer(name))

    def create_compilation_buffer(self, name: str) -> bool:
        return self.send_raw(sexp.compilation_buffer(name))

    def append_to_buffer(self, name: str, text: str) -> bool:
        """Append ``text`` to buffer ``name``, or hold it back while buffering."""
        if self._buffering.append(name, text):
            return True
        return self.send_raw(sexp.append_to_buffer(name, text))

    def mark_as_project_files(self, root: str, files: Iterable[str]) -> bool:
        return self.send_raw(sexp.project_files(root, [os.path.abspath(f) for f in files]))

    def fill_buffer(self, name: str, stream: TextIO) -> bool:
        """Insert everything readable from ``stream`` at the end of buffer ``name``.

        The text goes out as one command, written in pieces under the write
        lock so the stream never has to be held in memory.
        """
        if not self._supervisor.ensure_running():
            return False
        errors: list[OSError] = []
        ok = self._supervisor.write_all(_fill_parts(name, stream, errors))
        for e in errors:
            logger.error("Reading text for buffer %s failed: %s", name, e)
        return ok

    # ── Buffering ──

    def start_buffering(self, name: str) -> None:
        """Hold back appends to ``name`` until `flush_buffer`."""
        self._buffering.start(name)

    def flush_buffer(self, name: str) -> bool:
        """Send everything held back for ``name`` as a single append."""
        text = self._buffering.pop(name)
        if text is None:
            return True
        return self.send_raw(sexp.append_to_buffer(name, text))


def _fill_parts(name: str, stream: TextIO, errors: list[OSError]) -> Iterator[str]:
    # Runs under the write lock, so read errors are collected, not logged
    yield sexp.fill_buffer_open(name)
    try:
        for chunk in iter(lambda: stream.read(FILL_CHUNK), ""):
            yield sexp.escape(chunk)
    except OSError as e:
        errors.append(e)
    # Always close the form so the wire stays well formed
    yield sexp.fill_buffer_close()
