"""Channel supervisor — owns the editor process, its socket and the reader.

Bringing the channel up means: bind a listening port on the loopback
interface, launch the editor with a bootstrap expression pointing back at
that port, accept exactly one connection, start the background reader and
replay the start hooks. Any failure on the way tears everything down again
and is reported as False; there is no retry loop, the next call simply
tries once more.

`ensure_running`, `is_alive` and `close` share one re-entrant lock, so the
liveness check and the restart that may follow it are a single critical
section. Writes are serialized by a separate lock.
"""

from __future__ import annotations

import enum
import logging
import socket
import subprocess
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from emacsbridge.config import BridgeConfig
from emacsbridge.errors import (
    AcceptFailed,
    BridgeError,
    PortExhausted,
    ProcessLaunchFailed,
    StreamIOError,
)
from emacsbridge.supervisor.bootstrap import editor_command
from emacsbridge.supervisor.reader import CommandReader

logger = logging.getLogger(__name__)

# Launcher type: argv -> process handle
Launcher = Callable[[list[str]], Any]

READER_JOIN_TIMEOUT = 5.0


class ChannelState(str, enum.Enum):
    UNCONNECTED = "unconnected"
    LISTENING = "listening"
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass(frozen=True)
class ChannelIdentity:
    """What the editor needs to find its way back to us."""

    app_name: str
    host: str
    port: int


def spawn_editor(argv: list[str]) -> subprocess.Popen:
    """Start the editor detached from our stdio and process group."""
    return subprocess.Popen(  # noqa: S603
        argv,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
        close_fds=True,
    )


class ChannelSupervisor:
    """Keeps exactly one connected editor process behind a socket.

    Usage::

        supervisor = ChannelSupervisor(config, on_command=registry.dispatch)
        if supervisor.ensure_running():
            supervisor.write("(message \\"hi\\")")
        supervisor.close()
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        on_command: Callable[[str], object] | None = None,
        launcher: Launcher | None = None,
    ) -> None:
        """
        Args:
            config: Editor path, port range, timeouts. Defaults to env settings.
            on_command: Receives every inbound chunk on the reader thread.
            launcher: Starts the editor from an argv list. Defaults to
                `spawn_editor`; tests substitute a fake editor here.
        """
        self._config = config or BridgeConfig()
        self._on_command = on_command or (lambda chunk: None)
        self._launcher = launcher or spawn_editor
        self._lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._start_hooks: list[str] = []

        self._server: socket.socket | None = None
        self._client: socket.socket | None = None
        self._out: Any = None
        self._write_error = False
        self._process: Any = None
        self._reader: CommandReader | None = None
        self._port: int | None = None
        self._state = ChannelState.UNCONNECTED

    # ── State ──

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def port(self) -> int | None:
        """Port of the current listening socket, None when down."""
        return self._port

    @property
    def identity(self) -> ChannelIdentity | None:
        if self._port is None:
            return None
        return ChannelIdentity(self._config.app_name, self._config.host, self._port)

    @property
    def process(self) -> Any:
        """Handle of the editor process launched for the current channel."""
        return self._process

    @property
    def reader(self) -> CommandReader | None:
        return self._reader

    @property
    def start_hooks(self) -> list[str]:
        with self._lock:
            return list(self._start_hooks)

    def add_start_hook(self, sexp: str) -> None:
        """Send ``sexp`` after every future (re)connection, in registration order."""
        with self._lock:
            self._start_hooks.append(sexp)

    # ── Lifecycle ──

    def open_listening_socket(self) -> int:
        """Bind a listening socket, scanning upward from the base port.

        Returns the bound port. Raises PortExhausted if every candidate in
        the configured range is taken.
        """
        with self._lock:
            if self._server is not None:
                return self._port

            cfg = self._config
            last = cfg.base_port + cfg.port_range
            port = cfg.base_port
            while port < last:
                sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
                try:
                    sock.bind((cfg.host, port))
                    sock.listen(1)
                except (OSError, OverflowError):
                    sock.close()
                    port += cfg.port_step
                    continue
                self._server = sock
                self._port = port
                self._state = ChannelState.LISTENING
                logger.info("Listening for %s on %s:%d", cfg.app_name, cfg.host, port)
                return port

            raise PortExhausted(
                f"No free port in {cfg.base_port}..{last - 1} (step {cfg.port_step})",
                hint="Raise EMACS_BRIDGE_PORT_RANGE or pick another EMACS_BRIDGE_BASE_PORT",
            )

    def is_alive(self) -> bool:
        """True if the channel is connected and no write has failed.

        Not read-only: a dead channel is torn down as a side effect.
        """
        with self._lock:
            if self._server is None or self._out is None or self._write_error:
                self._teardown()
                return False
            return True

    def ensure_running(self) -> bool:
        """Bring the channel up unless it is already alive.

        Returns False (with the channel torn down) if it cannot be brought up.
        """
        with self._lock:
            if self.is_alive():
                return True
            try:
                self._connect()
            except BridgeError as e:
                if e.hint:
                    logger.error("%s (%s)", e.message, e.hint)
                else:
                    logger.error("%s", e.message)
                self._teardown()
                return False
            return True

    def close(self) -> None:
        """Tear the channel down. Safe to call any number of times."""
        with self._lock:
            reader = self._teardown()
        if reader is not None:
            reader.join(timeout=READER_JOIN_TIMEOUT)

    def _connect(self) -> None:
        cfg = self._config
        port = self.open_listening_socket()

        argv = editor_command(cfg.emacs_path, cfg.app_name, cfg.host, port, cfg.lisp_dir)
        try:
            self._process = self._launcher(argv)
        except OSError as e:
            raise ProcessLaunchFailed(
                f"Could not start {cfg.emacs_path}: {e}",
                hint="Set EMACS_BRIDGE_EMACS to the editor executable",
            ) from e
        logger.info("Started %s, waiting for it on port %d", cfg.emacs_path, port)

        self._server.settimeout(cfg.accept_timeout)
        try:
            conn, _ = self._server.accept()
        except socket.timeout as e:
            raise AcceptFailed(
                f"Accept timed out after {cfg.accept_timeout}s: {cfg.host}:{port}",
                hint="The editor started but never connected back",
            ) from e
        except OSError as e:
            raise AcceptFailed(f"Accept failed: {cfg.host}:{port}: {e}") from e

        conn.settimeout(None)
        self._client = conn
        self._out = conn.makefile("w", encoding="utf-8", newline="")
        self._write_error = False
        self._reader = CommandReader(
            conn,
            on_chunk=self._on_command,
            on_disconnect=self._on_reader_disconnect,
            framing=cfg.framing,
            poll_interval=cfg.poll_interval,
        )
        self._reader.start()
        self._state = ChannelState.CONNECTED
        logger.info("%s connected on port %d", cfg.app_name, port)

        if self._start_hooks:
            self.write_all(list(self._start_hooks))

    def _on_reader_disconnect(self, reader: CommandReader) -> None:
        with self._lock:
            # A reader from an earlier connection must not kill the current one
            if reader is not self._reader:
                return
            self._teardown()

    def _teardown(self) -> CommandReader | None:
        """Release everything in order. Caller holds the lock.

        Returns the stopped reader so `close` can join it outside the lock.
        """
        reader = self._reader
        had_resources = any(
            r is not None for r in (reader, self._out, self._client, self._server)
        )
        self._reader = None
        if reader is not None:
            reader.stop()

        if self._out is not None:
            try:
                self._out.close()
            except (OSError, ValueError) as e:
                logger.warning("Closing editor output failed: %s", e)
            self._out = None

        if self._client is not None:
            try:
                self._client.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # already disconnected
            try:
                self._client.close()
            except OSError as e:
                logger.warning("Closing editor connection failed: %s", e)
            self._client = None

        if self._server is not None:
            try:
                self._server.close()
            except OSError as e:
                logger.warning("Closing listening socket failed: %s", e)
            self._server = None

        self._process = None
        self._port = None
        self._write_error = False
        if had_resources:
            self._state = ChannelState.CLOSED
            logger.info("Channel to %s closed", self._config.app_name)
        return reader

    # ── Output ──

    def write(self, text: str) -> bool:
        """Write one command and flush. False if there is no usable connection."""
        return self.write_all([text])

    def write_all(self, parts: Iterable[str]) -> bool:
        """Write ``parts`` back to back under the write lock, then flush.

        ``parts`` may be a generator; no other writer's bytes can interleave
        with it. A failure marks the channel dead for the next `is_alive`.
        """
        # Nothing is logged while the write lock is held: a handler that
        # writes into the editor would block on it.
        sent: list[str] = []
        error: StreamIOError | None = None
        with self._write_lock:
            out = self._out
            if out is None:
                return False
            try:
                self._write_parts(out, parts, sent)
            except StreamIOError as e:
                error = e
                # Only the stream that failed is marked; a concurrent
                # teardown may already have replaced it.
                if self._out is out:
                    self._write_error = True
        for part in sent:
            logger.debug("-> %s", part[:200])
        if error is not None:
            logger.error("%s", error.message)
            return False
        return True

    @staticmethod
    def _write_parts(out: Any, parts: Iterable[str], sent: list[str]) -> None:
        try:
            for part in parts:
                out.write(part)
                sent.append(part)
            out.flush()
        except (OSError, ValueError) as e:
            # ValueError: the stream was closed by a concurrent teardown
            raise StreamIOError(f"Write to editor failed: {e}") from e
