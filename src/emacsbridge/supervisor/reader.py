"""Background reader — turns inbound editor traffic into dispatchable chunks.

One reader thread runs per connection. It waits for the socket to become
readable in short poll intervals so that a stop request is noticed at the
next read boundary, then drains everything that is immediately available
into a single chunk.
"""

from __future__ import annotations

import codecs
import logging
import select
import socket
import threading
from typing import Callable

logger = logging.getLogger(__name__)

READ_SIZE = 4096


class CommandReader:
    """Reads inbound commands from a connected socket on a daemon thread.

    Framing:
        "drain": everything that arrives in one burst is one chunk.
        "line": chunks are split on newlines; a trailing partial line waits
            for the rest of its bytes.

    Usage::

        reader = CommandReader(conn, on_chunk=registry.dispatch,
                               on_disconnect=supervisor_callback)
        reader.start()
        # ...
        reader.stop()
    """

    def __init__(
        self,
        conn: socket.socket,
        on_chunk: Callable[[str], object],
        on_disconnect: Callable[[CommandReader], None],
        framing: str = "drain",
        poll_interval: float = 0.2,
    ) -> None:
        """
        Args:
            conn: The accepted client socket. Owned by the supervisor.
            on_chunk: Called with every non-empty chunk, on the reader thread.
            on_disconnect: Called once with this reader when the connection
                ends (end of stream or read error) without a stop request.
            framing: "drain" or "line".
            poll_interval: Seconds between checks of the stop flag.
        """
        if framing not in ("drain", "line"):
            raise ValueError(f"Unknown framing: {framing}")
        self._conn = conn
        self._on_chunk = on_chunk
        self._on_disconnect = on_disconnect
        self._framing = framing
        self._poll_interval = poll_interval
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._partial = ""
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return  # Already running

        self._thread = threading.Thread(target=self._run, daemon=True, name="j2e-command-reader")
        self._thread.start()

    def stop(self) -> None:
        """Ask the reader to finish. Does not wait; see `join`."""
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def _run(self) -> None:
        try:
            while not self._stop_event.is_set():
                if not self._readable(self._poll_interval):
                    continue
                if self._stop_event.is_set():
                    break
                data, eof = self._drain()
                self._emit(self._decoder.decode(data, final=eof))
                if eof:
                    if self._partial.strip():
                        self._dispatch(self._partial)
                    self._partial = ""
                    logger.info("Editor closed the connection")
                    break
        except (OSError, ValueError) as e:
            # ValueError: select() on a socket closed under us
            if not self._stop_event.is_set():
                logger.error("Read from editor failed: %s", e)
        finally:
            if not self._stop_event.is_set():
                self._on_disconnect(self)

    def _readable(self, timeout: float) -> bool:
        readable, _, _ = select.select([self._conn], [], [], timeout)
        return bool(readable)

    def _drain(self) -> tuple[bytes, bool]:
        """Read one block, then everything else that is ready right now."""
        first = self._conn.recv(READ_SIZE)
        if not first:
            return b"", True
        parts = [first]
        while self._readable(0):
            more = self._conn.recv(READ_SIZE)
            if not more:
                return b"".join(parts), True
            parts.append(more)
        return b"".join(parts), False

    def _emit(self, text: str) -> None:
        if self._framing == "drain":
            if text.strip():
                self._dispatch(text)
            elif text:
                logger.debug("Dropping whitespace-only chunk")
            return

        self._partial += text
        while "\n" in self._partial:
            line, self._partial = self._partial.split("\n", 1)
            if line.strip():
                self._dispatch(line)

    def _dispatch(self, chunk: str) -> None:
        try:
            self._on_chunk(chunk)
        except Exception:
            logger.exception("Dispatch of inbound command failed")
