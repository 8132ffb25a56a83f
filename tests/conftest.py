"""Shared fixtures: a fake editor that connects back over loopback."""

import re
import socket
import threading
import time

import pytest

from emacsbridge.config import BridgeConfig

_STARTUP_RE = re.compile(r'\(j2e-startup "[^"]*" "([^"]*)" (\d+)\)')


class FakeEditor:
    """Launcher stand-in for emacs.

    When "launched" it reads host and port from the bootstrap expression,
    connects back and records every byte the host sends.
    """

    def __init__(self, connect: bool = True) -> None:
        self.connect = connect
        self.launches: list[list[str]] = []
        self.sock: socket.socket | None = None
        self._data = b""
        self._cond = threading.Condition()

    def __call__(self, argv: list[str]) -> object:
        self.launches.append(argv)
        if not self.connect:
            return object()
        host, port = _STARTUP_RE.search(argv[2]).groups()
        # The listening socket completes the handshake before accept()
        self.sock = socket.create_connection((host, int(port)), timeout=5)
        self.sock.settimeout(None)
        with self._cond:
            self._data = b""
        threading.Thread(target=self._recv_loop, args=(self.sock,), daemon=True).start()
        return object()

    def _recv_loop(self, sock: socket.socket) -> None:
        while True:
            try:
                chunk = sock.recv(65536)
            except OSError:
                return
            if not chunk:
                return
            with self._cond:
                self._data += chunk
                self._cond.notify_all()

    @property
    def text(self) -> str:
        with self._cond:
            return self._data.decode("utf-8")

    def wait_for(self, expected: str, timeout: float = 5.0) -> bool:
        """Block until ``expected`` has been received."""
        deadline = time.monotonic() + timeout
        with self._cond:
            while expected not in self._data.decode("utf-8"):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def send(self, text: str) -> None:
        self.sock.sendall(text.encode("utf-8"))

    def disconnect(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.sock.close()


@pytest.fixture
def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def config(free_port):
    return BridgeConfig(
        app_name="Tester",
        emacs_path="emacs",
        base_port=free_port,
        port_step=1,
        port_range=20,
        accept_timeout=2.0,
        lisp_dir=None,
        framing="drain",
        poll_interval=0.05,
    )


@pytest.fixture
def editor():
    fake = FakeEditor()
    yield fake
    if fake.sock is not None:
        fake.disconnect()


@pytest.fixture
def silent_editor():
    """An editor that starts but never connects back."""
    return FakeEditor(connect=False)
