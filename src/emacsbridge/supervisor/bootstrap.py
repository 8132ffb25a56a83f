"""Bootstrap command for the spawned editor.

The editor is started as ``emacs --eval <expr>``; the expression carries the
channel identity so the editor can connect back to the listening port.
"""

from __future__ import annotations

import functools
import os

from emacsbridge.protocol import sexp

LISP_FILE = "j2e.el"


def bundled_lisp_path() -> str:
    """Path of the `j2e.el` shipped with this package."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), LISP_FILE)


@functools.lru_cache(maxsize=1)
def load_bundled_lisp() -> str:
    with open(bundled_lisp_path(), "r", encoding="utf-8") as f:
        return f.read()


def build_bootstrap(app_name: str, host: str, port: int, lisp_dir: str | None = None) -> str:
    """Return the `--eval` expression for a channel on ``host:port``.

    With ``lisp_dir`` the editor loads `j2e` from there; otherwise the
    bundled source is inlined into the expression.
    """
    if lisp_dir:
        return sexp.bootstrap(app_name, host, port, lisp_dir=lisp_dir)
    return sexp.bootstrap(app_name, host, port, source=load_bundled_lisp())


def editor_command(emacs_path: str, app_name: str, host: str, port: int,
                   lisp_dir: str | None = None) -> list[str]:
    """Full argv used to launch the editor."""
    return [emacs_path, "--eval", build_bootstrap(app_name, host, port, lisp_dir)]
