"""Outbound command formatting.

Every command sent to the editor is an s-expression calling one of the
functions defined by the bootstrap code (`j2e.el`), or a plain elisp form.
"""

from __future__ import annotations

from typing import Iterable

# Passed as the visit mode to open a file read-only.
DISABLED = "disabled"


def quote(text: str) -> str:
    """Render ``text`` as an elisp string literal."""
    return '"' + escape(text) + '"'


def escape(text: str) -> str:
    """Escape the characters that would end an elisp string literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def visit(directory: str, name: str, line: int, col: int, mode: str) -> str:
    return f"(j2e-visit {quote(directory)} {quote(name)} {int(line)} {int(col)} {quote(mode)})"


def kill_buffer(name: str) -> str:
    return f"(j2e-kill-buffer {quote(name)})"


def clear_buffer(name: str) -> str:
    return f"(j2e-clear-buffer {quote(name)})"


def append_to_buffer(name: str, text: str) -> str:
    return f"(j2e-append-to-buffer {quote(name)} {quote(text)})"


def compilation_buffer(name: str) -> str:
    return f"(j2e-compilation-buffer {quote(name)})"


def project_files(root: str, files: Iterable[str]) -> str:
    listed = " ".join(quote(f) for f in files)
    return f"(j2e-project-files {quote(root)} '({listed}))"


def save_buffers_kill() -> str:
    return "(save-buffers-kill-emacs)"


def fill_buffer_open(name: str) -> str:
    """Opening half of a bulk insert; the string literal is left open."""
    return (
        "(save-excursion "
        f"(with-current-buffer (get-buffer-create {quote(name)}) "
        '(goto-char (point-max)) (insert "'
    )


def fill_buffer_close() -> str:
    return '")))'


def bootstrap(app_name: str, host: str, port: int, *, source: str | None = None,
              lisp_dir: str | None = None) -> str:
    """Build the one-shot `--eval` expression that makes the editor connect back.

    Either inlines the bootstrap ``source`` or loads `j2e` from ``lisp_dir``.
    """
    startup = f"(j2e-startup {quote(app_name)} {quote(host)} {int(port)})"
    if lisp_dir:
        return f"(progn (add-to-list 'load-path {quote(lisp_dir)}) (require 'j2e) {startup})"
    if source is None:
        raise ValueError("bootstrap needs either source or lisp_dir")
    # Newline first: the source may end in a comment.
    return f"(progn {source}\n{startup})"
