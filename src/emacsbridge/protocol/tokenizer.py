"""Inbound command tokenizer.

An inbound command is a run of whitespace-separated tokens: bare words or
double-quoted strings. The first token names the command, the rest are its
arguments. Quotes are stripped; nothing inside them is unescaped, so a
backslash sequence like ``\\"`` survives verbatim.
"""

from __future__ import annotations

import re

# A quoted string (backslash escapes are skipped over, not decoded), or any
# other run of non-whitespace. An unterminated quote falls through to the
# bare-word branch instead of failing.
_TOKEN_RE = re.compile(r'\s*(?:"((?:[^"\\]|\\.)*)"|(\S+))', re.DOTALL)


def tokenize(raw: str) -> list[str]:
    """Split a raw inbound line into tokens.

    >>> tokenize('foo "bar baz" 3')
    ['foo', 'bar baz', '3']
    >>> tokenize("   ")
    []
    """
    tokens: list[str] = []
    for match in _TOKEN_RE.finditer(raw):
        quoted, bare = match.groups()
        tokens.append(quoted if quoted is not None else bare)
    return tokens
