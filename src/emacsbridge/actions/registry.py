"""Action registry — maps inbound command names to handlers.

Actions are simple: a name and a handler taking the command's arguments as
positional strings. The background reader hands every inbound chunk to
`ActionRegistry.dispatch`, which tokenizes it and runs the matching handler.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from emacsbridge.protocol.tokenizer import tokenize

logger = logging.getLogger(__name__)

Handler = Callable[..., None]


@dataclass(frozen=True)
class Action:
    """A command the editor can trigger in the host application.

    Attributes:
        name: Command name, the first token of the inbound line.
        handler: Called with the remaining tokens as positional arguments.
    """

    name: str
    handler: Handler


class ActionRegistry:
    """Collects actions and dispatches inbound commands.

    Usage:
        registry = ActionRegistry()
        registry.register("goto", lambda path, line: ...)
        registry.dispatch('goto "/tmp/a.txt" 12')
    """

    def __init__(self) -> None:
        self._actions: dict[str, Action] = {}
        self._lock = threading.Lock()

    def register(self, name: str, handler: Handler) -> None:
        """Register a handler. Re-registering a name replaces the old handler."""
        with self._lock:
            self._actions[name] = Action(name=name, handler=handler)

    def get(self, name: str) -> Action | None:
        """Get an action by name, or None."""
        with self._lock:
            return self._actions.get(name)

    def dispatch(self, raw: str) -> bool:
        """Tokenize ``raw`` and run the handler for its first token.

        Returns True if a handler ran to completion. Empty input, unknown
        commands and handler failures are logged and return False; this
        never raises.
        """
        tokens = tokenize(raw)
        if not tokens:
            logger.debug("Dropping empty command")
            return False

        name, args = tokens[0], tokens[1:]
        action = self.get(name)
        if action is None:
            logger.warning("No such action: %s", name)
            return False
        try:
            action.handler(*args)
        except Exception:
            logger.exception("Action '%s' failed", name)
            return False
        return True

    @property
    def action_names(self) -> list[str]:
        """List registered action names."""
        with self._lock:
            return list(self._actions.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._actions)
