"""Configuration — editor executable, port scan range and channel settings.

Supports two modes:
1. Module-level constants (env-var driven, `.env` loaded via python-dotenv)
2. JSON config file at ~/.emacs-bridge/config.json (for per-user setups)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any

from dotenv import load_dotenv

# Load .env from project root if present
load_dotenv()


# Malformed numeric env values, reported by BridgeConfig.validate()
ENV_ERRORS: list[str] = []


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        ENV_ERRORS.append(f"{name}='{raw}' is not an integer, using {default}")
        return default


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        ENV_ERRORS.append(f"{name}='{raw}' is not a number, using {default}")
        return default
    return value if value > 0 else None


# ── Editor Settings ──

EMACS_PATH = os.getenv("EMACS_BRIDGE_EMACS", "emacs")
APP_NAME = os.getenv("EMACS_BRIDGE_APP_NAME", "emacs-bridge")
LISP_DIR = os.getenv("EMACS_BRIDGE_LISP_DIR", "") or None

# ── Channel Settings ──

# Loopback only: the channel is unauthenticated.
HOST = "127.0.0.1"
BASE_PORT = _env_int("EMACS_BRIDGE_BASE_PORT", 4444)
PORT_STEP = _env_int("EMACS_BRIDGE_PORT_STEP", 20)
PORT_RANGE = _env_int("EMACS_BRIDGE_PORT_RANGE", 1000)
ACCEPT_TIMEOUT = _env_float("EMACS_BRIDGE_ACCEPT_TIMEOUT", 30.0)
FRAMING = os.getenv("EMACS_BRIDGE_FRAMING", "drain")
POLL_INTERVAL = 0.2

CONFIG_DIR = os.path.expanduser(os.getenv("EMACS_BRIDGE_HOME", "~/.emacs-bridge"))

FRAMING_MODES = ("drain", "line")


@dataclass
class BridgeConfig:
    """Full channel configuration.

    Provides defaults for all settings. Can be constructed from a JSON
    file, from a dict, or with no arguments (env-var driven defaults).
    """

    app_name: str = field(default_factory=lambda: APP_NAME)
    emacs_path: str = field(default_factory=lambda: EMACS_PATH)
    base_port: int = field(default_factory=lambda: BASE_PORT)
    port_step: int = field(default_factory=lambda: PORT_STEP)
    port_range: int = field(default_factory=lambda: PORT_RANGE)
    accept_timeout: float | None = field(default_factory=lambda: ACCEPT_TIMEOUT)
    lisp_dir: str | None = field(default_factory=lambda: LISP_DIR)
    framing: str = field(default_factory=lambda: FRAMING)
    poll_interval: float = POLL_INTERVAL

    @property
    def host(self) -> str:
        return HOST

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BridgeConfig:
        """Build config from a parsed JSON dict."""
        defaults = cls()
        timeout = data.get("accept_timeout", defaults.accept_timeout)
        if timeout is not None and float(timeout) <= 0:
            timeout = None
        lisp_dir = data.get("lisp_dir", defaults.lisp_dir)
        return cls(
            app_name=data.get("app_name", defaults.app_name),
            emacs_path=data.get("emacs_path", defaults.emacs_path),
            base_port=int(data.get("base_port", defaults.base_port)),
            port_step=int(data.get("port_step", defaults.port_step)),
            port_range=int(data.get("port_range", defaults.port_range)),
            accept_timeout=float(timeout) if timeout is not None else None,
            lisp_dir=os.path.expanduser(lisp_dir) if lisp_dir else None,
            framing=data.get("framing", defaults.framing),
            poll_interval=float(data.get("poll_interval", defaults.poll_interval)),
        )

    @classmethod
    def from_file(cls, path: str) -> BridgeConfig:
        """Load config from a JSON file. Returns defaults if file doesn't exist."""
        if not os.path.exists(path):
            return cls()

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def load(cls, config_dir: str | None = None) -> BridgeConfig:
        """Load config from the standard location.

        Checks:
        1. EMACS_BRIDGE_CONFIG env var
        2. <config_dir>/config.json
        3. Falls back to defaults
        """
        config_path = os.getenv("EMACS_BRIDGE_CONFIG")
        if config_path and os.path.exists(config_path):
            return cls.from_file(config_path)

        base = config_dir or CONFIG_DIR
        return cls.from_file(os.path.join(base, "config.json"))

    def validate(self) -> list[str]:
        """Validate the config and return a list of warnings (empty = valid)."""
        warnings: list[str] = list(ENV_ERRORS)

        if not self.app_name:
            warnings.append("No app_name specified")
        if '"' in self.app_name or "\\" in self.app_name:
            warnings.append(f"app_name '{self.app_name}' must not contain quotes or backslashes")
        if not self.emacs_path:
            warnings.append("No emacs_path specified")
        if not 0 < self.base_port < 65536:
            warnings.append(f"base_port {self.base_port} is not a valid TCP port")
        if self.port_step <= 0:
            warnings.append("port_step must be positive")
        if self.port_range <= 0:
            warnings.append("port_range must be positive")
        elif self.base_port + self.port_range > 65536:
            warnings.append("port scan range extends past 65535")
        if self.lisp_dir and not os.path.exists(os.path.join(self.lisp_dir, "j2e.el")):
            warnings.append(f"lisp_dir '{self.lisp_dir}' does not contain j2e.el")
        if self.framing not in FRAMING_MODES:
            warnings.append(f"Unknown framing '{self.framing}' (expected one of {', '.join(FRAMING_MODES)})")
        if self.poll_interval <= 0:
            warnings.append("poll_interval must be positive")

        return warnings
