"""Entry point for the emacs-bridge command line tool.

Starts an editor connected to this process and turns stdin lines into
commands, which makes it easy to try the channel by hand:

    <PATH[:LINE[:COL]]   visit a file position
    >TEXT                insert TEXT at the end of the *test* buffer
    !                    toggle buffering of *test* (start / flush)
    +TEXT                append TEXT to *test* (subject to buffering)
    anything else        sent to the editor verbatim

Commands sent back by the editor with `(j2e-send 'message ...)` are printed.
"""

from __future__ import annotations

import argparse
import io
import logging
import sys

from emacsbridge.channel.command_channel import CommandChannel
from emacsbridge.config import BridgeConfig

TEST_BUFFER = "*test*"


def _parse_position(text: str) -> tuple[str, int, int]:
    """Split "path:line:col" (line and col optional) into its parts."""
    path, line, col = text, 1, 0
    head, sep, tail = path.rpartition(":")
    if sep and tail.isdigit():
        path, line = head, int(tail)
        head, sep, tail = path.rpartition(":")
        if sep and tail.isdigit():
            path, line, col = head, int(tail), line
    return path, line, col


def handle_line(channel: CommandChannel, line: str) -> bool:
    """Run one interactive command. Returns the channel call's result."""
    if line.startswith("<"):
        path, lineno, col = _parse_position(line[1:].strip())
        return channel.visit_file_position(path, lineno, col)
    if line.startswith(">"):
        return channel.fill_buffer(TEST_BUFFER, io.StringIO(line[1:] + "\n"))
    if line.startswith("+"):
        return channel.append_to_buffer(TEST_BUFFER, line[1:] + "\n")
    if line.strip() == "!":
        if channel.buffering.is_buffering(TEST_BUFFER):
            return channel.flush_buffer(TEST_BUFFER)
        channel.start_buffering(TEST_BUFFER)
        return True
    return channel.send_raw(line)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Drive an Emacs process from the terminal")
    parser.add_argument("--config", "-c", help="Path to config.json file")
    parser.add_argument("--emacs", help="Editor executable (default: emacs)")
    parser.add_argument("--app-name", help="Name shown in the editor")
    parser.add_argument("--port", type=int, help="First port to try")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log channel traffic")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.config:
        config = BridgeConfig.from_file(args.config)
    else:
        # Auto-discover ~/.emacs-bridge/config.json (or EMACS_BRIDGE_CONFIG env)
        config = BridgeConfig.load()
    if args.emacs:
        config.emacs_path = args.emacs
    if args.app_name:
        config.app_name = args.app_name
    if args.port:
        config.base_port = args.port

    errors = config.validate()
    if errors:
        print("Config errors:")
        for e in errors:
            print(f"  - {e}")
        return 1

    channel = CommandChannel(config)
    channel.register_action("message", lambda *words: print(f"[{config.app_name}] {' '.join(words)}"))

    if not channel.start_emacs():
        print(f"Could not start {config.emacs_path}")
        return 1
    print(f"{config.app_name} connected on port {channel.supervisor.port}. Ctrl-D to quit.")

    try:
        for line in sys.stdin:
            line = line.rstrip("\n")
            if not line:
                continue
            if not handle_line(channel, line):
                print("  (editor not reachable)")
    except KeyboardInterrupt:
        pass
    finally:
        channel.exit_emacs()
        channel.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
