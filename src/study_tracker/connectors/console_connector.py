# src/study_tracker/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import ConsoleSession
from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tracker.users import find_user

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _initial_session(state: AppState) -> ConsoleSession:
    session = ConsoleSession()
    username = getattr(state.settings, "console_user", None)
    if not username:
        return session
    user = find_user(state, username)
    if user is None:
        logger.warning("Configured console user %r does not exist; starting logged out.", username)
        return session
    session.user_id = user.id
    session.username = user.username
    return session


def run_console_loop(state: AppState) -> None:
    session = _initial_session(state)
    logger.info("Console connector started (user=%s).", session.username)
    _print_ts("[CONSOLE] Use /help for commands, /register or /login to pick a user, /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate user-visible feedback before a command's reply.
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        prompt = f"{session.username or 'guest'}> "
        try:
            user_input = input(prompt).strip()
            _rewrite_prev_line(f"[{_ts_local()}] {prompt}{user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = command_registry.handle(state, user_input, session, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            reply = "Commands start with '/'. Use /help to list them."

        _print_ts(reply)

    logger.info("Console connector finished.")
