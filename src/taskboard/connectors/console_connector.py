# src/taskboard/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _read_line(prompt: str) -> asyncio.Future[str]:
    """Read one line of input in a daemon thread, so Ctrl-C never waits for Enter at shutdown."""
    loop = asyncio.get_running_loop()
    fut: asyncio.Future[str] = loop.create_future()

    def deliver(line: str | None, exc: BaseException | None) -> None:
        if fut.done():
            return
        if exc is not None:
            fut.set_exception(exc)
        else:
            fut.set_result(line or "")

    def reader() -> None:
        try:
            line, exc = input(prompt), None
        except Exception as e:  # EOFError included
            line, exc = None, e
        with contextlib.suppress(RuntimeError):
            # Loop already closed: nobody is waiting for this line.
            loop.call_soon_threadsafe(deliver, line, exc)

    threading.Thread(target=reader, name="console-input", daemon=True).start()
    return fut


def _prompt(state: AppState) -> str:
    who = state.session.username if state.session else "guest"
    return f"{who}> "


async def run_console_loop(state: AppState) -> None:
    """
    Interactive board console.

    input() runs in a daemon thread so realtime reloads keep running on the
    event loop while the user is typing.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /login <user> <password>, then /help for commands. Use /exit to quit.\n")

    while True:
        prompt = _prompt(state)
        try:
            user_input = (await _read_line(prompt)).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        # Don't leave the password on screen.
        shown = "/login ****" if user_input.lower().startswith("/login ") else user_input
        _rewrite_prev_line(f"[{_ts_local()}] {prompt}{shown}")

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Use /help to list them.")
            continue

        try:
            response = await command_registry.handle(state, user_input, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is not None:
            _print_ts(response)

    logger.info("Console connector finished.")
