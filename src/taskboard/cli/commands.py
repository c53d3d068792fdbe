# src/taskboard/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from ..board.board_models import COLUMNS, ColumnId, Subtask, SubtaskUpdate, Task, TaskUpdate, display_subtasks, progress_of
from ..board.board_store import BoardStore
from ..core.errors import BoardError, NotFoundError, ValidationError
from ..core.state import AppState
from .bootstrap import login, logout

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Board errors (validation, sync, suggestion, auth) become the reply text;
        anything else propagates to the caller.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return await h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return await h2(state, args)
        except BoardError as e:
            logger.debug("/%s failed: %s", name, e)
            return f"[{e.__class__.__name__}] {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- reference resolution ----

def board_order(board: BoardStore) -> list[Task]:
    """Tasks in the order /board prints them (column by column)."""
    grouped = board.tasks_by_column()
    return [t for col in COLUMNS for t in grouped[col.id]]


def resolve_task(board: BoardStore, ref: str) -> Task:
    """1-based position from /board, or a unique id prefix."""
    tasks = board_order(board)
    if ref.isdigit():
        i = int(ref)
        if 1 <= i <= len(tasks):
            return tasks[i - 1]
        raise NotFoundError(f"No task #{ref}.")

    matches = [t for t in tasks if t.id.startswith(ref.lower())]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NotFoundError(f"No task with id {ref}.")
    raise ValidationError(f"Ambiguous task id prefix: {ref}")


def resolve_subtask(task: Task, ref: str) -> Subtask:
    """1-based position as printed under the task, or a unique id prefix."""
    subs = display_subtasks(task)
    if ref.isdigit():
        i = int(ref)
        if 1 <= i <= len(subs):
            return subs[i - 1]
        raise NotFoundError(f"No subtask #{ref} in task {task.title!r}.")

    matches = [s for s in subs if s.id.startswith(ref.lower())]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NotFoundError(f"No subtask with id {ref}.")
    raise ValidationError(f"Ambiguous subtask id prefix: {ref}")


def _need(args: list[str], n: int, usage: str) -> None:
    if len(args) < n:
        raise ValidationError(f"Usage: {usage}")


def render_board(board: BoardStore) -> str:
    grouped = board.tasks_by_column()
    lines: list[str] = []
    n = 0
    for col in COLUMNS:
        tasks = grouped[col.id]
        lines.append(f"== {col.title} ({len(tasks)}) ==")
        if not tasks:
            lines.append("   (empty)")
        for t in tasks:
            n += 1
            p = progress_of(t)
            progress = f"  [{p.completed}/{p.total} {p.percent}%]" if p.total else ""
            lines.append(f"{n:>3}. {t.title}{progress}  ({t.id[:6]})")
            for j, s in enumerate(display_subtasks(t), start=1):
                mark = "x" if s.completed else " "
                lines.append(f"       {j}. [{mark}] {s.text}")
    return "\n".join(lines)


# ---- general ----

async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    user = state.session.username if state.session else "(not signed in)"
    role = state.session.role if state.session else "-"
    ai = "online" if state.suggester_online else "offline demo"
    models = ", ".join(list(getattr(state.settings, "llm_models", []) or []))
    realtime = "ON" if getattr(state.settings, "realtime_enabled", True) else "OFF"
    return (
        "Status:\n"
        f"  User: {user} ({role})\n"
        f"  Realtime sync: {realtime}\n"
        f"  AI suggestions: {ai}\n"
        f"  Models (priority -> fallback): {models}"
    )


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    _need(args, 2, "/login <username> <password>")

    def notify(notice) -> None:
        if emit:
            emit(f"[{notice.title}] {notice.message}")

    session = await login(state, args[0], " ".join(args[1:]), notify=notify)
    return f"Signed in as {session.username} ({session.role}).\n" + render_board(state.require_board())


async def cmd_logout(state: AppState, args: list[str]) -> str:
    if state.session is None:
        return "Not signed in."
    await logout(state)
    return "Signed out."


# ---- board ----

async def cmd_board(state: AppState, args: list[str]) -> str:
    return render_board(state.require_board())


async def cmd_refresh(state: AppState, args: list[str]) -> str:
    board = state.require_board()
    await board.load_all()
    return render_board(board)


async def cmd_add(state: AppState, args: list[str]) -> str:
    board = state.require_board()
    task = await board.add_task(" ".join(args))
    return f"Task added: {task.title} ({task.id[:6]})"


async def cmd_rename(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/rename <task> <new title>")
    board = state.require_board()
    task = resolve_task(board, args[0])
    await board.update_task(task.id, TaskUpdate(title=" ".join(args[1:])))
    return "Task renamed."


async def cmd_move(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/move <task> <todo|in-progress|done>")
    board = state.require_board()
    task = resolve_task(board, args[0])
    column = ColumnId.parse(" ".join(args[1:]))
    await board.move_task(task.id, column)
    return f"Moved {task.title!r} to {column.value}."


async def cmd_rm(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/rm <task>")
    board = state.require_board()
    task = resolve_task(board, args[0])
    await board.delete_task(task.id)
    return f"Task deleted: {task.title}"


# ---- subtasks ----

async def cmd_sub(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/sub <task> <text>")
    board = state.require_board()
    task = resolve_task(board, args[0])
    await board.add_subtask(task.id, " ".join(args[1:]))
    return render_board(board)


async def cmd_toggle(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/toggle <task> <subtask>")
    board = state.require_board()
    task = resolve_task(board, args[0])
    sub = resolve_subtask(task, args[1])
    await board.toggle_subtask(task.id, sub.id)
    return render_board(board)


async def cmd_edit(state: AppState, args: list[str]) -> str:
    _need(args, 3, "/edit <task> <subtask> <text>")
    board = state.require_board()
    task = resolve_task(board, args[0])
    sub = resolve_subtask(task, args[1])
    await board.update_subtask(task.id, sub.id, SubtaskUpdate(text=" ".join(args[2:])))
    return "Subtask updated."


async def cmd_subrm(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/subrm <task> <subtask>")
    board = state.require_board()
    task = resolve_task(board, args[0])
    sub = resolve_subtask(task, args[1])
    await board.delete_subtask(sub.id)
    return f"Subtask deleted: {sub.text}"


async def cmd_suggest(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /suggest <task>            -> AI subtasks from the title
    /suggest <task> <context>  -> same, with project context
    """
    _need(args, 1, "/suggest <task> [context]")
    board = state.require_board()
    task = resolve_task(board, args[0])
    context = " ".join(args[1:]) or None

    if emit:
        emit(f"[AI] Asking for subtasks for {task.title!r}...")

    added = await board.suggest_subtasks(task.id, context=context)
    if not added:
        return "No suggestions: the AI could not come up with subtasks for this task."
    return f"{len(added)} suggested subtasks added.\n" + render_board(board)


# ---- users (admin) ----

async def cmd_users(state: AppState, args: list[str]) -> str:
    if state.session is None:
        return "Not signed in."
    state.session.require_admin()
    users = state.users.list_users()
    lines = [f"Users ({len(users)}):"]
    for u in users:
        lines.append(f"  {u.username} ({u.role})  {u.id[:6]}")
    return "\n".join(lines)


async def cmd_useradd(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/useradd <username> <password> [role]")
    if state.session is None:
        return "Not signed in."
    state.session.require_admin()
    role = args[2].lower() if len(args) > 2 else "user"
    user = state.users.create_user(args[0], args[1], role=role)
    return f"User created: {user.username} ({user.role})"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session / sync / AI status.")
registry.register("login", cmd_login, help_text="Sign in: /login <username> <password>.")
registry.register("logout", cmd_logout, help_text="Sign out.")
registry.register("board", cmd_board, help_text="Show the board.", aliases=["b", "ls"])
registry.register("refresh", cmd_refresh, help_text="Reload the board from the store.")
registry.register("add", cmd_add, help_text="Add a task: /add <title>.")
registry.register("rename", cmd_rename, help_text="Rename a task: /rename <task> <title>.")
registry.register("move", cmd_move, help_text="Move a task: /move <task> <todo|in-progress|done>.", aliases=["mv"])
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <task>.")
registry.register("sub", cmd_sub, help_text="Add a subtask: /sub <task> <text>.")
registry.register("toggle", cmd_toggle, help_text="Toggle a subtask: /toggle <task> <subtask>.", aliases=["t"])
registry.register("edit", cmd_edit, help_text="Edit a subtask: /edit <task> <subtask> <text>.")
registry.register("subrm", cmd_subrm, help_text="Delete a subtask: /subrm <task> <subtask>.")
registry.register("suggest", cmd_suggest, help_text="AI subtasks: /suggest <task> [context].")
registry.register("users", cmd_users, help_text="List users (admin).")
registry.register("useradd", cmd_useradd, help_text="Create a user (admin): /useradd <name> <password> [role].")
