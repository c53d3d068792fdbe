# tests/test_commands.py

from __future__ import annotations

import threading

import pytest

from taskboard.cli.commands import CommandRegistry, registry, render_board
from taskboard.connectors.console_connector import run_console_loop


@pytest.mark.asyncio
async def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    emitted: list[str] = []

    async def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    async def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a", aliases=["aa"])
    reg.register("b", h3, "b")

    assert await reg.handle(state, "/a x y") == "h2:x,y"
    assert await reg.handle(state, "/AA") == "h2:"
    assert await reg.handle(state, "/b", emit=emitted.append) == "h3"
    assert called == {"h2": 2, "h3": 1}
    assert emitted == ["note"]
    assert "/a - a" in reg.build_help()


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_board_errors_become_replies(state) -> None:
    assert await registry.handle(state, "/board") == "[AuthError] Not signed in."
    assert (await registry.handle(state, "/login admin")).startswith("[ValidationError] Usage:")
    assert await registry.handle(state, "/login admin nope") == "[AuthError] Invalid username or password."


@pytest.mark.asyncio
async def test_non_board_errors_propagate(state) -> None:
    reg = CommandRegistry()

    async def broken(state, args):
        raise ZeroDivisionError

    reg.register("x", broken, "x")
    with pytest.raises(ZeroDivisionError):
        await reg.handle(state, "/x")


@pytest.mark.asyncio
async def test_board_flow_end_to_end(state) -> None:
    emitted: list[str] = []

    async def run(line: str) -> str:
        reply = await registry.handle(state, line, emit=emitted.append)
        assert reply is not None
        return reply

    assert (await run("/login admin s3cret")).startswith("Signed in as admin (admin).")

    assert (await run("/add Write report")).startswith("Task added: Write report")
    out = await run("/sub 1 Gather numbers")
    assert "== To Do (1) ==" in out
    assert "[ ] Gather numbers" in out

    out = await run("/toggle 1 1")
    assert "== In Progress (1) ==" in out
    assert "[1/1 100%]" in out

    await run("/toggle 1 1")
    out = await run("/toggle 1 1")
    assert "== Done (1) ==" in out

    out = await run("/suggest 1 quarterly")
    assert out.startswith("4 suggested subtasks added.")
    assert "== In Progress (1) ==" in out
    assert "[1/5 20%]" in out
    assert emitted[-1].startswith("[AI] Asking for subtasks")

    assert await run("/edit 1 1 Clarify scope") == "Subtask updated."
    assert (await run("/subrm 1 1")).startswith("Subtask deleted: Clarify scope")
    assert await run("/move 1 todo") == "Moved 'Write report' to todo."
    assert await run("/rename 1 Write annual report") == "Task renamed."

    out = await run("/users")
    assert "admin (admin)" in out
    assert (await run("/useradd bob pw")) == "User created: bob (user)"

    assert await run("/rm 1") == "Task deleted: Write annual report"
    assert await run("/logout") == "Signed out."
    assert await run("/logout") == "Not signed in."

    await run("/login bob pw")
    assert await run("/users") == "[AuthError] This action requires an admin account."
    await run("/logout")


@pytest.mark.asyncio
async def test_task_references_by_position_and_id(state) -> None:
    await registry.handle(state, "/login admin s3cret")
    board = state.require_board()
    a = await board.add_task("alpha")
    await board.add_task("beta")

    assert "alpha" in render_board(board)
    assert await registry.handle(state, f"/rm {a.id}") == "Task deleted: alpha"
    assert (await registry.handle(state, "/rm 9")) == "[NotFoundError] No task #9."
    await registry.handle(state, "/logout")


@pytest.mark.asyncio
async def test_console_loop_runs_commands_until_exit(state, monkeypatch, capsys) -> None:
    lines = iter(["", "hello", "/login admin s3cret", "/add Ship it", "/exit", "/board"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(lines))

    await run_console_loop(state)

    out = capsys.readouterr().out
    assert "Commands start with '/'" in out
    assert "/login ****" in out
    assert "s3cret" not in out
    assert "Task added: Ship it" in out
    # /exit stops the loop before the last line is read.
    assert next(lines) == "/board"
    await registry.handle(state, "/logout")


@pytest.mark.asyncio
async def test_toggle_command_uses_board_toggle(state, monkeypatch) -> None:
    await registry.handle(state, "/login admin s3cret")
    board = state.require_board()
    task = await board.add_task("Tidy desk")
    sub = await board.add_subtask(task.id, "Sort papers")
    seen: list[tuple[str, str]] = []
    toggle = board.toggle_subtask

    async def spy(task_id: str, subtask_id: str) -> None:
        seen.append((task_id, subtask_id))
        await toggle(task_id, subtask_id)

    monkeypatch.setattr(board, "toggle_subtask", spy)

    out = await registry.handle(state, "/t 1 1")

    assert seen == [(task.id, sub.id)]
    assert "[x] Sort papers" in out
    await registry.handle(state, "/logout")


@pytest.mark.asyncio
async def test_console_reads_input_off_the_executor_and_stops_on_eof(state, monkeypatch) -> None:
    readers: list[threading.Thread] = []

    def fake_input(_prompt: str = "") -> str:
        readers.append(threading.current_thread())
        if len(readers) == 1:
            return "/status"
        raise EOFError

    monkeypatch.setattr("builtins.input", fake_input)

    await run_console_loop(state)

    assert len(readers) == 2
    assert all(t.daemon for t in readers)
    assert all(t is not threading.main_thread() for t in readers)
