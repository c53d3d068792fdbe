# src/taskboard/board/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import sqlite3
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from ..core.errors import StoreError
from ..core.ports import ChangeCallback
from .board_models import ColumnId, Subtask, Task

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TASK_FIELDS = {"title", "column_id"}
_SUBTASK_FIELDS = {"text", "completed"}


class SqliteRemoteStore:
    """
    SQLite-backed RemoteStore with change subscription.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each call opens its own SQLite connection
    - blocking work runs in a worker thread (asyncio.to_thread)

    Change notification:
    - after every committed write, each subscriber is called with no payload
    - subscriber errors are logged and never reach the writer
    """

    def __init__(self, db_path: str | Path = "board.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

        self._listeners: dict[int, ChangeCallback] = {}
        self._next_handle = 1
        self._listener_tasks: set[asyncio.Future[Any]] = set()

        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("SqliteRemoteStore ready db=%s tasks=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    column_id TEXT NOT NULL DEFAULT 'todo',
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS subtasks (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    text TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL
                )
                """
            )

            def add_cols(table: str, wanted: dict[str, str]) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                for name, decl in wanted.items():
                    if name in cols:
                        continue
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                    logger.info("SqliteRemoteStore migration: added column %s.%s", table, name)

            add_cols(
                "tasks",
                {
                    "column_id": "TEXT NOT NULL DEFAULT 'todo'",
                    "created_at": "REAL NOT NULL DEFAULT 0",
                },
            )
            add_cols(
                "subtasks",
                {
                    "completed": "INTEGER NOT NULL DEFAULT 0",
                    "created_at": "REAL NOT NULL DEFAULT 0",
                },
            )

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_created ON tasks(created_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_subtasks_task ON subtasks(task_id, created_at)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        try:
            column = ColumnId(row["column_id"])
        except ValueError:
            column = ColumnId.TODO
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            column_id=column,
            subtasks=[],
            created_at=float(row["created_at"] or 0.0),
        )

    @staticmethod
    def _row_to_subtask(row: sqlite3.Row) -> Subtask:
        return Subtask(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            text=str(row["text"] or ""),
            completed=bool(row["completed"]),
            created_at=float(row["created_at"] or 0.0),
        )

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    @staticmethod
    def _check_fields(fields: dict[str, Any], allowed: set[str]) -> None:
        if not fields:
            raise StoreError("No fields to update")
        unknown = set(fields) - allowed
        if unknown:
            raise StoreError(f"Unknown fields: {', '.join(sorted(unknown))}")

    # ---- sync API (worker thread) ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def _fetch_all_sync(self) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks ORDER BY created_at ASC, rowid ASC")
            tasks = [self._row_to_task(r) for r in cur.fetchall()]
            by_id = {t.id: t for t in tasks}

            cur.execute("SELECT * FROM subtasks ORDER BY created_at ASC, rowid ASC")
            for r in cur.fetchall():
                owner = by_id.get(str(r["task_id"]))
                if owner is not None:
                    owner.subtasks.append(self._row_to_subtask(r))
            return tasks
        finally:
            conn.close()

    def _insert_task_sync(self, title: str, column_id: str) -> Task:
        task = Task(
            id=self._new_id(),
            title=title,
            column_id=ColumnId(column_id),
            subtasks=[],
            created_at=time.time(),
        )
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO tasks(id, title, column_id, created_at) VALUES (?, ?, ?, ?)",
                (task.id, task.title, task.column_id.value, task.created_at),
            )
            conn.commit()
            logger.debug("Task inserted id=%s column=%s", task.id, task.column_id.value)
            return task
        finally:
            conn.close()

    def _update_row_sync(self, table: str, row_id: str, fields: dict[str, Any]) -> None:
        cols: list[str] = []
        params: list[Any] = []
        for name, value in fields.items():
            cols.append(f"{name} = ?")
            if name == "completed":
                value = 1 if value else 0
            elif name == "column_id":
                value = ColumnId(value).value
            params.append(value)
        params.append(row_id)

        sql = f"UPDATE {table} SET {', '.join(cols)} WHERE id = ?"
        conn = self._get_conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            if cur.rowcount != 1:
                raise StoreError(f"{table} row not found: {row_id}")
            logger.debug("%s updated id=%s fields=%s", table, row_id, sorted(fields))
        finally:
            conn.close()

    def _delete_row_sync(self, table: str, row_id: str) -> None:
        conn = self._get_conn()
        try:
            cur = conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
            conn.commit()
            if cur.rowcount != 1:
                raise StoreError(f"{table} row not found: {row_id}")
            logger.debug("%s deleted id=%s", table, row_id)
        finally:
            conn.close()

    def _insert_subtasks_sync(self, task_id: str, texts: list[str], completed: bool) -> list[Subtask]:
        """All rows in one transaction: either every row is stored or none is."""
        now = time.time()
        created = [
            Subtask(id=self._new_id(), task_id=task_id, text=t, completed=completed, created_at=now)
            for t in texts
        ]
        conn = self._get_conn()
        try:
            with conn:
                conn.executemany(
                    "INSERT INTO subtasks(id, task_id, text, completed, created_at) VALUES (?, ?, ?, ?, ?)",
                    [(s.id, s.task_id, s.text, 1 if s.completed else 0, s.created_at) for s in created],
                )
            logger.debug("Subtasks inserted task_id=%s count=%d", task_id, len(created))
            return created
        finally:
            conn.close()

    # ---- async RemoteStore API ----

    async def _run(self, op: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except StoreError:
            raise
        except (sqlite3.Error, ValueError) as e:
            logger.warning("SQLite %s failed: %s", op, e)
            raise StoreError(f"{op} failed: {e}") from e

    async def _write(self, op: str, fn: Callable[..., T], *args: Any) -> T:
        result = await self._run(op, fn, *args)
        self._notify_changed(op)
        return result

    async def fetch_all(self) -> list[Task]:
        return await self._run("fetch_all", self._fetch_all_sync)

    async def insert_task(self, title: str, column_id: str) -> Task:
        return await self._write("insert_task", self._insert_task_sync, title, column_id)

    async def update_task(self, task_id: str, fields: dict[str, Any]) -> None:
        self._check_fields(fields, _TASK_FIELDS)
        await self._write("update_task", self._update_row_sync, "tasks", task_id, dict(fields))

    async def delete_task(self, task_id: str) -> None:
        await self._write("delete_task", self._delete_row_sync, "tasks", task_id)

    async def insert_subtask(self, task_id: str, text: str, completed: bool = False) -> Subtask:
        created = await self._write("insert_subtask", self._insert_subtasks_sync, task_id, [text], completed)
        return created[0]

    async def insert_subtasks_bulk(self, task_id: str, texts: list[str]) -> list[Subtask]:
        if not texts:
            return []
        return await self._write("insert_subtasks_bulk", self._insert_subtasks_sync, task_id, list(texts), False)

    async def update_subtask(self, subtask_id: str, fields: dict[str, Any]) -> None:
        self._check_fields(fields, _SUBTASK_FIELDS)
        await self._write("update_subtask", self._update_row_sync, "subtasks", subtask_id, dict(fields))

    async def delete_subtask(self, subtask_id: str) -> None:
        await self._write("delete_subtask", self._delete_row_sync, "subtasks", subtask_id)

    # ---- change subscription ----

    def subscribe(self, on_change: ChangeCallback) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._listeners[handle] = on_change
        logger.debug("Subscriber added handle=%s", handle)
        return handle

    def unsubscribe(self, handle: int) -> None:
        if self._listeners.pop(handle, None) is not None:
            logger.debug("Subscriber removed handle=%s", handle)

    def _notify_changed(self, op: str) -> None:
        for handle, cb in list(self._listeners.items()):
            try:
                res = cb()
            except Exception:
                logger.exception("Change subscriber failed handle=%s op=%s", handle, op)
                continue
            if inspect.isawaitable(res):
                fut = asyncio.ensure_future(res)
                self._listener_tasks.add(fut)
                fut.add_done_callback(self._listener_done)

    def _listener_done(self, fut: asyncio.Future[Any]) -> None:
        self._listener_tasks.discard(fut)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.error("Change subscriber failed: %r", exc)
