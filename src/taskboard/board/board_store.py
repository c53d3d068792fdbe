# src/taskboard/board/board_store.py

from __future__ import annotations

"""
BoardStore: the client-side working view of the board.

- holds tasks (each with nested subtasks) in creation order,
- mediates every write through the RemoteStore port,
- applies writes optimistically where a local id already exists,
- rolls back by snapshot (subtask edits) or by full reload (everything else),
- moves tasks between columns after subtask mutations (see transition.next_column),
- treats realtime notifications as "re-fetch", never as data to merge.

Staleness guard:
- every wholesale view replacement bumps `generation`;
- each load_all() takes a sequence number and only the latest one may replace the view;
- a subtask snapshot is only restored if the view was not replaced in the meantime;
- a realtime reload waits while local writes are in flight, and its result is
  dropped (and the reload re-run later) if a write started while it was fetching;
- the column rule runs on the task as the subtask mutation left it, not on
  whatever the view holds once the remote call returns.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from ..core.errors import NotFoundError, StoreError, SuggestionError, SyncError, ValidationError
from ..core.ports import RemoteStore, Suggester
from ..core.session import Session
from .board_models import ColumnId, Subtask, SubtaskUpdate, Task, TaskUpdate, group_by_column
from .optimistic import optimistic
from .transition import next_column

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Notice:
    """User-visible notification for failures that have no caller to raise to."""

    title: str
    message: str
    error: bool = False


NoticeSink = Callable[[Notice], None]


class BoardStore:
    def __init__(
            self,
            remote: RemoteStore,
            *,
            suggester: Suggester | None = None,
            session: Session | None = None,
            notify: NoticeSink | None = None,
    ) -> None:
        self._remote = remote
        self._suggester = suggester
        self._session = session
        self._notify = notify

        self._tasks: list[Task] = []
        self._generation = 0
        self._load_seq = 0

        self._writes_in_flight = 0
        self._write_seq = 0
        self._reload_deferred = False

        self._subscription: int | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending_reloads: set[asyncio.Task[None]] = set()

    # ---- read side ----

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def tasks(self) -> list[Task]:
        """Deep copies, oldest-created first."""
        return [t.copy() for t in self._tasks]

    def get_task(self, task_id: str) -> Task:
        return self._find_task(task_id).copy()

    def tasks_by_column(self) -> dict[ColumnId, list[Task]]:
        return group_by_column(self.tasks)

    def find_subtask_owner(self, subtask_id: str) -> Task | None:
        for t in self._tasks:
            if any(s.id == subtask_id for s in t.subtasks):
                return t.copy()
        return None

    # ---- internal helpers ----

    def _who(self) -> str:
        return self._session.username if self._session else "-"

    def _find_task(self, task_id: str) -> Task:
        for t in self._tasks:
            if t.id == task_id:
                return t
        raise NotFoundError(f"Task not found: {task_id}")

    def _task_or_none(self, task_id: str) -> Task | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def _replace_view(self, tasks: Iterable[Task]) -> None:
        self._tasks = list(tasks)
        self._generation += 1

    @contextlib.contextmanager
    def _writing(self) -> Iterator[None]:
        """Marks a local write in flight; a realtime reload deferred meanwhile runs once the last one ends."""
        self._writes_in_flight += 1
        self._write_seq += 1
        try:
            yield
        finally:
            self._writes_in_flight -= 1
            if self._writes_in_flight == 0 and self._reload_deferred:
                self._reload_deferred = False
                self._schedule_reload()

    async def _resync(self, operation: str) -> None:
        """Rollback-by-refetch. A failing reload leaves the view empty (see load_all)."""
        logger.info("Reloading board after failed %s", operation)
        try:
            await self.load_all()
        except SyncError:
            logger.warning("Reload after failed %s also failed; view cleared", operation)

    def _emit(self, notice: Notice) -> None:
        if self._notify is None:
            return
        try:
            self._notify(notice)
        except Exception:
            logger.exception("Notice sink failed")

    @staticmethod
    def _clean_texts(texts: Iterable[str]) -> list[str]:
        return [t.strip() for t in texts if t and t.strip()]

    # ---- load ----

    async def load_all(self) -> list[Task]:
        """
        Fetch every task with its subtasks and replace the view.

        On failure the view is cleared (not left stale) and SyncError is raised.
        A result that arrives after a newer load_all() was started is discarded.
        """
        await self._load()
        return self.tasks

    async def _load(self, *, write_seq: int | None = None) -> bool:
        """
        Returns True when the fetched rows replaced the view.

        With write_seq set (realtime reloads), the result is also dropped if a
        local write started after the fetch began.
        """
        self._load_seq += 1
        seq = self._load_seq

        try:
            fetched = await self._remote.fetch_all()
        except StoreError as e:
            logger.warning("load_all failed: %s", e)
            if seq == self._load_seq:
                self._replace_view([])
            raise SyncError("Failed to load tasks.", operation="load_all") from e

        if seq != self._load_seq:
            logger.debug("Discarding stale load seq=%s latest=%s", seq, self._load_seq)
            return False
        if write_seq is not None and write_seq != self._write_seq:
            logger.debug("Discarding load overtaken by a local write seq=%s", seq)
            return False

        for t in fetched:
            t.subtasks = list(t.subtasks or [])
        self._replace_view(fetched)
        logger.debug("Board loaded tasks=%d generation=%d", len(self._tasks), self._generation)
        return True

    # ---- tasks ----

    async def add_task(self, title: str) -> Task:
        """Not optimistic: the id comes from the store."""
        title = (title or "").strip()
        if not title:
            raise ValidationError("Task title must not be empty.")

        with self._writing():
            try:
                task = await self._remote.insert_task(title, ColumnId.TODO.value)
            except StoreError as e:
                logger.warning("add_task failed title=%r: %s", title, e)
                raise SyncError("Failed to add task.", operation="add_task") from e

            task.subtasks = list(task.subtasks or [])
            # A realtime reload may already have brought the row in.
            if self._task_or_none(task.id) is None:
                self._tasks.append(task)
        logger.info("Task added id=%s by=%s", task.id, self._who())
        return task.copy()

    async def update_task(self, task_id: str, update: TaskUpdate) -> None:
        fields = update.as_fields()
        if not fields:
            raise ValidationError("Nothing to update.")
        task = self._find_task(task_id)

        with self._writing():
            try:
                await optimistic(
                    snapshot=lambda: None,
                    apply=lambda: update.apply(task),
                    remote=lambda: self._remote.update_task(task_id, fields),
                    restore=lambda _snap, _exc: self._resync("update_task"),
                )
            except StoreError as e:
                raise SyncError("Failed to update task.", operation="update_task") from e

        logger.info("Task updated id=%s fields=%s by=%s", task_id, sorted(fields), self._who())

    async def move_task(self, task_id: str, column_id: ColumnId | str) -> None:
        """Manual move. The transition rule does not run afterwards."""
        await self.update_task(task_id, TaskUpdate(column_id=ColumnId.parse(column_id)))

    async def delete_task(self, task_id: str) -> None:
        self._find_task(task_id)

        def apply() -> None:
            self._tasks = [t for t in self._tasks if t.id != task_id]

        with self._writing():
            try:
                await optimistic(
                    snapshot=lambda: None,
                    apply=apply,
                    remote=lambda: self._remote.delete_task(task_id),
                    restore=lambda _snap, _exc: self._resync("delete_task"),
                )
            except StoreError as e:
                raise SyncError("Failed to delete task.", operation="delete_task") from e

        logger.info("Task deleted id=%s by=%s", task_id, self._who())

    # ---- subtasks ----

    async def _apply_transition(self, post: Task) -> None:
        """
        Run the column rule on `post`, the task as the subtask mutation left it.

        The follow-up update_task() is issued against the live view, so a task
        deleted in the meantime is skipped.
        """
        current = self._task_or_none(post.id)
        if current is None:
            return
        target = next_column(post.column_id, post.subtasks)
        if target == current.column_id:
            return
        logger.info("Task %s moves %s -> %s", post.id, current.column_id.value, target.value)
        await self.update_task(post.id, TaskUpdate(column_id=target))

    def _attach_subtasks(self, task_id: str, created: list[Subtask]) -> Task | None:
        """Returns a copy of the task after attaching, or None if it left the view."""
        task = self._task_or_none(task_id)
        if task is None:
            # Deleted or reloaded away while the insert was in flight.
            return None
        known = {s.id for s in task.subtasks}
        task.subtasks.extend(s for s in created if s.id not in known)
        return task.copy()

    async def add_subtask(self, task_id: str, text: str) -> Subtask:
        """Not optimistic: the id comes from the store."""
        text = (text or "").strip()
        if not text:
            raise ValidationError("Subtask text must not be empty.")
        self._find_task(task_id)

        with self._writing():
            try:
                subtask = await self._remote.insert_subtask(task_id, text, False)
            except StoreError as e:
                logger.warning("add_subtask failed task_id=%s: %s", task_id, e)
                raise SyncError("Failed to add subtask.", operation="add_subtask") from e

            post = self._attach_subtasks(task_id, [subtask])
            if post is not None:
                await self._apply_transition(post)
        return subtask.copy()

    async def add_subtasks_bulk(self, task_id: str, texts: Iterable[str]) -> list[Subtask]:
        """
        Insert several subtasks as one unit.

        All-or-nothing: the store inserts them in one transaction, and nothing is
        attached locally unless every row was confirmed.
        """
        clean = self._clean_texts(texts)
        if not clean:
            raise ValidationError("No subtasks to add.")
        self._find_task(task_id)

        with self._writing():
            try:
                created = await self._remote.insert_subtasks_bulk(task_id, clean)
            except StoreError as e:
                logger.warning("add_subtasks_bulk failed task_id=%s count=%d: %s", task_id, len(clean), e)
                raise SyncError("Failed to add subtasks.", operation="add_subtasks_bulk") from e

            if len(created) != len(clean):
                logger.warning(
                    "Bulk insert confirmed %d of %d rows task_id=%s; reloading",
                    len(created),
                    len(clean),
                    task_id,
                )
                await self._resync("add_subtasks_bulk")
                raise SyncError("Subtasks were only partially saved.", operation="add_subtasks_bulk")

            post = self._attach_subtasks(task_id, created)
            if post is not None:
                await self._apply_transition(post)
        logger.info("Added %d subtasks to task %s by=%s", len(created), task_id, self._who())
        return [s.copy() for s in created]

    async def update_subtask(self, task_id: str, subtask_id: str, update: SubtaskUpdate) -> None:
        """
        Optimistic subtask edit.

        On failure the task is restored from a deep copy taken before the edit
        and the transition rule does not run. On success the rule runs against
        the task as the edit left it and may issue a follow-up update_task().
        """
        fields = update.as_fields()
        if not fields:
            raise ValidationError("Nothing to update.")
        task = self._find_task(task_id)
        subtask = next((s for s in task.subtasks if s.id == subtask_id), None)
        if subtask is None:
            raise NotFoundError(f"Subtask not found: {subtask_id}")

        generation = self._generation
        edited: list[Task] = []

        def apply() -> None:
            update.apply(subtask)
            edited.append(task.copy())

        def restore(snap: Task, _exc: BaseException) -> None:
            if self._generation != generation:
                logger.info("View was reloaded since the edit; not restoring task %s", task_id)
                return
            for i, t in enumerate(self._tasks):
                if t.id == task_id:
                    self._tasks[i] = snap
                    return

        with self._writing():
            try:
                await optimistic(
                    snapshot=task.copy,
                    apply=apply,
                    remote=lambda: self._remote.update_subtask(subtask_id, fields),
                    restore=restore,
                )
            except StoreError as e:
                logger.warning("update_subtask failed id=%s: %s", subtask_id, e)
                raise SyncError("Failed to update subtask.", operation="update_subtask") from e

            await self._apply_transition(edited[0])

    async def toggle_subtask(self, task_id: str, subtask_id: str) -> None:
        task = self._find_task(task_id)
        subtask = next((s for s in task.subtasks if s.id == subtask_id), None)
        if subtask is None:
            raise NotFoundError(f"Subtask not found: {subtask_id}")
        await self.update_subtask(task_id, subtask_id, SubtaskUpdate(completed=not subtask.completed))

    async def delete_subtask(self, subtask_id: str) -> None:
        owner = next((t for t in self._tasks if any(s.id == subtask_id for s in t.subtasks)), None)
        if owner is None:
            raise NotFoundError(f"Subtask not found: {subtask_id}")
        edited: list[Task] = []

        def apply() -> None:
            owner.subtasks = [s for s in owner.subtasks if s.id != subtask_id]
            edited.append(owner.copy())

        with self._writing():
            try:
                await optimistic(
                    snapshot=lambda: None,
                    apply=apply,
                    remote=lambda: self._remote.delete_subtask(subtask_id),
                    restore=lambda _snap, _exc: self._resync("delete_subtask"),
                )
            except StoreError as e:
                raise SyncError("Failed to delete subtask.", operation="delete_subtask") from e

            await self._apply_transition(edited[0])

    # ---- AI suggestions ----

    async def suggest_subtasks(
            self,
            task_id: str,
            *,
            context: str | None = None,
            past_notes: str | None = None,
    ) -> list[Subtask]:
        """
        Ask the suggester for subtasks and add them as one batch.

        A SuggestionError leaves the board untouched. An empty suggestion list
        returns [] (nothing is written).
        """
        if self._suggester is None:
            raise SuggestionError("AI suggestions are not configured.")
        title = self._find_task(task_id).title

        try:
            suggestions = await self._suggester.suggest(title, context, past_notes)
        except SuggestionError:
            raise
        except Exception as e:
            logger.exception("Suggester crashed task_id=%s", task_id)
            raise SuggestionError("Could not get suggestions.") from e

        clean = self._clean_texts(suggestions or [])
        if not clean:
            logger.info("No suggestions for task %s", task_id)
            return []
        return await self.add_subtasks_bulk(task_id, clean)

    # ---- realtime ----

    def start_realtime(self) -> None:
        """Subscribe to remote changes; every notification schedules a full reload."""
        if self._subscription is not None:
            return
        with contextlib.suppress(RuntimeError):
            self._loop = asyncio.get_running_loop()
        self._subscription = self._remote.subscribe(self._on_remote_change)
        logger.info("Realtime sync started (handle=%s)", self._subscription)

    def _on_remote_change(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Notified from a foreign thread.
            if self._loop is not None and not self._loop.is_closed():
                self._loop.call_soon_threadsafe(self._schedule_reload)
            return
        self._schedule_reload()

    def _schedule_reload(self) -> None:
        if self._subscription is None:
            return
        task = asyncio.ensure_future(self._realtime_reload())
        self._pending_reloads.add(task)
        task.add_done_callback(self._pending_reloads.discard)

    def _defer_reload(self) -> None:
        if self._writes_in_flight:
            self._reload_deferred = True
        else:
            self._schedule_reload()

    async def _realtime_reload(self) -> None:
        if self._writes_in_flight:
            # Runs again when the last write finishes (see _writing).
            self._reload_deferred = True
            return
        write_seq = self._write_seq
        try:
            applied = await self._load(write_seq=write_seq)
        except SyncError as e:
            self._emit(Notice(title="Sync failed", message=str(e), error=True))
            return
        if not applied and write_seq != self._write_seq:
            self._defer_reload()

    async def wait_for_reloads(self) -> None:
        """Wait until every realtime-triggered reload scheduled so far has finished."""
        while self._pending_reloads:
            await asyncio.gather(*list(self._pending_reloads), return_exceptions=True)

    def stop_realtime(self) -> None:
        if self._subscription is None:
            return
        handle, self._subscription = self._subscription, None
        self._reload_deferred = False
        self._remote.unsubscribe(handle)
        for task in list(self._pending_reloads):
            task.cancel()
        logger.info("Realtime sync stopped (handle=%s)", handle)

    async def close(self) -> None:
        """Session teardown: stop realtime and let cancelled reloads settle."""
        pending = list(self._pending_reloads)
        self.stop_realtime()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
