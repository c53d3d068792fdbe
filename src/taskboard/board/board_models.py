# src/taskboard/board/board_models.py

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import StrEnum
from typing import Any

from ..core.errors import ValidationError


class ColumnId(StrEnum):
    """
    Board columns.

    Values are the stored keys ("in-progress" keeps its hyphen).
    """

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @classmethod
    def parse(cls, raw: str | None) -> ColumnId:
        """Lenient parser for user input ("doing", "in_progress", "To-Do" ...)."""
        key = (raw or "").strip().lower().replace("_", "-").replace(" ", "-")
        aliases = {
            "to-do": cls.TODO,
            "todo": cls.TODO,
            "doing": cls.IN_PROGRESS,
            "in-progress": cls.IN_PROGRESS,
            "progress": cls.IN_PROGRESS,
            "done": cls.DONE,
        }
        try:
            return aliases[key]
        except KeyError:
            raise ValidationError(f"Unknown column: {raw!r}") from None


@dataclass(frozen=True, slots=True)
class Column:
    id: ColumnId
    title: str


COLUMNS: tuple[Column, ...] = (
    Column(ColumnId.TODO, "To Do"),
    Column(ColumnId.IN_PROGRESS, "In Progress"),
    Column(ColumnId.DONE, "Done"),
)


@dataclass(slots=True)
class Subtask:
    id: str
    task_id: str
    text: str
    completed: bool = False
    created_at: float = 0.0

    def copy(self) -> Subtask:
        return Subtask(
            id=self.id,
            task_id=self.task_id,
            text=self.text,
            completed=self.completed,
            created_at=self.created_at,
        )


@dataclass(slots=True)
class Task:
    id: str
    title: str
    column_id: ColumnId = ColumnId.TODO
    subtasks: list[Subtask] = field(default_factory=list)
    created_at: float = 0.0

    def copy(self) -> Task:
        """Deep copy (subtasks are copied too)."""
        return Task(
            id=self.id,
            title=self.title,
            column_id=self.column_id,
            subtasks=[s.copy() for s in self.subtasks],
            created_at=self.created_at,
        )


def _clean_text(value: str | None, what: str) -> str | None:
    if value is None:
        return None
    text = value.strip()
    if not text:
        raise ValidationError(f"{what} must not be empty")
    return text


@dataclass(frozen=True, slots=True)
class TaskUpdate:
    """Fields of a Task that may change. None means "leave as is"."""

    title: str | None = None
    column_id: ColumnId | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "title", _clean_text(self.title, "title"))
        if self.column_id is not None and not isinstance(self.column_id, ColumnId):
            object.__setattr__(self, "column_id", ColumnId.parse(self.column_id))

    def as_fields(self) -> dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out = {k: v for k, v in out.items() if v is not None}
        if "column_id" in out:
            out["column_id"] = out["column_id"].value
        return out

    def apply(self, task: Task) -> None:
        if self.title is not None:
            task.title = self.title
        if self.column_id is not None:
            task.column_id = self.column_id


@dataclass(frozen=True, slots=True)
class SubtaskUpdate:
    """Fields of a Subtask that may change. None means "leave as is"."""

    text: str | None = None
    completed: bool | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "text", _clean_text(self.text, "text"))

    def as_fields(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.text is not None:
            out["text"] = self.text
        if self.completed is not None:
            out["completed"] = bool(self.completed)
        return out

    def apply(self, subtask: Subtask) -> None:
        if self.text is not None:
            subtask.text = self.text
        if self.completed is not None:
            subtask.completed = bool(self.completed)


@dataclass(frozen=True, slots=True)
class Progress:
    completed: int
    total: int

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 0
        return round(self.completed * 100 / self.total)


def progress_of(task: Task) -> Progress:
    done = sum(1 for s in task.subtasks if s.completed)
    return Progress(completed=done, total=len(task.subtasks))


def display_subtasks(task: Task) -> list[Subtask]:
    """Incomplete subtasks first; the sort is stable so insertion order is kept otherwise."""
    return sorted(task.subtasks, key=lambda s: s.completed)


def group_by_column(tasks: list[Task]) -> dict[ColumnId, list[Task]]:
    out: dict[ColumnId, list[Task]] = {c.id: [] for c in COLUMNS}
    for t in tasks:
        out[t.column_id].append(t)
    return out
