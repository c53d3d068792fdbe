# src/taskboard/board/transition.py

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from .board_models import ColumnId


class _HasCompleted(Protocol):
    completed: bool


def next_column(previous: ColumnId, subtasks: Iterable[_HasCompleted]) -> ColumnId:
    """
    Column a task should be in after one of its subtasks changed.

    Rules, first match wins:
    1. todo and at least one subtask completed -> in-progress
    2. not done and all subtasks completed     -> done
    3. done and not all subtasks completed     -> in-progress
    4. otherwise                               -> previous

    The order matters for a task in todo whose only subtask gets completed:
    rule 1 wins, so it lands in in-progress (not done). The same holds for any
    fully completed set seen from todo, and that is the only case where a
    second evaluation with the same subtasks moves the task again
    (in-progress -> done); everywhere else the rule is idempotent.

    Only subtask mutations run this; a manual move is never overridden until
    the next subtask mutation.
    """
    states = [bool(s.completed) for s in subtasks]
    any_done = any(states)
    all_done = bool(states) and all(states)

    if previous == ColumnId.TODO and any_done:
        return ColumnId.IN_PROGRESS
    if previous != ColumnId.DONE and all_done:
        return ColumnId.DONE
    if previous == ColumnId.DONE and not all_done:
        return ColumnId.IN_PROGRESS
    return previous
