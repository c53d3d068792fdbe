# src/taskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the board core.

The core depends on Protocols instead of concrete implementations.
This keeps the remote store / AI provider / credential backend swappable and
makes testing easier.
"""

from typing import Any, Awaitable, Callable, Iterable, Protocol

from ..board.board_models import Subtask, Task
from .session import Session

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.

ChangeCallback = Callable[[], Awaitable[None] | None]
# "Something changed remotely." No payload; listeners re-fetch.


class RemoteStore(Protocol):
    """
    System of record for tasks and subtasks.

    Every method fails with StoreError. `fields` dicts use stored column names
    (title/column_id for tasks, text/completed for subtasks).
    """

    async def fetch_all(self) -> list[Task]: ...
    async def insert_task(self, title: str, column_id: str) -> Task: ...
    async def update_task(self, task_id: str, fields: dict[str, Any]) -> None: ...
    async def delete_task(self, task_id: str) -> None: ...

    async def insert_subtask(self, task_id: str, text: str, completed: bool = False) -> Subtask: ...
    async def insert_subtasks_bulk(self, task_id: str, texts: list[str]) -> list[Subtask]: ...
    async def update_subtask(self, subtask_id: str, fields: dict[str, Any]) -> None: ...
    async def delete_subtask(self, subtask_id: str) -> None: ...

    def subscribe(self, on_change: ChangeCallback) -> int: ...
    def unsubscribe(self, handle: int) -> None: ...


class Suggester(Protocol):
    """AI subtask suggestions. Fails with SuggestionError; has no side effects."""

    async def suggest(
            self,
            task_title: str,
            context: str | None = None,
            past_notes: str | None = None,
    ) -> list[str]: ...


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class CredentialChecker(Protocol):
    """Returns a Session for valid credentials, None otherwise."""
    def verify(self, username: str, password: str) -> Session | None: ...
