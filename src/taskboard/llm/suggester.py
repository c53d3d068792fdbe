# src/taskboard/llm/suggester.py

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

from ..core.errors import SuggestionError
from ..core.ports import ChatMessage, LLMClient
from .client import friendly_llm_error_message

logger = logging.getLogger(__name__)

SUGGEST_SYSTEM_PROMPT = """
You are a subtask planner for a project-management board.

Input: a task title, optionally some project context and past project notes.

Task:
- Suggest the subtasks required to complete the task.

Rules:
- Each subtask is specific, actionable and contributes directly to the task.
- Short imperative phrases, no numbering, no emojis.
- Reply with JSON only, exactly in this shape:
  {"subtasks": ["...", "..."]}
""".strip()

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def build_suggest_messages(
        task_title: str,
        context: str | None = None,
        past_notes: str | None = None,
) -> list[ChatMessage]:
    lines = [f"Task title: {task_title.strip()}"]
    if context and context.strip():
        lines.append(f"Project context: {context.strip()}")
    if past_notes and past_notes.strip():
        lines.append(f"Past project notes: {past_notes.strip()}")
    return [{"role": "user", "content": "\n".join(lines)}]


def _items_from_json(raw: str) -> list[Any] | None:
    try:
        data = json.loads(raw)
    except ValueError:
        # Model wrapped the JSON in prose: take the outermost object/array.
        start = min((i for i in (raw.find("{"), raw.find("[")) if i >= 0), default=-1)
        end = max(raw.rfind("}"), raw.rfind("]"))
        if start < 0 or end <= start:
            return None
        try:
            data = json.loads(raw[start : end + 1])
        except ValueError:
            return None

    if isinstance(data, dict):
        data = data.get("subtasks")
    return data if isinstance(data, list) else None


def parse_suggestions(raw: str, *, max_items: int = 8) -> list[str]:
    """
    Lenient parser for the model reply.

    Accepts {"subtasks": [...]}, a bare JSON list, or one suggestion per line
    (bullets / numbering stripped). Results are stripped, de-duplicated
    case-insensitively and capped at max_items.
    """
    text = _FENCE_RE.sub("", (raw or "").strip()).strip()
    if not text:
        return []

    items = _items_from_json(text)
    if items is None:
        items = [_BULLET_RE.sub("", line) for line in text.splitlines()]

    out: list[str] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, str):
            continue
        s = item.strip().strip('"').strip()
        if not s or s.lower() in seen:
            continue
        seen.add(s.lower())
        out.append(s)
        if len(out) >= max_items:
            break
    return out


class LLMSuggester:
    """
    Suggester backed by any LLMClient (online or offline).

    The LLM client is synchronous and streaming; the blocking call runs in a
    worker thread so the board's event loop keeps serving realtime reloads.
    """

    def __init__(self, llm: LLMClient, *, max_items: int = 8) -> None:
        self._llm = llm
        self._max_items = max(1, int(max_items))

    def _complete(self, messages: list[ChatMessage]) -> str:
        return "".join(self._llm.stream_chat(messages, SUGGEST_SYSTEM_PROMPT))

    async def suggest(
            self,
            task_title: str,
            context: str | None = None,
            past_notes: str | None = None,
    ) -> list[str]:
        if not (task_title or "").strip():
            raise SuggestionError("Task title is empty; nothing to suggest for.")

        messages = build_suggest_messages(task_title, context, past_notes)
        try:
            raw = await asyncio.to_thread(self._complete, messages)
        except RuntimeError as e:
            msg = friendly_llm_error_message(e)
            logger.info("Suggestion failed: %s", msg)
            raise SuggestionError(msg) from e
        except Exception as e:
            logger.exception("Suggestion call crashed.")
            raise SuggestionError("Could not get suggestions from the AI.") from e

        suggestions = parse_suggestions(raw, max_items=self._max_items)
        logger.debug("Suggestions for %r: %d", task_title, len(suggestions))
        return suggestions
