# src/taskboard/llm/offline.py

from __future__ import annotations

import json
from collections.abc import Iterable

from ..core.ports import ChatMessage


class OfflineLLMClient:
    """
    Offline deterministic LLM client used when no external API is configured.

    Behavior:
    - Subtask planner prompts -> a generic plan built from the task title, as JSON
    - Anything else -> a short note explaining how to enable the real model
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        sp = (system_prompt or "").lower()

        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        if "subtask planner" not in sp:
            yield (
                "Offline demo mode: no external LLM is configured.\n"
                "Set TASKBOARD_OPENROUTER_API_KEY (and TASKBOARD_LLM_MODELS) to enable real responses."
            )
            return

        title = ""
        for line in user_text.splitlines():
            if line.lower().startswith("task title:"):
                title = line.split(":", 1)[1].strip()
                break
        title = title or "the task"

        yield json.dumps(
            {
                "subtasks": [
                    f"Clarify the scope of {title}",
                    f"Break {title} into concrete steps",
                    f"Do the first step of {title}",
                    f"Review the result of {title}",
                ]
            },
            ensure_ascii=False,
        )
