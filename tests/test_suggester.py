# tests/test_suggester.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from taskboard.core.errors import SuggestionError
from taskboard.llm.client import OpenRouterLLMClient, friendly_llm_error_message
from taskboard.llm.offline import OfflineLLMClient
from taskboard.llm.suggester import (
    SUGGEST_SYSTEM_PROMPT,
    LLMSuggester,
    build_suggest_messages,
    parse_suggestions,
)

from .fakes import FakeLLMClient


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('{"subtasks": ["Draft outline", "Write body"]}', ["Draft outline", "Write body"]),
        ('["a", "b"]', ["a", "b"]),
        ('```json\n{"subtasks": ["a"]}\n```', ["a"]),
        ('Sure! Here you go: {"subtasks": ["a", "b"]} Good luck.', ["a", "b"]),
        ("- first\n- second\n\n3. third", ["first", "second", "third"]),
        ('{"subtasks": ["a", "A", " a ", "", 3, "b"]}', ["a", "b"]),
        ("", []),
        ('{"subtasks": []}', []),
    ],
)
def test_parse_suggestions_variants(raw, expected) -> None:
    assert parse_suggestions(raw) == expected


def test_parse_suggestions_caps_items() -> None:
    raw = '{"subtasks": ["1a", "2b", "3c", "4d", "5e"]}'
    assert parse_suggestions(raw, max_items=3) == ["1a", "2b", "3c"]


def test_build_suggest_messages_skips_blank_context() -> None:
    msgs = build_suggest_messages("  Launch site ", context="  ", past_notes="ran late last time")

    assert len(msgs) == 1
    content = msgs[0]["content"]
    assert content.startswith("Task title: Launch site")
    assert "Project context" not in content
    assert "Past project notes: ran late last time" in content


@pytest.mark.asyncio
async def test_llm_suggester_sends_planner_prompt_and_parses_reply() -> None:
    llm = FakeLLMClient(next_text='{"subtasks": ["Pick a date", "Send invites"]}')
    suggester = LLMSuggester(llm)

    out = await suggester.suggest("Organize meetup", context="community")

    assert out == ["Pick a date", "Send invites"]
    (messages, system_prompt), = llm.calls
    assert system_prompt == SUGGEST_SYSTEM_PROMPT
    assert "Organize meetup" in messages[0]["content"]


@pytest.mark.asyncio
async def test_llm_suggester_maps_runtime_errors_to_friendly_message() -> None:
    llm = FakeLLMClient(error=RuntimeError("LLM API key is not set. whatever"))
    suggester = LLMSuggester(llm)

    with pytest.raises(SuggestionError) as exc_info:
        await suggester.suggest("t")

    assert "missing API key" in str(exc_info.value)


@pytest.mark.asyncio
async def test_llm_suggester_wraps_unexpected_errors() -> None:
    suggester = LLMSuggester(FakeLLMClient(error=KeyError("boom")))

    with pytest.raises(SuggestionError):
        await suggester.suggest("t")


@pytest.mark.asyncio
async def test_llm_suggester_rejects_blank_title() -> None:
    llm = FakeLLMClient()
    with pytest.raises(SuggestionError):
        await LLMSuggester(llm).suggest("   ")
    assert llm.calls == []


@pytest.mark.asyncio
async def test_offline_client_produces_usable_plan() -> None:
    suggester = LLMSuggester(OfflineLLMClient(), max_items=8)

    out = await suggester.suggest("Write report")

    assert len(out) == 4
    assert all("Write report" in s for s in out)


def test_offline_client_non_planner_prompt() -> None:
    text = "".join(OfflineLLMClient().stream_chat([{"role": "user", "content": "hi"}], "be nice"))
    assert "Offline demo mode" in text


def test_friendly_error_passthrough() -> None:
    assert friendly_llm_error_message(RuntimeError("LLM model list is empty.")).endswith("TASKBOARD_LLM_MODELS in .env.")
    assert friendly_llm_error_message(RuntimeError("")) == "LLM error."


def _llm_settings(**kw) -> SimpleNamespace:
    base = dict(
        openrouter_api_key="sk-test",
        openrouter_base_url="https://openrouter.invalid/api/v1",
        llm_models=["first/model", "second/model"],
        extra_headers={},
    )
    base.update(kw)
    return SimpleNamespace(**base)


def test_openrouter_client_requires_api_key() -> None:
    with pytest.raises(RuntimeError, match="API key"):
        OpenRouterLLMClient(_llm_settings(openrouter_api_key=""))


class TooManyRequestsError(Exception):
    pass


class _ScriptedCompletions:
    def __init__(self, outcomes: dict[str, object]) -> None:
        self.outcomes = outcomes
        self.models: list[str] = []

    def create(self, *, model, **_kw):
        self.models.append(model)
        outcome = self.outcomes[model]
        if isinstance(outcome, Exception):
            raise outcome
        return [
            SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=piece))])
            for piece in outcome
        ]


def _client_with(outcomes: dict[str, object]) -> tuple[OpenRouterLLMClient, _ScriptedCompletions]:
    client = OpenRouterLLMClient(_llm_settings())
    completions = _ScriptedCompletions(outcomes)
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return client, completions


def test_openrouter_client_falls_back_to_next_model() -> None:
    client, completions = _client_with(
        {"first/model": TooManyRequestsError("slow down"), "second/model": ["he", "llo"]}
    )

    text = "".join(client.stream_chat([{"role": "user", "content": "x"}], "sys"))

    assert text == "hello"
    assert completions.models == ["first/model", "second/model"]


def test_openrouter_client_reports_when_all_models_fail() -> None:
    client, _ = _client_with(
        {"first/model": TooManyRequestsError("a"), "second/model": TooManyRequestsError("b")}
    )

    with pytest.raises(RuntimeError, match="rate-limited"):
        "".join(client.stream_chat([{"role": "user", "content": "x"}], "sys"))
