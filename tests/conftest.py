# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskboard.board.board_store import BoardStore, Notice
from taskboard.board.sqlite_store import SqliteRemoteStore
from taskboard.cli.bootstrap import create_initial_state
from taskboard.core.session import Session
from taskboard.core.state import AppState

from .fakes import FakeRemoteStore, FakeSuggester


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic (no API key -> offline suggester).
    """
    return SimpleNamespace(
        app_name="taskboard-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        board_db_path=tmp_path / "board.sqlite3",
        users_db_path=tmp_path / "users.sqlite3",
        realtime_enabled=False,
        admin_username="admin",
        admin_password="s3cret",
        openrouter_api_key=None,
        openrouter_base_url="https://openrouter.invalid/api/v1",
        llm_models=["test/model"],
        extra_headers={},
        suggest_max_items=8,
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired by the real composition root.

    NOTE: We keep real SQLite stores here because their correctness is part of
    what we want to test.
    """
    return create_initial_state(settings=settings)


@pytest.fixture()
def session() -> Session:
    return Session(user_id="u1", username="alice", role="user")


@pytest.fixture()
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture()
def suggester() -> FakeSuggester:
    return FakeSuggester(["Draft outline", "Write body", "Proofread"])


@pytest.fixture()
def notices() -> list[Notice]:
    return []


@pytest.fixture()
def board(remote: FakeRemoteStore, suggester: FakeSuggester, session: Session, notices: list[Notice]) -> BoardStore:
    return BoardStore(remote, suggester=suggester, session=session, notify=notices.append)


@pytest.fixture()
def sqlite_remote(tmp_path: Path) -> SqliteRemoteStore:
    return SqliteRemoteStore(tmp_path / "board.sqlite3")
