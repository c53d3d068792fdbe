# tests/test_config.py

from __future__ import annotations

from pathlib import Path

from taskboard.config import Settings


def test_settings_from_env_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TASKBOARD_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("TASKBOARD_REALTIME_ENABLED", "off")
    monkeypatch.setenv("TASKBOARD_LLM_MODELS", "a/one, b/two  c/three")
    monkeypatch.setenv("TASKBOARD_SUGGEST_MAX_ITEMS", "0")
    monkeypatch.setenv("TASKBOARD_ADMIN_USERNAME", "  root ")

    s = Settings.from_env()

    assert s.data_dir == tmp_path
    assert s.board_db_path == tmp_path / "board.sqlite3"
    assert s.realtime_enabled is False
    assert s.llm_models == ["a/one", "b/two", "c/three"]
    assert s.suggest_max_items == 1
    assert s.admin_username == "root"


def test_settings_defaults_for_blank_values(monkeypatch) -> None:
    for name in ("TASKBOARD_DATA_DIR", "TASKBOARD_BOARD_DB_PATH", "TASKBOARD_USERS_DB_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TASKBOARD_LLM_MODELS", " ")
    monkeypatch.setenv("TASKBOARD_SUGGEST_MAX_ITEMS", "many")

    s = Settings.from_env()

    assert s.data_dir == Path(".local/taskboard")
    assert s.users_db_path == Path(".local/taskboard/users.sqlite3")
    assert len(s.llm_models) == 2
    assert s.suggest_max_items == 8
