# tests/test_user_store.py

from __future__ import annotations

import sqlite3

import pytest

from taskboard.auth.user_store import UserStore, hash_password, verify_password
from taskboard.cli.bootstrap import ensure_bootstrap_admin, login, logout
from taskboard.core.errors import AuthError, ValidationError
from taskboard.core.session import Session, open_session


@pytest.fixture()
def users(tmp_path) -> UserStore:
    return UserStore(tmp_path / "users.sqlite3")


def test_create_and_verify_user(users: UserStore) -> None:
    user = users.create_user("alice", "pw-123")

    session = users.verify("alice", "pw-123")

    assert session == Session(user_id=user.id, username="alice", role="user")
    assert users.verify("alice", "wrong") is None
    assert users.verify("nobody", "pw-123") is None


def test_password_is_stored_hashed(users: UserStore, tmp_path) -> None:
    users.create_user("alice", "pw-123")

    with sqlite3.connect(tmp_path / "users.sqlite3") as conn:
        (stored,) = conn.execute("SELECT password_hash FROM users").fetchone()

    assert stored != "pw-123"
    assert verify_password("pw-123", stored)


def test_verify_password_tolerates_garbage_hash() -> None:
    assert verify_password("x", "not-a-hash") is False
    assert verify_password("x", hash_password("x")) is True


@pytest.mark.parametrize(
    "username,password,role",
    [("", "pw", "user"), ("bob", "  ", "user"), ("bob", "pw", "owner")],
)
def test_create_user_validation(users: UserStore, username, password, role) -> None:
    with pytest.raises(ValidationError):
        users.create_user(username, password, role=role)
    assert users.count_users() == 0


def test_duplicate_username_is_rejected(users: UserStore) -> None:
    users.create_user("alice", "pw")
    with pytest.raises(ValidationError, match="already exists"):
        users.create_user(" alice ", "other")
    assert [u.username for u in users.list_users()] == ["alice"]


def test_delete_user(users: UserStore) -> None:
    user = users.create_user("alice", "pw")
    assert users.delete_user(user.id) is True
    assert users.delete_user(user.id) is False
    assert users.count_users() == 0


def test_open_session_errors(users: UserStore) -> None:
    users.create_user("alice", "pw")

    with pytest.raises(ValidationError):
        open_session(users, "", "pw")
    with pytest.raises(AuthError):
        open_session(users, "alice", "nope")

    session = open_session(users, "  alice ", "pw")
    assert session.username == "alice"
    assert not session.is_admin
    with pytest.raises(AuthError):
        session.require_admin()


def test_bootstrap_admin_created_once(state) -> None:
    (admin,) = state.users.list_users()
    assert admin.username == "admin"
    assert admin.role == "admin"

    assert ensure_bootstrap_admin(state) is False
    assert state.users.count_users() == 1


def test_bootstrap_admin_skipped_without_password(state) -> None:
    state.users.delete_user(state.users.list_users()[0].id)
    state.settings.admin_password = ""

    assert ensure_bootstrap_admin(state) is False
    assert state.users.count_users() == 0


@pytest.mark.asyncio
async def test_login_binds_board_to_session_and_logout_drops_it(state) -> None:
    session = await login(state, "admin", "s3cret")

    assert state.session is session
    assert state.board is not None
    assert state.board.session is session
    assert session.is_admin

    await logout(state)
    assert state.session is None
    assert state.board is None


@pytest.mark.asyncio
async def test_failed_login_leaves_state_signed_out(state) -> None:
    with pytest.raises(AuthError):
        await login(state, "admin", "wrong")
    assert state.session is None
    assert state.board is None
