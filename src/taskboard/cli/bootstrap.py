# src/taskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (remote store, users, suggester),
- opens and closes board sessions (login/logout).
"""

from __future__ import annotations

import logging

from ..auth.user_store import UserStore
from ..board.board_store import BoardStore, NoticeSink
from ..board.sqlite_store import SqliteRemoteStore
from ..config import get_settings
from ..core.ports import LLMClient
from ..core.session import ADMIN_ROLE, Session, open_session
from ..core.state import AppState
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..llm.suggester import LLMSuggester

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.board_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.users_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    llm_client: LLMClient
    online = True
    try:
        llm_client = OpenRouterLLMClient(settings)
    except RuntimeError as e:
        logger.info("AI suggestions offline: %s", e)
        llm_client = OfflineLLMClient()
        online = False

    state = AppState(
        settings=settings,
        remote=SqliteRemoteStore(settings.board_db_path),
        users=UserStore(settings.users_db_path),
        suggester=LLMSuggester(llm_client, max_items=int(getattr(settings, "suggest_max_items", 8))),
        suggester_online=online,
    )
    ensure_bootstrap_admin(state)
    return state


def ensure_bootstrap_admin(state: AppState) -> bool:
    """Create the configured admin account when the users table is empty."""
    username = str(getattr(state.settings, "admin_username", "") or "").strip()
    password = str(getattr(state.settings, "admin_password", "") or "")
    if not username or not password:
        return False
    if state.users.count_users() > 0:
        return False
    state.users.create_user(username, password, role=ADMIN_ROLE)
    logger.info("Bootstrap admin created: %s", username)
    return True


async def login(state: AppState, username: str, password: str, *, notify: NoticeSink | None = None) -> Session:
    """
    Credential check -> Session -> BoardStore bound to that session.

    Raises ValidationError / AuthError on bad input or credentials, and
    SyncError if the first load fails (the session stays open; /refresh retries).
    """
    if state.board is not None:
        await logout(state)

    session = open_session(state.users, username, password)
    board = BoardStore(state.remote, suggester=state.suggester, session=session, notify=notify)
    state.session = session
    state.board = board

    if getattr(state.settings, "realtime_enabled", True):
        board.start_realtime()
    await board.load_all()
    return session


async def logout(state: AppState) -> None:
    board, state.board = state.board, None
    session, state.session = state.session, None
    if board is not None:
        await board.close()
    if session is not None:
        logger.info("Logged out user=%s", session.username)
