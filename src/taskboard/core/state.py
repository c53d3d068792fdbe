# src/taskboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..auth.user_store import UserStore
from ..board.board_store import BoardStore
from ..board.sqlite_store import SqliteRemoteStore
from .errors import AuthError
from .ports import Suggester
from .session import Session


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    remote: SqliteRemoteStore
    users: UserStore
    suggester: Suggester
    suggester_online: bool

    # Set on login, dropped on logout.
    session: Session | None = None
    board: BoardStore | None = None

    def require_board(self) -> BoardStore:
        if self.board is None or self.session is None:
            raise AuthError("Not signed in.")
        return self.board
