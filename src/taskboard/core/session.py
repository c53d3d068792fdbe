# src/taskboard/core/session.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import AuthError, ValidationError

if TYPE_CHECKING:
    from .ports import CredentialChecker

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
USER_ROLE = "user"


@dataclass(frozen=True, slots=True)
class Session:
    """
    The signed-in user.

    Created by open_session() after a successful credential check and passed
    explicitly to whatever needs it (BoardStore, console state). Dropping the
    value is the logout.
    """

    user_id: str
    username: str
    role: str = USER_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    def require_admin(self) -> None:
        if not self.is_admin:
            raise AuthError("This action requires an admin account.")


def open_session(checker: CredentialChecker, username: str, password: str) -> Session:
    if not (username or "").strip() or not (password or "").strip():
        raise ValidationError("Username and password are required.")

    session = checker.verify(username.strip(), password)
    if session is None:
        logger.info("Login failed for username=%s", username.strip())
        raise AuthError("Invalid username or password.")

    logger.info("Login ok user_id=%s role=%s", session.user_id, session.role)
    return session
