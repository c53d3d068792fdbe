# src/taskboard/auth/user_store.py

from __future__ import annotations

import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from passlib.context import CryptContext

from ..core.errors import ValidationError
from ..core.session import ADMIN_ROLE, USER_ROLE, Session

logger = logging.getLogger(__name__)

# pbkdf2_sha256 is pure-python in passlib (no native bcrypt backend needed).
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ROLES = (ADMIN_ROLE, USER_ROLE)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        # Unknown/corrupt hash format.
        return False


@dataclass(slots=True)
class User:
    id: str
    username: str
    role: str
    created_at: float


class UserStore:
    """
    SQLite user directory (CredentialChecker implementation).

    Passwords are stored as passlib hashes only.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "users.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("UserStore ready db=%s users=%s", self._db_path, self.count_users())

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    role TEXT NOT NULL DEFAULT 'user',
                    password_hash TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            username=str(row["username"]),
            role=str(row["role"] or USER_ROLE),
            created_at=float(row["created_at"] or 0.0),
        )

    # ---- public API ----

    def count_users(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM users").fetchone()
            return int(n)
        finally:
            conn.close()

    def create_user(self, username: str, password: str, role: str = USER_ROLE) -> User:
        username = (username or "").strip()
        if not username or not (password or "").strip():
            raise ValidationError("Username and password are required.")
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role!r}")

        user = User(id=uuid.uuid4().hex, username=username, role=role, created_at=time.time())
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO users(id, username, role, password_hash, created_at) VALUES (?, ?, ?, ?, ?)",
                (user.id, user.username, user.role, hash_password(password), user.created_at),
            )
            conn.commit()
        except sqlite3.IntegrityError:
            raise ValidationError(f"Username already exists: {username}") from None
        finally:
            conn.close()

        logger.info("User created id=%s username=%s role=%s", user.id, user.username, user.role)
        return user

    def list_users(self) -> list[User]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT id, username, role, created_at FROM users ORDER BY created_at ASC").fetchall()
            return [self._row_to_user(r) for r in rows]
        finally:
            conn.close()

    def delete_user(self, user_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def verify(self, username: str, password: str) -> Session | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT id, username, role, password_hash FROM users WHERE username = ?",
                ((username or "").strip(),),
            ).fetchone()
        finally:
            conn.close()

        if row is None or not verify_password(password, str(row["password_hash"])):
            return None
        return Session(user_id=str(row["id"]), username=str(row["username"]), role=str(row["role"]))
