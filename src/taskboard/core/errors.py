# src/taskboard/core/errors.py

"""
Error types shared by the board core and its adapters.

- ValidationError: bad input, raised before any remote call.
- NotFoundError: unknown task/subtask in the local view.
- StoreError: raised by RemoteStore adapters.
- SyncError: raised by BoardStore when a remote call failed; wraps the StoreError.
- SuggestionError: the AI suggestion call failed.
- AuthError: bad credentials or missing permission.
"""

from __future__ import annotations


class BoardError(Exception):
    """Base class for every error raised by taskboard."""


class ValidationError(BoardError, ValueError):
    pass


class NotFoundError(BoardError, KeyError):
    def __str__(self) -> str:
        # KeyError.__str__ quotes the message.
        return str(self.args[0]) if self.args else "not found"


class StoreError(BoardError):
    pass


class SyncError(BoardError):
    def __init__(self, message: str, *, operation: str = "") -> None:
        super().__init__(message)
        self.operation = operation


class SuggestionError(BoardError):
    pass


class AuthError(BoardError):
    pass
