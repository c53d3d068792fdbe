# src/taskboard/board/optimistic.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")
R = TypeVar("R")


async def optimistic(
    *,
    snapshot: Callable[[], S],
    apply: Callable[[], None],
    remote: Callable[[], Awaitable[R]],
    restore: Callable[[S, BaseException], Awaitable[None] | None],
) -> R:
    """
    Optimistic local mutation with rollback.

    Order:
    1. snapshot()      - capture whatever restore() needs
    2. apply()         - mutate the local view (synchronously, before any await)
    3. await remote()  - persist
    4. on failure: restore(snap, exc), then re-raise the original exception

    restore() may be sync or async (a full reload is async, a snapshot swap is not).
    Exceptions from restore() are logged and do not mask the remote failure.
    """
    snap = snapshot()
    apply()
    try:
        return await remote()
    except Exception as e:
        try:
            res = restore(snap, e)
            if res is not None:
                await res
        except Exception:
            logger.exception("Rollback after failed remote call also failed")
        raise
