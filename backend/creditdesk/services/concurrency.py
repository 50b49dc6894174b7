# Overview: Service-layer operations for concurrency; retry helpers around storage conflicts.

from __future__ import annotations

import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

T = TypeVar("T")


def run_with_retry(
    func: Callable[[], T],
    *,
    session: Session,
    attempts: int = 3,
    backoff_base: float = 0.1,
    retry_on: tuple[type[BaseException], ...] = (OperationalError, StaleDataError),
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """
    Execute a DB operation, retrying on the given exception types.

    The session is rolled back before each retry so the next attempt starts
    from a clean transaction. The last exception is re-raised once attempts
    are exhausted.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            session.rollback()
            if attempt >= attempts - 1:
                raise
            if on_retry is not None:
                on_retry(attempt + 1, exc)
            if backoff_base:
                time.sleep(backoff_base * (2 ** attempt))
    raise AssertionError("unreachable")
