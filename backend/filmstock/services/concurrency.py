# Overview: Retry and locking helpers shared by every service that touches contended rows.

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def is_transient_db_error(exc: BaseException) -> bool:
    """Deadlocks, lock timeouts and optimistic-lock conflicts."""
    return isinstance(exc, (OperationalError, StaleDataError))


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    - attempts: total tries, including the first
    - backoff_base: delay before the second try, in seconds; doubles each time
    - retryable: predicate deciding whether an exception is transient
    """
    attempts: int = 3
    backoff_base: float = 0.1
    retryable: Callable[[BaseException], bool] = field(default=is_transient_db_error)

    def delay_for(self, attempt: int) -> float:
        return self.backoff_base * (2 ** attempt)

    def run(self, func, *, on_retry=None):
        for attempt in range(self.attempts):
            try:
                return func()
            except Exception as exc:
                if not self.retryable(exc) or attempt >= self.attempts - 1:
                    raise
                if on_retry is not None:
                    on_retry(exc)
                time.sleep(self.delay_for(attempt))


DB_RETRY_POLICY = RetryPolicy()


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, policy: RetryPolicy = DB_RETRY_POLICY):
    """
    Execute a DB unit of work, re-running it on concurrency failures.

    The session is rolled back before each retry so the next attempt
    re-reads current rows (and re-validates against them).
    Any other failure rolls the session back before propagating, so a
    rejected operation leaves no partial writes behind.
    """
    try:
        return policy.run(func, on_retry=lambda exc: db.session.rollback())
    except Exception:
        db.session.rollback()
        raise


def is_transient_write_error(exc: BaseException) -> bool:
    """
    Transient DB errors plus unique-key races on lazily created rows
    (pool rows, sequence rows). Re-running the unit of work finds the row.
    """
    return is_transient_db_error(exc) or isinstance(exc, IntegrityError)


WRITE_RETRY_POLICY = RetryPolicy(retryable=is_transient_write_error)
