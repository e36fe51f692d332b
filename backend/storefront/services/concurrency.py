# Overview: Locking and retry helpers shared by the order services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

# Lock waits/deadlocks and lost optimistic-lock races. Anything else propagates.
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Read rows with SELECT ... FOR UPDATE.

    SQLite ignores the clause; Order.version_id still rejects the lost update
    at commit and run_with_retry re-applies the change.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a read-modify-commit closure, re-running it after a concurrent write.

    func re-reads every row it mutates and makes no gateway or mail calls,
    so running it again is safe. The session is rolled back before each retry.
    The last error is re-raised once attempts are exhausted.
    """
    name = getattr(func, "__qualname__", repr(func))
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                current_app.logger.error("%s gave up after %s attempts: %s", name, attempts, exc)
                raise
            current_app.logger.warning(
                "%s hit a concurrent update (attempt %s/%s): %s", name, attempt, attempts, exc
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
