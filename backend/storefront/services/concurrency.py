# Overview: Service-layer helpers for concurrency; row locks and optimistic-retry wrappers.

from __future__ import annotations

import time

from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Orders additionally carry a version_id column, so a writer that lost the
    race still fails at flush time with StaleDataError.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a unit of work, retrying on optimistic locking conflicts.

    Only StaleDataError is retried: `func` must re-read and re-validate
    everything it depends on. Store timeouts and other OperationalErrors
    propagate immediately; retrying those is the caller's responsibility.
    """
    for attempt in range(attempts):
        try:
            return func()
        except StaleDataError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
