# Overview: Row locking and retry helpers for state transitions that race (edit request resolution).

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

# Transient failures worth re-running the whole unit of work for:
# lock timeouts / deadlocks and optimistic version_id mismatches.
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows matched by query.

    NOTE: SQLite ignores FOR UPDATE; there the version_id_col on EditRequest
    is what turns a lost race into StaleDataError.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func (which must do its own reads and commit) until it succeeds.

    On a retryable error the session is rolled back and func is re-run from
    scratch, so it re-reads current state. Domain errors propagate at once.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.info(
                "Retrying after transient database error (attempt %s/%s): %s",
                attempt + 1,
                attempts,
                exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
