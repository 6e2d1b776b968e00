# Overview: Retry helpers for optimistic-locking and uniqueness races.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    Execute a read-then-write DB operation with retry on concurrency failures.

    Retries on OperationalError (locks) and StaleDataError (a row's
    version_id changed between our read and our UPDATE). The session is
    rolled back before each retry so `func` starts from a fresh read.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_with_unique_retry(func, *, attempts: int = 5, backoff_base: float = 0.0):
    """Same as run_with_retry, but also retries unique-constraint collisions."""
    return run_with_retry(
        func,
        attempts=attempts,
        backoff_base=backoff_base,
        retry_on=RETRYABLE_ERRORS + (IntegrityError,),
    )
