# Overview: Transaction helpers; retries transient lock failures and maps uniqueness violations to 409s.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, ErrorCode
from ..extensions import db


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))


def commit_or_conflict(message: str = "Duplicate entry", *, code: int = ErrorCode.DUPLICATE_ENTRY) -> None:
    """
    Commit the session; a unique-index violation becomes a ConflictError.

    WHY: one-active-child and reference-code uniqueness are enforced by
    partial unique indexes, so two requests racing past the application-level
    check fail here with a 409 instead of both succeeding.
    """
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message, code=code)
