# Overview: Allocation of human-readable reference codes.

"""
Reference Codes

Developments receive `{yy}{ACRONYM}{seq4}` (e.g. 26ABC0001): two-digit year,
the client's acronym, and a 4-digit sequence that restarts every year for
every acronym. Production orders, sheets, delivery sheets and receipts copy
the code from their parent instead of deriving a new one.

Codes are allocated once, at creation, and never regenerated on update.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Development, ReferenceSequence
from .concurrency import run_with_retry
from twsystem.time_utils import utcnow

DEFAULT_ACRONYM = "DEF"
SEQUENCE_PAD = 4


class ReferenceSequenceError(Exception):
    """Raised when reference sequence operations fail."""
    pass


def _seed_from_existing(prefix: str) -> int:
    """
    First number for a scope with no counter row yet.

    Rows created before the counter table existed (imports, old data) are
    honoured by continuing after the highest existing suffix.
    """
    highest = (
        db.session.query(func.max(Development.internal_reference))
        .filter(Development.internal_reference.like(prefix + "_" * SEQUENCE_PAD))
        .scalar()
    )
    if not highest:
        return 1
    suffix = highest[len(prefix):]
    return int(suffix) + 1 if suffix.isdigit() else 1


def next_sequence_number(scope: str, *, seed=None) -> int:
    """
    Atomically allocate the next number for a scope.

    The UPDATE ... SET next_number = next_number + 1 is a single statement, so
    concurrent callers serialize on the row.
    """
    def _op() -> int:
        if not scope:
            raise ReferenceSequenceError("scope is required")

        stmt = (
            update(ReferenceSequence)
            .where(ReferenceSequence.scope == scope)
            .values(next_number=ReferenceSequence.next_number + 1)
        )

        result = db.session.execute(stmt)
        if result.rowcount:
            db.session.flush()
            current = (
                db.session.query(ReferenceSequence.next_number)
                .filter_by(scope=scope)
                .scalar()
            )
            return current - 1

        first = seed() if seed else 1
        seq = ReferenceSequence(scope=scope, next_number=first + 1)
        db.session.add(seq)
        try:
            with db.session.begin_nested():
                db.session.flush()
            return first
        except IntegrityError:
            # Another request created the row first; fall back to the increment path
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            db.session.flush()
            current = (
                db.session.query(ReferenceSequence.next_number)
                .filter_by(scope=scope)
                .scalar()
            )
            return current - 1

    return run_with_retry(_op)


def development_reference_prefix(acronym: str | None, now: datetime | None = None) -> str:
    year = (now or utcnow()).strftime("%y")
    return f"{year}{(acronym or DEFAULT_ACRONYM).upper()}"


def next_development_reference(acronym: str | None, now: datetime | None = None) -> str:
    """Allocate the next `{yy}{ACRONYM}{seq4}` code for a client acronym."""
    prefix = development_reference_prefix(acronym, now)
    number = next_sequence_number(f"DEV:{prefix}", seed=lambda: _seed_from_existing(prefix))
    return f"{prefix}{number:0{SEQUENCE_PAD}d}"
