from __future__ import annotations

from ..extensions import db


class ReferenceSequence(db.Model):
    """
    Atomic reference-number counters, one row per scope.

    WHY: Generating `{yy}{ACRONYM}{seq4}` by reading the current maximum races
    under concurrent creation. A scope row (e.g. "DEV:26ABC") is incremented
    with a single UPDATE instead, and developments.internal_reference carries
    a unique index as the final guard.
    """
    __tablename__ = "reference_sequences"
    __table_args__ = (
        db.UniqueConstraint("scope", name="uq_reference_sequences_scope"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scope": self.scope,
            "next_number": self.next_number,
        }
