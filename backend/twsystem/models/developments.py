from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from twsystem.time_utils import to_utc_z, utcnow

DEVELOPMENT_STATUSES = ("CREATED", "AWAITING_APPROVAL", "APPROVED", "CANCELED")
PRODUCTION_TYPES = ("rotary", "localized")


class Development(db.Model):
    """
    Proposed product for one client.

    internal_reference is `{yy}{ACRONYM}{seq4}` (e.g. 26ABC0001), allocated
    once at creation by reference_service and never regenerated.

    production_type is a tagged variant:
    - rotary: production_meters (>= 0.1), production_sizes is NULL
    - localized: production_sizes [{size, value}], production_meters is NULL
    """
    __tablename__ = "developments"
    __table_args__ = (
        db.Index("ix_developments_client_active", "client_id", "active"),
        db.Index("ix_developments_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)

    internal_reference = db.Column(db.String(20), nullable=False, unique=True)

    description = db.Column(db.String(500), nullable=True)
    client_reference = db.Column(db.String(100), nullable=True)

    piece_image_url = db.Column(db.String(500), nullable=True)
    piece_image_public_id = db.Column(db.String(255), nullable=True)

    variant_color = db.Column(db.String(50), nullable=True)

    production_type = db.Column(db.String(16), nullable=False, info={"lower": True, "choices": PRODUCTION_TYPES})
    production_meters = db.Column(db.Numeric(12, 2), nullable=True, info={"min": Decimal("0.1")})
    production_sizes = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(24), nullable=False, default="CREATED", info={"upper": True, "choices": DEVELOPMENT_STATUSES})

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
                           server_default=db.func.now())

    client = db.relationship("Client", backref=db.backref("developments", lazy=True))

    def production_type_dict(self) -> dict:
        if self.production_type == "rotary":
            meters = self.production_meters
            return {"type": "rotary", "meters": float(meters) if meters is not None else None}
        return {"type": self.production_type, "sizes": list(self.production_sizes or [])}

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "internal_reference": self.internal_reference,
            "client_id": self.client_id,
            "client": self.client.to_summary() if self.client else None,
            "description": self.description,
            "client_reference": self.client_reference,
            "variants": {"color": self.variant_color},
            "production_type": self.production_type_dict(),
            "status": self.status,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "client": self.client.to_summary() if self.client else None,
            "internal_reference": self.internal_reference,
            "description": self.description,
            "client_reference": self.client_reference,
            "piece_image": {
                "url": self.piece_image_url,
                "public_id": self.piece_image_public_id,
            },
            "variants": {"color": self.variant_color},
            "production_type": self.production_type_dict(),
            "status": self.status,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
