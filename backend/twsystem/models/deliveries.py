from __future__ import annotations

from ..extensions import db
from twsystem.time_utils import to_utc_z, utcnow

DELIVERY_STATUSES = ("CREATED", "ON_ROUTE", "DELIVERED")


class DeliverySheet(db.Model):
    """Shipment of one finished production sheet to the client (one active per sheet)."""
    __tablename__ = "delivery_sheets"
    __table_args__ = (
        db.Index("uq_delivery_sheets_active_sheet", "production_sheet_id", unique=True,
                 sqlite_where=db.text("active = 1"), postgresql_where=db.text("active = true")),
        db.Index("ix_delivery_sheets_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    production_sheet_id = db.Column(db.Integer, db.ForeignKey("production_sheets.id"), nullable=False, index=True)
    internal_reference = db.Column(db.String(20), nullable=False, index=True)

    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    total_value = db.Column(db.Numeric(12, 2), nullable=False, info={"min": 0})
    notes = db.Column(db.String(1000), nullable=True)
    invoice_number = db.Column(db.String(50), nullable=False, index=True)

    address_street = db.Column(db.String(200), nullable=False)
    address_number = db.Column(db.String(20), nullable=False)
    address_complement = db.Column(db.String(100), nullable=True)
    address_neighborhood = db.Column(db.String(100), nullable=False)
    address_city = db.Column(db.String(100), nullable=False)
    address_state = db.Column(db.String(2), nullable=False, info={"upper": True, "exact_length": 2})
    address_zip_code = db.Column(db.String(10), nullable=False, info={
        "pattern": r"\d{5}-?\d{3}", "pattern_message": "must follow the format 12345-678",
    })

    status = db.Column(db.String(16), nullable=False, default="CREATED",
                       info={"upper": True, "choices": DELIVERY_STATUSES})

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
                           server_default=db.func.now())

    production_sheet = db.relationship("ProductionSheet", backref=db.backref("delivery_sheets", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "production_sheet_id": self.production_sheet_id,
            "production_sheet": self.production_sheet.to_summary() if self.production_sheet else None,
            "internal_reference": self.internal_reference,
            "delivery_date": to_utc_z(self.delivery_date),
            "total_value": float(self.total_value) if self.total_value is not None else None,
            "notes": self.notes,
            "invoice_number": self.invoice_number,
            "address": {
                "street": self.address_street,
                "number": self.address_number,
                "complement": self.address_complement,
                "neighborhood": self.address_neighborhood,
                "city": self.address_city,
                "state": self.address_state,
                "zip_code": self.address_zip_code,
            },
            "status": self.status,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
