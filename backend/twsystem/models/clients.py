from __future__ import annotations

from ..extensions import db
from twsystem.time_utils import to_utc_z, utcnow


def _money(value):
    return float(value) if value is not None else None


class Client(db.Model):
    """
    Customer company with contact, address and per-unit pricing.

    Clients are never hard-deleted: DELETE clears `active` and POST .../activate
    restores it. Acronym and CNPJ are unique among active clients only, so a
    deactivated client does not block re-registration.

    The API nests contact/address/values; columns are flat and to_dict()
    re-nests them.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("uq_clients_active_cnpj", "cnpj", unique=True,
                 sqlite_where=db.text("active = 1"), postgresql_where=db.text("active = true")),
        db.Index("uq_clients_active_acronym", "acronym", unique=True,
                 sqlite_where=db.text("active = 1"), postgresql_where=db.text("active = true")),
        db.Index("ix_clients_active_created", "active", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    acronym = db.Column(db.String(10), nullable=False, index=True, info={
        "min_length": 2, "upper": True,
        "pattern": r"[A-Z0-9]+", "pattern_message": "must contain only letters and digits",
    })
    company_name = db.Column(db.String(200), nullable=False, info={"min_length": 2})
    cnpj = db.Column(db.String(14), nullable=False, info={"digits_only": True, "exact_length": 14})

    contact_responsible_name = db.Column(db.String(100), nullable=False, info={"min_length": 2})
    contact_phone = db.Column(db.String(20), nullable=False, info={"min_length": 10})
    contact_email = db.Column(db.String(255), nullable=False, info={"lower": True, "email": True})

    address_street = db.Column(db.String(200), nullable=False)
    address_number = db.Column(db.String(20), nullable=False)
    address_complement = db.Column(db.String(100), nullable=True)
    address_neighborhood = db.Column(db.String(100), nullable=False)
    address_city = db.Column(db.String(100), nullable=False)
    address_state = db.Column(db.String(2), nullable=False, info={"upper": True, "exact_length": 2})
    address_zipcode = db.Column(db.String(9), nullable=False, info={
        "pattern": r"\d{5}-?\d{3}", "pattern_message": "must follow the format 12345-678",
    })

    value_per_meter = db.Column(db.Numeric(12, 2), nullable=False, default=0, info={"min": 0})
    value_per_piece = db.Column(db.Numeric(12, 2), nullable=False, default=0, info={"min": 0})

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
                           server_default=db.func.now())

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "acronym": self.acronym,
            "company_name": self.company_name,
            "cnpj": self.cnpj,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "acronym": self.acronym,
            "company_name": self.company_name,
            "cnpj": self.cnpj,
            "contact": {
                "responsible_name": self.contact_responsible_name,
                "phone": self.contact_phone,
                "email": self.contact_email,
            },
            "address": {
                "street": self.address_street,
                "number": self.address_number,
                "complement": self.address_complement,
                "neighborhood": self.address_neighborhood,
                "city": self.address_city,
                "state": self.address_state,
                "zipcode": self.address_zipcode,
            },
            "values": {
                "value_per_meter": _money(self.value_per_meter),
                "value_per_piece": _money(self.value_per_piece),
            },
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
