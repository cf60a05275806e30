from __future__ import annotations

from ..extensions import db
from twsystem.time_utils import to_utc_z, utcnow, utcnow_seconds

PRODUCTION_ORDER_STATUSES = (
    "CREATED",
    "PILOT_PRODUCTION",
    "PILOT_SENT",
    "PILOT_APPROVED",
    "PRODUCTION_STARTED",
    "FINALIZED",
)
PRIORITIES = ("green", "yellow", "red")

# Ordered: a sheet only ever moves forward through these
PRODUCTION_STAGES = ("PRINTING", "CALENDERING", "FINISHED")
MACHINES = (1, 2, 3, 4)


class ProductionOrder(db.Model):
    """
    Production order for one APPROVED development.

    internal_reference is copied from the development at creation. At most one
    active order exists per development (partial unique index).
    """
    __tablename__ = "production_orders"
    __table_args__ = (
        db.Index("uq_production_orders_active_development", "development_id", unique=True,
                 sqlite_where=db.text("active = 1"), postgresql_where=db.text("active = true")),
        db.Index("ix_production_orders_status", "status"),
        db.Index("ix_production_orders_priority", "priority"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    development_id = db.Column(db.Integer, db.ForeignKey("developments.id"), nullable=False, index=True)
    internal_reference = db.Column(db.String(20), nullable=False, index=True)

    status = db.Column(db.String(24), nullable=False, default="CREATED",
                       info={"upper": True, "choices": PRODUCTION_ORDER_STATUSES})
    fabric_type = db.Column(db.String(100), nullable=False)
    pilot = db.Column(db.Boolean, nullable=False, default=False)
    observations = db.Column(db.String(1000), nullable=True)
    priority = db.Column(db.String(8), nullable=False, default="green", info={"lower": True, "choices": PRIORITIES})

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
                           server_default=db.func.now())

    development = db.relationship("Development", backref=db.backref("production_orders", lazy=True))

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "internal_reference": self.internal_reference,
            "development_id": self.development_id,
            "status": self.status,
            "fabric_type": self.fabric_type,
            "priority": self.priority,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "development_id": self.development_id,
            "development": self.development.to_summary() if self.development else None,
            "internal_reference": self.internal_reference,
            "status": self.status,
            "fabric_type": self.fabric_type,
            "pilot": self.pilot,
            "observations": self.observations,
            "priority": self.priority,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductionSheet(db.Model):
    """
    One machine run for a production order.

    Stage moves PRINTING -> CALENDERING -> FINISHED only. Reaching FINISHED
    emits production_sheet_finished (see services/workflow_service.py), which
    finalizes the parent order inside the same transaction.
    """
    __tablename__ = "production_sheets"
    __table_args__ = (
        db.Index("uq_production_sheets_active_order", "production_order_id", unique=True,
                 sqlite_where=db.text("active = 1"), postgresql_where=db.text("active = true")),
        db.Index("ix_production_sheets_machine_stage", "machine", "stage"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    production_order_id = db.Column(db.Integer, db.ForeignKey("production_orders.id"), nullable=False, index=True)
    internal_reference = db.Column(db.String(20), nullable=False, index=True)

    entry_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow_seconds)
    expected_exit_date = db.Column(db.DateTime(timezone=True), nullable=False)
    machine = db.Column(db.Integer, nullable=False, info={"choices": MACHINES})
    stage = db.Column(db.String(16), nullable=False, default="PRINTING",
                      info={"upper": True, "choices": PRODUCTION_STAGES})
    production_notes = db.Column(db.String(1000), nullable=True)
    temperature = db.Column(db.Float, nullable=True, info={"min": 0, "max": 500})
    velocity = db.Column(db.Float, nullable=True, info={"min": 0, "max": 1000})

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
                           server_default=db.func.now())

    production_order = db.relationship("ProductionOrder", backref=db.backref("production_sheets", lazy=True))

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "internal_reference": self.internal_reference,
            "production_order_id": self.production_order_id,
            "machine": self.machine,
            "stage": self.stage,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "production_order_id": self.production_order_id,
            "production_order": self.production_order.to_summary() if self.production_order else None,
            "internal_reference": self.internal_reference,
            "entry_date": to_utc_z(self.entry_date),
            "expected_exit_date": to_utc_z(self.expected_exit_date),
            "machine": self.machine,
            "stage": self.stage,
            "production_notes": self.production_notes,
            "temperature": self.temperature,
            "velocity": self.velocity,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
