from __future__ import annotations

from decimal import Decimal

from sqlalchemy import event

from ..errors import BusinessRuleError
from ..extensions import db
from twsystem.time_utils import to_utc_z, utcnow

PAYMENT_METHODS = ("CASH", "CREDIT_CARD", "DEBIT_CARD", "BANK_TRANSFER", "PIX", "CHECK")
PAYMENT_STATUSES = ("PENDING", "PAID")

ZERO = Decimal("0.00")


class PaymentInvariantError(BusinessRuleError):
    """paid_amount exceeds total_amount."""


def _money(value) -> float | None:
    return float(value) if value is not None else None


class ProductionReceipt(db.Model):
    """
    Payment receipt for one FINALIZED production order (one active per order).

    INVARIANT (enforced before every INSERT/UPDATE):
    - 0 <= paid_amount <= total_amount
    - remaining_amount = total_amount - paid_amount
    - payment_status == PAID iff paid_amount >= total_amount
    - payment_date is set while PAID and cleared while PENDING
    """
    __tablename__ = "production_receipts"
    __table_args__ = (
        db.Index("uq_production_receipts_active_order", "production_order_id", unique=True,
                 sqlite_where=db.text("active = 1"), postgresql_where=db.text("active = true")),
        db.Index("ix_production_receipts_status_due", "payment_status", "due_date"),
        db.CheckConstraint("paid_amount <= total_amount", name="paid_not_above_total"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    production_order_id = db.Column(db.Integer, db.ForeignKey("production_orders.id"), nullable=False, index=True)
    internal_reference = db.Column(db.String(20), nullable=False, index=True)

    payment_method = db.Column(db.String(16), nullable=False, info={"upper": True, "choices": PAYMENT_METHODS})
    payment_status = db.Column(db.String(8), nullable=False, default="PENDING",
                               info={"upper": True, "choices": PAYMENT_STATUSES})

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, info={"min": Decimal("0.01")})
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO, info={"min": 0})
    remaining_amount = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)

    issue_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.String(1000), nullable=True)

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
                           server_default=db.func.now())

    production_order = db.relationship("ProductionOrder", backref=db.backref("production_receipts", lazy=True))

    def apply_payment_invariant(self, now=None) -> None:
        total = Decimal(self.total_amount if self.total_amount is not None else ZERO)
        paid = Decimal(self.paid_amount if self.paid_amount is not None else ZERO)
        if paid < ZERO:
            raise PaymentInvariantError("Paid amount cannot be negative")
        if paid > total:
            raise PaymentInvariantError("Paid amount cannot exceed total amount")

        self.paid_amount = paid
        self.remaining_amount = total - paid
        if paid >= total:
            self.payment_status = "PAID"
            if self.payment_date is None:
                self.payment_date = now or utcnow()
        else:
            self.payment_status = "PENDING"
            self.payment_date = None

    def is_overdue(self, now=None) -> bool:
        if self.payment_status != "PENDING" or self.due_date is None:
            return False
        return self.due_date.replace(tzinfo=None) < (now or utcnow())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "production_order_id": self.production_order_id,
            "production_order": self.production_order.to_summary() if self.production_order else None,
            "internal_reference": self.internal_reference,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "total_amount": _money(self.total_amount),
            "paid_amount": _money(self.paid_amount),
            "remaining_amount": _money(self.remaining_amount),
            "issue_date": to_utc_z(self.issue_date),
            "due_date": to_utc_z(self.due_date),
            "payment_date": to_utc_z(self.payment_date),
            "notes": self.notes,
            "is_overdue": self.is_overdue(),
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


@event.listens_for(ProductionReceipt, "before_insert")
@event.listens_for(ProductionReceipt, "before_update")
def _enforce_payment_invariant(_mapper, _connection, target):
    """Recompute derived payment fields on every write."""
    target.apply_payment_invariant()
