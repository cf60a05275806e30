# Overview: Service-layer operations for production receipts; encapsulates business logic and database work.

"""
Production Receipt Service

WHY: Billing for finished work. A receipt is issued once the production
order is FINALIZED and tracks what the client has paid against it.

BUSINESS RULES:
- The order must be active and FINALIZED; one active receipt per order
- internal_reference is copied from the production order
- paid_amount never exceeds total_amount; remaining_amount and
  payment_status are derived (see ProductionReceipt.apply_payment_invariant)
- process-payment adds to paid_amount; rejected when already PAID or when
  the amount exceeds the remaining balance
- setting payment_status PAID settles the full amount; PENDING is rejected
  while the receipt is fully paid
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func

from ..errors import BusinessRuleError, ConflictError, ErrorCode, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    Development,
    ProductionOrder,
    ProductionReceipt,
)
from ..validation import ModelValidationPolicy, field_error, parse_number, require_enum, validate_payload
from . import query_service
from .concurrency import commit_or_conflict
from twsystem.time_utils import parse_iso_datetime, utcnow

logger = logging.getLogger(__name__)

RECEIPT_POLICY = ModelValidationPolicy(
    writable_fields={
        "production_order_id", "payment_method", "total_amount", "paid_amount",
        "issue_date", "due_date", "notes",
    },
    required_on_create={"production_order_id", "payment_method", "total_amount", "due_date"},
)

SORTABLE = (
    "internal_reference", "payment_status", "payment_method", "total_amount",
    "remaining_amount", "issue_date", "due_date", "payment_date", "updated_at",
)
FILTERS = (
    "payment_status", "payment_method", "production_order_id", "client_id",
    "created_from", "created_to", "overdue",
)

DUPLICATE_MESSAGE = "Production receipt already exists for this production order"
MIN_PAYMENT = Decimal("0.01")


def _amount_rules(current: ProductionReceipt | None):
    def rules(patch: dict, errors: list, partial: bool) -> None:
        total = patch.get("total_amount", current.total_amount if current else None)
        paid = patch.get("paid_amount", current.paid_amount if current else None)
        if total is None or paid is None:
            return
        if Decimal(paid) > Decimal(total):
            errors.append(field_error("paid_amount", "paid_amount cannot exceed total_amount"))
    return rules


def _finalized_order(order_id: int, *, exclude_receipt_id: int | None = None) -> ProductionOrder:
    order = db.session.get(ProductionOrder, order_id)
    if order is None or not order.active:
        raise NotFoundError("Production order not found", code=ErrorCode.PRODUCTION_ORDER_NOT_FOUND)
    if order.status != "FINALIZED":
        raise BusinessRuleError(
            "Production order must be finalized to create production receipt",
            code=ErrorCode.PRODUCTION_ORDER_NOT_FINALIZED,
        )

    existing = db.session.query(ProductionReceipt.id).filter(
        ProductionReceipt.production_order_id == order_id,
        ProductionReceipt.active.is_(True),
    )
    if exclude_receipt_id is not None:
        existing = existing.filter(ProductionReceipt.id != exclude_receipt_id)
    if existing.first() is not None:
        raise ConflictError(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_RECEIPT_ALREADY_EXISTS)
    return order


def _date_filter(value: str | None, name: str):
    if value is None:
        return None
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(
            f"Invalid {name} parameter",
            code=ErrorCode.INVALID_DATE_FORMAT,
            errors=[field_error(name, f"{name} must be an ISO-8601 date")],
        )
    return parsed


def _overdue_clause(now=None):
    return (
        (ProductionReceipt.payment_status == "PENDING")
        & (ProductionReceipt.due_date < (now or utcnow()))
    )


def list_receipts(args) -> dict:
    params = query_service.parse_list_params(args, filter_keys=FILTERS, sortable=SORTABLE)
    query = query_service.apply_active(db.session.query(ProductionReceipt), ProductionReceipt, params.active)
    filters = params.filters

    if "payment_status" in filters:
        query = query.filter(ProductionReceipt.payment_status == filters["payment_status"].upper())
    if "payment_method" in filters:
        query = query.filter(ProductionReceipt.payment_method == filters["payment_method"].upper())
    order_id = query_service.int_filter(params, "production_order_id")
    if order_id is not None:
        query = query.filter(ProductionReceipt.production_order_id == order_id)
    client_id = query_service.int_filter(params, "client_id")
    if client_id is not None:
        order_ids = (
            db.session.query(ProductionOrder.id)
            .join(Development, ProductionOrder.development_id == Development.id)
            .filter(Development.client_id == client_id)
        )
        query = query.filter(ProductionReceipt.production_order_id.in_(order_ids))

    created_from = _date_filter(filters.get("created_from"), "created_from")
    if created_from is not None:
        query = query.filter(ProductionReceipt.created_at >= created_from)
    created_to = _date_filter(filters.get("created_to"), "created_to")
    if created_to is not None:
        query = query.filter(ProductionReceipt.created_at <= created_to)

    if query_service.parse_bool(filters.get("overdue"), "overdue"):
        query = query.filter(_overdue_clause())
    if params.search:
        query = query.filter(query_service.search_clause(
            params.search, (ProductionReceipt.internal_reference, ProductionReceipt.notes)
        ))

    query = query_service.apply_sort(query, ProductionReceipt, params)
    return query_service.paginate(query, params)


def list_overdue() -> list[dict]:
    rows = (
        db.session.query(ProductionReceipt)
        .filter(ProductionReceipt.active.is_(True), _overdue_clause())
        .order_by(ProductionReceipt.due_date.asc(), ProductionReceipt.id.asc())
        .all()
    )
    return [row.to_dict() for row in rows]


def get_receipt(key) -> ProductionReceipt:
    return query_service.get_by_id_or_reference(
        ProductionReceipt, key, message="Production receipt not found", code=ErrorCode.PRODUCTION_RECEIPT_NOT_FOUND
    )


def get_receipt_by_id(receipt_id: int) -> ProductionReceipt:
    return query_service.get_or_404(
        ProductionReceipt, receipt_id, message="Production receipt not found",
        code=ErrorCode.PRODUCTION_RECEIPT_NOT_FOUND,
    )


def get_by_production_order(order_id: int) -> ProductionReceipt:
    order_id = query_service.parse_id(order_id, "order_id")
    receipt = (
        db.session.query(ProductionReceipt)
        .filter(ProductionReceipt.production_order_id == order_id, ProductionReceipt.active.is_(True))
        .first()
    )
    if receipt is None:
        raise NotFoundError("Production receipt not found", code=ErrorCode.PRODUCTION_RECEIPT_NOT_FOUND)
    return receipt


def create_receipt(payload: dict) -> ProductionReceipt:
    patch = validate_payload(
        model=ProductionReceipt, payload=payload, policy=RECEIPT_POLICY, partial=False, rules=_amount_rules(None)
    )
    order = _finalized_order(patch["production_order_id"])

    receipt = ProductionReceipt(**patch)
    receipt.internal_reference = order.internal_reference
    receipt.apply_payment_invariant()
    db.session.add(receipt)
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_RECEIPT_ALREADY_EXISTS)

    logger.info("Production receipt %s issued for %s", receipt.internal_reference, receipt.total_amount)
    return receipt


def update_receipt(receipt_id: int, payload: dict) -> ProductionReceipt:
    receipt = get_receipt_by_id(receipt_id)
    patch = validate_payload(
        model=ProductionReceipt, payload=payload, policy=RECEIPT_POLICY, partial=True, rules=_amount_rules(receipt)
    )
    if "production_order_id" in patch and patch["production_order_id"] != receipt.production_order_id:
        order = _finalized_order(patch["production_order_id"], exclude_receipt_id=receipt.id)
        receipt.internal_reference = order.internal_reference

    for key, value in patch.items():
        setattr(receipt, key, value)
    receipt.apply_payment_invariant()
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_RECEIPT_ALREADY_EXISTS)
    return receipt


def process_payment(receipt_id: int, payload: dict) -> ProductionReceipt:
    """Record a (partial) payment against the remaining balance."""
    receipt = get_receipt_by_id(receipt_id)
    payload = payload or {}
    amount = parse_number(payload.get("amount"), "amount", minimum=MIN_PAYMENT)

    if receipt.payment_status == "PAID":
        raise BusinessRuleError("Payment already completed", code=ErrorCode.PAYMENT_ALREADY_COMPLETED)
    remaining = Decimal(receipt.total_amount) - Decimal(receipt.paid_amount or 0)
    if amount > remaining:
        raise BusinessRuleError(
            "Payment amount exceeds remaining balance",
            code=ErrorCode.PAYMENT_EXCEEDS_BALANCE,
        )

    payment_date = _date_filter(payload.get("payment_date"), "payment_date") if payload.get("payment_date") else None

    receipt.paid_amount = Decimal(receipt.paid_amount or 0) + amount
    if receipt.paid_amount >= Decimal(receipt.total_amount):
        receipt.payment_date = payment_date or utcnow()
    receipt.apply_payment_invariant()
    db.session.commit()

    logger.info("Payment of %s recorded on receipt %s", amount, receipt.internal_reference)
    return receipt


def change_payment_status(receipt_id: int, status) -> ProductionReceipt:
    receipt = get_receipt_by_id(receipt_id)
    target = require_enum(status.upper() if isinstance(status, str) else status, PAYMENT_STATUSES, "payment_status")

    if target == "PAID":
        receipt.paid_amount = receipt.total_amount
    elif Decimal(receipt.paid_amount or 0) >= Decimal(receipt.total_amount):
        raise BusinessRuleError(
            "Invalid status transition: a fully paid receipt cannot be set to PENDING",
            code=ErrorCode.INVALID_STATUS_TRANSITION,
        )
    receipt.apply_payment_invariant()
    db.session.commit()
    return receipt


def deactivate_receipt(receipt_id: int) -> ProductionReceipt:
    receipt = get_receipt_by_id(receipt_id)
    receipt.active = False
    db.session.commit()
    return receipt


def activate_receipt(receipt_id: int) -> ProductionReceipt:
    receipt = get_receipt_by_id(receipt_id)
    if receipt.active:
        raise BusinessRuleError("Production receipt is already active", code=ErrorCode.OPERATION_NOT_ALLOWED)
    clash = db.session.query(ProductionReceipt.id).filter(
        ProductionReceipt.production_order_id == receipt.production_order_id,
        ProductionReceipt.active.is_(True),
        ProductionReceipt.id != receipt.id,
    ).first()
    if clash is not None:
        raise ConflictError(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_RECEIPT_ALREADY_EXISTS)
    receipt.active = True
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_RECEIPT_ALREADY_EXISTS)
    return receipt


def receipt_stats() -> dict:
    base = db.session.query(ProductionReceipt).filter(ProductionReceipt.active.is_(True))

    by_status = {status: {"count": 0, "amount": 0.0} for status in PAYMENT_STATUSES}
    rows = (
        base.with_entities(
            ProductionReceipt.payment_status,
            func.count(ProductionReceipt.id),
            func.coalesce(func.sum(ProductionReceipt.total_amount), 0),
        )
        .group_by(ProductionReceipt.payment_status)
        .all()
    )
    for status, count, amount in rows:
        by_status[status] = {"count": count, "amount": float(amount or 0)}

    by_method = {method: {"count": 0, "amount": 0.0} for method in PAYMENT_METHODS}
    rows = (
        base.filter(ProductionReceipt.payment_status == "PAID")
        .with_entities(
            ProductionReceipt.payment_method,
            func.count(ProductionReceipt.id),
            func.coalesce(func.sum(ProductionReceipt.paid_amount), 0),
        )
        .group_by(ProductionReceipt.payment_method)
        .all()
    )
    for method, count, amount in rows:
        by_method[method] = {"count": count, "amount": float(amount or 0)}

    overdue = base.filter(_overdue_clause()).count()
    return {
        "total": sum(entry["count"] for entry in by_status.values()),
        "by_payment_status": by_status,
        "paid_by_method": by_method,
        "overdue": overdue,
    }
