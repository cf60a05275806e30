# Overview: Service-layer operations for delivery sheets; encapsulates business logic and database work.

"""
Delivery Sheet Service

BUSINESS RULES:
- Requires an existing active production sheet; one active delivery per sheet
- internal_reference is copied from the production sheet
- status: CREATED -> ON_ROUTE -> DELIVERED (set manually)
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import BusinessRuleError, ConflictError, ErrorCode, NotFoundError
from ..extensions import db
from ..models import DELIVERY_STATUSES, DeliverySheet, ProductionSheet
from ..validation import ModelValidationPolicy, normalize_zip, require_enum, validate_payload
from . import query_service
from .concurrency import commit_or_conflict

logger = logging.getLogger(__name__)

DELIVERY_POLICY = ModelValidationPolicy(
    writable_fields={
        "production_sheet_id", "delivery_date", "total_value", "notes", "invoice_number",
        "address_street", "address_number", "address_complement", "address_neighborhood",
        "address_city", "address_state", "address_zip_code", "status",
    },
    required_on_create={
        "production_sheet_id", "total_value", "invoice_number",
        "address_street", "address_number", "address_neighborhood",
        "address_city", "address_state", "address_zip_code",
    },
    groups={
        "address": {
            "street": "address_street",
            "number": "address_number",
            "complement": "address_complement",
            "neighborhood": "address_neighborhood",
            "city": "address_city",
            "state": "address_state",
            "zip_code": "address_zip_code",
        },
    },
)

SORTABLE = ("internal_reference", "delivery_date", "total_value", "invoice_number", "status", "updated_at")
FILTERS = ("status", "production_sheet_id", "invoice_number")
SEARCH_COLUMNS = (
    DeliverySheet.internal_reference,
    DeliverySheet.invoice_number,
    DeliverySheet.notes,
    DeliverySheet.address_city,
)

DUPLICATE_MESSAGE = "Delivery sheet already exists for this production sheet"


def _delivery_rules(patch: dict, errors: list, partial: bool) -> None:
    if patch.get("address_zip_code"):
        patch["address_zip_code"] = normalize_zip(patch["address_zip_code"])


def _active_sheet(sheet_id: int, *, exclude_delivery_id: int | None = None) -> ProductionSheet:
    sheet = db.session.get(ProductionSheet, sheet_id)
    if sheet is None or not sheet.active:
        raise NotFoundError("Production sheet not found", code=ErrorCode.PRODUCTION_SHEET_NOT_FOUND)

    existing = db.session.query(DeliverySheet.id).filter(
        DeliverySheet.production_sheet_id == sheet_id,
        DeliverySheet.active.is_(True),
    )
    if exclude_delivery_id is not None:
        existing = existing.filter(DeliverySheet.id != exclude_delivery_id)
    if existing.first() is not None:
        raise ConflictError(DUPLICATE_MESSAGE, code=ErrorCode.DELIVERY_SHEET_ALREADY_EXISTS)
    return sheet


def list_deliveries(args) -> dict:
    params = query_service.parse_list_params(args, filter_keys=FILTERS, sortable=SORTABLE)
    query = query_service.apply_active(db.session.query(DeliverySheet), DeliverySheet, params.active)

    if "status" in params.filters:
        query = query.filter(DeliverySheet.status == params.filters["status"].upper())
    sheet_id = query_service.int_filter(params, "production_sheet_id")
    if sheet_id is not None:
        query = query.filter(DeliverySheet.production_sheet_id == sheet_id)
    if "invoice_number" in params.filters:
        query = query.filter(DeliverySheet.invoice_number == params.filters["invoice_number"])
    if params.search:
        query = query.filter(query_service.search_clause(params.search, SEARCH_COLUMNS))

    query = query_service.apply_sort(query, DeliverySheet, params)
    return query_service.paginate(query, params)


def get_delivery(key) -> DeliverySheet:
    return query_service.get_by_id_or_reference(
        DeliverySheet, key, message="Delivery sheet not found", code=ErrorCode.DELIVERY_SHEET_NOT_FOUND
    )


def get_delivery_by_id(delivery_id: int) -> DeliverySheet:
    return query_service.get_or_404(
        DeliverySheet, delivery_id, message="Delivery sheet not found", code=ErrorCode.DELIVERY_SHEET_NOT_FOUND
    )


def get_by_production_sheet(sheet_id: int) -> DeliverySheet:
    sheet_id = query_service.parse_id(sheet_id, "sheet_id")
    delivery = (
        db.session.query(DeliverySheet)
        .filter(DeliverySheet.production_sheet_id == sheet_id, DeliverySheet.active.is_(True))
        .first()
    )
    if delivery is None:
        raise NotFoundError("Delivery sheet not found", code=ErrorCode.DELIVERY_SHEET_NOT_FOUND)
    return delivery


def create_delivery(payload: dict) -> DeliverySheet:
    patch = validate_payload(
        model=DeliverySheet, payload=payload, policy=DELIVERY_POLICY, partial=False, rules=_delivery_rules
    )
    sheet = _active_sheet(patch["production_sheet_id"])

    delivery = DeliverySheet(**patch)
    delivery.internal_reference = sheet.internal_reference
    db.session.add(delivery)
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.DELIVERY_SHEET_ALREADY_EXISTS)

    logger.info("Delivery sheet %s created (invoice %s)", delivery.internal_reference, delivery.invoice_number)
    return delivery


def update_delivery(delivery_id: int, payload: dict) -> DeliverySheet:
    delivery = get_delivery_by_id(delivery_id)
    patch = validate_payload(
        model=DeliverySheet, payload=payload, policy=DELIVERY_POLICY, partial=True, rules=_delivery_rules
    )
    if "production_sheet_id" in patch and patch["production_sheet_id"] != delivery.production_sheet_id:
        sheet = _active_sheet(patch["production_sheet_id"], exclude_delivery_id=delivery.id)
        delivery.internal_reference = sheet.internal_reference

    for key, value in patch.items():
        setattr(delivery, key, value)
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.DELIVERY_SHEET_ALREADY_EXISTS)
    return delivery


def change_status(delivery_id: int, status) -> DeliverySheet:
    delivery = get_delivery_by_id(delivery_id)
    delivery.status = require_enum(status.upper() if isinstance(status, str) else status, DELIVERY_STATUSES, "status")
    db.session.commit()
    return delivery


def deactivate_delivery(delivery_id: int) -> DeliverySheet:
    delivery = get_delivery_by_id(delivery_id)
    delivery.active = False
    db.session.commit()
    return delivery


def activate_delivery(delivery_id: int) -> DeliverySheet:
    delivery = get_delivery_by_id(delivery_id)
    if delivery.active:
        raise BusinessRuleError("Delivery sheet is already active", code=ErrorCode.OPERATION_NOT_ALLOWED)
    _active_sheet(delivery.production_sheet_id, exclude_delivery_id=delivery.id)
    delivery.active = True
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.DELIVERY_SHEET_ALREADY_EXISTS)
    return delivery


def delivery_stats() -> dict:
    base = db.session.query(DeliverySheet).filter(DeliverySheet.active.is_(True))
    by_status = query_service.count_by(base, DeliverySheet.status, DELIVERY_STATUSES)
    total_value = base.with_entities(func.coalesce(func.sum(DeliverySheet.total_value), 0)).scalar()
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "total_value": float(total_value or 0),
    }
