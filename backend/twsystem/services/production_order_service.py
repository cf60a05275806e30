# Overview: Service-layer operations for production orders; encapsulates business logic and database work.

"""
Production Order Service

BUSINESS RULES:
- Only an APPROVED, active development can receive a production order
- At most one active order per development (checked here, guaranteed by a
  partial unique index)
- internal_reference is copied from the development
- Status is set manually through the workflow, except FINALIZED which is
  also reached when the order's production sheet finishes
"""

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import BusinessRuleError, ConflictError, ErrorCode, NotFoundError
from ..extensions import db
from ..models import PRIORITIES, PRODUCTION_ORDER_STATUSES, Client, Development, ProductionOrder
from ..validation import ModelValidationPolicy, require_enum, validate_payload
from . import query_service
from .concurrency import commit_or_conflict

logger = logging.getLogger(__name__)

ORDER_POLICY = ModelValidationPolicy(
    writable_fields={"development_id", "status", "fabric_type", "pilot", "observations", "priority"},
    required_on_create={"development_id", "fabric_type"},
)

SORTABLE = ("internal_reference", "status", "priority", "fabric_type", "updated_at")
FILTERS = ("status", "priority", "development_id", "pilot")

DUPLICATE_MESSAGE = "Production order already exists for this development"


def _approved_development(development_id: int, *, exclude_order_id: int | None = None) -> Development:
    development = db.session.get(Development, development_id)
    if development is None or not development.active:
        raise NotFoundError("Development not found", code=ErrorCode.DEVELOPMENT_NOT_FOUND)
    if development.status != "APPROVED":
        raise BusinessRuleError(
            "Development must be approved to create production order",
            code=ErrorCode.DEVELOPMENT_NOT_APPROVED,
        )

    existing = db.session.query(ProductionOrder.id).filter(
        ProductionOrder.development_id == development_id,
        ProductionOrder.active.is_(True),
    )
    if exclude_order_id is not None:
        existing = existing.filter(ProductionOrder.id != exclude_order_id)
    if existing.first() is not None:
        raise ConflictError(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_ORDER_ALREADY_EXISTS)
    return development


def _search_clause(term: str):
    """
    Order columns, OR developments whose description/client reference match,
    OR developments of clients whose name/acronym match.
    """
    client_ids = db.session.query(Client.id).filter(
        query_service.search_clause(term, (Client.company_name, Client.acronym))
    )
    development_ids = db.session.query(Development.id).filter(
        or_(
            query_service.search_clause(term, (Development.description, Development.client_reference)),
            Development.client_id.in_(client_ids),
        )
    )
    return or_(
        query_service.search_clause(term, (
            ProductionOrder.internal_reference,
            ProductionOrder.fabric_type,
            ProductionOrder.observations,
        )),
        ProductionOrder.development_id.in_(development_ids),
    )


def list_orders(args) -> dict:
    params = query_service.parse_list_params(args, filter_keys=FILTERS, sortable=SORTABLE)
    query = query_service.apply_active(db.session.query(ProductionOrder), ProductionOrder, params.active)

    filters = params.filters
    if "status" in filters:
        query = query.filter(ProductionOrder.status == filters["status"].upper())
    if "priority" in filters:
        query = query.filter(ProductionOrder.priority == filters["priority"].lower())
    development_id = query_service.int_filter(params, "development_id")
    if development_id is not None:
        query = query.filter(ProductionOrder.development_id == development_id)
    pilot = query_service.parse_bool(filters.get("pilot"), "pilot")
    if pilot is not None:
        query = query.filter(ProductionOrder.pilot.is_(pilot))
    if params.search:
        query = query.filter(_search_clause(params.search))

    query = query_service.apply_sort(query, ProductionOrder, params)
    return query_service.paginate(query, params)


def get_order(key) -> ProductionOrder:
    return query_service.get_by_id_or_reference(
        ProductionOrder, key, message="Production order not found", code=ErrorCode.PRODUCTION_ORDER_NOT_FOUND
    )


def get_order_by_id(order_id: int) -> ProductionOrder:
    return query_service.get_or_404(
        ProductionOrder, order_id, message="Production order not found", code=ErrorCode.PRODUCTION_ORDER_NOT_FOUND
    )


def get_by_development(development_id: int) -> ProductionOrder:
    development_id = query_service.parse_id(development_id, "development_id")
    order = (
        db.session.query(ProductionOrder)
        .filter(ProductionOrder.development_id == development_id, ProductionOrder.active.is_(True))
        .first()
    )
    if order is None:
        raise NotFoundError("Production order not found", code=ErrorCode.PRODUCTION_ORDER_NOT_FOUND)
    return order


def create_order(payload: dict) -> ProductionOrder:
    patch = validate_payload(model=ProductionOrder, payload=payload, policy=ORDER_POLICY, partial=False)
    development = _approved_development(patch["development_id"])

    order = ProductionOrder(**patch)
    order.internal_reference = development.internal_reference
    db.session.add(order)
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_ORDER_ALREADY_EXISTS)

    logger.info("Production order %s created", order.internal_reference)
    return order


def update_order(order_id: int, payload: dict) -> ProductionOrder:
    order = get_order_by_id(order_id)
    patch = validate_payload(model=ProductionOrder, payload=payload, policy=ORDER_POLICY, partial=True)

    if "development_id" in patch and patch["development_id"] != order.development_id:
        development = _approved_development(patch["development_id"], exclude_order_id=order.id)
        order.internal_reference = development.internal_reference

    for key, value in patch.items():
        setattr(order, key, value)
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_ORDER_ALREADY_EXISTS)
    return order


def change_status(order_id: int, status) -> ProductionOrder:
    order = get_order_by_id(order_id)
    target = require_enum(status.upper() if isinstance(status, str) else status, PRODUCTION_ORDER_STATUSES, "status")
    previous = order.status
    order.status = target
    db.session.commit()
    logger.info("Production order %s status %s -> %s", order.internal_reference, previous, target)
    return order


def change_priority(order_id: int, priority) -> ProductionOrder:
    order = get_order_by_id(order_id)
    order.priority = require_enum(priority.lower() if isinstance(priority, str) else priority, PRIORITIES, "priority")
    db.session.commit()
    return order


def deactivate_order(order_id: int) -> ProductionOrder:
    order = get_order_by_id(order_id)
    order.active = False
    db.session.commit()
    return order


def activate_order(order_id: int) -> ProductionOrder:
    order = get_order_by_id(order_id)
    if order.active:
        raise BusinessRuleError("Production order is already active", code=ErrorCode.OPERATION_NOT_ALLOWED)
    clash = db.session.query(ProductionOrder.id).filter(
        ProductionOrder.development_id == order.development_id,
        ProductionOrder.active.is_(True),
        ProductionOrder.id != order.id,
    ).first()
    if clash is not None:
        raise ConflictError(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_ORDER_ALREADY_EXISTS)
    order.active = True
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_ORDER_ALREADY_EXISTS)
    return order


def order_stats() -> dict:
    base = db.session.query(ProductionOrder).filter(ProductionOrder.active.is_(True))
    by_status = query_service.count_by(base, ProductionOrder.status, PRODUCTION_ORDER_STATUSES)
    by_priority = query_service.count_by(base, ProductionOrder.priority, PRIORITIES)
    return {"total": sum(by_status.values()), "by_status": by_status, "by_priority": by_priority}
