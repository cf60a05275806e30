# Overview: Service-layer operations for developments; encapsulates business logic and database work.

"""
Development Service

A development is a proposed product for one client. Approval gates the
creation of a production order.

BUSINESS RULES:
- internal_reference `{yy}{ACRONYM}{seq4}` is allocated at creation from the
  client's acronym and never regenerated
- the client must exist and be active at creation; it cannot change later
- production_type is validated per variant:
    rotary    -> meters >= 0.1, no sizes
    localized -> non-empty sizes [{size, value}], sizes unique, no meters
- a CANCELED development may only move back to CREATED; CLOSED is accepted
  as an input alias of CANCELED
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import or_

from ..errors import BusinessRuleError, ErrorCode, NotFoundError
from ..extensions import db
from ..models import DEVELOPMENT_STATUSES, PRODUCTION_TYPES, Client, Development
from ..validation import ModelValidationPolicy, field_error, require_enum, validate_payload
from . import query_service, reference_service, workflow_service
from .concurrency import commit_or_conflict

logger = logging.getLogger(__name__)

SIZE_LABEL_MAX = 10
MIN_METERS = Decimal("0.1")

_GROUPS = {
    "piece_image": {"url": "piece_image_url", "public_id": "piece_image_public_id"},
    "variants": {"color": "variant_color"},
    "production_type": {
        "type": "production_type",
        "meters": "production_meters",
        "sizes": "production_sizes",
    },
}
_COMMON_FIELDS = {
    "description", "client_reference",
    "piece_image_url", "piece_image_public_id",
    "variant_color",
    "production_type", "production_meters", "production_sizes",
    "status",
}

CREATE_POLICY = ModelValidationPolicy(
    writable_fields=_COMMON_FIELDS | {"client_id"},
    required_on_create={"client_id", "production_type"},
    groups=_GROUPS,
)
UPDATE_POLICY = ModelValidationPolicy(writable_fields=_COMMON_FIELDS, groups=_GROUPS)

SORTABLE = ("internal_reference", "status", "client_reference", "updated_at")
FILTERS = ("status", "client_id", "production_type")


def _clean_sizes(raw, errors: list) -> list | None:
    if not isinstance(raw, list) or not raw:
        errors.append(field_error("production_type.sizes", "production_type.sizes must be a non-empty list"))
        return None

    cleaned = []
    seen = set()
    for idx, item in enumerate(raw):
        label = f"production_type.sizes[{idx}]"
        if not isinstance(item, dict):
            errors.append(field_error(label, f"{label} must be an object with size and value"))
            continue
        size = item.get("size")
        value = item.get("value")
        if not isinstance(size, str) or not size.strip():
            errors.append(field_error(f"{label}.size", f"{label}.size is required"))
            continue
        size = size.strip().upper()
        if len(size) > SIZE_LABEL_MAX:
            errors.append(field_error(f"{label}.size", f"{label}.size must have at most {SIZE_LABEL_MAX} characters"))
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            errors.append(field_error(f"{label}.value", f"{label}.value must be an integer greater than or equal to 1"))
            continue
        if size in seen:
            errors.append(field_error(f"{label}.size", f"size {size} is duplicated"))
            continue
        seen.add(size)
        cleaned.append({"size": size, "value": value})
    return cleaned


def validate_production_type(kind, meters, sizes, errors: list) -> dict:
    """
    Validate one production-type variant and return its column values.

    The field belonging to the other variant is always cleared.
    """
    if kind not in PRODUCTION_TYPES:
        errors.append(field_error("production_type.type", f"production_type.type must be one of: {', '.join(PRODUCTION_TYPES)}"))
        return {}

    if kind == "rotary":
        if meters is None:
            errors.append(field_error("production_type.meters", "production_type.meters is required for rotary production"))
        elif Decimal(meters) < MIN_METERS:
            errors.append(field_error("production_type.meters", f"production_type.meters must be at least {MIN_METERS}"))
        return {"production_type": kind, "production_meters": meters, "production_sizes": None}

    cleaned = _clean_sizes(sizes, errors)
    return {"production_type": kind, "production_meters": None, "production_sizes": cleaned}


def _variant_rules(current: Development | None):
    """Rule hook validating the merged production-type variant."""
    def rules(patch: dict, errors: list, partial: bool) -> None:
        touched = {"production_type", "production_meters", "production_sizes"} & patch.keys()
        if not touched:
            return
        kind = patch.get("production_type", current.production_type if current else None)
        meters = patch.get("production_meters", current.production_meters if current and "production_type" not in patch else None)
        sizes = patch.get("production_sizes", current.production_sizes if current and "production_type" not in patch else None)
        if kind is None:
            return
        patch.update(validate_production_type(kind, meters, sizes, errors))
    return rules


def _normalize_payload(payload):
    if isinstance(payload, dict) and "status" in payload:
        payload = dict(payload)
        payload["status"] = workflow_service.normalize_development_status(payload["status"])
    return payload


def _search_clause(term: str):
    client_ids = db.session.query(Client.id).filter(
        query_service.search_clause(term, (Client.company_name, Client.acronym))
    )
    return or_(
        query_service.search_clause(term, (
            Development.internal_reference,
            Development.description,
            Development.client_reference,
            Development.variant_color,
        )),
        Development.client_id.in_(client_ids),
    )


def list_developments(args) -> dict:
    params = query_service.parse_list_params(args, filter_keys=FILTERS, sortable=SORTABLE)
    query = query_service.apply_active(db.session.query(Development), Development, params.active)

    filters = params.filters
    if "status" in filters:
        query = query.filter(Development.status == workflow_service.normalize_development_status(filters["status"]))
    client_id = query_service.int_filter(params, "client_id")
    if client_id is not None:
        query = query.filter(Development.client_id == client_id)
    if "production_type" in filters:
        query = query.filter(Development.production_type == filters["production_type"].lower())
    if params.search:
        query = query.filter(_search_clause(params.search))

    query = query_service.apply_sort(query, Development, params)
    return query_service.paginate(query, params)


def list_by_client(client_id: int) -> list[dict]:
    client_id = query_service.parse_id(client_id, "client_id")
    rows = (
        db.session.query(Development)
        .filter(Development.client_id == client_id, Development.active.is_(True))
        .order_by(Development.created_at.desc(), Development.id.desc())
        .all()
    )
    return [row.to_dict() for row in rows]


def get_development(key) -> Development:
    return query_service.get_by_id_or_reference(
        Development, key, message="Development not found", code=ErrorCode.DEVELOPMENT_NOT_FOUND
    )


def get_by_reference(reference: str) -> Development:
    record = (
        db.session.query(Development)
        .filter(Development.internal_reference == (reference or "").strip().upper())
        .first()
    )
    if record is None:
        raise NotFoundError("Development not found", code=ErrorCode.DEVELOPMENT_NOT_FOUND)
    return record


def get_development_by_id(development_id: int) -> Development:
    return query_service.get_or_404(
        Development, development_id, message="Development not found", code=ErrorCode.DEVELOPMENT_NOT_FOUND
    )


def create_development(payload: dict) -> Development:
    patch = validate_payload(
        model=Development,
        payload=_normalize_payload(payload),
        policy=CREATE_POLICY,
        partial=False,
        rules=_variant_rules(None),
    )

    client = db.session.get(Client, patch["client_id"])
    if client is None or not client.active:
        raise NotFoundError("Client not found", code=ErrorCode.CLIENT_NOT_FOUND)

    patch.setdefault("status", "CREATED")
    development = Development(**patch)
    development.internal_reference = reference_service.next_development_reference(client.acronym)
    db.session.add(development)
    commit_or_conflict("Development reference already exists")

    logger.info("Development %s created for client %s", development.internal_reference, client.acronym)
    return development


def update_development(development_id: int, payload: dict) -> Development:
    development = get_development_by_id(development_id)
    patch = validate_payload(
        model=Development,
        payload=_normalize_payload(payload),
        policy=UPDATE_POLICY,
        partial=True,
        rules=_variant_rules(development),
    )
    if "status" in patch:
        workflow_service.check_development_transition(development.status, patch["status"])

    for key, value in patch.items():
        setattr(development, key, value)
    db.session.commit()
    return development


def change_status(development_id: int, status) -> Development:
    development = get_development_by_id(development_id)
    target = require_enum(workflow_service.normalize_development_status(status), DEVELOPMENT_STATUSES, "status")
    workflow_service.check_development_transition(development.status, target)

    previous = development.status
    development.status = target
    db.session.commit()
    logger.info("Development %s status %s -> %s", development.internal_reference, previous, target)
    return development


def deactivate_development(development_id: int) -> Development:
    development = get_development_by_id(development_id)
    development.active = False
    db.session.commit()
    return development


def activate_development(development_id: int) -> Development:
    development = get_development_by_id(development_id)
    if development.active:
        raise BusinessRuleError("Development is already active", code=ErrorCode.OPERATION_NOT_ALLOWED)
    development.active = True
    db.session.commit()
    return development


def development_stats() -> dict:
    base = db.session.query(Development).filter(Development.active.is_(True))
    by_status = query_service.count_by(base, Development.status, DEVELOPMENT_STATUSES)
    by_type = query_service.count_by(base, Development.production_type, PRODUCTION_TYPES)
    return {"total": sum(by_status.values()), "by_status": by_status, "by_production_type": by_type}
