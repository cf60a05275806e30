# Overview: Service-layer operations for production sheets; encapsulates business logic and database work.

"""
Production Sheet Service

A production sheet tracks one production order through the machines.

BUSINESS RULES:
- Requires an existing active production order with no active sheet
- internal_reference is copied from the production order
- expected_exit_date must not precede entry_date
- a machine runs one sheet at a time: the [entry_date, expected_exit_date]
  window may not overlap another active sheet on the same machine
- stage only moves forward: PRINTING -> CALENDERING -> FINISHED
- reaching FINISHED publishes production_sheet_finished, whose handler
  finalizes the parent order in the same transaction

SECURITY:
- PRINTING operators may only change stage and machine, and only while the
  parent order is in PILOT_PRODUCTION (see permission_service)
"""

from __future__ import annotations

import logging

from ..errors import BusinessRuleError, ConflictError, ErrorCode, NotFoundError
from ..extensions import db
from ..models import MACHINES, PRODUCTION_STAGES, ProductionOrder, ProductionSheet, User
from ..permissions import Resource
from ..validation import ModelValidationPolicy, field_error, require_enum, validate_payload
from . import permission_service, query_service, workflow_service
from .concurrency import commit_or_conflict
from twsystem.time_utils import to_utc_z, utcnow, utcnow_seconds

logger = logging.getLogger(__name__)

SHEET_POLICY = ModelValidationPolicy(
    writable_fields={
        "production_order_id", "entry_date", "expected_exit_date", "machine", "stage",
        "production_notes", "temperature", "velocity",
    },
    required_on_create={"production_order_id", "expected_exit_date", "machine"},
)

SORTABLE = ("internal_reference", "entry_date", "expected_exit_date", "machine", "stage", "updated_at")
FILTERS = ("stage", "machine", "production_order_id")

DUPLICATE_MESSAGE = "Production sheet already exists for this production order"


def _date_rules(current: ProductionSheet | None):
    def rules(patch: dict, errors: list, partial: bool) -> None:
        entry = patch.get("entry_date", current.entry_date if current else None) or utcnow()
        expected = patch.get("expected_exit_date", current.expected_exit_date if current else None)
        if expected is None or ("entry_date" not in patch and "expected_exit_date" not in patch):
            return
        if expected.replace(tzinfo=None) < entry.replace(tzinfo=None):
            errors.append(field_error("expected_exit_date", "expected_exit_date must not be before entry_date"))
    return rules


def _active_order(order_id: int, *, exclude_sheet_id: int | None = None) -> ProductionOrder:
    order = db.session.get(ProductionOrder, order_id)
    if order is None or not order.active:
        raise NotFoundError("Production order not found", code=ErrorCode.PRODUCTION_ORDER_NOT_FOUND)

    existing = db.session.query(ProductionSheet.id).filter(
        ProductionSheet.production_order_id == order_id,
        ProductionSheet.active.is_(True),
    )
    if exclude_sheet_id is not None:
        existing = existing.filter(ProductionSheet.id != exclude_sheet_id)
    if existing.first() is not None:
        raise ConflictError(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_SHEET_ALREADY_EXISTS)
    return order


def _ensure_machine_free(machine, entry, expected, *, exclude_sheet_id: int | None = None) -> None:
    """Reject a booking window that overlaps another active sheet on the same machine."""
    if machine is None or entry is None or expected is None:
        return
    query = db.session.query(ProductionSheet).filter(
        ProductionSheet.machine == machine,
        ProductionSheet.active.is_(True),
        ProductionSheet.entry_date <= expected,
        ProductionSheet.expected_exit_date >= entry,
    )
    if exclude_sheet_id is not None:
        query = query.filter(ProductionSheet.id != exclude_sheet_id)
    conflicts = query.order_by(ProductionSheet.entry_date.asc(), ProductionSheet.id.asc()).all()
    if not conflicts:
        return

    references = ", ".join(sheet.internal_reference for sheet in conflicts)
    raise BusinessRuleError(
        f"Machine {machine} is already booked for the selected period: {references}",
        code=ErrorCode.MACHINE_UNAVAILABLE,
        errors=[
            field_error(
                "machine",
                f"overlaps {sheet.internal_reference} "
                f"({to_utc_z(sheet.entry_date)} to {to_utc_z(sheet.expected_exit_date)})",
            )
            for sheet in conflicts
        ],
    )


def _parent_status(sheet: ProductionSheet) -> str | None:
    order = db.session.get(ProductionOrder, sheet.production_order_id)
    return order.status if order else None


def _set_stage(sheet: ProductionSheet, target: str) -> None:
    """Apply a validated stage and publish the FINISHED event (caller commits)."""
    previous = sheet.stage
    workflow_service.check_stage_transition(previous, target)
    sheet.stage = target
    db.session.flush()
    if target == workflow_service.FINAL_STAGE and previous != target:
        workflow_service.production_sheet_finished.send(sheet, previous_stage=previous)


def list_sheets(args) -> dict:
    params = query_service.parse_list_params(args, filter_keys=FILTERS, sortable=SORTABLE)
    query = query_service.apply_active(db.session.query(ProductionSheet), ProductionSheet, params.active)

    if "stage" in params.filters:
        query = query.filter(ProductionSheet.stage == params.filters["stage"].upper())
    machine = query_service.int_filter(params, "machine")
    if machine is not None:
        query = query.filter(ProductionSheet.machine == machine)
    order_id = query_service.int_filter(params, "production_order_id")
    if order_id is not None:
        query = query.filter(ProductionSheet.production_order_id == order_id)
    if params.search:
        query = query.filter(query_service.search_clause(
            params.search, (ProductionSheet.internal_reference, ProductionSheet.production_notes)
        ))

    query = query_service.apply_sort(query, ProductionSheet, params)
    return query_service.paginate(query, params)


def get_sheet(key) -> ProductionSheet:
    return query_service.get_by_id_or_reference(
        ProductionSheet, key, message="Production sheet not found", code=ErrorCode.PRODUCTION_SHEET_NOT_FOUND
    )


def get_sheet_by_id(sheet_id: int) -> ProductionSheet:
    return query_service.get_or_404(
        ProductionSheet, sheet_id, message="Production sheet not found", code=ErrorCode.PRODUCTION_SHEET_NOT_FOUND
    )


def get_by_production_order(order_id: int) -> ProductionSheet:
    order_id = query_service.parse_id(order_id, "order_id")
    sheet = (
        db.session.query(ProductionSheet)
        .filter(ProductionSheet.production_order_id == order_id, ProductionSheet.active.is_(True))
        .first()
    )
    if sheet is None:
        raise NotFoundError("Production sheet not found", code=ErrorCode.PRODUCTION_SHEET_NOT_FOUND)
    return sheet


def list_by_machine(machine) -> list[dict]:
    """Active sheets still on a machine, oldest entry first."""
    try:
        number = int(machine)
    except (TypeError, ValueError):
        number = None
    if number not in MACHINES:
        raise BusinessRuleError(
            f"Invalid machine: must be one of {', '.join(str(m) for m in MACHINES)}",
            code=ErrorCode.INVALID_ENUM_VALUE,
        )
    rows = (
        db.session.query(ProductionSheet)
        .filter(
            ProductionSheet.machine == number,
            ProductionSheet.active.is_(True),
            ProductionSheet.stage != workflow_service.FINAL_STAGE,
        )
        .order_by(ProductionSheet.entry_date.asc(), ProductionSheet.id.asc())
        .all()
    )
    return [row.to_dict() for row in rows]


def create_sheet(payload: dict) -> ProductionSheet:
    patch = validate_payload(
        model=ProductionSheet, payload=payload, policy=SHEET_POLICY, partial=False, rules=_date_rules(None)
    )
    order = _active_order(patch["production_order_id"])
    patch.setdefault("entry_date", utcnow_seconds())
    _ensure_machine_free(patch["machine"], patch["entry_date"], patch["expected_exit_date"])

    stage = patch.pop("stage", None) or PRODUCTION_STAGES[0]
    sheet = ProductionSheet(**patch)
    sheet.stage = PRODUCTION_STAGES[0]
    sheet.internal_reference = order.internal_reference
    db.session.add(sheet)
    db.session.flush()
    if stage != sheet.stage:
        _set_stage(sheet, stage)
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_SHEET_ALREADY_EXISTS)

    logger.info("Production sheet %s created on machine %s", sheet.internal_reference, sheet.machine)
    return sheet


def update_sheet(sheet_id: int, payload: dict, *, user: User) -> ProductionSheet:
    sheet = get_sheet_by_id(sheet_id)
    payload = permission_service.apply_field_restrictions(
        user, Resource.PRODUCTION_SHEETS, sheet, payload or {}, _parent_status(sheet)
    )
    patch = validate_payload(
        model=ProductionSheet, payload=payload, policy=SHEET_POLICY, partial=True, rules=_date_rules(sheet)
    )

    if "production_order_id" in patch and patch["production_order_id"] != sheet.production_order_id:
        order = _active_order(patch["production_order_id"], exclude_sheet_id=sheet.id)
        sheet.internal_reference = order.internal_reference

    if patch.keys() & {"machine", "entry_date", "expected_exit_date"}:
        _ensure_machine_free(
            patch.get("machine", sheet.machine),
            patch.get("entry_date", sheet.entry_date),
            patch.get("expected_exit_date", sheet.expected_exit_date),
            exclude_sheet_id=sheet.id,
        )

    stage = patch.pop("stage", None)
    for key, value in patch.items():
        setattr(sheet, key, value)
    if stage is not None and stage != sheet.stage:
        _set_stage(sheet, stage)

    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_SHEET_ALREADY_EXISTS)
    return sheet


def change_stage(sheet_id: int, stage, *, user: User) -> ProductionSheet:
    sheet = get_sheet_by_id(sheet_id)
    target = require_enum(stage.upper() if isinstance(stage, str) else stage, PRODUCTION_STAGES, "stage")
    permission_service.apply_field_restrictions(
        user, Resource.PRODUCTION_SHEETS, sheet, {"stage": target}, _parent_status(sheet)
    )
    if target != sheet.stage:
        _set_stage(sheet, target)
    db.session.commit()
    return sheet


def advance_stage(sheet_id: int, *, user: User) -> ProductionSheet:
    """Move exactly one stage forward; FINISHED cannot advance."""
    sheet = get_sheet_by_id(sheet_id)
    target = workflow_service.next_stage(sheet.stage)
    permission_service.apply_field_restrictions(
        user, Resource.PRODUCTION_SHEETS, sheet, {"stage": target}, _parent_status(sheet)
    )
    _set_stage(sheet, target)
    db.session.commit()
    logger.info("Production sheet %s advanced to %s", sheet.internal_reference, target)
    return sheet


def deactivate_sheet(sheet_id: int) -> ProductionSheet:
    sheet = get_sheet_by_id(sheet_id)
    sheet.active = False
    db.session.commit()
    return sheet


def activate_sheet(sheet_id: int) -> ProductionSheet:
    sheet = get_sheet_by_id(sheet_id)
    if sheet.active:
        raise BusinessRuleError("Production sheet is already active", code=ErrorCode.OPERATION_NOT_ALLOWED)
    _active_order(sheet.production_order_id, exclude_sheet_id=sheet.id)
    sheet.active = True
    commit_or_conflict(DUPLICATE_MESSAGE, code=ErrorCode.PRODUCTION_SHEET_ALREADY_EXISTS)
    return sheet


def sheet_stats() -> dict:
    base = db.session.query(ProductionSheet).filter(ProductionSheet.active.is_(True))
    by_stage = query_service.count_by(base, ProductionSheet.stage, PRODUCTION_STAGES)
    by_machine = query_service.count_by(base, ProductionSheet.machine, MACHINES)
    return {
        "total": sum(by_stage.values()),
        "by_stage": by_stage,
        "by_machine": {str(k): v for k, v in by_machine.items()},
    }
