# Overview: Workflow state rules and the domain signals that link resources together.

"""
Workflow

Status machines for the production chain and the one cross-resource side
effect: a production sheet reaching FINISHED finalizes its production order.

WHY a signal: the sheet service should not know about order bookkeeping.
It publishes `production_sheet_finished` after flushing the stage change;
the handler below updates the parent order inside the same session, so the
caller's commit covers both rows, and a failure rolls both back.

Handlers are connected once per application in connect_signal_handlers().
"""

from __future__ import annotations

import logging

from blinker import Namespace

from ..errors import BusinessRuleError, ErrorCode
from ..extensions import db
from ..models import PRODUCTION_STAGES, ProductionOrder

logger = logging.getLogger(__name__)

signals = Namespace()

# sender: the ProductionSheet; kwargs: previous_stage
production_sheet_finished = signals.signal("production-sheet-finished")

FINAL_STAGE = PRODUCTION_STAGES[-1]

# Accepted as a synonym for CANCELED on input
DEVELOPMENT_STATUS_ALIASES = {"CLOSED": "CANCELED"}


def stage_index(stage: str) -> int:
    return PRODUCTION_STAGES.index(stage)


def check_stage_transition(current: str, target: str) -> None:
    """Stages only move forward (or stay put)."""
    if stage_index(target) < stage_index(current):
        raise BusinessRuleError(
            f"Invalid status transition: cannot move production sheet from {current} back to {target}",
            code=ErrorCode.INVALID_STATUS_TRANSITION,
        )


def next_stage(current: str) -> str:
    """The stage after `current`; FINISHED has none."""
    idx = stage_index(current)
    if idx >= len(PRODUCTION_STAGES) - 1:
        raise BusinessRuleError(
            "Production sheet is already at the final stage",
            code=ErrorCode.INVALID_STATUS_TRANSITION,
        )
    return PRODUCTION_STAGES[idx + 1]


def normalize_development_status(value):
    if isinstance(value, str):
        upper = value.strip().upper()
        return DEVELOPMENT_STATUS_ALIASES.get(upper, upper)
    return value


def check_development_transition(current: str, target: str) -> None:
    """
    Developments move freely among their statuses, except that a CANCELED
    development can only be reopened as CREATED.
    """
    if current == "CANCELED" and target not in ("CANCELED", "CREATED"):
        raise BusinessRuleError(
            f"Invalid status transition: a canceled development can only return to CREATED (requested {target})",
            code=ErrorCode.INVALID_STATUS_TRANSITION,
        )


def finalize_order_for_sheet(sheet, previous_stage=None, **_extra) -> None:
    """
    production_sheet_finished handler.

    A missing parent order is logged and ignored. Database errors propagate
    so the caller's transaction is rolled back.
    """
    order = db.session.get(ProductionOrder, sheet.production_order_id)
    if order is None:
        logger.warning(
            "Production sheet %s finished but production order %s does not exist",
            sheet.id,
            sheet.production_order_id,
        )
        return
    if order.status == "FINALIZED":
        return

    logger.info(
        "Production sheet %s finished (from %s); finalizing production order %s",
        sheet.id,
        previous_stage,
        order.id,
    )
    order.status = "FINALIZED"
    db.session.flush()


def connect_signal_handlers() -> None:
    """Idempotent; blinker keeps one strong reference per receiver."""
    production_sheet_finished.connect(finalize_order_for_sheet, weak=False)
