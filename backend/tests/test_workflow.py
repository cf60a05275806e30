"""
Workflow rules, the sheet-finished signal and reference allocation.
"""

import pytest

from twsystem.errors import BusinessRuleError, ErrorCode
from twsystem.extensions import db
from twsystem.models import ProductionOrder
from twsystem.services import reference_service, workflow_service
from twsystem.time_utils import utcnow
from conftest import make_client, make_development, make_order, make_sheet


class TestStageRules:

    @pytest.mark.parametrize("current,target", [
        ("PRINTING", "PRINTING"),
        ("PRINTING", "CALENDERING"),
        ("PRINTING", "FINISHED"),
        ("CALENDERING", "FINISHED"),
    ])
    def test_forward_moves_allowed(self, current, target):
        workflow_service.check_stage_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        ("CALENDERING", "PRINTING"),
        ("FINISHED", "CALENDERING"),
        ("FINISHED", "PRINTING"),
    ])
    def test_backward_moves_rejected(self, current, target):
        with pytest.raises(BusinessRuleError) as exc:
            workflow_service.check_stage_transition(current, target)
        assert exc.value.code == ErrorCode.INVALID_STATUS_TRANSITION

    def test_next_stage(self):
        assert workflow_service.next_stage("PRINTING") == "CALENDERING"
        assert workflow_service.next_stage("CALENDERING") == "FINISHED"
        with pytest.raises(BusinessRuleError):
            workflow_service.next_stage("FINISHED")


class TestDevelopmentRules:

    def test_closed_alias(self):
        assert workflow_service.normalize_development_status(" closed ") == "CANCELED"
        assert workflow_service.normalize_development_status("approved") == "APPROVED"

    @pytest.mark.parametrize("target", ["CREATED", "CANCELED"])
    def test_canceled_can_reopen(self, target):
        workflow_service.check_development_transition("CANCELED", target)

    @pytest.mark.parametrize("target", ["AWAITING_APPROVAL", "APPROVED"])
    def test_canceled_cannot_skip_ahead(self, target):
        with pytest.raises(BusinessRuleError):
            workflow_service.check_development_transition("CANCELED", target)


class TestSheetFinishedSignal:

    def test_handler_finalizes_parent_order(self, db_session):
        order = make_order(db_session, make_development(db_session, make_client(db_session)),
                           status="PILOT_APPROVED")
        sheet = make_sheet(db_session, order, stage="FINISHED")

        workflow_service.production_sheet_finished.send(sheet, previous_stage="CALENDERING")
        db_session.commit()

        assert db_session.get(ProductionOrder, order.id).status == "FINALIZED"

    def test_handler_ignores_missing_order(self, db_session):
        class Orphan:
            id = 1
            production_order_id = 4242

        # Logged, not raised
        workflow_service.finalize_order_for_sheet(Orphan(), previous_stage="CALENDERING")

    def test_receivers_connected_once(self, app):
        workflow_service.connect_signal_handlers()
        receivers = list(workflow_service.production_sheet_finished.receivers.values())
        assert len(receivers) == 1


class TestReferenceAllocation:

    def test_prefix_uses_two_digit_year(self):
        now = utcnow()
        assert reference_service.development_reference_prefix("abc", now) == now.strftime("%y") + "ABC"
        assert reference_service.development_reference_prefix(None, now).endswith("DEF")

    def test_numbers_increment_per_scope(self, db_session):
        first = reference_service.next_development_reference("ABC")
        second = reference_service.next_development_reference("ABC")
        other = reference_service.next_development_reference("XYZ")
        db.session.commit()

        assert first.endswith("ABC0001")
        assert second.endswith("ABC0002")
        assert other.endswith("XYZ0001")

    def test_counter_continues_after_existing_rows(self, db_session):
        record = make_client(db_session)
        prefix = reference_service.development_reference_prefix("ABC")
        make_development(db_session, record, reference=f"{prefix}0041")

        assert reference_service.next_development_reference("ABC") == f"{prefix}0042"
