"""
Production sheet tests: creation rules, monotonic stages, order finalization and
PRINTING field restrictions.
"""

from datetime import timedelta

import pytest

from twsystem.models import ProductionOrder, ProductionSheet
from twsystem.time_utils import parse_iso_datetime, utcnow
from conftest import make_client, make_development, make_order, make_sheet


def _iso(dt):
    return dt.replace(microsecond=0).isoformat() + "Z"


class TestCreateSheet:

    def test_copies_order_reference(self, client, db_session, default_headers):
        order = make_order(db_session, make_development(db_session, make_client(db_session)))
        now = utcnow()

        response = client.post("/api/v1/production-sheets", json={
            "production_order_id": order.id,
            "entry_date": _iso(now),
            "expected_exit_date": _iso(now + timedelta(days=3)),
            "machine": 2,
            "temperature": 190,
        }, headers=default_headers)

        assert response.status_code == 201
        data = response.json["data"]
        assert data["internal_reference"] == order.internal_reference
        assert data["stage"] == "PRINTING"
        assert data["machine"] == 2

    def test_exit_before_entry_rejected(self, client, db_session, default_headers):
        order = make_order(db_session, make_development(db_session, make_client(db_session)))
        now = utcnow()

        response = client.post("/api/v1/production-sheets", json={
            "production_order_id": order.id,
            "entry_date": _iso(now),
            "expected_exit_date": _iso(now - timedelta(days=1)),
            "machine": 1,
        }, headers=default_headers)

        assert response.status_code == 400
        assert "expected_exit_date" in {error["field"] for error in response.json["errors"]}

    @pytest.mark.parametrize("machine", [0, 5, "two"])
    def test_machine_must_be_known(self, client, db_session, default_headers, machine):
        order = make_order(db_session, make_development(db_session, make_client(db_session)))

        response = client.post("/api/v1/production-sheets", json={
            "production_order_id": order.id,
            "expected_exit_date": _iso(utcnow() + timedelta(days=1)),
            "machine": machine,
        }, headers=default_headers)
        assert response.status_code == 400

    def test_one_active_sheet_per_order(self, client, default_headers, chain):
        response = client.post("/api/v1/production-sheets", json={
            "production_order_id": chain["order"].id,
            "expected_exit_date": _iso(utcnow() + timedelta(days=1)),
            "machine": 3,
        }, headers=default_headers)

        assert response.status_code == 409
        assert response.json["code"] == 2013

    def test_unknown_order(self, client, db_session, default_headers):
        response = client.post("/api/v1/production-sheets", json={
            "production_order_id": 999,
            "expected_exit_date": _iso(utcnow() + timedelta(days=1)),
            "machine": 1,
        }, headers=default_headers)

        assert response.status_code == 404
        assert response.json["code"] == 5004


class TestStages:

    def test_advance_to_finished_finalizes_order(self, client, db_session, default_headers, chain):
        sheet_id = chain["sheet"].id

        first = client.patch(f"/api/v1/production-sheets/{sheet_id}/advance-stage", headers=default_headers)
        assert first.status_code == 200
        assert first.json["data"]["stage"] == "CALENDERING"
        assert db_session.get(ProductionOrder, chain["order"].id).status == "PILOT_PRODUCTION"

        second = client.patch(f"/api/v1/production-sheets/{sheet_id}/advance-stage", headers=default_headers)
        assert second.status_code == 200
        assert second.json["data"]["stage"] == "FINISHED"
        assert db_session.get(ProductionOrder, chain["order"].id).status == "FINALIZED"

    def test_cannot_advance_past_finished(self, client, db_session, default_headers, chain):
        sheet = chain["sheet"]
        client.patch(f"/api/v1/production-sheets/{sheet.id}/stage", json={"stage": "FINISHED"},
                     headers=default_headers)

        response = client.patch(f"/api/v1/production-sheets/{sheet.id}/advance-stage", headers=default_headers)

        assert response.status_code == 400
        assert response.json["code"] == 2009
        assert db_session.get(ProductionSheet, sheet.id).stage == "FINISHED"

    def test_stage_never_moves_backward(self, client, db_session, default_headers, chain):
        sheet = chain["sheet"]
        client.patch(f"/api/v1/production-sheets/{sheet.id}/stage", json={"stage": "CALENDERING"},
                     headers=default_headers)

        response = client.patch(f"/api/v1/production-sheets/{sheet.id}/stage", json={"stage": "PRINTING"},
                                headers=default_headers)
        assert response.status_code == 400
        assert response.json["code"] == 2009

        response = client.put(f"/api/v1/production-sheets/{sheet.id}", json={"stage": "PRINTING"},
                              headers=default_headers)
        assert response.status_code == 400
        assert db_session.get(ProductionSheet, sheet.id).stage == "CALENDERING"

    def test_jump_straight_to_finished(self, client, db_session, default_headers, chain):
        response = client.patch(f"/api/v1/production-sheets/{chain['sheet'].id}/stage", json={"stage": "finished"},
                                headers=default_headers)

        assert response.status_code == 200
        assert db_session.get(ProductionOrder, chain["order"].id).status == "FINALIZED"

    def test_invalid_stage_value(self, client, default_headers, chain):
        response = client.patch(f"/api/v1/production-sheets/{chain['sheet'].id}/stage", json={"stage": "DRYING"},
                                headers=default_headers)
        assert response.status_code == 400
        assert response.json["code"] == 1008


class TestPrintingRestrictions:
    """PRINTING may only touch stage/machine while the order is in PILOT_PRODUCTION."""

    def test_unchanged_fields_are_ignored(self, client, db_session, printing_headers, chain):
        sheet = chain["sheet"]

        response = client.put(f"/api/v1/production-sheets/{sheet.id}", json={
            "stage": "CALENDERING",
            "machine": 3,
            "temperature": 180,
            "production_notes": None,
        }, headers=printing_headers)

        assert response.status_code == 200
        data = response.json["data"]
        assert data["stage"] == "CALENDERING"
        assert data["machine"] == 3
        assert data["temperature"] == 180.0

    def test_changed_restricted_field_rejected(self, client, db_session, printing_headers, chain):
        sheet = chain["sheet"]

        response = client.put(f"/api/v1/production-sheets/{sheet.id}", json={
            "stage": "CALENDERING",
            "temperature": 200,
        }, headers=printing_headers)

        assert response.status_code == 403
        assert response.json["code"] == 4005
        assert "temperature" in response.json["message"]
        assert db_session.get(ProductionSheet, sheet.id).stage == "PRINTING"

    def test_blocked_outside_pilot_production(self, client, db_session, printing_headers, chain):
        order = chain["order"]
        order.status = "PRODUCTION_STARTED"
        db_session.commit()

        response = client.put(f"/api/v1/production-sheets/{chain['sheet'].id}", json={"machine": 2},
                              headers=printing_headers)
        assert response.status_code == 403
        assert response.json["code"] == 4006

        response = client.patch(f"/api/v1/production-sheets/{chain['sheet'].id}/advance-stage",
                                 headers=printing_headers)
        assert response.status_code == 403
        assert response.json["code"] == 4006

    def test_printing_can_advance_stage(self, client, printing_headers, chain):
        response = client.patch(f"/api/v1/production-sheets/{chain['sheet'].id}/advance-stage",
                                headers=printing_headers)
        assert response.status_code == 200
        assert response.json["data"]["stage"] == "CALENDERING"

    def test_default_role_is_not_restricted(self, client, db_session, default_headers, chain):
        order = chain["order"]
        order.status = "PRODUCTION_STARTED"
        db_session.commit()

        response = client.put(f"/api/v1/production-sheets/{chain['sheet'].id}", json={"temperature": 210},
                              headers=default_headers)
        assert response.status_code == 200
        assert response.json["data"]["temperature"] == 210.0


class TestSheetQueries:

    def test_by_machine_lists_open_sheets_oldest_first(self, client, db_session, default_headers):
        record = make_client(db_session)
        now = utcnow()
        newer = make_sheet(db_session, make_order(db_session, make_development(db_session, record, reference="26ABC0001")),
                           entry_date=now, machine=2)
        older = make_sheet(db_session, make_order(db_session, make_development(db_session, record, reference="26ABC0002")),
                           entry_date=now - timedelta(days=2), machine=2)
        make_sheet(db_session, make_order(db_session, make_development(db_session, record, reference="26ABC0003")),
                   machine=2, stage="FINISHED")

        response = client.get("/api/v1/production-sheets/by-machine/2", headers=default_headers)

        assert response.status_code == 200
        assert [item["id"] for item in response.json["data"]] == [older.id, newer.id]

    def test_by_machine_rejects_unknown_machine(self, client, default_headers):
        response = client.get("/api/v1/production-sheets/by-machine/9", headers=default_headers)
        assert response.status_code == 400
        assert response.json["code"] == 1008

    def test_by_production_order(self, client, default_headers, chain):
        response = client.get(f"/api/v1/production-sheets/by-production-order/{chain['order'].id}",
                              headers=default_headers)
        assert response.status_code == 200
        assert response.json["data"]["id"] == chain["sheet"].id

    def test_stats(self, client, default_headers, chain):
        stats = client.get("/api/v1/production-sheets/stats", headers=default_headers).json["data"]
        assert stats["total"] == 1
        assert stats["by_stage"]["PRINTING"] == 1
        assert stats["by_machine"]["1"] == 1


class TestPrintingDateComparison:
    """Dates are compared as instants, so re-sending what GET returned is not a change."""

    def _current(self, client, headers, sheet_id):
        return client.get(f"/api/v1/production-sheets/{sheet_id}", headers=headers).json["data"]

    def test_echoing_dates_from_get(self, client, db_session, printing_headers, chain):
        current = self._current(client, printing_headers, chain["sheet"].id)

        response = client.put(f"/api/v1/production-sheets/{chain['sheet'].id}", json={
            "stage": "CALENDERING",
            "entry_date": current["entry_date"],
            "expected_exit_date": current["expected_exit_date"],
        }, headers=printing_headers)

        assert response.status_code == 200
        assert response.json["data"]["stage"] == "CALENDERING"

    @pytest.mark.parametrize("shift_hours, suffix", [(0, "+00:00"), (-3, "-03:00")])
    def test_same_instant_in_another_notation(self, client, db_session, printing_headers, chain,
                                              shift_hours, suffix):
        current = self._current(client, printing_headers, chain["sheet"].id)
        local = parse_iso_datetime(current["entry_date"]) + timedelta(hours=shift_hours)

        response = client.put(f"/api/v1/production-sheets/{chain['sheet'].id}", json={
            "machine": 2,
            "entry_date": local.isoformat() + suffix,
        }, headers=printing_headers)

        assert response.status_code == 200
        assert response.json["data"]["machine"] == 2
        assert response.json["data"]["entry_date"] == current["entry_date"]

    def test_moved_date_is_a_change(self, client, db_session, printing_headers, chain):
        current = self._current(client, printing_headers, chain["sheet"].id)
        moved = parse_iso_datetime(current["expected_exit_date"]) + timedelta(days=1)

        response = client.put(f"/api/v1/production-sheets/{chain['sheet'].id}", json={
            "stage": "CALENDERING",
            "expected_exit_date": _iso(moved),
        }, headers=printing_headers)

        assert response.status_code == 403
        assert response.json["code"] == 4005
        assert "expected_exit_date" in response.json["message"]

    @pytest.mark.parametrize("headers_fixture", ["printing_headers", "default_headers"])
    def test_body_must_be_an_object(self, client, db_session, request, chain, headers_fixture):
        headers = request.getfixturevalue(headers_fixture)

        response = client.put(f"/api/v1/production-sheets/{chain['sheet'].id}", json=[1], headers=headers)

        assert response.status_code == 400
        assert response.json["code"] == 1002


class TestMachineAvailability:

    def _other_order(self, db_session, chain, reference="26ABC0099"):
        development = make_development(db_session, chain["client"], reference=reference)
        return make_order(db_session, development)

    def test_overlapping_window_rejected(self, client, db_session, default_headers, chain):
        order = self._other_order(db_session, chain)
        now = utcnow()

        response = client.post("/api/v1/production-sheets", json={
            "production_order_id": order.id,
            "entry_date": _iso(now + timedelta(days=1)),
            "expected_exit_date": _iso(now + timedelta(days=4)),
            "machine": 1,
        }, headers=default_headers)

        assert response.status_code == 400
        assert response.json["code"] == 2017
        assert chain["sheet"].internal_reference in response.json["message"]
        assert [error["field"] for error in response.json["errors"]] == ["machine"]
        assert db_session.query(ProductionSheet).count() == 1

    @pytest.mark.parametrize("machine, start_days", [(2, 1), (1, 5)])
    def test_free_machine_or_later_window_accepted(self, client, db_session, default_headers, chain,
                                                   machine, start_days):
        order = self._other_order(db_session, chain)
        now = utcnow()

        response = client.post("/api/v1/production-sheets", json={
            "production_order_id": order.id,
            "entry_date": _iso(now + timedelta(days=start_days)),
            "expected_exit_date": _iso(now + timedelta(days=start_days + 2)),
            "machine": machine,
        }, headers=default_headers)

        assert response.status_code == 201

    def test_update_does_not_conflict_with_itself(self, client, db_session, default_headers, chain):
        response = client.put(f"/api/v1/production-sheets/{chain['sheet'].id}", json={
            "expected_exit_date": _iso(utcnow() + timedelta(days=5)),
        }, headers=default_headers)
        assert response.status_code == 200

    def test_update_onto_busy_machine_rejected(self, client, db_session, default_headers, chain):
        other = make_sheet(db_session, self._other_order(db_session, chain), machine=2)

        response = client.put(f"/api/v1/production-sheets/{other.id}", json={"machine": 1},
                              headers=default_headers)

        assert response.status_code == 400
        assert response.json["code"] == 2017
        assert db_session.get(ProductionSheet, other.id).machine == 2
