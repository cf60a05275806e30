"""
Production order tests: approval gate, reference copy and one active order per development.
"""

import pytest

from conftest import make_client, make_development, make_order


class TestCreateOrder:

    def test_copies_development_reference(self, client, db_session, default_headers):
        development = make_development(db_session, make_client(db_session))

        response = client.post("/api/v1/production-orders", json={
            "development_id": development.id,
            "fabric_type": "Cotton",
            "priority": "RED",
        }, headers=default_headers)

        assert response.status_code == 201
        data = response.json["data"]
        assert data["internal_reference"] == development.internal_reference
        assert data["status"] == "CREATED"
        assert data["priority"] == "red"
        assert data["development"]["id"] == development.id

    @pytest.mark.parametrize("status", ["CREATED", "AWAITING_APPROVAL", "CANCELED"])
    def test_requires_approved_development(self, client, db_session, default_headers, status):
        development = make_development(db_session, make_client(db_session), status=status)

        response = client.post("/api/v1/production-orders", json={
            "development_id": development.id,
            "fabric_type": "Cotton",
        }, headers=default_headers)

        assert response.status_code == 400
        assert response.json["code"] == 2001

    def test_one_active_order_per_development(self, client, db_session, default_headers):
        development = make_development(db_session, make_client(db_session))
        make_order(db_session, development)

        response = client.post("/api/v1/production-orders", json={
            "development_id": development.id,
            "fabric_type": "Linen",
        }, headers=default_headers)

        assert response.status_code == 409
        assert response.json["code"] == 2002

    def test_deactivated_order_frees_development(self, client, db_session, default_headers):
        development = make_development(db_session, make_client(db_session))
        old = make_order(db_session, development, active=False)

        response = client.post("/api/v1/production-orders", json={
            "development_id": development.id,
            "fabric_type": "Linen",
        }, headers=default_headers)
        assert response.status_code == 201

        reactivated = client.post(f"/api/v1/production-orders/{old.id}/activate", headers=default_headers)
        assert reactivated.status_code == 409

    def test_unknown_development(self, client, db_session, default_headers):
        response = client.post("/api/v1/production-orders", json={
            "development_id": 4242,
            "fabric_type": "Cotton",
        }, headers=default_headers)
        assert response.status_code == 404
        assert response.json["code"] == 5003


class TestOrderWorkflow:

    def test_status_and_priority(self, client, db_session, default_headers):
        order = make_order(db_session, make_development(db_session, make_client(db_session)))

        response = client.patch(f"/api/v1/production-orders/{order.id}/status", json={"status": "PILOT_PRODUCTION"},
                                headers=default_headers)
        assert response.status_code == 200
        assert response.json["data"]["status"] == "PILOT_PRODUCTION"

        response = client.patch(f"/api/v1/production-orders/{order.id}/priority", json={"priority": "yellow"},
                                headers=default_headers)
        assert response.status_code == 200
        assert response.json["data"]["priority"] == "yellow"

        response = client.patch(f"/api/v1/production-orders/{order.id}/priority", json={"priority": "purple"},
                                headers=default_headers)
        assert response.status_code == 400

    def test_by_development_and_search(self, client, db_session, default_headers):
        record = make_client(db_session, acronym="FLR", company_name="Flores Tecidos")
        development = make_development(db_session, record)
        order = make_order(db_session, development)

        response = client.get(f"/api/v1/production-orders/by-development/{development.id}", headers=default_headers)
        assert response.status_code == 200
        assert response.json["data"]["id"] == order.id

        found = client.get("/api/v1/production-orders?search=flores", headers=default_headers).json
        assert [item["id"] for item in found["data"]] == [order.id]

    def test_stats(self, client, db_session, default_headers):
        record = make_client(db_session)
        make_order(db_session, make_development(db_session, record, reference="26ABC0001"), priority="red")
        make_order(db_session, make_development(db_session, record, reference="26ABC0002"), status="FINALIZED")

        stats = client.get("/api/v1/production-orders/stats", headers=default_headers).json["data"]
        assert stats["total"] == 2
        assert stats["by_status"]["FINALIZED"] == 1
        assert stats["by_priority"]["red"] == 1
