"""
Production receipt tests: payment invariant, process-payment and the FINALIZED gate.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from twsystem.errors import BusinessRuleError
from twsystem.models import ProductionReceipt
from twsystem.time_utils import utcnow
from conftest import make_client, make_development, make_order


def _iso(dt):
    return dt.replace(microsecond=0).isoformat() + "Z"


@pytest.fixture
def finalized_order(db_session):
    development = make_development(db_session, make_client(db_session))
    return make_order(db_session, development, status="FINALIZED")


def _create(client, headers, order_id, **overrides):
    payload = {
        "production_order_id": order_id,
        "payment_method": "pix",
        "total_amount": 1000,
        "due_date": _iso(utcnow() + timedelta(days=30)),
    }
    payload.update(overrides)
    return client.post("/api/v1/production-receipts", json=payload, headers=headers)


class TestPaymentInvariant:

    def test_model_recomputes_derived_fields(self):
        receipt = ProductionReceipt(total_amount=Decimal("100.00"), paid_amount=Decimal("40.00"))
        receipt.apply_payment_invariant()
        assert receipt.remaining_amount == Decimal("60.00")
        assert receipt.payment_status == "PENDING"
        assert receipt.payment_date is None

        receipt.paid_amount = Decimal("100.00")
        receipt.apply_payment_invariant()
        assert receipt.remaining_amount == Decimal("0.00")
        assert receipt.payment_status == "PAID"
        assert receipt.payment_date is not None

    def test_overpayment_rejected_by_model(self):
        receipt = ProductionReceipt(total_amount=Decimal("10.00"), paid_amount=Decimal("10.01"))
        with pytest.raises(BusinessRuleError):
            receipt.apply_payment_invariant()


class TestCreateReceipt:

    def test_create_copies_reference(self, client, financing_headers, finalized_order):
        response = _create(client, financing_headers, finalized_order.id, paid_amount=250)

        assert response.status_code == 201
        data = response.json["data"]
        assert data["internal_reference"] == finalized_order.internal_reference
        assert data["payment_method"] == "PIX"
        assert data["payment_status"] == "PENDING"
        assert data["remaining_amount"] == 750.0

    def test_fully_paid_on_creation(self, client, financing_headers, finalized_order):
        response = _create(client, financing_headers, finalized_order.id, paid_amount=1000)

        data = response.json["data"]
        assert data["payment_status"] == "PAID"
        assert data["payment_date"] is not None
        assert data["remaining_amount"] == 0.0

    def test_paid_cannot_exceed_total(self, client, financing_headers, finalized_order):
        response = _create(client, financing_headers, finalized_order.id, paid_amount=1000.01)

        assert response.status_code == 400
        assert "paid_amount" in {error["field"] for error in response.json["errors"]}

    def test_requires_finalized_order(self, client, db_session, financing_headers):
        order = make_order(db_session, make_development(db_session, make_client(db_session)),
                           status="PRODUCTION_STARTED")

        response = _create(client, financing_headers, order.id)

        assert response.status_code == 400
        assert response.json["code"] == 2014

    def test_one_active_receipt_per_order(self, client, financing_headers, finalized_order):
        _create(client, financing_headers, finalized_order.id)

        response = _create(client, financing_headers, finalized_order.id)
        assert response.status_code == 409
        assert response.json["code"] == 2004


class TestProcessPayment:

    def test_partial_then_full_payment(self, client, financing_headers, finalized_order):
        receipt = _create(client, financing_headers, finalized_order.id).json["data"]
        url = f"/api/v1/production-receipts/{receipt['id']}/process-payment"

        partial = client.post(url, json={"amount": 400}, headers=financing_headers)
        assert partial.status_code == 200
        assert partial.json["data"]["paid_amount"] == 400.0
        assert partial.json["data"]["payment_status"] == "PENDING"

        full = client.post(url, json={"amount": 600, "payment_date": "2026-10-01T12:00:00Z"},
                           headers=financing_headers)
        assert full.status_code == 200
        data = full.json["data"]
        assert data["payment_status"] == "PAID"
        assert data["remaining_amount"] == 0.0
        assert data["payment_date"] == "2026-10-01T12:00:00Z"

    def test_payment_exceeding_balance(self, client, financing_headers, finalized_order):
        receipt = _create(client, financing_headers, finalized_order.id, paid_amount=900).json["data"]

        response = client.post(f"/api/v1/production-receipts/{receipt['id']}/process-payment",
                               json={"amount": 100.01}, headers=financing_headers)
        assert response.status_code == 400
        assert response.json["code"] == 2016

    def test_payment_on_paid_receipt(self, client, financing_headers, finalized_order):
        receipt = _create(client, financing_headers, finalized_order.id, paid_amount=1000).json["data"]

        response = client.post(f"/api/v1/production-receipts/{receipt['id']}/process-payment",
                               json={"amount": 1}, headers=financing_headers)
        assert response.status_code == 400
        assert response.json["code"] == 2015

    @pytest.mark.parametrize("amount", [0, -5, "abc", None])
    def test_invalid_amount(self, client, financing_headers, finalized_order, amount):
        receipt = _create(client, financing_headers, finalized_order.id).json["data"]

        response = client.post(f"/api/v1/production-receipts/{receipt['id']}/process-payment",
                               json={"amount": amount}, headers=financing_headers)
        assert response.status_code == 400


class TestPaymentStatus:

    def test_mark_paid_settles_balance(self, client, financing_headers, finalized_order):
        receipt = _create(client, financing_headers, finalized_order.id).json["data"]

        response = client.patch(f"/api/v1/production-receipts/{receipt['id']}/payment-status",
                                json={"payment_status": "PAID"}, headers=financing_headers)
        assert response.status_code == 200
        assert response.json["data"]["paid_amount"] == 1000.0
        assert response.json["data"]["remaining_amount"] == 0.0

    def test_paid_receipt_cannot_return_to_pending(self, client, financing_headers, finalized_order):
        receipt = _create(client, financing_headers, finalized_order.id, paid_amount=1000).json["data"]

        response = client.patch(f"/api/v1/production-receipts/{receipt['id']}/payment-status",
                                json={"payment_status": "PENDING"}, headers=financing_headers)
        assert response.status_code == 400
        assert response.json["code"] == 2009

    def test_overdue_listing_and_stats(self, client, financing_headers, finalized_order):
        _create(client, financing_headers, finalized_order.id, due_date=_iso(utcnow() - timedelta(days=1)))

        overdue = client.get("/api/v1/production-receipts/overdue", headers=financing_headers).json["data"]
        assert len(overdue) == 1
        assert overdue[0]["is_overdue"] is True

        filtered = client.get("/api/v1/production-receipts?overdue=true", headers=financing_headers).json
        assert filtered["pagination"]["total"] == 1

        stats = client.get("/api/v1/production-receipts/stats", headers=financing_headers).json["data"]
        assert stats["by_payment_status"]["PENDING"]["count"] == 1
        assert stats["overdue"] == 1

    def test_invalid_date_filter(self, client, financing_headers):
        response = client.get("/api/v1/production-receipts?created_from=yesterday", headers=financing_headers)
        assert response.status_code == 400
        assert response.json["code"] == 1006

    def test_filter_by_client(self, client, db_session, financing_headers, finalized_order):
        _create(client, financing_headers, finalized_order.id)
        client_id = finalized_order.development.client_id

        mine = client.get(f"/api/v1/production-receipts?client_id={client_id}", headers=financing_headers).json
        other = client.get(f"/api/v1/production-receipts?client_id={client_id + 100}", headers=financing_headers).json
        assert mine["pagination"]["total"] == 1
        assert other["pagination"]["total"] == 0
