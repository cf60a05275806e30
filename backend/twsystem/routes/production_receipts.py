# Overview: Flask API routes for production receipts; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..permissions import API_PREFIX, Action, Resource
from ..responses import created, ok, paginated
from ..services import production_receipt_service

production_receipts_bp = Blueprint(
    "production_receipts", __name__, url_prefix=f"{API_PREFIX}/production-receipts"
)


@production_receipts_bp.get("")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.VIEW)
def list_receipts_route():
    return paginated(production_receipt_service.list_receipts(request.args))


@production_receipts_bp.get("/stats")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.VIEW)
def receipt_stats_route():
    return ok(production_receipt_service.receipt_stats())


@production_receipts_bp.get("/overdue")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.VIEW)
def list_overdue_route():
    return ok(production_receipt_service.list_overdue())


@production_receipts_bp.get("/by-production-order/<order_id>")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.VIEW)
def get_by_production_order_route(order_id: str):
    return ok(production_receipt_service.get_by_production_order(order_id).to_dict())


@production_receipts_bp.get("/<key>")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.VIEW)
def get_receipt_route(key: str):
    return ok(production_receipt_service.get_receipt(key).to_dict())


@production_receipts_bp.post("")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.CREATE)
def create_receipt_route():
    receipt = production_receipt_service.create_receipt(request.get_json(silent=True))
    return created(receipt.to_dict(), message="Production receipt created successfully")


@production_receipts_bp.put("/<receipt_id>")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.UPDATE)
def update_receipt_route(receipt_id: str):
    receipt = production_receipt_service.update_receipt(receipt_id, request.get_json(silent=True))
    return ok(receipt.to_dict(), message="Production receipt updated successfully")


@production_receipts_bp.patch("/<receipt_id>/payment-status")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.STATUS)
def change_payment_status_route(receipt_id: str):
    data = request.get_json(silent=True) or {}
    receipt = production_receipt_service.change_payment_status(receipt_id, data.get("payment_status"))
    return ok(receipt.to_dict(), message="Payment status updated successfully")


@production_receipts_bp.post("/<receipt_id>/process-payment")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.STATUS)
def process_payment_route(receipt_id: str):
    receipt = production_receipt_service.process_payment(receipt_id, request.get_json(silent=True))
    return ok(receipt.to_dict(), message="Payment processed successfully")


@production_receipts_bp.delete("/<receipt_id>")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.DELETE)
def deactivate_receipt_route(receipt_id: str):
    receipt = production_receipt_service.deactivate_receipt(receipt_id)
    return ok(receipt.to_dict(), message="Production receipt deactivated successfully")


@production_receipts_bp.post("/<receipt_id>/activate")
@require_auth
@require_permission(Resource.PRODUCTION_RECEIPTS, Action.DELETE)
def activate_receipt_route(receipt_id: str):
    receipt = production_receipt_service.activate_receipt(receipt_id)
    return ok(receipt.to_dict(), message="Production receipt activated successfully")
