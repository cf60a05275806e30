# Overview: Flask API routes for delivery sheets; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..permissions import API_PREFIX, Action, Resource
from ..responses import created, ok, paginated
from ..services import delivery_sheet_service

delivery_sheets_bp = Blueprint("delivery_sheets", __name__, url_prefix=f"{API_PREFIX}/delivery-sheets")


@delivery_sheets_bp.get("")
@require_auth
@require_permission(Resource.DELIVERY_SHEETS, Action.VIEW)
def list_deliveries_route():
    return paginated(delivery_sheet_service.list_deliveries(request.args))


@delivery_sheets_bp.get("/stats")
@require_auth
@require_permission(Resource.DELIVERY_SHEETS, Action.VIEW)
def delivery_stats_route():
    return ok(delivery_sheet_service.delivery_stats())


@delivery_sheets_bp.get("/by-production-sheet/<sheet_id>")
@require_auth
@require_permission(Resource.DELIVERY_SHEETS, Action.VIEW)
def get_by_production_sheet_route(sheet_id: str):
    return ok(delivery_sheet_service.get_by_production_sheet(sheet_id).to_dict())


@delivery_sheets_bp.get("/<key>")
@require_auth
@require_permission(Resource.DELIVERY_SHEETS, Action.VIEW)
def get_delivery_route(key: str):
    return ok(delivery_sheet_service.get_delivery(key).to_dict())


@delivery_sheets_bp.post("")
@require_auth
@require_permission(Resource.DELIVERY_SHEETS, Action.CREATE)
def create_delivery_route():
    delivery = delivery_sheet_service.create_delivery(request.get_json(silent=True))
    return created(delivery.to_dict(), message="Delivery sheet created successfully")


@delivery_sheets_bp.put("/<delivery_id>")
@require_auth
@require_permission(Resource.DELIVERY_SHEETS, Action.UPDATE)
def update_delivery_route(delivery_id: str):
    delivery = delivery_sheet_service.update_delivery(delivery_id, request.get_json(silent=True))
    return ok(delivery.to_dict(), message="Delivery sheet updated successfully")


@delivery_sheets_bp.patch("/<delivery_id>/status")
@require_auth
@require_permission(Resource.DELIVERY_SHEETS, Action.STATUS)
def change_status_route(delivery_id: str):
    data = request.get_json(silent=True) or {}
    delivery = delivery_sheet_service.change_status(delivery_id, data.get("status"))
    return ok(delivery.to_dict(), message="Delivery sheet status updated successfully")


@delivery_sheets_bp.delete("/<delivery_id>")
@require_auth
@require_permission(Resource.DELIVERY_SHEETS, Action.DELETE)
def deactivate_delivery_route(delivery_id: str):
    delivery = delivery_sheet_service.deactivate_delivery(delivery_id)
    return ok(delivery.to_dict(), message="Delivery sheet deactivated successfully")


@delivery_sheets_bp.post("/<delivery_id>/activate")
@require_auth
@require_permission(Resource.DELIVERY_SHEETS, Action.DELETE)
def activate_delivery_route(delivery_id: str):
    delivery = delivery_sheet_service.activate_delivery(delivery_id)
    return ok(delivery.to_dict(), message="Delivery sheet activated successfully")
