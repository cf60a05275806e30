# Overview: Flask API routes for production orders; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..permissions import API_PREFIX, Action, Resource
from ..responses import created, ok, paginated
from ..services import production_order_service

production_orders_bp = Blueprint("production_orders", __name__, url_prefix=f"{API_PREFIX}/production-orders")


@production_orders_bp.get("")
@require_auth
@require_permission(Resource.PRODUCTION_ORDERS, Action.VIEW)
def list_orders_route():
    return paginated(production_order_service.list_orders(request.args))


@production_orders_bp.get("/stats")
@require_auth
@require_permission(Resource.PRODUCTION_ORDERS, Action.VIEW)
def order_stats_route():
    return ok(production_order_service.order_stats())


@production_orders_bp.get("/by-development/<development_id>")
@require_auth
@require_permission(Resource.PRODUCTION_ORDERS, Action.VIEW)
def get_by_development_route(development_id: str):
    return ok(production_order_service.get_by_development(development_id).to_dict())


@production_orders_bp.get("/<key>")
@require_auth
@require_permission(Resource.PRODUCTION_ORDERS, Action.VIEW)
def get_order_route(key: str):
    return ok(production_order_service.get_order(key).to_dict())


@production_orders_bp.post("")
@require_auth
@require_permission(Resource.PRODUCTION_ORDERS, Action.CREATE)
def create_order_route():
    order = production_order_service.create_order(request.get_json(silent=True))
    return created(order.to_dict(), message="Production order created successfully")


@production_orders_bp.put("/<order_id>")
@require_auth
@require_permission(Resource.PRODUCTION_ORDERS, Action.UPDATE)
def update_order_route(order_id: str):
    order = production_order_service.update_order(order_id, request.get_json(silent=True))
    return ok(order.to_dict(), message="Production order updated successfully")


@production_orders_bp.patch("/<order_id>/status")
@require_auth
@require_permission(Resource.PRODUCTION_ORDERS, Action.STATUS)
def change_status_route(order_id: str):
    data = request.get_json(silent=True) or {}
    order = production_order_service.change_status(order_id, data.get("status"))
    return ok(order.to_dict(), message="Production order status updated successfully")


@production_orders_bp.patch("/<order_id>/priority")
@require_auth
@require_permission(Resource.PRODUCTION_ORDERS, Action.STATUS)
def change_priority_route(order_id: str):
    data = request.get_json(silent=True) or {}
    order = production_order_service.change_priority(order_id, data.get("priority"))
    return ok(order.to_dict(), message="Production order priority updated successfully")


@production_orders_bp.delete("/<order_id>")
@require_auth
@require_permission(Resource.PRODUCTION_ORDERS, Action.DELETE)
def deactivate_order_route(order_id: str):
    order = production_order_service.deactivate_order(order_id)
    return ok(order.to_dict(), message="Production order deactivated successfully")


@production_orders_bp.post("/<order_id>/activate")
@require_auth
@require_permission(Resource.PRODUCTION_ORDERS, Action.DELETE)
def activate_order_route(order_id: str):
    order = production_order_service.activate_order(order_id)
    return ok(order.to_dict(), message="Production order activated successfully")
