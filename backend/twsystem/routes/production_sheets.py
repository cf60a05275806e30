# Overview: Flask API routes for production sheets; parses input and returns JSON responses.

"""
Production sheet routes.

PRINTING operators reach update, stage and advance-stage; their payloads are
narrowed by the field restriction in the service layer.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..permissions import API_PREFIX, Action, Resource
from ..responses import created, ok, paginated
from ..services import production_sheet_service

production_sheets_bp = Blueprint("production_sheets", __name__, url_prefix=f"{API_PREFIX}/production-sheets")


@production_sheets_bp.get("")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.VIEW)
def list_sheets_route():
    return paginated(production_sheet_service.list_sheets(request.args))


@production_sheets_bp.get("/stats")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.VIEW)
def sheet_stats_route():
    return ok(production_sheet_service.sheet_stats())


@production_sheets_bp.get("/by-production-order/<order_id>")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.VIEW)
def get_by_production_order_route(order_id: str):
    return ok(production_sheet_service.get_by_production_order(order_id).to_dict())


@production_sheets_bp.get("/by-machine/<machine>")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.VIEW)
def list_by_machine_route(machine: str):
    return ok(production_sheet_service.list_by_machine(machine))


@production_sheets_bp.get("/<key>")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.VIEW)
def get_sheet_route(key: str):
    return ok(production_sheet_service.get_sheet(key).to_dict())


@production_sheets_bp.post("")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.CREATE)
def create_sheet_route():
    sheet = production_sheet_service.create_sheet(request.get_json(silent=True))
    return created(sheet.to_dict(), message="Production sheet created successfully")


@production_sheets_bp.put("/<sheet_id>")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.UPDATE)
def update_sheet_route(sheet_id: str):
    sheet = production_sheet_service.update_sheet(sheet_id, request.get_json(silent=True), user=g.current_user)
    return ok(sheet.to_dict(), message="Production sheet updated successfully")


@production_sheets_bp.patch("/<sheet_id>/stage")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.STATUS)
def change_stage_route(sheet_id: str):
    data = request.get_json(silent=True) or {}
    sheet = production_sheet_service.change_stage(sheet_id, data.get("stage"), user=g.current_user)
    return ok(sheet.to_dict(), message="Production sheet stage updated successfully")


@production_sheets_bp.patch("/<sheet_id>/advance-stage")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.STATUS)
def advance_stage_route(sheet_id: str):
    sheet = production_sheet_service.advance_stage(sheet_id, user=g.current_user)
    return ok(sheet.to_dict(), message=f"Production sheet advanced to {sheet.stage}")


@production_sheets_bp.delete("/<sheet_id>")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.DELETE)
def deactivate_sheet_route(sheet_id: str):
    sheet = production_sheet_service.deactivate_sheet(sheet_id)
    return ok(sheet.to_dict(), message="Production sheet deactivated successfully")


@production_sheets_bp.post("/<sheet_id>/activate")
@require_auth
@require_permission(Resource.PRODUCTION_SHEETS, Action.DELETE)
def activate_sheet_route(sheet_id: str):
    sheet = production_sheet_service.activate_sheet(sheet_id)
    return ok(sheet.to_dict(), message="Production sheet activated successfully")
