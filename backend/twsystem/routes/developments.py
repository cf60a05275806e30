# Overview: Flask API routes for developments; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..permissions import API_PREFIX, Action, Resource
from ..responses import created, ok, paginated
from ..services import development_service

developments_bp = Blueprint("developments", __name__, url_prefix=f"{API_PREFIX}/developments")


@developments_bp.get("")
@require_auth
@require_permission(Resource.DEVELOPMENTS, Action.VIEW)
def list_developments_route():
    return paginated(development_service.list_developments(request.args))


@developments_bp.get("/stats")
@require_auth
@require_permission(Resource.DEVELOPMENTS, Action.VIEW)
def development_stats_route():
    return ok(development_service.development_stats())


@developments_bp.get("/reference/<reference>")
@require_auth
@require_permission(Resource.DEVELOPMENTS, Action.VIEW)
def get_by_reference_route(reference: str):
    return ok(development_service.get_by_reference(reference).to_dict())


@developments_bp.get("/by-client/<client_id>")
@require_auth
@require_permission(Resource.DEVELOPMENTS, Action.VIEW)
def list_by_client_route(client_id: str):
    return ok(development_service.list_by_client(client_id))


@developments_bp.get("/<key>")
@require_auth
@require_permission(Resource.DEVELOPMENTS, Action.VIEW)
def get_development_route(key: str):
    return ok(development_service.get_development(key).to_dict())


@developments_bp.post("")
@require_auth
@require_permission(Resource.DEVELOPMENTS, Action.CREATE)
def create_development_route():
    development = development_service.create_development(request.get_json(silent=True))
    return created(development.to_dict(), message="Development created successfully")


@developments_bp.put("/<development_id>")
@require_auth
@require_permission(Resource.DEVELOPMENTS, Action.UPDATE)
def update_development_route(development_id: str):
    development = development_service.update_development(development_id, request.get_json(silent=True))
    return ok(development.to_dict(), message="Development updated successfully")


@developments_bp.patch("/<development_id>/status")
@require_auth
@require_permission(Resource.DEVELOPMENTS, Action.STATUS)
def change_status_route(development_id: str):
    data = request.get_json(silent=True) or {}
    development = development_service.change_status(development_id, data.get("status"))
    return ok(development.to_dict(), message="Development status updated successfully")


@developments_bp.delete("/<development_id>")
@require_auth
@require_permission(Resource.DEVELOPMENTS, Action.DELETE)
def deactivate_development_route(development_id: str):
    development = development_service.deactivate_development(development_id)
    return ok(development.to_dict(), message="Development deactivated successfully")


@developments_bp.post("/<development_id>/activate")
@require_auth
@require_permission(Resource.DEVELOPMENTS, Action.DELETE)
def activate_development_route(development_id: str):
    development = development_service.activate_development(development_id)
    return ok(development.to_dict(), message="Development activated successfully")
