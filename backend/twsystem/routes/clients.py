# Overview: Flask API routes for clients; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..permissions import API_PREFIX, Action, Resource
from ..responses import created, ok, paginated
from ..services import client_service

clients_bp = Blueprint("clients", __name__, url_prefix=f"{API_PREFIX}/clients")


@clients_bp.get("")
@require_auth
@require_permission(Resource.CLIENTS, Action.VIEW)
def list_clients_route():
    return paginated(client_service.list_clients(request.args))


@clients_bp.get("/stats")
@require_auth
@require_permission(Resource.CLIENTS, Action.VIEW)
def client_stats_route():
    return ok(client_service.client_stats())


@clients_bp.get("/search")
@require_auth
@require_permission(Resource.CLIENTS, Action.VIEW)
def quick_search_route():
    return ok(client_service.quick_search(request.args.get("q")))


@clients_bp.get("/<key>")
@require_auth
@require_permission(Resource.CLIENTS, Action.VIEW)
def get_client_route(key: str):
    return ok(client_service.get_client(key).to_dict())


@clients_bp.post("")
@require_auth
@require_permission(Resource.CLIENTS, Action.CREATE)
def create_client_route():
    client = client_service.create_client(request.get_json(silent=True))
    return created(client.to_dict(), message="Client created successfully")


@clients_bp.put("/<client_id>")
@require_auth
@require_permission(Resource.CLIENTS, Action.UPDATE)
def update_client_route(client_id: str):
    client = client_service.update_client(client_id, request.get_json(silent=True))
    return ok(client.to_dict(), message="Client updated successfully")


@clients_bp.delete("/<client_id>")
@require_auth
@require_permission(Resource.CLIENTS, Action.DELETE)
def deactivate_client_route(client_id: str):
    client = client_service.deactivate_client(client_id)
    return ok(client.to_dict(), message="Client deactivated successfully")


@clients_bp.post("/<client_id>/activate")
@require_auth
@require_permission(Resource.CLIENTS, Action.DELETE)
def activate_client_route(client_id: str):
    client = client_service.activate_client(client_id)
    return ok(client.to_dict(), message="Client activated successfully")
