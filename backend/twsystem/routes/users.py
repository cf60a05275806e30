# Overview: Flask API routes for user administration; parses input and returns JSON responses.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..permissions import API_PREFIX, Action, Resource
from ..responses import created, ok, paginated
from ..services import user_service

users_bp = Blueprint("users", __name__, url_prefix=f"{API_PREFIX}/users")


@users_bp.get("")
@require_auth
@require_permission(Resource.USERS, Action.VIEW)
def list_users_route():
    return paginated(user_service.list_users(request.args))


@users_bp.get("/stats")
@require_auth
@require_permission(Resource.USERS, Action.VIEW)
def user_stats_route():
    return ok(user_service.user_stats())


@users_bp.get("/<user_id>")
@require_auth
@require_permission(Resource.USERS, Action.VIEW)
def get_user_route(user_id: str):
    return ok(user_service.get_user(user_id).to_dict())


@users_bp.post("")
@require_auth
@require_permission(Resource.USERS, Action.CREATE)
def create_user_route():
    """The generated password is only ever returned here."""
    user, password = user_service.create_user(request.get_json(silent=True))
    return created(
        {"user": user.to_dict(), "generated_password": password},
        message="User created successfully",
    )


@users_bp.put("/<user_id>")
@require_auth
@require_permission(Resource.USERS, Action.UPDATE)
def update_user_route(user_id: str):
    user = user_service.update_user(user_id, request.get_json(silent=True), acting_user=g.current_user)
    return ok(user.to_dict(), message="User updated successfully")


@users_bp.delete("/<user_id>")
@require_auth
@require_permission(Resource.USERS, Action.DELETE)
def deactivate_user_route(user_id: str):
    user = user_service.deactivate_user(user_id, acting_user=g.current_user)
    return ok(user.to_dict(), message="User deactivated successfully")


@users_bp.patch("/<user_id>/reactivate")
@require_auth
@require_permission(Resource.USERS, Action.DELETE)
def reactivate_user_route(user_id: str):
    return ok(user_service.reactivate_user(user_id).to_dict(), message="User reactivated successfully")


@users_bp.put("/<user_id>/password")
@require_auth
@require_permission(Resource.USERS, Action.UPDATE)
def set_user_password_route(user_id: str):
    user_service.set_password(user_id, request.get_json(silent=True))
    return ok(message="Password updated successfully")
