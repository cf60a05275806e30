# Overview: Utility functions for permission lookups and validation.

from .categories import PUBLIC_SEGMENTS, Resource
from .definitions import PERMISSION_DEFINITIONS
from .roles import DEFAULT_ROLE_PERMISSIONS, FIELD_RESTRICTIONS, Role

API_PREFIX = "/api/v1"


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permissions_by_resource(resource):
    """Get all permissions for a resource."""
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == resource]


def get_permission_definition(code):
    """Get full definition for a permission code."""
    for perm in PERMISSION_DEFINITIONS:
        if perm[0] == code:
            return {
                "code": perm[0],
                "name": perm[1],
                "description": perm[2],
                "resource": perm[3],
            }
    return None


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return code in get_all_permission_codes()


def get_role_permissions(role: str) -> frozenset:
    return frozenset(DEFAULT_ROLE_PERMISSIONS.get(role, ()))


def role_has_permission(role: str, code: str) -> bool:
    return code in get_role_permissions(role)


def can_access_resource(role: str, resource: str) -> bool:
    """Resource-type gate: does the role hold any permission on the resource?"""
    codes = get_role_permissions(role)
    return any(perm[0] in codes for perm in get_permissions_by_resource(resource))


def allowed_path_prefixes(role: str) -> list[str]:
    """
    Endpoint allow-list for a role, derived from the permission matrix.

    ADMIN holds every permission, so its list covers every resource.
    """
    segments = list(PUBLIC_SEGMENTS)
    segments.extend(r for r in Resource.ALL if can_access_resource(role, r))
    return [f"{API_PREFIX}/{segment}" for segment in segments]


def is_path_allowed(role: str, path: str) -> bool:
    """Prefix-match a request path against the role's allow-list."""
    for prefix in allowed_path_prefixes(role):
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


def resource_for_path(path: str) -> str | None:
    if not path.startswith(API_PREFIX + "/"):
        return None
    segment = path[len(API_PREFIX) + 1:].split("/", 1)[0]
    return segment if segment in Resource.ALL else None


def get_field_restriction(role: str, resource: str):
    return FIELD_RESTRICTIONS.get((role, resource))


def is_valid_role(role: str) -> bool:
    return role in Role.ALL
