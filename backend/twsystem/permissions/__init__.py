# Overview: Permission system package.
# Re-exports all public APIs so callers import from twsystem.permissions.

from .categories import Action, Resource, PUBLIC_SEGMENTS
from .definitions import (
    PERMISSION_DEFINITIONS,
    USER_PERMISSIONS,
    CLIENT_PERMISSIONS,
    DEVELOPMENT_PERMISSIONS,
    PRODUCTION_ORDER_PERMISSIONS,
    PRODUCTION_SHEET_PERMISSIONS,
    DELIVERY_SHEET_PERMISSIONS,
    PRODUCTION_RECEIPT_PERMISSIONS,
    permission_code,
)
from .roles import DEFAULT_ROLE_PERMISSIONS, FIELD_RESTRICTIONS, FieldRestriction, LEGACY_ROLE_MAP, Role
from .helpers import (
    API_PREFIX,
    allowed_path_prefixes,
    can_access_resource,
    get_all_permission_codes,
    get_field_restriction,
    get_permission_definition,
    get_permissions_by_resource,
    get_role_permissions,
    is_path_allowed,
    is_valid_role,
    resource_for_path,
    role_has_permission,
    validate_permission_code,
)

__all__ = [
    "Action",
    "Resource",
    "PUBLIC_SEGMENTS",
    "PERMISSION_DEFINITIONS",
    "USER_PERMISSIONS",
    "CLIENT_PERMISSIONS",
    "DEVELOPMENT_PERMISSIONS",
    "PRODUCTION_ORDER_PERMISSIONS",
    "PRODUCTION_SHEET_PERMISSIONS",
    "DELIVERY_SHEET_PERMISSIONS",
    "PRODUCTION_RECEIPT_PERMISSIONS",
    "permission_code",
    "DEFAULT_ROLE_PERMISSIONS",
    "FIELD_RESTRICTIONS",
    "FieldRestriction",
    "LEGACY_ROLE_MAP",
    "Role",
    "API_PREFIX",
    "allowed_path_prefixes",
    "can_access_resource",
    "get_all_permission_codes",
    "get_field_restriction",
    "get_permission_definition",
    "get_permissions_by_resource",
    "get_role_permissions",
    "is_path_allowed",
    "is_valid_role",
    "resource_for_path",
    "role_has_permission",
    "validate_permission_code",
]
