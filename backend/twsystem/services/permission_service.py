# Overview: Role-based permission checks and field-level write restrictions.

"""
Permission Checking

WHY: Enforce role-based access control from one matrix
(twsystem.permissions.DEFAULT_ROLE_PERMISSIONS). The endpoint allow-list and
the resource-type gate are both derived from it, so they cannot disagree.

DESIGN PRINCIPLES:
- Fail closed: Deny by default, require explicit permission grant
- Log denials only: Permission grants are not logged
- Field restrictions narrow, never widen: a restricted role must already
  hold the UPDATE/STATUS permission before its payload is inspected
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from ..errors import AuthorizationError, ErrorCode, NotFoundError, ValidationError
from ..models import User
from ..permissions import (
    allowed_path_prefixes,
    get_field_restriction,
    get_permission_definition,
    get_role_permissions,
    role_has_permission,
)
from twsystem.time_utils import coerce_instant

logger = logging.getLogger(__name__)


class PermissionDeniedError(AuthorizationError):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user: User | None,
    event_type: str,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
) -> None:
    """
    Write a security-relevant denial to the application log.

    event_type examples:
    - PERMISSION_DENIED
    - FIELD_RESTRICTION_DENIED
    - WORKFLOW_RESTRICTION_DENIED
    """
    logger.warning(
        "%s user=%s role=%s resource=%s action=%s ip=%s reason=%s",
        event_type,
        user.email if user else None,
        user.role if user else None,
        resource,
        action,
        ip_address,
        reason,
    )


def get_user_permissions(user: User) -> frozenset:
    """Permission codes granted to the user's role."""
    if user is None or not user.is_active:
        return frozenset()
    return get_role_permissions(user.role)


def has_permission(user: User, permission_code: str) -> bool:
    if user is None or not user.is_active:
        return False
    return role_has_permission(user.role, permission_code)


def require_permission(
    user: User,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
) -> None:
    """
    Require a permission, raising PermissionDeniedError otherwise.

    The message names the role and the missing permission.
    """
    if has_permission(user, permission_code):
        return

    definition = get_permission_definition(permission_code)
    label = definition["name"] if definition else permission_code
    log_security_event(
        user,
        "PERMISSION_DENIED",
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
    )
    raise PermissionDeniedError(
        f"Insufficient permissions: role {user.role} cannot {label.lower()} ({permission_code})",
        code=ErrorCode.INSUFFICIENT_PERMISSIONS,
    )


def describe_access(user: User) -> dict:
    """Permissions and endpoint allow-list for the current user (used by /auth/me)."""
    return {
        "role": user.role,
        "permissions": sorted(get_user_permissions(user)),
        "allowed_paths": allowed_path_prefixes(user.role),
    }


# =============================================================================
# FIELD-LEVEL RESTRICTIONS
# =============================================================================

def _as_number(value: Any):
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return None
    return None


def values_differ(stored: Any, incoming: Any) -> bool:
    """
    Compare a stored column value with a submitted JSON value.

    Values that both parse as dates are compared as instants at second
    precision (the resolution responses are serialized at), numbers are
    compared numerically, everything else by string form.
    """
    if stored is None and incoming is None:
        return False
    if stored is None or incoming is None:
        if isinstance(incoming, str) and not incoming.strip() and stored is None:
            return False
        return True

    stored_instant = coerce_instant(stored)
    incoming_instant = coerce_instant(incoming)
    if stored_instant is not None and incoming_instant is not None:
        return stored_instant.replace(microsecond=0) != incoming_instant.replace(microsecond=0)

    stored_number = _as_number(stored)
    incoming_number = _as_number(incoming)
    if stored_number is not None and incoming_number is not None:
        return stored_number != incoming_number

    return str(stored).strip() != str(incoming).strip()


def changed_fields(record, payload: dict) -> list[str]:
    """Names of payload keys whose value differs from the record's attribute."""
    changed = []
    for key, value in payload.items():
        if not hasattr(record, key) or key.startswith("_"):
            changed.append(key)
            continue
        if values_differ(getattr(record, key), value):
            changed.append(key)
    return changed


def apply_field_restrictions(
    user: User,
    resource: str,
    record,
    payload: dict,
    parent_status: str | None,
) -> dict:
    """
    Narrow a mutation payload for roles with a field restriction on `resource`.

    - No restriction for the role: payload returned unchanged
    - Parent status differs from the required one: AuthorizationError
    - Any changed field outside the allowed set: AuthorizationError naming them
    - Otherwise: only the allowed fields that actually change are kept
      (fields sent with their current value are dropped)
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload", code=ErrorCode.INVALID_DATA)

    restriction = get_field_restriction(user.role, resource)
    if restriction is None:
        return payload

    if record is None:
        raise NotFoundError("Resource not found")

    if restriction.required_parent_status and parent_status != restriction.required_parent_status:
        reason = (
            f"Role {user.role} can only modify {resource} while the production order "
            f"is in {restriction.required_parent_status} (current: {parent_status})"
        )
        log_security_event(user, "WORKFLOW_RESTRICTION_DENIED", resource=resource, reason=reason)
        raise AuthorizationError(reason, code=ErrorCode.WORKFLOW_STATUS_RESTRICTED)

    changed = changed_fields(record, payload)
    forbidden = sorted(f for f in changed if f not in restriction.allowed_fields)
    if forbidden:
        reason = f"Role {user.role} is not allowed to modify fields: {', '.join(forbidden)}"
        log_security_event(user, "FIELD_RESTRICTION_DENIED", resource=resource, reason=reason)
        raise AuthorizationError(reason, code=ErrorCode.FIELD_UPDATE_RESTRICTED)

    return {k: payload[k] for k in changed if k in restriction.allowed_fields}
