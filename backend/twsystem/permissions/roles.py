# Overview: Closed role set and the default role -> permission matrix.

from dataclasses import dataclass

from .categories import Action, Resource
from .definitions import (
    CLIENT_PERMISSIONS,
    DELIVERY_SHEET_PERMISSIONS,
    DEVELOPMENT_PERMISSIONS,
    PERMISSION_DEFINITIONS,
    PRODUCTION_ORDER_PERMISSIONS,
    PRODUCTION_RECEIPT_PERMISSIONS,
    PRODUCTION_SHEET_PERMISSIONS,
    permission_code,
)


class Role:
    ADMIN = "ADMIN"
    DEFAULT = "DEFAULT"
    PRINTING = "PRINTING"
    FINANCING = "FINANCING"

    ALL = (ADMIN, DEFAULT, PRINTING, FINANCING)


# Older accounts were created with lower-case roles; `flask tw migrate-user-roles` rewrites them
LEGACY_ROLE_MAP = {
    "user": Role.DEFAULT,
    "STANDARD": Role.DEFAULT,
    "moderator": Role.DEFAULT,
    "admin": Role.ADMIN,
}


def _codes(definitions) -> list[str]:
    return [perm[0] for perm in definitions]


# =============================================================================
# DEFAULT ROLE PERMISSION MAPPINGS
# =============================================================================

# WHY these mappings:
# - ADMIN: Full access to everything, including user administration
# - DEFAULT: Production office; runs the whole workflow except finance and users
# - PRINTING: Machine operators; read sheets and move them forward on the floor
# - FINANCING: Billing; clients and payment receipts only

DEFAULT_ROLE_PERMISSIONS = {
    Role.ADMIN: _codes(PERMISSION_DEFINITIONS),

    Role.DEFAULT: (
        _codes(CLIENT_PERMISSIONS)
        + _codes(DEVELOPMENT_PERMISSIONS)
        + _codes(PRODUCTION_ORDER_PERMISSIONS)
        + _codes(PRODUCTION_SHEET_PERMISSIONS)
        + _codes(DELIVERY_SHEET_PERMISSIONS)
    ),

    Role.PRINTING: [
        permission_code(Resource.PRODUCTION_SHEETS, Action.VIEW),
        permission_code(Resource.PRODUCTION_SHEETS, Action.UPDATE),
        permission_code(Resource.PRODUCTION_SHEETS, Action.STATUS),
    ],

    Role.FINANCING: (
        _codes(CLIENT_PERMISSIONS)
        + _codes(PRODUCTION_RECEIPT_PERMISSIONS)
    ),
}


@dataclass(frozen=True)
class FieldRestriction:
    """
    Narrows what a role may change on a record it is otherwise allowed to update.

    - allowed_fields: fields whose value may differ from the stored one
    - required_parent_status: parent workflow status required for any change
    """
    allowed_fields: frozenset
    required_parent_status: str | None = None


FIELD_RESTRICTIONS = {
    (Role.PRINTING, Resource.PRODUCTION_SHEETS): FieldRestriction(
        allowed_fields=frozenset({"stage", "machine"}),
        required_parent_status="PILOT_PRODUCTION",
    ),
}
