# Overview: All permission definitions organized by resource.
# Each permission is defined as: (code, name, description, category)
# Codes are "{RESOURCE}:{ACTION}", e.g. "PRODUCTION_SHEETS:STATUS".

from .categories import Action, Resource

_ACTION_VERBS = {
    Action.VIEW: ("View", "List, read and aggregate {label}"),
    Action.CREATE: ("Create", "Create new {label}"),
    Action.UPDATE: ("Update", "Edit existing {label}"),
    Action.STATUS: ("Change status of", "Move {label} through their workflow states"),
    Action.DELETE: ("Deactivate", "Soft-delete and reactivate {label}"),
}


def permission_code(resource: str, action: str) -> str:
    """Build the canonical code for a (resource, action) pair."""
    return f"{resource.upper().replace('-', '_')}:{action}"


def _resource_permissions(resource: str, label: str, actions=Action.ALL) -> list[tuple]:
    definitions = []
    for action in actions:
        verb, description = _ACTION_VERBS[action]
        definitions.append((
            permission_code(resource, action),
            f"{verb} {label}",
            description.format(label=label),
            resource,
        ))
    return definitions


# Users have no workflow; STATUS is omitted
USER_PERMISSIONS = _resource_permissions(
    Resource.USERS, "users", (Action.VIEW, Action.CREATE, Action.UPDATE, Action.DELETE)
)
CLIENT_PERMISSIONS = _resource_permissions(
    Resource.CLIENTS, "clients", (Action.VIEW, Action.CREATE, Action.UPDATE, Action.DELETE)
)
DEVELOPMENT_PERMISSIONS = _resource_permissions(Resource.DEVELOPMENTS, "developments")
PRODUCTION_ORDER_PERMISSIONS = _resource_permissions(Resource.PRODUCTION_ORDERS, "production orders")
PRODUCTION_SHEET_PERMISSIONS = _resource_permissions(Resource.PRODUCTION_SHEETS, "production sheets")
DELIVERY_SHEET_PERMISSIONS = _resource_permissions(Resource.DELIVERY_SHEETS, "delivery sheets")
PRODUCTION_RECEIPT_PERMISSIONS = _resource_permissions(Resource.PRODUCTION_RECEIPTS, "production receipts")


PERMISSION_DEFINITIONS = (
    USER_PERMISSIONS
    + CLIENT_PERMISSIONS
    + DEVELOPMENT_PERMISSIONS
    + PRODUCTION_ORDER_PERMISSIONS
    + PRODUCTION_SHEET_PERMISSIONS
    + DELIVERY_SHEET_PERMISSIONS
    + PRODUCTION_RECEIPT_PERMISSIONS
)
