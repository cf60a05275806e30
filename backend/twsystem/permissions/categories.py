# Overview: Resource and action constants that key the permission matrix.


class Resource:
    """Protected API resources; values are the URL segments under /api/v1."""
    USERS = "users"
    CLIENTS = "clients"
    DEVELOPMENTS = "developments"
    PRODUCTION_ORDERS = "production-orders"
    PRODUCTION_SHEETS = "production-sheets"
    DELIVERY_SHEETS = "delivery-sheets"
    PRODUCTION_RECEIPTS = "production-receipts"

    ALL = (
        USERS,
        CLIENTS,
        DEVELOPMENTS,
        PRODUCTION_ORDERS,
        PRODUCTION_SHEETS,
        DELIVERY_SHEETS,
        PRODUCTION_RECEIPTS,
    )


class Action:
    """What a caller does to a resource."""
    VIEW = "VIEW"          # list, get, stats, by-parent lookups
    CREATE = "CREATE"
    UPDATE = "UPDATE"      # full PUT
    STATUS = "STATUS"      # status / stage / priority / payment-status / process-payment
    DELETE = "DELETE"      # soft delete and reactivate

    ALL = (VIEW, CREATE, UPDATE, STATUS, DELETE)


# Segments every authenticated or anonymous caller may reach
PUBLIC_SEGMENTS = ("auth", "health")
