from .auth import User, RevokedToken
from .clients import Client
from .developments import Development, DEVELOPMENT_STATUSES, PRODUCTION_TYPES
from .production import (
    ProductionOrder,
    ProductionSheet,
    PRODUCTION_ORDER_STATUSES,
    PRIORITIES,
    PRODUCTION_STAGES,
    MACHINES,
)
from .deliveries import DeliverySheet, DELIVERY_STATUSES
from .receipts import ProductionReceipt, PAYMENT_METHODS, PAYMENT_STATUSES, PaymentInvariantError
from .sequences import ReferenceSequence

__all__ = [
    'User', 'RevokedToken',
    'Client',
    'Development', 'DEVELOPMENT_STATUSES', 'PRODUCTION_TYPES',
    'ProductionOrder', 'ProductionSheet',
    'PRODUCTION_ORDER_STATUSES', 'PRIORITIES', 'PRODUCTION_STAGES', 'MACHINES',
    'DeliverySheet', 'DELIVERY_STATUSES',
    'ProductionReceipt', 'PAYMENT_METHODS', 'PAYMENT_STATUSES', 'PaymentInvariantError',
    'ReferenceSequence',
]
