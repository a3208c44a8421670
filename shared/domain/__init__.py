"""Shared domain logic for the order and shipment services.

Status lifecycles, the transition validator and the error taxonomy used by
both services. Nothing in here imports a web framework or a database driver.
"""

from .errors import (
    ServiceError,
    NotFound,
    ValidationError,
    InvalidTransition,
    RemoteServiceUnavailable,
    RemoteAuthError,
    PublishFailure,
)
from .transitions import (
    OrderStatus,
    ShipmentStatus,
    ORDER_TRANSITIONS,
    SHIPMENT_TRANSITIONS,
    TransitionResult,
    is_valid_transition,
    check_transition,
)

__all__ = [
    # Errors
    "ServiceError",
    "NotFound",
    "ValidationError",
    "InvalidTransition",
    "RemoteServiceUnavailable",
    "RemoteAuthError",
    "PublishFailure",
    # Lifecycles
    "OrderStatus",
    "ShipmentStatus",
    "ORDER_TRANSITIONS",
    "SHIPMENT_TRANSITIONS",
    "TransitionResult",
    "is_valid_transition",
    "check_transition",
]
