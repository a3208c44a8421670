"""
Order and shipment lifecycles.

Each lifecycle is a fixed table of current status -> allowed next statuses.
The validator functions are pure: they never touch an entity, they only say
whether a move through the table is legal.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional

from .errors import InvalidTransition


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class ShipmentStatus(str, Enum):
    PENDING = "PENDING"
    SHIPPED = "SHIPPED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),  # terminal
    OrderStatus.CANCELLED: frozenset(),  # terminal
}

SHIPMENT_TRANSITIONS: Dict[ShipmentStatus, FrozenSet[ShipmentStatus]] = {
    ShipmentStatus.PENDING: frozenset({ShipmentStatus.SHIPPED, ShipmentStatus.CANCELLED}),
    ShipmentStatus.SHIPPED: frozenset({ShipmentStatus.IN_TRANSIT, ShipmentStatus.DELIVERED}),
    ShipmentStatus.IN_TRANSIT: frozenset({ShipmentStatus.DELIVERED}),
    ShipmentStatus.DELIVERED: frozenset(),  # terminal
    ShipmentStatus.CANCELLED: frozenset(),  # terminal
}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a transition check: ok, or the InvalidTransition to raise."""

    current: Enum
    target: Enum
    error: Optional[InvalidTransition] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def is_valid_transition(table: Mapping[Any, FrozenSet[Any]], current: Any, target: Any) -> bool:
    """True if target is allowed after current in the given table."""
    return target in table.get(current, frozenset())


def check_transition(
    table: Mapping[Any, FrozenSet[Any]],
    current: Any,
    target: Any,
    entity: str = "entity",
    entity_id: Any = None,
) -> TransitionResult:
    if is_valid_transition(table, current, target):
        return TransitionResult(current=current, target=target)
    return TransitionResult(
        current=current,
        target=target,
        error=InvalidTransition(current, target, entity=entity, entity_id=entity_id),
    )


def is_terminal(table: Mapping[Any, FrozenSet[Any]], status: Any) -> bool:
    return not table.get(status)
