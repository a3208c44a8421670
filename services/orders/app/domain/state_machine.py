"""
Order lifecycle: PENDING -> CONFIRMED -> SHIPPED -> DELIVERED, with CANCELLED
reachable from PENDING and CONFIRMED.

Every function checks the move against ORDER_TRANSITIONS, mutates the order
in memory and returns the status the order had before. Persisting the change
(and guarding it against concurrent writers) is the repository's job.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from shared.core import get_logger
from shared.domain.errors import InvalidTransition
from shared.domain.transitions import ORDER_TRANSITIONS, OrderStatus, check_transition

from .models import Order, utcnow

logger = get_logger(__name__)


def _move(order: Order, target: OrderStatus) -> OrderStatus:
    previous = order.status
    check_transition(
        ORDER_TRANSITIONS, previous, target, entity="order", entity_id=order.id
    ).raise_for_error()
    order.status = target
    order.updated_at = utcnow()
    return previous


def confirm(order: Order) -> OrderStatus:
    return _move(order, OrderStatus.CONFIRMED)


def mark_shipped(order: Order, shipment_id: uuid.UUID, tracking_number: str) -> OrderStatus:
    """CONFIRMED -> SHIPPED, linking the shipment in the same write."""
    previous = _move(order, OrderStatus.SHIPPED)
    order.shipment_id = shipment_id
    order.tracking_number = tracking_number
    return previous


def claim_shipment(order: Order, ttl_seconds: float, now: Optional[datetime] = None) -> None:
    """Reserve the shipment step for the caller.

    The order must be CONFIRMED with no shipment yet and no live claim. A
    claim older than ttl_seconds is treated as abandoned and taken over. The
    claim only holds once committed; the version column decides between
    concurrent claimants.
    """
    now = now or utcnow()
    if order.status != OrderStatus.CONFIRMED or order.shipment_id is not None:
        raise InvalidTransition(order.status, OrderStatus.SHIPPED, entity="order", entity_id=order.id)

    claimed = order.shipment_claimed_at
    if claimed is not None:
        if claimed.tzinfo is None:
            claimed = claimed.replace(tzinfo=timezone.utc)
        if now - claimed < timedelta(seconds=ttl_seconds):
            logger.warning(
                f"Shipment for order {order.id} already in progress since {claimed.isoformat()}",
                extra={'extra_fields': {'order_id': str(order.id)}}
            )
            raise InvalidTransition(order.status, OrderStatus.SHIPPED, entity="order", entity_id=order.id)

    order.shipment_claimed_at = now


def mark_delivered(order: Order) -> OrderStatus:
    return _move(order, OrderStatus.DELIVERED)


def cancel(order: Order, allow_any_status: bool = False) -> OrderStatus:
    """Cancel a PENDING or CONFIRMED order.

    allow_any_status restores the legacy behaviour of cancelling from any
    status, shipped and delivered orders included.
    """
    if not allow_any_status:
        return _move(order, OrderStatus.CANCELLED)

    previous = order.status
    if OrderStatus.CANCELLED not in ORDER_TRANSITIONS[previous]:
        logger.warning(
            f"Cancelling order {order.id} from {previous.value} outside the lifecycle",
            extra={'extra_fields': {'order_id': str(order.id), 'from_status': previous.value}}
        )
    order.status = OrderStatus.CANCELLED
    order.updated_at = utcnow()
    return previous
