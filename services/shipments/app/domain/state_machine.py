"""
Shipment lifecycle.

PENDING -> SHIPPED | CANCELLED, SHIPPED -> IN_TRANSIT | DELIVERED,
IN_TRANSIT -> DELIVERED. DELIVERED and CANCELLED are terminal.
"""

import secrets
import time
import uuid

from shared.domain.transitions import SHIPMENT_TRANSITIONS, ShipmentStatus, check_transition

from .models import Shipment, utcnow

TRACKING_PREFIX = "SHIP"


def generate_tracking_number() -> str:
    """SHIP-<epoch millis>-<8 upper hex>. Uniqueness is enforced by the store."""
    return f"{TRACKING_PREFIX}-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()}"


def new_shipment(order_id: uuid.UUID, recipient_name: str, recipient_address: str) -> Shipment:
    now = utcnow()
    return Shipment(
        id=uuid.uuid4(),
        tracking_number=generate_tracking_number(),
        order_id=order_id,
        recipient_name=recipient_name,
        recipient_address=recipient_address,
        status=ShipmentStatus.PENDING,
        created_at=now,
        updated_at=now,
    )


def update_status(shipment: Shipment, target: ShipmentStatus) -> ShipmentStatus:
    """Move the shipment to target, stamping shipped_at / delivered_at.

    Raises InvalidTransition when target is not reachable from the current
    status. Returns the status the shipment had before the move.
    """
    previous = shipment.status
    check_transition(
        SHIPMENT_TRANSITIONS, previous, target, entity="shipment", entity_id=shipment.id
    ).raise_for_error()

    now = utcnow()
    shipment.status = target
    shipment.updated_at = now
    if target == ShipmentStatus.SHIPPED:
        shipment.shipped_at = now
    elif target == ShipmentStatus.DELIVERED:
        shipment.delivered_at = now
    return previous
