from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from typing import List, Optional
from uuid import UUID

from shared.core import get_logger
from shared.domain.errors import InvalidTransition, NotFound
from shared.domain.transitions import ShipmentStatus
from ..core_settings import get_settings
from ..domain.models import Shipment
from ..domain import state_machine
from .schemas import ShipmentCreate

logger = get_logger(__name__)

class ShipmentService:
    def __init__(self, db: Session, tracking_attempts: Optional[int] = None):
        self.db = db
        self.tracking_attempts = tracking_attempts or get_settings().TRACKING_NUMBER_ATTEMPTS

    def list(self) -> List[Shipment]:
        return list(self.db.scalars(select(Shipment).order_by(Shipment.created_at)))

    def list_for_order(self, order_id: UUID) -> List[Shipment]:
        return list(self.db.scalars(
            select(Shipment).where(Shipment.order_id == order_id).order_by(Shipment.created_at)
        ))

    def get(self, shipment_id: UUID) -> Shipment:
        shipment = self.db.get(Shipment, shipment_id)
        if shipment is None:
            raise NotFound("shipment", shipment_id)
        return shipment

    def get_by_tracking_number(self, tracking_number: str) -> Shipment:
        shipment = self.db.scalar(
            select(Shipment).where(Shipment.tracking_number == tracking_number)
        )
        if shipment is None:
            raise NotFound("shipment", tracking_number)
        return shipment

    def create(self, data: ShipmentCreate) -> Shipment:
        """Create a PENDING shipment for the order.

        Idempotent per order: while the order has a shipment that is not
        CANCELLED, that shipment is returned instead of a new one.
        """
        logger.info(f"Creating shipment for order: {data.order_id}")
        existing = self.db.scalar(
            select(Shipment)
            .where(Shipment.order_id == data.order_id, Shipment.status != ShipmentStatus.CANCELLED)
            .order_by(Shipment.created_at)
            .limit(1)
        )
        if existing is not None:
            logger.info(
                f"Order {data.order_id} already has shipment {existing.tracking_number}, returning it",
                extra={'extra_fields': {'shipment_id': str(existing.id), 'order_id': str(data.order_id)}}
            )
            return existing

        attempt = 0
        while True:
            attempt += 1
            shipment = state_machine.new_shipment(
                data.order_id, data.recipient_name, data.recipient_address
            )
            self.db.add(shipment)
            try:
                self.db.commit()
                break
            except IntegrityError:
                # A tracking number collision is the only unique constraint on insert
                self.db.rollback()
                if attempt >= self.tracking_attempts:
                    logger.error(
                        f"Could not allocate a unique tracking number after {attempt} attempts",
                        extra={'extra_fields': {'order_id': str(data.order_id)}}
                    )
                    raise
                logger.warning(f"Tracking number collision on attempt {attempt}, regenerating")

        logger.info(
            f"Shipment created with tracking number: {shipment.tracking_number}",
            extra={'extra_fields': {
                'shipment_id': str(shipment.id),
                'order_id': str(shipment.order_id),
            }}
        )
        return shipment

    def update_status(self, shipment_id: UUID, target: ShipmentStatus) -> Shipment:
        logger.info(f"Updating shipment {shipment_id} status to {target.value}")
        shipment = self.get(shipment_id)
        previous = state_machine.update_status(shipment, target)
        try:
            self.db.commit()
        except StaleDataError:
            # Another request moved this shipment between our read and our write
            self.db.rollback()
            current = self.db.scalar(select(Shipment.status).where(Shipment.id == shipment_id))
            raise InvalidTransition(current, target, entity="shipment", entity_id=shipment_id)

        logger.info(
            f"Shipment {shipment_id} moved {previous.value} -> {target.value}",
            extra={'extra_fields': {
                'shipment_id': str(shipment_id),
                'from_status': previous.value,
                'to_status': target.value,
            }}
        )
        return shipment
