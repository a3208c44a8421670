"""
Order persistence.

Each status transition is committed as one unit: status, timestamps and any
shipment linkage go out in a single conditional UPDATE (the mapper's version
column). If another request committed first, the UPDATE matches no row and
the transition is rejected with the status that actually won.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from typing import List
from uuid import UUID

from shared.core import get_logger
from shared.domain.errors import InvalidTransition, NotFound
from shared.domain.transitions import OrderStatus
from ..domain.models import Order

logger = get_logger(__name__)

class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, order: Order) -> Order:
        self.db.add(order)
        self.db.commit()
        return order

    def get(self, order_id: UUID) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFound("order", order_id)
        return order

    def list(self) -> List[Order]:
        return list(self.db.scalars(select(Order).order_by(Order.created_at)))

    def list_for_user(self, user_id: UUID) -> List[Order]:
        return list(self.db.scalars(
            select(Order).where(Order.user_id == user_id).order_by(Order.created_at)
        ))

    def count(self) -> int:
        return self.db.scalar(select(func.count()).select_from(Order))

    def _commit_or_conflict(self, order: Order, expected: OrderStatus, target: OrderStatus) -> None:
        order_id = order.id
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            current = self.db.scalar(select(Order.status).where(Order.id == order_id))
            logger.warning(
                f"Concurrent update on order {order_id}: expected {expected.value}, found {current.value if current else None}",
                extra={'extra_fields': {
                    'order_id': str(order_id),
                    'expected_status': expected.value,
                    'target_status': target.value,
                }}
            )
            raise InvalidTransition(current, target, entity="order", entity_id=order_id)

    def commit_transition(self, order: Order, previous: OrderStatus) -> Order:
        """Persist a transition already applied to order in memory."""
        target = order.status
        self._commit_or_conflict(order, previous, target)

        logger.info(
            f"Order {order.id} moved {previous.value} -> {target.value}",
            extra={'extra_fields': {
                'order_id': str(order.id),
                'from_status': previous.value,
                'to_status': target.value,
            }}
        )
        return order

    def commit_claim(self, order: Order) -> Order:
        """Persist a shipment claim. Losing the race to another writer raises InvalidTransition."""
        self._commit_or_conflict(order, OrderStatus.CONFIRMED, OrderStatus.SHIPPED)
        logger.info(
            f"Order {order.id} claimed for shipping",
            extra={'extra_fields': {'order_id': str(order.id)}}
        )
        return order

    def release_claim(self, order: Order) -> None:
        """Drop a shipment claim after the shipment step failed."""
        order_id = order.id
        order.shipment_claimed_at = None
        try:
            self.db.commit()
        except StaleDataError:
            # Someone else already moved the order; their write wins
            self.db.rollback()
            logger.warning(f"Order {order_id} changed before its shipment claim was released")

    def refresh(self, order: Order) -> Order:
        self.db.refresh(order)
        return order
