"""
Order orchestration.

OrderService sequences the remote user check, local persistence, the order
state machine, the shipment service and the event publisher. State changes
are committed before anything is published, so a lost notification never
undoes a transition.
"""

from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from shared.core import get_logger
from shared.domain.errors import NotFound, ValidationError
from shared.domain.transitions import OrderStatus, ShipmentStatus
from ..domain import state_machine
from ..domain.models import Order, utcnow
from ..infrastructure.clients import ShipmentClient, ShipmentRecord, ShipmentRequest, UserClient
from ..infrastructure.events import OrderEventPublisher
from ..infrastructure.repository import OrderRepository
from .schemas import OrderCreate, OrderValidationRequest, OrderValidationResult

logger = get_logger(__name__)

class OrderService:
    def __init__(
        self,
        db: Session,
        user_client: UserClient,
        shipment_client: ShipmentClient,
        publisher: OrderEventPublisher,
        allow_cancel_any_status: bool = False,
        claim_ttl_seconds: float = 120.0,
    ):
        self.orders = OrderRepository(db)
        self.user_client = user_client
        self.shipment_client = shipment_client
        self.publisher = publisher
        self.allow_cancel_any_status = allow_cancel_any_status
        self.claim_ttl_seconds = claim_ttl_seconds

    def list(self) -> List[Order]:
        return self.orders.list()

    def list_for_user(self, user_id: UUID) -> List[Order]:
        return self.orders.list_for_user(user_id)

    def get(self, order_id: UUID) -> Order:
        return self.orders.get(order_id)

    def create(self, data: OrderCreate) -> Order:
        """Validate the user remotely, then persist the order in PENDING.

        No shipment is created and no event is published here.
        """
        logger.info(f"Creating order for user: {data.user_id}")
        try:
            user = self.user_client.fetch_user(data.user_id)
        except NotFound:
            raise ValidationError("user not found", field="userId", user_id=str(data.user_id)) from None
        logger.info(f"User validated: {user.display_name}")

        now = utcnow()
        order = Order(
            user_id=data.user_id,
            product_name=data.product_name,
            quantity=data.quantity,
            total_price=data.total_price,
            shipping_address=data.shipping_address,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self.orders.add(order)
        logger.info(
            f"Order created with id: {order.id} in PENDING status",
            extra={'extra_fields': {'order_id': str(order.id), 'user_id': str(order.user_id)}}
        )
        return order

    def validate(self, request: OrderValidationRequest) -> OrderValidationResult:
        """Check a prospective order without persisting anything.

        Every problem is collected rather than stopping at the first one. A
        user service outage is not a validation result and propagates as
        RemoteServiceUnavailable.
        """
        logger.info(f"Validating order for user: {request.user_id}")
        errors = []
        if request.quantity is None or request.quantity <= 0:
            errors.append("Quantity must be greater than 0")
        if request.total_price is None or request.total_price <= 0:
            errors.append("Total price must be greater than 0")
        if request.user_id is None:
            errors.append("User ID is required")
        else:
            try:
                self.user_client.fetch_user(request.user_id)
            except NotFound:
                errors.append(f"User not found: {request.user_id}")

        result = OrderValidationResult(valid=not errors, errors=errors)
        logger.info(
            f"Validation result: valid={result.valid}",
            extra={'extra_fields': {'user_id': str(request.user_id), 'errors': errors}}
        )
        return result

    def confirm_and_ship(self, order_id: UUID, recipient_name: str) -> Order:
        """
        PENDING -> CONFIRMED -> SHIPPED.

        The confirm step is committed on its own. If the shipment service is
        unavailable the order stays CONFIRMED and RemoteServiceUnavailable
        propagates; calling this again resumes at the shipment step. While one
        request holds the shipment claim, concurrent confirms are rejected with
        InvalidTransition.
        """
        logger.info(f"Confirming and shipping order: {order_id}")
        order = self.orders.get(order_id)

        # The confirm and the shipment claim go out in one conditional write; only
        # the request holding the claim calls the shipment service
        if order.status == OrderStatus.CONFIRMED and order.shipment_id is None:
            logger.info(f"Order {order_id} already CONFIRMED, resuming at shipment creation")
            state_machine.claim_shipment(order, self.claim_ttl_seconds)
            self.orders.commit_claim(order)
        else:
            previous = state_machine.confirm(order)
            state_machine.claim_shipment(order, self.claim_ttl_seconds)
            self.orders.commit_transition(order, previous)

        try:
            shipment = self.shipment_client.create_shipment(ShipmentRequest(
                order_id=order.id,
                recipient_name=recipient_name,
                recipient_address=order.shipping_address,
            ))
        except Exception:
            self.orders.release_claim(order)
            raise
        logger.info(f"Shipment created with tracking number: {shipment.tracking_number}")

        previous = state_machine.mark_shipped(order, shipment.id, shipment.tracking_number)
        self.orders.commit_transition(order, previous)

        # Outside the transaction: a failed publish is logged by the publisher and ignored here
        self.publisher.publish_order_created(order)

        logger.info(f"Order {order_id} shipped with tracking number: {shipment.tracking_number}")
        return order

    def cancel(self, order_id: UUID) -> Order:
        logger.info(f"Cancelling order: {order_id}")
        order = self.orders.get(order_id)
        previous = state_machine.cancel(order, allow_any_status=self.allow_cancel_any_status)
        return self.orders.commit_transition(order, previous)

    def get_shipment(self, order_id: UUID) -> ShipmentRecord:
        order = self.orders.get(order_id)
        if order.shipment_id is None:
            raise NotFound("shipment", f"order:{order_id}")
        return self.shipment_client.fetch_shipment(order.shipment_id)

    def track(self, tracking_number: str) -> ShipmentRecord:
        return self.shipment_client.fetch_shipment_by_tracking(tracking_number)

    def sync_delivery(self, order_id: UUID) -> Order:
        """Mark the order DELIVERED once its shipment reports DELIVERED."""
        order = self.orders.get(order_id)
        if order.shipment_id is None:
            return order
        shipment = self.shipment_client.fetch_shipment(order.shipment_id)
        if shipment.status != ShipmentStatus.DELIVERED or order.status == OrderStatus.DELIVERED:
            return order
        previous = state_machine.mark_delivered(order)
        return self.orders.commit_transition(order, previous)
