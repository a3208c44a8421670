"""
Order events published to the notification channel (SQS queue).

Publishing is best effort: it runs after the order's state change has been
committed, and any failure is logged with the order id and dropped. The
caller never sees it and nothing is rolled back. There is no retry and no
outbox, so a SHIPPED order can end up without a notification.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol
from uuid import UUID

import boto3
from botocore.config import Config
from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from shared.core import get_logger
from shared.domain.errors import PublishFailure
from ..domain.models import Order

logger = get_logger(__name__)

DEFAULT_CHANNEL = "order-events"


class OrderCreatedEvent(BaseModel):
    """Immutable snapshot of an order at publish time. Exists only on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    order_id: UUID
    user_id: UUID
    product_name: str
    quantity: int
    total_price: Decimal
    shipping_address: str
    tracking_number: Optional[str] = None
    created_at: datetime

    @field_serializer("total_price")
    def _price_as_number(self, value: Decimal) -> float:
        return float(value)

    @classmethod
    def from_order(cls, order: Order) -> "OrderCreatedEvent":
        return cls(
            order_id=order.id,
            user_id=order.user_id,
            product_name=order.product_name,
            quantity=order.quantity,
            total_price=order.total_price,
            shipping_address=order.shipping_address,
            tracking_number=order.tracking_number,
            created_at=order.created_at,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class MessageSender(Protocol):
    channel: str

    def send(self, body: str) -> None:
        ...


class SqsMessageSender:
    """Sends message bodies to one SQS queue."""

    def __init__(
        self,
        channel: str = DEFAULT_CHANNEL,
        queue_url: Optional[str] = None,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        self.channel = channel
        self._queue_url = queue_url
        self._client = client or boto3.client(
            "sqs",
            region_name=region_name,
            endpoint_url=endpoint_url,
            config=Config(connect_timeout=2, read_timeout=5, retries={"max_attempts": 1}),
        )

    @property
    def queue_url(self) -> str:
        if self._queue_url is None:
            self._queue_url = self._client.get_queue_url(QueueName=self.channel)["QueueUrl"]
        return self._queue_url

    def send(self, body: str) -> None:
        self._client.send_message(QueueUrl=self.queue_url, MessageBody=body)


class OrderEventPublisher:
    def __init__(self, sender: MessageSender):
        self.sender = sender

    @property
    def channel(self) -> str:
        return getattr(self.sender, "channel", DEFAULT_CHANNEL)

    def publish_order_created(self, order: Order) -> bool:
        """Fire and forget. Returns whether the send went through; never raises."""
        logger.info(f"Publishing order created event for order: {order.id}")
        try:
            payload = OrderCreatedEvent.from_order(order).to_json()
            self.sender.send(payload)
        except Exception as e:
            failure = PublishFailure(self.channel, order.id, cause=e)
            logger.error(failure.message, exc_info=e, extra={'extra_fields': failure.context})
            return False

        logger.info(
            f"Order event published to {self.channel}",
            extra={'extra_fields': {'order_id': str(order.id), 'channel': self.channel}}
        )
        return True
