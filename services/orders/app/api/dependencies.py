"""
Wiring for the orders API.

The token cache, the remote clients and the event publisher are built once
per process; tests replace them through app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ..application.service import OrderService
from ..core_settings import get_settings
from ..infrastructure.auth import ClientCredentialsProvider, TokenCache
from ..infrastructure.clients import ShipmentClient, UserClient
from ..infrastructure.db import get_db
from ..infrastructure.events import OrderEventPublisher, SqsMessageSender
from ..infrastructure.resilience import RetryPolicy

@lru_cache
def get_token_cache() -> TokenCache:
    settings = get_settings()
    provider = None
    if settings.M2M_TOKEN_URL:
        provider = ClientCredentialsProvider(
            token_url=settings.M2M_TOKEN_URL,
            client_id=settings.M2M_CLIENT_ID,
            client_secret=settings.M2M_CLIENT_SECRET,
            scope=settings.M2M_SCOPE,
            default_lifetime=settings.M2M_DEFAULT_TOKEN_LIFETIME_SECONDS,
        )
    return TokenCache(provider, skew_seconds=settings.M2M_TOKEN_EXPIRY_SKEW_SECONDS)

def _policy(name: str, max_attempts: int) -> RetryPolicy:
    settings = get_settings()
    return RetryPolicy(
        name=name,
        max_attempts=max_attempts,
        initial_backoff=settings.RETRY_INITIAL_BACKOFF_SECONDS,
        multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
        max_backoff=settings.RETRY_MAX_BACKOFF_SECONDS,
    )

@lru_cache
def get_user_client() -> UserClient:
    settings = get_settings()
    return UserClient(
        settings.USER_SERVICE_URL,
        get_token_cache(),
        _policy("userService", settings.USER_SERVICE_MAX_ATTEMPTS),
        allow_anonymous=settings.USER_SERVICE_ALLOW_ANONYMOUS,
        timeout=settings.REMOTE_TIMEOUT_SECONDS,
    )

@lru_cache
def get_shipment_client() -> ShipmentClient:
    settings = get_settings()
    return ShipmentClient(
        settings.SHIPMENT_SERVICE_URL,
        get_token_cache(),
        _policy("shipmentService", settings.SHIPMENT_SERVICE_MAX_ATTEMPTS),
        allow_anonymous=settings.SHIPMENT_SERVICE_ALLOW_ANONYMOUS,
        timeout=settings.REMOTE_TIMEOUT_SECONDS,
    )

@lru_cache
def get_event_publisher() -> OrderEventPublisher:
    settings = get_settings()
    sender = SqsMessageSender(
        channel=settings.ORDER_EVENTS_QUEUE,
        queue_url=settings.SQS_QUEUE_URL,
        region_name=settings.AWS_REGION,
        endpoint_url=settings.AWS_ENDPOINT_URL,
    )
    return OrderEventPublisher(sender)

def get_order_service(
    db: Session = Depends(get_db),
    user_client: UserClient = Depends(get_user_client),
    shipment_client: ShipmentClient = Depends(get_shipment_client),
    publisher: OrderEventPublisher = Depends(get_event_publisher),
) -> OrderService:
    settings = get_settings()
    return OrderService(
        db,
        user_client,
        shipment_client,
        publisher,
        allow_cancel_any_status=settings.ORDER_CANCEL_ANY_STATUS,
        claim_ttl_seconds=settings.SHIPMENT_CLAIM_TTL_SECONDS,
    )
