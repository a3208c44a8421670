"""
HTTP clients for the user and shipment services.

Every call carries the service's M2M bearer token and our trace headers, and
runs under a named retry policy. Remote 404s become NotFound and 401/403
become RemoteAuthError; neither is retried. Exhausted retries end in the
fallback, which raises RemoteServiceUnavailable.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional
from uuid import UUID
import time

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from shared.core import get_logger, trace_headers
from shared.domain.errors import NotFound, RemoteAuthError, RemoteServiceUnavailable
from shared.domain.transitions import ShipmentStatus
from .auth import TokenCache
from .resilience import RetryPolicy, call_with_retry

logger = get_logger(__name__)

USER_SERVICE = "user-service"
SHIPMENT_SERVICE = "shipment-service"


class RemoteRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class UserRecord(RemoteRecord):
    id: UUID
    email: Optional[str] = None
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return " ".join(p for p in (self.first_name, self.last_name) if p) or str(self.id)


class ShipmentRequest(RemoteRecord):
    order_id: UUID
    recipient_name: str
    recipient_address: str


class ShipmentRecord(RemoteRecord):
    id: UUID
    tracking_number: str
    order_id: UUID
    recipient_name: str
    recipient_address: str
    status: ShipmentStatus
    created_at: datetime
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class RemoteClient:
    def __init__(
        self,
        service: str,
        base_url: str,
        token_cache: TokenCache,
        policy: RetryPolicy,
        allow_anonymous: bool = False,
        timeout: float = 5.0,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.service = service
        self.token_cache = token_cache
        self.policy = policy
        self.allow_anonymous = allow_anonymous
        self.http = http_client or httpx.Client(base_url=base_url, timeout=timeout)
        self.sleep = sleep

    def _send(self, method: str, path: str, json: Any = None) -> httpx.Response:
        headers: Dict[str, str] = {"Accept": "application/json"}
        headers.update(trace_headers())
        headers.update(self.token_cache.bearer_headers(self.service, self.allow_anonymous))

        response = self.http.request(method, path, json=json, headers=headers)
        if response.status_code == 401:
            # Token rejected: drop it so the next call fetches a fresh one
            self.token_cache.invalidate(self.service)
            raise RemoteAuthError(self.service, "credentials rejected (401)")
        if response.status_code == 403:
            raise RemoteAuthError(self.service, "caller not permitted (403)")
        return response

    def _call(
        self,
        operation: str,
        method: str,
        path: str,
        json: Any = None,
        not_found: Optional[NotFound] = None,
    ) -> Dict[str, Any]:
        def attempt() -> Dict[str, Any]:
            response = self._send(method, path, json)
            if response.status_code == 404 and not_found is not None:
                raise not_found
            response.raise_for_status()
            return response.json()

        def fallback(exc: BaseException) -> Dict[str, Any]:
            logger.error(
                f"{self.service} {operation} failed after retries: {exc}",
                extra={'extra_fields': {'service': self.service, 'operation': operation}}
            )
            raise RemoteServiceUnavailable(self.service, operation, cause=exc) from exc

        return call_with_retry(attempt, self.policy, fallback=fallback, sleep=self.sleep)

    def close(self) -> None:
        self.http.close()


class UserClient(RemoteClient):
    def __init__(self, base_url: str, token_cache: TokenCache, policy: RetryPolicy, **kwargs):
        super().__init__(USER_SERVICE, base_url, token_cache, policy, **kwargs)

    def fetch_user(self, user_id: UUID) -> UserRecord:
        logger.info(f"Fetching user: {user_id}")
        body = self._call(
            "fetch_user", "GET", f"/users/{user_id}", not_found=NotFound("user", user_id)
        )
        return UserRecord.model_validate(body)


class ShipmentClient(RemoteClient):
    def __init__(self, base_url: str, token_cache: TokenCache, policy: RetryPolicy, **kwargs):
        super().__init__(SHIPMENT_SERVICE, base_url, token_cache, policy, **kwargs)

    def create_shipment(self, request: ShipmentRequest) -> ShipmentRecord:
        logger.info(f"Creating shipment for order: {request.order_id}")
        body = self._call(
            "create_shipment", "POST", "/shipments",
            json=request.model_dump(mode="json", by_alias=True),
        )
        return ShipmentRecord.model_validate(body)

    def fetch_shipment(self, shipment_id: UUID) -> ShipmentRecord:
        logger.debug(f"Fetching shipment: {shipment_id}")
        body = self._call(
            "fetch_shipment", "GET", f"/shipments/{shipment_id}",
            not_found=NotFound("shipment", shipment_id),
        )
        return ShipmentRecord.model_validate(body)

    def fetch_shipment_by_tracking(self, tracking_number: str) -> ShipmentRecord:
        logger.debug(f"Fetching shipment by tracking number: {tracking_number}")
        body = self._call(
            "fetch_shipment_by_tracking", "GET", f"/shipments/tracking/{tracking_number}",
            not_found=NotFound("shipment", tracking_number),
        )
        return ShipmentRecord.model_validate(body)
