import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from services.orders.app.api import dependencies
from services.orders.app.application.schemas import OrderCreate
from services.orders.app.application.service import OrderService
from services.orders.app.domain.models import Base
from services.orders.app.infrastructure.auth import TokenCache
from services.orders.app.infrastructure.clients import ShipmentClient, UserClient
from services.orders.app.infrastructure.db import get_db
from services.orders.app.infrastructure.events import OrderEventPublisher
from services.orders.app.infrastructure.resilience import RetryPolicy
from services.orders.app.main import app

EXISTING_USER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
MISSING_USER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a2")


class RemoteStub:
    """User and shipment services answering from memory, behind httpx.MockTransport."""

    def __init__(self):
        self.users = {
            str(EXISTING_USER_ID): {
                "id": str(EXISTING_USER_ID),
                "email": "alice@example.com",
                "firstName": "Alice",
                "lastName": "Martin",
                "role": "user",
                "status": "ACTIVE",
            }
        }
        self.shipments = {}
        self.user_outage = False  # user service unreachable
        self.shipment_outage = 0  # upcoming shipment calls answered with 503
        self.next_shipment_id = None
        self.next_tracking_number = None
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.startswith("/users/"):
            if self.user_outage:
                raise httpx.ConnectError("connection refused", request=request)
            user = self.users.get(path.rsplit("/", 1)[1])
            if user is None:
                return httpx.Response(404, json={"title": "User Not Found"})
            return httpx.Response(200, json=user)

        if path.startswith("/shipments"):
            if self.shipment_outage:
                self.shipment_outage -= 1
                return httpx.Response(503, json={"title": "Service Unavailable"})
            if request.method == "POST" and path == "/shipments":
                return httpx.Response(201, json=self._create(json.loads(request.content)))
            if path.startswith("/shipments/tracking/"):
                code = path.rsplit("/", 1)[1]
                for shipment in self.shipments.values():
                    if shipment["trackingNumber"] == code:
                        return httpx.Response(200, json=shipment)
                return httpx.Response(404)
            shipment = self.shipments.get(path.rsplit("/", 1)[1])
            if shipment is None:
                return httpx.Response(404)
            return httpx.Response(200, json=shipment)

        return httpx.Response(404)

    def _create(self, body: dict) -> dict:
        shipment_id = str(self.next_shipment_id or uuid.uuid4())
        shipment = {
            "id": shipment_id,
            "trackingNumber": self.next_tracking_number or f"SHIP-{len(self.shipments) + 1}",
            "orderId": body["orderId"],
            "recipientName": body["recipientName"],
            "recipientAddress": body["recipientAddress"],
            "status": "PENDING",
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "shippedAt": None,
            "deliveredAt": None,
        }
        self.shipments[shipment_id] = shipment
        self.next_shipment_id = None
        self.next_tracking_number = None
        return shipment

    def count(self, method: str, prefix: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path.startswith(prefix))


class RecordingSender:
    """Message channel double: keeps what was sent, or fails on demand."""

    def __init__(self, channel: str = "order-events"):
        self.channel = channel
        self.sent = []
        self.fail = False

    def send(self, body: str) -> None:
        if self.fail:
            raise ConnectionError("queue unreachable")
        self.sent.append(json.loads(body))


def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def stub():
    return RemoteStub()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def token_cache():
    return TokenCache(provider=None)


@pytest.fixture
def user_client(stub, token_cache):
    http = httpx.Client(base_url="http://users", transport=httpx.MockTransport(stub.handler))
    return UserClient(
        "http://users", token_cache, RetryPolicy("userService", max_attempts=3),
        allow_anonymous=True, http_client=http, sleep=no_sleep,
    )


@pytest.fixture
def shipment_client(stub, token_cache):
    http = httpx.Client(base_url="http://shipments", transport=httpx.MockTransport(stub.handler))
    return ShipmentClient(
        "http://shipments", token_cache, RetryPolicy("shipmentService", max_attempts=3),
        allow_anonymous=True, http_client=http, sleep=no_sleep,
    )


@pytest.fixture
def publisher(sender):
    return OrderEventPublisher(sender)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'orders.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def order_service(db, user_client, shipment_client, publisher):
    return OrderService(db, user_client, shipment_client, publisher)


@pytest.fixture
def client(session_factory, user_client, shipment_client, publisher):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_user_client] = lambda: user_client
    app.dependency_overrides[dependencies.get_shipment_client] = lambda: shipment_client
    app.dependency_overrides[dependencies.get_event_publisher] = lambda: publisher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def existing_user_id():
    return EXISTING_USER_ID


@pytest.fixture
def missing_user_id():
    return MISSING_USER_ID


@pytest.fixture
def order_request(existing_user_id):
    """Two units at 2499.99 shipped to 123 Main St."""
    return OrderCreate(
        user_id=existing_user_id,
        product_name="Laptop Pro 15",
        quantity=2,
        total_price=Decimal("2499.99"),
        shipping_address="123 Main St",
    )
