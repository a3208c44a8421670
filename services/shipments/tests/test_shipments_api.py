"""
Shipments HTTP API and service tests.
"""

import itertools
import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from shared.domain.errors import InvalidTransition
from shared.domain.transitions import ShipmentStatus
from services.shipments.app.application.schemas import ShipmentCreate
from services.shipments.app.application.service import ShipmentService
from services.shipments.app.domain import state_machine


def shipment_payload(order_id=None, **overrides):
    payload = {
        "orderId": str(order_id or uuid.uuid4()),
        "recipientName": "Alice Martin",
        "recipientAddress": "123 Main St",
    }
    payload.update(overrides)
    return payload


class TestShipmentsAPI:

    def test_create_shipment(self, client):
        response = client.post("/shipments", json=shipment_payload())

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "PENDING"
        assert data["trackingNumber"].startswith("SHIP-")
        assert data["shippedAt"] is None
        assert data["deliveredAt"] is None

    def test_create_shipment_invalid(self, client):
        response = client.post("/shipments", json=shipment_payload(recipientName=""))

        assert response.status_code == 400
        assert "recipientName" in response.json()["fieldErrors"]

    def test_recipient_name_length(self, client):
        assert client.post("/shipments", json=shipment_payload(recipientName="A" * 200)).status_code == 201

        response = client.post("/shipments", json=shipment_payload(recipientName="A" * 201))

        assert response.status_code == 400
        assert "recipientName" in response.json()["fieldErrors"]

    def test_repeated_create_returns_same_shipment(self, client):
        order_id = uuid.uuid4()
        first = client.post("/shipments", json=shipment_payload(order_id))
        second = client.post("/shipments", json=shipment_payload(order_id, recipientName="Bob"))

        assert second.status_code == 201
        assert second.json()["id"] == first.json()["id"]
        assert second.json()["recipientName"] == "Alice Martin"
        assert len(client.get(f"/shipments/order/{order_id}").json()) == 1

    def test_create_after_cancellation_makes_new_shipment(self, client):
        order_id = uuid.uuid4()
        first = client.post("/shipments", json=shipment_payload(order_id)).json()
        client.patch(f"/shipments/{first['id']}/status", json={"status": "CANCELLED"})

        second = client.post("/shipments", json=shipment_payload(order_id)).json()

        assert second["id"] != first["id"]
        assert second["status"] == "PENDING"
        assert len(client.get(f"/shipments/order/{order_id}").json()) == 2

    def test_lookups(self, client):
        order_id = uuid.uuid4()
        created = client.post("/shipments", json=shipment_payload(order_id)).json()

        assert client.get(f"/shipments/{created['id']}").json()["id"] == created["id"]
        by_tracking = client.get(f"/shipments/tracking/{created['trackingNumber']}")
        assert by_tracking.json()["id"] == created["id"]
        assert [s["id"] for s in client.get(f"/shipments/order/{order_id}").json()] == [created["id"]]
        assert len(client.get("/shipments").json()) == 1

    def test_unknown_shipment(self, client):
        assert client.get(f"/shipments/{uuid.uuid4()}").status_code == 404
        assert client.get("/shipments/tracking/SHIP-0-00000000").status_code == 404

    def test_update_status(self, client):
        created = client.post("/shipments", json=shipment_payload()).json()

        response = client.patch(f"/shipments/{created['id']}/status", json={"status": "SHIPPED"})

        assert response.status_code == 200
        assert response.json()["status"] == "SHIPPED"
        assert response.json()["shippedAt"] is not None

    def test_full_lifecycle(self, client):
        created = client.post("/shipments", json=shipment_payload()).json()
        for status in ("SHIPPED", "IN_TRANSIT", "DELIVERED"):
            response = client.patch(f"/shipments/{created['id']}/status", json={"status": status})
            assert response.status_code == 200

        assert response.json()["deliveredAt"] is not None

    def test_illegal_transition(self, client):
        created = client.post("/shipments", json=shipment_payload()).json()
        client.patch(f"/shipments/{created['id']}/status", json={"status": "SHIPPED"})
        client.patch(f"/shipments/{created['id']}/status", json={"status": "DELIVERED"})

        response = client.patch(f"/shipments/{created['id']}/status", json={"status": "SHIPPED"})

        assert response.status_code == 422
        problem = response.json()
        assert problem["currentStatus"] == "DELIVERED"
        assert problem["targetStatus"] == "SHIPPED"
        assert client.get(f"/shipments/{created['id']}").json()["status"] == "DELIVERED"

    def test_unknown_status_value(self, client):
        created = client.post("/shipments", json=shipment_payload()).json()

        response = client.patch(f"/shipments/{created['id']}/status", json={"status": "LOST"})

        assert response.status_code == 400

    def test_update_unknown_shipment(self, client):
        response = client.patch(f"/shipments/{uuid.uuid4()}/status", json={"status": "SHIPPED"})
        assert response.status_code == 404

    def test_health(self, client):
        assert client.get("/health").json()["service"] == "shipment-service"


class TestShipmentService:

    def request(self):
        return ShipmentCreate(
            order_id=uuid.uuid4(), recipient_name="Alice Martin", recipient_address="123 Main St"
        )

    def test_tracking_collision_is_regenerated(self, db, monkeypatch):
        numbers = iter(["SHIP-1-AAAAAAAA", "SHIP-1-AAAAAAAA", "SHIP-1-BBBBBBBB"])
        monkeypatch.setattr(state_machine, "generate_tracking_number", lambda: next(numbers))
        service = ShipmentService(db)

        first = service.create(self.request())
        second = service.create(self.request())

        assert first.tracking_number == "SHIP-1-AAAAAAAA"
        assert second.tracking_number == "SHIP-1-BBBBBBBB"
        assert len(service.list()) == 2

    def test_collisions_give_up_after_attempts(self, db, monkeypatch):
        monkeypatch.setattr(state_machine, "generate_tracking_number", lambda: "SHIP-1-AAAAAAAA")
        calls = itertools.count()
        original = state_machine.new_shipment

        def counting_new_shipment(*args):
            next(calls)
            return original(*args)

        monkeypatch.setattr(state_machine, "new_shipment", counting_new_shipment)
        service = ShipmentService(db, tracking_attempts=3)
        service.create(self.request())

        with pytest.raises(IntegrityError):
            service.create(self.request())

        # one for the first shipment, three for the failed one
        assert next(calls) == 4
        assert len(service.list()) == 1

    def test_update_status_reports_winning_status(self, session_factory):
        with session_factory() as setup:
            shipment = ShipmentService(setup).create(self.request())

        with session_factory() as first, session_factory() as second:
            loser = ShipmentService(second)
            loser.get(shipment.id)  # loaded while still PENDING

            ShipmentService(first).update_status(shipment.id, ShipmentStatus.CANCELLED)

            with pytest.raises(InvalidTransition) as exc_info:
                loser.update_status(shipment.id, ShipmentStatus.SHIPPED)

            assert exc_info.value.current == ShipmentStatus.CANCELLED
