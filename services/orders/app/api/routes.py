from fastapi import APIRouter, Depends, Response
from uuid import UUID
from ..application.service import OrderService
from ..application.schemas import (
    OrderConfirm, OrderCreate, OrderRead, OrderValidationRequest, OrderValidationResult,
)
from ..infrastructure.clients import ShipmentRecord
from .dependencies import get_order_service

router = APIRouter(prefix="/orders", tags=["orders"])

@router.get("", response_model=list[OrderRead])
def list_orders(service: OrderService = Depends(get_order_service)):
    return service.list()

@router.post("", response_model=OrderRead, status_code=201)
def create_order(payload: OrderCreate, service: OrderService = Depends(get_order_service)):
    """Create an order in PENDING after checking the user exists."""
    return service.create(payload)

@router.post("/validate", response_model=OrderValidationResult)
def validate_order(payload: OrderValidationRequest, service: OrderService = Depends(get_order_service)):
    """Check a prospective order (quantity, price, user exists) without creating it."""
    return service.validate(payload)

@router.get("/user/{user_id}", response_model=list[OrderRead])
def list_orders_for_user(user_id: UUID, service: OrderService = Depends(get_order_service)):
    return service.list_for_user(user_id)

@router.get("/tracking/{tracking_number}", response_model=ShipmentRecord)
def track_shipment(tracking_number: str, service: OrderService = Depends(get_order_service)):
    return service.track(tracking_number)

@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: UUID, service: OrderService = Depends(get_order_service)):
    return service.get(order_id)

@router.post("/{order_id}/confirm", response_model=OrderRead)
def confirm_order(order_id: UUID, payload: OrderConfirm, service: OrderService = Depends(get_order_service)):
    """Confirm the order and create its shipment. 503 when the shipment service is down."""
    return service.confirm_and_ship(order_id, payload.recipient_name)

@router.post("/{order_id}/cancel", status_code=204)
def cancel_order(order_id: UUID, service: OrderService = Depends(get_order_service)):
    service.cancel(order_id)
    return Response(status_code=204)

@router.get("/{order_id}/shipment", response_model=ShipmentRecord)
def get_order_shipment(order_id: UUID, service: OrderService = Depends(get_order_service)):
    return service.get_shipment(order_id)

@router.post("/{order_id}/sync-delivery", response_model=OrderRead)
def sync_delivery(order_id: UUID, service: OrderService = Depends(get_order_service)):
    """Mark the order DELIVERED if its shipment has been delivered."""
    return service.sync_delivery(order_id)
