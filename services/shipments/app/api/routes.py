from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID
from ..infrastructure.db import get_db
from ..application.service import ShipmentService
from ..application.schemas import ShipmentCreate, ShipmentRead, ShipmentStatusUpdate

router = APIRouter(prefix="/shipments", tags=["shipments"])

@router.get("", response_model=list[ShipmentRead])
def list_shipments(db: Session = Depends(get_db)):
    return ShipmentService(db).list()

@router.post("", response_model=ShipmentRead, status_code=201)
def create_shipment(payload: ShipmentCreate, db: Session = Depends(get_db)):
    """Create a shipment in PENDING with a fresh tracking number."""
    return ShipmentService(db).create(payload)

@router.get("/tracking/{tracking_number}", response_model=ShipmentRead)
def get_shipment_by_tracking_number(tracking_number: str, db: Session = Depends(get_db)):
    return ShipmentService(db).get_by_tracking_number(tracking_number)

@router.get("/order/{order_id}", response_model=list[ShipmentRead])
def list_shipments_for_order(order_id: UUID, db: Session = Depends(get_db)):
    return ShipmentService(db).list_for_order(order_id)

@router.get("/{shipment_id}", response_model=ShipmentRead)
def get_shipment(shipment_id: UUID, db: Session = Depends(get_db)):
    return ShipmentService(db).get(shipment_id)

@router.patch("/{shipment_id}/status", response_model=ShipmentRead)
def update_shipment_status(shipment_id: UUID, payload: ShipmentStatusUpdate, db: Session = Depends(get_db)):
    """Move a shipment along its lifecycle. Illegal moves answer 422."""
    return ShipmentService(db).update_status(shipment_id, payload.status)
