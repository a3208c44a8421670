from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from shared.domain.transitions import ShipmentStatus

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

class ShipmentCreate(CamelModel):
    order_id: UUID
    recipient_name: Name
    recipient_address: NonBlank

class ShipmentStatusUpdate(CamelModel):
    status: ShipmentStatus

class ShipmentRead(CamelModel):
    id: UUID
    tracking_number: str
    order_id: UUID
    recipient_name: str
    recipient_address: str
    status: ShipmentStatus
    created_at: datetime
    updated_at: datetime
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
