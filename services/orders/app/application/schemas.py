from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional
from uuid import UUID

from shared.domain.transitions import OrderStatus

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

class OrderCreate(CamelModel):
    user_id: UUID
    product_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    quantity: int = Field(ge=1)
    total_price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    shipping_address: NonBlank

class OrderValidationRequest(CamelModel):
    """A prospective order. Fields are checked by the validator, not by the parser."""
    user_id: Optional[UUID] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = None
    total_price: Optional[Decimal] = None
    shipping_address: Optional[str] = None

class OrderValidationResult(CamelModel):
    valid: bool
    errors: List[str]

class OrderConfirm(CamelModel):
    recipient_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]

class OrderRead(CamelModel):
    id: UUID
    user_id: UUID
    product_name: str
    quantity: int
    total_price: Decimal
    shipping_address: str
    status: OrderStatus
    shipment_id: Optional[UUID] = None
    tracking_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime
