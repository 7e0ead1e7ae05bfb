"""
Purchase order Pydantic schemas.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class OrderLineCreate(BaseModel):
    ingredient_id: UUID
    ordered_quantity: Decimal
    unit_price: Decimal = Decimal(0)
    received_quantity: Optional[Decimal] = None


class OrderCreate(BaseModel):
    lines: List[OrderLineCreate] = Field(..., min_length=1)
    status: str = "pending"
    order_date: Optional[date] = None
    supplier_id: Optional[UUID] = None
    notes: Optional[str] = None


class OrderUpdate(BaseModel):
    """Marking an order "received" applies it once; later updates only edit fields."""
    status: Optional[str] = None
    # line id -> quantity that actually arrived
    received_quantities: Optional[Dict[UUID, Decimal]] = None
    received_at: Optional[datetime] = None
    supplier_id: Optional[UUID] = None
    notes: Optional[str] = None


class OrderLineResponse(BaseModel):
    id: UUID
    ingredient_id: Optional[UUID]
    ordered_quantity: Decimal
    received_quantity: Optional[Decimal] = None
    unit_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: UUID
    status: str
    order_date: date
    supplier_id: Optional[UUID] = None
    total: Optional[Decimal] = None
    received_total: Optional[Decimal] = None
    received_at: Optional[datetime] = None
    notes: Optional[str] = None
    deleted_at: Optional[datetime] = None
    lines: List[OrderLineResponse]

    model_config = ConfigDict(from_attributes=True)
