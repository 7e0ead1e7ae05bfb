"""
Waste Pydantic schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class WasteItemCreate(BaseModel):
    ingredient_id: Optional[UUID] = None
    ingredient_name: Optional[str] = None
    quantity: Decimal
    value_lost: Optional[Decimal] = None
    reason: Optional[str] = None
    unit: Optional[str] = None
    note: Optional[str] = None


class WasteCreate(BaseModel):
    items: List[WasteItemCreate] = Field(..., min_length=1)


class WasteResponse(BaseModel):
    id: UUID
    ingredient_id: Optional[UUID] = None
    ingredient_name: str
    quantity: Decimal
    unit: str
    value_lost: Decimal
    reason: str
    note: Optional[str] = None
    stock_deducted: Decimal
    period_id: int
    recorded_at: datetime
    deleted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WasteSummaryResponse(BaseModel):
    period_id: int
    total_value_lost: Decimal
    ingredient_count: int
    record_count: int

    model_config = ConfigDict(from_attributes=True)


class WasteTopItemResponse(BaseModel):
    ingredient_name: str
    total_quantity: Decimal
    total_value_lost: Decimal
    occurrences: int

    model_config = ConfigDict(from_attributes=True)


class WasteStatsResponse(BaseModel):
    current_month_total: Decimal
    current_month_records: int
    previous_month_total: Decimal
    variation_percent: int
    top_items: List[WasteTopItemResponse]

    model_config = ConfigDict(from_attributes=True)


class WasteResetResponse(BaseModel):
    reversed: int
