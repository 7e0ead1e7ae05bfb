"""
Inventory, counting and consolidation schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PhysicalStockUpdate(BaseModel):
    physical_stock: Decimal


class PhysicalStockItem(BaseModel):
    ingredient_id: UUID
    physical_stock: Decimal


class PhysicalStockBulkUpdate(BaseModel):
    items: List[PhysicalStockItem] = Field(..., min_length=1)


class AdjustmentItem(BaseModel):
    ingredient_id: UUID
    quantity: Decimal
    reason: Optional[str] = None
    notes: Optional[str] = None


class ConsolidateRequest(BaseModel):
    items: List[PhysicalStockItem] = Field(..., min_length=1)
    adjustments: List[AdjustmentItem] = []


class PriceUpdate(BaseModel):
    unit_price: Decimal


class IngredientStockResponse(BaseModel):
    id: UUID
    name: str
    unit: str
    unit_price: Decimal
    virtual_stock: Decimal
    physical_stock: Optional[Decimal] = None
    min_stock: Decimal
    stock_updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SnapshotResponse(BaseModel):
    id: UUID
    ingredient_id: UUID
    virtual_stock: Decimal
    physical_stock: Decimal
    difference: Decimal
    taken_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AdjustmentResponse(BaseModel):
    id: UUID
    ingredient_id: UUID
    quantity: Decimal
    reason: str
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ConsolidateResponse(BaseModel):
    snapshots: List[SnapshotResponse]
    adjustments: List[AdjustmentResponse]
    ingredients: List[IngredientStockResponse]

    model_config = ConfigDict(from_attributes=True)


class InventoryLineResponse(BaseModel):
    ingredient_id: UUID
    name: str
    unit: str
    virtual_stock: Decimal
    physical_stock: Optional[Decimal] = None
    difference: Optional[Decimal] = None
    unit_cost: Decimal
    stock_value: Decimal
    min_stock: Decimal
    below_min: bool

    model_config = ConfigDict(from_attributes=True)


class InventoryResponse(BaseModel):
    items: List[InventoryLineResponse]
    total_value: Decimal
