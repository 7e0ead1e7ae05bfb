"""
Sale Pydantic schemas for API request/response models.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SaleCreate(BaseModel):
    """Request model for registering a sale."""
    recipe_id: UUID
    quantity: Decimal
    variant_id: Optional[UUID] = None
    # Ignored when a variant is given
    unit_price: Optional[Decimal] = None
    sold_at: Optional[datetime] = None


class DeductionResponse(BaseModel):
    ingredient_id: Optional[UUID]
    requested: Decimal
    applied: Decimal

    model_config = ConfigDict(from_attributes=True)


class SaleResponse(BaseModel):
    id: UUID
    recipe_id: UUID
    variant_id: Optional[UUID] = None
    quantity: Decimal
    unit_price: Decimal
    total: Decimal
    ingredient_cost: Decimal
    price_factor: Decimal
    sold_at: datetime
    source: str
    deleted_at: Optional[datetime] = None
    deductions: List[DeductionResponse] = []

    model_config = ConfigDict(from_attributes=True)


class SaleImportLine(BaseModel):
    """One extracted line; at least a code or a name is needed to match a recipe."""
    code: Optional[str] = None
    name: Optional[str] = None
    quantity: Decimal
    total: Optional[Decimal] = None
    variant_id: Optional[UUID] = None


class SaleImportRequest(BaseModel):
    sale_date: date
    lines: List[SaleImportLine] = Field(..., min_length=1)


class SaleImportLineResult(BaseModel):
    line: int
    status: str
    sale_id: Optional[UUID] = None
    recipe_id: Optional[UUID] = None
    matched_by: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SaleImportResponse(BaseModel):
    sale_date: date
    imported: int
    failed: int
    total_revenue: Decimal
    lines: List[SaleImportLineResult]

    model_config = ConfigDict(from_attributes=True)
