"""
Analytics schemas: menu engineering and ledger queries.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class MenuItemClassificationResponse(BaseModel):
    recipe_id: UUID
    name: str
    category: Optional[str] = None
    sell_price: Decimal
    cost: Decimal
    margin: Decimal
    popularity: Decimal
    food_cost_percent: Decimal
    classification: str

    model_config = ConfigDict(from_attributes=True)


class MenuEngineeringResponse(BaseModel):
    start: date
    end: date
    mean_popularity: Decimal
    popularity_threshold: Decimal
    weighted_mean_margin: Decimal
    total_units: Decimal
    items: List[MenuItemClassificationResponse]

    model_config = ConfigDict(from_attributes=True)


class DailyPurchaseResponse(BaseModel):
    id: UUID
    ingredient_id: UUID
    purchase_date: date
    order_id: Optional[UUID] = None
    supplier_id: Optional[UUID] = None
    quantity_bought: Decimal
    total_spent: Decimal
    unit_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class DailySalesResponse(BaseModel):
    id: UUID
    recipe_id: UUID
    sale_date: date
    units_sold: Decimal
    unit_sell_price: Optional[Decimal] = None
    revenue: Decimal
    ingredient_cost: Decimal
    gross_profit: Decimal

    model_config = ConfigDict(from_attributes=True)


class RecipeCostLineResponse(BaseModel):
    ingredient_id: UUID
    ingredient_name: str
    quantity: Decimal
    unit_cost: Decimal
    cost: Decimal

    model_config = ConfigDict(from_attributes=True)


class RecipeCostResponse(BaseModel):
    recipe_id: UUID
    recipe_name: str
    portions: int
    sell_price: Decimal
    batch_cost: Decimal
    cost_per_portion: Decimal
    margin: Decimal
    margin_percent: Decimal
    food_cost_percent: Decimal
    lines: List[RecipeCostLineResponse]
    skipped_lines: int

    model_config = ConfigDict(from_attributes=True)
