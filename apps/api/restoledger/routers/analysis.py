"""
Analysis router: menu engineering, recipe costing and ledger queries.
"""
from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from restoledger.core.deps import get_restaurant_id
from restoledger.core.exceptions import NotFoundError
from restoledger.core.timeutils import utcnow
from restoledger.db.session import get_db
from restoledger.schemas.analysis import (
    DailyPurchaseResponse,
    DailySalesResponse,
    MenuEngineeringResponse,
    RecipeCostResponse,
)
from restoledger.services.cost_resolver import RecipeCostResolver
from restoledger.services.menu_engineering import MenuEngineeringClassifier
from restoledger.services.purchase_ledger import PurchaseLedger
from restoledger.services.sales_summary import SalesSummaryLedger

router = APIRouter(prefix="/analysis", tags=["analysis"])

DEFAULT_RANGE_DAYS = 30


def _range(start: Optional[date], end: Optional[date]) -> tuple[date, date]:
    end = end or utcnow().date()
    start = start or end - timedelta(days=DEFAULT_RANGE_DAYS)
    return start, end


@router.get("/menu-engineering", response_model=MenuEngineeringResponse)
def menu_engineering(
    start: Optional[date] = None,
    end: Optional[date] = None,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    """Classify recipes sold in the range as star, workhorse, puzzle or dog (last 30 days by default)."""
    start, end = _range(start, end)
    return MenuEngineeringResponse.model_validate(
        MenuEngineeringClassifier(db).classify(restaurant_id, start, end)
    )


@router.get("/recipes/{recipe_id}/cost", response_model=RecipeCostResponse)
def recipe_cost(
    recipe_id: UUID,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    cost = RecipeCostResolver(db, restaurant_id).resolve_by_id(recipe_id)
    if cost is None:
        raise NotFoundError("Recipe not found", details={"recipe_id": str(recipe_id)})
    return RecipeCostResponse.model_validate(cost)


@router.get("/daily-purchases", response_model=List[DailyPurchaseResponse])
def daily_purchases(
    start: Optional[date] = None,
    end: Optional[date] = None,
    ingredient_id: Optional[UUID] = None,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    start, end = _range(start, end)
    return PurchaseLedger(db, restaurant_id).list_range(start, end, ingredient_id)


@router.get("/daily-sales", response_model=List[DailySalesResponse])
def daily_sales(
    start: Optional[date] = None,
    end: Optional[date] = None,
    recipe_id: Optional[UUID] = None,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    start, end = _range(start, end)
    return SalesSummaryLedger(db, restaurant_id).list_range(start, end, recipe_id)
