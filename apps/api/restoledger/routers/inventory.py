"""
Inventory router: stock valuation, physical counts, consolidation and prices.
"""
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from restoledger.core.deps import get_event_bus, get_restaurant_id
from restoledger.db.session import get_db
from restoledger.events.bus import EventBus
from restoledger.schemas.inventory import (
    ConsolidateRequest,
    ConsolidateResponse,
    IngredientStockResponse,
    InventoryLineResponse,
    InventoryResponse,
    PhysicalStockBulkUpdate,
    PhysicalStockUpdate,
    PriceUpdate,
)
from restoledger.services.consolidation import StockConsolidation
from restoledger.services.ingredient_pricing import IngredientPricing

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("", response_model=InventoryResponse)
def get_inventory(
    include_inactive: bool = False,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    """Virtual stock, pending counts and stock value per ingredient."""
    lines = StockConsolidation(db).inventory(restaurant_id, include_inactive)
    return InventoryResponse(
        items=[InventoryLineResponse.model_validate(line) for line in lines],
        total_value=sum((line.stock_value for line in lines), Decimal(0)),
    )


@router.put("/physical-stock", response_model=list[IngredientStockResponse])
def set_physical_stock_bulk(
    payload: PhysicalStockBulkUpdate,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return StockConsolidation(db).set_physical_stock_bulk(
        restaurant_id, [item.model_dump() for item in payload.items]
    )


@router.put("/{ingredient_id}/physical-stock", response_model=IngredientStockResponse)
def set_physical_stock(
    ingredient_id: UUID,
    payload: PhysicalStockUpdate,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return StockConsolidation(db).set_physical_stock(restaurant_id, ingredient_id, payload.physical_stock)


@router.post("/consolidate", response_model=ConsolidateResponse)
def consolidate(
    payload: ConsolidateRequest,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    """
    Reset virtual stock to the counted values.

    Writes one snapshot per ingredient and stores the adjustment notes. The
    whole batch fails if any ingredient is unknown.
    """
    result = StockConsolidation(db).consolidate(
        restaurant_id,
        [item.model_dump() for item in payload.items],
        [adj.model_dump() for adj in payload.adjustments],
    )
    return ConsolidateResponse.model_validate(result)


@router.post("/consolidate-pending", response_model=ConsolidateResponse)
def consolidate_pending(
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return ConsolidateResponse.model_validate(StockConsolidation(db).consolidate_pending(restaurant_id))


@router.put("/{ingredient_id}/price", response_model=IngredientStockResponse)
def update_price(
    ingredient_id: UUID,
    payload: PriceUpdate,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Change an ingredient's purchase price; recipe costs are refreshed in the background."""
    return IngredientPricing(db, bus).update_price(restaurant_id, ingredient_id, payload.unit_price)
