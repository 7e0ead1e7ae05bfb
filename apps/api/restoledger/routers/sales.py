"""
Sales router: register, list, delete and bulk-import sales.
"""
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from restoledger.core.deps import get_event_bus, get_restaurant_id
from restoledger.db.session import get_db
from restoledger.events.bus import EventBus
from restoledger.schemas.sales import SaleCreate, SaleImportRequest, SaleImportResponse, SaleResponse
from restoledger.services.sale_processor import SaleProcessor

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
def register_sale(
    payload: SaleCreate,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """
    Register a sale and deduct its ingredients from stock.

    A variant sets both the price and the consumption multiplier.
    """
    result = SaleProcessor(db, bus).register_sale(
        restaurant_id,
        payload.recipe_id,
        payload.quantity,
        variant_id=payload.variant_id,
        unit_price=payload.unit_price,
        sold_at=payload.sold_at,
    )
    return result.sale


@router.get("", response_model=List[SaleResponse])
def list_sales(
    start: Optional[date] = None,
    end: Optional[date] = None,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return SaleProcessor(db).list_sales(restaurant_id, start, end)


@router.delete("/{sale_id}", response_model=SaleResponse)
def delete_sale(
    sale_id: UUID,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    """Reverse the sale's stock and summary effects and soft-delete it."""
    return SaleProcessor(db).delete_sale(restaurant_id, sale_id)


@router.post("/import", response_model=SaleImportResponse, status_code=status.HTTP_201_CREATED)
def import_sales(
    payload: SaleImportRequest,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """
    Bulk-import extracted sale lines for one day.

    Returns 409 if the day already has sales. Unmatched lines are reported,
    not fatal.
    """
    result = SaleProcessor(db, bus).import_sales(
        restaurant_id,
        [line.model_dump() for line in payload.lines],
        payload.sale_date,
    )
    return SaleImportResponse.model_validate(result)
