"""
Waste router.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from restoledger.core.deps import get_restaurant_id
from restoledger.core.quantities import period_id
from restoledger.core.timeutils import utcnow
from restoledger.db.session import get_db
from restoledger.schemas.waste import (
    WasteCreate,
    WasteResetResponse,
    WasteResponse,
    WasteStatsResponse,
    WasteSummaryResponse,
)
from restoledger.services.waste_recorder import WasteRecorder

router = APIRouter(prefix="/waste", tags=["waste"])


@router.post("", response_model=List[WasteResponse], status_code=status.HTTP_201_CREATED)
def record_waste(
    payload: WasteCreate,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return WasteRecorder(db).record_waste(restaurant_id, [item.model_dump() for item in payload.items])


@router.get("", response_model=List[WasteResponse])
def list_waste(
    period: Optional[int] = None,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return WasteRecorder(db).list_waste(restaurant_id, period)


@router.get("/summary", response_model=WasteSummaryResponse)
def waste_summary(
    period: Optional[int] = None,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    """Totals for one period (YYYYMM), the current one by default."""
    return WasteSummaryResponse.model_validate(
        WasteRecorder(db).summary(restaurant_id, period or period_id(utcnow()))
    )


@router.get("/stats", response_model=WasteStatsResponse)
def waste_stats(
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return WasteStatsResponse.model_validate(WasteRecorder(db).stats(restaurant_id))


@router.delete("/reset", response_model=WasteResetResponse)
def reset_month(
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    """Reverse every waste record of the current month."""
    return WasteResetResponse(reversed=WasteRecorder(db).reset_month(restaurant_id))


@router.delete("/{waste_id}", response_model=WasteResponse)
def delete_waste(
    waste_id: UUID,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return WasteRecorder(db).delete_waste(restaurant_id, waste_id)
