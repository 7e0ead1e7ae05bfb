"""
Alerts router.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from restoledger.core.deps import get_restaurant_id
from restoledger.db.session import get_db
from restoledger.schemas.alerts import AlertResponse
from restoledger.services.alerts import AlertService

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=List[AlertResponse])
def list_alerts(
    status: Optional[str] = None,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return AlertService(db).list_alerts(restaurant_id, status)


@router.post("/{alert_id}/acknowledge", response_model=AlertResponse)
def acknowledge_alert(
    alert_id: UUID,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return AlertService(db).acknowledge(restaurant_id, alert_id)
