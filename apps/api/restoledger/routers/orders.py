"""
Purchase orders router.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from restoledger.core.deps import get_restaurant_id
from restoledger.db.session import get_db
from restoledger.schemas.orders import OrderCreate, OrderResponse, OrderUpdate
from restoledger.services.purchase_receiver import PurchaseReceiver

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return PurchaseReceiver(db).create_order(
        restaurant_id,
        [line.model_dump() for line in payload.lines],
        status=payload.status,
        order_date=payload.order_date,
        supplier_id=payload.supplier_id,
        notes=payload.notes,
    )


@router.get("", response_model=List[OrderResponse])
def list_orders(
    status: Optional[str] = None,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return PurchaseReceiver(db).list_orders(restaurant_id, status)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: UUID,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    return PurchaseReceiver(db).get_order(restaurant_id, order_id)


@router.patch("/{order_id}", response_model=OrderResponse)
def update_order(
    order_id: UUID,
    payload: OrderUpdate,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    """
    Update an order. The first transition to "received" adds stock and
    writes the purchase ledger; repeating it changes nothing.
    """
    return PurchaseReceiver(db).update_order(
        restaurant_id,
        order_id,
        status=payload.status,
        received_quantities=payload.received_quantities,
        received_at=payload.received_at,
        supplier_id=payload.supplier_id,
        notes=payload.notes,
    )


@router.delete("/{order_id}", response_model=OrderResponse)
def delete_order(
    order_id: UUID,
    restaurant_id: UUID = Depends(get_restaurant_id),
    db: Session = Depends(get_db),
):
    """Undo this order's stock and ledger contribution and soft-delete it."""
    return PurchaseReceiver(db).delete_order(restaurant_id, order_id)
