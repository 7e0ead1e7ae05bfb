"""
Daily Purchase Ledger: per (ingredient, day, restaurant, order) accumulator.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restoledger.core.quantities import ZERO, quantize_money, quantize_qty
from restoledger.models.ledger import DailyPurchaseRecord

logger = logging.getLogger(__name__)


@dataclass
class PurchaseDayTotal:
    """All orders' contributions for one ingredient on one day."""
    ingredient_id: UUID
    purchase_date: date
    quantity_bought: Decimal
    total_spent: Decimal
    unit_price: Decimal


class PurchaseLedger:
    """
    Accumulate-on-conflict writes to ``daily_purchase_records``.

    Writes never overwrite: a second write for the same key adds its quantity
    and total to the row already there. Must be called inside the caller's
    transaction; nothing here commits.
    """

    def __init__(self, db: Session, restaurant_id: UUID):
        self.db = db
        self.restaurant_id = restaurant_id

    def _find(self, ingredient_id: UUID, day: date, order_id: Optional[UUID]) -> Optional[DailyPurchaseRecord]:
        # pending merges must reach the row before it is re-read
        self.db.flush()
        query = self.db.query(DailyPurchaseRecord).filter(
            DailyPurchaseRecord.restaurant_id == self.restaurant_id,
            DailyPurchaseRecord.ingredient_id == ingredient_id,
            DailyPurchaseRecord.purchase_date == day,
        )
        if order_id is None:
            query = query.filter(DailyPurchaseRecord.order_id.is_(None))
        else:
            query = query.filter(DailyPurchaseRecord.order_id == order_id)
        return query.with_for_update().populate_existing().first()

    def record(
        self,
        ingredient_id: UUID,
        day: date,
        quantity: Decimal,
        total: Decimal,
        order_id: Optional[UUID] = None,
        supplier_id: Optional[UUID] = None,
    ) -> DailyPurchaseRecord:
        """Insert the key or add to the existing accumulator."""
        row = self._find(ingredient_id, day, order_id)
        if row is None:
            row = DailyPurchaseRecord(
                restaurant_id=self.restaurant_id,
                ingredient_id=ingredient_id,
                purchase_date=day,
                order_id=order_id,
                supplier_id=supplier_id,
                quantity_bought=ZERO,
                total_spent=ZERO,
                unit_price=ZERO,
            )
            try:
                # a concurrent writer may insert the same key first
                with self.db.begin_nested():
                    self.db.add(row)
                    self.db.flush()
            except IntegrityError:
                row = self._find(ingredient_id, day, order_id)

        row.quantity_bought = quantize_qty(Decimal(row.quantity_bought or 0) + quantity)
        row.total_spent = quantize_money(Decimal(row.total_spent or 0) + total)
        if supplier_id is not None:
            row.supplier_id = supplier_id
        self._refresh_unit_price(row)
        return row

    def remove_order(self, order_id: UUID) -> int:
        """Delete every row written by one order. Returns the number of rows removed."""
        rows = (
            self.db.query(DailyPurchaseRecord)
            .filter(
                DailyPurchaseRecord.restaurant_id == self.restaurant_id,
                DailyPurchaseRecord.order_id == order_id,
            )
            .with_for_update()
            .all()
        )
        for row in rows:
            self.db.delete(row)
        return len(rows)

    def subtract_unkeyed(self, ingredient_id: UUID, day: date, quantity: Decimal, total: Decimal) -> bool:
        """
        Take a contribution back out of a row written without an order key.

        The row is deleted once nothing is left in it. Returns False when
        there is no such row.
        """
        row = self._find(ingredient_id, day, None)
        if row is None:
            return False

        remaining = quantize_qty(Decimal(row.quantity_bought or 0) - quantity)
        if remaining <= ZERO:
            self.db.delete(row)
            return True

        row.quantity_bought = remaining
        row.total_spent = quantize_money(max(Decimal(row.total_spent or 0) - total, ZERO))
        self._refresh_unit_price(row)
        return True

    def list_range(self, start: date, end: date, ingredient_id: Optional[UUID] = None) -> list[DailyPurchaseRecord]:
        query = self.db.query(DailyPurchaseRecord).filter(
            DailyPurchaseRecord.restaurant_id == self.restaurant_id,
            DailyPurchaseRecord.purchase_date >= start,
            DailyPurchaseRecord.purchase_date <= end,
        )
        if ingredient_id is not None:
            query = query.filter(DailyPurchaseRecord.ingredient_id == ingredient_id)
        return query.order_by(DailyPurchaseRecord.purchase_date, DailyPurchaseRecord.ingredient_id).all()

    def day_totals(self, start: date, end: date) -> list[PurchaseDayTotal]:
        """Rows collapsed over their order component."""
        totals: dict[tuple[UUID, date], list[Decimal]] = {}
        for row in self.list_range(start, end):
            acc = totals.setdefault((row.ingredient_id, row.purchase_date), [ZERO, ZERO])
            acc[0] += Decimal(row.quantity_bought or 0)
            acc[1] += Decimal(row.total_spent or 0)

        return [
            PurchaseDayTotal(
                ingredient_id=ingredient_id,
                purchase_date=day,
                quantity_bought=qty,
                total_spent=total,
                unit_price=quantize_money(total / qty) if qty > 0 else ZERO,
            )
            for (ingredient_id, day), (qty, total) in totals.items()
        ]

    @staticmethod
    def _refresh_unit_price(row: DailyPurchaseRecord) -> None:
        qty = Decimal(row.quantity_bought or 0)
        row.unit_price = quantize_money(Decimal(row.total_spent or 0) / qty) if qty > 0 else ZERO
