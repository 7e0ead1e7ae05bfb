"""
Daily Sales Summary: per (recipe, day, restaurant) accumulator.

``gross_profit`` is never written independently; it is recomputed as
revenue - ingredient_cost after every merge and every reversal.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restoledger.core.quantities import ZERO, quantize_money, quantize_qty
from restoledger.models.ledger import DailySalesSummary

logger = logging.getLogger(__name__)


class SalesSummaryLedger:
    """Merge and reverse writes to ``daily_sales_summaries``. Never commits."""

    def __init__(self, db: Session, restaurant_id: UUID):
        self.db = db
        self.restaurant_id = restaurant_id

    def _find(self, recipe_id: UUID, day: date) -> Optional[DailySalesSummary]:
        self.db.flush()
        return (
            self.db.query(DailySalesSummary)
            .filter(
                DailySalesSummary.restaurant_id == self.restaurant_id,
                DailySalesSummary.recipe_id == recipe_id,
                DailySalesSummary.sale_date == day,
            )
            .with_for_update()
            .populate_existing()
            .first()
        )

    def add(
        self,
        recipe_id: UUID,
        day: date,
        units: Decimal,
        revenue: Decimal,
        ingredient_cost: Decimal,
        unit_sell_price: Optional[Decimal] = None,
    ) -> DailySalesSummary:
        row = self._find(recipe_id, day)
        if row is None:
            row = DailySalesSummary(
                restaurant_id=self.restaurant_id,
                recipe_id=recipe_id,
                sale_date=day,
                units_sold=ZERO,
                revenue=ZERO,
                ingredient_cost=ZERO,
                gross_profit=ZERO,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(row)
                    self.db.flush()
            except IntegrityError:
                row = self._find(recipe_id, day)

        row.units_sold = quantize_qty(Decimal(row.units_sold or 0) + units)
        row.revenue = quantize_money(Decimal(row.revenue or 0) + revenue)
        row.ingredient_cost = quantize_money(Decimal(row.ingredient_cost or 0) + ingredient_cost)
        if unit_sell_price is not None:
            row.unit_sell_price = unit_sell_price
        self._refresh_gross_profit(row)
        return row

    def subtract(
        self,
        recipe_id: UUID,
        day: date,
        units: Decimal,
        revenue: Decimal,
        ingredient_cost: Decimal,
    ) -> Optional[DailySalesSummary]:
        """Remove one sale's contribution, each field clamped at zero."""
        row = self._find(recipe_id, day)
        if row is None:
            logger.warning(f"No sales summary for recipe {recipe_id} on {day}; nothing to reverse")
            return None

        row.units_sold = max(quantize_qty(Decimal(row.units_sold or 0) - units), ZERO)
        row.revenue = max(quantize_money(Decimal(row.revenue or 0) - revenue), ZERO)
        row.ingredient_cost = max(quantize_money(Decimal(row.ingredient_cost or 0) - ingredient_cost), ZERO)
        self._refresh_gross_profit(row)
        return row

    def list_range(self, start: date, end: date, recipe_id: Optional[UUID] = None) -> list[DailySalesSummary]:
        query = self.db.query(DailySalesSummary).filter(
            DailySalesSummary.restaurant_id == self.restaurant_id,
            DailySalesSummary.sale_date >= start,
            DailySalesSummary.sale_date <= end,
        )
        if recipe_id is not None:
            query = query.filter(DailySalesSummary.recipe_id == recipe_id)
        return query.order_by(DailySalesSummary.sale_date, DailySalesSummary.recipe_id).all()

    @staticmethod
    def _refresh_gross_profit(row: DailySalesSummary) -> None:
        row.gross_profit = Decimal(row.revenue) - Decimal(row.ingredient_cost)
