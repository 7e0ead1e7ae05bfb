"""
Stock Ledger: the only writer of ``Ingredient.virtual_stock``.

Every change is a signed delta applied to a row that the current transaction
holds locked. Rows are always locked in ascending id order, whatever order the
caller lists them in, so two writers touching overlapping ingredient sets
cannot deadlock.
"""
import logging
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from restoledger.core.quantities import ZERO, quantize_qty
from restoledger.core.timeutils import utcnow
from restoledger.models.ingredient import Ingredient

logger = logging.getLogger(__name__)


class StockLedger:
    """
    Row-locked stock mutation for one restaurant.

    Usage:
        ledger = StockLedger(db, restaurant_id)
        rows = ledger.lock(ids)
        applied = ledger.deduct(rows[ingredient_id], Decimal("1.5"))
    """

    def __init__(self, db: Session, restaurant_id: UUID):
        self.db = db
        self.restaurant_id = restaurant_id

    def lock(self, ingredient_ids: Iterable[UUID], include_deleted: bool = False) -> dict[UUID, Ingredient]:
        """
        Lock the given ingredient rows (SELECT ... FOR UPDATE) and return them by id.

        Ids that do not resolve for this restaurant are simply absent from the
        result. Values are re-read from the database even if the rows are
        already in the session.
        """
        ids = sorted({i for i in ingredient_ids if i is not None})
        if not ids:
            return {}
        self.db.flush()

        query = (
            self.db.query(Ingredient)
            .filter(Ingredient.id.in_(ids), Ingredient.restaurant_id == self.restaurant_id)
        )
        if not include_deleted:
            query = query.filter(Ingredient.deleted_at.is_(None))

        rows = query.order_by(Ingredient.id).with_for_update().populate_existing().all()
        return {row.id: row for row in rows}

    def apply_delta(self, ingredient: Ingredient, delta: Decimal) -> Decimal:
        """
        Apply a signed delta, flooring the result at zero.

        Returns the delta that was actually applied, which differs from the
        requested one only when the floor was hit.
        """
        before = Decimal(ingredient.virtual_stock or 0)
        after = quantize_qty(before + delta)
        if after < ZERO:
            after = ZERO
        applied = after - before

        ingredient.virtual_stock = after
        ingredient.stock_updated_at = utcnow()

        if applied != delta:
            logger.info(
                f"Stock of ingredient {ingredient.id} floored at zero: requested {delta}, applied {applied}"
            )
        logger.debug(f"Stock ingredient={ingredient.id} {before} -> {after}")
        return applied

    def deduct(self, ingredient: Ingredient, quantity: Decimal) -> Decimal:
        """Remove stock. Returns the positive amount actually removed."""
        return -self.apply_delta(ingredient, -quantity)

    def add(self, ingredient: Ingredient, quantity: Decimal) -> Decimal:
        """Return stock. Returns the amount added."""
        return self.apply_delta(ingredient, quantity)

    def set_level(self, ingredient: Ingredient, level: Decimal) -> Decimal:
        """
        Overwrite the stock with an authoritative value (consolidation).

        Returns the previous level.
        """
        before = Decimal(ingredient.virtual_stock or 0)
        ingredient.virtual_stock = quantize_qty(max(level, ZERO))
        ingredient.stock_updated_at = utcnow()
        logger.debug(f"Stock ingredient={ingredient.id} reset {before} -> {ingredient.virtual_stock}")
        return before
