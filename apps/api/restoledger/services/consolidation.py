"""
Stock Consolidation: reconcile counted stock against the ledger.

Consolidating an ingredient is an authoritative reset: its virtual stock
becomes the counted figure, not virtual + difference. The prior value and the
difference are kept in a ``StockSnapshot``.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from restoledger.core.exceptions import NotFoundError, ValidationError
from restoledger.core.quantities import quantize_money, quantize_qty, to_decimal, validate_non_negative
from restoledger.core.timeutils import utcnow
from restoledger.models.ingredient import Ingredient
from restoledger.models.stock_audit import StockAdjustment, StockSnapshot
from restoledger.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


@dataclass
class ConsolidationResult:
    snapshots: list[StockSnapshot]
    adjustments: list[StockAdjustment]
    ingredients: list[Ingredient]


@dataclass
class InventoryLine:
    """Valuation of one ingredient's stock."""
    ingredient_id: UUID
    name: str
    unit: str
    virtual_stock: Decimal
    physical_stock: Optional[Decimal]
    difference: Optional[Decimal]  # physical - virtual, when a count is pending
    unit_cost: Decimal
    stock_value: Decimal
    min_stock: Decimal
    below_min: bool


class StockConsolidation:
    def __init__(self, db: Session):
        self.db = db

    def set_physical_stock(self, restaurant_id: UUID, ingredient_id: UUID, counted: Any) -> Ingredient:
        """Store a manual count pending consolidation."""
        return self.set_physical_stock_bulk(restaurant_id, [{"ingredient_id": ingredient_id, "physical_stock": counted}])[0]

    def set_physical_stock_bulk(self, restaurant_id: UUID, items: list[dict]) -> list[Ingredient]:
        """
        Store manual counts for several ingredients in one transaction.

        Raises:
            ValidationError: a count is negative or not a number
            NotFoundError: an ingredient does not belong to the restaurant
        """
        if not items:
            raise ValidationError("At least one count is required")
        counts = [
            (_uuid(item.get("ingredient_id")), validate_non_negative(item.get("physical_stock"), "physical_stock"))
            for item in items
        ]

        try:
            rows = self._lock_all(restaurant_id, [ingredient_id for ingredient_id, _ in counts])
            updated = []
            for ingredient_id, counted in counts:
                ingredient = rows[ingredient_id]
                ingredient.physical_stock = quantize_qty(counted)
                updated.append(ingredient)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Physical stock counted for {len(updated)} ingredient(s)")
        return updated

    def consolidate(
        self,
        restaurant_id: UUID,
        items: list[dict],
        adjustments: Optional[list[dict]] = None,
    ) -> ConsolidationResult:
        """
        Reset virtual stock to counted values, all or nothing.

        ``items`` are ``{ingredient_id, physical_stock}``; ``adjustments`` are
        free-form ``{ingredient_id, quantity, reason?, notes?}`` notes stored
        alongside.

        Raises:
            ValidationError: empty batch or bad numbers
            NotFoundError: an ingredient does not belong to the restaurant
        """
        if not items:
            raise ValidationError("At least one ingredient is required to consolidate")
        counts = [
            (_uuid(item.get("ingredient_id")), validate_non_negative(item.get("physical_stock"), "physical_stock"))
            for item in items
        ]
        notes = []
        for adj in adjustments or []:
            quantity = to_decimal(adj.get("quantity"))
            if quantity is None:
                raise ValidationError("adjustment quantity must be a number", details={"adjustment": adj})
            notes.append((_uuid(adj.get("ingredient_id")), quantity, adj.get("reason"), adj.get("notes")))

        try:
            rows = self._lock_all(restaurant_id, [i for i, _ in counts] + [i for i, _, _, _ in notes])
            stock = StockLedger(self.db, restaurant_id)
            taken_at = utcnow()

            snapshots = []
            touched = []
            for ingredient_id, counted in counts:
                ingredient = rows[ingredient_id]
                counted = quantize_qty(counted)
                before = stock.set_level(ingredient, counted)
                ingredient.physical_stock = None

                snapshot = StockSnapshot(
                    restaurant_id=restaurant_id,
                    ingredient_id=ingredient_id,
                    virtual_stock=before,
                    physical_stock=counted,
                    difference=counted - before,
                    taken_at=taken_at,
                )
                self.db.add(snapshot)
                snapshots.append(snapshot)
                touched.append(ingredient)

            records = []
            for ingredient_id, quantity, reason, text in notes:
                record = StockAdjustment(
                    restaurant_id=restaurant_id,
                    ingredient_id=ingredient_id,
                    quantity=quantize_qty(quantity),
                    reason=(reason or "adjustment")[:100],
                    notes=text,
                    created_at=taken_at,
                )
                self.db.add(record)
                records.append(record)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Consolidated {len(snapshots)} ingredient(s), {len(records)} adjustment(s)")
        return ConsolidationResult(snapshots=snapshots, adjustments=records, ingredients=touched)

    def consolidate_pending(self, restaurant_id: UUID) -> ConsolidationResult:
        """Consolidate every ingredient that has a pending physical count."""
        pending = (
            self.db.query(Ingredient.id, Ingredient.physical_stock)
            .filter(
                Ingredient.restaurant_id == restaurant_id,
                Ingredient.deleted_at.is_(None),
                Ingredient.physical_stock.isnot(None),
            )
            .all()
        )
        if not pending:
            return ConsolidationResult(snapshots=[], adjustments=[], ingredients=[])
        return self.consolidate(
            restaurant_id,
            [{"ingredient_id": row.id, "physical_stock": row.physical_stock} for row in pending],
        )

    def inventory(self, restaurant_id: UUID, include_inactive: bool = False) -> list[InventoryLine]:
        """Current stock with unit cost (price / format quantity) and value."""
        query = self.db.query(Ingredient).filter(
            Ingredient.restaurant_id == restaurant_id,
            Ingredient.deleted_at.is_(None),
        )
        if not include_inactive:
            query = query.filter(Ingredient.is_active.is_(True))

        lines = []
        for ingredient in query.order_by(Ingredient.name).all():
            virtual = Decimal(ingredient.virtual_stock or 0)
            physical = Decimal(ingredient.physical_stock) if ingredient.physical_stock is not None else None
            unit_cost = ingredient.cost_per_unit(apply_yield=False)
            min_stock = Decimal(ingredient.min_stock or 0)
            lines.append(InventoryLine(
                ingredient_id=ingredient.id,
                name=ingredient.name,
                unit=ingredient.unit,
                virtual_stock=virtual,
                physical_stock=physical,
                difference=physical - virtual if physical is not None else None,
                unit_cost=quantize_money(unit_cost),
                stock_value=quantize_money(virtual * unit_cost),
                min_stock=min_stock,
                below_min=min_stock > 0 and virtual < min_stock,
            ))
        return lines

    def _lock_all(self, restaurant_id: UUID, ingredient_ids: list[UUID]) -> dict[UUID, Ingredient]:
        rows = StockLedger(self.db, restaurant_id).lock(ingredient_ids)
        missing = set(ingredient_ids) - set(rows)
        if missing:
            raise NotFoundError(
                "Ingredient not found",
                details={"ingredient_ids": sorted(str(i) for i in missing)},
            )
        return rows


def _uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError("ingredient_id is not a valid id", details={"ingredient_id": str(value)})
