"""
Sale Processor: registers, reverses and bulk-imports sales.

Stock consumed by a sale is proportional to the recipe composition:

    requested = line.quantity / recipe.portions × sale.quantity × price_factor

Each ingredient's stock is floored at zero, so the amount actually removed is
stored per ingredient (``SaleStockDeduction``) and deletion gives back exactly
that amount.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from rapidfuzz import fuzz, process
from sqlalchemy.orm import Session

from restoledger.core.config import get_settings
from restoledger.core.exceptions import ConflictError, LedgerError, NotFoundError, ValidationError
from restoledger.core.quantities import ONE, ZERO, quantize_money, quantize_qty, to_decimal, validate_quantity
from restoledger.core.timeutils import utcnow
from restoledger.events.bus import EventBus
from restoledger.events.types import SaleRegistered
from restoledger.models.recipe import Recipe, RecipeVariant
from restoledger.models.sale import Sale, SaleStockDeduction
from restoledger.services.cost_resolver import RecipeCostResolver
from restoledger.services.sales_summary import SalesSummaryLedger
from restoledger.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


@dataclass
class Deduction:
    ingredient_id: UUID
    requested: Decimal
    applied: Decimal


@dataclass
class SaleResult:
    sale: Sale
    deductions: list[Deduction]
    skipped_ingredients: list[Optional[UUID]] = field(default_factory=list)


@dataclass
class ImportLineResult:
    line: int
    status: str  # imported, error
    sale_id: Optional[UUID] = None
    recipe_id: Optional[UUID] = None
    matched_by: Optional[str] = None  # code, variant_code, name, fuzzy
    warning: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ImportResult:
    sale_date: date
    imported: int
    failed: int
    total_revenue: Decimal
    lines: list[ImportLineResult]


@dataclass
class _Match:
    recipe: Recipe
    variant: Optional[RecipeVariant]
    matched_by: str


class SaleProcessor:
    """Sale write path for all restaurants; the restaurant is passed per call."""

    def __init__(self, db: Session, event_bus: Optional[EventBus] = None):
        self.db = db
        self.event_bus = event_bus
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register_sale(
        self,
        restaurant_id: UUID,
        recipe_id: UUID,
        quantity: Any,
        variant_id: Optional[UUID] = None,
        unit_price: Any = None,
        sold_at: Optional[datetime] = None,
    ) -> SaleResult:
        """
        Register a single sale.

        Price resolution: a variant supplies its own sell price and factor;
        otherwise an explicit unit price > 0 wins over the recipe price. A
        variant id that does not resolve is sold as the base recipe, factor 1.

        Raises:
            ValidationError: quantity or price not acceptable
            NotFoundError: recipe unknown to this restaurant
        """
        qty = validate_quantity(quantity)
        override = None
        if unit_price is not None:
            override = to_decimal(unit_price)
            if override is None or override < 0:
                raise ValidationError("unit_price must be a non-negative number", details={"field": "unit_price"})

        try:
            recipe = self._get_recipe(restaurant_id, recipe_id)
            variant = self._get_variant(recipe, variant_id) if variant_id else None

            if variant is not None:
                price = Decimal(variant.sell_price)
                factor = Decimal(variant.price_factor)
            else:
                price = override if override is not None and override > 0 else Decimal(recipe.sell_price or 0)
                factor = ONE

            result = self._apply_sale(
                restaurant_id, recipe, qty, price, factor, variant, sold_at or utcnow(), source="manual",
            )
            # captured before commit expires the instance
            event = self._event_for(result)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Sale {event.sale_id} registered: recipe={recipe_id} qty={qty} factor={factor} total={event.total}"
        )
        self._publish([event])
        return result

    def _apply_sale(
        self,
        restaurant_id: UUID,
        recipe: Recipe,
        quantity: Decimal,
        unit_price: Decimal,
        factor: Decimal,
        variant: Optional[RecipeVariant],
        sold_at: datetime,
        source: str,
        total: Optional[Decimal] = None,
    ) -> SaleResult:
        """Deduct stock and write the sale and its summary. Does not commit."""
        portions = Decimal(recipe.safe_portions)
        ledger = StockLedger(self.db, restaurant_id)
        rows = ledger.lock(line.ingredient_id for line in recipe.lines)

        deductions: list[Deduction] = []
        skipped: list[Optional[UUID]] = []
        for line in recipe.lines:
            ingredient = rows.get(line.ingredient_id) if line.ingredient_id else None
            if ingredient is None:
                logger.warning(f"Sale of recipe {recipe.id}: ingredient {line.ingredient_id} unresolved, line skipped")
                skipped.append(line.ingredient_id)
                continue

            requested = quantize_qty(Decimal(line.quantity or 0) / portions * quantity * factor)
            if requested <= 0:
                continue
            applied = ledger.deduct(ingredient, requested)
            deductions.append(Deduction(ingredient.id, requested, applied))

        cost = RecipeCostResolver(self.db, restaurant_id).resolve(recipe)
        ingredient_cost = quantize_money(cost.cost_per_portion * quantity * factor)
        if total is None:
            total = quantize_money(unit_price * quantity)

        sale = Sale(
            restaurant_id=restaurant_id,
            recipe_id=recipe.id,
            variant_id=variant.id if variant is not None else None,
            quantity=quantity,
            unit_price=unit_price,
            total=total,
            ingredient_cost=ingredient_cost,
            price_factor=factor,
            sold_at=sold_at,
            source=source,
        )
        sale.deductions = [
            SaleStockDeduction(ingredient_id=d.ingredient_id, requested=d.requested, applied=d.applied)
            for d in deductions
        ]
        self.db.add(sale)

        SalesSummaryLedger(self.db, restaurant_id).add(
            recipe_id=recipe.id,
            day=sold_at.date(),
            units=quantity,
            revenue=total,
            ingredient_cost=ingredient_cost,
            unit_sell_price=unit_price,
        )
        self.db.flush()
        return SaleResult(sale=sale, deductions=deductions, skipped_ingredients=skipped)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_sale(self, restaurant_id: UUID, sale_id: UUID) -> Sale:
        """
        Reverse a sale and soft-delete it.

        Stock is restored from the recorded deductions. Sales written before
        deductions were recorded are replayed from the live recipe with the
        factor frozen on the sale.

        Raises:
            NotFoundError: unknown sale
            ConflictError: the sale was already deleted
        """
        try:
            sale = (
                self.db.query(Sale)
                .filter(Sale.id == sale_id, Sale.restaurant_id == restaurant_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if sale is None:
                raise NotFoundError("Sale not found", details={"sale_id": str(sale_id)})
            if sale.deleted_at is not None:
                raise ConflictError("Sale already deleted", details={"sale_id": str(sale_id)})

            ledger = StockLedger(self.db, restaurant_id)
            if sale.deductions:
                rows = ledger.lock((d.ingredient_id for d in sale.deductions), include_deleted=True)
                for deduction in sale.deductions:
                    ingredient = rows.get(deduction.ingredient_id)
                    if ingredient is None:
                        logger.warning(f"Sale {sale.id}: ingredient {deduction.ingredient_id} gone, stock not restored")
                        continue
                    ledger.add(ingredient, Decimal(deduction.applied))
            else:
                self._restore_from_recipe(ledger, sale)

            SalesSummaryLedger(self.db, restaurant_id).subtract(
                recipe_id=sale.recipe_id,
                day=sale.sold_at.date(),
                units=Decimal(sale.quantity),
                revenue=Decimal(sale.total),
                ingredient_cost=Decimal(sale.ingredient_cost or 0),
            )

            sale.deleted_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Sale {sale_id} deleted and reversed")
        return sale

    def _restore_from_recipe(self, ledger: StockLedger, sale: Sale) -> None:
        logger.warning(f"Sale {sale.id} has no recorded deductions; restoring from the live recipe")
        recipe = self.db.get(Recipe, sale.recipe_id)
        if recipe is None:
            logger.warning(f"Sale {sale.id}: recipe {sale.recipe_id} gone, stock not restored")
            return

        portions = Decimal(recipe.safe_portions)
        factor = Decimal(sale.price_factor or 1)
        rows = ledger.lock((line.ingredient_id for line in recipe.lines), include_deleted=True)
        for line in recipe.lines:
            ingredient = rows.get(line.ingredient_id) if line.ingredient_id else None
            if ingredient is None:
                continue
            restore = quantize_qty(Decimal(line.quantity or 0) / portions * Decimal(sale.quantity) * factor)
            ledger.add(ingredient, restore)

    # ------------------------------------------------------------------
    # Bulk import
    # ------------------------------------------------------------------

    def import_sales(self, restaurant_id: UUID, lines: list[dict], sale_date: date) -> ImportResult:
        """
        Import extracted sale lines for one day in a single transaction.

        Each line is ``{code?, name?, quantity, total?, variant_id?}``. Lines
        that do not match a recipe or carry an invalid quantity are reported
        and skipped; the rest are applied.

        Raises:
            ConflictError: live sales already exist for ``sale_date``
        """
        day_start = datetime.combine(sale_date, time.min)
        day_end = datetime.combine(sale_date, time.max)
        existing = (
            self.db.query(Sale.id)
            .filter(
                Sale.restaurant_id == restaurant_id,
                Sale.deleted_at.is_(None),
                Sale.sold_at >= day_start,
                Sale.sold_at <= day_end,
            )
            .count()
        )
        if existing:
            raise ConflictError(
                f"Sales already registered for {sale_date.isoformat()}",
                details={"date": sale_date.isoformat(), "existing_sales": existing},
            )

        recipes = (
            self.db.query(Recipe)
            .filter(Recipe.restaurant_id == restaurant_id, Recipe.deleted_at.is_(None))
            .all()
        )
        matcher = _RecipeMatcher(recipes, self.settings.SALES_IMPORT_FUZZY_THRESHOLD)

        results: list[ImportLineResult] = []
        applied: list[SaleResult] = []
        revenue = ZERO
        sold_at = datetime.combine(sale_date, time(12, 0))

        try:
            for index, raw in enumerate(lines, start=1):
                outcome = ImportLineResult(line=index, status="error")
                results.append(outcome)

                match = matcher.match(raw)
                if match is None:
                    outcome.error = f"No recipe matches '{raw.get('code') or raw.get('name') or ''}'"
                    continue

                try:
                    qty = validate_quantity(raw.get("quantity"))
                except ValidationError as e:
                    outcome.error = e.message
                    continue

                variant = match.variant
                if variant is None and raw.get("variant_id"):
                    variant = next(
                        (v for v in match.recipe.variants if str(v.id) == str(raw["variant_id"])), None
                    )
                factor = Decimal(variant.price_factor) if variant is not None else ONE
                base_price = Decimal(variant.sell_price) if variant is not None else Decimal(match.recipe.sell_price or 0)

                total = to_decimal(raw.get("total"))
                if total is None:
                    total = quantize_money(base_price * qty)
                if total <= 0:
                    outcome.warning = "Line total is zero or negative"
                    logger.warning(f"Import line {index}: total {total} for recipe {match.recipe.id}")
                unit_price = quantize_money(total / qty)

                result = self._apply_sale(
                    restaurant_id, match.recipe, qty, unit_price, factor, variant, sold_at,
                    source="import", total=total,
                )
                applied.append(result)
                revenue += total

                outcome.status = "imported"
                outcome.sale_id = result.sale.id
                outcome.recipe_id = match.recipe.id
                outcome.matched_by = match.matched_by

            events = [self._event_for(result) for result in applied]
            self.db.commit()
        except LedgerError:
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            logger.error(f"Sales import for {sale_date} failed", exc_info=True)
            raise

        failed = sum(1 for r in results if r.status == "error")
        logger.info(f"Imported {len(applied)} sale line(s) for {sale_date}, {failed} failed")
        self._publish(events)

        return ImportResult(
            sale_date=sale_date,
            imported=len(applied),
            failed=failed,
            total_revenue=revenue,
            lines=results,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_sales(
        self,
        restaurant_id: UUID,
        start: Optional[date] = None,
        end: Optional[date] = None,
        include_deleted: bool = False,
    ) -> list[Sale]:
        query = self.db.query(Sale).filter(Sale.restaurant_id == restaurant_id)
        if not include_deleted:
            query = query.filter(Sale.deleted_at.is_(None))
        if start is not None:
            query = query.filter(Sale.sold_at >= datetime.combine(start, time.min))
        if end is not None:
            query = query.filter(Sale.sold_at <= datetime.combine(end, time.max))
        return query.order_by(Sale.sold_at.desc()).all()

    # ------------------------------------------------------------------

    def _get_recipe(self, restaurant_id: UUID, recipe_id: UUID) -> Recipe:
        recipe = (
            self.db.query(Recipe)
            .filter(
                Recipe.id == recipe_id,
                Recipe.restaurant_id == restaurant_id,
                Recipe.deleted_at.is_(None),
            )
            .first()
        )
        if recipe is None:
            raise NotFoundError("Recipe not found", details={"recipe_id": str(recipe_id)})
        return recipe

    def _get_variant(self, recipe: Recipe, variant_id: UUID) -> Optional[RecipeVariant]:
        variant = (
            self.db.query(RecipeVariant)
            .filter(RecipeVariant.id == variant_id, RecipeVariant.recipe_id == recipe.id)
            .first()
        )
        if variant is None:
            logger.warning(f"Variant {variant_id} not found on recipe {recipe.id}; selling at base price")
        return variant

    def _publish(self, events: list[SaleRegistered]) -> None:
        if self.event_bus is None:
            return
        for event in events:
            self.event_bus.publish(event)

    @staticmethod
    def _event_for(result: SaleResult) -> SaleRegistered:
        sale = result.sale
        return SaleRegistered(
            restaurant_id=sale.restaurant_id,
            sale_id=sale.id,
            recipe_id=sale.recipe_id,
            quantity=Decimal(sale.quantity),
            total=Decimal(sale.total),
            ingredient_ids=tuple(d.ingredient_id for d in result.deductions),
        )


class _RecipeMatcher:
    """POS code, then variant code, then exact name, then fuzzy name."""

    def __init__(self, recipes: list[Recipe], fuzzy_threshold: int):
        self.fuzzy_threshold = fuzzy_threshold
        self.by_code: dict[str, Recipe] = {}
        self.by_variant_code: dict[str, RecipeVariant] = {}
        self.by_name: dict[str, Recipe] = {}
        for recipe in recipes:
            if recipe.code:
                self.by_code.setdefault(recipe.code.strip().lower(), recipe)
            self.by_name.setdefault(recipe.name.strip().lower(), recipe)
            for variant in recipe.variants:
                if variant.code and variant.is_active:
                    self.by_variant_code.setdefault(variant.code.strip().lower(), variant)

    def match(self, raw: dict) -> Optional[_Match]:
        code = str(raw.get("code") or "").strip().lower()
        name = str(raw.get("name") or "").strip().lower()

        if code:
            if code in self.by_code:
                return _Match(self.by_code[code], None, "code")
            if code in self.by_variant_code:
                variant = self.by_variant_code[code]
                return _Match(variant.recipe, variant, "variant_code")

        if not name:
            return None
        if name in self.by_name:
            return _Match(self.by_name[name], None, "name")

        if self.fuzzy_threshold <= 0 or not self.by_name:
            return None
        best = process.extractOne(name, list(self.by_name), scorer=fuzz.WRatio, score_cutoff=self.fuzzy_threshold)
        if best is None:
            return None
        return _Match(self.by_name[best[0]], None, "fuzzy")
