"""
Waste Recorder: losses, their stock effect and monthly reporting.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from restoledger.core.exceptions import ConflictError, NotFoundError, ValidationError
from restoledger.core.quantities import ZERO, period_id, quantize_money, to_decimal, validate_non_negative, validate_quantity
from restoledger.core.timeutils import month_start, previous_month_start, utcnow
from restoledger.models.ingredient import Ingredient
from restoledger.models.waste import WasteRecord
from restoledger.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


@dataclass
class WasteSummary:
    period_id: int
    total_value_lost: Decimal
    ingredient_count: int
    record_count: int


@dataclass
class WasteTopItem:
    ingredient_name: str
    total_quantity: Decimal
    total_value_lost: Decimal
    occurrences: int


@dataclass
class WasteStats:
    current_month_total: Decimal
    current_month_records: int
    previous_month_total: Decimal
    variation_percent: int  # rounded month-over-month change, 0 without a previous month
    top_items: list[WasteTopItem] = field(default_factory=list)


class WasteRecorder:
    def __init__(self, db: Session):
        self.db = db

    def record_waste(self, restaurant_id: UUID, items: list[dict], recorded_at: Optional[datetime] = None) -> list[WasteRecord]:
        """
        Record a batch of losses and deduct them from stock, all or nothing.

        Each item is ``{ingredient_id?, ingredient_name?, quantity, value_lost?,
        reason?, unit?, note?}``. An id that does not resolve is stored as
        unmatched (no stock effect). Missing ``value_lost`` is priced at the
        ingredient's current unit cost.

        Raises:
            ValidationError: empty batch or a bad quantity/value
        """
        if not items:
            raise ValidationError("At least one waste item is required")

        parsed = []
        for index, raw in enumerate(items):
            quantity = validate_quantity(raw.get("quantity"))
            value = raw.get("value_lost")
            parsed.append((
                raw,
                _as_uuid(raw.get("ingredient_id"), index),
                quantity,
                validate_non_negative(value, "value_lost") if value is not None else None,
            ))

        moment = recorded_at or utcnow()
        try:
            stock = StockLedger(self.db, restaurant_id)
            rows = stock.lock(ingredient_id for _, ingredient_id, _, _ in parsed)

            records = []
            for raw, ingredient_id, quantity, value_lost in parsed:
                ingredient = rows.get(ingredient_id) if ingredient_id else None
                if ingredient_id and ingredient is None:
                    logger.warning(f"Waste for unknown ingredient {ingredient_id}; stored unmatched")

                deducted = stock.deduct(ingredient, quantity) if ingredient is not None else ZERO
                if value_lost is None:
                    value_lost = quantize_money(quantity * ingredient.cost_per_unit()) if ingredient is not None else ZERO

                record = WasteRecord(
                    restaurant_id=restaurant_id,
                    ingredient_id=ingredient.id if ingredient is not None else None,
                    ingredient_name=(raw.get("ingredient_name") or (ingredient.name if ingredient else None) or "Unnamed").strip(),
                    quantity=quantity,
                    unit=raw.get("unit") or (ingredient.unit if ingredient else "unit"),
                    value_lost=value_lost,
                    reason=raw.get("reason") or "other",
                    note=raw.get("note"),
                    stock_deducted=deducted,
                    period_id=period_id(moment),
                    recorded_at=moment,
                )
                self.db.add(record)
                records.append(record)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Recorded {len(records)} waste item(s) for restaurant {restaurant_id}")
        return records

    def delete_waste(self, restaurant_id: UUID, waste_id: UUID) -> WasteRecord:
        """
        Put the wasted quantity back in stock and soft-delete the record.

        The full ``quantity`` is restored even when the original deduction was
        floored; ``stock_deducted`` stays on the record for audit.

        Raises:
            NotFoundError: unknown record
            ConflictError: already deleted
        """
        try:
            record = (
                self.db.query(WasteRecord)
                .filter(WasteRecord.id == waste_id, WasteRecord.restaurant_id == restaurant_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if record is None:
                raise NotFoundError("Waste record not found", details={"waste_id": str(waste_id)})
            if record.deleted_at is not None:
                raise ConflictError("Waste record already deleted", details={"waste_id": str(waste_id)})

            self._reverse([record], restaurant_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Waste record {waste_id} deleted, {record.quantity} restored")
        return record

    def reset_month(self, restaurant_id: UUID, today: Optional[date] = None) -> int:
        """Reverse and soft-delete every live record of the current period. Returns the count."""
        current = period_id(today or utcnow().date())
        try:
            records = (
                self.db.query(WasteRecord)
                .filter(
                    WasteRecord.restaurant_id == restaurant_id,
                    WasteRecord.period_id == current,
                    WasteRecord.deleted_at.is_(None),
                )
                .with_for_update()
                .all()
            )
            self._reverse(records, restaurant_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.warning(f"Waste reset for period {current}: {len(records)} record(s) reversed")
        return len(records)

    def _reverse(self, records: list[WasteRecord], restaurant_id: UUID) -> None:
        stock = StockLedger(self.db, restaurant_id)
        rows = stock.lock((r.ingredient_id for r in records), include_deleted=True)
        now = utcnow()
        for record in records:
            ingredient = rows.get(record.ingredient_id) if record.ingredient_id else None
            if ingredient is not None:
                stock.add(ingredient, Decimal(record.quantity))
            record.deleted_at = now

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def list_waste(self, restaurant_id: UUID, period: Optional[int] = None, limit: int = 500) -> list[WasteRecord]:
        query = self.db.query(WasteRecord).filter(
            WasteRecord.restaurant_id == restaurant_id,
            WasteRecord.deleted_at.is_(None),
        )
        if period is not None:
            query = query.filter(WasteRecord.period_id == period)
        return query.order_by(WasteRecord.recorded_at.desc()).limit(limit).all()

    def summary(self, restaurant_id: UUID, period: int) -> WasteSummary:
        total, ingredients, count = (
            self.db.query(
                func.coalesce(func.sum(WasteRecord.value_lost), 0),
                func.count(func.distinct(WasteRecord.ingredient_name)),
                func.count(WasteRecord.id),
            )
            .filter(
                WasteRecord.restaurant_id == restaurant_id,
                WasteRecord.period_id == period,
                WasteRecord.deleted_at.is_(None),
            )
            .one()
        )
        return WasteSummary(
            period_id=period,
            total_value_lost=quantize_money(to_decimal(total, ZERO)),
            ingredient_count=int(ingredients or 0),
            record_count=int(count or 0),
        )

    def stats(self, restaurant_id: UUID, today: Optional[date] = None) -> WasteStats:
        """Current month versus the previous one, plus the five costliest items."""
        today = today or utcnow().date()
        this_month = datetime.combine(month_start(today), time.min)
        last_month = datetime.combine(previous_month_start(today), time.min)

        def window(query, start, end=None):
            query = query.filter(
                WasteRecord.restaurant_id == restaurant_id,
                WasteRecord.deleted_at.is_(None),
                WasteRecord.recorded_at >= start,
            )
            if end is not None:
                query = query.filter(WasteRecord.recorded_at < end)
            return query

        current_total, current_count = window(
            self.db.query(func.coalesce(func.sum(WasteRecord.value_lost), 0), func.count(WasteRecord.id)),
            this_month,
        ).one()
        (previous_total,) = window(
            self.db.query(func.coalesce(func.sum(WasteRecord.value_lost), 0)), last_month, this_month,
        ).one()

        lost = func.sum(WasteRecord.value_lost)
        top_rows = (
            window(
                self.db.query(
                    WasteRecord.ingredient_name,
                    func.sum(WasteRecord.quantity),
                    lost,
                    func.count(WasteRecord.id),
                ),
                this_month,
            )
            .group_by(WasteRecord.ingredient_name)
            .order_by(lost.desc())
            .limit(5)
            .all()
        )

        current = to_decimal(current_total, ZERO)
        previous = to_decimal(previous_total, ZERO)
        variation = int(round((current - previous) / previous * 100)) if previous > 0 else 0

        return WasteStats(
            current_month_total=quantize_money(current),
            current_month_records=int(current_count or 0),
            previous_month_total=quantize_money(previous),
            variation_percent=variation,
            top_items=[
                WasteTopItem(
                    ingredient_name=name,
                    total_quantity=to_decimal(qty, ZERO),
                    total_value_lost=quantize_money(to_decimal(value, ZERO)),
                    occurrences=int(occurrences),
                )
                for name, qty, value, occurrences in top_rows
            ],
        )


def _as_uuid(value: Any, index: int) -> Optional[UUID]:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError("ingredient_id is not a valid id", details={"item": index})
