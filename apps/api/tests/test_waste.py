"""
Tests for waste recording, reversal and reporting.
"""
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from restoledger.core.exceptions import ConflictError, NotFoundError, ValidationError
from restoledger.models import WasteRecord
from restoledger.services.waste_recorder import WasteRecorder

MARCH = datetime(2026, 3, 10, 18, 0)
FEBRUARY = datetime(2026, 2, 20, 18, 0)


class TestRecordWaste:

    def test_deducts_stock_and_prices_missing_value(self, db, restaurant, make_ingredient):
        salmon = make_ingredient("Salmon", stock="10", price="60.00", format_quantity="3")
        milk = make_ingredient("Milk", stock="20", price="1.00", unit="l")

        records = WasteRecorder(db).record_waste(
            restaurant.id,
            [
                {"ingredient_id": salmon.id, "quantity": "1.5", "reason": "expired"},
                {"ingredient_id": str(milk.id), "quantity": 2, "value_lost": "5.00", "note": "spilled"},
            ],
            recorded_at=MARCH,
        )

        assert salmon.virtual_stock == Decimal("8.5")
        assert milk.virtual_stock == Decimal("18")
        assert records[0].value_lost == Decimal("30")
        assert records[0].ingredient_name == "Salmon"
        assert records[0].reason == "expired"
        assert records[1].value_lost == Decimal("5")
        assert records[1].unit == "l"
        assert {r.period_id for r in records} == {202603}

    def test_unknown_ingredient_stored_unmatched(self, db, restaurant, make_ingredient):
        records = WasteRecorder(db).record_waste(
            restaurant.id,
            [{"ingredient_id": uuid4(), "ingredient_name": "Mystery herb", "quantity": 1}],
        )

        assert records[0].ingredient_id is None
        assert records[0].ingredient_name == "Mystery herb"
        assert records[0].stock_deducted == Decimal("0")
        assert records[0].value_lost == Decimal("0")

    def test_invalid_item_rejects_whole_batch(self, db, restaurant, make_ingredient):
        salmon = make_ingredient(stock="10")
        recorder = WasteRecorder(db)

        with pytest.raises(ValidationError):
            recorder.record_waste(restaurant.id, [
                {"ingredient_id": salmon.id, "quantity": 1},
                {"ingredient_id": salmon.id, "quantity": -2},
            ])
        with pytest.raises(ValidationError):
            recorder.record_waste(restaurant.id, [])

        assert salmon.virtual_stock == Decimal("10")
        assert db.query(WasteRecord).count() == 0


class TestReverseWaste:

    def test_delete_restores_wasted_quantity(self, db, restaurant, make_ingredient):
        salmon = make_ingredient(stock="2")
        recorder = WasteRecorder(db)
        [record] = recorder.record_waste(restaurant.id, [{"ingredient_id": salmon.id, "quantity": 5}])
        assert salmon.virtual_stock == Decimal("0")
        assert record.stock_deducted == Decimal("2")

        recorder.delete_waste(restaurant.id, record.id)

        assert salmon.virtual_stock == Decimal("5")
        assert record.stock_deducted == Decimal("2")
        assert record.deleted_at is not None

    def test_delete_twice_conflicts(self, db, restaurant, make_ingredient):
        salmon = make_ingredient()
        recorder = WasteRecorder(db)
        [record] = recorder.record_waste(restaurant.id, [{"ingredient_id": salmon.id, "quantity": 1}])
        recorder.delete_waste(restaurant.id, record.id)

        with pytest.raises(ConflictError):
            recorder.delete_waste(restaurant.id, record.id)
        with pytest.raises(NotFoundError):
            recorder.delete_waste(restaurant.id, uuid4())

    def test_reset_month_only_touches_current_period(self, db, restaurant, make_ingredient):
        salmon = make_ingredient(stock="20")
        recorder = WasteRecorder(db)
        recorder.record_waste(restaurant.id, [{"ingredient_id": salmon.id, "quantity": 3}], recorded_at=FEBRUARY)
        recorder.record_waste(
            restaurant.id,
            [{"ingredient_id": salmon.id, "quantity": 2}, {"ingredient_id": salmon.id, "quantity": 1}],
            recorded_at=MARCH,
        )
        assert salmon.virtual_stock == Decimal("14")

        reversed_count = recorder.reset_month(restaurant.id, today=date(2026, 3, 15))

        assert reversed_count == 2
        assert salmon.virtual_stock == Decimal("17")
        assert len(recorder.list_waste(restaurant.id, period=202603)) == 0
        assert len(recorder.list_waste(restaurant.id, period=202602)) == 1


class TestWasteReporting:

    def test_summary_for_period(self, db, restaurant, make_ingredient):
        salmon = make_ingredient("Salmon", stock="20")
        milk = make_ingredient("Milk", stock="20")
        recorder = WasteRecorder(db)
        recorder.record_waste(restaurant.id, [
            {"ingredient_id": salmon.id, "quantity": 1, "value_lost": 10},
            {"ingredient_id": salmon.id, "quantity": 1, "value_lost": 12},
            {"ingredient_id": milk.id, "quantity": 1, "value_lost": 3},
        ], recorded_at=MARCH)

        summary = recorder.summary(restaurant.id, 202603)

        assert summary.total_value_lost == Decimal("25")
        assert summary.ingredient_count == 2
        assert summary.record_count == 3
        assert recorder.summary(restaurant.id, 202601).record_count == 0

    def test_stats_compare_months_and_rank_items(self, db, restaurant, make_ingredient):
        salmon = make_ingredient("Salmon", stock="50")
        milk = make_ingredient("Milk", stock="50")
        recorder = WasteRecorder(db)
        recorder.record_waste(restaurant.id, [{"ingredient_id": milk.id, "quantity": 1, "value_lost": 40}], recorded_at=FEBRUARY)
        recorder.record_waste(restaurant.id, [
            {"ingredient_id": salmon.id, "quantity": 2, "value_lost": 30},
            {"ingredient_id": salmon.id, "quantity": 1, "value_lost": 20},
            {"ingredient_id": milk.id, "quantity": 4, "value_lost": 10},
        ], recorded_at=MARCH)

        stats = recorder.stats(restaurant.id, today=date(2026, 3, 15))

        assert stats.current_month_total == Decimal("60")
        assert stats.current_month_records == 3
        assert stats.previous_month_total == Decimal("40")
        assert stats.variation_percent == 50
        assert [item.ingredient_name for item in stats.top_items] == ["Salmon", "Milk"]
        assert stats.top_items[0].total_quantity == Decimal("3")
        assert stats.top_items[0].occurrences == 2

    def test_stats_without_previous_month(self, db, restaurant, make_ingredient):
        salmon = make_ingredient(stock="5")
        recorder = WasteRecorder(db)
        recorder.record_waste(restaurant.id, [{"ingredient_id": salmon.id, "quantity": 1, "value_lost": 5}], recorded_at=MARCH)

        assert recorder.stats(restaurant.id, today=date(2026, 3, 15)).variation_percent == 0
