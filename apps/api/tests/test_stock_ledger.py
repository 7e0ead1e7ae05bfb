"""
Tests for the row-locked stock ledger and the daily accumulators.
"""
from datetime import date
from decimal import Decimal
from uuid import uuid4

from restoledger.core.timeutils import utcnow
from restoledger.models import DailyPurchaseRecord, PurchaseOrder, PurchaseOrderStatus
from restoledger.services.purchase_ledger import PurchaseLedger
from restoledger.services.sales_summary import SalesSummaryLedger
from restoledger.services.stock_ledger import StockLedger


class TestStockLedger:

    def test_lock_returns_only_live_rows_of_the_restaurant(self, db, restaurant, other_restaurant, make_ingredient):
        mine = make_ingredient("Flour")
        gone = make_ingredient("Old Flour")
        gone.deleted_at = utcnow()
        db.commit()
        foreign = make_ingredient("Sugar", restaurant_id=other_restaurant.id)

        rows = StockLedger(db, restaurant.id).lock([foreign.id, gone.id, mine.id, None, uuid4()])

        assert set(rows) == {mine.id}

    def test_lock_includes_deleted_when_asked(self, db, restaurant, make_ingredient):
        gone = make_ingredient("Old Flour")
        gone.deleted_at = utcnow()
        db.commit()

        rows = StockLedger(db, restaurant.id).lock([gone.id], include_deleted=True)

        assert gone.id in rows

    def test_deduct_floors_at_zero_and_reports_applied(self, db, restaurant, make_ingredient):
        ingredient = make_ingredient(stock="3")
        ledger = StockLedger(db, restaurant.id)
        rows = ledger.lock([ingredient.id])

        applied = ledger.deduct(rows[ingredient.id], Decimal("5"))
        db.commit()

        assert applied == Decimal("3")
        assert ingredient.virtual_stock == Decimal("0")
        assert ingredient.stock_updated_at is not None

    def test_add_and_signed_delta(self, db, restaurant, make_ingredient):
        ingredient = make_ingredient(stock="10")
        ledger = StockLedger(db, restaurant.id)
        row = ledger.lock([ingredient.id])[ingredient.id]

        assert ledger.add(row, Decimal("2.5")) == Decimal("2.5")
        assert ledger.apply_delta(row, Decimal("-1.25")) == Decimal("-1.25")
        db.commit()

        assert abs(ingredient.virtual_stock - Decimal("11.25")) < Decimal("0.0001")

    def test_set_level_returns_previous(self, db, restaurant, make_ingredient):
        ingredient = make_ingredient(stock="10")
        ledger = StockLedger(db, restaurant.id)
        row = ledger.lock([ingredient.id])[ingredient.id]

        before = ledger.set_level(row, Decimal("4"))
        db.commit()

        assert before == Decimal("10")
        assert ingredient.virtual_stock == Decimal("4")


class TestPurchaseLedger:

    def test_same_key_accumulates(self, db, restaurant, make_ingredient):
        ingredient = make_ingredient()
        ledger = PurchaseLedger(db, restaurant.id)

        ledger.record(ingredient.id, date(2026, 3, 2), Decimal("4"), Decimal("8"))
        ledger.record(ingredient.id, date(2026, 3, 2), Decimal("6"), Decimal("15"))
        db.commit()

        rows = db.query(DailyPurchaseRecord).all()
        assert len(rows) == 1
        assert rows[0].quantity_bought == Decimal("10")
        assert rows[0].total_spent == Decimal("23")
        assert abs(rows[0].unit_price - Decimal("2.3")) < Decimal("0.0001")

    def test_subtract_unkeyed_deletes_when_empty(self, db, restaurant, make_ingredient):
        ingredient = make_ingredient()
        ledger = PurchaseLedger(db, restaurant.id)
        ledger.record(ingredient.id, date(2026, 3, 2), Decimal("10"), Decimal("20"))
        db.commit()

        assert ledger.subtract_unkeyed(ingredient.id, date(2026, 3, 2), Decimal("4"), Decimal("8"))
        db.commit()
        row = db.query(DailyPurchaseRecord).one()
        assert row.quantity_bought == Decimal("6")
        assert row.total_spent == Decimal("12")

        assert ledger.subtract_unkeyed(ingredient.id, date(2026, 3, 2), Decimal("6"), Decimal("12"))
        db.commit()
        assert db.query(DailyPurchaseRecord).count() == 0
        assert not ledger.subtract_unkeyed(ingredient.id, date(2026, 3, 2), Decimal("1"), Decimal("1"))

    def test_day_totals_collapse_orders(self, db, restaurant, make_ingredient):
        ingredient = make_ingredient()
        orders = [
            PurchaseOrder(restaurant_id=restaurant.id, order_date=date(2026, 3, 2), status=PurchaseOrderStatus.RECEIVED)
            for _ in range(2)
        ]
        db.add_all(orders)
        db.flush()
        ledger = PurchaseLedger(db, restaurant.id)
        ledger.record(ingredient.id, date(2026, 3, 2), Decimal("2"), Decimal("4"), order_id=orders[0].id)
        ledger.record(ingredient.id, date(2026, 3, 2), Decimal("3"), Decimal("9"), order_id=orders[1].id)
        db.commit()

        assert db.query(DailyPurchaseRecord).count() == 2
        totals = ledger.day_totals(date(2026, 3, 1), date(2026, 3, 31))

        assert len(totals) == 1
        assert totals[0].quantity_bought == Decimal("5")
        assert totals[0].total_spent == Decimal("13")


class TestSalesSummaryLedger:

    def test_merge_and_clamped_reversal_keep_gross_profit(self, db, restaurant, make_recipe):
        recipe = make_recipe()
        ledger = SalesSummaryLedger(db, restaurant.id)
        day = date(2026, 3, 2)

        ledger.add(recipe.id, day, Decimal("2"), Decimal("20"), Decimal("6"))
        row = ledger.add(recipe.id, day, Decimal("1"), Decimal("10"), Decimal("3"))
        db.commit()

        assert row.units_sold == Decimal("3")
        assert row.gross_profit == row.revenue - row.ingredient_cost == Decimal("21")

        row = ledger.subtract(recipe.id, day, Decimal("5"), Decimal("50"), Decimal("1"))
        db.commit()

        assert row.units_sold == Decimal("0")
        assert row.revenue == Decimal("0")
        assert row.ingredient_cost == Decimal("8")
        assert row.gross_profit == row.revenue - row.ingredient_cost

    def test_subtract_without_row_is_noop(self, db, restaurant, make_recipe):
        recipe = make_recipe()
        assert SalesSummaryLedger(db, restaurant.id).subtract(
            recipe.id, date(2026, 3, 2), Decimal("1"), Decimal("1"), Decimal("1")
        ) is None
