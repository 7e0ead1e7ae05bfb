"""
Tests for purchase orders: receiving, idempotence and exact reversal.
"""
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.orm import Query

from restoledger.core.exceptions import ConflictError, NotFoundError, ValidationError
from restoledger.core.timeutils import utcnow
from restoledger.models import DailyPurchaseRecord, PurchaseOrder
from restoledger.models.purchase import PurchaseOrderStatus
from restoledger.services.purchase_receiver import PurchaseReceiver

ORDER_DAY = date(2026, 3, 2)


def line(ingredient, quantity, price, received=None):
    data = {"ingredient_id": ingredient.id, "ordered_quantity": quantity, "unit_price": price}
    if received is not None:
        data["received_quantity"] = received
    return data


class TestCreateOrder:

    def test_pending_order_has_no_stock_effect(self, db, restaurant, make_ingredient):
        flour = make_ingredient("Flour", stock="5")

        order = PurchaseReceiver(db).create_order(restaurant.id, [line(flour, 10, "2.50")], order_date=ORDER_DAY)

        assert order.status == PurchaseOrderStatus.PENDING
        assert order.total == Decimal("25")
        assert flour.virtual_stock == Decimal("5")
        assert db.query(DailyPurchaseRecord).count() == 0

    def test_created_received_applies_at_once(self, db, restaurant, make_ingredient):
        flour = make_ingredient("Flour", stock="5")
        oil = make_ingredient("Oil", stock="0", unit="l")

        order = PurchaseReceiver(db).create_order(
            restaurant.id,
            [line(flour, 10, "2.50"), line(oil, 4, "6", received=3)],
            status=PurchaseOrderStatus.RECEIVED,
            order_date=ORDER_DAY,
        )

        assert flour.virtual_stock == Decimal("15")
        assert oil.virtual_stock == Decimal("3")
        assert order.received_at.date() == ORDER_DAY
        assert order.received_total == Decimal("43")
        rows = {r.ingredient_id: r for r in db.query(DailyPurchaseRecord).all()}
        assert rows[flour.id].order_id == order.id
        assert rows[flour.id].purchase_date == ORDER_DAY
        assert rows[oil.id].quantity_bought == Decimal("3")
        assert rows[oil.id].total_spent == Decimal("18")

    def test_same_ingredient_twice_in_one_order(self, db, restaurant, make_ingredient):
        flour = make_ingredient("Flour", stock="0")

        PurchaseReceiver(db).create_order(
            restaurant.id, [line(flour, 2, 1), line(flour, 3, 1)],
            status=PurchaseOrderStatus.RECEIVED, order_date=ORDER_DAY,
        )

        assert flour.virtual_stock == Decimal("5")
        assert db.query(DailyPurchaseRecord).one().quantity_bought == Decimal("5")

    @pytest.mark.parametrize("lines", [
        [],
        [{"ordered_quantity": 1, "unit_price": 1}],
        [{"ingredient_id": "not-a-uuid", "ordered_quantity": 1, "unit_price": 1}],
    ])
    def test_invalid_lines(self, db, restaurant, lines):
        with pytest.raises(ValidationError):
            PurchaseReceiver(db).create_order(restaurant.id, lines)

    def test_invalid_amounts_and_status(self, db, restaurant, make_ingredient):
        flour = make_ingredient()
        receiver = PurchaseReceiver(db)

        with pytest.raises(ValidationError):
            receiver.create_order(restaurant.id, [line(flour, 0, 1)])
        with pytest.raises(ValidationError):
            receiver.create_order(restaurant.id, [line(flour, 1, -1)])
        with pytest.raises(ValidationError):
            receiver.create_order(restaurant.id, [line(flour, 1, 1)], status="shipped")
        with pytest.raises(ValidationError):
            receiver.create_order(restaurant.id, [line(flour, 1, 1)], status=PurchaseOrderStatus.CANCELLED)
        assert db.query(PurchaseOrder).count() == 0

    def test_unknown_ingredient(self, db, restaurant, other_restaurant, make_ingredient):
        foreign = make_ingredient("Foreign", restaurant_id=other_restaurant.id)

        with pytest.raises(NotFoundError):
            PurchaseReceiver(db).create_order(restaurant.id, [line(foreign, 1, 1)])
        assert db.query(PurchaseOrder).count() == 0


class TestUpdateOrder:

    def test_receiving_is_applied_once(self, db, restaurant, make_ingredient):
        flour = make_ingredient("Flour", stock="0")
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(restaurant.id, [line(flour, 10, 2)], order_date=ORDER_DAY)
        received_at = datetime(2026, 3, 4, 9, 0)

        receiver.update_order(restaurant.id, order.id, status=PurchaseOrderStatus.RECEIVED, received_at=received_at)
        receiver.update_order(
            restaurant.id, order.id,
            status=PurchaseOrderStatus.RECEIVED,
            received_quantities={order.lines[0].id: 4},
            notes="second delivery note",
        )

        assert flour.virtual_stock == Decimal("10")
        record = db.query(DailyPurchaseRecord).one()
        assert record.quantity_bought == Decimal("10")
        assert record.purchase_date == date(2026, 3, 4)
        assert order.notes == "second delivery note"
        assert order.lines[0].received_quantity == Decimal("10")

    def test_partial_delivery(self, db, restaurant, make_ingredient):
        flour = make_ingredient("Flour", stock="0")
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(restaurant.id, [line(flour, 10, 2)], order_date=ORDER_DAY)

        receiver.update_order(
            restaurant.id, order.id,
            status=PurchaseOrderStatus.RECEIVED,
            received_quantities={str(order.lines[0].id): 6},
            received_at=datetime(2026, 3, 3, 8, 0),
        )

        assert flour.virtual_stock == Decimal("6")
        assert db.query(DailyPurchaseRecord).one().total_spent == Decimal("12")
        assert order.received_total == Decimal("12")

    def test_received_order_cannot_change_status(self, db, restaurant, make_ingredient):
        flour = make_ingredient()
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(restaurant.id, [line(flour, 1, 1)], status=PurchaseOrderStatus.RECEIVED)

        with pytest.raises(ConflictError):
            receiver.update_order(restaurant.id, order.id, status=PurchaseOrderStatus.CANCELLED)

    def test_pending_order_can_be_cancelled(self, db, restaurant, make_ingredient):
        flour = make_ingredient(stock="3")
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(restaurant.id, [line(flour, 1, 1)])

        receiver.update_order(restaurant.id, order.id, status=PurchaseOrderStatus.CANCELLED)

        assert order.status == PurchaseOrderStatus.CANCELLED
        assert flour.virtual_stock == Decimal("3")

    def test_unknown_order_or_line(self, db, restaurant, make_ingredient):
        flour = make_ingredient()
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(restaurant.id, [line(flour, 1, 1)])

        with pytest.raises(NotFoundError):
            receiver.update_order(restaurant.id, uuid4(), notes="x")
        with pytest.raises(NotFoundError):
            receiver.update_order(restaurant.id, order.id, received_quantities={uuid4(): 1})


class TestDeleteOrder:

    def test_round_trip_leaves_other_orders_untouched(self, db, restaurant, make_ingredient):
        flour = make_ingredient("Flour", stock="5")
        receiver = PurchaseReceiver(db)
        first = receiver.create_order(
            restaurant.id, [line(flour, 10, 2)], status=PurchaseOrderStatus.RECEIVED, order_date=ORDER_DAY,
        )
        second = receiver.create_order(
            restaurant.id, [line(flour, 4, 3)], status=PurchaseOrderStatus.RECEIVED, order_date=ORDER_DAY,
        )
        assert flour.virtual_stock == Decimal("19")

        receiver.delete_order(restaurant.id, first.id)

        assert flour.virtual_stock == Decimal("9")
        record = db.query(DailyPurchaseRecord).one()
        assert record.order_id == second.id
        assert record.quantity_bought == Decimal("4")
        assert record.total_spent == Decimal("12")
        assert first.deleted_at is not None
        assert [o.id for o in receiver.list_orders(restaurant.id)] == [second.id]

    def test_pending_order_delete_has_no_stock_effect(self, db, restaurant, make_ingredient):
        flour = make_ingredient(stock="5")
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(restaurant.id, [line(flour, 10, 2)])

        receiver.delete_order(restaurant.id, order.id)

        assert flour.virtual_stock == Decimal("5")

    def test_stock_floors_when_already_consumed(self, db, restaurant, make_ingredient):
        flour = make_ingredient(stock="0")
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(restaurant.id, [line(flour, 10, 2)], status=PurchaseOrderStatus.RECEIVED)
        flour.virtual_stock = Decimal("3")
        db.commit()

        receiver.delete_order(restaurant.id, order.id)

        assert flour.virtual_stock == Decimal("0")

    def test_legacy_order_subtracts_from_day_totals(self, db, restaurant, make_ingredient):
        flour = make_ingredient(stock="0")
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(
            restaurant.id, [line(flour, 10, 2)], status=PurchaseOrderStatus.RECEIVED, order_date=ORDER_DAY,
        )
        db.query(DailyPurchaseRecord).delete()
        db.add(DailyPurchaseRecord(
            restaurant_id=restaurant.id,
            ingredient_id=flour.id,
            purchase_date=ORDER_DAY,
            quantity_bought=Decimal("15"),
            total_spent=Decimal("30"),
            unit_price=Decimal("2"),
        ))
        db.commit()

        receiver.delete_order(restaurant.id, order.id)

        record = db.query(DailyPurchaseRecord).one()
        assert record.order_id is None
        assert record.quantity_bought == Decimal("5")
        assert record.total_spent == Decimal("10")
        assert flour.virtual_stock == Decimal("0")

    def test_delete_twice_conflicts(self, db, restaurant, make_ingredient):
        flour = make_ingredient()
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(restaurant.id, [line(flour, 1, 1)], status=PurchaseOrderStatus.RECEIVED)
        receiver.delete_order(restaurant.id, order.id)

        with pytest.raises(ConflictError):
            receiver.delete_order(restaurant.id, order.id)
        with pytest.raises(NotFoundError):
            receiver.delete_order(restaurant.id, uuid4())


class TestSkippedLines:

    def test_line_for_deleted_ingredient_is_not_reversed(self, db, restaurant, make_ingredient):
        tomato = make_ingredient("Tomato", stock="10")
        onion = make_ingredient("Onion", stock="10")
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(restaurant.id, [line(tomato, 5, 1), line(onion, 4, 1)], order_date=ORDER_DAY)
        tomato.deleted_at = utcnow()
        db.commit()

        receiver.update_order(
            restaurant.id, order.id, status=PurchaseOrderStatus.RECEIVED, received_at=datetime(2026, 3, 3, 9, 0),
        )

        tomato_line, onion_line = order.lines
        assert tomato_line.stock_added == Decimal("0")
        assert onion_line.stock_added == Decimal("4")
        assert tomato.virtual_stock == Decimal("10")
        assert onion.virtual_stock == Decimal("14")

        receiver.delete_order(restaurant.id, order.id)

        assert tomato.virtual_stock == Decimal("10")
        assert onion.virtual_stock == Decimal("10")
        assert db.query(DailyPurchaseRecord).count() == 0

    def test_nothing_applied_leaves_day_totals_alone(self, db, restaurant, make_ingredient):
        tomato = make_ingredient("Tomato", stock="10")
        receiver = PurchaseReceiver(db)
        order = receiver.create_order(restaurant.id, [line(tomato, 5, 2)], order_date=ORDER_DAY)
        tomato.deleted_at = utcnow()
        db.add(DailyPurchaseRecord(
            restaurant_id=restaurant.id,
            ingredient_id=tomato.id,
            purchase_date=date(2026, 3, 3),
            quantity_bought=Decimal("7"),
            total_spent=Decimal("14"),
            unit_price=Decimal("2"),
        ))
        db.commit()

        receiver.update_order(
            restaurant.id, order.id, status=PurchaseOrderStatus.RECEIVED, received_at=datetime(2026, 3, 3, 9, 0),
        )
        receiver.delete_order(restaurant.id, order.id)

        record = db.query(DailyPurchaseRecord).one()
        assert record.order_id is None
        assert record.quantity_bought == Decimal("7")
        assert record.total_spent == Decimal("14")
        assert tomato.virtual_stock == Decimal("10")


class TestReadOrder:

    def test_get_order_takes_no_row_lock(self, db, restaurant, make_ingredient, monkeypatch):
        order = PurchaseReceiver(db).create_order(restaurant.id, [line(make_ingredient(), 1, 1)])
        locked = []
        with_for_update = Query.with_for_update

        def spy(self, *args, **kwargs):
            locked.append(self)
            return with_for_update(self, *args, **kwargs)

        monkeypatch.setattr(Query, "with_for_update", spy)

        fetched = PurchaseReceiver(db).get_order(restaurant.id, order.id)

        assert fetched.id == order.id
        assert locked == []
        with pytest.raises(NotFoundError):
            PurchaseReceiver(db).get_order(restaurant.id, uuid4())
