"""
Concurrent writers on independent sessions must never lose an update.
"""
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from restoledger.models import Sale
from restoledger.models.purchase import PurchaseOrderStatus
from restoledger.services.purchase_receiver import PurchaseReceiver
from restoledger.services.sale_processor import SaleProcessor


def run_in_session(session_factory, work):
    session = session_factory()
    try:
        return work(session)
    finally:
        session.close()


def test_parallel_sales_floor_at_zero(db, session_factory, restaurant, make_ingredient, make_recipe):
    cheese = make_ingredient("Cheese", stock="30")
    pizza = make_recipe("Pizza", lines=[(cheese, 1)])
    restaurant_id, recipe_id = restaurant.id, pizza.id
    db.rollback()

    def sell(_):
        return run_in_session(
            session_factory,
            lambda s: SaleProcessor(s).register_sale(restaurant_id, recipe_id, 1).deductions[0].applied,
        )

    with ThreadPoolExecutor(max_workers=10) as pool:
        applied = list(pool.map(sell, range(50)))

    db.rollback()
    assert cheese.virtual_stock == Decimal("0")
    assert sum(applied) == Decimal("30")
    assert applied.count(Decimal("0")) == 20
    assert db.query(Sale).count() == 50


def test_parallel_sales_and_receipts(db, session_factory, restaurant, make_ingredient, make_recipe):
    cheese = make_ingredient("Cheese", stock="100")
    pizza = make_recipe("Pizza", lines=[(cheese, 1)])
    restaurant_id, recipe_id, cheese_id = restaurant.id, pizza.id, cheese.id
    db.rollback()

    def work(i):
        if i % 2:
            return run_in_session(
                session_factory,
                lambda s: SaleProcessor(s).register_sale(restaurant_id, recipe_id, 1),
            )
        return run_in_session(
            session_factory,
            lambda s: PurchaseReceiver(s).create_order(
                restaurant_id,
                [{"ingredient_id": cheese_id, "ordered_quantity": 1, "unit_price": 1}],
                status=PurchaseOrderStatus.RECEIVED,
            ),
        )

    with ThreadPoolExecutor(max_workers=10) as pool:
        list(pool.map(work, range(50)))

    db.rollback()
    assert cheese.virtual_stock == Decimal("100")
