"""
Tests for the bulk daily sales import.
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from restoledger.core.exceptions import ConflictError
from restoledger.models import DailySalesSummary, Sale
from restoledger.services.sale_processor import SaleProcessor

SALE_DAY = date(2026, 3, 2)


@pytest.fixture
def catalogue(make_ingredient, make_recipe):
    dough = make_ingredient("Dough", stock="100")
    wine = make_ingredient("Red Wine", stock="10", unit="l")
    lettuce = make_ingredient("Lettuce", stock="50")
    return {
        "dough": dough,
        "wine": wine,
        "pizza": make_recipe("Margherita Pizza", lines=[(dough, 1)], sell_price="12.00", code="PZ-01"),
        "bottle": make_recipe(
            "House Wine", lines=[(wine, "0.75")], sell_price="18.00",
            variants=[("Glass", "0.2", "4.00", "WINE-GL")],
        ),
        "salad": make_recipe("Caesar Salad", lines=[(lettuce, "0.2")], sell_price="9.00"),
    }


def test_import_matches_and_reports_per_line(db, restaurant, catalogue):
    lines = [
        {"code": "pz-01", "quantity": 2, "total": 24},
        {"code": "WINE-GL", "quantity": 3},
        {"name": "caesar salad", "quantity": 1, "total": 9},
        {"name": "Margherita Piza", "quantity": 1, "total": 12},
        {"name": "Chocolate Volcano", "quantity": 1, "total": 7},
        {"code": "PZ-01", "quantity": "abc"},
        {"code": "PZ-01", "quantity": 1, "total": 0},
    ]

    result = SaleProcessor(db).import_sales(restaurant.id, lines, SALE_DAY)

    assert result.imported == 5
    assert result.failed == 2
    assert result.total_revenue == Decimal("57")
    assert [line.matched_by for line in result.lines] == [
        "code", "variant_code", "name", "fuzzy", None, None, "code",
    ]
    assert [line.status for line in result.lines] == [
        "imported", "imported", "imported", "imported", "error", "error", "imported",
    ]
    assert "Chocolate Volcano" in result.lines[4].error
    assert result.lines[6].warning is not None

    assert catalogue["dough"].virtual_stock == Decimal("96")
    assert abs(catalogue["wine"].virtual_stock - Decimal("9.55")) < Decimal("0.0001")

    glass_sale = db.get(Sale, result.lines[1].sale_id)
    assert glass_sale.price_factor == Decimal("0.2")
    assert glass_sale.total == Decimal("12")
    assert glass_sale.source == "import"
    assert glass_sale.sold_at.date() == SALE_DAY

    pizza_day = (
        db.query(DailySalesSummary)
        .filter(DailySalesSummary.recipe_id == catalogue["pizza"].id)
        .one()
    )
    assert pizza_day.units_sold == Decimal("4")
    assert pizza_day.revenue == Decimal("36")


def test_import_refuses_a_day_with_sales(db, restaurant, catalogue):
    processor = SaleProcessor(db)
    processor.register_sale(restaurant.id, catalogue["pizza"].id, 1, sold_at=datetime(2026, 3, 2, 19, 0))

    with pytest.raises(ConflictError):
        processor.import_sales(restaurant.id, [{"code": "PZ-01", "quantity": 1}], SALE_DAY)

    assert db.query(Sale).count() == 1


def test_import_allowed_after_day_is_cleared(db, restaurant, catalogue):
    processor = SaleProcessor(db)
    first = processor.import_sales(restaurant.id, [{"code": "PZ-01", "quantity": 1}], SALE_DAY)
    processor.delete_sale(restaurant.id, first.lines[0].sale_id)

    second = processor.import_sales(restaurant.id, [{"code": "PZ-01", "quantity": 2}], SALE_DAY)

    assert second.imported == 1
    assert catalogue["dough"].virtual_stock == Decimal("98")


def test_fuzzy_matching_can_be_disabled(db, restaurant, catalogue):
    processor = SaleProcessor(db)
    processor.settings = processor.settings.model_copy(update={"SALES_IMPORT_FUZZY_THRESHOLD": 0})

    result = processor.import_sales(restaurant.id, [{"name": "Margherita Piza", "quantity": 1}], SALE_DAY)

    assert result.imported == 0
    assert result.lines[0].status == "error"
