"""
Test configuration and fixtures.
"""
import os
import tempfile
import pytest
from decimal import Decimal
from typing import Generator
from sqlalchemy.orm import sessionmaker, Session
from fastapi.testclient import TestClient

# Set test database URL before importing app
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(tempfile.gettempdir(), "restoledger_app.db")

from restoledger.main import app
from restoledger.core.deps import get_event_bus
from restoledger.core.security import create_access_token
from restoledger.db.base import Base
from restoledger.db.session import create_db_engine, get_db
from restoledger.events.bus import EventBus
from restoledger.models import Ingredient, Recipe, RecipeLine, RecipeVariant, Restaurant


@pytest.fixture(scope="function")
def engine(tmp_path):
    """A fresh SQLite database file per test."""
    test_engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    """Create a database session for the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def bus() -> Generator[EventBus, None, None]:
    """An isolated event bus with a short handler timeout."""
    event_bus = EventBus(handler_timeout=2.0, history_size=50)
    yield event_bus
    event_bus.clear()
    event_bus.shutdown()


@pytest.fixture
def restaurant(db: Session) -> Restaurant:
    restaurant = Restaurant(name="Test Restaurant")
    db.add(restaurant)
    db.commit()
    db.refresh(restaurant)
    return restaurant


@pytest.fixture
def other_restaurant(db: Session) -> Restaurant:
    restaurant = Restaurant(name="Other Restaurant")
    db.add(restaurant)
    db.commit()
    db.refresh(restaurant)
    return restaurant


@pytest.fixture
def make_ingredient(db: Session, restaurant: Restaurant):
    """Factory for ingredients of the test restaurant."""
    def _make(
        name: str = "Tomato",
        stock: str = "100",
        price: str = "2.00",
        format_quantity: str | None = None,
        yield_percent: str = "100",
        min_stock: str = "0",
        unit: str = "kg",
        restaurant_id=None,
    ) -> Ingredient:
        ingredient = Ingredient(
            restaurant_id=restaurant_id or restaurant.id,
            name=name,
            unit=unit,
            unit_price=Decimal(price),
            format_quantity=Decimal(format_quantity) if format_quantity is not None else None,
            yield_percent=Decimal(yield_percent),
            virtual_stock=Decimal(stock),
            min_stock=Decimal(min_stock),
        )
        db.add(ingredient)
        db.commit()
        db.refresh(ingredient)
        return ingredient
    return _make


@pytest.fixture
def make_recipe(db: Session, restaurant: Restaurant):
    """
    Factory for recipes.

    lines: list of (ingredient, quantity per batch)
    variants: list of (name, price_factor, sell_price, code)
    """
    def _make(
        name: str = "Salad",
        lines: list | None = None,
        portions: int = 1,
        sell_price: str = "10.00",
        code: str | None = None,
        category: str | None = "mains",
        variants: list | None = None,
        restaurant_id=None,
    ) -> Recipe:
        recipe = Recipe(
            restaurant_id=restaurant_id or restaurant.id,
            name=name,
            code=code,
            category=category,
            portions=portions,
            sell_price=Decimal(sell_price),
        )
        recipe.lines = [
            RecipeLine(ingredient_id=ingredient.id, quantity=Decimal(str(qty)), position=i)
            for i, (ingredient, qty) in enumerate(lines or [])
        ]
        recipe.variants = [
            RecipeVariant(name=v_name, price_factor=Decimal(str(factor)), sell_price=Decimal(str(price)), code=v_code)
            for v_name, factor, price, v_code in (variants or [])
        ]
        db.add(recipe)
        db.commit()
        db.refresh(recipe)
        return recipe
    return _make


@pytest.fixture(scope="function")
def client(db: Session, bus: EventBus) -> Generator[TestClient, None, None]:
    """Create test client with database session and event bus overrides."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_bus] = lambda: bus

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(restaurant: Restaurant) -> dict:
    token = create_access_token(subject="manager@example.com", restaurant_id=restaurant.id)
    return {"Authorization": f"Bearer {token}"}
