"""
Best-effort subscribers for the domain events.

Each handler runs on the bus's worker threads, outside the publisher's
transaction, and opens its own session from the factory it was built with.
"""
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Callable, Iterator

from sqlalchemy.orm import Session

from restoledger.events.types import IngredientPriceChanged, RecipeCostUpdated, SaleRegistered
from restoledger.models.ingredient import Ingredient
from restoledger.models.recipe import Recipe
from restoledger.services.alerts import AlertService
from restoledger.services.ingredient_pricing import IngredientPricing

logger = logging.getLogger(__name__)


class LedgerEventHandlers:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def on_ingredient_price_changed(self, event: IngredientPriceChanged) -> list[RecipeCostUpdated]:
        """
        Refresh cached recipe costs and flag large price increases.

        Returns one ``RecipeCostUpdated`` per refreshed recipe for the bus to
        dispatch after this handler is done.
        """
        with self._session() as db:
            ingredient = db.get(Ingredient, event.ingredient_id)
            if ingredient is None:
                logger.warning(f"Price change for unknown ingredient {event.ingredient_id}")
                return []

            AlertService(db).check_price_increase(
                event.restaurant_id, ingredient.id, ingredient.name, event.old_price, event.new_price,
            )
            costs = IngredientPricing(db).refresh_recipe_costs(event.restaurant_id, ingredient.id)
            updates = [
                RecipeCostUpdated(
                    restaurant_id=event.restaurant_id,
                    recipe_id=cost.recipe_id,
                    cost_per_portion=cost.cost_per_portion,
                    sell_price=cost.sell_price,
                    margin_percent=cost.margin_percent,
                    food_cost_percent=cost.food_cost_percent,
                    trigger_ingredient_id=ingredient.id,
                )
                for cost in costs
            ]

        return updates

    def on_recipe_cost_updated(self, event: RecipeCostUpdated) -> None:
        with self._session() as db:
            recipe = db.get(Recipe, event.recipe_id)
            name = recipe.name if recipe is not None else f"Recipe {event.recipe_id}"
            created = AlertService(db).check_recipe_cost(
                event.restaurant_id,
                event.recipe_id,
                name,
                event.margin_percent,
                event.food_cost_percent,
                event.cost_per_portion,
            )
            if created:
                logger.info(f"{len(created)} alert(s) raised for recipe {event.recipe_id}")

    def on_sale_registered(self, event: SaleRegistered) -> None:
        """Flag ingredients the sale pushed under their minimum stock."""
        if not event.ingredient_ids:
            return
        with self._session() as db:
            alerts = AlertService(db)
            ingredients = db.query(Ingredient).filter(Ingredient.id.in_(set(event.ingredient_ids))).all()
            for ingredient in ingredients:
                alerts.check_low_stock(
                    event.restaurant_id,
                    ingredient.id,
                    ingredient.name,
                    Decimal(ingredient.virtual_stock or 0),
                    Decimal(ingredient.min_stock or 0),
                )
