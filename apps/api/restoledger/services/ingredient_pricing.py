"""
Ingredient price updates and recipe cost refresh.
"""
import logging
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from restoledger.core.exceptions import NotFoundError
from restoledger.core.quantities import validate_non_negative
from restoledger.core.timeutils import utcnow
from restoledger.events.bus import EventBus
from restoledger.events.types import IngredientPriceChanged
from restoledger.models.ingredient import Ingredient
from restoledger.models.recipe import Recipe, RecipeLine
from restoledger.services.cost_resolver import RecipeCost, RecipeCostResolver

logger = logging.getLogger(__name__)


class IngredientPricing:
    def __init__(self, db: Session, event_bus: Optional[EventBus] = None):
        self.db = db
        self.event_bus = event_bus

    def update_price(self, restaurant_id: UUID, ingredient_id: UUID, unit_price: Any) -> Ingredient:
        """
        Write a new purchase price and announce it once committed.

        Raises:
            ValidationError: negative or non-numeric price
            NotFoundError: unknown ingredient
        """
        new_price = validate_non_negative(unit_price, "unit_price")
        try:
            ingredient = (
                self.db.query(Ingredient)
                .filter(
                    Ingredient.id == ingredient_id,
                    Ingredient.restaurant_id == restaurant_id,
                    Ingredient.deleted_at.is_(None),
                )
                .with_for_update()
                .populate_existing()
                .first()
            )
            if ingredient is None:
                raise NotFoundError("Ingredient not found", details={"ingredient_id": str(ingredient_id)})

            old_price = Decimal(ingredient.unit_price or 0)
            ingredient.unit_price = new_price
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if old_price != new_price and self.event_bus is not None:
            self.event_bus.publish(IngredientPriceChanged(
                restaurant_id=restaurant_id,
                ingredient_id=ingredient_id,
                old_price=old_price,
                new_price=new_price,
            ))
        return ingredient

    def refresh_recipe_costs(self, restaurant_id: UUID, ingredient_id: UUID) -> list[RecipeCost]:
        """Recompute and store the cached cost of every live recipe using the ingredient. Does not commit."""
        recipes = (
            self.db.query(Recipe)
            .join(RecipeLine, RecipeLine.recipe_id == Recipe.id)
            .filter(
                Recipe.restaurant_id == restaurant_id,
                Recipe.deleted_at.is_(None),
                RecipeLine.ingredient_id == ingredient_id,
            )
            .distinct()
            .all()
        )

        resolver = RecipeCostResolver(self.db, restaurant_id)
        now = utcnow()
        costs = []
        for recipe in recipes:
            cost = resolver.resolve(recipe)
            recipe.cost_per_portion = cost.cost_per_portion
            recipe.margin_percent = cost.margin_percent
            recipe.food_cost_percent = cost.food_cost_percent
            recipe.cost_calculated_at = now
            costs.append(cost)

        logger.info(f"Recomputed cost of {len(costs)} recipe(s) using ingredient {ingredient_id}")
        return costs
