"""
Recipe Cost Resolver.

Costs a recipe from its composition and the current ingredient prices:

    batch_cost       = Σ line.quantity × ingredient.cost_per_unit
    cost_per_portion = batch_cost / portions
    margin           = sell_price - cost_per_portion
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from restoledger.core.config import get_settings
from restoledger.core.quantities import ZERO, quantize_money
from restoledger.models.ingredient import Ingredient
from restoledger.models.recipe import Recipe, RecipeLine

logger = logging.getLogger(__name__)


@dataclass
class LineCost:
    """Cost of one composition line for a whole batch."""
    ingredient_id: UUID
    ingredient_name: str
    quantity: Decimal
    unit_cost: Decimal
    cost: Decimal


@dataclass
class RecipeCost:
    recipe_id: UUID
    recipe_name: str
    portions: int
    sell_price: Decimal
    batch_cost: Decimal
    cost_per_portion: Decimal
    margin: Decimal
    margin_percent: Decimal  # margin / sell_price * 100
    food_cost_percent: Decimal  # cost_per_portion / sell_price * 100
    lines: list[LineCost] = field(default_factory=list)
    skipped_lines: int = 0


class RecipeCostResolver:
    """
    Resolves recipe costs for one restaurant.

    Ingredient rows are looked up once per resolver and reused, so costing a
    whole menu issues a single ingredient query.
    """

    def __init__(self, db: Session, restaurant_id: UUID, apply_yield: Optional[bool] = None):
        self.db = db
        self.restaurant_id = restaurant_id
        self.apply_yield = get_settings().APPLY_YIELD_TO_COST if apply_yield is None else apply_yield
        self._ingredients: dict[UUID, Optional[Ingredient]] = {}

    def preload(self, ingredient_ids: Iterable[UUID]) -> None:
        missing = {i for i in ingredient_ids if i is not None and i not in self._ingredients}
        if not missing:
            return
        rows = (
            self.db.query(Ingredient)
            .filter(
                Ingredient.id.in_(missing),
                Ingredient.restaurant_id == self.restaurant_id,
                Ingredient.deleted_at.is_(None),
            )
            .all()
        )
        found = {row.id: row for row in rows}
        for ingredient_id in missing:
            self._ingredients[ingredient_id] = found.get(ingredient_id)

    def resolve(self, recipe: Recipe) -> RecipeCost:
        lines: list[RecipeLine] = list(recipe.lines)
        self.preload(line.ingredient_id for line in lines)

        breakdown: list[LineCost] = []
        skipped = 0
        for line in lines:
            ingredient = self._ingredients.get(line.ingredient_id) if line.ingredient_id else None
            if ingredient is None:
                skipped += 1
                logger.warning(f"Recipe {recipe.id}: ingredient {line.ingredient_id} not found, line not costed")
                continue

            unit_cost = ingredient.cost_per_unit(apply_yield=self.apply_yield)
            quantity = Decimal(line.quantity or 0)
            breakdown.append(LineCost(
                ingredient_id=ingredient.id,
                ingredient_name=ingredient.name,
                quantity=quantity,
                unit_cost=unit_cost,
                cost=quantity * unit_cost,
            ))

        batch_cost = sum((line.cost for line in breakdown), ZERO)
        portions = recipe.safe_portions
        cost_per_portion = batch_cost / portions
        sell_price = Decimal(recipe.sell_price or 0)
        margin = sell_price - cost_per_portion

        if sell_price > 0:
            margin_percent = margin / sell_price * 100
            food_cost_percent = cost_per_portion / sell_price * 100
        else:
            margin_percent = ZERO
            food_cost_percent = ZERO

        return RecipeCost(
            recipe_id=recipe.id,
            recipe_name=recipe.name,
            portions=portions,
            sell_price=sell_price,
            batch_cost=quantize_money(batch_cost),
            cost_per_portion=quantize_money(cost_per_portion),
            margin=quantize_money(margin),
            margin_percent=margin_percent.quantize(Decimal("0.01")),
            food_cost_percent=food_cost_percent.quantize(Decimal("0.01")),
            lines=breakdown,
            skipped_lines=skipped,
        )

    def resolve_by_id(self, recipe_id: UUID) -> Optional[RecipeCost]:
        recipe = (
            self.db.query(Recipe)
            .filter(
                Recipe.id == recipe_id,
                Recipe.restaurant_id == self.restaurant_id,
                Recipe.deleted_at.is_(None),
            )
            .first()
        )
        if recipe is None:
            return None
        return self.resolve(recipe)
