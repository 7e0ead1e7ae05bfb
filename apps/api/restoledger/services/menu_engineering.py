"""
Menu Engineering Classifier.

Places every recipe sold in a date range into one of four quadrants using
popularity (units sold) and contribution margin (sell price - cost):

    popular    = popularity >= popularity_factor × mean popularity
    profitable = margin >= Σ(margin × popularity) / Σ popularity

    popular + profitable       -> star
    popular + unprofitable     -> workhorse
    unpopular + profitable     -> puzzle
    unpopular + unprofitable   -> dog

Cost is the composition cost Σ(line.quantity × unit price), with unit price
= price / format quantity and no yield uplift.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from uuid import UUID

import numpy as np
import pandas as pd
from sqlalchemy import func
from sqlalchemy.orm import Session

from restoledger.core.config import get_settings
from restoledger.core.exceptions import ValidationError
from restoledger.models.recipe import Recipe
from restoledger.models.sale import Sale
from restoledger.services.cost_resolver import RecipeCostResolver

logger = logging.getLogger(__name__)

STAR = "star"
WORKHORSE = "workhorse"
PUZZLE = "puzzle"
DOG = "dog"


@dataclass
class MenuItemClassification:
    recipe_id: UUID
    name: str
    category: Optional[str]
    sell_price: Decimal
    cost: Decimal
    margin: Decimal
    popularity: Decimal
    food_cost_percent: Decimal
    classification: str


@dataclass
class MenuEngineeringResult:
    """
    Classification of the recipes sold in ``start..end``.

    The means and per-item figures are computed in float by pandas and
    rounded to 4 decimal places (food cost to 2) on the way out, so they
    can differ from the Decimal ledger in the last places. They are
    analytics, never written back.
    """
    start: date
    end: date
    mean_popularity: Decimal
    popularity_threshold: Decimal
    weighted_mean_margin: Decimal
    total_units: Decimal
    items: list[MenuItemClassification] = field(default_factory=list)

    def by_recipe(self) -> dict[UUID, str]:
        return {item.recipe_id: item.classification for item in self.items}


class MenuEngineeringClassifier:
    """Read-only; never locks or writes."""

    def __init__(
        self,
        db: Session,
        popularity_factor: Optional[float] = None,
        excluded_categories: Optional[list[str]] = None,
    ):
        settings = get_settings()
        self.db = db
        self.popularity_factor = popularity_factor if popularity_factor is not None else settings.MENU_POPULARITY_FACTOR
        excluded = excluded_categories if excluded_categories is not None else settings.MENU_EXCLUDED_CATEGORIES
        self.excluded_categories = {c.strip().lower() for c in excluded}

    def classify(self, restaurant_id: UUID, start: date, end: date) -> MenuEngineeringResult:
        if end < start:
            raise ValidationError("end must not be before start", details={"start": str(start), "end": str(end)})

        units = self._units_sold(restaurant_id, start, end)
        empty = MenuEngineeringResult(
            start=start, end=end,
            mean_popularity=Decimal(0), popularity_threshold=Decimal(0),
            weighted_mean_margin=Decimal(0), total_units=Decimal(0),
        )
        if not units:
            return empty

        recipes = (
            self.db.query(Recipe)
            .filter(
                Recipe.restaurant_id == restaurant_id,
                Recipe.id.in_(list(units)),
                Recipe.deleted_at.is_(None),
            )
            .all()
        )
        recipes = [r for r in recipes if (r.category or "").strip().lower() not in self.excluded_categories]
        if not recipes:
            return empty

        # composition cost at plain unit price: no portion split, no yield uplift
        resolver = RecipeCostResolver(self.db, restaurant_id, apply_yield=False)
        rows = []
        for recipe in recipes:
            cost = resolver.resolve(recipe)
            rows.append({
                "recipe_id": recipe.id,
                "name": recipe.name,
                "category": recipe.category,
                "sell_price": float(cost.sell_price),
                "cost": float(cost.batch_cost),
                "popularity": float(units[recipe.id]),
            })
        df = pd.DataFrame(rows)
        df["margin"] = df["sell_price"] - df["cost"]
        df["food_cost_percent"] = (df["cost"] / df["sell_price"] * 100).where(df["sell_price"] > 0, 0.0)

        total_units = df["popularity"].sum()
        mean_popularity = df["popularity"].mean()
        weighted_margin = (df["margin"] * df["popularity"]).sum() / total_units if total_units > 0 else 0.0
        threshold = self.popularity_factor * mean_popularity

        popular = df["popularity"] >= threshold
        profitable = df["margin"] >= weighted_margin
        df["classification"] = np.select(
            [popular & profitable, popular & ~profitable, ~popular & profitable],
            [STAR, WORKHORSE, PUZZLE],
            default=DOG,
        )
        df = df.sort_values(["popularity", "margin"], ascending=False)

        logger.info(
            f"Menu engineering {start}..{end}: {len(df)} recipe(s), "
            f"mean popularity {mean_popularity:.2f}, weighted margin {weighted_margin:.2f}"
        )

        return MenuEngineeringResult(
            start=start,
            end=end,
            mean_popularity=_dec(mean_popularity),
            popularity_threshold=_dec(threshold),
            weighted_mean_margin=_dec(weighted_margin),
            total_units=_dec(total_units),
            items=[
                MenuItemClassification(
                    recipe_id=row.recipe_id,
                    name=row.name,
                    category=row.category,
                    sell_price=_dec(row.sell_price),
                    cost=_dec(row.cost),
                    margin=_dec(row.margin),
                    popularity=_dec(row.popularity),
                    food_cost_percent=_dec(row.food_cost_percent, "0.01"),
                    classification=str(row.classification),
                )
                for row in df.itertuples(index=False)
            ],
        )

    def _units_sold(self, restaurant_id: UUID, start: date, end: date) -> dict[UUID, Decimal]:
        rows = (
            self.db.query(Sale.recipe_id, func.sum(Sale.quantity))
            .filter(
                Sale.restaurant_id == restaurant_id,
                Sale.deleted_at.is_(None),
                Sale.sold_at >= datetime.combine(start, time.min),
                Sale.sold_at <= datetime.combine(end, time.max),
            )
            .group_by(Sale.recipe_id)
            .all()
        )
        return {recipe_id: Decimal(str(total)) for recipe_id, total in rows if total and total > 0}


def _dec(value: float, places: str = "0.0001") -> Decimal:
    return Decimal(str(round(float(value), 6))).quantize(Decimal(places))
