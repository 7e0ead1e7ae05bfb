"""
Recipe models: composition lines and sale variants.

Recipe: a sellable dish made in batches of ``portions``
RecipeLine: ordered composition, quantity per batch
RecipeVariant: a sub-SKU (glass of a bottle, half portion) with its own price
    and a consumption multiplier
"""
import uuid
from sqlalchemy import Column, String, Integer, Boolean, Numeric, DateTime, ForeignKey, Uuid, func, Index
from sqlalchemy.orm import relationship

from restoledger.db.base import Base


class Recipe(Base):
    __tablename__ = "recipes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    code = Column(String(50))  # POS code used by sales imports
    category = Column(String(100))
    portions = Column(Integer, nullable=False, default=1)
    sell_price = Column(Numeric(10, 2), nullable=False, default=0)

    # Cached costing, refreshed by the ingredient.price.changed handler
    cost_per_portion = Column(Numeric(12, 4))
    margin_percent = Column(Numeric(6, 2))
    food_cost_percent = Column(Numeric(6, 2))
    cost_calculated_at = Column(DateTime)

    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    restaurant = relationship("Restaurant", back_populates="recipes")
    lines = relationship(
        "RecipeLine",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeLine.position",
    )
    variants = relationship("RecipeVariant", back_populates="recipe", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_recipes_restaurant', 'restaurant_id'),
        Index('idx_recipes_code', 'restaurant_id', 'code'),
    )

    @property
    def safe_portions(self) -> int:
        return max(1, int(self.portions or 1))


class RecipeLine(Base):
    """One ingredient of a recipe, quantity expressed per batch."""
    __tablename__ = "recipe_lines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipe_id = Column(Uuid, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(Uuid, ForeignKey("ingredients.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Numeric(12, 4), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    recipe = relationship("Recipe", back_populates="lines")
    ingredient = relationship("Ingredient")


class RecipeVariant(Base):
    __tablename__ = "recipe_variants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipe_id = Column(Uuid, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    code = Column(String(50))
    price_factor = Column(Numeric(8, 4), nullable=False, default=1)  # applied to consumption
    sell_price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    recipe = relationship("Recipe", back_populates="variants")
