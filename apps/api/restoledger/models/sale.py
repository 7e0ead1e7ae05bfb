"""
Sale models.

A sale is immutable once written except for its soft-delete timestamp. The
variant factor and the stock actually deducted per ingredient are frozen on
the record so a deletion replays exactly what was applied.
"""
import uuid
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Uuid, func, Index
from sqlalchemy.orm import relationship

from restoledger.db.base import Base


class Sale(Base):
    __tablename__ = "sales"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    recipe_id = Column(Uuid, ForeignKey("recipes.id", ondelete="RESTRICT"), nullable=False)
    variant_id = Column(Uuid, ForeignKey("recipe_variants.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    ingredient_cost = Column(Numeric(14, 4), nullable=False, default=0)
    price_factor = Column(Numeric(8, 4), nullable=False, default=1)
    sold_at = Column(DateTime, nullable=False)
    source = Column(String(20), nullable=False, default="manual")  # manual, import
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    recipe = relationship("Recipe")
    variant = relationship("RecipeVariant")
    deductions = relationship("SaleStockDeduction", back_populates="sale", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_sales_restaurant_date', 'restaurant_id', 'sold_at'),
    )


class SaleStockDeduction(Base):
    """Stock taken from one ingredient by one sale: computed vs. actually applied."""
    __tablename__ = "sale_stock_deductions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    sale_id = Column(Uuid, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(Uuid, ForeignKey("ingredients.id", ondelete="SET NULL"), nullable=True)
    requested = Column(Numeric(14, 4), nullable=False)
    applied = Column(Numeric(14, 4), nullable=False)

    sale = relationship("Sale", back_populates="deductions")
