"""
Daily accumulator tables.

Rows are merged additively across writes for the same key, never overwritten.
"""
import uuid
from sqlalchemy import Column, Date, Numeric, DateTime, ForeignKey, Uuid, func, UniqueConstraint, Index

from restoledger.db.base import Base


class DailyPurchaseRecord(Base):
    """
    What was bought of one ingredient on one day, per source order.

    The order component of the key keeps each order's contribution separate,
    so deleting one order never touches another order's quantities. Rows with
    ``order_id`` NULL predate per-order keys.
    """
    __tablename__ = "daily_purchase_records"
    __table_args__ = (
        UniqueConstraint('ingredient_id', 'purchase_date', 'restaurant_id', 'order_id', name='uq_daily_purchase_key'),
        Index('idx_daily_purchase_restaurant_date', 'restaurant_id', 'purchase_date'),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(Uuid, ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False)
    purchase_date = Column(Date, nullable=False)
    order_id = Column(Uuid, ForeignKey("purchase_orders.id", ondelete="SET NULL"), nullable=True)
    supplier_id = Column(Uuid, nullable=True)

    quantity_bought = Column(Numeric(14, 4), nullable=False, default=0)
    total_spent = Column(Numeric(14, 4), nullable=False, default=0)
    unit_price = Column(Numeric(12, 4), nullable=False, default=0)  # total_spent / quantity_bought

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class DailySalesSummary(Base):
    """Units, revenue and ingredient cost per recipe per day. gross_profit = revenue - ingredient_cost."""
    __tablename__ = "daily_sales_summaries"
    __table_args__ = (
        UniqueConstraint('recipe_id', 'sale_date', 'restaurant_id', name='uq_daily_sales_key'),
        Index('idx_daily_sales_restaurant_date', 'restaurant_id', 'sale_date'),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    recipe_id = Column(Uuid, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    sale_date = Column(Date, nullable=False)

    units_sold = Column(Numeric(14, 3), nullable=False, default=0)
    unit_sell_price = Column(Numeric(10, 2))
    revenue = Column(Numeric(14, 4), nullable=False, default=0)
    ingredient_cost = Column(Numeric(14, 4), nullable=False, default=0)
    gross_profit = Column(Numeric(14, 4), nullable=False, default=0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
