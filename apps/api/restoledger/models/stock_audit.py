"""
Append-only stock audit trail written by consolidation.
"""
import uuid
from sqlalchemy import Column, String, Text, Numeric, DateTime, ForeignKey, Uuid, func, Index

from restoledger.db.base import Base


class StockSnapshot(Base):
    """Virtual vs. counted stock at the moment of a consolidation."""
    __tablename__ = "stock_snapshots"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(Uuid, ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False)
    virtual_stock = Column(Numeric(14, 4), nullable=False)
    physical_stock = Column(Numeric(14, 4), nullable=False)
    difference = Column(Numeric(14, 4), nullable=False)  # physical - virtual
    taken_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_stock_snapshots_ingredient', 'ingredient_id', 'taken_at'),
    )


class StockAdjustment(Base):
    """Free-form correction note recorded alongside a consolidation."""
    __tablename__ = "stock_adjustments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(Uuid, ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Numeric(14, 4), nullable=False)
    reason = Column(String(100), nullable=False, default="adjustment")
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
