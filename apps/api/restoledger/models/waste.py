"""
Waste (shrinkage) records.
"""
import uuid
from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, Uuid, Index

from restoledger.db.base import Base


class WasteRecord(Base):
    """
    An immutable loss entry. Deleting it soft-deletes the row and gives the
    deducted stock back to the ingredient.
    """
    __tablename__ = "waste_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(Uuid, ForeignKey("ingredients.id", ondelete="SET NULL"), nullable=True)  # NULL if unmatched
    ingredient_name = Column(String(255), nullable=False)
    quantity = Column(Numeric(14, 4), nullable=False)
    unit = Column(String(50), nullable=False, default="unit")
    value_lost = Column(Numeric(12, 2), nullable=False, default=0)
    reason = Column(String(100), nullable=False, default="other")
    note = Column(String(500))
    stock_deducted = Column(Numeric(14, 4), nullable=False, default=0)
    period_id = Column(Integer, nullable=False)  # year * 100 + month
    recorded_at = Column(DateTime, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_waste_restaurant_period', 'restaurant_id', 'period_id'),
    )
