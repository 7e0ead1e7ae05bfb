"""
Ingredient model: purchase price, yield and the stock ledger fields.
"""
import uuid
from decimal import Decimal

from sqlalchemy import Column, String, Boolean, Numeric, DateTime, ForeignKey, Uuid, func, Index
from sqlalchemy.orm import relationship

from restoledger.db.base import Base


class Ingredient(Base):
    """
    An ingredient bought from suppliers and consumed by recipes.

    ``virtual_stock`` is the ledger-derived quantity on hand. It is only ever
    changed through ``StockLedger`` (a signed delta applied under a row lock)
    or reset by consolidation. ``physical_stock`` holds a manual count that is
    waiting to be consolidated.
    """
    __tablename__ = "ingredients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    unit = Column(String(50), nullable=False, default="unit")  # kg, l, unit

    # Price per purchased format (e.g. a 5 kg bag), format_quantity = units per format
    unit_price = Column(Numeric(12, 4), nullable=False, default=0)
    format_quantity = Column(Numeric(12, 4), nullable=True)  # NULL -> price is already per unit
    yield_percent = Column(Numeric(5, 2), nullable=False, default=100)  # usable fraction after trim

    # Stock ledger
    virtual_stock = Column(Numeric(14, 4), nullable=False, default=0)
    physical_stock = Column(Numeric(14, 4), nullable=True)
    min_stock = Column(Numeric(14, 4), nullable=False, default=0)
    stock_updated_at = Column(DateTime)

    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    restaurant = relationship("Restaurant", back_populates="ingredients")

    __table_args__ = (
        Index('idx_ingredients_restaurant', 'restaurant_id'),
    )

    def cost_per_unit(self, apply_yield: bool = True) -> Decimal:
        """
        Price of one stock unit.

        unit_price / format_quantity when a format is set, divided by the
        usable fraction when yield is applied.
        """
        price = Decimal(self.unit_price or 0)
        fmt = Decimal(self.format_quantity) if self.format_quantity is not None else Decimal(0)
        per_unit = price / fmt if fmt > 0 else price
        if apply_yield:
            yield_pct = Decimal(self.yield_percent if self.yield_percent is not None else 100)
            if 0 < yield_pct < 100:
                per_unit = per_unit * Decimal(100) / yield_pct
        return per_unit
