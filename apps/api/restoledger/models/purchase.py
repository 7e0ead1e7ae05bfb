"""
Purchase order models.
"""
import uuid
from decimal import Decimal

from sqlalchemy import Column, String, Integer, Date, Numeric, DateTime, ForeignKey, Uuid, func, Index
from sqlalchemy.orm import relationship

from restoledger.db.base import Base


class PurchaseOrderStatus:
    PENDING = "pending"
    RECEIVED = "received"
    CANCELLED = "cancelled"

    ALL = (PENDING, RECEIVED, CANCELLED)


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    supplier_id = Column(Uuid, nullable=True)  # suppliers are managed by the CRUD service
    status = Column(String(20), nullable=False, default=PurchaseOrderStatus.PENDING)
    order_date = Column(Date, nullable=False)
    total = Column(Numeric(12, 2))
    received_total = Column(Numeric(12, 2))
    received_at = Column(DateTime)
    notes = Column(String(500))
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    lines = relationship(
        "PurchaseOrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.position",
    )

    __table_args__ = (
        Index('idx_purchase_orders_restaurant_date', 'restaurant_id', 'order_date'),
    )


class PurchaseOrderLine(Base):
    __tablename__ = "purchase_order_lines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(Uuid, ForeignKey("ingredients.id", ondelete="SET NULL"), nullable=True)
    ordered_quantity = Column(Numeric(14, 4), nullable=False, default=0)
    received_quantity = Column(Numeric(14, 4), nullable=True)  # NULL -> everything ordered arrived
    unit_price = Column(Numeric(12, 4), nullable=False, default=0)
    stock_added = Column(Numeric(14, 4), nullable=True)  # set on receipt; 0 when the line was skipped
    position = Column(Integer, nullable=False, default=0)

    order = relationship("PurchaseOrder", back_populates="lines")

    @property
    def effective_quantity(self) -> Decimal:
        if self.received_quantity is not None:
            return Decimal(self.received_quantity)
        return Decimal(self.ordered_quantity or 0)

    @property
    def applied_quantity(self) -> Decimal:
        """Stock this line added when the order was received."""
        if self.stock_added is not None:
            return Decimal(self.stock_added)
        return self.effective_quantity

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.unit_price or 0) * self.effective_quantity
