"""
Operational alerts raised by the event handlers.
"""
import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid, JSON, func, Index

from restoledger.db.base import Base


class AlertType:
    LOW_MARGIN = "low_margin"
    HIGH_FOOD_COST = "high_food_cost"
    PRICE_INCREASE = "price_increase"
    LOW_STOCK = "low_stock"


class AlertStatus:
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False, default="warning")  # warning, critical
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    entity_type = Column(String(50), nullable=False)  # recipe, ingredient
    entity_id = Column(Uuid, nullable=False)
    data = Column(JSON, default=dict)
    status = Column(String(20), nullable=False, default=AlertStatus.ACTIVE)
    created_at = Column(DateTime, server_default=func.now())
    acknowledged_at = Column(DateTime)
    resolved_at = Column(DateTime)

    __table_args__ = (
        Index('idx_alerts_entity', 'restaurant_id', 'entity_type', 'entity_id'),
    )
