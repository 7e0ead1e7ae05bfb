import uuid
from sqlalchemy import Column, String, DateTime, Uuid, func
from sqlalchemy.orm import relationship

from restoledger.db.base import Base


class Restaurant(Base):
    """A tenant. Everything in the ledger is scoped to one restaurant."""
    __tablename__ = "restaurants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    timezone = Column(String(50), nullable=False, server_default='UTC')
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    ingredients = relationship("Ingredient", back_populates="restaurant", cascade="all, delete-orphan")
    recipes = relationship("Recipe", back_populates="restaurant", cascade="all, delete-orphan")
