"""
Typed domain events.

Every event carries the tenant it belongs to and the moment it happened.
Payload fields are plain values (UUIDs, Decimals) so handlers never touch the
publisher's session or ORM objects.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import ClassVar, Optional
from uuid import UUID

from restoledger.core.timeutils import utcnow


@dataclass(frozen=True)
class DomainEvent:
    TYPE: ClassVar[str] = "domain.event"

    restaurant_id: UUID
    occurred_at: datetime = field(default_factory=utcnow, kw_only=True)

    @property
    def type(self) -> str:
        return self.TYPE


@dataclass(frozen=True)
class IngredientPriceChanged(DomainEvent):
    TYPE: ClassVar[str] = "ingredient.price.changed"

    ingredient_id: UUID
    old_price: Decimal
    new_price: Decimal

    @property
    def change_percent(self) -> Optional[Decimal]:
        if not self.old_price:
            return None
        return (self.new_price - self.old_price) / self.old_price * 100


@dataclass(frozen=True)
class RecipeCostUpdated(DomainEvent):
    TYPE: ClassVar[str] = "recipe.cost.updated"

    recipe_id: UUID
    cost_per_portion: Decimal
    sell_price: Decimal
    margin_percent: Decimal
    food_cost_percent: Decimal
    trigger_ingredient_id: Optional[UUID] = None


@dataclass(frozen=True)
class SaleRegistered(DomainEvent):
    TYPE: ClassVar[str] = "sale.registered"

    sale_id: UUID
    recipe_id: UUID
    quantity: Decimal
    total: Decimal
    ingredient_ids: tuple[UUID, ...] = ()
