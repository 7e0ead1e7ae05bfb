"""
In-process domain events.
"""
from restoledger.events.bus import EventBus, HandlerResult, event_bus
from restoledger.events.types import (
    DomainEvent,
    IngredientPriceChanged,
    RecipeCostUpdated,
    SaleRegistered,
)

__all__ = [
    "EventBus",
    "HandlerResult",
    "event_bus",
    "DomainEvent",
    "IngredientPriceChanged",
    "RecipeCostUpdated",
    "SaleRegistered",
]
