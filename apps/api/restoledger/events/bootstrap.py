"""
Wires the ledger's event handlers onto a bus.
"""
import logging
from typing import Callable

from sqlalchemy.orm import Session

from restoledger.events.bus import EventBus
from restoledger.events.handlers import LedgerEventHandlers
from restoledger.events.types import IngredientPriceChanged, RecipeCostUpdated, SaleRegistered

logger = logging.getLogger(__name__)


def setup_event_handlers(bus: EventBus, session_factory: Callable[[], Session]) -> Callable[[], None]:
    """Subscribe the handlers. Returns a callable that removes them again."""
    handlers = LedgerEventHandlers(session_factory)
    unsubscribers = [
        bus.subscribe(IngredientPriceChanged.TYPE, handlers.on_ingredient_price_changed),
        bus.subscribe(RecipeCostUpdated.TYPE, handlers.on_recipe_cost_updated),
        bus.subscribe(SaleRegistered.TYPE, handlers.on_sale_registered),
    ]
    logger.info(f"Registered {len(unsubscribers)} event handlers")

    def teardown() -> None:
        for unsubscribe in unsubscribers:
            unsubscribe()

    return teardown
