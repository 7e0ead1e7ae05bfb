"""
SQLAlchemy models for the inventory and cost ledger.
"""
# Tenant
from restoledger.models.restaurant import Restaurant

# Catalogue
from restoledger.models.ingredient import Ingredient
from restoledger.models.recipe import Recipe, RecipeLine, RecipeVariant

# Write records
from restoledger.models.sale import Sale, SaleStockDeduction
from restoledger.models.purchase import PurchaseOrder, PurchaseOrderLine, PurchaseOrderStatus
from restoledger.models.waste import WasteRecord

# Accumulators
from restoledger.models.ledger import DailyPurchaseRecord, DailySalesSummary

# Audit trail
from restoledger.models.stock_audit import StockSnapshot, StockAdjustment

# Alerts
from restoledger.models.alert import Alert, AlertStatus, AlertType


__all__ = [
    # Tenant
    "Restaurant",
    # Catalogue
    "Ingredient",
    "Recipe",
    "RecipeLine",
    "RecipeVariant",
    # Write records
    "Sale",
    "SaleStockDeduction",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "PurchaseOrderStatus",
    "WasteRecord",
    # Accumulators
    "DailyPurchaseRecord",
    "DailySalesSummary",
    # Audit trail
    "StockSnapshot",
    "StockAdjustment",
    # Alerts
    "Alert",
    "AlertStatus",
    "AlertType",
]
