"""
Alert service.

Thresholds come from settings. Recipe and stock alerts are raised at most
once while open and resolved automatically when the value is back within
its threshold. Nothing here commits except ``acknowledge``; the caller owns
the transaction.
"""
import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from restoledger.core.config import get_settings
from restoledger.core.exceptions import NotFoundError
from restoledger.core.timeutils import utcnow
from restoledger.models.alert import Alert, AlertStatus, AlertType

logger = logging.getLogger(__name__)

OPEN_STATUSES = (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)


class AlertService:
    def __init__(self, db: Session):
        self.db = db
        settings = get_settings()
        self.margin_low = Decimal(str(settings.ALERT_MARGIN_LOW_PERCENT))
        self.food_cost_high = Decimal(str(settings.ALERT_FOOD_COST_HIGH_PERCENT))
        self.price_increase = Decimal(str(settings.ALERT_PRICE_INCREASE_PERCENT))

    def check_recipe_cost(
        self,
        restaurant_id: UUID,
        recipe_id: UUID,
        recipe_name: str,
        margin_percent: Decimal,
        food_cost_percent: Decimal,
        cost_per_portion: Decimal,
    ) -> list[Alert]:
        created = []

        if margin_percent < self.margin_low:
            if not self._open(restaurant_id, "recipe", recipe_id, AlertType.LOW_MARGIN):
                created.append(self._create(
                    restaurant_id,
                    AlertType.LOW_MARGIN,
                    severity="critical" if margin_percent < 50 else "warning",
                    title=f'Low margin on "{recipe_name}"',
                    message=f"Margin dropped to {margin_percent:.1f}% (minimum {self.margin_low}%)",
                    entity_type="recipe",
                    entity_id=recipe_id,
                    data={
                        "margin_percent": str(margin_percent),
                        "threshold": str(self.margin_low),
                        "cost_per_portion": str(cost_per_portion),
                    },
                ))
        else:
            self._resolve(restaurant_id, "recipe", recipe_id, AlertType.LOW_MARGIN)

        if food_cost_percent > self.food_cost_high:
            if not self._open(restaurant_id, "recipe", recipe_id, AlertType.HIGH_FOOD_COST):
                created.append(self._create(
                    restaurant_id,
                    AlertType.HIGH_FOOD_COST,
                    severity="warning",
                    title=f'High food cost on "{recipe_name}"',
                    message=f"Food cost is {food_cost_percent:.1f}% (maximum {self.food_cost_high}%)",
                    entity_type="recipe",
                    entity_id=recipe_id,
                    data={"food_cost_percent": str(food_cost_percent), "threshold": str(self.food_cost_high)},
                ))
        else:
            self._resolve(restaurant_id, "recipe", recipe_id, AlertType.HIGH_FOOD_COST)

        return created

    def check_price_increase(
        self,
        restaurant_id: UUID,
        ingredient_id: UUID,
        ingredient_name: str,
        old_price: Decimal,
        new_price: Decimal,
    ) -> Optional[Alert]:
        if old_price <= 0:
            return None
        increase = (new_price - old_price) / old_price * 100
        if increase < self.price_increase:
            return None
        return self._create(
            restaurant_id,
            AlertType.PRICE_INCREASE,
            severity="critical" if increase >= 20 else "warning",
            title=f'Price increase: "{ingredient_name}"',
            message=f"Price went up {increase:.1f}% (from {old_price:.2f} to {new_price:.2f})",
            entity_type="ingredient",
            entity_id=ingredient_id,
            data={"old_price": str(old_price), "new_price": str(new_price), "increase_percent": f"{increase:.2f}"},
        )

    def check_low_stock(
        self,
        restaurant_id: UUID,
        ingredient_id: UUID,
        ingredient_name: str,
        current_stock: Decimal,
        min_stock: Decimal,
    ) -> Optional[Alert]:
        if min_stock <= 0 or current_stock >= min_stock:
            self._resolve(restaurant_id, "ingredient", ingredient_id, AlertType.LOW_STOCK)
            return None
        if self._open(restaurant_id, "ingredient", ingredient_id, AlertType.LOW_STOCK):
            return None
        return self._create(
            restaurant_id,
            AlertType.LOW_STOCK,
            severity="critical" if current_stock <= 0 else "warning",
            title=f'Low stock: "{ingredient_name}"',
            message=f"Stock is {current_stock} (minimum {min_stock})",
            entity_type="ingredient",
            entity_id=ingredient_id,
            data={"current_stock": str(current_stock), "min_stock": str(min_stock)},
        )

    def list_alerts(self, restaurant_id: UUID, status: Optional[str] = None) -> list[Alert]:
        query = self.db.query(Alert).filter(Alert.restaurant_id == restaurant_id)
        if status:
            query = query.filter(Alert.status == status)
        return query.order_by(Alert.created_at.desc()).all()

    def acknowledge(self, restaurant_id: UUID, alert_id: UUID) -> Alert:
        alert = (
            self.db.query(Alert)
            .filter(Alert.id == alert_id, Alert.restaurant_id == restaurant_id)
            .first()
        )
        if alert is None:
            raise NotFoundError("Alert not found", details={"alert_id": str(alert_id)})
        if alert.status == AlertStatus.ACTIVE:
            alert.status = AlertStatus.ACKNOWLEDGED
            alert.acknowledged_at = utcnow()
            self.db.commit()
        return alert

    # ------------------------------------------------------------------

    def _open(self, restaurant_id: UUID, entity_type: str, entity_id: UUID, alert_type: str) -> bool:
        return self.db.query(Alert.id).filter(
            Alert.restaurant_id == restaurant_id,
            Alert.entity_type == entity_type,
            Alert.entity_id == entity_id,
            Alert.type == alert_type,
            Alert.status.in_(OPEN_STATUSES),
        ).first() is not None

    def _resolve(self, restaurant_id: UUID, entity_type: str, entity_id: UUID, alert_type: str) -> int:
        alerts = self.db.query(Alert).filter(
            Alert.restaurant_id == restaurant_id,
            Alert.entity_type == entity_type,
            Alert.entity_id == entity_id,
            Alert.type == alert_type,
            Alert.status.in_(OPEN_STATUSES),
        ).all()
        now = utcnow()
        for alert in alerts:
            alert.status = AlertStatus.RESOLVED
            alert.resolved_at = now
        return len(alerts)

    def _create(self, restaurant_id: UUID, alert_type: str, **fields) -> Alert:
        alert = Alert(restaurant_id=restaurant_id, type=alert_type, status=AlertStatus.ACTIVE, **fields)
        self.db.add(alert)
        self.db.flush()
        logger.info(f"Alert {alert_type} raised for {fields['entity_type']} {fields['entity_id']}")
        return alert
