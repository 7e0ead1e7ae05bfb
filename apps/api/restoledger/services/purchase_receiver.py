"""
Purchase Receiver: purchase orders and their effect on stock and the
daily purchase ledger.

Receiving is a one-way trigger. The first time an order reaches "received"
its lines add stock and write ledger rows keyed by the order id; any later
update that says "received" again only touches the editable fields.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from restoledger.core.exceptions import ConflictError, NotFoundError, ValidationError
from restoledger.core.quantities import ZERO, quantize_money, validate_non_negative, validate_quantity
from restoledger.core.timeutils import utcnow
from restoledger.models.ingredient import Ingredient
from restoledger.models.purchase import PurchaseOrder, PurchaseOrderLine, PurchaseOrderStatus
from restoledger.services.purchase_ledger import PurchaseLedger
from restoledger.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


class PurchaseReceiver:
    def __init__(self, db: Session):
        self.db = db

    def create_order(
        self,
        restaurant_id: UUID,
        lines: list[dict],
        status: str = PurchaseOrderStatus.PENDING,
        order_date: Optional[date] = None,
        supplier_id: Optional[UUID] = None,
        notes: Optional[str] = None,
    ) -> PurchaseOrder:
        """
        Create an order. Created directly as "received" it is applied at once.

        Each line is ``{ingredient_id, ordered_quantity, unit_price,
        received_quantity?}``.

        Raises:
            ValidationError: bad status, empty order or bad line amounts
            NotFoundError: a line references an unknown ingredient
        """
        self._validate_status(status)
        if status == PurchaseOrderStatus.CANCELLED:
            raise ValidationError("An order cannot be created as cancelled")
        if not lines:
            raise ValidationError("An order needs at least one line")
        parsed = [self._parse_line(index, raw) for index, raw in enumerate(lines)]

        try:
            ingredient_ids = {line.ingredient_id for line in parsed}
            known = {
                row.id for row in self.db.query(Ingredient.id).filter(
                    Ingredient.id.in_(ingredient_ids),
                    Ingredient.restaurant_id == restaurant_id,
                    Ingredient.deleted_at.is_(None),
                )
            }
            unknown = ingredient_ids - known
            if unknown:
                raise NotFoundError(
                    "Ingredient not found",
                    details={"ingredient_ids": sorted(str(i) for i in unknown)},
                )

            order = PurchaseOrder(
                restaurant_id=restaurant_id,
                supplier_id=supplier_id,
                status=PurchaseOrderStatus.PENDING,
                order_date=order_date or utcnow().date(),
                notes=notes,
                lines=parsed,
            )
            order.total = quantize_money(
                sum((Decimal(l.ordered_quantity) * Decimal(l.unit_price) for l in parsed), ZERO)
            )
            self.db.add(order)
            self.db.flush()

            if status == PurchaseOrderStatus.RECEIVED:
                received_at = datetime.combine(order.order_date, utcnow().time())
                self._receive(order, received_at)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Purchase order {order.id} created with status {order.status}")
        return order

    def update_order(
        self,
        restaurant_id: UUID,
        order_id: UUID,
        status: Optional[str] = None,
        received_quantities: Optional[dict[UUID, Any]] = None,
        received_at: Optional[datetime] = None,
        supplier_id: Optional[UUID] = None,
        notes: Optional[str] = None,
    ) -> PurchaseOrder:
        """
        Update an order and receive it when it first transitions to "received".

        ``received_quantities`` maps line ids to the amount that actually
        arrived; lines left out are taken as fully delivered.

        Raises:
            NotFoundError: unknown order or line
            ConflictError: moving a received order back out of "received"
        """
        if status is not None:
            self._validate_status(status)

        try:
            order = self._get_order(restaurant_id, order_id)
            was_already_received = order.status == PurchaseOrderStatus.RECEIVED

            if supplier_id is not None:
                order.supplier_id = supplier_id
            if notes is not None:
                order.notes = notes

            if was_already_received:
                if status is not None and status != PurchaseOrderStatus.RECEIVED:
                    raise ConflictError(
                        "A received order cannot change status; delete it instead",
                        details={"order_id": str(order_id), "status": status},
                    )
                if received_quantities or status == PurchaseOrderStatus.RECEIVED:
                    logger.warning(f"Order {order_id} was already received; receiving effects not reapplied")
            else:
                if received_quantities:
                    self._set_received_quantities(order, received_quantities)
                if status == PurchaseOrderStatus.RECEIVED:
                    self._receive(order, received_at or utcnow())
                elif status is not None:
                    order.status = status

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return order

    def delete_order(self, restaurant_id: UUID, order_id: UUID) -> PurchaseOrder:
        """
        Soft-delete an order, undoing exactly its own contribution if it was received.

        The ledger rows keyed by this order are removed. Orders received before
        rows carried an order key are subtracted from the ingredient/day row
        instead.

        Raises:
            NotFoundError: unknown order
            ConflictError: already deleted
        """
        try:
            order = (
                self.db.query(PurchaseOrder)
                .filter(PurchaseOrder.id == order_id, PurchaseOrder.restaurant_id == restaurant_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if order is None:
                raise NotFoundError("Order not found", details={"order_id": str(order_id)})
            if order.deleted_at is not None:
                raise ConflictError("Order already deleted", details={"order_id": str(order_id)})

            if order.status == PurchaseOrderStatus.RECEIVED:
                self._reverse(order)

            order.deleted_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Purchase order {order_id} deleted")
        return order

    def get_order(self, restaurant_id: UUID, order_id: UUID) -> PurchaseOrder:
        order = (
            self.db.query(PurchaseOrder)
            .filter(
                PurchaseOrder.id == order_id,
                PurchaseOrder.restaurant_id == restaurant_id,
                PurchaseOrder.deleted_at.is_(None),
            )
            .first()
        )
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": str(order_id)})
        return order

    def list_orders(self, restaurant_id: UUID, status: Optional[str] = None) -> list[PurchaseOrder]:
        query = self.db.query(PurchaseOrder).filter(
            PurchaseOrder.restaurant_id == restaurant_id,
            PurchaseOrder.deleted_at.is_(None),
        )
        if status:
            query = query.filter(PurchaseOrder.status == status)
        return query.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.created_at.desc()).all()

    # ------------------------------------------------------------------

    def _receive(self, order: PurchaseOrder, received_at: datetime) -> None:
        """Add stock and write this order's ledger rows. Does not commit."""
        day = received_at.date()
        stock = StockLedger(self.db, order.restaurant_id)
        ledger = PurchaseLedger(self.db, order.restaurant_id)
        rows = stock.lock(line.ingredient_id for line in order.lines)

        received_total = ZERO
        for line in order.lines:
            quantity = line.effective_quantity
            if line.received_quantity is None:
                line.received_quantity = quantity
            line.stock_added = ZERO
            if quantity <= 0:
                continue

            ingredient = rows.get(line.ingredient_id) if line.ingredient_id else None
            if ingredient is None:
                logger.warning(f"Order {order.id}: ingredient {line.ingredient_id} unresolved, line not received")
                continue

            line_total = quantize_money(line.line_total)
            stock.add(ingredient, quantity)
            line.stock_added = quantity
            ledger.record(
                ingredient_id=ingredient.id,
                day=day,
                quantity=quantity,
                total=line_total,
                order_id=order.id,
                supplier_id=order.supplier_id,
            )
            received_total += line_total

        order.status = PurchaseOrderStatus.RECEIVED
        order.received_at = received_at
        order.received_total = quantize_money(received_total)
        logger.info(f"Order {order.id} received: {len(order.lines)} line(s), total {order.received_total}")

    def _reverse(self, order: PurchaseOrder) -> None:
        """Take back what receiving added. Lines skipped on receipt are left alone."""
        applied = [line for line in order.lines if line.ingredient_id and line.applied_quantity > 0]
        ledger = PurchaseLedger(self.db, order.restaurant_id)
        if not applied:
            ledger.remove_order(order.id)
            logger.info(f"Order {order.id} added no stock; nothing to reverse")
            return

        day = (order.received_at or datetime.combine(order.order_date, datetime.min.time())).date()
        stock = StockLedger(self.db, order.restaurant_id)
        rows = stock.lock((line.ingredient_id for line in applied), include_deleted=True)
        removed = ledger.remove_order(order.id)

        if removed == 0:
            logger.warning(f"Order {order.id} has no order-keyed ledger rows; subtracting from the day totals")
            for line in applied:
                ledger.subtract_unkeyed(
                    line.ingredient_id,
                    day,
                    line.applied_quantity,
                    quantize_money(Decimal(line.unit_price or 0) * line.applied_quantity),
                )

        for line in applied:
            ingredient = rows.get(line.ingredient_id)
            if ingredient is not None:
                stock.deduct(ingredient, line.applied_quantity)

    def _set_received_quantities(self, order: PurchaseOrder, received: dict[UUID, Any]) -> None:
        by_id = {line.id: line for line in order.lines}
        for line_id, value in received.items():
            line = by_id.get(line_id if isinstance(line_id, UUID) else UUID(str(line_id)))
            if line is None:
                raise NotFoundError("Order line not found", details={"line_id": str(line_id)})
            line.received_quantity = validate_non_negative(value, "received_quantity")

    def _get_order(self, restaurant_id: UUID, order_id: UUID) -> PurchaseOrder:
        """The live order, row-locked for an update."""
        order = (
            self.db.query(PurchaseOrder)
            .filter(
                PurchaseOrder.id == order_id,
                PurchaseOrder.restaurant_id == restaurant_id,
                PurchaseOrder.deleted_at.is_(None),
            )
            .with_for_update()
            .populate_existing()
            .first()
        )
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": str(order_id)})
        return order

    @staticmethod
    def _validate_status(status: str) -> None:
        if status not in PurchaseOrderStatus.ALL:
            raise ValidationError(
                f"Invalid order status '{status}'",
                details={"allowed": list(PurchaseOrderStatus.ALL)},
            )

    @staticmethod
    def _parse_line(index: int, raw: dict) -> PurchaseOrderLine:
        ingredient_id = raw.get("ingredient_id")
        if ingredient_id is None:
            raise ValidationError("ingredient_id is required", details={"line": index})
        if not isinstance(ingredient_id, UUID):
            try:
                ingredient_id = UUID(str(ingredient_id))
            except ValueError:
                raise ValidationError("ingredient_id is not a valid id", details={"line": index})

        received = raw.get("received_quantity")
        return PurchaseOrderLine(
            ingredient_id=ingredient_id,
            ordered_quantity=validate_quantity(raw.get("ordered_quantity"), "ordered_quantity"),
            received_quantity=validate_non_negative(received, "received_quantity") if received is not None else None,
            unit_price=validate_non_negative(raw.get("unit_price", 0), "unit_price"),
            position=index,
        )
