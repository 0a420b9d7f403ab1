# Overview: Service-layer operations for orders; the order transaction coordinator.

"""
Order Creation Protocol

    Start    run_in_transaction opens the unit of work
    Resolve  lock every product row (ascending id), build lines and total
    Reserve  per line: quantity <= locked quantity, then adjust_quantity(-qty)
    Persist  Order + OrderLines + one Sale StockMovement per line
    Commit
    Notify   after commit, from committed state: large-order, out-of-stock

Any exception before commit rolls back every decrement of the order. No
caller or concurrent reader ever sees an order with only some of its
lines applied.

WHY lock in id order: two orders touching the same products acquire row
locks in the same sequence, so they queue instead of deadlocking.

Out-of-stock alerts are notify-only: they fire when the committed remaining
quantity cannot cover the same line again. They never reject an order.
"""

from __future__ import annotations

import logging

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Order, OrderLine, User
from ..models.inventory import MOVEMENT_SALE
from ..models.orders import ORDER_STATUSES, ORDER_STATUS_PENDING
from ..validation import require_positive_int
from app.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .inventory_service import ItemSnapshot, adjust_quantity, find_item_by_id
from .order_builder import build_order, is_important_transaction, parse_requested_lines
from .stock_movement_service import append_movement
from . import notification_service

logger = logging.getLogger(__name__)


def _large_order_threshold() -> int:
    return int(current_app.config.get("LARGE_ORDER_THRESHOLD_CENTS", 500_000))


def create_order(customer_id, items, *, actor_user_id: int | None = None) -> Order:
    """
    Create an order and decrement stock for every line, atomically.

    Raises:
        ValidationError: missing customer/items, malformed line
        NotFoundError: unknown customer or product (nothing persisted)
        InsufficientStockError: a line exceeds available stock (nothing persisted)
        TransactionAbortError: store conflict after retries
    """
    if not customer_id:
        raise ValidationError("Customer and items are required")
    customer_id = require_positive_int(customer_id, "customer")
    requested = parse_requested_lines(items)
    threshold = _large_order_threshold()

    def _op():
        customer = db.session.query(User).filter_by(id=customer_id).first()
        if customer is None:
            raise NotFoundError("Customer not found", details={"customer_id": customer_id})

        # Resolve: lock rows in a stable order before reading quantities
        locked = {}
        for product_id in sorted({line.product_id for line in requested}):
            item = find_item_by_id(product_id, lock=True)
            if item is not None:
                locked[product_id] = item

        draft = build_order(customer.id, requested, locked.get)

        # Reserve
        snapshots: list[ItemSnapshot] = []
        for line in draft.lines:
            item = locked[line.product_id]
            if line.quantity > item.quantity:
                raise InsufficientStockError(
                    f"Not enough items in stock for {item.name}",
                    details={
                        "product_id": item.id,
                        "requested": line.quantity,
                        "available": item.quantity,
                    },
                )
            snapshots.append(adjust_quantity(item.id, -line.quantity))

        # Persist
        order = Order(
            customer_id=customer.id,
            total_amount_cents=draft.total_amount_cents,
            status=ORDER_STATUS_PENDING,
            important_transaction=is_important_transaction(draft.total_amount_cents, threshold),
            paid=False,
            created_by_user_id=actor_user_id,
        )
        order.lines = [
            OrderLine(
                position=line.position,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                subtotal_cents=line.subtotal_cents,
            )
            for line in draft.lines
        ]
        db.session.add(order)
        db.session.flush()

        for line, snapshot in zip(draft.lines, snapshots):
            append_movement(
                item_id=line.product_id,
                movement_type=MOVEMENT_SALE,
                quantity_change=-line.quantity,
                quantity_after=snapshot.quantity,
                user_id=actor_user_id or customer.id,
                notes=f"Order #{order.id}",
                order_id=order.id,
            )

        return order.id

    order_id = run_in_transaction(_op)
    logger.info("Order %s committed", order_id)

    order = get_order(order_id)
    _notify_committed_order(order)
    return order


def _notify_committed_order(order: Order) -> None:
    """Post-commit alerts. Never raises; the order is already durable."""
    try:
        if order.important_transaction:
            notification_service.notify(
                notification_service.KIND_LARGE_ORDER,
                notification_service.large_order_payload(order.id, order.total_amount_cents, order.customer_id),
            )

        for line in order.lines:
            item = find_item_by_id(line.product_id)
            if item is None:
                continue
            snapshot = ItemSnapshot.from_item(item)
            if snapshot.quantity < line.quantity:
                notification_service.notify(
                    notification_service.KIND_OUT_OF_STOCK,
                    notification_service.out_of_stock_payload(order.id, snapshot, line.quantity),
                )
    except Exception:
        logger.exception("Failed to evaluate notifications for order %s", order.id)


def get_order(order_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id).first()
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    return order


def list_orders(*, customer_id: int | None = None, status: str | None = None, limit: int = 200) -> list[Order]:
    query = db.session.query(Order)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    if status is not None:
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid status", details={"allowed": ORDER_STATUSES})
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def update_order_status(order_id, status) -> Order:
    """
    Free-form admin status update. Stock is not touched by status changes.
    """
    if not order_id or not status:
        raise ValidationError("Order ID and status are required")
    order_id = require_positive_int(order_id, "orderId")
    if status not in ORDER_STATUSES:
        raise ValidationError("Invalid status", details={"allowed": ORDER_STATUSES})

    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        order.status = status
        db.session.flush()
        return order.id

    return get_order(run_in_transaction(_op))


def mark_paid_locked(order: Order) -> bool:
    """
    Flip paid False -> True on an order already loaded in the current
    transaction. Returns True if the flag changed. Never reverts.
    """
    if order.paid:
        return False
    order.paid = True
    order.paid_at = utcnow()
    return True


def mark_paid(order_id: int) -> Order:
    """Idempotent payment confirmation: a second call is a no-op."""
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        changed = mark_paid_locked(order)
        db.session.flush()
        return order.id, changed

    order_id, changed = run_in_transaction(_op)
    if changed:
        logger.info("Order %s marked paid", order_id)
    return get_order(order_id)
