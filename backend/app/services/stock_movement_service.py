# Overview: Service-layer operations for stock movements; the standalone stock adjustment path.

"""
Stock Movement Recording

FLOW (one transaction):
    validate_movement -> adjust_quantity -> StockMovement row -> commit
then, after commit:
    low-stock notification if the post-adjustment snapshot is below threshold

The ledger row and the quantity change commit together or not at all.
The notification is never part of the transaction and its failure is not
a failure of the recording.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import StockMovement, User
from ..validation import require_positive_int
from app.time_utils import utcnow
from .concurrency import run_in_transaction
from .inventory_service import adjust_quantity, get_item
from .movement_rules import validate_movement
from . import notification_service

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500


def _check_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    notes = str(notes).strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"Notes must not exceed {MAX_NOTES_LENGTH} characters")
    return notes or None


def append_movement(
    *,
    item_id: int,
    movement_type: str,
    quantity_change: int,
    quantity_after: int,
    user_id: int,
    notes: str | None = None,
    order_id: int | None = None,
) -> StockMovement:
    """Write one ledger row in the current transaction (no commit)."""
    movement = StockMovement(
        item_id=item_id,
        type=movement_type,
        quantity_change=quantity_change,
        quantity_after=quantity_after,
        user_id=user_id,
        order_id=order_id,
        notes=notes,
        timestamp=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def record_stock_movement(
    *,
    item_id: int,
    movement_type: str,
    quantity_change: int,
    user_id: int,
    notes: str | None = None,
) -> StockMovement:
    """
    Record a stock movement and apply it to the item's quantity.

    Raises:
        ValidationError: missing fields, bad type/sign, zero change
        NotFoundError: item or user does not exist
        InsufficientStockError: decrement larger than current stock
        TransactionAbortError: store conflict after retries
    """
    if not item_id or not movement_type or quantity_change is None or not user_id:
        raise ValidationError("All fields are required (item, type, quantityChange, user)")
    item_id = require_positive_int(item_id, "item")
    user_id = require_positive_int(user_id, "user")

    notes = _check_notes(notes)

    def _op():
        actor = db.session.query(User).filter_by(id=user_id).first()
        if actor is None:
            raise NotFoundError("User not found", details={"user_id": user_id})

        item = get_item(item_id, lock=True)
        delta = validate_movement(item.quantity, movement_type, quantity_change)

        snapshot = adjust_quantity(item.id, delta)
        movement = append_movement(
            item_id=item.id,
            movement_type=movement_type,
            quantity_change=delta,
            quantity_after=snapshot.quantity,
            user_id=actor.id,
            notes=notes,
        )
        return movement, snapshot, actor.name

    movement, snapshot, actor_name = run_in_transaction(_op)

    logger.info(
        "Stock movement %s recorded: item=%s type=%s change=%s quantity=%s",
        movement.id, snapshot.id, movement_type, quantity_change, snapshot.quantity,
    )

    if snapshot.is_low_stock:
        notification_service.notify(
            notification_service.KIND_LOW_STOCK,
            notification_service.low_stock_payload(
                snapshot,
                movement_type=movement_type,
                quantity_change=quantity_change,
                actor_name=actor_name,
            ),
        )

    return movement


def get_stock_movement(movement_id: int) -> StockMovement:
    movement = db.session.query(StockMovement).filter_by(id=movement_id).first()
    if movement is None:
        raise NotFoundError("Stock movement not found", details={"movement_id": movement_id})
    return movement


def list_stock_movements(*, item_id: int | None = None, limit: int = 200) -> list[StockMovement]:
    query = db.session.query(StockMovement)
    if item_id is not None:
        get_item(item_id)
        query = query.filter(StockMovement.item_id == item_id)

    return (
        query.order_by(StockMovement.timestamp.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def update_movement_notes(movement_id: int, notes: str | None) -> StockMovement:
    """
    Administrative note correction; the only permitted ledger mutation.
    Empty or None notes clear the existing text.
    """
    notes = _check_notes(notes)

    def _op():
        movement = get_stock_movement(movement_id)
        movement.notes = notes
        db.session.flush()
        return movement

    return run_in_transaction(_op)
