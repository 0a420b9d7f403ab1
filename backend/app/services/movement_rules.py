# Overview: Pure acceptance rules for proposed stock movements.

"""
Stock movement sign policy (authoritative)

quantity_change is the signed effect on stock, supplied by the caller:
- Purchase, Return:    quantity_change > 0
- Sale, Adjustment:    quantity_change < 0
- zero is never a movement

A decrement larger than the current quantity is a business conflict
(InsufficientStockError), not an input error. This check runs against the
locked row so that the loser of a race sees the winner's committed quantity.
"""

from __future__ import annotations

from ..errors import InsufficientStockError, ValidationError
from ..models.inventory import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_PURCHASE,
    MOVEMENT_RETURN,
    MOVEMENT_SALE,
    MOVEMENT_TYPES,
)

INCREASING_TYPES = {MOVEMENT_PURCHASE, MOVEMENT_RETURN}
DECREASING_TYPES = {MOVEMENT_SALE, MOVEMENT_ADJUSTMENT}


def validate_movement(current_quantity: int, movement_type: str, quantity_change: int) -> int:
    """
    Decide whether a movement may be applied to an item holding
    current_quantity units. Returns the signed delta to apply.

    Raises ValidationError for malformed input or a sign that contradicts the
    movement type, InsufficientStockError when a decrement exceeds stock.
    """
    if isinstance(quantity_change, bool) or not isinstance(quantity_change, int):
        raise ValidationError("quantityChange must be an integer")

    if quantity_change == 0:
        raise ValidationError("quantityChange must be a non-zero value")

    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(
            f"Invalid movement type: {movement_type}. Must be one of {MOVEMENT_TYPES}"
        )

    if movement_type in INCREASING_TYPES and quantity_change < 0:
        raise ValidationError(f"{movement_type} must have a positive quantityChange")

    if movement_type in DECREASING_TYPES and quantity_change > 0:
        raise ValidationError(f"{movement_type} must have a negative quantityChange")

    if quantity_change < 0 and abs(quantity_change) > current_quantity:
        raise InsufficientStockError(
            "Not enough items in stock",
            details={
                "requested": abs(quantity_change),
                "available": current_quantity,
                "type": movement_type,
            },
        )

    return quantity_change
