# Overview: Pure order derivations: line resolution, subtotals, totals, important-order flag.

"""
Order Builder

Nothing here touches the session or inventory quantities. Product lookups
go through the `lookup` callable handed in by the coordinator, so the
coordinator decides whether rows are locked.

Derived values are computed here, explicitly, before an Order is written:
- subtotal_cents = quantity * unit price at order time (snapshot)
- total_amount_cents = sum(subtotal_cents)
- important_transaction = total_amount_cents >= threshold
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from ..errors import NotFoundError, ValidationError
from ..validation import require_positive_int


@dataclass(frozen=True)
class RequestedLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class ResolvedLine:
    position: int
    product_id: int
    product_name: str
    quantity: int
    unit_price_cents: int
    subtotal_cents: int
    available_quantity: int


@dataclass(frozen=True)
class OrderDraft:
    customer_id: int
    lines: tuple[ResolvedLine, ...]
    total_amount_cents: int


def parse_requested_lines(items) -> list[RequestedLine]:
    """
    Normalize raw request items ({"product": id, "quantity": n} or
    {"product_id": id, ...}) into RequestedLine values.

    Client-supplied prices, subtotals and totals are ignored.
    """
    if not items or not isinstance(items, (list, tuple)):
        raise ValidationError("Customer and items are required")

    lines = []
    for index, raw in enumerate(items):
        if isinstance(raw, RequestedLine):
            lines.append(raw)
            continue
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        product_id = raw.get("product_id", raw.get("product"))
        if product_id is None:
            raise ValidationError(f"items[{index}].product is required")

        lines.append(RequestedLine(
            product_id=require_positive_int(product_id, f"items[{index}].product"),
            quantity=require_positive_int(raw.get("quantity"), f"items[{index}].quantity"),
        ))
    return lines


def derive_total_cents(lines: Iterable[ResolvedLine]) -> int:
    return sum(line.subtotal_cents for line in lines)


def is_important_transaction(total_amount_cents: int, threshold_cents: int) -> bool:
    return total_amount_cents >= threshold_cents


def build_order(customer_id, requested: Iterable[RequestedLine], lookup: Callable) -> OrderDraft:
    """
    Resolve requested lines against the catalog.

    lookup(product_id) returns an object with id, name, price_cents and
    quantity, or None. Raises NotFoundError on the first unknown product.
    """
    if not customer_id:
        raise ValidationError("Customer and items are required")

    requested = list(requested)
    if not requested:
        raise ValidationError("Customer and items are required")

    resolved = []
    for position, line in enumerate(requested):
        product = lookup(line.product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": line.product_id})

        resolved.append(ResolvedLine(
            position=position,
            product_id=product.id,
            product_name=product.name,
            quantity=line.quantity,
            unit_price_cents=product.price_cents,
            subtotal_cents=line.quantity * product.price_cents,
            available_quantity=product.quantity,
        ))

    return OrderDraft(
        customer_id=customer_id,
        lines=tuple(resolved),
        total_amount_cents=derive_total_cents(resolved),
    )
