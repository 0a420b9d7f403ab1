# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/app/services/inventory_service.py

"""
Inventory Invariants (authoritative)

Quantity model:
- InventoryItem.quantity is a stored counter guarded by a CHECK (quantity >= 0).
- After creation it changes ONLY through adjust_quantity(), which applies a
  signed delta to the locked row inside the caller's transaction scope.
- Catalog updates (update_item) may not write quantity.

Low stock:
- quantity < low_stock_threshold is a valid state; it is reported through
  ItemSnapshot.is_low_stock and never blocks a transaction.

Transactions:
- adjust_quantity() flushes but never commits. Callers wrap it in
  concurrency.run_in_transaction().
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, NotFoundError, StockUnderflowError, ValidationError
from ..models import InventoryItem, OrderLine, Order, StockMovement, User
from ..models.inventory import CATEGORIES, DEFAULT_LOW_STOCK_THRESHOLD
from ..models.orders import OPEN_ORDER_STATUSES
from ..validation import enforce_rules_item
from .concurrency import lock_for_update, run_in_transaction


DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

UPDATABLE_FIELDS = {"name", "description", "category", "price_cents", "low_stock_threshold"}


@dataclass(frozen=True)
class ItemSnapshot:
    """
    Immutable view of an item taken right after an adjustment.

    Safe to hand to code running after commit (or on another thread):
    it carries no session state.
    """
    id: int
    name: str
    description: str | None
    category: str
    price_cents: int
    quantity: int
    low_stock_threshold: int
    author_id: int
    author_name: str | None
    author_email: str | None

    @property
    def is_low_stock(self) -> bool:
        return self.quantity < self.low_stock_threshold

    @classmethod
    def from_item(cls, item: InventoryItem) -> "ItemSnapshot":
        author = item.author
        return cls(
            id=item.id,
            name=item.name,
            description=item.description,
            category=item.category,
            price_cents=item.price_cents,
            quantity=item.quantity,
            low_stock_threshold=item.low_stock_threshold,
            author_id=item.author_id,
            author_name=author.name if author else None,
            author_email=author.email if author else None,
        )


def find_item_by_id(item_id: int, *, lock: bool = False) -> InventoryItem | None:
    """Catalog lookup. Returns None when the item does not exist."""
    query = db.session.query(InventoryItem).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_item(item_id: int, *, lock: bool = False) -> InventoryItem:
    item = find_item_by_id(item_id, lock=lock)
    if item is None:
        raise NotFoundError("Inventory item not found", details={"item_id": item_id})
    return item


def adjust_quantity(item_id: int, delta: int) -> ItemSnapshot:
    """
    Apply a signed delta to one item inside the ambient transaction.

    Does not commit. Raises StockUnderflowError if the result would be
    negative, even when the caller already validated the movement.
    """
    item = get_item(item_id, lock=True)

    new_quantity = item.quantity + delta
    if new_quantity < 0:
        raise StockUnderflowError(
            "Adjustment would make on-hand quantity negative",
            details={"item_id": item_id, "quantity": item.quantity, "delta": delta},
        )

    item.quantity = new_quantity
    db.session.flush()
    return ItemSnapshot.from_item(item)


# =============================================================================
# CATALOG MANAGEMENT
# =============================================================================

def _check_category(category: str) -> None:
    if category not in CATEGORIES:
        raise ValidationError(f"Category is either: {', '.join(CATEGORIES)}")


def _check_name_available(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(InventoryItem).filter(InventoryItem.name == name)
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("An inventory item with this name already exists")


def create_item(
    *,
    name: str,
    category: str,
    price_cents: int,
    quantity: int,
    author_id: int,
    description: str | None = None,
    low_stock_threshold: int | None = None,
) -> InventoryItem:
    """Create a catalog item with its opening quantity."""
    if not name or not category or price_cents is None or quantity is None:
        raise ValidationError("name, category, price_cents and quantity are required")
    enforce_rules_item({
        "name": name,
        "category": category,
        "price_cents": price_cents,
        "quantity": quantity,
        "low_stock_threshold": low_stock_threshold,
    })

    def _op():
        _check_name_available(name)

        if db.session.query(User).filter_by(id=author_id).first() is None:
            raise NotFoundError("Author not found", details={"author_id": author_id})

        item = InventoryItem(
            name=name,
            description=description,
            category=category,
            price_cents=price_cents,
            quantity=quantity,
            low_stock_threshold=(
                DEFAULT_LOW_STOCK_THRESHOLD if low_stock_threshold is None else low_stock_threshold
            ),
            author_id=author_id,
        )
        db.session.add(item)
        db.session.flush()
        return item

    return run_in_transaction(_op)


def update_item(item_id: int, patch: dict) -> InventoryItem:
    """
    Update catalog fields. quantity is rejected: stock changes go through
    stock movements.
    """
    if "quantity" in patch:
        raise ValidationError("quantity cannot be updated directly; record a stock movement instead")
    unknown = sorted(set(patch) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")
    enforce_rules_item(patch)

    def _op():
        item = get_item(item_id, lock=True)

        if "name" in patch and patch["name"] != item.name:
            _check_name_available(patch["name"], exclude_id=item.id)

        for key, value in patch.items():
            setattr(item, key, value)
        db.session.flush()
        return item

    return run_in_transaction(_op)


def delete_item(item_id: int) -> None:
    """
    Delete an item that nothing references.

    Refused while an open order (Pending/Processing/Shipped) holds the item,
    and for items with ledger history (stock movements are never deleted).
    """
    def _op():
        item = get_item(item_id, lock=True)

        open_refs = (
            db.session.query(func.count(OrderLine.id))
            .join(Order, Order.id == OrderLine.order_id)
            .filter(OrderLine.product_id == item.id, Order.status.in_(OPEN_ORDER_STATUSES))
            .scalar()
        )
        if open_refs:
            raise ConflictError(
                "Inventory item is referenced by an open order",
                details={"item_id": item.id, "open_order_lines": int(open_refs)},
            )

        any_refs = db.session.query(OrderLine.id).filter_by(product_id=item.id).first()
        history = db.session.query(StockMovement.id).filter_by(item_id=item.id).first()
        if any_refs is not None or history is not None:
            raise ConflictError(
                "Inventory item has order or stock movement history and cannot be deleted",
                details={"item_id": item.id},
            )

        db.session.delete(item)

    run_in_transaction(_op)


def list_items(
    *,
    name: str | None = None,
    category: str | None = None,
    min_quantity: int | None = None,
    max_quantity: int | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    """Filtered, paginated catalog listing."""
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    query = db.session.query(InventoryItem)
    if name:
        pattern = name.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        query = query.filter(InventoryItem.name.ilike(f"%{pattern}%", escape="\\"))
    if category:
        _check_category(category)
        query = query.filter(InventoryItem.category == category)
    if min_quantity is not None:
        query = query.filter(InventoryItem.quantity >= min_quantity)
    if max_quantity is not None:
        query = query.filter(InventoryItem.quantity <= max_quantity)

    total = query.count()
    items = (
        query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "items": items,
        "total_items": total,
        "current_page": page,
        "total_pages": (total + limit - 1) // limit if total else 0,
    }


def list_low_stock_items() -> list[InventoryItem]:
    return (
        db.session.query(InventoryItem)
        .filter(InventoryItem.quantity < InventoryItem.low_stock_threshold)
        .order_by(InventoryItem.quantity.asc(), InventoryItem.id.asc())
        .all()
    )
