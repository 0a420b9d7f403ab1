from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


CATEGORIES = ["Electronics", "Clothing", "Home", "Food", "Other"]

MOVEMENT_PURCHASE = "Purchase"
MOVEMENT_SALE = "Sale"
MOVEMENT_RETURN = "Return"
MOVEMENT_ADJUSTMENT = "Adjustment"

MOVEMENT_TYPES = [MOVEMENT_PURCHASE, MOVEMENT_SALE, MOVEMENT_RETURN, MOVEMENT_ADJUSTMENT]

DEFAULT_LOW_STOCK_THRESHOLD = 10


class InventoryItem(db.Model):
    """
    Catalog item with its on-hand quantity.

    QUANTITY DESIGN DECISION:
    quantity is a stored counter, not a ledger sum. It is changed only by
    inventory_service.adjust_quantity() (signed delta under row lock),
    never by catalog updates. Every change has exactly one StockMovement.

    - quantity >= 0 always (CHECK constraint + adjuster guard)
    - quantity < low_stock_threshold is allowed; it triggers a low-stock alert
    - version_id detects lost updates from concurrent writers
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_nonneg"),
        db.CheckConstraint("price_cents >= 0", name="ck_inventory_items_price_nonneg"),
        db.CheckConstraint("low_stock_threshold >= 0", name="ck_inventory_items_threshold_nonneg"),
        db.Index("ix_inventory_items_category_price", "category", "price_cents"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False, unique=True, index=True)
    description = db.Column(db.String(500), nullable=True)
    category = db.Column(db.String(32), nullable=False)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=DEFAULT_LOW_STOCK_THRESHOLD)

    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    author = db.relationship("User", backref=db.backref("inventory_items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} quantity={self.quantity}>"

    @property
    def is_low_stock(self) -> bool:
        return self.quantity < self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price_cents": self.price_cents,
            "quantity": self.quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "author_id": self.author_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger.

    One row per accepted quantity change, written in the same DB transaction
    as the InventoryItem update. Only `notes` may be corrected afterwards.

    SIGN CONVENTION: quantity_change is the signed effect on stock.
    Purchase/Return > 0, Sale/Adjustment < 0 (see movement_rules).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity_change <> 0", name="ck_stock_movements_nonzero"),
        db.Index("ix_stock_movements_item_timestamp", "item_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)

    # Item quantity right after this movement was applied
    quantity_after = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Set when the movement was produced by order fulfilment
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    notes = db.Column(db.String(500), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    item = db.relationship("InventoryItem", backref=db.backref("movements", lazy=True))
    user = db.relationship("User")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "type": self.type,
            "quantity_change": self.quantity_change,
            "quantity_after": self.quantity_after,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "timestamp": to_utc_z(self.timestamp),
            "notes": self.notes,
            "version_id": self.version_id,
        }
