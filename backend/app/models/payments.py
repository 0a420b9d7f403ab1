from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


SUPPORTED_CURRENCIES = ["USD", "ETB", "NGN", "KES", "GBP"]

# Provider status that confirms the payment
PAYMENT_STATUS_SUCCESS = "success"


payment_transaction_orders = db.Table(
    "payment_transaction_orders",
    db.Column("transaction_id", db.Integer, db.ForeignKey("payment_transactions.id"), primary_key=True),
    db.Column("order_id", db.Integer, db.ForeignKey("orders.id"), primary_key=True),
)


class PaymentTransaction(db.Model):
    """
    Payment initiated with the external provider for one or more orders.

    amount_cents is computed from the referenced orders' totals, never taken
    from the client. status mirrors whatever the provider last reported.
    """
    __tablename__ = "payment_transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="ck_payment_transactions_amount_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tx_ref = db.Column(db.String(64), nullable=False, unique=True, index=True)

    email = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)

    currency = db.Column(db.String(3), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(32), nullable=False, default="pending", index=True)

    checkout_url = db.Column(db.String(512), nullable=True)
    callback_url = db.Column(db.String(512), nullable=False)
    return_url = db.Column(db.String(512), nullable=True)
    title = db.Column(db.String(64), nullable=False, default="Transaction Payment")
    description = db.Column(db.String(255), nullable=False, default="Payment for services")

    initiated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    orders = db.relationship(
        "Order",
        secondary=payment_transaction_orders,
        lazy="subquery",
        backref=db.backref("payment_transactions", lazy=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tx_ref": self.tx_ref,
            "order_ids": [o.id for o in self.orders],
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "currency": self.currency,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "checkout_url": self.checkout_url,
            "callback_url": self.callback_url,
            "return_url": self.return_url,
            "title": self.title,
            "description": self.description,
            "initiated_by_user_id": self.initiated_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "verified_at": to_utc_z(self.verified_at) if self.verified_at else None,
        }
