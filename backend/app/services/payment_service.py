# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Processing Service

WHY: Orders are paid through an external hosted-checkout provider
(Chapa-style HTTP API). This service owns the conversation with the
provider and the local PaymentTransaction records.

DESIGN PRINCIPLES:
- The amount charged is the sum of the referenced orders' totals; a
  client-supplied amount is never trusted
- Provider calls happen outside database transactions; a gateway failure
  persists nothing
- Verification mirrors the provider's status; "success" marks every
  referenced order paid (idempotent, paid never reverts)
"""

from __future__ import annotations

import logging
import secrets
import time

import httpx
from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, PaymentGatewayError, ValidationError
from ..models import Order, PaymentTransaction
from ..models.orders import ORDER_STATUS_CANCELLED
from ..models.payments import PAYMENT_STATUS_SUCCESS, SUPPORTED_CURRENCIES
from app.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .order_service import mark_paid_locked

logger = logging.getLogger(__name__)


PAYMENT_STATUS_PENDING = "pending"

DEFAULT_TITLE = "Transaction Payment"
DEFAULT_DESCRIPTION = "Payment for services"


# =============================================================================
# GATEWAY CLIENT
# =============================================================================

class PaymentGateway:
    """
    Thin httpx client for the provider's transaction API.

    POST {base_url}/transaction/initialize
    GET  {base_url}/transaction/verify/<tx_ref>

    Any transport failure, non-2xx status or undecodable body is raised as
    PaymentGatewayError.
    """

    def __init__(
        self,
        base_url: str,
        secret_key: str,
        *,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.secret_key = secret_key
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.secret_key}"}

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise PaymentGatewayError(
                "Payment provider rejected the request",
                details={"status_code": exc.response.status_code, "path": path},
            ) from exc
        except httpx.HTTPError as exc:
            raise PaymentGatewayError(
                "Payment provider is unreachable",
                details={"path": path, "cause": type(exc).__name__},
            ) from exc
        except ValueError as exc:
            raise PaymentGatewayError("Payment provider returned an invalid response", details={"path": path}) from exc

    def initialize(self, payload: dict) -> dict:
        return self._request("POST", "/transaction/initialize", json=payload)

    def verify(self, tx_ref: str) -> dict:
        return self._request("GET", f"/transaction/verify/{tx_ref}")


def get_gateway() -> PaymentGateway:
    """App-scoped gateway; tests register one with a mock transport."""
    gateway = current_app.extensions.get("payment_gateway")
    if gateway is None:
        gateway = PaymentGateway(
            current_app.config["PAYMENT_GATEWAY_URL"],
            current_app.config.get("PAYMENT_SECRET_KEY", ""),
            timeout=current_app.config.get("PAYMENT_TIMEOUT_SECONDS", 10.0),
        )
        current_app.extensions["payment_gateway"] = gateway
    return gateway


# =============================================================================
# HELPERS
# =============================================================================

def generate_tx_ref() -> str:
    """tx-<epoch ms>-<random suffix>; the suffix keeps same-millisecond requests apart."""
    return f"tx-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def format_amount(amount_cents: int) -> str:
    """Provider amounts are decimal strings in major units."""
    return f"{amount_cents // 100}.{amount_cents % 100:02d}"


def _parse_order_ids(order_ids) -> list[int]:
    if not order_ids or not isinstance(order_ids, (list, tuple)):
        raise ValidationError("At least one order is required")
    parsed = []
    for raw in order_ids:
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
            raise ValidationError("Order ids must be positive integers", details={"value": raw})
        if raw not in parsed:
            parsed.append(raw)
    return parsed


def _payable_orders(order_ids: list[int]) -> list[Order]:
    orders = db.session.query(Order).filter(Order.id.in_(order_ids)).all()
    found = {o.id for o in orders}
    missing = [oid for oid in order_ids if oid not in found]
    if missing:
        raise NotFoundError("Order not found", details={"order_ids": missing})

    for order in orders:
        if order.paid:
            raise ConflictError("Order is already paid", details={"order_id": order.id})
        if order.status == ORDER_STATUS_CANCELLED:
            raise ConflictError("Cannot pay for a cancelled order", details={"order_id": order.id})
    return orders


# =============================================================================
# OPERATIONS
# =============================================================================

def initiate_transaction(
    *,
    email: str,
    first_name: str,
    last_name: str,
    currency: str,
    order_ids,
    initiated_by_user_id: int | None = None,
    title: str | None = None,
    description: str | None = None,
) -> tuple[PaymentTransaction, dict]:
    """
    Start a hosted-checkout payment for one or more orders.

    Returns (transaction, provider_response).

    Raises:
        ValidationError: missing payer fields, unsupported currency
        NotFoundError: unknown order
        ConflictError: order already paid or cancelled
        PaymentGatewayError: provider failure (nothing persisted)
    """
    if not email or not first_name or not last_name or not currency:
        raise ValidationError("Missing required fields")
    if currency not in SUPPORTED_CURRENCIES:
        raise ValidationError(f"Currency is either: {', '.join(SUPPORTED_CURRENCIES)}")

    ids = _parse_order_ids(order_ids)
    orders = _payable_orders(ids)
    amount_cents = sum(o.total_amount_cents for o in orders)

    tx_ref = generate_tx_ref()
    base = current_app.config["PAYMENT_CALLBACK_BASE_URL"].rstrip("/")
    callback_url = f"{base}/api/transactions/verify/{tx_ref}"
    return_url = current_app.config.get("PAYMENT_RETURN_URL")
    title = title or DEFAULT_TITLE
    description = description or DEFAULT_DESCRIPTION

    provider_response = get_gateway().initialize({
        "amount": format_amount(amount_cents),
        "currency": currency,
        "email": email,
        "first_name": first_name,
        "last_name": last_name,
        "tx_ref": tx_ref,
        "callback_url": callback_url,
        "return_url": return_url,
        "customization": {"title": title, "description": description},
    })
    checkout_url = (provider_response.get("data") or {}).get("checkout_url")

    def _op():
        transaction = PaymentTransaction(
            tx_ref=tx_ref,
            email=email,
            first_name=first_name,
            last_name=last_name,
            currency=currency,
            amount_cents=amount_cents,
            status=PAYMENT_STATUS_PENDING,
            checkout_url=checkout_url,
            callback_url=callback_url,
            return_url=return_url,
            title=title,
            description=description,
            initiated_by_user_id=initiated_by_user_id,
        )
        transaction.orders = db.session.query(Order).filter(Order.id.in_(ids)).all()
        db.session.add(transaction)
        db.session.flush()
        return transaction.id

    transaction_id = run_in_transaction(_op)
    logger.info("Payment %s initiated for orders %s (%s cents)", tx_ref, ids, amount_cents)
    return db.session.get(PaymentTransaction, transaction_id), provider_response


def _provider_status(result: dict) -> str:
    """Payment status reported by the provider (data.status, else top-level status)."""
    data = result.get("data")
    if isinstance(data, dict) and data.get("status"):
        return str(data["status"])
    return str(result.get("status") or "unknown")


def get_transaction(tx_ref: str) -> PaymentTransaction:
    transaction = db.session.query(PaymentTransaction).filter_by(tx_ref=tx_ref).first()
    if transaction is None:
        raise NotFoundError("Transaction not found", details={"tx_ref": tx_ref})
    return transaction


def verify_transaction(tx_ref: str) -> tuple[PaymentTransaction, dict]:
    """
    Ask the provider for the payment outcome and record it.

    On "success" every referenced order is marked paid in the same
    transaction as the status update. Safe to call repeatedly.
    """
    get_transaction(tx_ref)
    result = get_gateway().verify(tx_ref)
    status = _provider_status(result)

    def _op():
        transaction = lock_for_update(
            db.session.query(PaymentTransaction).filter_by(tx_ref=tx_ref)
        ).first()
        transaction.status = status
        transaction.verified_at = utcnow()

        newly_paid = []
        if status == PAYMENT_STATUS_SUCCESS:
            for order in transaction.orders:
                locked = lock_for_update(db.session.query(Order).filter_by(id=order.id)).first()
                if mark_paid_locked(locked):
                    newly_paid.append(locked.id)
        db.session.flush()
        return transaction.id, newly_paid

    transaction_id, newly_paid = run_in_transaction(_op)
    logger.info("Payment %s verified with status %s; orders marked paid: %s", tx_ref, status, newly_paid)
    return db.session.get(PaymentTransaction, transaction_id), result


def list_transactions(*, limit: int = 200) -> list[PaymentTransaction]:
    return (
        db.session.query(PaymentTransaction)
        .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
        .limit(limit)
        .all()
    )
