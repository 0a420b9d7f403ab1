# Overview: Post-commit notification dispatch (low-stock, large-order, out-of-stock).

"""
Notification Dispatch

WHY: Alerts are side effects of committed business facts. They must never
block, slow down or roll back the transaction that produced them.

CONTRACT:
- notify(kind, payload) is fire-and-forget; it never raises to the caller
- callers invoke it only after run_in_transaction() returned (committed)
- at-least-once best effort; no acknowledgement, no synchronous retry
- sink failures are logged and swallowed

SINKS:
- LoggingSink: always on; writes one log line per notification
- WebhookSink: POSTs {"topic", "kind", "payload"} to NOTIFICATION_WEBHOOK_URL
  (the message-bus bridge; topics match the bus topic names)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable

import httpx
from flask import Flask, current_app

from app.time_utils import to_utc_z, utcnow

logger = logging.getLogger(__name__)


KIND_LOW_STOCK = "low-stock"
KIND_LARGE_ORDER = "large-order"
KIND_OUT_OF_STOCK = "out-of-stock"

NOTIFICATION_KINDS = [KIND_LOW_STOCK, KIND_LARGE_ORDER, KIND_OUT_OF_STOCK]

TOPIC_LOW_STOCK = "low-stock-alerts"
TOPIC_ORDER_NOTIFICATIONS = "order-notifications"

TOPICS = {
    KIND_LOW_STOCK: TOPIC_LOW_STOCK,
    KIND_LARGE_ORDER: TOPIC_ORDER_NOTIFICATIONS,
    KIND_OUT_OF_STOCK: TOPIC_ORDER_NOTIFICATIONS,
}


class NotificationSink:
    """Delivery target. send() may raise; the dispatcher contains it."""

    name = "sink"

    def send(self, kind: str, payload: dict) -> None:
        raise NotImplementedError


class LoggingSink(NotificationSink):
    name = "log"

    def send(self, kind: str, payload: dict) -> None:
        logger.info("Notification [%s] %s", kind, payload.get("message", payload))


class WebhookSink(NotificationSink):
    name = "webhook"

    def __init__(self, url: str, *, timeout: float = 5.0, client: httpx.Client | None = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    def send(self, kind: str, payload: dict) -> None:
        body = {"topic": TOPICS[kind], "kind": kind, "payload": payload}
        if self._client is not None:
            response = self._client.post(self.url, json=body, timeout=self.timeout)
        else:
            response = httpx.post(self.url, json=body, timeout=self.timeout)
        response.raise_for_status()


class NotificationDispatcher:
    """
    Fans notifications out to sinks.

    asynchronous=True hands delivery to a small thread pool so the request
    thread returns immediately; False delivers inline (tests, CLI).
    """

    def __init__(
        self,
        sinks: Iterable[NotificationSink],
        *,
        asynchronous: bool = True,
        max_workers: int = 2,
    ):
        self.sinks = list(sinks)
        self.asynchronous = asynchronous
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")
            if asynchronous
            else None
        )

    def notify(self, kind: str, payload: dict) -> None:
        if kind not in NOTIFICATION_KINDS:
            logger.warning("Dropping notification with unknown kind %r", kind)
            return

        if self._executor is None:
            self._deliver(kind, payload)
            return

        try:
            self._executor.submit(self._deliver, kind, payload)
        except RuntimeError:
            # Executor already shut down (process exiting)
            logger.exception("Could not schedule %s notification", kind)

    def _deliver(self, kind: str, payload: dict) -> None:
        for sink in self.sinks:
            try:
                sink.send(kind, payload)
            except Exception:
                logger.exception("Failed to deliver %s notification via %s sink", kind, sink.name)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


def init_app(app: Flask) -> NotificationDispatcher:
    """Build the dispatcher from config and register it on the app."""
    sinks: list[NotificationSink] = [LoggingSink()]

    webhook_url = app.config.get("NOTIFICATION_WEBHOOK_URL")
    if webhook_url:
        sinks.append(WebhookSink(webhook_url, timeout=app.config.get("NOTIFICATION_TIMEOUT_SECONDS", 5.0)))

    dispatcher = NotificationDispatcher(
        sinks,
        asynchronous=bool(app.config.get("NOTIFICATIONS_ASYNC", True)),
    )
    app.extensions["notifier"] = dispatcher
    return dispatcher


def get_dispatcher() -> NotificationDispatcher:
    return current_app.extensions["notifier"]


def notify(kind: str, payload: dict) -> None:
    """Fire-and-forget entry point used by the services."""
    try:
        get_dispatcher().notify(kind, payload)
    except Exception:
        logger.exception("Notification dispatch failed for %s", kind)


# =============================================================================
# PAYLOAD BUILDERS
# =============================================================================

def low_stock_payload(snapshot, *, movement_type: str, quantity_change: int, actor_name: str | None = None) -> dict:
    return {
        "recipient_email": snapshot.author_email,
        "item_id": snapshot.id,
        "item_name": snapshot.name,
        "current_quantity": snapshot.quantity,
        "threshold": snapshot.low_stock_threshold,
        "movement_type": movement_type,
        "quantity_change": quantity_change,
        "user": actor_name or snapshot.author_name,
        "notes": snapshot.description,
        "message": (
            f"The stock for item '{snapshot.name}' is low. "
            f"Current quantity: {snapshot.quantity}, threshold: {snapshot.low_stock_threshold}."
        ),
        "occurred_at": to_utc_z(utcnow()),
    }


def large_order_payload(order_id: int, total_amount_cents: int, customer_id: int | None) -> dict:
    return {
        "order_id": order_id,
        "customer_id": customer_id,
        "total_amount_cents": total_amount_cents,
        "message": f"A large order with a total of {total_amount_cents / 100:,.2f} has been placed.",
        "occurred_at": to_utc_z(utcnow()),
    }


def out_of_stock_payload(order_id: int, snapshot, requested_quantity: int) -> dict:
    return {
        "order_id": order_id,
        "item_id": snapshot.id,
        "item_name": snapshot.name,
        "category": snapshot.category,
        "description": snapshot.description,
        "requested_quantity": requested_quantity,
        "remaining_quantity": snapshot.quantity,
        "recipient_email": snapshot.author_email,
        "message": f"Item {snapshot.name} is out of stock.",
        "occurred_at": to_utc_z(utcnow()),
    }
