# Overview: Service error taxonomy and its JSON translation for API routes.

"""
Every caller-facing failure carries a stable `kind` and a human-readable
message. Routes never report partial success: a ServiceError always means
the whole operation was rolled back.
"""

from __future__ import annotations

from flask import jsonify


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "details": self.details,
        }


class ValidationError(ServiceError, ValueError):
    """400-level input problem. Never retried automatically."""

    kind = "validation_error"
    status_code = 400


class AuthenticationError(ServiceError):
    kind = "authentication_error"
    status_code = 401


class PermissionDeniedError(ServiceError):
    kind = "permission_denied"
    status_code = 403


class NotFoundError(ServiceError):
    """Referenced entity does not exist."""

    kind = "not_found"
    status_code = 404


class ConflictError(ServiceError, ValueError):
    """409-level business rule conflict (e.g., duplicate item name)."""

    kind = "conflict"
    status_code = 409


class InsufficientStockError(ServiceError):
    """
    Stock would go negative. The caller may retry with a smaller quantity.
    """

    kind = "insufficient_stock"
    status_code = 409


class StockUnderflowError(ServiceError):
    """
    Inventory adjuster refused to persist a negative quantity.

    Unreachable when the movement validator ran first; seeing this in logs
    means a caller bypassed validation.
    """

    kind = "stock_underflow"
    status_code = 500


class TransactionAbortError(ServiceError):
    """Store-level conflict after all retries. Nothing was persisted; safe to retry."""

    kind = "transaction_aborted"
    status_code = 503


class PaymentGatewayError(ServiceError):
    kind = "payment_gateway_error"
    status_code = 502


def error_response(exc: ServiceError):
    """Flask (body, status) tuple for a ServiceError."""
    return jsonify(exc.to_dict()), exc.status_code
