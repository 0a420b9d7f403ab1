# backend/app/routes/payments.py
"""
Payment transaction routes.

- Initiate: any authenticated role
- Verify: public; the provider redirects/calls back here with tx_ref
- List: Admin, Manager
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..errors import ServiceError, error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import payment_service
from ..decorators import require_auth, require_role


payments_bp = Blueprint("payments", __name__, url_prefix="/api/transactions")


@payments_bp.post("/initiate")
@require_auth
def initiate_route():
    """
    Body: {"email", "first_name", "last_name", "currency", "items": [order_id, ...]}

    A client-supplied "amount" is ignored; the charge is the sum of the
    orders' totals.
    """
    data = request.get_json(silent=True) or {}
    try:
        transaction, provider_response = payment_service.initiate_transaction(
            email=data.get("email"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            currency=data.get("currency"),
            order_ids=data.get("items", data.get("order_ids")),
            initiated_by_user_id=g.current_user.id,
            title=data.get("title"),
            description=data.get("description"),
        )
        return jsonify({
            "transaction": transaction.to_dict(),
            "tx_ref": transaction.tx_ref,
            "detail": provider_response,
        }), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to initiate transaction")
        return jsonify({"error": "Failed to initiate transaction. Please try again.", "kind": "internal_error"}), 500


@payments_bp.get("/verify/<tx_ref>")
def verify_route(tx_ref: str):
    try:
        transaction, provider_response = payment_service.verify_transaction(tx_ref)
        return jsonify({
            "transaction": transaction.to_dict(),
            "detail": provider_response,
        }), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify transaction %s", tx_ref)
        return jsonify({"error": "Failed to verify transaction. Please try again.", "kind": "internal_error"}), 500


@payments_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def list_route():
    transactions = payment_service.list_transactions()
    return jsonify({"transactions": [t.to_dict() for t in transactions]}), 200
