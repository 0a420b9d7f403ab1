# backend/app/routes/orders.py
"""
Order routes. Every authenticated role may create orders and update their
status.

Totals, subtotals and the important-transaction flag are always derived
server-side; any such fields in the request body are ignored.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..errors import ServiceError, ValidationError, error_response
from ..services import order_service
from ..decorators import require_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Body: {"customer": user_id, "items": [{"product": item_id, "quantity": n}, ...]}
    """
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(
            data.get("customer", data.get("customer_id")),
            data.get("items"),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"order": order.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500


@orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        customer_id = request.args.get("customer_id")
        if customer_id is not None:
            try:
                customer_id = int(customer_id)
            except ValueError:
                raise ValidationError("customer_id must be an integer")

        orders = order_service.list_orders(
            customer_id=customer_id,
            status=request.args.get("status") or None,
        )
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200
    except ServiceError as e:
        return error_response(e)


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return jsonify({"order": order_service.get_order(order_id).to_dict()}), 200
    except ServiceError as e:
        return error_response(e)


@orders_bp.put("/status")
@require_auth
def update_status_route():
    """Body: {"orderId": id, "status": "Pending|Processing|Shipped|Completed|Cancelled"}"""
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.update_order_status(
            data.get("orderId", data.get("order_id")),
            data.get("status"),
        )
        return jsonify({"order": order.to_dict(), "message": "Order status updated successfully"}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500
