# backend/app/routes/stock_movements.py
"""
Stock movement ledger routes.

- Record: Admin
- List/get/correct notes: Admin, Manager

The recorded actor is always the authenticated user; a "user" field in the
body is ignored. There is no delete route: the ledger is append-only.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..errors import ServiceError, ValidationError, error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import stock_movement_service
from ..decorators import require_auth, require_role


stock_movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")


def _limit_arg() -> int:
    raw = request.args.get("limit")
    if not raw:
        return 200
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError("limit must be an integer")
    if limit < 1 or limit > 1000:
        raise ValidationError("limit must be between 1 and 1000")
    return limit


@stock_movements_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def record_movement_route():
    """
    Body: {"item": id, "type": "Purchase|Sale|Return|Adjustment",
           "quantityChange": int, "notes": str}
    """
    data = request.get_json(silent=True) or {}
    try:
        movement = stock_movement_service.record_stock_movement(
            item_id=data.get("item", data.get("item_id")),
            movement_type=data.get("type"),
            quantity_change=data.get("quantityChange", data.get("quantity_change")),
            user_id=g.current_user.id,
            notes=data.get("notes"),
        )
        return jsonify({"movement": movement.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500


@stock_movements_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def list_movements_route():
    try:
        movements = stock_movement_service.list_stock_movements(limit=_limit_arg())
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except ServiceError as e:
        return error_response(e)


@stock_movements_bp.get("/item/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def list_item_movements_route(item_id: int):
    try:
        movements = stock_movement_service.list_stock_movements(item_id=item_id, limit=_limit_arg())
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except ServiceError as e:
        return error_response(e)


@stock_movements_bp.get("/<int:movement_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def get_movement_route(movement_id: int):
    try:
        movement = stock_movement_service.get_stock_movement(movement_id)
        return jsonify({"movement": movement.to_dict()}), 200
    except ServiceError as e:
        return error_response(e)


@stock_movements_bp.patch("/<int:movement_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_movement_notes_route(movement_id: int):
    """Only notes may change; any other field is rejected."""
    data = request.get_json(silent=True) or {}
    try:
        extra = sorted(set(data) - {"notes"})
        if extra:
            raise ValidationError(f"Field not allowed: {', '.join(extra)}")
        if "notes" not in data:
            raise ValidationError("notes is required")
        movement = stock_movement_service.update_movement_notes(movement_id, data.get("notes"))
        return jsonify({"movement": movement.to_dict()}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update stock movement %s", movement_id)
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500
