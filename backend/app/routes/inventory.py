# backend/app/routes/inventory.py
"""
Inventory catalog routes.

SECURITY: All routes require authentication.
- Create: Admin, Manager
- View/list/low-stock: any role
- Update/delete: Admin

quantity is accepted on create only. Later stock changes go through
/api/stock-movements so every change has a ledger row.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..errors import ServiceError, ValidationError, error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import inventory_service
from ..validation import validate_item_create, validate_item_update
from ..decorators import require_auth, require_role


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _int_arg(name: str, default=None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@inventory_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_item_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_item_create(payload)
        item = inventory_service.create_item(author_id=g.current_user.id, **patch)
        return jsonify({"item": item.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500


@inventory_bp.get("")
@require_auth
def list_items_route():
    """
    Query params: name (substring), category, min_quantity, max_quantity,
    page (default 1), limit (default 20, max 100).
    """
    try:
        result = inventory_service.list_items(
            name=request.args.get("name"),
            category=request.args.get("category"),
            min_quantity=_int_arg("min_quantity"),
            max_quantity=_int_arg("max_quantity"),
            page=_int_arg("page", 1),
            limit=_int_arg("limit", inventory_service.DEFAULT_PAGE_SIZE),
        )
        result["items"] = [item.to_dict() for item in result["items"]]
        return jsonify(result), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list inventory items")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    items = inventory_service.list_low_stock_items()
    return jsonify({"items": [item.to_dict() for item in items]}), 200


@inventory_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        return jsonify({"item": inventory_service.get_item(item_id).to_dict()}), 200
    except ServiceError as e:
        return error_response(e)


@inventory_bp.put("/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_item_update(payload)
        item = inventory_service.update_item(item_id, patch)
        return jsonify({"item": item.to_dict()}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update inventory item %s", item_id)
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500


@inventory_bp.delete("/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_item_route(item_id: int):
    try:
        inventory_service.delete_item(item_id)
        return jsonify({"message": "Inventory item deleted successfully"}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete inventory item %s", item_id)
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500
