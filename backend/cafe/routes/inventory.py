# backend/cafe/routes/inventory.py
"""
Stock administration routes.

Every change goes through the stock ledger, so each response that mutates
stock returns the ledger entry it appended.
"""
from flask import Blueprint, request, jsonify, current_app

from ..errors import FulfillmentError
from ..services import inventory_service, ledger
from ..validation import ValidationError, coerce_number, require_payload, required


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/stock")
def list_stock_route():
    levels = inventory_service.list_stock_levels()
    return jsonify({"stock": [level.to_dict() for level in levels]}), 200


@inventory_bp.get("/stock/low")
def low_stock_route():
    levels = inventory_service.low_stock_items()
    return jsonify({"stock": [level.to_dict() for level in levels]}), 200


@inventory_bp.get("/stock/<int:ingredient_id>")
def get_stock_route(ingredient_id: int):
    level = inventory_service.get_stock_level(ingredient_id)
    return jsonify({"stock": level.to_dict()}), 200


@inventory_bp.post("/stock/<int:ingredient_id>/receive")
def receive_stock_route(ingredient_id: int):
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "quantity")
        entry = inventory_service.receive_stock(
            ingredient_id=ingredient_id,
            quantity=coerce_number(data["quantity"], "quantity"),
            note=data.get("note"),
        )
        return jsonify({"entry": entry.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/stock/<int:ingredient_id>/adjust")
def adjust_stock_route(ingredient_id: int):
    """Set the absolute level after a physical count."""
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "new_quantity")
        entry = inventory_service.adjust_stock(
            ingredient_id=ingredient_id,
            new_quantity=coerce_number(data["new_quantity"], "new_quantity"),
            note=data.get("note"),
        )
        if entry is None:
            return jsonify({"entry": None, "unchanged": True}), 200
        return jsonify({"entry": entry.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.put("/stock/<int:ingredient_id>/minimum")
def set_minimum_route(ingredient_id: int):
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "minimum_quantity")
        level = inventory_service.set_minimum_quantity(
            ingredient_id=ingredient_id,
            minimum_quantity=coerce_number(data["minimum_quantity"], "minimum_quantity"),
        )
        return jsonify({"stock": level.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to set minimum quantity")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/history")
def history_route():
    ingredient_id = request.args.get("ingredient_id", type=int)
    order_id = request.args.get("order_id", type=int)
    limit = request.args.get("limit", default=200, type=int)
    if limit <= 0 or limit > 1000:
        return jsonify({"error": "limit must be between 1 and 1000"}), 400

    entries = ledger().history(ingredient_id=ingredient_id, order_id=order_id, limit=limit)
    return jsonify({"entries": [e.to_dict() for e in entries]}), 200


@inventory_bp.get("/verify")
def verify_route():
    """Ledger replay check: lists stock rows whose stored level disagrees with history."""
    drift = ledger().find_drift()
    return jsonify({"consistent": not drift, "drift": drift}), 200
