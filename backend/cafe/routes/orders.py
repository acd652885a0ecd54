# Overview: Flask API routes for order placement, cancellation and line changes.

# backend/cafe/routes/orders.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import FulfillmentError
from ..models.orders import STATUS_FULFILLED, STATUS_CANCELLED
from ..services import fulfillment_engine, ledger
from ..validation import (
    ValidationError,
    coerce_int,
    parse_cart_lines,
    require_payload,
    required,
)


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/")
def place_order_route():
    """
    Place and fulfill an order in one step.

    Body: {"payment_channel": "CARD", "lines": [{"item_id": 1, "quantity": 2, "unit_price": 4500}]}
    unit_price is optional and defaults to the item's current price.
    """
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "payment_channel")
        lines = parse_cart_lines(data, with_prices=True)

        order = fulfillment_engine().place_order(lines, data["payment_channel"])
        return jsonify({"order": order.to_dict(include_lines=True)}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to place order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/")
def list_orders_route():
    status = request.args.get("status")
    if status and status.upper() not in (STATUS_FULFILLED, STATUS_CANCELLED):
        return jsonify({"error": "status must be FULFILLED or CANCELLED"}), 400
    limit = request.args.get("limit", default=100, type=int)
    if limit <= 0 or limit > 500:
        return jsonify({"error": "limit must be between 1 and 500"}), 400

    orders = fulfillment_engine().list_orders(status=status.upper() if status else None, limit=limit)
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    order = fulfillment_engine().get_order(order_id)
    entries = ledger().entries_for_order(order_id)
    return jsonify({
        "order": order.to_dict(include_lines=True),
        "ledger": [e.to_dict() for e in entries],
    }), 200


@orders_bp.post("/<int:order_id>/cancel")
def cancel_order_route(order_id: int):
    try:
        order = fulfillment_engine().cancel_order(order_id)
        return jsonify({"order": order.to_dict(include_lines=True)}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/lines/<int:line_id>")
def change_line_quantity_route(order_id: int, line_id: int):
    """Body: {"quantity": n}. A quantity of 0 removes the line."""
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "quantity")
        quantity = coerce_int(data["quantity"], "quantity")

        order = fulfillment_engine().change_line_quantity(order_id, line_id, quantity)
        return jsonify({"order": order.to_dict(include_lines=True)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to change order line quantity")
        return jsonify({"error": "Internal server error"}), 500
