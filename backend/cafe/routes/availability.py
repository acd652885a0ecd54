# Overview: Advisory cart availability check for the order screen.

from flask import Blueprint, request, jsonify

from ..services import availability_checker
from ..validation import parse_cart_lines, require_payload


availability_bp = Blueprint("availability", __name__, url_prefix="/api/availability")


@availability_bp.post("/check")
def check_cart_route():
    """
    Body: {"lines": [{"item_id": 1, "quantity": 2}, ...]}

    Read-only; nothing is reserved. Errors are mapped by the app-level handler.
    """
    data = require_payload(request.get_json(silent=True))
    lines = parse_cart_lines(data)
    result = availability_checker().check_cart((line["item_id"], line["quantity"]) for line in lines)
    return jsonify({
        "items": [availability.to_dict() for availability in result.values()],
        "all_available": all(a.available for a in result.values()),
    }), 200
