# Overview: Flask API routes for deposit settlement (pending buckets, settle order/bucket).

from flask import Blueprint, request, jsonify, current_app

from ..errors import FulfillmentError
from ..services import settlement_scheduler
from ..validation import ValidationError, coerce_date, require_payload, required
from cafe.time_utils import to_iso_date


settlements_bp = Blueprint("settlements", __name__, url_prefix="/api/settlements")


@settlements_bp.get("/channels")
def channels_route():
    scheduler = settlement_scheduler()
    return jsonify({
        "channels": [
            {"payment_channel": c, "business_days": scheduler.business_days[c]}
            for c in scheduler.channels
        ]
    }), 200


@settlements_bp.get("/pending")
def pending_route():
    buckets = settlement_scheduler().get_pending_settlement_buckets()
    return jsonify({
        "total_amount": sum(b.total_amount for b in buckets),
        "buckets": [b.to_dict() for b in buckets],
    }), 200


@settlements_bp.get("/expected")
def expected_date_route():
    """Preview: ?channel=CARD&date=2024-01-05 -> expected deposit date."""
    try:
        channel = request.args.get("channel")
        if not channel:
            return jsonify({"error": "channel is required"}), 400
        scheduler = settlement_scheduler()
        start = coerce_date(request.args.get("date"), "date") or scheduler.today()
        expected = scheduler.compute_expected_settlement_date(start, channel)
        return jsonify({
            "payment_channel": scheduler.normalize_channel(channel),
            "date": to_iso_date(start),
            "expected_settlement_date": to_iso_date(expected),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status


@settlements_bp.post("/orders/<int:order_id>/settle")
def settle_order_route(order_id: int):
    """Idempotent: settling a settled order returns it unchanged."""
    try:
        data = require_payload(request.get_json(silent=True))
        settled_date = coerce_date(data.get("settled_date"), "settled_date")
        order = settlement_scheduler().mark_order_settled(order_id, settled_date)
        return jsonify({"order": order.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to settle order")
        return jsonify({"error": "Internal server error"}), 500


@settlements_bp.post("/buckets/settle")
def settle_bucket_route():
    """Body: {"date": "YYYY-MM-DD", "settled_date": optional}. Returns how many orders moved."""
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "date")
        bucket_date = coerce_date(data["date"], "date")
        settled_date = coerce_date(data.get("settled_date"), "settled_date")

        count = settlement_scheduler().mark_bucket_settled(bucket_date, settled_date)
        return jsonify({"date": to_iso_date(bucket_date), "settled_count": count}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to settle bucket")
        return jsonify({"error": "Internal server error"}), 500
