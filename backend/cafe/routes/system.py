# backend/cafe/routes/system.py
"""
System health endpoint.

Reports database connectivity plus a few row counts useful when
debugging a deployment.
"""

import time
from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import Ingredient, MenuItem, Order
from cafe.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        ingredient_count = db.session.query(Ingredient).filter_by(is_active=True).count()
        item_count = db.session.query(MenuItem).filter_by(is_active=True).count()
        order_count = db.session.query(Order).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "ingredients": ingredient_count,
                "menu_items": item_count,
                "orders": order_count,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "time": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return jsonify(body), 200 if healthy else 503
