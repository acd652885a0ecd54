from flask import Blueprint, current_app, jsonify, request

from cafe.services import report_service, settlement_scheduler
from cafe.validation import ValidationError, coerce_date


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
def summary_report():
    try:
        today = coerce_date(request.args.get("today"), "today") or settlement_scheduler().today()
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    report = report_service.sales_summary(today=today, timezone=current_app.config["BUSINESS_TIMEZONE"])
    return jsonify(report), 200


@reports_bp.get("/monthly")
def monthly_report():
    year = request.args.get("year", type=int)
    if not year:
        year = settlement_scheduler().today().year

    try:
        rows = report_service.monthly_sales(year, timezone=current_app.config["BUSINESS_TIMEZONE"])
        return jsonify({"year": year, "months": rows}), 200
    except report_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/popular")
def popular_items_report():
    limit = request.args.get("limit", default=10, type=int)

    try:
        rows = report_service.popular_items(limit)
        return jsonify({"items": rows}), 200
    except report_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
