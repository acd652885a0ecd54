# Overview: Flask API routes for employees, work records and weekly payroll.

from flask import Blueprint, request, jsonify, current_app

from ..errors import FulfillmentError
from ..models.payroll import SALARY_HOURLY
from ..services import payroll_service, settlement_scheduler
from ..validation import (
    ValidationError,
    coerce_date,
    coerce_int,
    coerce_price,
    coerce_time,
    require_payload,
    required,
)
from cafe.time_utils import to_iso_date


payroll_bp = Blueprint("payroll", __name__, url_prefix="/api/payroll")


@payroll_bp.get("/employees")
def list_employees_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    employees = payroll_service.list_employees(include_inactive=include_inactive)
    return jsonify({"employees": [e.to_dict() for e in employees]}), 200


@payroll_bp.post("/employees")
def create_employee_route():
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "full_name")
        employee = payroll_service.create_employee(
            full_name=data["full_name"],
            position=data.get("position") or "STAFF",
            salary_type=data.get("salary_type") or SALARY_HOURLY,
            hourly_wage=coerce_price(data.get("hourly_wage", 0), "hourly_wage"),
            monthly_salary=coerce_price(data.get("monthly_salary", 0), "monthly_salary"),
        )
        return jsonify({"employee": employee.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create employee")
        return jsonify({"error": "Internal server error"}), 500


@payroll_bp.delete("/employees/<int:employee_id>")
def deactivate_employee_route(employee_id: int):
    employee = payroll_service.deactivate_employee(employee_id)
    return jsonify({"employee": employee.to_dict()}), 200


@payroll_bp.get("/work-records")
def list_work_records_route():
    try:
        start = coerce_date(request.args.get("start"), "start")
        end = coerce_date(request.args.get("end"), "end")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    if not start or not end:
        return jsonify({"error": "start and end are required"}), 400
    if end < start:
        return jsonify({"error": "end must not be before start"}), 400

    records = payroll_service.list_work_records(
        start=start,
        end=end,
        employee_id=request.args.get("employee_id", type=int),
    )
    return jsonify({"records": [r.to_dict() for r in records]}), 200


@payroll_bp.post("/work-records")
def record_work_route():
    """Body: {"employee_id", "work_date", "start_time": "HH:MM", "end_time": "HH:MM", "break_minutes"}"""
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "employee_id", "work_date", "start_time", "end_time")
        record = payroll_service.record_work(
            employee_id=coerce_int(data["employee_id"], "employee_id"),
            work_date=coerce_date(data["work_date"], "work_date"),
            start_time=coerce_time(data["start_time"], "start_time"),
            end_time=coerce_time(data["end_time"], "end_time"),
            break_minutes=coerce_int(data.get("break_minutes", 0), "break_minutes"),
            notes=data.get("notes"),
        )
        return jsonify({"record": record.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record work")
        return jsonify({"error": "Internal server error"}), 500


@payroll_bp.delete("/work-records/<int:record_id>")
def delete_work_record_route(record_id: int):
    payroll_service.delete_work_record(record_id)
    return jsonify({"deleted": record_id}), 200


@payroll_bp.get("/weekly")
def weekly_payroll_route():
    try:
        week_of = coerce_date(request.args.get("week_of"), "week_of") or settlement_scheduler().today()
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(payroll_service.weekly_payroll(week_of)), 200


@payroll_bp.get("/payday")
def payday_route():
    try:
        today = coerce_date(request.args.get("today"), "today") or settlement_scheduler().today()
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({
        "next_payday": to_iso_date(payroll_service.next_payday(today)),
        "days_until_payday": payroll_service.days_until_payday(today),
    }), 200
