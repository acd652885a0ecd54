# Overview: Work records and weekly payroll (regular, overtime and weekly holiday pay).

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from ..extensions import db
from ..models import Employee, WorkRecord
from ..models.payroll import SALARY_HOURLY, SALARY_MONTHLY
from ..errors import DuplicateEntry, InvalidQuantity, NotFound
from ..validation import ValidationError
from cafe.time_utils import week_start as monday_of
from .aggregation import group_and_sum

logger = logging.getLogger(__name__)
"""
Payroll rules

- Weekly hours are the sum of WorkRecord.total_hours for Monday..Sunday.
- Hourly staff: first 40h at wage, hours beyond 40 at 1.5x wage. Weekly holiday
  pay is 8h of wage from 15h/week upward, pro-rated (h/40 * 8h) below that.
- Monthly staff: a month is 4.33 weeks. Overtime beyond 40h uses the salary's
  implied hourly rate at 1.5x. Holiday pay is included in the salary (0).
- Payday is the 25th; after the 25th it rolls to next month's 25th.
"""

REGULAR_HOURS = 40
OVERTIME_MULTIPLIER = 1.5
HOLIDAY_PAY_THRESHOLD_HOURS = 15
HOLIDAY_PAY_HOURS = 8
WEEKS_PER_MONTH = 4.33
PAYDAY = 25


def _money(value: float) -> float:
    return round(value, 2)


def create_employee(
    *,
    full_name: str,
    position: str = "STAFF",
    salary_type: str = SALARY_HOURLY,
    hourly_wage: int = 0,
    monthly_salary: int = 0,
) -> Employee:
    full_name = (full_name or "").strip()
    if not full_name:
        raise ValidationError("full_name is required")
    salary_type = (salary_type or "").strip().upper()
    if salary_type not in (SALARY_HOURLY, SALARY_MONTHLY):
        raise ValidationError("salary_type must be HOURLY or MONTHLY")
    if hourly_wage < 0 or monthly_salary < 0:
        raise ValidationError("wages cannot be negative")

    employee = Employee(
        full_name=full_name,
        position=(position or "STAFF").strip(),
        salary_type=salary_type,
        hourly_wage=hourly_wage,
        monthly_salary=monthly_salary,
        is_active=True,
    )
    db.session.add(employee)
    db.session.commit()
    return employee


def get_employee(employee_id: int) -> Employee:
    employee = db.session.query(Employee).filter_by(id=employee_id).first()
    if employee is None:
        raise NotFound(f"Employee {employee_id} not found", details={"employee_id": employee_id})
    return employee


def list_employees(*, include_inactive: bool = False) -> list[Employee]:
    q = db.session.query(Employee)
    if not include_inactive:
        q = q.filter(Employee.is_active.is_(True))
    return q.order_by(Employee.full_name, Employee.id).all()


def deactivate_employee(employee_id: int) -> Employee:
    employee = get_employee(employee_id)
    employee.is_active = False
    db.session.commit()
    return employee


def shift_hours(start: time, end: time, break_minutes: int = 0) -> float:
    """Worked hours for one shift; an end at or before the start wraps past midnight."""
    if break_minutes < 0:
        raise InvalidQuantity("break_minutes cannot be negative", details={"break_minutes": break_minutes})
    anchor = date(2000, 1, 1)
    start_dt = datetime.combine(anchor, start)
    end_dt = datetime.combine(anchor, end)
    if end_dt <= start_dt:
        end_dt += timedelta(days=1)
    minutes = (end_dt - start_dt).total_seconds() / 60 - break_minutes
    return round(minutes / 60, 2)


def record_work(
    *,
    employee_id: int,
    work_date: date,
    start_time: time,
    end_time: time,
    break_minutes: int = 0,
    notes: str | None = None,
) -> WorkRecord:
    employee = get_employee(employee_id)

    hours = shift_hours(start_time, end_time, break_minutes)
    if hours <= 0:
        raise InvalidQuantity(
            "Worked hours must be positive",
            details={"employee_id": employee_id, "work_date": work_date.isoformat(), "total_hours": hours},
        )

    existing = db.session.query(WorkRecord).filter_by(employee_id=employee.id, work_date=work_date).first()
    if existing is not None:
        raise DuplicateEntry(
            f"{employee.full_name} already has a work record on {work_date.isoformat()}",
            details={"employee_id": employee.id, "work_date": work_date.isoformat()},
        )

    record = WorkRecord(
        employee_id=employee.id,
        work_date=work_date,
        start_time=start_time,
        end_time=end_time,
        break_minutes=break_minutes,
        total_hours=hours,
        notes=notes,
    )
    db.session.add(record)
    db.session.commit()
    logger.info("Recorded %.2fh for employee %s on %s", hours, employee.id, work_date)
    return record


def delete_work_record(record_id: int) -> None:
    record = db.session.query(WorkRecord).filter_by(id=record_id).first()
    if record is None:
        raise NotFound(f"Work record {record_id} not found", details={"record_id": record_id})
    db.session.delete(record)
    db.session.commit()


def list_work_records(*, start: date, end: date, employee_id: int | None = None) -> list[WorkRecord]:
    """Records with start <= work_date <= end."""
    q = db.session.query(WorkRecord).filter(WorkRecord.work_date >= start, WorkRecord.work_date <= end)
    if employee_id is not None:
        q = q.filter(WorkRecord.employee_id == employee_id)
    return q.order_by(WorkRecord.work_date, WorkRecord.employee_id).all()


def weekly_holiday_pay(weekly_hours: float, hourly_wage: float) -> float:
    if weekly_hours >= HOLIDAY_PAY_THRESHOLD_HOURS:
        return hourly_wage * HOLIDAY_PAY_HOURS
    if weekly_hours > 0:
        return (weekly_hours / REGULAR_HOURS) * hourly_wage * HOLIDAY_PAY_HOURS
    return 0.0


def hourly_weekly_pay(weekly_hours: float, hourly_wage: float) -> dict:
    regular_hours = min(weekly_hours, REGULAR_HOURS)
    overtime_hours = max(weekly_hours - REGULAR_HOURS, 0)

    regular_pay = regular_hours * hourly_wage
    overtime_pay = overtime_hours * hourly_wage * OVERTIME_MULTIPLIER
    holiday_pay = weekly_holiday_pay(weekly_hours, hourly_wage)
    return {
        "regular_pay": _money(regular_pay),
        "overtime_pay": _money(overtime_pay),
        "weekly_holiday_pay": _money(holiday_pay),
        "total_pay": _money(regular_pay + overtime_pay + holiday_pay),
    }


def monthly_weekly_pay(monthly_salary: float, weekly_hours: float = REGULAR_HOURS) -> dict:
    base_pay = monthly_salary / WEEKS_PER_MONTH
    overtime_hours = max(weekly_hours - REGULAR_HOURS, 0)
    hourly_rate = monthly_salary / (REGULAR_HOURS * WEEKS_PER_MONTH)
    overtime_pay = overtime_hours * hourly_rate * OVERTIME_MULTIPLIER
    return {
        "regular_pay": _money(base_pay),
        "overtime_pay": _money(overtime_pay),
        "weekly_holiday_pay": 0.0,
        "total_pay": _money(base_pay + overtime_pay),
    }


def employee_weekly_pay(employee: Employee, weekly_hours: float) -> dict:
    if employee.salary_type == SALARY_MONTHLY:
        pay = monthly_weekly_pay(employee.monthly_salary or 0, weekly_hours)
    else:
        pay = hourly_weekly_pay(weekly_hours, employee.hourly_wage or 0)

    return {
        "employee_id": employee.id,
        "full_name": employee.full_name,
        "position": employee.position,
        "salary_type": employee.salary_type,
        "weekly_hours": round(weekly_hours, 2),
        "regular_hours": round(min(weekly_hours, REGULAR_HOURS), 2),
        "overtime_hours": round(max(weekly_hours - REGULAR_HOURS, 0), 2),
        **pay,
    }


def weekly_payroll(week_of: date) -> dict:
    """
    Pay breakdown for every active employee for the Monday-start week
    containing week_of. Employees with no records still appear (0 hours).
    """
    start = monday_of(week_of)
    end = start + timedelta(days=6)

    records = list_work_records(start=start, end=end)
    hours_by_employee = {
        g.key: g.total
        for g in group_and_sum(records, key=lambda r: r.employee_id, amount=lambda r: r.total_hours)
    }

    rows = [
        employee_weekly_pay(employee, hours_by_employee.get(employee.id, 0.0))
        for employee in list_employees()
    ]
    total_pay = sum(r["total_pay"] for r in rows)
    total_holiday = sum(r["weekly_holiday_pay"] for r in rows)

    return {
        "week_start": start.isoformat(),
        "week_end": end.isoformat(),
        "total_employees": len(rows),
        "total_weekly_payroll": _money(total_pay),
        "total_holiday_pay": _money(total_holiday),
        "monthly_projection": monthly_projection(total_pay),
        "employees": rows,
    }


def monthly_projection(weekly_total: float) -> float:
    return _money(weekly_total * WEEKS_PER_MONTH)


def next_payday(today: date) -> date:
    if today.day > PAYDAY:
        if today.month == 12:
            return date(today.year + 1, 1, PAYDAY)
        return date(today.year, today.month + 1, PAYDAY)
    return today.replace(day=PAYDAY)


def days_until_payday(today: date) -> int:
    return (next_payday(today) - today).days
