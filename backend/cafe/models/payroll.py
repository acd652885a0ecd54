from __future__ import annotations

from ..extensions import db
from cafe.time_utils import to_utc_z, to_iso_date


SALARY_HOURLY = "HOURLY"
SALARY_MONTHLY = "MONTHLY"


class Employee(db.Model):
    __tablename__ = "employees"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(128), nullable=False)
    position = db.Column(db.String(64), nullable=False, default="STAFF")

    # HOURLY or MONTHLY
    salary_type = db.Column(db.String(16), nullable=False, default=SALARY_HOURLY)
    hourly_wage = db.Column(db.Integer, nullable=False, default=0)
    monthly_salary = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "position": self.position,
            "salary_type": self.salary_type,
            "hourly_wage": self.hourly_wage,
            "monthly_salary": self.monthly_salary,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class WorkRecord(db.Model):
    """
    One worked shift per employee per day.

    total_hours excludes breaks and is computed when the record is written.
    """
    __tablename__ = "work_records"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "work_date", name="uq_work_records_employee_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    work_date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    break_minutes = db.Column(db.Integer, nullable=False, default=0)
    total_hours = db.Column(db.Float, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    employee = db.relationship("Employee", backref=db.backref("work_records", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "work_date": to_iso_date(self.work_date),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "break_minutes": self.break_minutes,
            "total_hours": self.total_hours,
            "notes": self.notes,
        }
