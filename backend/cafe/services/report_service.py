# Overview: Sales reporting over fulfilled orders (summary, monthly, popular items).

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import MenuItem, Order, OrderLine
from ..models.orders import STATUS_FULFILLED
from cafe.time_utils import local_date, week_start
from .aggregation import group_and_sum


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _fulfilled_orders(start: datetime | None = None, end: datetime | None = None) -> list[Order]:
    q = db.session.query(Order).filter(Order.status == STATUS_FULFILLED)
    if start is not None:
        q = q.filter(Order.placed_at >= start)
    if end is not None:
        q = q.filter(Order.placed_at < end)
    return q.order_by(Order.placed_at, Order.id).all()


def sales_summary(*, today: date, timezone: str = "UTC") -> dict:
    """
    Headline numbers for the dashboard.

    Periods are local calendar periods: today, the Monday-start week and the
    month containing `today`. Pending settlement counts unsettled orders only.
    """
    orders = _fulfilled_orders()

    by_day = {
        g.key: g.total
        for g in group_and_sum(orders, key=lambda o: local_date(o.placed_at, timezone), amount=lambda o: o.total_amount)
    }
    monday = week_start(today)
    month_start = today.replace(day=1)

    channels = group_and_sum(
        orders,
        key=lambda o: o.payment_channel,
        amount=lambda o: o.total_amount,
    )

    return {
        "total_sales": sum(by_day.values()),
        "pending_settlement": sum(o.total_amount for o in orders if not o.is_settled),
        "today_sales": by_day.get(today, 0),
        "this_week_sales": sum(v for d, v in by_day.items() if monday <= d <= today),
        "this_month_sales": sum(v for d, v in by_day.items() if month_start <= d <= today),
        "payment_channel_breakdown": [
            {"payment_channel": g.key, "amount": g.total, "count": g.count}
            for g in channels
        ],
    }


def monthly_sales(year: int, *, timezone: str = "UTC") -> list[dict]:
    if year < 1 or year > 9999:
        raise ReportError("year out of range")

    # Widen by a day on each side; exact bucketing happens on the local date
    start = datetime.combine(date(year, 1, 1), time.min) - timedelta(days=1)
    end = datetime.combine(date(year, 12, 31), time.min) + timedelta(days=2)
    orders = [
        o for o in _fulfilled_orders(start, end)
        if local_date(o.placed_at, timezone).year == year
    ]
    groups = {
        g.key: g
        for g in group_and_sum(
            orders,
            key=lambda o: local_date(o.placed_at, timezone).month,
            amount=lambda o: o.total_amount,
        )
    }
    return [
        {
            "month": month,
            "sales": groups[month].total if month in groups else 0,
            "orders": groups[month].count if month in groups else 0,
        }
        for month in range(1, 13)
    ]


def popular_items(limit: int = 10) -> list[dict]:
    if limit <= 0:
        raise ReportError("limit must be positive")

    rows = (
        db.session.query(
            MenuItem.id,
            MenuItem.name,
            func.coalesce(func.sum(OrderLine.quantity), 0).label("total_quantity"),
            func.coalesce(func.sum(OrderLine.quantity * OrderLine.unit_price), 0).label("total_revenue"),
        )
        .join(OrderLine, OrderLine.item_id == MenuItem.id)
        .join(Order, Order.id == OrderLine.order_id)
        .filter(Order.status == STATUS_FULFILLED)
        .group_by(MenuItem.id, MenuItem.name)
        .order_by(func.sum(OrderLine.quantity).desc(), MenuItem.name)
        .limit(limit)
        .all()
    )
    return [
        {
            "item_id": row.id,
            "item_name": row.name,
            "total_quantity": int(row.total_quantity or 0),
            "total_revenue": int(row.total_revenue or 0),
        }
        for row in rows
    ]
