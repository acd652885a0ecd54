# Overview: Expected deposit dates per payment channel, pending buckets and idempotent settlement.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Mapping

from ..extensions import db
from ..models import Order
from ..models.orders import STATUS_FULFILLED
from ..errors import InvalidPaymentChannel, InvalidState, NotFound
from ..config import DEFAULT_SETTLEMENT_BUSINESS_DAYS
from cafe.time_utils import utcnow, local_date, add_business_days, to_iso_date, to_utc_z
from .aggregation import group_and_sum
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)
"""
Settlement Invariants (authoritative)

- expected_settlement_date = local order date + N business days (Mon-Fri),
  N fixed per channel. Computed once at placement, never recomputed.
- Only FULFILLED, unsettled orders are pending. Cancelled orders never settle.
- Settlement is monotonic: is_settled goes false -> true once and settled_at is
  stamped only on that transition. Repeating a settle call is a no-op.
- Settling a bucket is one conditional UPDATE, never read-then-write per row.
"""


@dataclass
class SettlementBucket:
    date: date
    total_amount: int
    orders: list[Order] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "date": to_iso_date(self.date),
            "total_amount": self.total_amount,
            "order_count": len(self.orders),
            "orders": [
                {
                    "id": o.id,
                    "payment_channel": o.payment_channel,
                    "amount": o.total_amount,
                    "placed_at": to_utc_z(o.placed_at),
                }
                for o in self.orders
            ],
        }


class SettlementScheduler:
    def __init__(
        self,
        *,
        session=None,
        clock: Callable[[], datetime] | None = None,
        business_days: Mapping[str, int] | None = None,
        timezone: str = "UTC",
        retry_attempts: int = 3,
    ):
        self.session = session if session is not None else db.session
        self.clock = clock or utcnow
        self.business_days = dict(business_days or DEFAULT_SETTLEMENT_BUSINESS_DAYS)
        self.timezone = timezone
        self.retry_attempts = retry_attempts

    @property
    def channels(self) -> list[str]:
        return sorted(self.business_days)

    def today(self) -> date:
        return local_date(self.clock(), self.timezone)

    def normalize_channel(self, payment_channel: str | None) -> str:
        channel = (payment_channel or "").strip().upper()
        if channel not in self.business_days:
            raise InvalidPaymentChannel(
                f"Unknown payment channel {payment_channel!r}",
                details={"payment_channel": payment_channel, "allowed": self.channels},
            )
        return channel

    def business_days_for(self, payment_channel: str) -> int:
        return self.business_days[self.normalize_channel(payment_channel)]

    def compute_expected_settlement_date(self, order_timestamp: datetime | date, payment_channel: str) -> date:
        """
        Walk forward N business days from the order's local calendar date.

        A datetime is read as UTC-naive and converted to the business timezone;
        a plain date is used as-is.
        """
        days = self.business_days_for(payment_channel)
        if isinstance(order_timestamp, datetime):
            start = local_date(order_timestamp, self.timezone)
        else:
            start = order_timestamp
        return add_business_days(start, days)

    def _pending_query(self):
        return self.session.query(Order).filter(
            Order.status == STATUS_FULFILLED,
            Order.is_settled.is_(False),
        )

    def get_pending_settlement_buckets(self) -> list[SettlementBucket]:
        orders = (
            self._pending_query()
            .order_by(Order.expected_settlement_date, Order.placed_at, Order.id)
            .all()
        )
        groups = group_and_sum(
            orders,
            key=lambda o: o.expected_settlement_date,
            amount=lambda o: o.total_amount,
        )
        return [
            SettlementBucket(date=g.key, total_amount=g.total, orders=g.records)
            for g in groups
        ]

    def pending_total(self) -> int:
        return sum(bucket.total_amount for bucket in self.get_pending_settlement_buckets())

    def mark_order_settled(self, order_id: int, settled_date: date | None = None) -> Order:
        """Settle one order. Already-settled orders are returned unchanged."""
        def _op():
            order = lock_for_update(self.session.query(Order).filter_by(id=order_id)).first()
            if order is None:
                raise NotFound(f"Order {order_id} not found", details={"order_id": order_id})
            if order.is_settled:
                return order
            if order.status != STATUS_FULFILLED:
                raise InvalidState(
                    f"Cannot settle an order with status {order.status}",
                    details={"order_id": order_id, "status": order.status},
                )

            order.is_settled = True
            order.settled_at = settled_date or self.today()
            self.session.commit()
            logger.info("Order %s settled on %s", order.id, order.settled_at)
            return order

        try:
            return run_with_retry(_op, session=self.session, attempts=self.retry_attempts)
        except Exception:
            self.session.rollback()
            raise

    def mark_bucket_settled(self, bucket_date: date, settled_date: date | None = None) -> int:
        """
        Settle every pending order expected on bucket_date in one UPDATE.

        Returns the number of orders that actually moved to settled; an empty
        or already-settled bucket returns 0.
        """
        stamp = settled_date or self.today()

        def _op():
            count = (
                self._pending_query()
                .filter(Order.expected_settlement_date == bucket_date)
                .update(
                    {Order.is_settled: True, Order.settled_at: stamp},
                    synchronize_session="fetch",
                )
            )
            self.session.commit()
            return count

        try:
            count = run_with_retry(_op, session=self.session, attempts=self.retry_attempts)
        except Exception:
            self.session.rollback()
            raise
        logger.info("Settled %d orders for bucket %s", count, bucket_date)
        return count
