from __future__ import annotations

from ..extensions import db
from cafe.time_utils import to_utc_z, to_iso_date


STATUS_FULFILLED = "FULFILLED"
STATUS_CANCELLED = "CANCELLED"


class Order(db.Model):
    """
    Fulfilled customer order.

    Only FULFILLED orders are persisted (a rejected checkout leaves nothing behind).
    total_amount always equals the sum of the current lines' quantity * unit_price.
    expected_settlement_date is stamped once at placement; is_settled/settled_at
    move monotonically from unsettled to settled.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_settlement_pending", "is_settled", "expected_settlement_date"),
        db.Index("ix_orders_status_placed", "status", "placed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    placed_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_FULFILLED, index=True)

    # Minor currency units
    total_amount = db.Column(db.Integer, nullable=False, default=0)

    payment_channel = db.Column(db.String(16), nullable=False, index=True)

    expected_settlement_date = db.Column(db.Date, nullable=False)
    is_settled = db.Column(db.Boolean, nullable=False, default=False)
    settled_at = db.Column(db.Date, nullable=True)

    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        order_by="OrderLine.id",
    )

    @property
    def reference(self) -> str:
        return f"ORDER-{self.id}"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "reference": self.reference,
            "placed_at": to_utc_z(self.placed_at),
            "status": self.status,
            "total_amount": self.total_amount,
            "payment_channel": self.payment_channel,
            "expected_settlement_date": to_iso_date(self.expected_settlement_date),
            "is_settled": self.is_settled,
            "settled_at": to_iso_date(self.settled_at),
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """One item on an order; unit_price is captured at order time."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
        db.CheckConstraint("unit_price >= 0", name="ck_order_lines_unit_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)

    item = db.relationship("MenuItem")

    @property
    def line_total(self) -> int:
        return self.quantity * self.unit_price

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
        }
