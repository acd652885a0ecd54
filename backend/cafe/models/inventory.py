from __future__ import annotations

from ..extensions import db
from cafe.time_utils import to_utc_z


CHANGE_IN = "IN"
CHANGE_OUT = "OUT"
CHANGE_ADJUST = "ADJUST"
CHANGE_KINDS = (CHANGE_IN, CHANGE_OUT, CHANGE_ADJUST)


class StockLevel(db.Model):
    """
    Current and minimum quantity for one ingredient (1:1, co-created at zero).

    Mutated only through StockLedger.record_change. version_id gives optimistic
    concurrency: two writers holding the same version cannot both commit.
    """
    __tablename__ = "stock_levels"
    __table_args__ = (
        db.UniqueConstraint("ingredient_id", name="uq_stock_levels_ingredient"),
        db.CheckConstraint("current_quantity >= 0", name="ck_stock_levels_current_non_negative"),
        db.CheckConstraint("minimum_quantity >= 0", name="ck_stock_levels_minimum_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=False)
    current_quantity = db.Column(db.Float, nullable=False, default=0)
    minimum_quantity = db.Column(db.Float, nullable=False, default=0)
    last_updated = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    ingredient = db.relationship("Ingredient", backref=db.backref("stock_level", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low(self) -> bool:
        return self.current_quantity <= self.minimum_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient.name if self.ingredient else None,
            "ingredient_unit": self.ingredient.unit if self.ingredient else None,
            "current_quantity": self.current_quantity,
            "minimum_quantity": self.minimum_quantity,
            "is_low": self.is_low,
            "last_updated": to_utc_z(self.last_updated),
            "version_id": self.version_id,
        }


class StockLedgerEntry(db.Model):
    """
    Append-only record of one stock change and its cause.

    delta_quantity is always positive; direction comes from change_kind
    (ADJUST direction is read from quantity_before/quantity_after).
    Rows are never updated or deleted.
    """
    __tablename__ = "stock_ledger_entries"
    __table_args__ = (
        db.Index("ix_stock_ledger_ingredient_created", "ingredient_id", "created_at"),
        db.CheckConstraint("delta_quantity > 0", name="ck_stock_ledger_delta_positive"),
        db.CheckConstraint("quantity_after >= 0", name="ck_stock_ledger_after_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=False, index=True)
    change_kind = db.Column(db.String(8), nullable=False, index=True)
    delta_quantity = db.Column(db.Float, nullable=False)
    quantity_before = db.Column(db.Float, nullable=False)
    quantity_after = db.Column(db.Float, nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    ingredient = db.relationship("Ingredient")

    @property
    def signed_delta(self) -> float:
        return self.quantity_after - self.quantity_before

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient.name if self.ingredient else None,
            "change_kind": self.change_kind,
            "delta_quantity": self.delta_quantity,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "order_id": self.order_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
