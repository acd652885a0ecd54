# Overview: Manual stock administration (receive, adjust, minimums) on top of the stock ledger.

from __future__ import annotations

from ..extensions import db
from ..models import Ingredient, StockLevel, StockLedgerEntry
from ..models.inventory import CHANGE_IN, CHANGE_ADJUST
from ..errors import InvalidQuantity, NotFound
from .concurrency import run_with_retry
from .stock_ledger import StockLedger, normalize_quantity


def _ledger(ledger: StockLedger | None) -> StockLedger:
    return ledger or StockLedger()


def list_stock_levels() -> list[StockLevel]:
    return (
        db.session.query(StockLevel)
        .join(Ingredient, Ingredient.id == StockLevel.ingredient_id)
        .filter(Ingredient.is_active.is_(True))
        .order_by(Ingredient.name)
        .all()
    )


def get_stock_level(ingredient_id: int) -> StockLevel:
    return StockLedger().get_level(ingredient_id)


def low_stock_items() -> list[StockLevel]:
    """Rows at or below their minimum, most urgent first."""
    return (
        db.session.query(StockLevel)
        .join(Ingredient, Ingredient.id == StockLevel.ingredient_id)
        .filter(
            Ingredient.is_active.is_(True),
            StockLevel.current_quantity <= StockLevel.minimum_quantity,
        )
        .order_by(
            (StockLevel.current_quantity - StockLevel.minimum_quantity).asc(),
            Ingredient.name,
        )
        .all()
    )


def receive_stock(
    *,
    ingredient_id: int,
    quantity: float,
    note: str | None = None,
    ledger: StockLedger | None = None,
) -> StockLedgerEntry:
    """Goods in: append an IN entry and raise the level."""
    if quantity is None or quantity <= 0:
        raise InvalidQuantity(
            "Received quantity must be > 0",
            details={"ingredient_id": ingredient_id, "quantity": quantity},
        )
    ledger = _ledger(ledger)

    def _op():
        entry = ledger.record_change(ingredient_id, CHANGE_IN, quantity, note=note or "stock received")
        ledger.session.commit()
        return entry

    try:
        return run_with_retry(_op, session=ledger.session)
    except Exception:
        ledger.session.rollback()
        raise


def adjust_stock(
    *,
    ingredient_id: int,
    new_quantity: float,
    note: str | None = None,
    ledger: StockLedger | None = None,
) -> StockLedgerEntry | None:
    """
    Set an absolute level after a physical count. Records one ADJUST entry
    for the difference; returns None when the level is already correct.
    """
    if new_quantity is None or new_quantity < 0:
        raise InvalidQuantity(
            "Adjusted quantity must be >= 0",
            details={"ingredient_id": ingredient_id, "new_quantity": new_quantity},
        )
    ledger = _ledger(ledger)

    def _op():
        level = ledger.get_level(ingredient_id, lock=True)
        delta = normalize_quantity(new_quantity - level.current_quantity)
        if delta == 0:
            return None
        entry = ledger.record_change(ingredient_id, CHANGE_ADJUST, delta, note=note or "manual adjustment")
        ledger.session.commit()
        return entry

    try:
        return run_with_retry(_op, session=ledger.session)
    except Exception:
        ledger.session.rollback()
        raise


def set_minimum_quantity(*, ingredient_id: int, minimum_quantity: float) -> StockLevel:
    if minimum_quantity is None or minimum_quantity < 0:
        raise InvalidQuantity(
            "minimum_quantity must be >= 0",
            details={"ingredient_id": ingredient_id, "minimum_quantity": minimum_quantity},
        )
    level = db.session.query(StockLevel).filter_by(ingredient_id=ingredient_id).first()
    if level is None:
        raise NotFound(
            f"Stock level for ingredient {ingredient_id} not found",
            details={"ingredient_id": ingredient_id},
        )
    level.minimum_quantity = minimum_quantity
    db.session.commit()
    return level
