# Overview: Append-only stock ledger; the only code path that writes StockLevel.current_quantity.

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ..extensions import db
from ..models import Ingredient, StockLevel, StockLedgerEntry
from ..models.inventory import CHANGE_IN, CHANGE_OUT, CHANGE_ADJUST, CHANGE_KINDS
from ..errors import ConsistencyViolation, InvalidQuantity, NotFound
from cafe.time_utils import utcnow
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)
"""
Stock Ledger Invariants (authoritative)

- StockLevel.current_quantity >= 0 at all times; enforced here, not only by callers.
- Every change appends exactly one StockLedgerEntry in the same DB transaction
  as the StockLevel update. Entries are never updated or deleted.
- delta_quantity > 0; direction comes from change_kind (IN adds, OUT removes,
  ADJUST is signed by the caller and recorded through before/after).
- Replaying entries in (created_at, id) order from zero reproduces current_quantity.
- record_change flushes but never commits; the calling operation owns the transaction.
"""

# Float quantities are rounded to this many places before comparison/storage
QUANTITY_PLACES = 6


def normalize_quantity(value: float) -> float:
    q = round(float(value), QUANTITY_PLACES)
    return 0.0 if q == 0 else q


class StockLedger:
    def __init__(self, *, session=None, clock: Callable[[], datetime] | None = None):
        self.session = session if session is not None else db.session
        self.clock = clock or utcnow

    def get_level(self, ingredient_id: int, *, lock: bool = False) -> StockLevel:
        query = self.session.query(StockLevel).filter_by(ingredient_id=ingredient_id)
        if lock:
            query = lock_for_update(query)
        level = query.first()
        if level is None:
            raise NotFound(
                f"Stock level for ingredient {ingredient_id} not found",
                details={"ingredient_id": ingredient_id},
            )
        return level

    def record_change(
        self,
        ingredient_id: int,
        kind: str,
        delta: float,
        note: str | None = None,
        cause_order_id: int | None = None,
    ) -> StockLedgerEntry:
        """
        Apply one stock change and append its ledger row.

        For IN and OUT, delta must be positive. For ADJUST the sign of delta
        gives the direction. A change that would leave the level negative is
        refused with ConsistencyViolation before anything is written.
        """
        if kind not in CHANGE_KINDS:
            raise InvalidQuantity(f"Unknown change kind {kind!r}")

        delta = normalize_quantity(delta)
        if kind == CHANGE_ADJUST:
            if delta == 0:
                raise InvalidQuantity("Adjustment delta must be non-zero")
            signed = delta
        else:
            if delta <= 0:
                raise InvalidQuantity(
                    "Stock change quantity must be positive",
                    details={"ingredient_id": ingredient_id, "delta": delta},
                )
            signed = delta if kind == CHANGE_IN else -delta

        level = self.get_level(ingredient_id, lock=True)
        before = normalize_quantity(level.current_quantity)
        after = normalize_quantity(before + signed)

        if after < 0:
            logger.warning(
                "Refusing %s of %s on ingredient %s: level %s would become %s",
                kind, delta, ingredient_id, before, after,
            )
            raise ConsistencyViolation(
                "Stock change would make quantity negative",
                details={
                    "ingredient_id": ingredient_id,
                    "change_kind": kind,
                    "delta": abs(signed),
                    "current": before,
                },
            )

        now = self.clock()
        level.current_quantity = after
        level.last_updated = now

        entry = StockLedgerEntry(
            ingredient_id=ingredient_id,
            change_kind=kind,
            delta_quantity=abs(signed),
            quantity_before=before,
            quantity_after=after,
            order_id=cause_order_id,
            note=note,
            created_at=now,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def history(
        self,
        *,
        ingredient_id: int | None = None,
        order_id: int | None = None,
        limit: int = 200,
    ) -> list[StockLedgerEntry]:
        q = self.session.query(StockLedgerEntry)
        if ingredient_id is not None:
            q = q.filter(StockLedgerEntry.ingredient_id == ingredient_id)
        if order_id is not None:
            q = q.filter(StockLedgerEntry.order_id == order_id)
        q = q.order_by(StockLedgerEntry.created_at.desc(), StockLedgerEntry.id.desc())
        return q.limit(limit).all()

    def entries_for_order(self, order_id: int) -> list[StockLedgerEntry]:
        return (
            self.session.query(StockLedgerEntry)
            .filter(StockLedgerEntry.order_id == order_id)
            .order_by(StockLedgerEntry.created_at, StockLedgerEntry.id)
            .all()
        )

    def net_consumption_for_order(self, order_id: int) -> dict[int, float]:
        """Ingredient id -> quantity this order still holds (OUT minus IN)."""
        net: dict[int, float] = {}
        for entry in self.entries_for_order(order_id):
            if entry.change_kind == CHANGE_OUT:
                net[entry.ingredient_id] = net.get(entry.ingredient_id, 0.0) + entry.delta_quantity
            elif entry.change_kind == CHANGE_IN:
                net[entry.ingredient_id] = net.get(entry.ingredient_id, 0.0) - entry.delta_quantity
        return {k: normalize_quantity(v) for k, v in net.items()}

    def replay_quantity(self, ingredient_id: int) -> float:
        """Rebuild the level from zero by replaying the ledger in time order."""
        entries = (
            self.session.query(StockLedgerEntry)
            .filter(StockLedgerEntry.ingredient_id == ingredient_id)
            .order_by(StockLedgerEntry.created_at, StockLedgerEntry.id)
            .all()
        )
        quantity = 0.0
        for entry in entries:
            if entry.change_kind == CHANGE_IN:
                quantity += entry.delta_quantity
            elif entry.change_kind == CHANGE_OUT:
                quantity -= entry.delta_quantity
            else:
                quantity += entry.signed_delta
        return normalize_quantity(quantity)

    def find_drift(self) -> list[dict]:
        """Stock rows whose stored level differs from the ledger replay."""
        drift = []
        levels = (
            self.session.query(StockLevel)
            .join(Ingredient, Ingredient.id == StockLevel.ingredient_id)
            .order_by(Ingredient.name)
            .all()
        )
        for level in levels:
            replayed = self.replay_quantity(level.ingredient_id)
            stored = normalize_quantity(level.current_quantity)
            if replayed != stored:
                drift.append({
                    "ingredient_id": level.ingredient_id,
                    "ingredient_name": level.ingredient.name,
                    "stored": stored,
                    "replayed": replayed,
                })
        return drift
