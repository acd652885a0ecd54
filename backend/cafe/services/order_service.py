# Overview: Order fulfillment engine; check-then-deduct checkout and compensating reversals.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Order, OrderLine, StockLevel
from ..models.inventory import CHANGE_IN, CHANGE_OUT
from ..models.orders import STATUS_FULFILLED, STATUS_CANCELLED
from ..errors import (
    ConsistencyViolation,
    InsufficientStock,
    InvalidQuantity,
    InvalidState,
    NotFound,
)
from cafe.time_utils import utcnow
from .catalog_service import RecipeCatalog, RecipeRequirement, UNORDERABLE_REASON
from .concurrency import lock_for_update, run_with_retry
from .settlement_service import SettlementScheduler
from .stock_ledger import StockLedger, normalize_quantity

logger = logging.getLogger(__name__)
"""
Order Fulfillment Invariants (authoritative)

Lifecycle:
- PENDING -> FULFILLED on success; PENDING -> REJECTED leaves nothing persisted
  (only FULFILLED orders are ever stored).
- FULFILLED -> CANCELLED (full reversal). Line reductions/removals are only
  allowed on FULFILLED orders.

Checkout:
- Live stock is re-validated for the whole order (pooled per ingredient) before
  any write. The first shortfall raises InsufficientStock and nothing changes.
- Order, lines, stock levels and ledger entries are flushed in one session
  transaction and committed once. Any failure rolls the whole unit back.
- Stock rows are versioned; a concurrent checkout that wins the race makes
  ours fail with StaleDataError, and the whole operation is retried from the
  live re-check. Exhausted retries surface as ConsistencyViolation.

Reversal:
- History is never rewritten. Cancellation and quantity decreases append IN
  entries tied to the order; increases append OUT entries.
- A reversal never returns more of an ingredient than the order still holds
  according to its own ledger entries, even if the recipe changed since.
- total_amount is recomputed from the current lines after every change.
"""


@dataclass(frozen=True)
class OrderRequestLine:
    item_id: int
    quantity: int
    unit_price: int | None = None


def _coerce_request_lines(lines: Iterable) -> list[OrderRequestLine]:
    """Accept OrderRequestLine, {"item_id", "quantity", "unit_price"?} or (item_id, quantity[, unit_price])."""
    result = []
    for line in lines:
        if isinstance(line, OrderRequestLine):
            result.append(line)
            continue
        try:
            if isinstance(line, dict):
                request_line = OrderRequestLine(
                    item_id=line["item_id"],
                    quantity=line["quantity"],
                    unit_price=line.get("unit_price"),
                )
            else:
                item_id, quantity, *rest = line
                request_line = OrderRequestLine(
                    item_id=item_id, quantity=quantity, unit_price=rest[0] if rest else None
                )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidQuantity(
                "Order line needs an item_id and a quantity",
                details={"line": repr(line)},
            ) from exc
        result.append(request_line)
    return result


class OrderFulfillmentEngine:
    def __init__(
        self,
        *,
        session=None,
        clock: Callable[[], datetime] | None = None,
        catalog: RecipeCatalog | None = None,
        ledger: StockLedger | None = None,
        scheduler: SettlementScheduler | None = None,
        retry_attempts: int = 3,
    ):
        self.session = session if session is not None else db.session
        self.clock = clock or utcnow
        self.catalog = catalog or RecipeCatalog(session=self.session)
        self.ledger = ledger or StockLedger(session=self.session, clock=self.clock)
        self.scheduler = scheduler or SettlementScheduler(session=self.session, clock=self.clock)
        self.retry_attempts = retry_attempts

    # --- transaction plumbing -------------------------------------------

    def _run(self, op):
        try:
            return run_with_retry(op, session=self.session, attempts=self.retry_attempts)
        except StaleDataError as exc:
            raise ConsistencyViolation("stock changed, please retry") from exc
        except Exception:
            self.session.rollback()
            raise

    def _lock_levels(self, ingredient_ids: Iterable[int]) -> dict[int, StockLevel]:
        ids = sorted(set(ingredient_ids))
        if not ids:
            return {}
        levels = (
            lock_for_update(self.session.query(StockLevel).filter(StockLevel.ingredient_id.in_(ids)))
            .order_by(StockLevel.ingredient_id)
            .all()
        )
        return {level.ingredient_id: level for level in levels}

    def _ensure_stock(self, demand: list[tuple[RecipeRequirement, float]]) -> None:
        """
        demand: (requirement, total quantity) in first-seen order.
        Raises InsufficientStock on the first ingredient live stock cannot cover.
        """
        levels = self._lock_levels(req.ingredient_id for req, _ in demand)
        for req, needed in demand:
            level = levels.get(req.ingredient_id)
            current = normalize_quantity(level.current_quantity) if level else 0.0
            needed = normalize_quantity(needed)
            if current < needed:
                logger.warning(
                    "Insufficient stock for %s: required %s, current %s",
                    req.ingredient_name, needed, current,
                )
                raise InsufficientStock(
                    ingredient_id=req.ingredient_id,
                    ingredient_name=req.ingredient_name,
                    unit=req.unit,
                    required=needed,
                    current=current,
                )

    def _requirements_for(self, item_id: int) -> list[RecipeRequirement]:
        reqs = self.catalog.get_requirements(item_id)
        if not reqs:
            raise InvalidQuantity(
                f"Menu item {item_id} is not orderable: {UNORDERABLE_REASON}",
                details={"item_id": item_id, "reason": UNORDERABLE_REASON},
            )
        return reqs

    def _get_order(self, order_id: int, *, lock: bool = False) -> Order:
        query = self.session.query(Order).filter_by(id=order_id)
        if lock:
            query = lock_for_update(query)
        order = query.first()
        if order is None:
            raise NotFound(f"Order {order_id} not found", details={"order_id": order_id})
        return order

    def _recompute_total(self, order: Order) -> list[OrderLine]:
        """Sum of current lines is the source of truth; never adjust incrementally."""
        self.session.flush()
        lines = self.session.query(OrderLine).filter_by(order_id=order.id).all()
        order.total_amount = sum(line.quantity * line.unit_price for line in lines)
        self.session.expire(order, ["lines"])
        return lines

    def _restore(self, order: Order, ingredient_id: int, amount: float, note: str, held: dict[int, float]) -> None:
        """Append an IN entry, capped at what the order still holds of the ingredient."""
        amount = normalize_quantity(min(amount, held.get(ingredient_id, 0.0)))
        if amount <= 0:
            return
        level_exists = self.session.query(StockLevel.id).filter_by(ingredient_id=ingredient_id).first()
        if level_exists is None:
            logger.warning(
                "Order %s: ingredient %s no longer stocked, skipping restore of %s",
                order.id, ingredient_id, amount,
            )
            return
        self.ledger.record_change(ingredient_id, CHANGE_IN, amount, note=note, cause_order_id=order.id)
        held[ingredient_id] = normalize_quantity(held[ingredient_id] - amount)

    # --- operations -----------------------------------------------------

    def place_order(self, lines: Iterable, payment_channel: str) -> Order:
        """
        Validate live stock, create the order with its lines, deduct stock per
        recipe and write one OUT ledger entry per (line, ingredient).
        """
        request_lines = _coerce_request_lines(lines)
        if not request_lines:
            raise InvalidQuantity("Order must contain at least one line")
        for line in request_lines:
            if not isinstance(line.quantity, int) or line.quantity <= 0:
                raise InvalidQuantity(
                    "Order line quantity must be > 0",
                    details={"item_id": line.item_id, "quantity": line.quantity},
                )
            if line.unit_price is not None and line.unit_price < 0:
                raise InvalidQuantity(
                    "Order line unit_price must be >= 0",
                    details={"item_id": line.item_id, "unit_price": line.unit_price},
                )
        channel = self.scheduler.normalize_channel(payment_channel)

        def _op():
            # 1. Resolve items and recipes, pool demand per ingredient
            resolved = []
            demand: dict[int, tuple[RecipeRequirement, float]] = {}
            for line in request_lines:
                item = self.catalog.get_item(line.item_id)
                reqs = self._requirements_for(item.id)
                unit_price = line.unit_price if line.unit_price is not None else item.price
                resolved.append((line, item, reqs, unit_price))
                for req in reqs:
                    prior = demand.get(req.ingredient_id)
                    total = (prior[1] if prior else 0.0) + req.unit_quantity * line.quantity
                    demand[req.ingredient_id] = (req, total)

            # Check precedes mutate
            self._ensure_stock(list(demand.values()))

            # 2-3. Totals and settlement stamp
            placed_at = self.clock()
            total_amount = sum(unit_price * line.quantity for line, _, _, unit_price in resolved)
            expected = self.scheduler.compute_expected_settlement_date(placed_at, channel)

            # 4. Order + lines
            order = Order(
                placed_at=placed_at,
                status=STATUS_FULFILLED,
                total_amount=total_amount,
                payment_channel=channel,
                expected_settlement_date=expected,
                is_settled=False,
            )
            self.session.add(order)
            self.session.flush()
            for line, item, _, unit_price in resolved:
                self.session.add(OrderLine(
                    order_id=order.id,
                    item_id=item.id,
                    quantity=line.quantity,
                    unit_price=unit_price,
                ))
            self.session.flush()

            # 5. Deduct stock, one ledger entry per (line, ingredient)
            for line, item, reqs, _ in resolved:
                for req in reqs:
                    self.ledger.record_change(
                        req.ingredient_id,
                        CHANGE_OUT,
                        req.unit_quantity * line.quantity,
                        note=f"{order.reference} - {item.name} x{line.quantity}",
                        cause_order_id=order.id,
                    )

            self.session.commit()
            return order

        order = self._run(_op)
        logger.info(
            "Placed order %s: %d lines, total %s via %s, settles %s",
            order.id, len(order.lines), order.total_amount, order.payment_channel,
            order.expected_settlement_date,
        )
        return order

    def cancel_order(self, order_id: int) -> Order:
        """
        Restore everything the order still holds with IN entries, then mark it
        CANCELLED. Earlier ledger entries stay untouched.
        """
        def _op():
            order = self._get_order(order_id, lock=True)
            if order.status != STATUS_FULFILLED:
                raise InvalidState(
                    f"Cannot cancel an order with status {order.status}",
                    details={"order_id": order_id, "status": order.status},
                )
            self._cancel_locked(order)
            self.session.commit()
            return order

        order = self._run(_op)
        logger.info("Cancelled order %s", order.id)
        return order

    def _cancel_locked(self, order: Order) -> None:
        held = self.ledger.net_consumption_for_order(order.id)
        for ingredient_id in sorted(held):
            self._restore(order, ingredient_id, held[ingredient_id], f"{order.reference} - cancellation", held)
        order.status = STATUS_CANCELLED
        order.cancelled_at = self.clock()

    def change_line_quantity(self, order_id: int, line_id: int, new_quantity: int) -> Order:
        """
        Set a line's quantity on a fulfilled order.

        new_quantity <= 0 removes the line (full restore); removing the last
        line cancels the order. Increases re-check and deduct only the delta.
        """
        def _op():
            order = self._get_order(order_id, lock=True)
            if order.status != STATUS_FULFILLED:
                raise InvalidState(
                    f"Cannot modify an order with status {order.status}",
                    details={"order_id": order_id, "status": order.status},
                )
            line = self.session.query(OrderLine).filter_by(id=line_id, order_id=order.id).first()
            if line is None:
                raise NotFound(
                    f"Order line {line_id} not found on order {order_id}",
                    details={"order_id": order_id, "line_id": line_id},
                )

            item_name = line.item.name if line.item else f"item {line.item_id}"
            reqs = self.catalog.get_requirements(line.item_id)
            held = self.ledger.net_consumption_for_order(order.id)

            if new_quantity <= 0:
                for req in reqs:
                    self._restore(
                        order, req.ingredient_id, req.unit_quantity * line.quantity,
                        f"{order.reference} - removed {item_name} x{line.quantity}", held,
                    )
                self.session.delete(line)
                remaining = self._recompute_total(order)
                if not remaining:
                    self._cancel_locked(order)
                self.session.commit()
                return order

            delta = new_quantity - line.quantity
            if delta == 0:
                return order

            if delta > 0:
                if not reqs:
                    raise InvalidQuantity(
                        f"Menu item {line.item_id} is not orderable: {UNORDERABLE_REASON}",
                        details={"item_id": line.item_id, "reason": UNORDERABLE_REASON},
                    )
                self._ensure_stock([(req, req.unit_quantity * delta) for req in reqs])
                for req in reqs:
                    self.ledger.record_change(
                        req.ingredient_id,
                        CHANGE_OUT,
                        req.unit_quantity * delta,
                        note=f"{order.reference} - {item_name} +{delta}",
                        cause_order_id=order.id,
                    )
            else:
                for req in reqs:
                    self._restore(
                        order, req.ingredient_id, req.unit_quantity * -delta,
                        f"{order.reference} - {item_name} {delta}", held,
                    )

            line.quantity = new_quantity
            self._recompute_total(order)
            self.session.commit()
            return order

        order = self._run(_op)
        logger.info("Order %s line %s set to %s", order.id, line_id, new_quantity)
        return order

    # --- reads ----------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        return self._get_order(order_id)

    def list_orders(self, *, status: str | None = None, limit: int = 100) -> list[Order]:
        q = self.session.query(Order)
        if status:
            q = q.filter(Order.status == status)
        return q.order_by(Order.placed_at.desc(), Order.id.desc()).limit(limit).all()
