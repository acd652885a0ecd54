# Overview: Advisory cart availability over a stock snapshot (read-only, not a reservation).

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from ..extensions import db
from ..models import StockLevel
from ..errors import InvalidQuantity
from .catalog_service import RecipeCatalog, UNORDERABLE_REASON
from .stock_ledger import normalize_quantity
"""
Cart availability semantics

- Stock is one shared pool: two cart lines that both need milk draw from the
  same StockLevel, so a line only sees what the rest of the cart leaves over.
- Lines for the same item are merged before checking (the cart is item-keyed).
- For an item with requested quantity q, the units already committed are the
  other items' consumption plus q - 1 units of this item. max_additional is
  how many units fit on top of that, so available (max_additional >= 1) is
  true exactly when the cart as requested can be made for this item.
  max_quantity is the largest quantity this line could hold on its own.
- The limiting ingredient is the first one (recipe order) reaching the minimum.
- Nothing is locked or written. Checkout re-validates against live stock.
"""


@dataclass(frozen=True)
class ItemAvailability:
    item_id: int
    available: bool
    max_additional: int
    max_quantity: int
    limiting_ingredient: str | None = None
    limiting_ingredient_id: int | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "available": self.available,
            "max_additional": self.max_additional,
            "max_quantity": self.max_quantity,
            "limiting_ingredient": self.limiting_ingredient,
            "limiting_ingredient_id": self.limiting_ingredient_id,
            "reason": self.reason,
        }


def _merge_lines(lines: Iterable[tuple[int, int]]) -> dict[int, int]:
    merged: dict[int, int] = {}
    for item_id, quantity in lines:
        if quantity is None or quantity < 0:
            raise InvalidQuantity(
                "Requested quantity must be >= 0",
                details={"item_id": item_id, "quantity": quantity},
            )
        merged[item_id] = merged.get(item_id, 0) + quantity
    return merged


def _floor_units(available: float, unit_quantity: float) -> int:
    units = math.floor(normalize_quantity(available / unit_quantity))
    return max(units, 0)


class AvailabilityChecker:
    def __init__(self, *, session=None, catalog: RecipeCatalog | None = None):
        self.session = session if session is not None else db.session
        self.catalog = catalog or RecipeCatalog(session=self.session)

    def _stock_snapshot(self, ingredient_ids: set[int]) -> dict[int, float]:
        if not ingredient_ids:
            return {}
        rows = (
            self.session.query(StockLevel.ingredient_id, StockLevel.current_quantity)
            .filter(StockLevel.ingredient_id.in_(ingredient_ids))
            .all()
        )
        return {ingredient_id: current for ingredient_id, current in rows}

    def check_cart(self, lines: Iterable[tuple[int, int]]) -> dict[int, ItemAvailability]:
        """
        lines: (item_id, requested_quantity) pairs. Unknown items raise NotFound.
        Returns item_id -> ItemAvailability in first-seen order.
        """
        cart = _merge_lines(lines)

        requirements = {}
        for item_id in cart:
            self.catalog.get_item(item_id)
            requirements[item_id] = self.catalog.get_requirements(item_id)

        # Total pooled consumption per ingredient for the whole cart
        cart_demand: dict[int, float] = {}
        for item_id, quantity in cart.items():
            for req in requirements[item_id]:
                cart_demand[req.ingredient_id] = (
                    cart_demand.get(req.ingredient_id, 0.0) + req.unit_quantity * quantity
                )

        stock = self._stock_snapshot({r.ingredient_id for reqs in requirements.values() for r in reqs})

        result: dict[int, ItemAvailability] = {}
        for item_id, quantity in cart.items():
            reqs = requirements[item_id]
            if not reqs:
                result[item_id] = ItemAvailability(
                    item_id=item_id,
                    available=False,
                    max_additional=0,
                    max_quantity=0,
                    reason=UNORDERABLE_REASON,
                )
                continue

            max_additional = None
            max_quantity = None
            limiting = None
            for req in reqs:
                current = stock.get(req.ingredient_id, 0.0)
                own_demand = req.unit_quantity * quantity
                reserved_by_others = cart_demand[req.ingredient_id] - own_demand
                reserved_by_own = req.unit_quantity * max(quantity - 1, 0)

                free_for_line = current - reserved_by_others
                possible = _floor_units(free_for_line - reserved_by_own, req.unit_quantity)
                line_cap = _floor_units(free_for_line, req.unit_quantity)

                if max_additional is None or possible < max_additional:
                    max_additional = possible
                    limiting = req
                if max_quantity is None or line_cap < max_quantity:
                    max_quantity = line_cap

            available = max_additional >= 1
            result[item_id] = ItemAvailability(
                item_id=item_id,
                available=available,
                max_additional=max_additional,
                max_quantity=max_quantity,
                limiting_ingredient=limiting.ingredient_name,
                limiting_ingredient_id=limiting.ingredient_id,
                reason=None if available else f"insufficient {limiting.ingredient_name}",
            )
        return result
