# Overview: Ingredients, menu items and recipe lines; the RecipeCatalog read model.

from __future__ import annotations

import logging
from typing import NamedTuple

from ..extensions import db
from ..models import Ingredient, MenuItem, RecipeLine, StockLevel
from ..errors import DuplicateEntry, InvalidQuantity, NotFound
from ..validation import ValidationError

logger = logging.getLogger(__name__)

UNORDERABLE_REASON = "no recipe configured"


class RecipeRequirement(NamedTuple):
    ingredient_id: int
    ingredient_name: str
    unit: str
    unit_quantity: float


class RecipeCatalog:
    """
    Read side of the recipe book.

    get_requirements returning [] means the item is unorderable: an item
    with no recipe has no cost basis and must never be sold for free.
    """

    def __init__(self, *, session=None):
        self.session = session if session is not None else db.session

    def get_item(self, item_id: int, *, require_active: bool = True) -> MenuItem:
        item = self.session.query(MenuItem).filter_by(id=item_id).first()
        if item is None or (require_active and not item.is_active):
            raise NotFound(f"Menu item {item_id} not found", details={"item_id": item_id})
        return item

    def get_requirements(self, item_id: int) -> list[RecipeRequirement]:
        rows = (
            self.session.query(RecipeLine, Ingredient)
            .join(Ingredient, Ingredient.id == RecipeLine.ingredient_id)
            .filter(RecipeLine.item_id == item_id, Ingredient.is_active.is_(True))
            .order_by(Ingredient.name, Ingredient.id)
            .all()
        )
        return [
            RecipeRequirement(
                ingredient_id=ingredient.id,
                ingredient_name=ingredient.name,
                unit=ingredient.unit,
                unit_quantity=line.required_quantity,
            )
            for line, ingredient in rows
        ]


def _get_ingredient(ingredient_id: int) -> Ingredient:
    ingredient = db.session.query(Ingredient).filter_by(id=ingredient_id, is_active=True).first()
    if ingredient is None:
        raise NotFound(f"Ingredient {ingredient_id} not found", details={"ingredient_id": ingredient_id})
    return ingredient


def _clean_name(name: str | None, what: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(f"{what} name is required")
    return cleaned


# --- Ingredients -------------------------------------------------------------

def create_ingredient(*, name: str, unit: str, minimum_quantity: float = 0) -> Ingredient:
    """Create an ingredient together with its zero stock row."""
    name = _clean_name(name, "Ingredient")
    unit = (unit or "").strip()
    if not unit:
        raise ValidationError("Ingredient unit is required")
    if minimum_quantity < 0:
        raise InvalidQuantity("minimum_quantity must be >= 0")

    if db.session.query(Ingredient).filter_by(name=name).first():
        raise DuplicateEntry(f"Ingredient {name!r} already exists", details={"name": name})

    ingredient = Ingredient(name=name, unit=unit)
    db.session.add(ingredient)
    db.session.flush()

    db.session.add(StockLevel(
        ingredient_id=ingredient.id,
        current_quantity=0,
        minimum_quantity=minimum_quantity,
    ))
    db.session.commit()
    logger.info("Created ingredient %s (%s)", ingredient.id, ingredient.name)
    return ingredient


def rename_ingredient(ingredient_id: int, *, name: str, unit: str | None = None) -> Ingredient:
    ingredient = _get_ingredient(ingredient_id)
    name = _clean_name(name, "Ingredient")
    clash = db.session.query(Ingredient).filter(
        Ingredient.name == name, Ingredient.id != ingredient_id
    ).first()
    if clash:
        raise DuplicateEntry(f"Ingredient {name!r} already exists", details={"name": name})
    ingredient.name = name
    if unit is not None:
        if not unit.strip():
            raise ValidationError("unit cannot be blank")
        ingredient.unit = unit.strip()
    db.session.commit()
    return ingredient


def delete_ingredient(ingredient_id: int) -> None:
    """
    Soft-delete an ingredient and invalidate everything built on it.

    Recipe lines and the stock row are removed here as an explicit business
    rule. The ingredient row stays (inactive, renamed) so ledger entries keep
    a valid reference and the name can be reused.
    """
    ingredient = _get_ingredient(ingredient_id)

    removed_lines = db.session.query(RecipeLine).filter_by(ingredient_id=ingredient_id).delete(
        synchronize_session="fetch"
    )
    db.session.query(StockLevel).filter_by(ingredient_id=ingredient_id).delete(
        synchronize_session="fetch"
    )

    ingredient.is_active = False
    ingredient.name = f"{ingredient.name} [deleted #{ingredient.id}]"
    db.session.commit()
    logger.info("Deleted ingredient %s; removed %d recipe lines", ingredient_id, removed_lines)


def list_ingredients() -> list[Ingredient]:
    return db.session.query(Ingredient).filter_by(is_active=True).order_by(Ingredient.name).all()


# --- Menu items --------------------------------------------------------------

def create_menu_item(*, name: str, price: int, description: str | None = None) -> MenuItem:
    name = _clean_name(name, "Menu item")
    if price is None or price < 0:
        raise InvalidQuantity("price must be >= 0")
    if db.session.query(MenuItem).filter_by(name=name).first():
        raise DuplicateEntry(f"Menu item {name!r} already exists", details={"name": name})

    item = MenuItem(name=name, price=price, description=description)
    db.session.add(item)
    db.session.commit()
    return item


def update_menu_item(
    item_id: int,
    *,
    name: str | None = None,
    price: int | None = None,
    description: str | None = None,
) -> MenuItem:
    """Price changes never touch existing orders; lines captured their own unit_price."""
    item = RecipeCatalog().get_item(item_id)
    if name is not None:
        name = _clean_name(name, "Menu item")
        clash = db.session.query(MenuItem).filter(MenuItem.name == name, MenuItem.id != item_id).first()
        if clash:
            raise DuplicateEntry(f"Menu item {name!r} already exists", details={"name": name})
        item.name = name
    if price is not None:
        if price < 0:
            raise InvalidQuantity("price must be >= 0")
        item.price = price
    if description is not None:
        item.description = description
    db.session.commit()
    return item


def delete_menu_item(item_id: int) -> None:
    item = RecipeCatalog().get_item(item_id)
    db.session.query(RecipeLine).filter_by(item_id=item_id).delete(synchronize_session="fetch")
    item.is_active = False
    item.name = f"{item.name} [deleted #{item.id}]"
    db.session.commit()


def list_menu_items() -> list[MenuItem]:
    return db.session.query(MenuItem).filter_by(is_active=True).order_by(MenuItem.name).all()


# --- Recipe lines ------------------------------------------------------------

def set_recipe_line(*, item_id: int, ingredient_id: int, required_quantity: float) -> RecipeLine:
    """Create or update the single line for (item, ingredient)."""
    if required_quantity is None or required_quantity <= 0:
        raise InvalidQuantity(
            "required_quantity must be > 0",
            details={"item_id": item_id, "ingredient_id": ingredient_id},
        )
    RecipeCatalog().get_item(item_id)
    _get_ingredient(ingredient_id)

    line = db.session.query(RecipeLine).filter_by(item_id=item_id, ingredient_id=ingredient_id).first()
    if line is None:
        line = RecipeLine(item_id=item_id, ingredient_id=ingredient_id, required_quantity=required_quantity)
        db.session.add(line)
    else:
        line.required_quantity = required_quantity
    db.session.commit()
    return line


def remove_recipe_line(*, item_id: int, ingredient_id: int) -> None:
    line = db.session.query(RecipeLine).filter_by(item_id=item_id, ingredient_id=ingredient_id).first()
    if line is None:
        raise NotFound(
            "Recipe line not found",
            details={"item_id": item_id, "ingredient_id": ingredient_id},
        )
    db.session.delete(line)
    db.session.commit()


def list_recipe_lines(item_id: int) -> list[RecipeLine]:
    RecipeCatalog().get_item(item_id)
    return (
        db.session.query(RecipeLine)
        .join(Ingredient, Ingredient.id == RecipeLine.ingredient_id)
        .filter(RecipeLine.item_id == item_id)
        .order_by(Ingredient.name)
        .all()
    )
