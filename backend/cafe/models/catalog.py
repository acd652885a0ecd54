from __future__ import annotations

from ..extensions import db
from cafe.time_utils import to_utc_z


class Ingredient(db.Model):
    """
    Raw ingredient tracked in stock (milk, coffee beans, syrup...).

    Identity and unit are fixed once created; only the display name may change.
    Deletion is a soft delete: recipe lines and the stock row are removed by
    catalog_service, the ingredient row stays so ledger history keeps its FK.
    """
    __tablename__ = "ingredients"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_ingredients_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Ingredient id={self.id} name={self.name!r} unit={self.unit!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class MenuItem(db.Model):
    """Sellable item. Price is in minor currency units (won)."""
    __tablename__ = "menu_items"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_menu_items_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<MenuItem id={self.id} name={self.name!r} price={self.price}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class RecipeLine(db.Model):
    """
    Quantity of one ingredient consumed by one unit of a menu item.

    At most one line per (item, ingredient). An item with no lines is unorderable.
    """
    __tablename__ = "recipe_lines"
    __table_args__ = (
        db.UniqueConstraint("item_id", "ingredient_id", name="uq_recipe_lines_item_ingredient"),
        db.CheckConstraint("required_quantity > 0", name="ck_recipe_lines_required_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id"), nullable=False, index=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=False, index=True)
    required_quantity = db.Column(db.Float, nullable=False)

    item = db.relationship("MenuItem", backref=db.backref("recipe_lines", lazy=True))
    ingredient = db.relationship("Ingredient")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient.name if self.ingredient else None,
            "ingredient_unit": self.ingredient.unit if self.ingredient else None,
            "required_quantity": self.required_quantity,
        }
