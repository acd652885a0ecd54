# Overview: Pytest coverage for ingredients, menu items and recipe lines.

import pytest

from cafe.errors import DuplicateEntry, InvalidQuantity, NotFound
from cafe.models import Ingredient, MenuItem, RecipeLine, StockLedgerEntry, StockLevel
from cafe.services import catalog_service
from cafe.services.catalog_service import RecipeCatalog
from cafe.validation import ValidationError


class TestIngredients:
    def test_create_co_creates_empty_stock(self, db_session):
        ingredient = catalog_service.create_ingredient(name="  Oat Milk ", unit="ml", minimum_quantity=500)

        level = db_session.query(StockLevel).filter_by(ingredient_id=ingredient.id).one()
        assert ingredient.name == "Oat Milk"
        assert level.current_quantity == 0
        assert level.minimum_quantity == 500

    def test_duplicate_name(self, db_session, milk):
        with pytest.raises(DuplicateEntry):
            catalog_service.create_ingredient(name="Milk", unit="ml")

    def test_blank_name(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_ingredient(name="  ", unit="ml")

    def test_rename(self, db_session, milk, coffee):
        renamed = catalog_service.rename_ingredient(milk.id, name="Whole Milk")
        assert renamed.name == "Whole Milk"
        assert renamed.unit == "ml"

        with pytest.raises(DuplicateEntry):
            catalog_service.rename_ingredient(milk.id, name="Coffee Beans")

    def test_delete_invalidates_recipes_and_stock(self, db_session, ledger, stock, milk, coffee, latte):
        stock(milk, 300)

        catalog_service.delete_ingredient(milk.id)

        db_session.expire_all()
        assert db_session.query(RecipeLine).filter_by(ingredient_id=milk.id).count() == 0
        assert db_session.query(StockLevel).filter_by(ingredient_id=milk.id).count() == 0
        # Ledger history survives; the ingredient row stays for its reference
        assert db_session.query(StockLedgerEntry).filter_by(ingredient_id=milk.id).count() == 1
        gone = db_session.get(Ingredient, milk.id)
        assert gone.is_active is False
        assert milk.id not in [i.id for i in catalog_service.list_ingredients()]

        # Latte keeps only its coffee requirement
        reqs = RecipeCatalog().get_requirements(latte.id)
        assert [r.ingredient_name for r in reqs] == ["Coffee Beans"]

    def test_deleted_name_can_be_reused(self, db_session, milk):
        catalog_service.delete_ingredient(milk.id)
        again = catalog_service.create_ingredient(name="Milk", unit="ml")
        assert again.id != milk.id

    def test_delete_unknown(self, db_session):
        with pytest.raises(NotFound):
            catalog_service.delete_ingredient(999999)


class TestMenuItems:
    def test_create_and_update(self, db_session):
        item = catalog_service.create_menu_item(name="Mocha", price=5000, description="chocolate")
        updated = catalog_service.update_menu_item(item.id, price=5500)

        assert updated.price == 5500
        assert updated.description == "chocolate"

    def test_negative_price(self, db_session):
        with pytest.raises(InvalidQuantity):
            catalog_service.create_menu_item(name="Mocha", price=-1)

    def test_duplicate(self, db_session, latte):
        with pytest.raises(DuplicateEntry):
            catalog_service.create_menu_item(name="Latte", price=1)

    def test_delete_is_soft_and_clears_recipe(self, db_session, latte):
        catalog_service.delete_menu_item(latte.id)

        db_session.expire_all()
        assert db_session.get(MenuItem, latte.id).is_active is False
        assert db_session.query(RecipeLine).filter_by(item_id=latte.id).count() == 0
        with pytest.raises(NotFound):
            RecipeCatalog().get_item(latte.id)
        assert RecipeCatalog().get_item(latte.id, require_active=False).id == latte.id


class TestRecipeLines:
    def test_requirements_ordered_by_ingredient_name(self, db_session, latte):
        reqs = RecipeCatalog().get_requirements(latte.id)

        assert [(r.ingredient_name, r.unit, r.unit_quantity) for r in reqs] == [
            ("Coffee Beans", "g", 18),
            ("Milk", "ml", 150),
        ]

    def test_set_is_an_upsert(self, db_session, milk, latte):
        catalog_service.set_recipe_line(item_id=latte.id, ingredient_id=milk.id, required_quantity=200)

        lines = db_session.query(RecipeLine).filter_by(item_id=latte.id, ingredient_id=milk.id).all()
        assert len(lines) == 1
        assert lines[0].required_quantity == 200

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_quantity_must_be_positive(self, db_session, milk, latte, quantity):
        with pytest.raises(InvalidQuantity):
            catalog_service.set_recipe_line(item_id=latte.id, ingredient_id=milk.id, required_quantity=quantity)

    def test_remove(self, db_session, milk, latte):
        catalog_service.remove_recipe_line(item_id=latte.id, ingredient_id=milk.id)
        assert milk.id not in [l.ingredient_id for l in catalog_service.list_recipe_lines(latte.id)]

        with pytest.raises(NotFound):
            catalog_service.remove_recipe_line(item_id=latte.id, ingredient_id=milk.id)

    def test_empty_recipe_means_no_requirements(self, db_session):
        item = catalog_service.create_menu_item(name="Tap Water", price=0)
        assert RecipeCatalog().get_requirements(item.id) == []
