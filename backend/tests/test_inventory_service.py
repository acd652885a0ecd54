# Overview: Pytest coverage for manual stock administration.

import pytest

from cafe.errors import InvalidQuantity, NotFound
from cafe.models.inventory import CHANGE_ADJUST, CHANGE_IN
from cafe.services import catalog_service, inventory_service


class TestReceiveAndAdjust:
    def test_receive_appends_in_entry(self, db_session, ledger, level, milk):
        entry = inventory_service.receive_stock(ingredient_id=milk.id, quantity=1000, note="weekly delivery", ledger=ledger)

        assert entry.change_kind == CHANGE_IN
        assert entry.delta_quantity == 1000
        assert entry.note == "weekly delivery"
        assert level(milk) == 1000

    @pytest.mark.parametrize("quantity", [0, -10])
    def test_receive_requires_positive_quantity(self, db_session, ledger, milk, quantity):
        with pytest.raises(InvalidQuantity):
            inventory_service.receive_stock(ingredient_id=milk.id, quantity=quantity, ledger=ledger)

    def test_receive_unknown_ingredient(self, db_session, ledger):
        with pytest.raises(NotFound):
            inventory_service.receive_stock(ingredient_id=999999, quantity=5, ledger=ledger)

    def test_adjust_sets_absolute_level(self, db_session, ledger, level, milk):
        inventory_service.receive_stock(ingredient_id=milk.id, quantity=1000, ledger=ledger)

        down = inventory_service.adjust_stock(ingredient_id=milk.id, new_quantity=940, ledger=ledger)
        assert down.change_kind == CHANGE_ADJUST
        assert down.delta_quantity == 60
        assert (down.quantity_before, down.quantity_after) == (1000, 940)

        up = inventory_service.adjust_stock(ingredient_id=milk.id, new_quantity=1000, ledger=ledger)
        assert up.signed_delta == 60
        assert level(milk) == 1000

    def test_adjust_to_same_level_is_a_no_op(self, db_session, ledger, milk):
        inventory_service.receive_stock(ingredient_id=milk.id, quantity=10, ledger=ledger)
        assert inventory_service.adjust_stock(ingredient_id=milk.id, new_quantity=10, ledger=ledger) is None
        assert len(ledger.history(ingredient_id=milk.id)) == 1

    def test_adjust_to_zero(self, db_session, ledger, level, milk):
        inventory_service.receive_stock(ingredient_id=milk.id, quantity=10, ledger=ledger)
        inventory_service.adjust_stock(ingredient_id=milk.id, new_quantity=0, ledger=ledger)
        assert level(milk) == 0

    def test_adjust_negative_target(self, db_session, ledger, milk):
        with pytest.raises(InvalidQuantity):
            inventory_service.adjust_stock(ingredient_id=milk.id, new_quantity=-1, ledger=ledger)

    def test_replay_matches_after_admin_changes(self, db_session, ledger, clock, milk):
        inventory_service.receive_stock(ingredient_id=milk.id, quantity=500, ledger=ledger)
        clock.advance(minutes=1)
        inventory_service.adjust_stock(ingredient_id=milk.id, new_quantity=420, ledger=ledger)
        clock.advance(minutes=1)
        inventory_service.receive_stock(ingredient_id=milk.id, quantity=80, ledger=ledger)

        assert ledger.replay_quantity(milk.id) == 500
        assert ledger.find_drift() == []


class TestMinimums:
    def test_low_stock_ordered_by_shortfall(self, db_session, stock, milk, coffee):
        syrup = catalog_service.create_ingredient(name="Syrup", unit="ml")
        stock(milk, 100)
        stock(coffee, 50)
        stock(syrup, 1000)
        inventory_service.set_minimum_quantity(ingredient_id=milk.id, minimum_quantity=500)
        inventory_service.set_minimum_quantity(ingredient_id=coffee.id, minimum_quantity=100)
        inventory_service.set_minimum_quantity(ingredient_id=syrup.id, minimum_quantity=100)

        low = inventory_service.low_stock_items()

        # milk is 400 short, coffee 50 short, syrup is fine
        assert [l.ingredient_id for l in low] == [milk.id, coffee.id]
        assert all(l.is_low for l in low)

    def test_at_minimum_counts_as_low(self, db_session, stock, milk):
        stock(milk, 100)
        inventory_service.set_minimum_quantity(ingredient_id=milk.id, minimum_quantity=100)
        assert [l.ingredient_id for l in inventory_service.low_stock_items()] == [milk.id]

    def test_negative_minimum(self, db_session, milk):
        with pytest.raises(InvalidQuantity):
            inventory_service.set_minimum_quantity(ingredient_id=milk.id, minimum_quantity=-5)

    def test_unknown_ingredient(self, db_session):
        with pytest.raises(NotFound):
            inventory_service.set_minimum_quantity(ingredient_id=999999, minimum_quantity=5)

    def test_list_stock_levels_by_name(self, db_session, milk, coffee):
        names = [l.ingredient.name for l in inventory_service.list_stock_levels()]
        assert names == ["Coffee Beans", "Milk"]
