# Overview: Pytest coverage for checkout, cancellation and line changes.

"""
Order Fulfillment Tests

Covers the check-then-deduct checkout, compensating reversals and the
properties that must hold after any sequence of operations:
- stock never goes negative
- order total equals the sum of its current lines
- replaying the ledger reproduces every stock level
"""

from datetime import date

import pytest
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from cafe import create_app
from cafe.extensions import db
from cafe.errors import (
    ConsistencyViolation,
    InsufficientStock,
    InvalidPaymentChannel,
    InvalidQuantity,
    InvalidState,
    NotFound,
)
from cafe.models import Order, OrderLine, StockLedgerEntry, StockLevel
from cafe.models.inventory import CHANGE_IN, CHANGE_OUT
from cafe.models.orders import STATUS_CANCELLED, STATUS_FULFILLED
from cafe.services import catalog_service, inventory_service
from cafe.services.order_service import OrderFulfillmentEngine
from cafe.services.stock_ledger import StockLedger


def _entries(db_session, order, kind=None):
    q = db_session.query(StockLedgerEntry).filter_by(order_id=order.id)
    if kind:
        q = q.filter_by(change_kind=kind)
    return q.order_by(StockLedgerEntry.id).all()


def _assert_invariants(db_session, ledger):
    for level in db_session.query(StockLevel).all():
        assert level.current_quantity >= 0
    for order in db_session.query(Order).all():
        lines = db_session.query(OrderLine).filter_by(order_id=order.id).all()
        assert order.total_amount == sum(l.quantity * l.unit_price for l in lines)
    assert ledger.find_drift() == []


class TestPlaceOrder:
    def test_scenario_b_exact_stock(self, db_session, engine, stock, level, milk, coffee, latte):
        """1x Latte against {milk:150, coffee:18} empties both and writes two OUT rows."""
        stock(milk, 150)
        stock(coffee, 18)

        order = engine.place_order([(latte.id, 1)], "CARD")

        assert order.status == STATUS_FULFILLED
        assert order.total_amount == 4500
        assert level(milk) == 0
        assert level(coffee) == 0

        outs = _entries(db_session, order, CHANGE_OUT)
        assert len(outs) == 2
        assert {(e.ingredient_id, e.delta_quantity) for e in outs} == {(milk.id, 150), (coffee.id, 18)}
        assert all(e.note.startswith(order.reference) for e in outs)

    def test_scenario_c_insufficient_milk(self, db_session, engine, stock, level, milk, coffee, latte):
        """2x Latte against milk 150 is rejected with nothing persisted."""
        stock(milk, 150)
        stock(coffee, 1000)
        ledger_rows = db_session.query(StockLedgerEntry).count()

        with pytest.raises(InsufficientStock) as exc:
            engine.place_order([(latte.id, 2)], "CARD")

        details = exc.value.details
        assert details["ingredient_name"].lower() == "milk"
        assert details["required"] == 300
        assert details["current"] == 150
        assert level(milk) == 150
        assert level(coffee) == 1000
        assert db_session.query(StockLedgerEntry).count() == ledger_rows
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderLine).count() == 0

    def test_pooled_demand_across_lines(self, db_session, engine, stock, level, milk, coffee, latte, americano):
        """Latte + Americano need 36g coffee together; 30g must be rejected as a whole."""
        stock(milk, 1000)
        stock(coffee, 30)

        with pytest.raises(InsufficientStock) as exc:
            engine.place_order([(latte.id, 1), (americano.id, 1)], "CARD")

        assert exc.value.details["ingredient_name"] == "Coffee Beans"
        assert exc.value.details["required"] == 36
        assert level(coffee) == 30
        assert db_session.query(Order).count() == 0

    def test_unit_price_captured_and_defaulted(self, db_session, engine, stock, milk, coffee, latte, americano):
        stock(milk, 1000)
        stock(coffee, 1000)

        order = engine.place_order(
            [{"item_id": latte.id, "quantity": 2, "unit_price": 4000}, {"item_id": americano.id, "quantity": 1}],
            "BAEMIN",
        )
        catalog_service.update_menu_item(americano.id, price=9999)

        lines = {l.item_id: l for l in order.lines}
        assert lines[latte.id].unit_price == 4000
        assert lines[americano.id].unit_price == 4000
        assert order.total_amount == 12000

    def test_settlement_date_stamped(self, db_session, engine, clock, stock, milk, coffee, latte):
        """Scenario D through checkout: Thursday 2024-01-04 on a 5-day channel."""
        stock(milk, 1000)
        stock(coffee, 1000)

        order = engine.place_order([(latte.id, 1)], "yogiyo")

        assert order.payment_channel == "YOGIYO"
        assert order.placed_at == clock.now
        assert order.expected_settlement_date == date(2024, 1, 11)
        assert order.is_settled is False
        assert order.settled_at is None

    def test_rejects_bad_input_before_touching_stock(self, db_session, engine, stock, level, milk, coffee, latte):
        stock(milk, 1000)
        stock(coffee, 1000)

        with pytest.raises(InvalidQuantity):
            engine.place_order([(latte.id, 0)], "CARD")
        with pytest.raises(InvalidQuantity):
            engine.place_order([], "CARD")
        with pytest.raises(InvalidPaymentChannel):
            engine.place_order([(latte.id, 1)], "CASH")
        with pytest.raises(NotFound):
            engine.place_order([(999999, 1)], "CARD")

        assert level(milk) == 1000
        assert db_session.query(Order).count() == 0

    @pytest.mark.parametrize(
        "line",
        [
            {"quantity": 1},
            {"item_id": 1},
            (1,),
            None,
        ],
    )
    def test_malformed_line_is_invalid_quantity(self, db_session, engine, line):
        with pytest.raises(InvalidQuantity) as exc:
            engine.place_order([line], "CARD")

        assert exc.value.details["line"] == repr(line)
        assert db_session.query(Order).count() == 0

    def test_non_integer_quantity(self, db_session, engine, latte):
        with pytest.raises(InvalidQuantity):
            engine.place_order([{"item_id": latte.id, "quantity": "two"}], "CARD")

    def test_item_without_recipe_is_unorderable(self, db_session, engine):
        item = catalog_service.create_menu_item(name="Water", price=0)

        with pytest.raises(InvalidQuantity) as exc:
            engine.place_order([(item.id, 1)], "CARD")

        assert exc.value.details["reason"] == "no recipe configured"
        assert db_session.query(Order).count() == 0


class TestCancelOrder:
    def test_round_trip_restores_stock(self, db_session, engine, stock, level, ledger, milk, coffee, latte, americano):
        stock(milk, 1000)
        stock(coffee, 500)

        order = engine.place_order([(latte.id, 2), (americano.id, 3)], "CARD")
        assert level(milk) == 700
        assert level(coffee) == 500 - 36 - 54

        cancelled = engine.cancel_order(order.id)

        assert cancelled.status == STATUS_CANCELLED
        assert cancelled.cancelled_at is not None
        assert level(milk) == 1000
        assert level(coffee) == 500

        # History is appended, never rewritten
        assert len(_entries(db_session, order, CHANGE_OUT)) == 3
        ins = _entries(db_session, order, CHANGE_IN)
        assert {(e.ingredient_id, e.delta_quantity) for e in ins} == {(milk.id, 300), (coffee.id, 90)}
        _assert_invariants(db_session, ledger)

    def test_cancel_twice_is_invalid(self, db_session, engine, stock, milk, coffee, latte):
        stock(milk, 1000)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 1)], "CARD")
        engine.cancel_order(order.id)

        with pytest.raises(InvalidState):
            engine.cancel_order(order.id)

    def test_cancel_unknown_order(self, db_session, engine):
        with pytest.raises(NotFound):
            engine.cancel_order(999999)

    def test_cancel_after_recipe_change_restores_what_was_consumed(
        self, db_session, engine, stock, level, milk, coffee, latte
    ):
        stock(milk, 1000)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 2)], "CARD")

        # The recipe changes after the sale
        catalog_service.set_recipe_line(item_id=latte.id, ingredient_id=milk.id, required_quantity=200)

        engine.cancel_order(order.id)

        assert level(milk) == 1000
        assert level(coffee) == 1000

    def test_cancelled_orders_are_not_pending(self, db_session, engine, scheduler, stock, milk, coffee, latte):
        stock(milk, 1000)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 1)], "CARD")
        engine.cancel_order(order.id)

        assert scheduler.get_pending_settlement_buckets() == []


class TestChangeLineQuantity:
    def test_scenario_e_reduce_three_to_one(self, db_session, engine, stock, level, ledger, milk, coffee, latte):
        stock(milk, 1000)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 3)], "CARD")
        line = order.lines[0]
        assert level(milk) == 550

        order = engine.change_line_quantity(order.id, line.id, 1)

        assert level(milk) == 850
        assert level(coffee) == 1000 - 18
        ins = _entries(db_session, order, CHANGE_IN)
        assert {(e.ingredient_id, e.delta_quantity) for e in ins} == {(milk.id, 300), (coffee.id, 36)}
        assert order.total_amount == 4500
        assert order.lines[0].quantity == 1
        _assert_invariants(db_session, ledger)

    def test_increase_deducts_only_the_delta(self, db_session, engine, stock, level, milk, coffee, latte):
        stock(milk, 450)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 1)], "CARD")

        order = engine.change_line_quantity(order.id, order.lines[0].id, 3)

        assert level(milk) == 0
        assert order.total_amount == 13500

    def test_increase_beyond_stock_changes_nothing(self, db_session, engine, stock, level, milk, coffee, latte):
        stock(milk, 300)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 1)], "CARD")
        line_id = order.lines[0].id

        with pytest.raises(InsufficientStock) as exc:
            engine.change_line_quantity(order.id, line_id, 3)

        assert exc.value.details["required"] == 300
        assert exc.value.details["current"] == 150
        db_session.expire_all()
        assert level(milk) == 150
        assert db_session.get(OrderLine, line_id).quantity == 1
        assert db_session.get(Order, order.id).total_amount == 4500

    def test_same_quantity_is_a_no_op(self, db_session, engine, stock, milk, coffee, latte):
        stock(milk, 1000)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 2)], "CARD")
        rows = db_session.query(StockLedgerEntry).count()

        engine.change_line_quantity(order.id, order.lines[0].id, 2)

        assert db_session.query(StockLedgerEntry).count() == rows

    def test_zero_removes_line_and_recomputes_total(
        self, db_session, engine, stock, level, ledger, milk, coffee, latte, americano
    ):
        stock(milk, 1000)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 1), (americano.id, 2)], "CARD")
        latte_line = next(l for l in order.lines if l.item_id == latte.id)

        order = engine.change_line_quantity(order.id, latte_line.id, 0)

        assert order.status == STATUS_FULFILLED
        assert [l.item_id for l in order.lines] == [americano.id]
        assert order.total_amount == 8000
        assert level(milk) == 1000
        assert level(coffee) == 1000 - 36
        _assert_invariants(db_session, ledger)

    def test_removing_last_line_cancels_order(self, db_session, engine, stock, level, ledger, milk, coffee, latte):
        stock(milk, 1000)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 2)], "CARD")

        order = engine.change_line_quantity(order.id, order.lines[0].id, -1)

        assert order.status == STATUS_CANCELLED
        assert order.total_amount == 0
        assert order.lines == []
        assert level(milk) == 1000
        assert level(coffee) == 1000
        _assert_invariants(db_session, ledger)

    def test_cancelled_order_cannot_change(self, db_session, engine, stock, milk, coffee, latte):
        stock(milk, 1000)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 2)], "CARD")
        line_id = order.lines[0].id
        engine.cancel_order(order.id)

        with pytest.raises(InvalidState):
            engine.change_line_quantity(order.id, line_id, 1)

    def test_unknown_line(self, db_session, engine, stock, milk, coffee, latte):
        stock(milk, 1000)
        stock(coffee, 1000)
        order = engine.place_order([(latte.id, 1)], "CARD")

        with pytest.raises(NotFound):
            engine.change_line_quantity(order.id, 999999, 2)


def test_invariants_hold_over_a_mixed_sequence(
    db_session, engine, clock, stock, level, ledger, milk, coffee, latte, americano
):
    stock(milk, 2000)
    stock(coffee, 400)

    first = engine.place_order([(latte.id, 3), (americano.id, 2)], "CARD")
    clock.advance(hours=1)
    second = engine.place_order([(americano.id, 4)], "COUPANG")
    clock.advance(hours=1)
    engine.change_line_quantity(first.id, first.lines[0].id, 5)
    clock.advance(hours=1)
    engine.change_line_quantity(second.id, second.lines[0].id, 1)
    clock.advance(hours=1)
    with pytest.raises(InsufficientStock):
        engine.place_order([(americano.id, 50)], "CARD")
    engine.cancel_order(first.id)

    _assert_invariants(db_session, ledger)
    assert level(milk) == 2000
    assert level(coffee) == 400 - 18


def test_exhausted_stale_retries_map_to_consistency_violation(engine):
    def _op():
        raise StaleDataError("stock_levels row changed")

    with pytest.raises(ConsistencyViolation) as exc:
        engine._run(_op)

    assert exc.value.message == "stock changed, please retry"


@pytest.fixture
def shared_db(tmp_path):
    """
    File-backed database so two independent sessions see each other's commits.

    Milk 150 covers exactly one Latte.
    """
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })
    with app.app_context():
        db.create_all()
        milk = catalog_service.create_ingredient(name="Milk", unit="ml")
        coffee = catalog_service.create_ingredient(name="Coffee Beans", unit="g")
        latte = catalog_service.create_menu_item(name="Latte", price=4500)
        catalog_service.set_recipe_line(item_id=latte.id, ingredient_id=milk.id, required_quantity=150)
        catalog_service.set_recipe_line(item_id=latte.id, ingredient_id=coffee.id, required_quantity=18)
        inventory_service.receive_stock(ingredient_id=milk.id, quantity=150)
        inventory_service.receive_stock(ingredient_id=coffee.id, quantity=1000)
        ids = {"milk": milk.id, "latte": latte.id}
        db.session.close()

        yield ids

        db.session.remove()
        db.drop_all()
        db.engine.dispose()


class TestConcurrentCheckout:
    """Two checkouts racing for the last Latte's worth of milk."""

    def _race(self, shared_db, clock, retry_attempts):
        with Session(db.engine) as session_a, Session(db.engine) as session_b:
            engine_a = OrderFulfillmentEngine(session=session_a, clock=clock, retry_attempts=retry_attempts)
            engine_b = OrderFulfillmentEngine(session=session_b, clock=clock, retry_attempts=retry_attempts)

            # A reads the level before B's checkout commits
            cached = session_a.query(StockLevel).filter_by(ingredient_id=shared_db["milk"]).one()
            assert cached.current_quantity == 150

            engine_b.place_order([(shared_db["latte"], 1)], "CARD")

            with pytest.raises((InsufficientStock, ConsistencyViolation)) as exc:
                engine_a.place_order([(shared_db["latte"], 1)], "CARD")

        with Session(db.engine) as check:
            milk = check.query(StockLevel).filter_by(ingredient_id=shared_db["milk"]).one()
            assert milk.current_quantity == 0
            assert check.query(Order).count() == 1
            assert check.query(StockLedgerEntry).filter_by(change_kind=CHANGE_OUT).count() == 2
            assert StockLedger(session=check).find_drift() == []
        return exc.value

    def test_loser_without_retry_is_rejected(self, shared_db, clock):
        error = self._race(shared_db, clock, retry_attempts=1)

        if isinstance(error, ConsistencyViolation):
            assert error.message == "stock changed, please retry"

    def test_retry_rechecks_live_stock(self, shared_db, clock):
        error = self._race(shared_db, clock, retry_attempts=3)

        assert isinstance(error, InsufficientStock)
        assert error.ingredient_name == "Milk"
        assert error.current == 0
        assert error.required == 150
