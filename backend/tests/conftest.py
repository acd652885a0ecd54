"""
Pytest fixtures for cafe backend tests.

Provides the in-memory application, a per-test clean database, a fixed
clock and a small menu (Milk, Coffee Beans, Latte, Americano).
"""

from datetime import datetime, timedelta

import pytest
from cafe import create_app
from cafe.extensions import db
from cafe.services import catalog_service, inventory_service
from cafe.services.availability_service import AvailabilityChecker
from cafe.services.order_service import OrderFulfillmentEngine
from cafe.services.settlement_service import SettlementScheduler
from cafe.services.stock_ledger import StockLedger


TEST_BUSINESS_DAYS = {"CARD": 2, "COUPANG": 5, "BAEMIN": 5, "YOGIYO": 5}


class FixedClock:
    """Callable clock returning a settable UTC-naive instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': 'UTC',
        'SETTLEMENT_BUSINESS_DAYS': dict(TEST_BUSINESS_DAYS),
        'WRITE_RETRY_ATTEMPTS': 3,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def clock():
    # Thursday 2024-01-04 10:00 UTC
    return FixedClock(datetime(2024, 1, 4, 10, 0, 0))


@pytest.fixture
def ledger(db_session, clock):
    return StockLedger(session=db_session, clock=clock)


@pytest.fixture
def scheduler(db_session, clock):
    return SettlementScheduler(
        session=db_session,
        clock=clock,
        business_days=TEST_BUSINESS_DAYS,
        timezone="UTC",
        retry_attempts=1,
    )


@pytest.fixture
def engine(db_session, clock, ledger, scheduler):
    return OrderFulfillmentEngine(
        session=db_session,
        clock=clock,
        ledger=ledger,
        scheduler=scheduler,
        retry_attempts=1,
    )


@pytest.fixture
def checker(db_session):
    return AvailabilityChecker(session=db_session)


@pytest.fixture
def stock(ledger):
    """Set an ingredient's level through the ledger: stock(ingredient, 150)."""
    def _stock(ingredient, quantity):
        return inventory_service.adjust_stock(
            ingredient_id=ingredient.id,
            new_quantity=quantity,
            note="test stock",
            ledger=ledger,
        )
    return _stock


@pytest.fixture
def level(ledger):
    """Current quantity of an ingredient, re-read from the database."""
    def _level(ingredient):
        current = ledger.get_level(ingredient.id)
        ledger.session.refresh(current)
        return current.current_quantity
    return _level


@pytest.fixture
def milk(db_session):
    return catalog_service.create_ingredient(name="Milk", unit="ml")


@pytest.fixture
def coffee(db_session):
    return catalog_service.create_ingredient(name="Coffee Beans", unit="g")


@pytest.fixture
def latte(db_session, milk, coffee):
    item = catalog_service.create_menu_item(name="Latte", price=4500)
    catalog_service.set_recipe_line(item_id=item.id, ingredient_id=milk.id, required_quantity=150)
    catalog_service.set_recipe_line(item_id=item.id, ingredient_id=coffee.id, required_quantity=18)
    return item


@pytest.fixture
def americano(db_session, coffee):
    item = catalog_service.create_menu_item(name="Americano", price=4000)
    catalog_service.set_recipe_line(item_id=item.id, ingredient_id=coffee.id, required_quantity=18)
    return item
