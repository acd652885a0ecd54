# Overview: Component factories wired from the Flask app config.

from __future__ import annotations

from flask import current_app

from .availability_service import AvailabilityChecker
from .order_service import OrderFulfillmentEngine
from .settlement_service import SettlementScheduler
from .stock_ledger import StockLedger


def settlement_scheduler(**overrides) -> SettlementScheduler:
    cfg = current_app.config
    kwargs = {
        "business_days": cfg["SETTLEMENT_BUSINESS_DAYS"],
        "timezone": cfg["BUSINESS_TIMEZONE"],
        "retry_attempts": cfg["WRITE_RETRY_ATTEMPTS"],
    }
    kwargs.update(overrides)
    return SettlementScheduler(**kwargs)


def fulfillment_engine(**overrides) -> OrderFulfillmentEngine:
    clock = overrides.pop("clock", None)
    scheduler = overrides.pop("scheduler", None) or settlement_scheduler(clock=clock)
    return OrderFulfillmentEngine(
        clock=clock,
        scheduler=scheduler,
        retry_attempts=current_app.config["WRITE_RETRY_ATTEMPTS"],
        **overrides,
    )


def availability_checker() -> AvailabilityChecker:
    return AvailabilityChecker()


def ledger() -> StockLedger:
    return StockLedger()
