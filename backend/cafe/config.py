# backend/cafe/config.py
from __future__ import annotations
import json
import os


DEFAULT_SETTLEMENT_BUSINESS_DAYS = {
    "CARD": 2,
    "COUPANG": 5,
    "BAEMIN": 5,
    "YOGIYO": 5,
}


def _business_days_from_env() -> dict[str, int]:
    # e.g. SETTLEMENT_BUSINESS_DAYS='{"CARD": 2, "NAVERPAY": 3}'
    raw = os.environ.get("SETTLEMENT_BUSINESS_DAYS")
    if not raw:
        return dict(DEFAULT_SETTLEMENT_BUSINESS_DAYS)
    parsed = json.loads(raw)
    return {str(k).upper(): int(v) for k, v in parsed.items()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cafe.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cafe.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Local calendar used for order dates, settlement walks and "today"
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "UTC")

    # Channel -> number of business days until the deposit lands
    SETTLEMENT_BUSINESS_DAYS = _business_days_from_env()

    WRITE_RETRY_ATTEMPTS = int(os.environ.get("WRITE_RETRY_ATTEMPTS", "3"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
