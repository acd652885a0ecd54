from __future__ import annotations
from datetime import date, time
from cafe.time_utils import parse_iso_date

from typing import Any


# Maximum price: 999,999,999 minor units
# This prevents database overflow issues and nonsensical prices
MAX_PRICE = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


def require_payload(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects bools, floats and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_number(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a number")
    raise ValidationError(f"{field} must be a number")


def required(payload: dict, *fields: str) -> None:
    missing = [f for f in fields if payload.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def coerce_price(value: Any, field: str = "price") -> int:
    price = coerce_int(value, field)
    if price < 0:
        raise ValidationError(f"{field} cannot be negative")
    if price > MAX_PRICE:
        raise ValidationError(f"{field} exceeds maximum allowed value")
    return price


def coerce_date(value: Any, field: str) -> date | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")


def parse_cart_lines(payload: dict, *, with_prices: bool = False) -> list[dict]:
    """
    Normalize {"lines": [{"item_id": 1, "quantity": 2, "unit_price": 4500}, ...]}.

    Quantities are only type-checked here; their business rules (> 0 for
    orders, >= 0 for cart checks) belong to the services.
    """
    lines = payload.get("lines")
    if not isinstance(lines, list) or not lines:
        raise ValidationError("lines must be a non-empty list")

    cleaned = []
    for i, raw in enumerate(lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{i}] must be an object")
        required(raw, "item_id", "quantity")
        line = {
            "item_id": coerce_int(raw["item_id"], f"lines[{i}].item_id"),
            "quantity": coerce_int(raw["quantity"], f"lines[{i}].quantity"),
        }
        if with_prices and raw.get("unit_price") is not None:
            line["unit_price"] = coerce_price(raw["unit_price"], f"lines[{i}].unit_price")
        cleaned.append(line)
    return cleaned


def coerce_time(value: Any, field: str) -> time:
    """Accept 'HH:MM' or 'HH:MM:SS'."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a time (HH:MM)")
    try:
        return time.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(f"{field} must be a time (HH:MM)")
