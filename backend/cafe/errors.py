# Overview: Typed business errors raised by the fulfillment, stock and settlement services.

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    NOT_FOUND = "NOT_FOUND"
    CONSISTENCY_VIOLATION = "CONSISTENCY_VIOLATION"
    INVALID_PAYMENT_CHANNEL = "INVALID_PAYMENT_CHANNEL"
    INVALID_STATE = "INVALID_STATE"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"


class FulfillmentError(Exception):
    """
    Base class for every structured business error.

    Callers branch on the subclass (or `kind`), never on the message text.
    `details` carries machine-readable context for the HTTP boundary.
    """
    kind: ErrorKind
    http_status: int = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind.value,
            "details": self.details,
        }


class InsufficientStock(FulfillmentError):
    """Live stock cannot cover the requested consumption. Nothing was deducted."""
    kind = ErrorKind.INSUFFICIENT_STOCK
    http_status = 409

    def __init__(
        self,
        *,
        ingredient_id: int,
        ingredient_name: str,
        required: float,
        current: float,
        unit: str | None = None,
    ):
        super().__init__(
            f"Insufficient stock: {ingredient_name} (required {required:g}, current {current:g})",
            details={
                "ingredient_id": ingredient_id,
                "ingredient_name": ingredient_name,
                "unit": unit,
                "required": required,
                "current": current,
            },
        )
        self.ingredient_id = ingredient_id
        self.ingredient_name = ingredient_name
        self.required = required
        self.current = current


class InvalidQuantity(FulfillmentError):
    kind = ErrorKind.INVALID_QUANTITY
    http_status = 400


class NotFound(FulfillmentError):
    kind = ErrorKind.NOT_FOUND
    http_status = 404


class ConsistencyViolation(FulfillmentError):
    """A write would corrupt stock (negative level) or lost an optimistic race."""
    kind = ErrorKind.CONSISTENCY_VIOLATION
    http_status = 409


class InvalidPaymentChannel(FulfillmentError):
    kind = ErrorKind.INVALID_PAYMENT_CHANNEL
    http_status = 400


class InvalidState(FulfillmentError):
    kind = ErrorKind.INVALID_STATE
    http_status = 409


class DuplicateEntry(FulfillmentError):
    kind = ErrorKind.DUPLICATE_ENTRY
    http_status = 409
