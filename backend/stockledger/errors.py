# Overview: Domain exceptions raised by the service layer and mapped to HTTP status by routes.

"""
Stock Ledger error kinds (authoritative)

- Validation errors are raised before any mutation; the caller may retry with corrected input.
- InsufficientStockError / WouldGoNegativeError are business-rule rejections; state is unchanged.
- StoreUnavailableError is retryable by the caller; the engine never retries a movement itself.
- Nothing here is ever downgraded to a warning.
"""
from __future__ import annotations


class StockLedgerError(Exception):
    """Base class for all stock ledger failures."""


class MovementValidationError(StockLedgerError, ValueError):
    """400-level problem with a movement request."""


class UnknownProductError(MovementValidationError):
    def __init__(self, product_id):
        super().__init__(f"Product ID {product_id} does not exist")
        self.product_id = product_id


class InvalidDirectionError(MovementValidationError):
    def __init__(self, direction):
        super().__init__("Transaction type must be IN or OUT")
        self.direction = direction


class InvalidQuantityError(MovementValidationError):
    def __init__(self, quantity):
        super().__init__("Quantity must be a positive integer")
        self.quantity = quantity


class InsufficientStockError(StockLedgerError):
    """OUT movement(s) exceed the balance at the atomicity boundary."""

    def __init__(self, product_id: int, available: int, requested: int, sku: str | None = None):
        label = f"Product ID {product_id}" + (f" (SKU: {sku})" if sku else "")
        super().__init__(
            f"Insufficient stock for {label}. Available: {available}, Requested: {requested}"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class WouldGoNegativeError(StockLedgerError):
    def __init__(self, product_id: int, current: int, delta: int):
        super().__init__(
            f"Applying delta {delta} to product {product_id} would make stock negative (current: {current})"
        )
        self.product_id = product_id
        self.current = current
        self.delta = delta


class ProductNotFoundError(StockLedgerError, LookupError):
    def __init__(self, product_id):
        super().__init__(f"product {product_id} not found")
        self.product_id = product_id


class AlertNotFoundError(StockLedgerError, LookupError):
    def __init__(self, alert_id):
        super().__init__(f"alert {alert_id} not found")
        self.alert_id = alert_id


class AlertAlreadyAcknowledgedError(StockLedgerError):
    """409-level: acknowledgment is a one-way transition."""


class AlertValidationError(StockLedgerError, ValueError):
    """Invalid detection input (severity filter, threshold override)."""


class ReportValidationError(StockLedgerError, ValueError):
    """Invalid report period or filter."""


class StoreUnavailableError(StockLedgerError):
    """The backing store failed; nothing was applied. Safe for the caller to retry."""


class LedgerImmutabilityError(StockLedgerError):
    """A persisted ledger entry was about to be updated or deleted."""
