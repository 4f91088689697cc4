"""Typed failures raised by the stock ledger.

Ledger and allocation code never swallows these; they propagate to the
caller with enough context (available vs. requested quantities) to decide
on retry, partial fulfilment or user notification.
"""

from typing import Any


class StockLedgerError(Exception):
    code = "stock_ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_details(self) -> dict[str, Any]:
        return {}


class InsufficientStockError(StockLedgerError):
    code = "insufficient_stock"

    def __init__(
        self,
        *,
        available: int,
        requested: int,
        product_id: str | None = None,
        location_code: str | None = None,
    ):
        where = f" at {location_code}" if location_code else ""
        super().__init__(f"Insufficient stock{where}: requested {requested}, available {available}")
        self.available = available
        self.requested = requested
        self.product_id = product_id
        self.location_code = location_code

    def to_details(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "requested": self.requested,
            "product_id": self.product_id,
            "location_code": self.location_code,
        }


class CapacityExceededError(StockLedgerError):
    code = "capacity_exceeded"

    def __init__(
        self,
        *,
        capacity: int,
        current: int,
        requested: int,
        product_id: str | None = None,
        location_code: str | None = None,
    ):
        super().__init__(
            f"Capacity exceeded at {location_code or 'location'}: "
            f"capacity {capacity}, current {current}, requested {requested}"
        )
        self.capacity = capacity
        self.current = current
        self.requested = requested
        self.product_id = product_id
        self.location_code = location_code

    def to_details(self) -> dict[str, Any]:
        return {
            "capacity": self.capacity,
            "current": self.current,
            "requested": self.requested,
            "product_id": self.product_id,
            "location_code": self.location_code,
        }


class InvalidTransferError(StockLedgerError):
    code = "invalid_transfer"


class ValidationError(StockLedgerError):
    code = "validation_error"


class NotFoundError(StockLedgerError):
    code = "not_found"


class ResourceBusyError(StockLedgerError):
    """Lock wait on a contended ledger cell expired; safe to retry with backoff."""

    code = "resource_busy"

    def __init__(self, message: str = "Stock ledger is busy, retry later", *, retry_after_seconds: int = 1):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds

    def to_details(self) -> dict[str, Any]:
        return {"retry_after_seconds": self.retry_after_seconds}


class StoreUnavailableError(StockLedgerError):
    code = "store_unavailable"
