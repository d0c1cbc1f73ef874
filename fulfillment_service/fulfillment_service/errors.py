"""Error taxonomy of the fulfillment core.

Every failure raised by the ledger, the packager or the coordinator is a
``FulfillmentError`` tagged with an ``ErrorCode`` and a small payload naming
the offending id or quantity. The HTTP layer maps codes to status codes and
the Kafka consumer logs them; the core itself never retries or swallows them.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Closed set of error kinds surfaced by the core."""

    PRODUCT_NOT_FOUND = "product_not_found"
    DUPLICATE_PRODUCT = "duplicate_product"
    DUPLICATE_ORDER = "duplicate_order"
    INSUFFICIENT_INVENTORY = "insufficient_inventory"
    INVALID_QUANTITY = "invalid_quantity"
    OVERSIZED_UNIT = "oversized_unit"
    ORDER_NOT_FOUND = "order_not_found"
    SHIPMENT_NOT_FOUND = "shipment_not_found"
    LEDGER_LOCK_NOT_HELD = "ledger_lock_not_held"
    LOCK_TIMEOUT = "lock_timeout"


class FulfillmentError(Exception):
    """Base class for all core errors.

    Attributes:
        code: The error kind.
        payload: Offending ids/quantities, safe to return to API callers.
    """

    code: ErrorCode

    def __init__(self, message: str, **payload: Any):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_dict(self) -> dict:
        """Serialize the error for API responses and log records."""
        return {"code": self.code.value, "message": self.message, **self.payload}


class ProductNotFoundError(FulfillmentError):
    code = ErrorCode.PRODUCT_NOT_FOUND

    def __init__(self, product_id: int):
        super().__init__(f"Product not found in inventory: {product_id}", product_id=product_id)


class DuplicateProductError(FulfillmentError):
    code = ErrorCode.DUPLICATE_PRODUCT

    def __init__(self, product_id: int):
        super().__init__(f"Product already registered: {product_id}", product_id=product_id)


class DuplicateOrderError(FulfillmentError):
    code = ErrorCode.DUPLICATE_ORDER

    def __init__(self, order_id: int):
        super().__init__(f"Order already exists: {order_id}", order_id=order_id)


class InsufficientInventoryError(FulfillmentError):
    code = ErrorCode.INSUFFICIENT_INVENTORY

    def __init__(self, product_id: int, available: int, requested: int):
        super().__init__(
            f"Cannot reduce inventory of product {product_id}: available={available}, requested={requested}",
            product_id=product_id,
            available=available,
            requested=requested,
        )


class InvalidQuantityError(FulfillmentError):
    code = ErrorCode.INVALID_QUANTITY

    def __init__(self, product_id: int, quantity: int):
        super().__init__(f"Invalid quantity {quantity} for product {product_id}", product_id=product_id, quantity=quantity)


class OversizedUnitError(FulfillmentError):
    code = ErrorCode.OVERSIZED_UNIT

    def __init__(self, product_id: int, unit_weight_g: int, max_weight_g: int):
        super().__init__(
            f"Single unit of product {product_id} ({unit_weight_g}g) exceeds maximum shipment weight of {max_weight_g}g",
            product_id=product_id,
            unit_weight_g=unit_weight_g,
        )


class OrderNotFoundError(FulfillmentError):
    code = ErrorCode.ORDER_NOT_FOUND

    def __init__(self, order_id: int):
        super().__init__(f"Order not found: {order_id}", order_id=order_id)


class ShipmentNotFoundError(FulfillmentError):
    code = ErrorCode.SHIPMENT_NOT_FOUND

    def __init__(self, shipment_id: int):
        super().__init__(f"Shipment not found: {shipment_id}", shipment_id=shipment_id)


class LedgerLockError(FulfillmentError):
    """Raised when a ledger record is mutated without holding its lock."""

    code = ErrorCode.LEDGER_LOCK_NOT_HELD

    def __init__(self, product_id: int):
        super().__init__(f"Ledger lock for product {product_id} is not held by the caller", product_id=product_id)


class LockTimeoutError(FulfillmentError):
    code = ErrorCode.LOCK_TIMEOUT

    def __init__(self, product_id: int, timeout: float):
        super().__init__(
            f"Timed out after {timeout}s waiting for the ledger lock of product {product_id}",
            product_id=product_id,
            timeout=timeout,
        )
