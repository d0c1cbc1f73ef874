"""Domain entities of the fulfillment core."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Maximum total weight of one shipment, in grams
MAX_SHIPMENT_WEIGHT_G = 1800


def utcnow() -> datetime:
    """Timezone-aware current time used for every creation timestamp."""
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    """Lifecycle of an order. Transitions only move forward."""

    PENDING = "PENDING"
    PARTIALLY_FULFILLED = "PARTIALLY_FULFILLED"
    FULFILLED = "FULFILLED"
    COMPLETED = "COMPLETED"

    @property
    def rank(self) -> int:
        return list(OrderStatus).index(self)


class LineStatus(str, Enum):
    """Fulfillment state of a single order line."""

    PENDING = "PENDING"
    PARTIALLY_FULFILLED = "PARTIALLY_FULFILLED"
    FULFILLED = "FULFILLED"


class Product(BaseModel):
    """A catalog product. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    product_id: int = Field(..., ge=0)
    product_name: str = Field(..., min_length=1)
    mass_g: int = Field(..., gt=0, description="Unit mass in grams")


class InventoryRecord(BaseModel):
    """Available quantity of one product, mutated only by the ledger."""

    product_id: int = Field(..., ge=0)
    available_qty: int = Field(default=0, ge=0)


class OrderLine(BaseModel):
    """Requested and fulfilled quantity of one product within an order.

    Attributes:
        order_id: Owning order.
        product_id: Ordered product.
        requested_qty: Units requested, strictly positive.
        fulfilled_qty: Units shipped so far, never above ``requested_qty``.
        status: Derived from the two quantities, see ``derive_status``.
    """

    order_id: int
    product_id: int = Field(..., ge=0)
    requested_qty: int = Field(..., gt=0)
    fulfilled_qty: int = Field(default=0, ge=0)
    status: LineStatus = LineStatus.PENDING

    @model_validator(mode="after")
    def _check_quantities(self) -> "OrderLine":
        if self.fulfilled_qty > self.requested_qty:
            raise ValueError("fulfilled_qty cannot exceed requested_qty")
        self.status = self.derive_status()
        return self

    @property
    def outstanding_qty(self) -> int:
        return self.requested_qty - self.fulfilled_qty

    def derive_status(self) -> LineStatus:
        if self.fulfilled_qty == self.requested_qty:
            return LineStatus.FULFILLED
        if self.fulfilled_qty == 0:
            return LineStatus.PENDING
        return LineStatus.PARTIALLY_FULFILLED

    def record_shipment(self, quantity: int) -> None:
        """Add shipped units and recompute the line status."""
        if quantity <= 0 or quantity > self.outstanding_qty:
            raise ValueError(
                f"Cannot ship {quantity} units of product {self.product_id}: {self.outstanding_qty} outstanding"
            )
        self.fulfilled_qty += quantity
        self.status = self.derive_status()


class ShipmentLine(BaseModel):
    """Units of one product inside a shipment."""

    model_config = ConfigDict(frozen=True)

    shipment_id: int
    product_id: int = Field(..., ge=0)
    quantity: int = Field(..., gt=0)


class Shipment(BaseModel):
    """A weight-bounded package sent for an order. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    shipment_id: int
    order_id: int
    total_weight_g: int = Field(..., ge=0, le=MAX_SHIPMENT_WEIGHT_G)
    created_at: datetime = Field(default_factory=utcnow)
    lines: tuple[ShipmentLine, ...] = ()


class BackorderEntry(BaseModel):
    """Unshipped remainder of an order line, waiting for a restock.

    ``sequence`` is assigned by the queue and breaks ties between entries
    created within the same clock tick.
    """

    entry_id: int = 0
    order_id: int
    product_id: int = Field(..., ge=0)
    pending_qty: int = Field(..., gt=0)
    created_at: datetime = Field(default_factory=utcnow)
    sequence: int = 0


class Order(BaseModel):
    """A customer order with its lines and the shipments sent for it."""

    order_id: int
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    lines: list[OrderLine] = Field(default_factory=list)
    shipments: list[Shipment] = Field(default_factory=list)

    def line_for(self, product_id: int) -> Optional[OrderLine]:
        return next((line for line in self.lines if line.product_id == product_id), None)

    def tally_status(self) -> OrderStatus:
        """Status from the count of fully fulfilled lines.

        A partially fulfilled line counts the same as a pending one.
        """
        fulfilled = sum(1 for line in self.lines if line.status == LineStatus.FULFILLED)
        if self.lines and fulfilled == len(self.lines):
            return OrderStatus.FULFILLED
        if fulfilled > 0:
            return OrderStatus.PARTIALLY_FULFILLED
        return OrderStatus.PENDING

    def shipped_quantity(self, product_id: int) -> int:
        """Total units of a product across all shipments of the order."""
        return sum(line.quantity for shipment in self.shipments for line in shipment.lines if line.product_id == product_id)
