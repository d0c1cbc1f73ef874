"""Pydantic models for Fulfillment Service API and Kafka payloads."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import BackorderEntry, LineStatus, Order, OrderStatus, Shipment


class ProductPayload(BaseModel):
    """A catalog product as sent to ``/v1/init_catalog``."""

    product_id: int = Field(..., ge=0, description="Catalog product identifier.")
    product_name: str = Field(..., min_length=1, description="Display name.")
    mass_g: int = Field(..., gt=0, description="Unit mass in grams.")

    model_config = ConfigDict(
        json_schema_extra={"example": {"product_id": 0, "product_name": "RBC A+ Adult", "mass_g": 700}}
    )


class RequestedItem(BaseModel):
    """Units of one product requested by an order or added by a restock."""

    product_id: int = Field(..., ge=0, description="Catalog product identifier.")
    quantity: int = Field(..., gt=0, description="Number of units.")

    def as_pair(self) -> tuple[int, int]:
        return self.product_id, self.quantity


class OrderRequest(BaseModel):
    """An order as sent to ``/v1/process_order`` or published on ``orders.created``."""

    order_id: int = Field(..., description="Caller-supplied unique order identifier.")
    requested: list[RequestedItem] = Field(..., min_length=1, description="At least one item required.")

    model_config = ConfigDict(
        json_schema_extra={"example": {"order_id": 123, "requested": [{"product_id": 0, "quantity": 2}]}}
    )


class RestockRequest(BaseModel):
    """A restock as published on ``inventory.restocked``."""

    items: list[RequestedItem] = Field(..., min_length=1)


class OrderLineResponse(BaseModel):
    product_id: int
    requested_qty: int
    fulfilled_qty: int
    status: LineStatus


class BackorderResponse(BaseModel):
    product_id: int
    pending_qty: int
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: BackorderEntry) -> "BackorderResponse":
        return cls(product_id=entry.product_id, pending_qty=entry.pending_qty, created_at=entry.created_at)


class OrderResponse(BaseModel):
    """Order state returned by the API."""

    order_id: int
    status: OrderStatus
    created_at: datetime
    total_items: int
    items: list[OrderLineResponse]
    shipment_ids: list[int] = Field(default_factory=list)
    backorders: list[BackorderResponse] = Field(default_factory=list)

    @classmethod
    def from_order(cls, order: Order, backorders: Optional[list[BackorderEntry]] = None) -> "OrderResponse":
        return cls(
            order_id=order.order_id,
            status=order.status,
            created_at=order.created_at,
            total_items=len(order.lines),
            items=[
                OrderLineResponse(
                    product_id=line.product_id,
                    requested_qty=line.requested_qty,
                    fulfilled_qty=line.fulfilled_qty,
                    status=line.status,
                )
                for line in order.lines
            ],
            shipment_ids=[shipment.shipment_id for shipment in order.shipments],
            backorders=[BackorderResponse.from_entry(entry) for entry in backorders or []],
        )


class RestockResponse(BaseModel):
    products_restocked: int
    shipments_created: int
    orders_updated: int


class ShippedItem(BaseModel):
    product_id: int
    quantity: int


class ShipmentResponse(BaseModel):
    """Shipment lookup result: the order it belongs to and what it carries."""

    order_id: int
    shipped: list[ShippedItem]

    @classmethod
    def from_shipment(cls, shipment: Shipment) -> "ShipmentResponse":
        return cls(
            order_id=shipment.order_id,
            shipped=[ShippedItem(product_id=line.product_id, quantity=line.quantity) for line in shipment.lines],
        )


class InventoryItem(BaseModel):
    product_id: int
    available_qty: int


class ApiResponse(BaseModel):
    """Envelope of every ``/v1`` response."""

    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[Any] = None


class ShipmentEvent(BaseModel):
    """Payload published on ``shipments.created``."""

    shipment_id: int
    order_id: int
    total_weight_g: int
    created_at: datetime
    items: list[ShippedItem]

    @classmethod
    def from_shipment(cls, shipment: Shipment) -> "ShipmentEvent":
        return cls(
            shipment_id=shipment.shipment_id,
            order_id=shipment.order_id,
            total_weight_g=shipment.total_weight_g,
            created_at=shipment.created_at,
            items=[ShippedItem(product_id=line.product_id, quantity=line.quantity) for line in shipment.lines],
        )


class OrderStatusEvent(BaseModel):
    """Payload published on ``orders.status``."""

    order_id: int
    status: OrderStatus
    updated_at: datetime
