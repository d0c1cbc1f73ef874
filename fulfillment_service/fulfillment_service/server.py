"""FastAPI entry point for the Fulfillment Service."""

import threading
from contextlib import asynccontextmanager
from typing import Optional

from confluent_kafka import KafkaException
from confluent_kafka.admin import AdminClient
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .catalog import load_catalog_file
from .config import ServiceConfig, config
from .consumer import ORDERS_TOPIC, RESTOCK_TOPIC, FulfillmentConsumer
from .coordinator import OrderFulfillmentCoordinator, RestockResult
from .errors import ErrorCode, FulfillmentError
from .ledger import InventoryLedger
from .logger import logger
from .models import Order, Product
from .producer import FulfillmentProducer
from .schemas import (
    ApiResponse,
    InventoryItem,
    OrderRequest,
    OrderResponse,
    ProductPayload,
    RequestedItem,
    RestockRequest,
    RestockResponse,
    ShipmentResponse,
)

ERROR_STATUS = {
    ErrorCode.PRODUCT_NOT_FOUND: 404,
    ErrorCode.ORDER_NOT_FOUND: 404,
    ErrorCode.SHIPMENT_NOT_FOUND: 404,
    ErrorCode.DUPLICATE_PRODUCT: 409,
    ErrorCode.DUPLICATE_ORDER: 409,
    ErrorCode.LOCK_TIMEOUT: 409,
}


class FulfillmentState:
    """Class to manage fulfillment service state."""

    def __init__(self, service_config: ServiceConfig) -> None:
        """Initialize fulfillment state."""
        self.config = service_config
        self.producer: Optional[FulfillmentProducer] = None
        self.consumer: Optional[FulfillmentConsumer] = None
        self.reset()

    def reset(self) -> None:
        """Start over with an empty catalog, ledger and order store."""
        self.coordinator = OrderFulfillmentCoordinator(
            ledger=InventoryLedger(lock_timeout=self.config.ledger_lock_timeout)
        )

    def publish_order(self, order: Order) -> None:
        """Publish the shipments and status of a freshly processed order."""
        if not self.producer:
            return
        try:
            for shipment in order.shipments:
                self.producer.publish_shipment(shipment)
            self.producer.publish_order_status(order)
        except (BufferError, KafkaException) as e:
            # The order is already committed at this point
            logger.error(f"Failed to publish events of order {order.order_id}: {e}")

    def publish_restock(self, result: RestockResult) -> None:
        """Publish the shipments and updated orders of a restock."""
        if not self.producer:
            return
        try:
            for shipment_id in result.shipment_ids:
                self.producer.publish_shipment(self.coordinator.get_shipment(shipment_id))
            for order_id in result.updated_order_ids:
                self.producer.publish_order_status(self.coordinator.get_order(order_id))
        except (BufferError, KafkaException) as e:
            logger.error(f"Failed to publish restock events: {e}")


def handle_order_message(payload: dict) -> None:
    """Process an order consumed from ``orders.created``."""
    request = OrderRequest(**payload)
    order = state.coordinator.process_order(request.order_id, [item.as_pair() for item in request.requested])
    state.publish_order(order)


def handle_restock_message(payload: dict) -> None:
    """Process a restock consumed from ``inventory.restocked``."""
    request = RestockRequest(**payload)
    result = state.coordinator.process_restock([item.as_pair() for item in request.items])
    state.publish_restock(result)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the lifecycle of the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    # Startup: load the catalog, then wire Kafka unless running in mock mode
    if state.config.catalog_file:
        products = load_catalog_file(state.config.catalog_file)
        state.coordinator.init_catalog(products)
        logger.info(f"Loaded {len(products)} products from {state.config.catalog_file}")

    if state.config.mock_mode:
        logger.info("Starting fulfillment service in MOCK mode, Kafka disabled")
    else:
        state.producer = FulfillmentProducer(state.config.kafka_bootstrap_servers)
        state.consumer = FulfillmentConsumer(
            bootstrap_servers=state.config.kafka_bootstrap_servers,
            group_id=state.config.kafka_consumer_group,
        )
        state.consumer.subscribe([ORDERS_TOPIC, RESTOCK_TOPIC])
        consumer_thread = threading.Thread(
            target=state.consumer.process_messages,
            args=({ORDERS_TOPIC: handle_order_message, RESTOCK_TOPIC: handle_restock_message},),
            daemon=True,
        )
        consumer_thread.start()
        logger.info("Consumer thread started")

    yield

    # Shutdown
    logger.info("Shutting down fulfillment service...")
    if state.consumer:
        state.consumer.stop()
    if state.producer:
        state.producer.close()
    logger.info("Shutdown complete")


# Initialize FastAPI app and state
app = FastAPI(title="Fulfillment Service", lifespan=lifespan)
state = FulfillmentState(config)


@app.exception_handler(FulfillmentError)
async def fulfillment_error_handler(request: Request, exc: FulfillmentError):
    """Translate core errors into the API envelope."""
    status_code = ERROR_STATUS.get(exc.code, 400)
    logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    body = ApiResponse(success=False, message=exc.message, error=exc.to_dict())
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/ready")
async def readiness_check():
    """Readiness check that verifies Kafka connection."""
    if state.config.mock_mode:
        return {"status": "ready", "kafka": "disabled"}
    try:
        admin = AdminClient({"bootstrap.servers": state.config.kafka_bootstrap_servers})
        cluster_metadata = admin.list_topics(timeout=10)
        if cluster_metadata is not None:
            return {"status": "ready", "kafka": "connected"}
    except Exception as e:
        logger.error(f"Kafka connection failed: {e}")
    return {"status": "not ready", "kafka": "disconnected"}


@app.post("/v1/init_catalog", response_model=ApiResponse)
def init_catalog(products: list[ProductPayload]):
    """Register catalog products, each starting with zero stock.

    Example body: ``[{"product_id": 0, "product_name": "RBC A+ Adult", "mass_g": 700}]``
    """
    logger.info(f"Initializing catalog with {len(products)} products")
    count = state.coordinator.init_catalog(Product(**product.model_dump()) for product in products)
    message = f"Catalog initialized successfully with {count} products"
    return ApiResponse(success=True, message=message, data=message)


@app.post("/v1/process_order", response_model=ApiResponse)
def process_order(order_request: OrderRequest):
    """Ship what is in stock for a new order and backorder the rest."""
    order = state.coordinator.process_order(
        order_request.order_id, [item.as_pair() for item in order_request.requested]
    )
    state.publish_order(order)
    return ApiResponse(
        success=True,
        message="Order processed successfully",
        data=OrderResponse.from_order(order, state.coordinator.get_backorders(order.order_id)),
    )


@app.post("/v1/process_restock", response_model=ApiResponse)
def process_restock(restock_items: list[RequestedItem]):
    """Add stock and ship pending backorders, oldest first.

    Example body: ``[{"product_id": 0, "quantity": 30}]``
    """
    result = state.coordinator.process_restock([item.as_pair() for item in restock_items])
    state.publish_restock(result)
    return ApiResponse(
        success=True,
        message="Restock processed successfully",
        data=RestockResponse(
            products_restocked=result.products_restocked,
            shipments_created=result.shipments_created,
            orders_updated=result.orders_updated,
        ),
    )


@app.get("/v1/ship_package/{shipment_id}", response_model=ApiResponse)
def get_shipment(shipment_id: int):
    """Return the order and the items carried by a shipment."""
    shipment = state.coordinator.get_shipment(shipment_id)
    return ApiResponse(
        success=True,
        message="Shipment retrieved successfully",
        data=ShipmentResponse.from_shipment(shipment),
    )


@app.get("/v1/orders/{order_id}", response_model=ApiResponse)
def get_order(order_id: int):
    """Return an order with its lines, shipments and outstanding backorders."""
    order = state.coordinator.get_order(order_id)
    return ApiResponse(
        success=True,
        message="Order retrieved successfully",
        data=OrderResponse.from_order(order, state.coordinator.get_backorders(order_id)),
    )


@app.get("/v1/inventory", response_model=ApiResponse)
def list_inventory():
    """Return the available quantity of every catalog product."""
    items = [
        InventoryItem(product_id=product_id, available_qty=quantity)
        for product_id, quantity in state.coordinator.inventory().items()
    ]
    return ApiResponse(success=True, message="Inventory retrieved successfully", data=items)
