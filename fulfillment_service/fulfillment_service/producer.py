"""Kafka producer for publishing shipment and order status events."""

from confluent_kafka import Producer
from logging_utils.config import get_kafka_logger

from .models import Order, Shipment, utcnow
from .schemas import OrderStatusEvent, ShipmentEvent

logger = get_kafka_logger("fulfillment-service")

SHIPMENTS_TOPIC = "shipments.created"
ORDER_STATUS_TOPIC = "orders.status"


class FulfillmentProducer:
    """Publishes fulfillment outcomes to Kafka.

    Messages are keyed by order id so every event of an order lands on the
    same partition and is consumed in order.

    Attributes:
        _producer: The underlying Kafka producer instance.
    """

    def __init__(self, bootstrap_servers: str, client_id: str = "fulfillment-service"):
        """Initialize the Kafka producer.

        Args:
            bootstrap_servers (str): Comma-separated list of Kafka broker addresses.
            client_id (str): Client id reported to the brokers.
        """
        self._producer = Producer(
            {
                "bootstrap.servers": bootstrap_servers,
                "client.id": client_id,
                "message.timeout.ms": 5000,
                "partitioner": "consistent_random",  # Same key → same partition
            }
        )

    @property
    def producer(self):
        """Get the underlying Kafka producer instance."""
        return self._producer

    def _delivery_callback(self, err, msg):
        """Log the delivery report of a message.

        Args:
            err: Error that occurred during message delivery, if any.
            msg: Message that was delivered or failed.
        """
        if err:
            logger.error(f"Message failed delivery: {err} | topic={msg.topic()} | key={msg.key()}")
        else:
            logger.debug(f"Message delivered to {msg.topic()} [p:{msg.partition()}] @ {msg.offset()}")

    def _publish(self, topic: str, key: int, value: str) -> None:
        try:
            self.producer.produce(
                topic=topic,
                key=str(key).encode("utf-8"),
                value=value,
                on_delivery=self._delivery_callback,
            )
            self.producer.poll(0)  # Trigger delivery callbacks
        except BufferError:
            logger.warning("Producer buffer full, flushing...")
            self.producer.flush()
            raise

    def publish_shipment(self, shipment: Shipment) -> None:
        """Publish a created shipment.

        Raises:
            BufferError: If the producer's internal buffer is full.
        """
        event = ShipmentEvent.from_shipment(shipment)
        self._publish(SHIPMENTS_TOPIC, shipment.order_id, event.model_dump_json())

    def publish_order_status(self, order: Order) -> None:
        """Publish the current status of an order.

        Raises:
            BufferError: If the producer's internal buffer is full.
        """
        event = OrderStatusEvent(order_id=order.order_id, status=order.status, updated_at=utcnow())
        self._publish(ORDER_STATUS_TOPIC, order.order_id, event.model_dump_json())

    def flush(self, timeout: float = 10.0) -> None:
        """Wait for all messages to be delivered."""
        remaining = self.producer.flush(timeout)
        if remaining > 0:
            logger.warning(f"{remaining} messages still pending delivery")

    def close(self) -> None:
        """Flush pending messages before shutdown."""
        self.flush()
