"""Kafka consumer feeding order and restock events to the coordinator."""

import json
from typing import Callable

from confluent_kafka import Consumer, KafkaError, KafkaException
from logging_utils.config import get_kafka_logger
from pydantic import ValidationError

from .errors import FulfillmentError

logger = get_kafka_logger("fulfillment-service")

ORDERS_TOPIC = "orders.created"
RESTOCK_TOPIC = "inventory.restocked"

MessageHandler = Callable[[dict], None]


def create_consumer(bootstrap_servers: str = "kafka:9092", group_id: str = "fulfillment-service") -> Consumer:
    """Create a Kafka consumer instance."""
    return Consumer(
        {
            "bootstrap.servers": bootstrap_servers,
            "group.id": group_id,
            "auto.offset.reset": "earliest",
        }
    )


class FulfillmentConsumer:
    """Consumes order and restock messages and dispatches them by topic.

    A message that cannot be decoded or validated, or whose processing fails
    with a fulfillment error, is logged and skipped so one bad message never
    stalls the partition.
    """

    def __init__(self, bootstrap_servers: str, group_id: str) -> None:
        """Initialize the fulfillment consumer.

        Args:
            bootstrap_servers: Kafka bootstrap servers
            group_id: Consumer group ID
        """
        logger.info(f"Initializing consumer | bootstrap_servers={bootstrap_servers} | group_id={group_id}")
        self.consumer = create_consumer(bootstrap_servers, group_id)
        self._running = False

    def subscribe(self, topics: list[str]) -> None:
        """Subscribe to the specified Kafka topics."""
        logger.info(f"Subscribing to topics: {topics}")
        self.consumer.subscribe(topics)
        logger.info("Successfully subscribed to topics")

    def process_messages(self, handlers: dict[str, MessageHandler]) -> None:
        """Poll messages until ``stop`` is called.

        Args:
            handlers: Callback per topic, receiving the decoded JSON payload
        """
        self._running = True
        logger.info("Starting message processing loop")
        try:
            while self._running:
                msg = self.consumer.poll(timeout=1.0)
                if msg is None:
                    continue

                if msg.error():
                    if msg.error().code() == KafkaError._PARTITION_EOF:
                        logger.debug("Reached end of partition")
                        continue
                    logger.error(f"Kafka error: {msg.error()}")
                    raise KafkaException(msg.error())

                self.dispatch(msg.topic(), msg.value(), handlers)
        finally:
            self.consumer.close()
            logger.info("Consumer closed")

    def dispatch(self, topic: str, raw_value: bytes, handlers: dict[str, MessageHandler]) -> bool:
        """Decode one message and hand it to the handler of its topic.

        Returns:
            bool: True if the handler ran to completion.
        """
        handler = handlers.get(topic)
        if handler is None:
            logger.warning(f"No handler for topic {topic}, skipping message")
            return False
        try:
            payload = json.loads(raw_value)
            handler(payload)
            return True
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse message on {topic}: {e}")
        except ValidationError as e:
            logger.error(f"Invalid message on {topic}: {e.errors()}")
        except FulfillmentError as e:
            logger.warning(f"Message on {topic} rejected: {e.to_dict()}")
        except Exception as e:
            logger.exception(f"Error processing message on {topic}: {e}")
        return False

    def stop(self) -> None:
        """Ask the processing loop to exit after the current poll."""
        self._running = False
