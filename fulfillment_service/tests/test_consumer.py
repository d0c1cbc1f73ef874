"""Tests for the Kafka consumer."""

import json
from unittest.mock import Mock, patch

import pytest
from confluent_kafka import KafkaError, KafkaException

from fulfillment_service.consumer import ORDERS_TOPIC, RESTOCK_TOPIC, FulfillmentConsumer, create_consumer
from fulfillment_service.errors import ProductNotFoundError


def make_message(topic, value=None, error=None):
    message = Mock()
    message.topic.return_value = topic
    message.value.return_value = value
    message.error.return_value = error
    return message


@pytest.fixture
def kafka_consumer():
    """Patched confluent-kafka consumer instance."""
    with patch("fulfillment_service.consumer.Consumer") as mock_consumer:
        yield mock_consumer.return_value


@patch("fulfillment_service.consumer.Consumer")
def test_create_consumer(mock_consumer):
    """Test Kafka consumer creation."""
    create_consumer()
    mock_consumer.assert_called_once_with(
        {
            "bootstrap.servers": "kafka:9092",
            "group.id": "fulfillment-service",
            "auto.offset.reset": "earliest",
        }
    )


def test_subscribe(kafka_consumer):
    consumer = FulfillmentConsumer("kafka:9092", "fulfillment-service")
    consumer.subscribe([ORDERS_TOPIC, RESTOCK_TOPIC])

    kafka_consumer.subscribe.assert_called_once_with(["orders.created", "inventory.restocked"])


def test_dispatch_routes_by_topic(kafka_consumer):
    consumer = FulfillmentConsumer("kafka:9092", "fulfillment-service")
    on_order, on_restock = Mock(), Mock()
    payload = {"order_id": 1, "requested": [{"product_id": 0, "quantity": 1}]}

    handled = consumer.dispatch(
        ORDERS_TOPIC, json.dumps(payload).encode(), {ORDERS_TOPIC: on_order, RESTOCK_TOPIC: on_restock}
    )

    assert handled is True
    on_order.assert_called_once_with(payload)
    on_restock.assert_not_called()


@pytest.mark.parametrize(
    "raw_value, side_effect",
    [
        (b"{not json", None),
        (b'{"order_id": 1}', ProductNotFoundError(5)),
        (b'{"order_id": 1}', RuntimeError("unexpected")),
    ],
)
def test_dispatch_skips_bad_messages(kafka_consumer, raw_value, side_effect):
    """A message that cannot be processed is logged and skipped."""
    consumer = FulfillmentConsumer("kafka:9092", "fulfillment-service")
    handler = Mock(side_effect=side_effect)

    assert consumer.dispatch(ORDERS_TOPIC, raw_value, {ORDERS_TOPIC: handler}) is False


def test_dispatch_without_handler(kafka_consumer):
    consumer = FulfillmentConsumer("kafka:9092", "fulfillment-service")
    assert consumer.dispatch("unknown.topic", b"{}", {}) is False


def test_process_messages_until_stopped(kafka_consumer):
    consumer = FulfillmentConsumer("kafka:9092", "fulfillment-service")
    eof = Mock()
    eof.code.return_value = KafkaError._PARTITION_EOF
    received = []

    def on_restock(payload):
        received.append(payload)
        consumer.stop()

    kafka_consumer.poll.side_effect = [
        None,
        make_message(RESTOCK_TOPIC, error=eof),
        make_message(RESTOCK_TOPIC, json.dumps({"items": []}).encode()),
    ]

    consumer.process_messages({RESTOCK_TOPIC: on_restock})

    assert received == [{"items": []}]
    assert kafka_consumer.poll.call_count == 3
    kafka_consumer.close.assert_called_once()


def test_process_messages_raises_on_kafka_error(kafka_consumer):
    consumer = FulfillmentConsumer("kafka:9092", "fulfillment-service")
    error = Mock()
    error.code.return_value = KafkaError._TRANSPORT
    kafka_consumer.poll.return_value = make_message(ORDERS_TOPIC, error=error)

    with pytest.raises(KafkaException):
        consumer.process_messages({ORDERS_TOPIC: Mock()})

    kafka_consumer.close.assert_called_once()
