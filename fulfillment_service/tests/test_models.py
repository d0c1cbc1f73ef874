"""Tests for the domain entities."""

import pytest
from pydantic import ValidationError

from fulfillment_service.models import LineStatus, Order, OrderLine, OrderStatus, Shipment


def test_line_status_follows_quantities():
    line = OrderLine(order_id=1, product_id=0, requested_qty=3)
    assert line.status == LineStatus.PENDING

    line.record_shipment(1)
    assert line.status == LineStatus.PARTIALLY_FULFILLED
    assert line.outstanding_qty == 2

    line.record_shipment(2)
    assert line.status == LineStatus.FULFILLED


def test_line_cannot_ship_more_than_requested():
    line = OrderLine(order_id=1, product_id=0, requested_qty=2, fulfilled_qty=1)

    with pytest.raises(ValueError):
        line.record_shipment(2)
    assert line.fulfilled_qty == 1

    with pytest.raises(ValidationError):
        OrderLine(order_id=1, product_id=0, requested_qty=2, fulfilled_qty=3)


def test_order_status_only_counts_fully_fulfilled_lines():
    order = Order(
        order_id=1,
        lines=[
            OrderLine(order_id=1, product_id=0, requested_qty=2, fulfilled_qty=1),
            OrderLine(order_id=1, product_id=1, requested_qty=1),
        ],
    )
    assert order.tally_status() == OrderStatus.PENDING

    order.lines[1].record_shipment(1)
    assert order.tally_status() == OrderStatus.PARTIALLY_FULFILLED

    order.lines[0].record_shipment(1)
    assert order.tally_status() == OrderStatus.FULFILLED


def test_status_rank_orders_the_lifecycle():
    ranks = [status.rank for status in OrderStatus]
    assert ranks == sorted(ranks)
    assert OrderStatus.COMPLETED.rank > OrderStatus.FULFILLED.rank


def test_shipment_weight_is_bounded():
    with pytest.raises(ValidationError):
        Shipment(shipment_id=1, order_id=1, total_weight_g=1801)
