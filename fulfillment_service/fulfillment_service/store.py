"""In-memory order and shipment store with all-or-nothing transactions."""

import itertools
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Optional

from .errors import DuplicateOrderError, OrderNotFoundError, ShipmentNotFoundError
from .logger import logger
from .models import Order, Shipment, ShipmentLine


class Transaction:
    """Undo journal of one order-process or restock call.

    Every write made through the store or the backorder queue registers the
    callable that reverts it. ``rollback`` runs them newest first.
    """

    def __init__(self) -> None:
        self._undo: list[Callable[[], None]] = []

    def record(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    def track(self, obj: Any, *fields: str) -> None:
        """Remember the current value of ``fields`` so rollback can restore them."""
        saved = {name: getattr(obj, name) for name in fields}

        def restore() -> None:
            for name, value in saved.items():
                setattr(obj, name, value)

        self.record(restore)

    def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()


class FulfillmentStore:
    """Keeps orders and shipments for lookups.

    An order owns its lines and shipments; the shipment index only exists for
    lookups by shipment id. Shipment ids are assigned here, in creation order.
    """

    def __init__(self) -> None:
        self._orders: dict[int, Order] = {}
        self._shipments: dict[int, Shipment] = {}
        self._shipment_ids = itertools.count(1)
        # Also serializes order status changes made by concurrent restocks
        self.lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Run a block whose writes are all reverted if it raises."""
        txn = Transaction()
        try:
            yield txn
        except BaseException:
            txn.rollback()
            logger.warning("Rolled back store writes of a failed operation")
            raise

    def add_order(self, order: Order, txn: Transaction) -> Order:
        """Persist a new order.

        Raises:
            DuplicateOrderError: If the order id is already taken.
        """
        with self.lock:
            if order.order_id in self._orders:
                raise DuplicateOrderError(order.order_id)
            self._orders[order.order_id] = order
        txn.record(lambda: self._drop_order(order.order_id))
        return order

    def create_shipment(
        self,
        order: Order,
        total_weight_g: int,
        lines: list[tuple[int, int]],
        txn: Transaction,
        created_at: Optional[datetime] = None,
    ) -> Shipment:
        """Create a shipment for an order from ``(product_id, quantity)`` pairs."""
        with self.lock:
            shipment_id = next(self._shipment_ids)
            fields = {"created_at": created_at} if created_at else {}
            shipment = Shipment(
                shipment_id=shipment_id,
                order_id=order.order_id,
                total_weight_g=total_weight_g,
                lines=tuple(
                    ShipmentLine(shipment_id=shipment_id, product_id=product_id, quantity=quantity)
                    for product_id, quantity in lines
                ),
                **fields,
            )
            self._shipments[shipment_id] = shipment
            order.shipments.append(shipment)
        txn.record(lambda: self._drop_shipment(order, shipment))
        return shipment

    def get_order(self, order_id: int) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def has_order(self, order_id: int) -> bool:
        return order_id in self._orders

    def get_shipment(self, shipment_id: int) -> Shipment:
        shipment = self._shipments.get(shipment_id)
        if shipment is None:
            raise ShipmentNotFoundError(shipment_id)
        return shipment

    def _drop_order(self, order_id: int) -> None:
        with self.lock:
            self._orders.pop(order_id, None)

    def _drop_shipment(self, order: Order, shipment: Shipment) -> None:
        with self.lock:
            self._shipments.pop(shipment.shipment_id, None)
            order.shipments[:] = [kept for kept in order.shipments if kept.shipment_id != shipment.shipment_id]
