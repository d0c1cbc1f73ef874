"""Order fulfillment: allocation, shipping, backorders and restock replay."""

from datetime import datetime
from typing import Callable, Iterable, Optional

from pydantic import BaseModel, Field

from .backorders import BackorderQueue
from .catalog import ProductCatalog
from .errors import (
    DuplicateOrderError,
    DuplicateProductError,
    InvalidQuantityError,
    OversizedUnitError,
    ProductNotFoundError,
)
from .ledger import InventoryLedger
from .logger import logger
from .models import MAX_SHIPMENT_WEIGHT_G, BackorderEntry, Order, OrderLine, OrderStatus, Product, Shipment, utcnow
from .packager import PackageLine, can_fit_in_single_shipment, optimize_packaging
from .store import FulfillmentStore, Transaction


class RestockResult(BaseModel):
    """Outcome of one restock call."""

    products_restocked: int = 0
    shipments_created: int = 0
    orders_updated: int = 0
    shipment_ids: list[int] = Field(default_factory=list)
    updated_order_ids: list[int] = Field(default_factory=list)


class OrderFulfillmentCoordinator:
    """Turns orders and restocks into shipments, backorders and status changes.

    Every ``process_order`` and ``process_restock`` call locks the ledger
    records of the products it touches (ascending id order) for its whole
    duration and runs inside a store transaction, so a failure leaves no
    trace of the call behind.

    Attributes:
        catalog: Products known to the service.
        ledger: Available quantity per product.
        store: Orders and shipments.
        backorders: Unmet demand waiting for restocks.
    """

    def __init__(
        self,
        catalog: Optional[ProductCatalog] = None,
        ledger: Optional[InventoryLedger] = None,
        store: Optional[FulfillmentStore] = None,
        backorders: Optional[BackorderQueue] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.catalog = catalog if catalog is not None else ProductCatalog()
        self.ledger = ledger if ledger is not None else InventoryLedger()
        self.store = store if store is not None else FulfillmentStore()
        self.backorders = backorders if backorders is not None else BackorderQueue()
        self._clock = clock

    def init_catalog(self, products: Iterable[Product]) -> int:
        """Register products and give each an empty ledger record.

        The whole batch is rejected if any product id is already known or
        repeated within the batch.

        Returns:
            int: Number of products registered.
        """
        products = list(products)
        seen: set[int] = set()
        for product in products:
            if product.product_id in seen or product.product_id in self.catalog:
                raise DuplicateProductError(product.product_id)
            seen.add(product.product_id)

        for product in products:
            self.catalog.register(product)
            self.ledger.initialize(product.product_id)
            logger.debug(f"Initialized product {product.product_id} with mass {product.mass_g}g")
        logger.info(f"Catalog initialized with {len(products)} products")
        return len(products)

    def process_order(self, order_id: int, requested: Iterable[tuple[int, int]]) -> Order:
        """Ship what stock allows for a new order and backorder the rest.

        Args:
            order_id: Caller-supplied, unique order id.
            requested: ``(product_id, quantity)`` pairs, quantities > 0.

        Returns:
            Order: The persisted order with its lines and shipments.

        Raises:
            ProductNotFoundError: If any product is unknown; nothing is persisted.
            DuplicateOrderError: If the order id is already used.
            OversizedUnitError: If a single unit of a product exceeds the ceiling.
        """
        quantities = self._merge_quantities(requested)
        if not quantities:
            raise ValueError(f"Order {order_id} does not request any product")
        self._require_products(quantities)
        self._require_packable(quantities)
        if self.store.has_order(order_id):
            raise DuplicateOrderError(order_id)

        logger.info(f"Processing order {order_id}")
        with self.ledger.lock_and_read(quantities) as available, self.store.transaction() as txn:
            created_at = self._clock()
            order = Order(
                order_id=order_id,
                created_at=created_at,
                lines=[
                    OrderLine(order_id=order_id, product_id=product_id, requested_qty=quantity)
                    for product_id, quantity in quantities.items()
                ],
            )
            self.store.add_order(order, txn)

            to_ship = {line.product_id: min(available[line.product_id], line.requested_qty) for line in order.lines}
            shipments = self._ship(order, to_ship, txn)

            for line in order.lines:
                if line.outstanding_qty > 0:
                    self.backorders.enqueue(order_id, line.product_id, line.outstanding_qty, txn, created_at=self._clock())

            self._advance_status(order, order.tally_status(), txn)

        logger.info(f"Order {order_id} processed: status={order.status.value}, shipments={len(shipments)}")
        return order

    def process_restock(self, items: Iterable[tuple[int, int]]) -> RestockResult:
        """Add stock and replay backorders of the restocked products, oldest first.

        For each product the walk over its backorder entries stops once the
        added quantity is used up. Each visited entry counts with its full
        pending quantity, whatever was actually shipped against it.

        Args:
            items: ``(product_id, quantity_added)`` pairs, quantities > 0.

        Returns:
            RestockResult: Counts of shipments created and orders updated.

        Raises:
            ProductNotFoundError: If any product is unknown; nothing is changed.
        """
        quantities = self._merge_quantities(items)
        self._require_products(quantities)

        result = RestockResult(products_restocked=len(quantities))
        updated: dict[int, None] = {}
        logger.info(f"Processing restock for {len(quantities)} products")
        with self.ledger.lock_and_read(quantities), self.store.transaction() as txn:
            for product_id in sorted(quantities):
                added = quantities[product_id]
                self.ledger.increase(product_id, added)

                remaining = added
                for entry in self.backorders.entries_for(product_id):
                    if remaining <= 0:
                        break
                    visited_qty = entry.pending_qty
                    order_id = self._replay_entry(entry, txn, result)
                    if order_id is not None:
                        updated[order_id] = None
                    remaining -= visited_qty

        result.updated_order_ids = list(updated)
        result.orders_updated = len(updated)
        result.shipments_created = len(result.shipment_ids)
        logger.info(
            f"Restock processed: shipments_created={result.shipments_created}, orders_updated={result.orders_updated}"
        )
        return result

    def get_order(self, order_id: int) -> Order:
        return self.store.get_order(order_id)

    def get_shipment(self, shipment_id: int) -> Shipment:
        return self.store.get_shipment(shipment_id)

    def get_backorders(self, order_id: int) -> list[BackorderEntry]:
        self.store.get_order(order_id)
        return self.backorders.entries_for_order(order_id)

    def inventory(self) -> dict[int, int]:
        return self.ledger.snapshot()

    def _replay_entry(self, entry: BackorderEntry, txn: Transaction, result: RestockResult) -> Optional[int]:
        """Ship what is available against one backorder entry.

        Returns:
            The order id if the order received a shipment or changed status.
        """
        order = self.store.get_order(entry.order_id)
        shippable = min(self.ledger.available(entry.product_id), entry.pending_qty)
        shipments = self._ship(order, {entry.product_id: shippable}, txn)
        result.shipment_ids.extend(shipment.shipment_id for shipment in shipments)

        # Restocks of other products may be draining the same order's entries
        with self.store.lock:
            self.backorders.consume(entry, shippable, txn)
            if self.backorders.count_for_order(order.order_id) == 0:
                changed = self._advance_status(order, OrderStatus.COMPLETED, txn)
                if changed:
                    logger.info(f"Order {order.order_id} completed")
            else:
                changed = self._advance_status(order, order.tally_status(), txn)

        if shipments or changed:
            return order.order_id
        return None

    def _ship(self, order: Order, to_ship: dict[int, int], txn: Transaction) -> list[Shipment]:
        """Pack and ship quantities for an order; the caller holds the ledger locks."""
        lines = [
            PackageLine(product_id=product_id, quantity=quantity, unit_weight_g=self.catalog.get(product_id).mass_g)
            for product_id, quantity in to_ship.items()
            if quantity > 0
        ]
        if not lines:
            logger.info(f"No items to ship for order {order.order_id}")
            return []

        shipments = []
        for package in optimize_packaging(lines):
            shipment = self.store.create_shipment(
                order,
                package.total_weight_g,
                [(line.product_id, line.quantity) for line in package.lines],
                txn,
                created_at=self._clock(),
            )
            logger.info(
                f"Created shipment {shipment.shipment_id} for order {order.order_id} with weight {package.total_weight_g}g"
            )
            for package_line in package.lines:
                order_line = order.line_for(package_line.product_id)
                txn.track(order_line, "fulfilled_qty", "status")
                order_line.record_shipment(package_line.quantity)
                self.ledger.decrease(package_line.product_id, package_line.quantity)
                logger.info(
                    f"Shipped {package_line.quantity} units of product {package_line.product_id} "
                    f"in shipment {shipment.shipment_id}"
                )
            shipments.append(shipment)
        return shipments

    def _advance_status(self, order: Order, status: OrderStatus, txn: Transaction) -> bool:
        """Move the order to ``status`` unless that would be a step back."""
        if status.rank <= order.status.rank:
            return False
        txn.track(order, "status")
        order.status = status
        logger.info(f"Updated order {order.order_id} status to {status.value}")
        return True

    def _require_products(self, product_ids: Iterable[int]) -> None:
        for product_id in product_ids:
            if product_id not in self.catalog or product_id not in self.ledger:
                raise ProductNotFoundError(product_id)

    def _require_packable(self, product_ids: Iterable[int]) -> None:
        """Reject products whose single unit can never be shipped, stocked or not."""
        for product_id in product_ids:
            mass_g = self.catalog.get(product_id).mass_g
            if not can_fit_in_single_shipment(mass_g, 1):
                raise OversizedUnitError(product_id, mass_g, MAX_SHIPMENT_WEIGHT_G)

    @staticmethod
    def _merge_quantities(items: Iterable[tuple[int, int]]) -> dict[int, int]:
        """Sum quantities per product, keeping first-seen order."""
        merged: dict[int, int] = {}
        for product_id, quantity in items:
            if quantity <= 0:
                raise InvalidQuantityError(product_id, quantity)
            merged[product_id] = merged.get(product_id, 0) + quantity
        return merged
