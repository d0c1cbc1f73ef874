"""FIFO queue of unmet demand, drained by restocks."""

import itertools
import threading
from datetime import datetime
from typing import Optional

from .logger import logger
from .models import BackorderEntry, utcnow
from .store import Transaction


class BackorderQueue:
    """Backorder entries grouped by product, oldest first.

    Entries of a product are only added or consumed by calls holding that
    product's ledger lock; the internal lock only protects the index itself
    against readers working across products.
    """

    def __init__(self) -> None:
        self._by_product: dict[int, list[BackorderEntry]] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def enqueue(
        self,
        order_id: int,
        product_id: int,
        pending_qty: int,
        txn: Transaction,
        created_at: Optional[datetime] = None,
    ) -> BackorderEntry:
        """Queue the unshipped remainder of an order line."""
        with self._lock:
            sequence = next(self._sequence)
            entry = BackorderEntry(
                entry_id=sequence,
                order_id=order_id,
                product_id=product_id,
                pending_qty=pending_qty,
                created_at=created_at or utcnow(),
                sequence=sequence,
            )
            entries = self._by_product.setdefault(product_id, [])
            entries.append(entry)
            entries.sort(key=lambda queued: (queued.created_at, queued.sequence))
        txn.record(lambda: self._remove(entry))
        logger.info(f"Backordered {pending_qty} units of product {product_id} for order {order_id}")
        return entry

    def entries_for(self, product_id: int) -> list[BackorderEntry]:
        """Entries of a product, oldest first."""
        with self._lock:
            return list(self._by_product.get(product_id, []))

    def entries_for_order(self, order_id: int) -> list[BackorderEntry]:
        with self._lock:
            return sorted(
                (entry for entries in self._by_product.values() for entry in entries if entry.order_id == order_id),
                key=lambda entry: (entry.created_at, entry.sequence),
            )

    def count_for_order(self, order_id: int) -> int:
        return len(self.entries_for_order(order_id))

    def outstanding_qty(self, order_id: int, product_id: int) -> int:
        with self._lock:
            return sum(
                entry.pending_qty for entry in self._by_product.get(product_id, []) if entry.order_id == order_id
            )

    def consume(self, entry: BackorderEntry, shipped_qty: int, txn: Transaction) -> None:
        """Take shipped units off an entry, removing it once nothing is pending.

        The entry keeps its queue position while units remain.
        """
        if shipped_qty <= 0:
            return
        if shipped_qty > entry.pending_qty:
            raise ValueError(f"Cannot consume {shipped_qty} units from backorder entry {entry.entry_id}")
        if shipped_qty == entry.pending_qty:
            self._remove(entry)
            txn.record(lambda: self._restore(entry))
            logger.info(f"Backorder entry {entry.entry_id} of order {entry.order_id} fully shipped")
            return
        txn.track(entry, "pending_qty")
        entry.pending_qty -= shipped_qty
        logger.info(
            f"Backorder entry {entry.entry_id} of order {entry.order_id} reduced to {entry.pending_qty} units"
        )

    def _remove(self, entry: BackorderEntry) -> None:
        with self._lock:
            entries = self._by_product.get(entry.product_id, [])
            entries[:] = [queued for queued in entries if queued.entry_id != entry.entry_id]
            if not entries:
                self._by_product.pop(entry.product_id, None)

    def _restore(self, entry: BackorderEntry) -> None:
        with self._lock:
            entries = self._by_product.setdefault(entry.product_id, [])
            entries.append(entry)
            entries.sort(key=lambda queued: (queued.created_at, queued.sequence))
