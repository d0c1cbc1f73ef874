"""Per-product available quantity with an ordered locking discipline."""

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from .errors import (
    DuplicateProductError,
    InsufficientInventoryError,
    InvalidQuantityError,
    LedgerLockError,
    LockTimeoutError,
    ProductNotFoundError,
)
from .logger import logger
from .models import InventoryRecord


class InventoryLedger:
    """Owns the available quantity of every catalog product.

    Each record has its own exclusive lock. ``lock_and_read`` always acquires
    locks in ascending product id order, which is what keeps concurrent order
    and restock calls on overlapping products from deadlocking. ``increase``
    and ``decrease`` refuse to run unless the calling thread holds the record's
    lock.

    Attributes:
        lock_timeout: Seconds to wait for each lock, None blocks indefinitely.
    """

    def __init__(self, lock_timeout: Optional[float] = None) -> None:
        self.lock_timeout = lock_timeout
        self._records: dict[int, InventoryRecord] = {}
        self._locks: dict[int, threading.Lock] = {}
        self._owners: dict[int, int] = {}
        self._registry_lock = threading.Lock()

    def initialize(self, product_id: int) -> InventoryRecord:
        """Create the record of a new product with zero available quantity.

        Raises:
            DuplicateProductError: If the product already has a record.
        """
        with self._registry_lock:
            if product_id in self._records:
                raise DuplicateProductError(product_id)
            record = InventoryRecord(product_id=product_id, available_qty=0)
            self._records[product_id] = record
            self._locks[product_id] = threading.Lock()
        logger.debug(f"Initialized inventory for product {product_id}")
        return record

    def __contains__(self, product_id: int) -> bool:
        return product_id in self._records

    def available(self, product_id: int) -> int:
        """Unlocked point-in-time read, for reporting only."""
        record = self._records.get(product_id)
        if record is None:
            raise ProductNotFoundError(product_id)
        return record.available_qty

    def snapshot(self) -> dict[int, int]:
        """Unlocked copy of every record's quantity, for reporting only."""
        with self._registry_lock:
            return {product_id: record.available_qty for product_id, record in sorted(self._records.items())}

    @contextmanager
    def lock_and_read(self, product_ids: Iterable[int]) -> Iterator[dict[int, int]]:
        """Lock the named records and read their quantities.

        Locks are taken in ascending product id order and all released when
        the block exits. If the block raises, the locked records are put back
        to the quantities read on entry before the locks are released.

        Args:
            product_ids: Products to lock; duplicates are ignored.

        Yields:
            dict[int, int]: Available quantity per locked product.

        Raises:
            ProductNotFoundError: If any product has no record; no lock is taken.
            LockTimeoutError: If a lock is not obtained within ``lock_timeout``.
        """
        ordered = sorted(set(product_ids))
        for product_id in ordered:
            if product_id not in self._records:
                raise ProductNotFoundError(product_id)

        acquired: list[int] = []
        try:
            for product_id in ordered:
                self._acquire(product_id)
                acquired.append(product_id)
            entry_quantities = {product_id: self._records[product_id].available_qty for product_id in ordered}
            try:
                yield dict(entry_quantities)
            except BaseException:
                for product_id, quantity in entry_quantities.items():
                    self._records[product_id].available_qty = quantity
                logger.warning(f"Restored ledger quantities of products {ordered} after a failed operation")
                raise
        finally:
            for product_id in reversed(acquired):
                self._release(product_id)

    def increase(self, product_id: int, quantity: int) -> int:
        """Add stock to a locked record and return the new quantity."""
        record = self._locked_record(product_id)
        if quantity < 0:
            raise InvalidQuantityError(product_id, quantity)
        record.available_qty += quantity
        logger.info(f"Increased inventory for product {product_id} by {quantity}. New quantity: {record.available_qty}")
        return record.available_qty

    def decrease(self, product_id: int, quantity: int) -> int:
        """Remove stock from a locked record and return the new quantity.

        Raises:
            InsufficientInventoryError: If ``quantity`` exceeds the available stock.
        """
        record = self._locked_record(product_id)
        if quantity < 0:
            raise InvalidQuantityError(product_id, quantity)
        if quantity > record.available_qty:
            raise InsufficientInventoryError(product_id, record.available_qty, quantity)
        record.available_qty -= quantity
        logger.info(f"Reduced inventory for product {product_id} by {quantity}. New quantity: {record.available_qty}")
        return record.available_qty

    def holds_lock(self, product_id: int) -> bool:
        return self._owners.get(product_id) == threading.get_ident()

    def _locked_record(self, product_id: int) -> InventoryRecord:
        record = self._records.get(product_id)
        if record is None:
            raise ProductNotFoundError(product_id)
        if not self.holds_lock(product_id):
            raise LedgerLockError(product_id)
        return record

    def _acquire(self, product_id: int) -> None:
        lock = self._locks[product_id]
        if self.lock_timeout is None:
            lock.acquire()
        elif not lock.acquire(timeout=self.lock_timeout):
            raise LockTimeoutError(product_id, self.lock_timeout)
        self._owners[product_id] = threading.get_ident()
        logger.debug(f"Acquired ledger lock for product {product_id}")

    def _release(self, product_id: int) -> None:
        self._owners.pop(product_id, None)
        self._locks[product_id].release()
        logger.debug(f"Released ledger lock for product {product_id}")
