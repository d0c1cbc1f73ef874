"""Tests for the inventory ledger."""

import threading

import pytest

from fulfillment_service.errors import (
    DuplicateProductError,
    InsufficientInventoryError,
    InvalidQuantityError,
    LedgerLockError,
    LockTimeoutError,
    ProductNotFoundError,
)
from fulfillment_service.ledger import InventoryLedger


def test_initialize_starts_at_zero():
    ledger = InventoryLedger()
    record = ledger.initialize(7)

    assert record.available_qty == 0
    assert 7 in ledger
    assert ledger.available(7) == 0


def test_initialize_twice_fails(ledger):
    with pytest.raises(DuplicateProductError):
        ledger.initialize(1)


def test_lock_and_read_returns_quantities(ledger):
    with ledger.lock_and_read([3, 1]) as quantities:
        assert quantities == {1: 10, 3: 30}
        assert ledger.holds_lock(1) and ledger.holds_lock(3)
        assert not ledger.holds_lock(2)

    assert not ledger.holds_lock(1)


def test_read_without_mutation_leaves_quantities_unchanged(ledger):
    before = ledger.snapshot()
    with ledger.lock_and_read({1, 2, 3}):
        pass

    assert ledger.snapshot() == before


def test_locks_are_acquired_in_ascending_order(ledger, mocker):
    spy = mocker.spy(ledger, "_acquire")

    with ledger.lock_and_read([3, 1, 2, 3]):
        pass

    assert [call.args[0] for call in spy.call_args_list] == [1, 2, 3]


def test_unknown_product_fails_before_locking(ledger, mocker):
    spy = mocker.spy(ledger, "_acquire")

    with pytest.raises(ProductNotFoundError):
        with ledger.lock_and_read([1, 42]):
            pass

    spy.assert_not_called()


def test_increase_and_decrease(ledger):
    with ledger.lock_and_read({1}):
        assert ledger.increase(1, 5) == 15
        assert ledger.decrease(1, 12) == 3

    assert ledger.available(1) == 3


def test_mutation_requires_the_lock(ledger):
    with pytest.raises(LedgerLockError):
        ledger.increase(1, 5)
    with pytest.raises(LedgerLockError):
        ledger.decrease(1, 1)
    assert ledger.available(1) == 10


def test_lock_held_by_another_thread_does_not_count(ledger):
    locked = threading.Event()
    release = threading.Event()

    def hold():
        with ledger.lock_and_read({2}):
            locked.set()
            release.wait(timeout=5)

    holder = threading.Thread(target=hold)
    holder.start()
    try:
        assert locked.wait(timeout=5)
        with pytest.raises(LedgerLockError):
            ledger.increase(2, 1)
    finally:
        release.set()
        holder.join(timeout=5)


def test_decrease_beyond_available_fails(ledger):
    with ledger.lock_and_read({1}):
        with pytest.raises(InsufficientInventoryError) as exc_info:
            ledger.decrease(1, 11)
        assert ledger.available(1) == 10

    assert exc_info.value.payload == {"product_id": 1, "available": 10, "requested": 11}


def test_negative_quantities_are_rejected(ledger):
    with ledger.lock_and_read({1}):
        with pytest.raises(InvalidQuantityError):
            ledger.increase(1, -1)
        with pytest.raises(InvalidQuantityError):
            ledger.decrease(1, -1)


def test_failed_block_restores_quantities(ledger):
    with pytest.raises(RuntimeError):
        with ledger.lock_and_read({1, 2}):
            ledger.decrease(1, 4)
            ledger.increase(2, 100)
            raise RuntimeError("boom")

    assert ledger.available(1) == 10
    assert ledger.available(2) == 20
    assert not ledger.holds_lock(1)


def test_lock_timeout_releases_acquired_locks(ledger):
    ledger.lock_timeout = 0.05
    locked = threading.Event()
    release = threading.Event()

    def hold():
        with ledger.lock_and_read({2}):
            locked.set()
            release.wait(timeout=5)

    holder = threading.Thread(target=hold)
    holder.start()
    try:
        assert locked.wait(timeout=5)
        with pytest.raises(LockTimeoutError):
            with ledger.lock_and_read({1, 2}):
                pass
        # Product 1 was locked before the timeout and must be free again
        with ledger.lock_and_read({1}) as quantities:
            assert quantities == {1: 10}
    finally:
        release.set()
        holder.join(timeout=5)


def test_conservation_under_concurrent_updates():
    """Opposite lock request orders never deadlock and no update is lost."""
    ledger = InventoryLedger()
    for product_id in (1, 2, 3):
        ledger.initialize(product_id)
        with ledger.lock_and_read({product_id}):
            ledger.increase(product_id, 1000)

    def work(product_ids, delta):
        for _ in range(200):
            with ledger.lock_and_read(product_ids):
                for product_id in product_ids:
                    if delta > 0:
                        ledger.increase(product_id, delta)
                    else:
                        ledger.decrease(product_id, -delta)

    threads = [
        threading.Thread(target=work, args=([1, 2, 3], 2)),
        threading.Thread(target=work, args=([3, 2, 1], -1)),
        threading.Thread(target=work, args=([2, 1], 1)),
        threading.Thread(target=work, args=([3, 1], -1)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert not any(thread.is_alive() for thread in threads)
    # initial + increases - decreases, per product
    assert ledger.snapshot() == {1: 1000 + 400 - 200 + 200 - 200, 2: 1000 + 400 - 200 + 200, 3: 1000 + 400 - 200 - 200}
