import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from uuid import uuid4

import pytest

from lab_inventory.core.errors import NotFoundError
from lab_inventory.core.locks import KeyedLocks, item_locks
from lab_inventory.services import batch_service
from lab_inventory.services.allocation_service import consume
from lab_inventory.services.stock_service import stock_of


def _consume_in_own_session(session_factory, item_id, quantity):
    with session_factory() as session:
        return consume(session, item_id, quantity)


def _run_parallel(session_factory, item_id, quantities, workers=8):
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(_consume_in_own_session, session_factory, item_id, qty)
            for qty in quantities
        ]
        return [f.result() for f in futures]


def test_parallel_single_unit_consumption_allocates_each_unit_once(
    db, session_factory, make_item, make_batch
):
    n = 24
    item = make_item()
    batch = make_batch(item, n, expires_in=10)

    reports = _run_parallel(session_factory, item.id, [1] * n)

    assert all(r.used == 1 and not r.partial for r in reports)
    assert all(r.details[0].batch_id == batch.id for r in reports)
    assert sum(r.used for r in reports) == n
    assert stock_of(db, item.id).stock == 0


def test_oversubscribed_parallel_consumption_never_oversells(
    db, session_factory, make_item, make_batch
):
    item = make_item()
    make_batch(item, 20, expires_in=3)

    reports = _run_parallel(session_factory, item.id, [1] * 30)

    fulfilled = [r for r in reports if not r.partial]
    short = [r for r in reports if r.partial]
    assert len(fulfilled) == 20
    assert len(short) == 10
    assert all(r.used == 0 and r.details == [] for r in short)
    assert stock_of(db, item.id).stock == 0


def test_parallel_multi_batch_consumption_matches_ledger(
    db, session_factory, make_item, make_batch
):
    item = make_item()
    for days in (2, 4, 6, None):
        make_batch(item, 5, expires_in=days)

    reports = _run_parallel(session_factory, item.id, [3] * 9)

    used = sum((r.used for r in reports), Decimal("0"))
    assert used == Decimal("20")
    taken_per_batch = {}
    for report in reports:
        assert sum(line.quantity_taken for line in report.details) == report.used
        for line in report.details:
            taken_per_batch[line.batch_id] = (
                taken_per_batch.get(line.batch_id, Decimal("0")) + line.quantity_taken
            )

    for batch in batch_service.list_batches(db, item.id):
        assert batch.remaining_quantity == 0
        assert taken_per_batch[batch.id] == batch.quantity


def test_parallel_consumption_of_different_items(db, session_factory, make_item, make_batch):
    items = [make_item(name=f"Reagent {i}") for i in range(4)]
    for item in items:
        make_batch(item, 10, expires_in=None)

    def drain(item):
        return _run_parallel(session_factory, item.id, [1] * 10, workers=2)

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(drain, items))

    for item, reports in zip(items, results):
        assert sum(r.used for r in reports) == 10
        assert stock_of(db, item.id).stock == 0


def test_keyed_locks_do_not_block_other_keys():
    locks = KeyedLocks()
    holding_a = threading.Event()
    release_a = threading.Event()
    acquired_b = threading.Event()

    def hold_a():
        with locks.hold("a"):
            holding_a.set()
            release_a.wait(timeout=5)

    def take_b():
        with locks.hold("b"):
            acquired_b.set()

    t_a = threading.Thread(target=hold_a)
    t_a.start()
    assert holding_a.wait(timeout=5)

    t_b = threading.Thread(target=take_b)
    t_b.start()
    assert acquired_b.wait(timeout=5)
    t_b.join()
    # Only "a" is still held
    assert len(locks) == 1

    release_a.set()
    t_a.join()
    assert len(locks) == 0


def test_keyed_locks_serialize_same_key():
    locks = KeyedLocks()
    active = 0
    peak = 0
    guard = threading.Lock()

    def critical():
        nonlocal active, peak
        with locks.hold("item"):
            with guard:
                active += 1
                peak = max(peak, active)
            threading.Event().wait(0.01)
            with guard:
                active -= 1

    threads = [threading.Thread(target=critical) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert peak == 1


def test_keyed_locks_released_after_error():
    locks = KeyedLocks()

    with pytest.raises(RuntimeError):
        with locks.hold("item"):
            raise RuntimeError("boom")

    assert len(locks) == 0
    with locks.hold("item"):
        assert len(locks) == 1


def test_consume_of_unknown_items_leaves_no_locks_behind(db):
    before = len(item_locks)

    for _ in range(50):
        with pytest.raises(NotFoundError):
            consume(db, uuid4(), 1)

    assert len(item_locks) == before
