"""Reservation under real contention: threads with their own sessions on one database file."""

import threading

from storefront.errors import OutOfStock
from storefront.services.key_inventory import KeyCounts, KeyInventory


def _run_threads(n, target):
    barrier = threading.Barrier(n)
    results = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        outcome = target()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def test_last_key_is_reserved_exactly_once(db, session_factory, make_game):
    game_id = make_game(keys=1)

    def reserve():
        session = session_factory()
        try:
            return KeyInventory(session).reserve_one(game_id)
        except OutOfStock as exc:
            return exc
        finally:
            session.close()

    results = _run_threads(8, reserve)

    won = [r for r in results if not isinstance(r, Exception)]
    lost = [r for r in results if isinstance(r, OutOfStock)]
    assert len(won) == 1
    assert len(lost) == 7
    assert KeyInventory(db).count_by_status(game_id) == KeyCounts(available=0, sold=0, reserved=1, total=1)


def test_pool_is_split_without_duplicates(db, session_factory, make_game):
    game_id = make_game(keys=20)

    def drain():
        session = session_factory()
        taken = []
        try:
            inventory = KeyInventory(session)
            while True:
                try:
                    taken.append(inventory.reserve_one(game_id))
                except OutOfStock:
                    return taken
        finally:
            session.close()

    results = _run_threads(6, drain)

    all_keys = [k for taken in results for k in taken]
    assert len(all_keys) == 20
    assert len(set(all_keys)) == 20
    assert KeyInventory(db).count_by_status(game_id) == KeyCounts(available=0, sold=0, reserved=20, total=20)
