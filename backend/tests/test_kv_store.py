"""Tests for the in-memory key/value store."""

import threading

from app.services.kv_store import InMemoryStore


def test_put_get_pop():
    store = InMemoryStore()
    store.put("k", 1)

    assert store.get("k") == 1
    assert store.pop("k") == 1
    assert store.pop("k") is None
    assert store.get("k") is None


def test_update_returns_result_and_stores_value():
    store = InMemoryStore()

    result = store.update("counter", lambda current: ((current or 0) + 1, "first"))

    assert result == "first"
    assert store.get("counter") == 1


def test_delete_where():
    store = InMemoryStore()
    for i in range(10):
        store.put(f"k{i}", i)

    assert store.delete_where(lambda _, value: value % 2 == 0) == 5
    assert len(store) == 5


def test_concurrent_updates_are_atomic():
    store = InMemoryStore(stripes=4)
    threads = [
        threading.Thread(
            target=lambda: [store.update("n", lambda c: ((c or 0) + 1, None)) for _ in range(200)]
        )
        for _ in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.get("n") == 1600


def test_concurrent_pop_single_winner():
    store = InMemoryStore()
    store.put("once", "value")
    barrier = threading.Barrier(10)
    winners = []
    lock = threading.Lock()

    def grab():
        barrier.wait()
        value = store.pop("once")
        if value is not None:
            with lock:
                winners.append(value)

    threads = [threading.Thread(target=grab) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert winners == ["value"]
