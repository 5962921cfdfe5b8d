"""Tests for the in-memory session store."""

import threading

import pytest

from services.sessions import SessionStore


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def test_create_then_get_returns_payload(clock):
    store = SessionStore(ttl_seconds=600, clock=clock)
    store.create("s1", "data:image/png;base64,AAA")

    session = store.get("s1")
    assert session is not None
    assert session.image == "data:image/png;base64,AAA"
    assert session.created_at == clock.now


def test_get_missing_returns_none(clock):
    assert SessionStore(clock=clock).get("nope") is None


def test_get_after_ttl_returns_none(clock):
    store = SessionStore(ttl_seconds=600, clock=clock)
    store.create("s1", "img")

    clock.advance(600)
    assert store.get("s1") is not None
    clock.advance(1)
    assert store.get("s1") is None
    assert store.active_count == 0


def test_capacity_evicts_first_inserted_regardless_of_reads(clock):
    store = SessionStore(max_sessions=3, clock=clock)
    for sid in ("a", "b", "c"):
        store.create(sid, sid)
    store.get("a")  # reads do not refresh insertion order

    store.create("d", "d")

    assert store.get("a") is None
    assert [store.get(s) is not None for s in ("b", "c", "d")] == [True] * 3
    assert store.active_count == 3


def test_overwrite_replaces_payload_and_counts_as_newest(clock):
    store = SessionStore(max_sessions=2, clock=clock)
    store.create("a", "old")
    store.create("b", "b")
    clock.advance(5)
    store.create("a", "new")

    assert store.active_count == 2
    session = store.get("a")
    assert session is not None
    assert session.image == "new"
    assert session.created_at == clock.now

    store.create("c", "c")
    assert store.get("b") is None
    assert store.get("a") is not None


def test_end_reports_prior_existence(clock):
    store = SessionStore(clock=clock)
    store.create("a", "img")

    assert store.end("a") is True
    assert store.end("a") is False
    assert store.end("never") is False
    assert store.get("a") is None


def test_sweep_removes_only_expired_sessions(clock):
    store = SessionStore(ttl_seconds=60, clock=clock)
    store.create("old", "img")
    clock.advance(45)
    store.create("young", "img")
    clock.advance(30)

    assert store.sweep_expired() == 1
    assert store.active_count == 1
    assert store.get("young") is not None
    assert store.sweep_expired() == 0


def test_invalid_capacity_is_rejected():
    with pytest.raises(ValueError):
        SessionStore(max_sessions=0)


def test_concurrent_creates_respect_capacity():
    store = SessionStore(max_sessions=50)

    def worker(prefix: str) -> None:
        for i in range(200):
            store.create(f"{prefix}-{i}", "img")
            store.get(f"{prefix}-{i // 2}")

    threads = [threading.Thread(target=worker, args=(str(n),)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.active_count == 50
