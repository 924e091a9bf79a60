# ./tests/test_cache.py
"""TTL store, janitor, and cache facade behavior.

This suite checks put/get/exist semantics, decode-failure self-healing, the
72-hour sweep bound, dirty-counter save skipping, save-failure retry, janitor
lifecycle, and concurrent access from several threads.

Run path: `pytest tests/test_cache.py`.
Inputs: synthetic hex payloads, a patched clock, and in-memory fake snapshots.
Outputs: assertions on cache contents and snapshot call counts.
Operational notes: janitor intervals are long unless the test exercises the thread.
"""

from __future__ import annotations

import threading
import time

import pytest

from dnsaccel.utils import cache as cache_mod
from dnsaccel.utils.cache import Cache, Janitor

HOUR = 3600.0


class _RecordingSnapshot:
    def __init__(self, failures: int = 0) -> None:
        self.saved = []
        self.failures = failures
        self.called = threading.Event()

    def save(self, entries) -> None:
        self.called.set()
        if self.failures:
            self.failures -= 1
            raise OSError("disk full")
        self.saved.append(dict(entries))

    def load(self):
        return {}


@pytest.fixture
def cache():
    with Cache(interval=HOUR) as instance:
        yield instance


def test_put_then_exist_and_expiry_window(cache: Cache) -> None:
    cache.put("example.com:A", "6869", 30)
    now = time.time()

    assert cache.exist("example.com:A") is True
    payload, expires_at = cache.get_with_expiry("example.com:A")
    assert payload == b"hi"
    assert now + 30 - 1 <= expires_at <= now + 30 + 1


def test_get_returns_logically_expired_entries(cache: Cache) -> None:
    cache.put("old.example:A", "0102", -10)

    assert cache.get("old.example:A") == b"\x01\x02"
    assert cache.exist("old.example:A") is True


def test_missing_key_is_absent(cache: Cache) -> None:
    assert cache.get("nope") is None
    assert cache.get_with_expiry("nope") is None
    assert cache.exist("nope") is False


@pytest.mark.parametrize("raw", ["zz", "abc", "not hex at all", "01 02", " 0a\n"])
def test_undecodable_payload_is_dropped_on_read(cache: Cache, raw: str) -> None:
    cache.put("bad", raw, 60)
    assert cache.exist("bad") is True

    assert cache.get("bad") is None
    assert cache.exist("bad") is False


def test_undecodable_payload_is_dropped_by_get_with_expiry(cache: Cache) -> None:
    cache.put("bad", "q1", 60)

    assert cache.get_with_expiry("bad") is None
    assert "bad" not in cache


def test_put_overwrites_existing_entry(cache: Cache) -> None:
    cache.put("k", "01", 10)
    cache.put("k", "02", 500)

    payload, expires_at = cache.get_with_expiry("k")
    assert payload == b"\x02"
    assert expires_at > time.time() + 400
    assert len(cache) == 1


def test_sweep_removes_only_entries_past_staleness_bound(monkeypatch, cache: Cache) -> None:
    clock = [1_000_000.0]
    monkeypatch.setattr(cache_mod.time, "time", lambda: clock[0])

    cache.put("abandoned", "01", 0)
    cache.put("recent", "02", 2 * HOUR)

    clock[0] += 73 * HOUR
    assert cache.cleanup() == 1

    assert cache.exist("abandoned") is False
    assert cache.exist("recent") is True
    assert cache.get("recent") == b"\x02"


def test_sweep_bound_is_configurable(monkeypatch) -> None:
    clock = [5_000.0]
    monkeypatch.setattr(cache_mod.time, "time", lambda: clock[0])

    with Cache(interval=HOUR, stale_after=10) as short:
        short.put("k", "01", 0)
        clock[0] += 9
        assert short.sweep() == 0
        clock[0] += 2
        assert short.sweep() == 1


def test_cleanup_skips_save_when_nothing_changed() -> None:
    snapshot = _RecordingSnapshot()
    with Cache(interval=HOUR, snapshot=snapshot) as cache:
        cache.cleanup()
        assert snapshot.saved == []

        cache.put("a", "01", 60)
        assert cache.dirty == 1
        cache.cleanup()
        assert len(snapshot.saved) == 1
        assert set(snapshot.saved[0]) == {"a"}
        assert cache.dirty == 0

        cache.cleanup()
        assert len(snapshot.saved) == 1


def test_failed_save_is_swallowed_and_retried() -> None:
    snapshot = _RecordingSnapshot(failures=1)
    with Cache(interval=HOUR, snapshot=snapshot) as cache:
        cache.put("a", "01", 60)

        cache.cleanup()
        assert snapshot.saved == []
        assert cache.dirty == 1

        cache.cleanup()
        assert len(snapshot.saved) == 1
        assert cache.dirty == 0


def test_explicit_save_propagates_io_errors() -> None:
    with Cache(interval=HOUR, snapshot=_RecordingSnapshot(failures=1)) as cache:
        cache.put("a", "01", 60)
        with pytest.raises(OSError):
            cache.save()


def test_janitor_ticks_and_stops_on_close() -> None:
    snapshot = _RecordingSnapshot()
    cache = Cache(interval=0.05, snapshot=snapshot)
    try:
        assert cache.janitor_running is True
        cache.put("a", "01", 60)
        assert snapshot.called.wait(timeout=5.0)
    finally:
        cache.close()

    assert cache.closed is True
    assert cache.janitor_running is False
    cache.close()


def test_close_preempts_long_interval() -> None:
    cache = Cache(interval=HOUR)
    started = time.monotonic()
    cache.close()

    assert time.monotonic() - started < 5.0
    assert cache.janitor_running is False


def test_context_manager_stops_janitor_on_error() -> None:
    with pytest.raises(RuntimeError):
        with Cache(interval=HOUR) as cache:
            raise RuntimeError("boom")

    assert cache.closed is True
    assert cache.janitor_running is False


def test_janitor_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        Janitor(0, cache=None)  # type: ignore[arg-type]


def test_concurrent_put_get_exist_keeps_single_writer_keys(cache: Cache) -> None:
    workers = 8
    rounds = 300
    errors = []

    def _worker(worker_id: int) -> None:
        try:
            for i in range(rounds):
                cache.put(f"w{worker_id}:{i}", f"{i % 256:02x}", 60)
                cache.put("shared", f"{worker_id:02x}", 60)
                cache.get("shared")
                cache.exist(f"w{(worker_id + 1) % workers}:{i}")
                cache.get(f"w{worker_id}:{i}")
        except Exception as err:
            errors.append(err)

    def _sweeper() -> None:
        for _ in range(50):
            cache.cleanup()

    threads = [threading.Thread(target=_worker, args=(n,)) for n in range(workers)]
    threads.append(threading.Thread(target=_sweeper))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    for worker_id in range(workers):
        for i in range(rounds):
            assert cache.get(f"w{worker_id}:{i}") == bytes([i % 256])
    assert cache.exist("shared") is True
