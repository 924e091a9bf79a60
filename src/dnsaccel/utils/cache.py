# ./src/dnsaccel/utils/cache.py
"""Concurrent TTL cache with a background janitor and snapshot persistence.

Run path: owned by ``dnsaccel.accel.DNSAccelerator``; usable directly as ``Cache(...)``.
Inputs: string keys, encoded payload text, TTL seconds, optional ``Snapshot``.
Outputs: decoded payload bytes (``get``) and absolute expiry (``get_with_expiry``).
Side effects: one daemon janitor thread per cache; periodic snapshot writes.
Operational notes: reads never check expiry; only the janitor sweep evicts by age.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, List, Optional, Tuple

from ..models import CacheEntry, PayloadDecodeError
from .encoding import DEFAULT_CODEC, PayloadCodec
from .snapshot import Snapshot

DEFAULT_STALE_AFTER = 72 * 3600.0


class Janitor:
    """Periodic sweep-and-save loop running on a daemon thread."""

    def __init__(self, interval: float, cache: "Cache"):
        if interval <= 0:
            raise ValueError("Janitor interval must be positive")
        self.interval = interval
        self._cache = cache
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name="dnsaccel-janitor",
            daemon=True,
        )

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> None:
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self._cache.cleanup()
            except Exception:
                self._cache.log.exception("Janitor tick failed")


class Cache:
    """TTL store plus the janitor that sweeps and persists it.

    ``put`` takes already-encoded payload text; ``get`` decodes it with the
    cache's codec and drops the entry when decoding fails. Use ``close()`` or a
    ``with`` block to stop the janitor.
    """

    def __init__(
        self,
        interval: float = 60.0,
        snapshot: Optional[Snapshot] = None,
        codec: Optional[PayloadCodec] = None,
        stale_after: float = DEFAULT_STALE_AFTER,
        logger: Optional[logging.Logger] = None,
    ):
        self.snapshot = snapshot
        self.codec = codec or DEFAULT_CODEC
        self.stale_after = stale_after
        self.log = logger or logging.getLogger("dnsaccel.cache")

        self._mapping: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._dirty = 0
        self._closed = False

        self._janitor = Janitor(interval, self)
        self._janitor.start()

    def __enter__(self) -> "Cache":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._mapping)

    def __contains__(self, key: str) -> bool:
        return self.exist(key)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dirty(self) -> int:
        with self._lock:
            return self._dirty

    @property
    def janitor_running(self) -> bool:
        return self._janitor.running

    def put(self, key: str, payload: str, ttl: float) -> None:
        entry = CacheEntry(payload=payload, expires_at=time.time() + ttl)
        with self._lock:
            self._mapping[key] = entry
            self._dirty += 1

    def exist(self, key: str) -> bool:
        with self._lock:
            return key in self._mapping

    def get(self, key: str) -> Optional[bytes]:
        found = self.get_with_expiry(key)
        return found[0] if found is not None else None

    def get_with_expiry(self, key: str) -> Optional[Tuple[bytes, float]]:
        with self._lock:
            entry = self._mapping.get(key)
        if entry is None:
            return None

        try:
            payload = self.codec.decode(entry.payload)
        except PayloadDecodeError:
            self._discard(key, entry)
            self.log.debug("Dropped undecodable cache entry %s", key)
            return None
        return payload, entry.expires_at

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._mapping.pop(key, None) is not None

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._mapping)

    def sweep(self) -> int:
        """Delete entries that expired more than ``stale_after`` seconds ago."""
        now = time.time()
        with self._lock:
            items = list(self._mapping.items())

        removed = 0
        for key, entry in items:
            if now - entry.expires_at > self.stale_after:
                if self._discard(key, entry):
                    removed += 1
        return removed

    def save(self) -> None:
        """Persist the store; raises ``OSError`` when the write fails."""
        if self.snapshot is None:
            return
        with self._lock:
            if self._dirty == 0:
                return
            observed = self._dirty
            entries = dict(self._mapping)

        self.snapshot.save(entries)

        with self._lock:
            self._dirty = max(0, self._dirty - observed)

    def cleanup(self) -> int:
        """Run one janitor tick: sweep, then save unless nothing changed."""
        removed = self.sweep()
        if removed:
            self.log.debug("Swept %d stale cache entries", removed)
        try:
            self.save()
        except OSError as err:
            self.log.warning("Cache snapshot save failed: %s", err)
        return removed

    def reload(self) -> int:
        """Restore entries from the snapshot, re-anchoring TTLs to now."""
        if self.snapshot is None:
            return 0

        restored = 0
        now = time.time()
        for key, (payload, expires_at) in self.snapshot.load().items():
            try:
                self.codec.decode(payload)
            except PayloadDecodeError:
                continue
            self.put(key, payload, expires_at - now)
            restored += 1

        self.log.debug("Reloaded %d cache entries", restored)
        return restored

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the janitor. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._janitor.stop(timeout)

    def _discard(self, key: str, entry: CacheEntry) -> bool:
        with self._lock:
            if self._mapping.get(key) is entry:
                del self._mapping[key]
                return True
        return False
