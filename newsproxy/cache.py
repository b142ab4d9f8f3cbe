import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from .schemas import CacheStats

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class ExpiringCache(Generic[T]):
    """Thread-safe key-value cache with per-entry TTL and a background sweeper.

    Parameters
    ----------
    default_ttl : float
        Time-to-live in seconds used by `set` when no explicit `ttl` is given.
    sweep_interval : Optional[float]
        Seconds between proactive sweeps of expired entries. `None` disables the
        sweeper thread entirely, leaving lazy eviction on read as the only
        expiry mechanism.
    clock : Callable[[], float]
        Source of "now" in seconds. Defaults to `time.monotonic`; tests inject a
        controllable clock.

    Notes
    -----
    - One lock guards the table and both counters. `get`, `set`, `has` and
      `delete` are O(1); `sweep`, `clear`, `keys` and `size` are O(n).
    - An entry is expired once `now - stored_at > ttl`. Read paths treat expired
      entries as absent and remove them.
    - `size()` and `keys()` report the raw table, including expired entries the
      sweeper has not reached yet.
    - Values are returned by reference. Callers must not mutate them.
    - The sweeper runs until `shutdown()` is called. Use the cache as a context
      manager, or call `shutdown()` explicitly, to stop it deterministically.
    """

    # Max keys removed per lock acquisition during a sweep.
    sweep_batch_size = 500

    def __init__(self, default_ttl: float = 300, sweep_interval: Optional[float] = 60,
                 clock: Callable[[], float] = time.monotonic):
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")
        if sweep_interval is not None and sweep_interval <= 0:
            raise ValueError(f"sweep_interval must be positive, got {sweep_interval}")
        self._default_ttl = default_ttl
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._store: Dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if sweep_interval is not None:
            self._sweeper = threading.Thread(target=self._run_sweeper, name="cache-sweeper", daemon=True)
            self._sweeper.start()

    def __enter__(self) -> "ExpiringCache[T]":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @property
    def hits(self) -> int:
        with self._lock:
            return self._hits

    @property
    def misses(self) -> int:
        with self._lock:
            return self._misses

    @property
    def running(self) -> bool:
        """Whether the background sweeper is still active."""
        return self._sweeper is not None and not self._stopped.is_set()

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Insert or replace the value for `key`, timestamped now.

        Parameters
        ----------
        key : str
            Cache key.
        value : T
            Value to store. Replaces any previous entry for `key` entirely.
        ttl : Optional[float]
            Lifetime in seconds. Defaults to the cache's `default_ttl`.
        """

        entry = CacheEntry(value=value, stored_at=self._clock(),
                           ttl=self._default_ttl if ttl is None else ttl)
        with self._lock:
            self._store[key] = entry

    def get(self, key: str) -> Optional[T]:
        """Return the live value for `key`, or `None`.

        A missing key or an expired entry counts as a miss; an expired entry is
        removed on the way out. A live entry counts as a hit.
        """

        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._store[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def has(self, key: str) -> bool:
        """Presence check with the same lazy eviction as `get`. Counters are untouched."""
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return False
            if entry.is_expired(now):
                del self._store[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry and reset the hit and miss counters."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0

    def size(self) -> int:
        with self._lock:
            return len(self._store)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._store)

    def stats(self) -> CacheStats:
        """Snapshot of table size, keys and counters taken under a single lock.

        Returns
        -------
        CacheStats
            `hit_rate` is `hits / (hits + misses)`, or `0.0` before any `get`.
        """

        with self._lock:
            hits, misses = self._hits, self._misses
            keys = list(self._store)
        total = hits + misses
        return CacheStats(
            size=len(keys),
            keys=keys,
            hits=hits,
            misses=misses,
            hit_rate=hits / total if total else 0.0,
        )

    def sweep(self) -> int:
        """Remove every expired entry and return how many were removed.

        Notes
        -----
        - Candidates come from a snapshot of the table, then are removed in
          batches of `sweep_batch_size`. Each batch re-checks expiry under the
          lock, so an entry replaced by a concurrent `set` survives.
        - Racing with lazy eviction is harmless: whichever removes first wins.
        """

        now = self._clock()
        with self._lock:
            snapshot = list(self._store.items())
        expired = [key for key, entry in snapshot if entry.is_expired(now)]

        removed = 0
        for start in range(0, len(expired), self.sweep_batch_size):
            with self._lock:
                for key in expired[start:start + self.sweep_batch_size]:
                    entry = self._store.get(key)
                    if entry is not None and entry.is_expired(now):
                        del self._store[key]
                        removed += 1

        if removed:
            logger.info("Cache cleanup: removed %d expired items", removed)
        return removed

    def shutdown(self) -> None:
        """Stop the background sweeper. Safe to call more than once."""
        sweeper = self._sweeper
        if sweeper is None or self._stopped.is_set():
            return
        self._stopped.set()
        if sweeper is not threading.current_thread():
            sweeper.join()
        logger.debug("Cache sweeper stopped")

    def _run_sweeper(self) -> None:
        while not self._stopped.wait(self._sweep_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Cache sweep failed")


class CacheNamespace(Generic[T]):
    """Typed view over a shared `ExpiringCache` that prefixes every key.

    Lets one cache hold several value types while each call site keeps a single
    static type, e.g. `CacheNamespace[List[NewsItem]](cache, "news_")`.
    Counters and sweeping belong to the backing cache.
    """

    def __init__(self, cache: ExpiringCache, prefix: str):
        self.cache = cache
        self.prefix = prefix

    def key_for(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[T]:
        return self.cache.get(self.key_for(key))

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        self.cache.set(self.key_for(key), value, ttl)

    def has(self, key: str) -> bool:
        return self.cache.has(self.key_for(key))

    def delete(self, key: str) -> bool:
        return self.cache.delete(self.key_for(key))
