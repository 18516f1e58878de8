"""In-process query cache with stale-while-revalidate semantics.

A value younger than ``stale_seconds`` is served as is. An older value is
still served, but a background thread refreshes it (at most one refresh per
key at a time). Entries nobody asked for in ``gc_seconds`` are evicted. Both
windows can be overridden per key. Failed fetches are never cached.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from wbexplorer.config import config

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    fetched_at: float
    last_access: float
    stale_seconds: float
    gc_seconds: float


class QueryCache:
    def __init__(
        self,
        stale_seconds: float = config.CACHE_STALE_SECONDS,
        gc_seconds: float = config.CACHE_GC_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.stale_seconds = stale_seconds
        self.gc_seconds = gc_seconds
        self._clock = clock
        self._entries: Dict[Hashable, _Entry] = {}
        self._refreshing: Dict[Hashable, threading.Thread] = {}
        self._lock = threading.Lock()

    def get(
        self,
        key: Hashable,
        fetcher: Callable[[], Any],
        stale_seconds: Optional[float] = None,
        gc_seconds: Optional[float] = None,
    ) -> Any:
        """Return the cached value for ``key``, calling ``fetcher`` on a miss.

        ``stale_seconds`` and ``gc_seconds`` override the cache-wide windows for
        this key.
        """

        windows = (
            self.stale_seconds if stale_seconds is None else stale_seconds,
            self.gc_seconds if gc_seconds is None else gc_seconds,
        )
        now = self._clock()
        with self._lock:
            self._evict(now)
            entry = self._entries.get(key)
            if entry is not None:
                entry.last_access = now
        if entry is None:
            logger.debug("Cache miss for %s", key)
            value = fetcher()
            self._store(key, value, windows)
            return value
        if now - entry.fetched_at >= entry.stale_seconds:
            self._refresh_in_background(key, fetcher, windows)
        return entry.value

    def wait_for_refreshes(self, timeout: Optional[float] = None) -> None:
        """Block until every background refresh started so far has finished."""

        with self._lock:
            threads: List[threading.Thread] = list(self._refreshing.values())
        for thread in threads:
            thread.join(timeout)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _store(self, key: Hashable, value: Any, windows: Tuple[float, float]) -> None:
        now = self._clock()
        stale_seconds, gc_seconds = windows
        with self._lock:
            self._entries[key] = _Entry(
                value=value, fetched_at=now, last_access=now, stale_seconds=stale_seconds, gc_seconds=gc_seconds
            )

    def _evict(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if now - entry.last_access >= entry.gc_seconds]
        for key in expired:
            logger.debug("Evicting %s from cache", key)
            del self._entries[key]

    def _refresh_in_background(self, key: Hashable, fetcher: Callable[[], Any], windows: Tuple[float, float]) -> None:
        with self._lock:
            if key in self._refreshing:
                return
            thread = threading.Thread(target=self._refresh, args=(key, fetcher, windows), daemon=True)
            self._refreshing[key] = thread
            thread.start()
        logger.debug("Refreshing stale entry %s in background", key)

    def _refresh(self, key: Hashable, fetcher: Callable[[], Any], windows: Tuple[float, float]) -> None:
        try:
            value = fetcher()
        except Exception as exc:  # noqa: BLE001
            # Keep serving the previous value; the next stale read retries.
            logger.warning("Background refresh of %s failed: %s", key, exc)
        else:
            self._store(key, value, windows)
        finally:
            with self._lock:
                self._refreshing.pop(key, None)
