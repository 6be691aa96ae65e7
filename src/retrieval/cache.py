#!/usr/bin/env python3
"""
Retrieval Cache — stale-while-revalidate over the persistent store

fetch(key, loader):
- cached entry present → returned immediately, whatever its age
- entry at or past the freshness threshold → one background refresh per key
- no entry → loader runs synchronously, result persisted, failures propagate

Storage failures are logged and absorbed; callers only ever see loader
failures on the cache-miss path.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Optional

from .errors import CacheStorageUnavailable
from .persistence import CacheEntry, PersistentStore

logger = logging.getLogger(__name__)

Loader = Callable[[], Any]


class RetrievalCache:
    """
    Persistent client-side cache with background revalidation.

    The in-flight registry maps cache key → refresh future. A key has at most
    one refresh running; the future removes itself from the registry when it
    finishes, successfully or not.
    """

    DEFAULT_FRESHNESS_SEC = 300  # 5 minutes

    def __init__(
        self,
        store: PersistentStore,
        freshness_sec: float = None,
        max_workers: int = 2,
        executor: ThreadPoolExecutor = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.freshness_sec = self.DEFAULT_FRESHNESS_SEC if freshness_sec is None else freshness_sec
        self._clock = clock
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="cache-refresh"
        )
        self._lock = threading.Lock()
        self._refreshing: Dict[str, Future] = {}

        self.stats_counters = {
            "fresh_hits": 0,
            "stale_hits": 0,
            "misses": 0,
            "refreshes": 0,
            "refresh_failures": 0,
            "storage_errors": 0,
        }

    def fetch(self, key: str, loader: Loader) -> Any:
        entry = self._read(key)

        if entry is not None:
            age = self._clock() - entry.stored_at
            if age >= self.freshness_sec:
                self._count("stale_hits")
                logger.info(f"Serving stale cache for {key} (age: {age:.1f}s)")
                self._schedule_refresh(key, loader)
            else:
                self._count("fresh_hits")
                logger.debug(f"Cache hit for {key} (age: {age:.1f}s)")
            return entry.value

        self._count("misses")
        value = loader()
        self._write(key, value)
        return value

    def _count(self, name: str) -> None:
        with self._lock:
            self.stats_counters[name] += 1

    def _read(self, key: str) -> Optional[CacheEntry]:
        try:
            return self.store.read(key)
        except CacheStorageUnavailable as e:
            self._count("storage_errors")
            logger.warning(f"Cache read skipped: {e}")
            return None

    def _write(self, key: str, value: Any) -> None:
        try:
            self.store.write(key, value, self._clock())
        except CacheStorageUnavailable as e:
            self._count("storage_errors")
            logger.warning(f"Cache write skipped (quota exceeded or storage disabled?): {e}")

    def _schedule_refresh(self, key: str, loader: Loader) -> Optional[Future]:
        with self._lock:
            future = self._refreshing.get(key)
            if future is not None:
                logger.debug(f"Refresh already in flight for {key}")
                return future
            try:
                future = self._executor.submit(self._refresh, key, loader)
            except RuntimeError as e:
                # Executor shut down; the cached value is still served.
                logger.warning(f"Background refresh skipped for {key}: {e}")
                return None
            self._refreshing[key] = future

        future.add_done_callback(lambda done: self._forget(key, done))
        return future

    def _forget(self, key: str, future: Future) -> None:
        with self._lock:
            if self._refreshing.get(key) is future:
                del self._refreshing[key]

    def _refresh(self, key: str, loader: Loader) -> bool:
        try:
            value = loader()
        except Exception as e:
            self._count("refresh_failures")
            logger.warning(f"Background refresh failed for {key}: {e}")
            return False

        self._write(key, value)
        self._count("refreshes")
        logger.info(f"Background refresh stored new value for {key}")
        return True

    def is_refreshing(self, key: str) -> bool:
        with self._lock:
            return key in self._refreshing

    def wait_for_refreshes(self, timeout: float = None) -> bool:
        """Block until in-flight refreshes finish. Returns False on timeout."""
        with self._lock:
            pending = list(self._refreshing.values())
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def invalidate(self, key: str) -> bool:
        try:
            return self.store.delete(key)
        except CacheStorageUnavailable as e:
            logger.warning(f"Cache delete skipped: {e}")
            return False

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            counters = dict(self.stats_counters)
            in_flight = len(self._refreshing)
        return {**counters, "in_flight_refreshes": in_flight, "store": self.store.stats()}

    def close(self, wait_for_refreshes: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait_for_refreshes)
