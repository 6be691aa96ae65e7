#!/usr/bin/env python3
"""
Persistent Retrieval Store
SQLite-backed key → {payload, stored_at} entries that survive restarts

Implements:
- read(key) → CacheEntry | None
- write(key, value, stored_at) → bool (False when a newer entry already exists)
- delete(key), clear()
- stats() → {entries, reads, writes, stale_writes_skipped}

Every storage problem surfaces as CacheStorageUnavailable so the cache above
can treat persistence as best-effort.
"""

import json
import logging
import os
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import CacheStorageUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float


class PersistentStore:
    """
    Namespaced SQLite table of cached payloads.

    Design principles:
    - One row per key; keys are independently replaceable
    - stored_at is monotonic per key: older writes never replace newer rows
    - Unavailable storage (bad path, locked db, quota) never raises outside
      CacheStorageUnavailable
    """

    DEFAULT_NAMESPACE = "dashboard_cache_v2_"

    def __init__(self, db_path: str = None, namespace: str = None):
        if db_path is None:
            db_path = os.path.expanduser("~/.cache/facility-dashboard/retrieval.db")

        self.db_path = db_path
        self.namespace = self.DEFAULT_NAMESPACE if namespace is None else namespace
        self._lock = threading.Lock()
        self.conn: Optional[sqlite3.Connection] = None

        self.stats_counters = {"reads": 0, "writes": 0, "stale_writes_skipped": 0}

        try:
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            # Refresh workers write from their own threads; statements are
            # serialized by self._lock.
            self.conn = sqlite3.connect(db_path, check_same_thread=False, timeout=10.0)
            self._init_schema()
            logger.info(f"PersistentStore initialized at {db_path}")
        except (OSError, sqlite3.Error) as e:
            logger.warning(f"Persistent cache unavailable at {db_path}: {e}")
            self.conn = None

    def _init_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS retrieval_cache (
                cache_key TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                stored_at REAL NOT NULL
            )
        """)
        self.conn.commit()

    @property
    def available(self) -> bool:
        return self.conn is not None

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def _connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise CacheStorageUnavailable(f"Persistent cache at {self.db_path} is not available")
        return self.conn

    def read(self, key: str) -> Optional[CacheEntry]:
        """Entry for `key` regardless of age, or None."""
        try:
            with self._lock:
                row = self._connection().execute(
                    "SELECT payload, stored_at FROM retrieval_cache WHERE cache_key = ?",
                    (self._key(key),),
                ).fetchone()
                self.stats_counters["reads"] += 1
        except sqlite3.Error as e:
            raise CacheStorageUnavailable(f"Cache read failed for {key}: {e}") from e

        if row is None:
            return None

        try:
            return CacheEntry(value=json.loads(row[0]), stored_at=row[1])
        except ValueError as e:
            raise CacheStorageUnavailable(f"Corrupt cache entry for {key}: {e}") from e

    def write(self, key: str, value: Any, stored_at: float) -> bool:
        """
        Persist `value` for `key` unless a newer entry is already stored.

        Returns True when written, False when skipped as stale.
        """
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheStorageUnavailable(f"Payload for {key} is not serializable: {e}") from e

        try:
            with self._lock:
                conn = self._connection()
                cursor = conn.execute(
                    """
                    INSERT INTO retrieval_cache (cache_key, payload, stored_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(cache_key) DO UPDATE
                    SET payload = excluded.payload, stored_at = excluded.stored_at
                    WHERE excluded.stored_at >= retrieval_cache.stored_at
                    """,
                    (self._key(key), payload, stored_at),
                )
                conn.commit()
                written = cursor.rowcount > 0
                if written:
                    self.stats_counters["writes"] += 1
                else:
                    self.stats_counters["stale_writes_skipped"] += 1
        except sqlite3.Error as e:
            raise CacheStorageUnavailable(f"Cache write failed for {key}: {e}") from e

        if not written:
            logger.debug(f"Skipped stale write for {key} (stored_at={stored_at})")
        return written

    def delete(self, key: str) -> bool:
        try:
            with self._lock:
                conn = self._connection()
                cursor = conn.execute(
                    "DELETE FROM retrieval_cache WHERE cache_key = ?", (self._key(key),)
                )
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise CacheStorageUnavailable(f"Cache delete failed for {key}: {e}") from e

    def clear(self) -> int:
        """Remove every entry in this store's namespace."""
        try:
            with self._lock:
                conn = self._connection()
                cursor = conn.execute(
                    "DELETE FROM retrieval_cache WHERE substr(cache_key, 1, ?) = ?",
                    (len(self.namespace), self.namespace),
                )
                conn.commit()
                cleared = cursor.rowcount
        except sqlite3.Error as e:
            raise CacheStorageUnavailable(f"Cache clear failed: {e}") from e

        if cleared > 0:
            logger.info(f"Cleared {cleared} persisted cache entries ({self.namespace})")
        return cleared

    def stats(self) -> Dict[str, Any]:
        entries = 0
        if self.conn is not None:
            try:
                with self._lock:
                    entries = self.conn.execute(
                        "SELECT COUNT(*) FROM retrieval_cache WHERE substr(cache_key, 1, ?) = ?",
                        (len(self.namespace), self.namespace),
                    ).fetchone()[0]
            except sqlite3.Error as e:
                logger.warning(f"Cache stats error: {e}")

        return {**self.stats_counters, "entries": entries, "available": self.available}

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("PersistentStore closed")
