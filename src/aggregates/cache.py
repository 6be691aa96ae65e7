#!/usr/bin/env python3
"""
Aggregate Cache Manager
Short-TTL memoization of derived dashboard metrics

Implements:
- register(scope, producer, ttl, depends_on)
- get(scope, params) → value (cached or recomputed)
- invalidate(scope) → entries dropped
- handle_signal(signal) → invalidates dependent scopes
- stats() → {hits, misses, computations, coalesced, failures, invalidations, entries}
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional

from .errors import ProducerFailed, UnknownScope
from .keys import aggregate_key, key_scope
from .signals import EntityKind, InvalidationSignal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float
    scope: str


@dataclass
class _Registration:
    producer: Callable[..., Any]
    ttl: float
    depends_on: frozenset
    generation: int = 0


@dataclass
class _Computation:
    """A producer run shared by every caller waiting on the same key."""
    generation: int
    done: threading.Event = field(default_factory=threading.Event)
    value: Any = None
    error: Optional[Exception] = None


class AggregateCache:
    """
    Memoizes producer results per (scope, params) for a short TTL.

    Design principles:
    - At most one producer run per key; concurrent callers share its result
    - Failures are never cached; the previous entry survives a failed refresh
    - Invalidation is eager: entries under the scope are dropped, and results
      of computations started before the invalidation are not stored
    """

    DEFAULT_TTL = 0.5  # seconds

    def __init__(self, default_ttl: float = None, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = self.DEFAULT_TTL if default_ttl is None else default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._scopes: Dict[str, _Registration] = {}
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, _Computation] = {}

        self.counters = {
            "hits": 0,
            "misses": 0,
            "computations": 0,
            "coalesced": 0,
            "failures": 0,
            "invalidations": 0,
        }

    def register(
        self,
        scope: str,
        producer: Callable[..., Any],
        ttl: float = None,
        depends_on: Iterable[EntityKind] = (),
    ) -> None:
        """Bind the producer that computes `scope`. Re-registering drops cached entries."""
        if ":" in scope:
            raise ValueError(f"Scope names cannot contain ':' ({scope!r})")

        registration = _Registration(
            producer=producer,
            ttl=self.default_ttl if ttl is None else ttl,
            depends_on=frozenset(depends_on),
        )
        with self._lock:
            previous = self._scopes.get(scope)
            if previous is not None:
                registration.generation = previous.generation + 1
                self._drop_scope(scope)
            self._scopes[scope] = registration

        logger.info(f"Registered aggregate '{scope}' (ttl={registration.ttl}s)")

    def get(self, scope: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Return the cached aggregate when younger than its TTL, else recompute.

        Raises:
            UnknownScope: no producer registered for `scope`
            ProducerFailed: the producer raised (for every waiter on the key)
        """
        params = dict(params or {})
        key = aggregate_key(scope, params)

        with self._lock:
            registration = self._scopes.get(scope)
            if registration is None:
                raise UnknownScope(scope)

            entry = self._entries.get(key)
            if entry is not None and self._clock() - entry.stored_at < registration.ttl:
                self.counters["hits"] += 1
                return entry.value

            self.counters["misses"] += 1
            computation = self._inflight.get(key)
            owner = computation is None
            if owner:
                computation = _Computation(generation=registration.generation)
                self._inflight[key] = computation
            else:
                self.counters["coalesced"] += 1

        if not owner:
            logger.debug(f"Waiting on in-flight computation for {key}")
            computation.done.wait()
            if computation.error is not None:
                raise computation.error
            return computation.value

        return self._compute(scope, key, params, registration, computation)

    def _compute(
        self,
        scope: str,
        key: str,
        params: Dict[str, Any],
        registration: _Registration,
        computation: _Computation,
    ) -> Any:
        start = time.perf_counter()
        try:
            value = registration.producer(**params)
        except Exception as e:
            error = ProducerFailed(scope, key, e)
            error.__cause__ = e
            with self._lock:
                self.counters["failures"] += 1
                self._release(key, computation)
            computation.error = error
            computation.done.set()
            logger.error(f"Aggregate '{scope}' failed to compute: {e}")
            raise error

        with self._lock:
            self.counters["computations"] += 1
            current_generation = self._scopes[scope].generation if scope in self._scopes else None
            if computation.generation == current_generation:
                self._store(key, CacheEntry(value=value, stored_at=self._clock(), scope=scope))
            else:
                logger.debug(f"Discarding result for {key} computed before invalidation")
            self._release(key, computation)

        computation.value = value
        computation.done.set()

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"Computed {key} in {elapsed_ms:.1f}ms")
        return value

    def _store(self, key: str, entry: CacheEntry) -> None:
        current = self._entries.get(key)
        if current is not None and current.stored_at > entry.stored_at:
            return
        self._entries[key] = entry

    def _release(self, key: str, computation: _Computation) -> None:
        if self._inflight.get(key) is computation:
            del self._inflight[key]

    def invalidate(self, scope: str, reason: str = "manual") -> int:
        """Drop every entry under `scope`. Returns the number of entries dropped."""
        with self._lock:
            registration = self._scopes.get(scope)
            if registration is None:
                raise UnknownScope(scope)
            registration.generation += 1
            cleared = self._drop_scope(scope)
            self.counters["invalidations"] += 1

        logger.info(f"Invalidated aggregate '{scope}' ({reason}): {cleared} entries cleared")
        return cleared

    def _drop_scope(self, scope: str) -> int:
        keys = [key for key, entry in self._entries.items() if entry.scope == scope]
        for key in keys:
            del self._entries[key]
        # Detach running computations; their waiters still get a result,
        # later callers start a fresh one.
        for key in [key for key in self._inflight if key_scope(key) == scope]:
            del self._inflight[key]
        return len(keys)

    def handle_signal(self, signal: InvalidationSignal) -> int:
        """Mutation bus subscriber: invalidate every scope depending on the entity."""
        with self._lock:
            scopes = [name for name, reg in self._scopes.items() if signal.entity in reg.depends_on]

        cleared = 0
        reason = f"{signal.entity.value}_{signal.action.value}"
        for scope in scopes:
            cleared += self.invalidate(scope, reason=reason)
        return cleared

    def peek(self, scope: str, params: Optional[Dict[str, Any]] = None) -> Optional[CacheEntry]:
        """Current entry for a query regardless of age; never computes."""
        with self._lock:
            return self._entries.get(aggregate_key(scope, params))

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._entries)
            for registration in self._scopes.values():
                registration.generation += 1
            self._entries.clear()
            self._inflight.clear()

        if cleared > 0:
            logger.info(f"Cleared {cleared} aggregate cache entries")
        return cleared

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            counters = dict(self.counters)
            entries = len(self._entries)
            inflight = len(self._inflight)

        total_requests = counters["hits"] + counters["misses"]
        hit_rate = (counters["hits"] / total_requests * 100) if total_requests > 0 else 0

        return {
            **counters,
            "total_requests": total_requests,
            "hit_rate_percent": round(hit_rate, 1),
            "entries": entries,
            "in_flight": inflight,
            "scopes": sorted(self._scopes),
        }
