#!/usr/bin/env python3
"""
Dashboard API — typed reads for the public dashboard

GET reads go through the persistent stale-while-revalidate cache, keyed by
endpoint path + sorted query parameters. Anything else goes straight to the
network and is never stored. Stream URLs use the retry resolver instead of
the cache.

The get_* helpers never raise: failures are logged and a default value is
returned so the dashboard can render a placeholder.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlencode

from .cache import RetrievalCache
from .client import DashboardClient
from .config import RetrievalConfig
from .errors import RetrievalError
from .persistence import PersistentStore
from .stream import DEFAULT_DELAY_MS, DEFAULT_TIMEOUTS_MS, StreamResolution, StreamUrlResolver

logger = logging.getLogger(__name__)

DEFAULT_STATS = {"total_buildings": 0, "total_rooms": 0, "total_cctvs": 0}


def endpoint_key(endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Cache key for a GET: path plus its set parameters in name order."""
    query = {name: params[name] for name in sorted(params or {}) if params[name] is not None}
    if not query:
        return endpoint
    return f"{endpoint}?{urlencode(query)}"


class DashboardApi:
    """Cached, failure-tolerant access to the dashboard endpoints."""

    def __init__(
        self,
        client: DashboardClient,
        cache: RetrievalCache,
        stream_timeouts_ms: Sequence[int] = DEFAULT_TIMEOUTS_MS,
        stream_delay_ms: int = DEFAULT_DELAY_MS,
        stream_sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.cache = cache
        self.stream_resolver = StreamUrlResolver(
            self._fetch_stream,
            timeouts_ms=stream_timeouts_ms,
            delay_ms=stream_delay_ms,
            sleep=stream_sleep,
        )

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """Raw read. Raises RetrievalError subclasses on a cache miss."""
        if method.upper() != "GET":
            return self.client.request(method, endpoint, params=params, json=json)

        return self.cache.fetch(
            endpoint_key(endpoint, params),
            lambda: self.client.get(endpoint, params=params),
        )

    def _read(self, endpoint: str, default: Any, what: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Payload of a GET, or `default` when it fails or is not shaped like `default`."""
        try:
            payload = self.request(endpoint, params=params)
        except RetrievalError as e:
            logger.error(f"Error fetching {what}: {e}")
            return default

        if not isinstance(payload, type(default)):
            logger.warning(f"No usable {what} in response ({type(payload).__name__}), using default")
            return default
        return payload

    def _fetch_stream(self, camera_id: str, timeout: float) -> Dict[str, Any]:
        return self.client.get(f"/cctvs/stream/{camera_id}", timeout=timeout)

    def get_stats(self) -> Dict[str, int]:
        return self._read("/stats", dict(DEFAULT_STATS), "stats")

    def get_buildings(self) -> List[Dict[str, Any]]:
        return self._read("/buildings", [], "buildings")

    def get_building(self, building_id) -> Dict[str, Any]:
        return self._read(f"/buildings/{building_id}", {}, f"building {building_id}")

    def get_rooms(self) -> List[Dict[str, Any]]:
        return self._read("/rooms", [], "rooms")

    def get_room(self, room_id) -> Dict[str, Any]:
        return self._read(f"/rooms/{room_id}", {}, f"room {room_id}")

    def get_rooms_by_building(self, building_id) -> List[Dict[str, Any]]:
        return self._read(f"/rooms/building/{building_id}", [], f"rooms for building {building_id}")

    def get_cctvs(self) -> List[Dict[str, Any]]:
        return self._read("/cctvs", [], "CCTVs")

    def get_cctvs_by_room(self, room_id) -> List[Dict[str, Any]]:
        return self._read(f"/cctvs/room/{room_id}", [], f"CCTVs for room {room_id}")

    def get_production_trends(self, start_date: str = None, end_date: str = None) -> List[Dict[str, Any]]:
        params = {"start_date": start_date, "end_date": end_date}
        return self._read("/production-trends", [], "production trends", params=params)

    def get_unit_performance(self) -> List[Dict[str, Any]]:
        return self._read("/unit-performance", [], "unit performance")

    def get_contacts(self) -> List[Dict[str, Any]]:
        contact = self._read("/contact", {}, "contacts")
        return [contact] if contact else []

    def get_cctv_stream_url(self, camera_id) -> StreamResolution:
        return self.stream_resolver.resolve(str(camera_id))

    def close(self) -> None:
        self.cache.close()
        self.cache.store.close()


def build_dashboard_api(config: RetrievalConfig = None) -> DashboardApi:
    """Create client, persistent store, cache and stream resolver from config."""
    config = config or RetrievalConfig.from_dict({})

    client = DashboardClient(base_url=config.api_base_url, timeout=config.request_timeout_sec)
    store = PersistentStore(db_path=str(config.db_path), namespace=config.namespace)
    cache = RetrievalCache(
        store,
        freshness_sec=config.freshness_sec,
        max_workers=config.refresh_workers,
    )

    return DashboardApi(
        client,
        cache,
        stream_timeouts_ms=config.stream.timeouts_ms,
        stream_delay_ms=config.stream.delay_ms,
    )
