#!/usr/bin/env python3
"""
Dashboard Service — aggregate reads wrapped in response envelopes

Every read returns {"success": bool, "message": str, "data": payload}.
Aggregate failures become an unsuccessful envelope instead of an exception.
"""

import functools
import logging
import random
from typing import Any, Dict, Optional

from . import producers
from .cache import AggregateCache
from .config import AggregateConfig
from .errors import AggregateError
from .registry import EntityRegistry
from .signals import EntityKind, MutationBus

logger = logging.getLogger(__name__)

PRODUCTION_TRENDS = "production_trends"
UNIT_PERFORMANCE = "unit_performance"
STATS = "stats"


def envelope(data: Any, message: str = "OK", success: bool = True) -> Dict[str, Any]:
    return {"success": success, "message": message, "data": data}


class DashboardService:
    """Read side of the dashboard backend, served through the aggregate cache."""

    def __init__(self, registry: EntityRegistry, cache: AggregateCache):
        self.registry = registry
        self.cache = cache

    def _aggregate(self, scope: str, params: Optional[Dict[str, Any]], message: str) -> Dict[str, Any]:
        try:
            return envelope(self.cache.get(scope, params), message)
        except AggregateError as e:
            logger.error(f"Aggregate read failed for {scope}: {e}")
            return envelope(None, str(e), success=False)

    def stats(self) -> Dict[str, Any]:
        return self._aggregate(STATS, None, "Stats retrieved")

    def production_trends(self, start_date: str = None, end_date: str = None) -> Dict[str, Any]:
        params = {"start_date": start_date, "end_date": end_date}
        return self._aggregate(PRODUCTION_TRENDS, params, "Production trends retrieved")

    def unit_performance(self) -> Dict[str, Any]:
        return self._aggregate(UNIT_PERFORMANCE, None, "Unit performance retrieved")

    def buildings(self) -> Dict[str, Any]:
        return envelope([b.to_dict() for b in self.registry.buildings()], "Buildings retrieved")

    def rooms(self, building_id: int = None) -> Dict[str, Any]:
        return envelope([r.to_dict() for r in self.registry.rooms(building_id)], "Rooms retrieved")

    def cctvs(self, room_id: int = None) -> Dict[str, Any]:
        return envelope([c.to_dict() for c in self.registry.cctvs(room_id)], "Cctvs retrieved")


def build_dashboard_service(
    config: AggregateConfig = None,
    registry: EntityRegistry = None,
    cache: AggregateCache = None,
    rng: random.Random = None,
) -> DashboardService:
    """Wire registry → mutation bus → aggregate cache and register the producers."""
    config = config or AggregateConfig.from_dict({})
    registry = registry or EntityRegistry(MutationBus())
    cache = cache or AggregateCache()

    hierarchy = (EntityKind.BUILDING, EntityKind.ROOM, EntityKind.CCTV)
    cache.register(
        PRODUCTION_TRENDS,
        functools.partial(producers.production_trends, registry, rng=rng),
        ttl=config.trends_ttl_sec,
        depends_on=hierarchy + (EntityKind.PRODUCTION_TREND,),
    )
    cache.register(
        UNIT_PERFORMANCE,
        functools.partial(producers.unit_performance, registry),
        ttl=config.unit_performance_ttl_sec,
        depends_on=hierarchy + (EntityKind.PRODUCTION_TREND,),
    )
    cache.register(
        STATS,
        functools.partial(producers.stats, registry),
        ttl=config.stats_ttl_sec,
        depends_on=hierarchy,
    )
    registry.bus.subscribe(cache.handle_signal)

    return DashboardService(registry, cache)
