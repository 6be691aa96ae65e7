"""
Dashboard aggregates (server side)
Short-TTL aggregate cache with mutation-driven invalidation
"""

from .cache import AggregateCache, CacheEntry
from .registry import EntityRegistry
from .service import DashboardService, build_dashboard_service
from .signals import EntityKind, InvalidationSignal, MutationAction, MutationBus

__all__ = [
    'AggregateCache',
    'CacheEntry',
    'DashboardService',
    'EntityKind',
    'EntityRegistry',
    'InvalidationSignal',
    'MutationAction',
    'MutationBus',
    'build_dashboard_service',
]
