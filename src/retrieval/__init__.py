"""
Dashboard retrieval (client side)
Persistent stale-while-revalidate cache + stream URL retry resolution
"""

from .api import DashboardApi, build_dashboard_api, endpoint_key
from .cache import RetrievalCache
from .client import DashboardClient
from .dashboard import DashboardLoader, DashboardSnapshot, build_dashboard_loader
from .persistence import PersistentStore
from .stream import StreamResolution, StreamUrlResolver, plan

__all__ = [
    'DashboardApi',
    'DashboardClient',
    'DashboardLoader',
    'DashboardSnapshot',
    'PersistentStore',
    'RetrievalCache',
    'StreamResolution',
    'StreamUrlResolver',
    'build_dashboard_api',
    'build_dashboard_loader',
    'endpoint_key',
    'plan',
]
