"""
Aggregate producers.

Each producer is a plain function of the registry plus query parameters; the
service binds them to a registry before registering them with the cache.

- production_trends: daily series simulated from infrastructure counts
- unit_performance: CCTVs grouped by building/room, averaged over latest history
- stats: headline entity counts
"""

from __future__ import annotations

import calendar
import logging
import math
import random
import zlib
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .models import ProductionTrend
from .registry import EntityRegistry

logger = logging.getLogger(__name__)

UNIT_CAPACITY = 100


def simulate(seed: str, low: int, high: int) -> int:
    """Deterministic value in [low, high] for a seed. Uses a private generator."""
    return random.Random(zlib.crc32(seed.encode("utf-8"))).randint(low, high)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _parse_day(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def month_bounds(today: date) -> tuple[date, date]:
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def production_trends(
    registry: EntityRegistry,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """
    One row per day in [start_date, end_date], current month when unbounded.

    Metrics scale with the number of buildings, rooms and cctvs; the variance
    comes from `rng`, an opaque value source.
    """
    buildings = registry.buildings()
    if not buildings:
        return []

    rng = rng or random.Random()
    default_start, default_end = month_bounds(today or date.today())
    start = _parse_day(start_date) if start_date else default_start
    end = _parse_day(end_date) if end_date else default_end

    building_count = len(buildings)
    room_count = len(registry.rooms())
    cctv_count = len(registry.cctvs())
    base_production = building_count * 100 + room_count * 50 + cctv_count * 25

    trends = []
    day = start
    while day <= end:
        production = round_half_up(base_production * rng.randint(80, 120) / 100)
        trends.append({
            "date": day.isoformat(),
            "production": production,
            "target": round_half_up(production * 1.1),
            "traffic_volume": cctv_count * rng.randint(1000, 5000),
            "average_speed": rng.randint(30, 80),
            "incidents": rng.randint(0, max(1, (cctv_count + room_count) // 5)),
            "congestion_index": rng.randint(20, 80),
            "signal_changes": building_count * rng.randint(50, 200),
            "green_wave_efficiency": rng.randint(60, 95),
        })
        day += timedelta(days=1)

    logger.debug(f"Produced {len(trends)} trend rows for {start}..{end}")
    return trends


def _latest(history: List[ProductionTrend]) -> Optional[ProductionTrend]:
    if not history:
        return None
    return max(history, key=lambda t: t.date)


def unit_performance(registry: EntityRegistry) -> List[Dict[str, Any]]:
    """Performance of the first building/room group of CCTVs."""
    cctvs = registry.cctvs()
    if not cctvs:
        return []

    groups: Dict[str, list] = {}
    for cctv in cctvs:
        building = registry.building(cctv.building_id)
        room = registry.room(cctv.room_id)
        label = f"{building.name if building else 'Unknown Building'} - {room.name if room else 'Unknown Room'}"
        groups.setdefault(label, []).append(cctv)

    units = []
    for label, members in groups.items():
        total_efficiency = total_density = total_optimization = 0.0
        for cctv in members:
            history = registry.trends(cctv.id)
            latest = _latest(history)

            efficiency = latest.production if latest and latest.production is not None else None
            if efficiency is None:
                efficiency = 75 + min(25, len(history) * 5)
            optimization = (
                latest.green_wave_efficiency
                if latest and latest.green_wave_efficiency is not None
                else 65 + min(35, len(history) * 7)
            )
            density = latest.traffic_volume if latest and latest.traffic_volume else 0
            if not density:
                density = simulate(cctv.name, 40, 90)

            total_efficiency += efficiency
            total_density += density
            total_optimization += optimization

        count = len(members)
        units.append({
            "unit": label,
            "efficiency": round_half_up(total_efficiency / count),
            "traffic_density": round_half_up(total_density / count),
            "signal_optimization": round_half_up(total_optimization / count),
            "capacity": UNIT_CAPACITY,
        })

    # Only the leading group is reported on the dashboard.
    return units[:1]


def stats(registry: EntityRegistry) -> Dict[str, int]:
    return registry.counts()
