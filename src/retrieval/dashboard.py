"""Dashboard snapshot loading and periodic polling."""

from __future__ import annotations

import calendar
import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from .api import DEFAULT_STATS, DashboardApi, build_dashboard_api
from .config import RetrievalConfig

logger = logging.getLogger(__name__)

DateRange = Tuple[str, str]


@dataclass
class DashboardSnapshot:
    stats: Dict[str, int]
    production_trends: List[Dict[str, Any]] = field(default_factory=list)
    unit_performance: List[Dict[str, Any]] = field(default_factory=list)
    date_range: Optional[DateRange] = None


def infer_date_range(trends: List[Dict[str, Any]]) -> Optional[DateRange]:
    """Calendar month containing the most recent trend row."""
    dates = []
    for row in trends or []:
        try:
            dates.append(date.fromisoformat(str(row["date"])[:10]))
        except (KeyError, TypeError, ValueError):
            continue
    if not dates:
        return None

    latest = max(dates)
    last_day = calendar.monthrange(latest.year, latest.month)[1]
    return latest.replace(day=1).isoformat(), latest.replace(day=last_day).isoformat()


class DashboardLoader:
    """
    Loads everything the dashboard shows in one pass.

    On the first load the trend date range is initialised to the month of the
    most recent trend data; later loads reuse it. Reads never raise; missing
    data shows up as zeros and empty lists.
    """

    DEFAULT_INTERVAL_SEC = 30

    def __init__(self, api: DashboardApi, date_range: DateRange = None, interval_sec: float = None):
        self.api = api
        self.date_range = date_range
        self.interval_sec = self.DEFAULT_INTERVAL_SEC if interval_sec is None else interval_sec

    def _stats(self) -> Dict[str, int]:
        stats = self.api.get_stats()
        fallbacks = {
            "total_buildings": self.api.get_buildings,
            "total_rooms": self.api.get_rooms,
            "total_cctvs": self.api.get_cctvs,
        }
        merged = {}
        for name, listing in fallbacks.items():
            value = stats.get(name)
            merged[name] = value if value is not None else len(listing())
        return merged

    def _trends(self) -> List[Dict[str, Any]]:
        if self.date_range is None:
            everything = self.api.get_production_trends()
            inferred = infer_date_range(everything)
            if inferred is None:
                return everything
            self.date_range = inferred
            logger.info(f"Dashboard date range initialised to {inferred[0]}..{inferred[1]}")

        start, end = self.date_range
        return self.api.get_production_trends(start, end)

    def load(self) -> DashboardSnapshot:
        try:
            snapshot = DashboardSnapshot(
                stats=self._stats(),
                production_trends=self._trends(),
                unit_performance=self.api.get_unit_performance(),
                date_range=self.date_range,
            )
        except Exception as e:
            logger.error(f"Error loading dashboard data: {e}")
            return DashboardSnapshot(stats=dict(DEFAULT_STATS), date_range=self.date_range)

        logger.debug(
            f"Dashboard loaded: {len(snapshot.production_trends)} trend rows, "
            f"{len(snapshot.unit_performance)} units"
        )
        return snapshot

    def poll(
        self,
        on_snapshot: Callable[[DashboardSnapshot], None],
        stop: threading.Event,
        interval_sec: float = None,
    ) -> int:
        """Load immediately, then every `interval_sec` until `stop` is set. Returns loads done."""
        interval_sec = self.interval_sec if interval_sec is None else interval_sec
        loads = 0
        while not stop.is_set():
            on_snapshot(self.load())
            loads += 1
            if stop.wait(interval_sec):
                break
        return loads


def build_dashboard_loader(config: RetrievalConfig = None) -> DashboardLoader:
    config = config or RetrievalConfig.from_dict({})
    return DashboardLoader(build_dashboard_api(config), interval_sec=config.poll_interval_sec)
