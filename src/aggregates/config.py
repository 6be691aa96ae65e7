"""Configuration loader for the aggregate cache."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from settings import DEFAULT_PATH, load_settings


@dataclass(frozen=True)
class AggregateConfig:
    trends_ttl_sec: float
    unit_performance_ttl_sec: float
    stats_ttl_sec: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregateConfig":
        ttl = data.get("aggregates", {}).get("ttl", {})
        return cls(
            trends_ttl_sec=float(ttl.get("production_trends", 0.5)),
            unit_performance_ttl_sec=float(ttl.get("unit_performance", 30)),
            stats_ttl_sec=float(ttl.get("stats", 0.5)),
        )


ENV_MAP = {
    "aggregates.ttl.production_trends": ("TRENDS_TTL_SEC", float),
    "aggregates.ttl.unit_performance": ("UNIT_PERFORMANCE_TTL_SEC", float),
    "aggregates.ttl.stats": ("STATS_TTL_SEC", float),
}


def load_config(config_path: str | Path = DEFAULT_PATH) -> AggregateConfig:
    return AggregateConfig.from_dict(load_settings(config_path, ENV_MAP))
