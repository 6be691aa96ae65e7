"""Configuration loader for the dashboard retrieval layer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple

from settings import DEFAULT_PATH, load_settings


@dataclass(frozen=True)
class StreamRetryConfig:
    timeouts_ms: Tuple[int, ...]
    delay_ms: int


@dataclass(frozen=True)
class RetrievalConfig:
    api_base_url: str
    namespace: str
    freshness_sec: float
    request_timeout_sec: float
    db_path: Path
    refresh_workers: int
    poll_interval_sec: float
    stream: StreamRetryConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetrievalConfig":
        section = data.get("retrieval", {})
        stream_data = section.get("stream", {})
        return cls(
            api_base_url=section.get("api_base_url", "http://127.0.0.1:8000/api"),
            namespace=section.get("namespace", "dashboard_cache_v2_"),
            freshness_sec=float(section.get("freshness_sec", 300)),
            request_timeout_sec=float(section.get("request_timeout_sec", 10)),
            db_path=Path(os.path.expanduser(
                section.get("db_path", "~/.cache/facility-dashboard/retrieval.db")
            )),
            refresh_workers=int(section.get("refresh_workers", 2)),
            poll_interval_sec=float(section.get("poll_interval_sec", 30)),
            stream=StreamRetryConfig(
                timeouts_ms=tuple(int(t) for t in stream_data.get("timeouts_ms", [12000, 15000, 20000])),
                delay_ms=int(stream_data.get("delay_ms", 750)),
            ),
        )


ENV_MAP = {
    "retrieval.api_base_url": ("DASHBOARD_API_BASE_URL", str),
    "retrieval.namespace": ("DASHBOARD_CACHE_NAMESPACE", str),
    "retrieval.freshness_sec": ("DASHBOARD_CACHE_FRESHNESS_SEC", float),
    "retrieval.request_timeout_sec": ("DASHBOARD_REQUEST_TIMEOUT_SEC", float),
    "retrieval.db_path": ("DASHBOARD_CACHE_DB", str),
    "retrieval.refresh_workers": ("DASHBOARD_REFRESH_WORKERS", int),
    "retrieval.poll_interval_sec": ("DASHBOARD_POLL_INTERVAL_SEC", float),
    "retrieval.stream.delay_ms": ("STREAM_RETRY_DELAY_MS", int),
}


def load_config(config_path: str | Path = DEFAULT_PATH) -> RetrievalConfig:
    return RetrievalConfig.from_dict(load_settings(config_path, ENV_MAP))
