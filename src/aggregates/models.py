"""Facility entities the aggregates are computed from."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Building:
    id: int
    name: str
    latitude: Optional[str] = None
    longitude: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Room:
    id: int
    name: str
    building_id: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Cctv:
    id: int
    name: str
    room_id: int
    building_id: int
    ip_address: str = ""
    rtsp_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProductionTrend:
    """One day of recorded traffic history for a CCTV unit."""
    id: int
    cctv_id: int
    date: date
    production: Optional[float] = None
    target: Optional[float] = None
    traffic_volume: Optional[float] = None
    average_speed: Optional[float] = None
    incidents: Optional[int] = None
    congestion_index: Optional[float] = None
    signal_changes: Optional[int] = None
    green_wave_efficiency: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["date"] = self.date.isoformat()
        return payload
