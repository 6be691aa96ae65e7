#!/usr/bin/env python3
"""
Entity Registry — read models behind the dashboard aggregates

Implements:
- create_building / create_room / create_cctv / record_trend
- update(kind, id, **changes), delete(kind, id)
- read-only collection queries consumed by the aggregate producers

Every create/update/delete emits an InvalidationSignal on the mutation bus
before returning to the caller.
"""

import dataclasses
import itertools
import logging
import threading
from datetime import date
from typing import Any, Dict, List, Optional

from .models import Building, Cctv, ProductionTrend, Room
from .signals import EntityKind, InvalidationSignal, MutationAction, MutationBus

logger = logging.getLogger(__name__)


class EntityNotFound(KeyError):
    def __init__(self, kind: EntityKind, entity_id: int):
        super().__init__(f"{kind.value} #{entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


class EntityRegistry:
    """
    In-memory building → room → cctv hierarchy plus CCTV traffic history.

    Deleting a parent removes its children (rooms, cctvs, history) in the
    same operation; a single signal is emitted for the deleted parent.
    """

    def __init__(self, bus: Optional[MutationBus] = None):
        self.bus = bus or MutationBus()
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._tables: Dict[EntityKind, Dict[int, Any]] = {kind: {} for kind in EntityKind}

    # ── Mutations ──

    def create_building(self, name: str, latitude: str = None, longitude: str = None) -> Building:
        building = Building(id=next(self._ids), name=name, latitude=latitude, longitude=longitude)
        return self._insert(EntityKind.BUILDING, building)

    def create_room(self, name: str, building_id: int) -> Room:
        self._require(EntityKind.BUILDING, building_id)
        room = Room(id=next(self._ids), name=name, building_id=building_id)
        return self._insert(EntityKind.ROOM, room)

    def create_cctv(self, name: str, room_id: int, ip_address: str = "", rtsp_url: str = "") -> Cctv:
        room = self._require(EntityKind.ROOM, room_id)
        cctv = Cctv(
            id=next(self._ids),
            name=name,
            room_id=room_id,
            building_id=room.building_id,
            ip_address=ip_address,
            rtsp_url=rtsp_url,
        )
        return self._insert(EntityKind.CCTV, cctv)

    def record_trend(self, cctv_id: int, day: date, **metrics) -> ProductionTrend:
        self._require(EntityKind.CCTV, cctv_id)
        trend = ProductionTrend(id=next(self._ids), cctv_id=cctv_id, date=day, **metrics)
        return self._insert(EntityKind.PRODUCTION_TREND, trend)

    def update(self, kind: EntityKind, entity_id: int, **changes) -> Any:
        with self._lock:
            current = self._require(kind, entity_id)
            updated = dataclasses.replace(current, **changes)
            self._tables[kind][entity_id] = updated
        self._emit(kind, MutationAction.UPDATED, entity_id)
        return updated

    def delete(self, kind: EntityKind, entity_id: int) -> None:
        with self._lock:
            self._require(kind, entity_id)
            self._cascade_delete(kind, entity_id)
        self._emit(kind, MutationAction.DELETED, entity_id)

    def _insert(self, kind: EntityKind, entity: Any) -> Any:
        with self._lock:
            self._tables[kind][entity.id] = entity
        self._emit(kind, MutationAction.CREATED, entity.id)
        return entity

    def _cascade_delete(self, kind: EntityKind, entity_id: int) -> None:
        del self._tables[kind][entity_id]

        if kind == EntityKind.BUILDING:
            for room in [r for r in self._tables[EntityKind.ROOM].values() if r.building_id == entity_id]:
                self._cascade_delete(EntityKind.ROOM, room.id)
        elif kind == EntityKind.ROOM:
            for cctv in [c for c in self._tables[EntityKind.CCTV].values() if c.room_id == entity_id]:
                self._cascade_delete(EntityKind.CCTV, cctv.id)
        elif kind == EntityKind.CCTV:
            history = self._tables[EntityKind.PRODUCTION_TREND]
            for trend_id in [t.id for t in history.values() if t.cctv_id == entity_id]:
                del history[trend_id]

    def _require(self, kind: EntityKind, entity_id: int) -> Any:
        entity = self._tables[kind].get(entity_id)
        if entity is None:
            raise EntityNotFound(kind, entity_id)
        return entity

    def _emit(self, kind: EntityKind, action: MutationAction, entity_id: int) -> None:
        logger.info(f"{kind.value} #{entity_id} {action.value}")
        self.bus.emit(InvalidationSignal(entity=kind, action=action, entity_id=entity_id))

    # ── Queries ──

    def building(self, building_id: int) -> Optional[Building]:
        return self._tables[EntityKind.BUILDING].get(building_id)

    def room(self, room_id: int) -> Optional[Room]:
        return self._tables[EntityKind.ROOM].get(room_id)

    def cctv(self, cctv_id: int) -> Optional[Cctv]:
        return self._tables[EntityKind.CCTV].get(cctv_id)

    def buildings(self) -> List[Building]:
        with self._lock:
            return list(self._tables[EntityKind.BUILDING].values())

    def rooms(self, building_id: int = None) -> List[Room]:
        with self._lock:
            rooms = list(self._tables[EntityKind.ROOM].values())
        if building_id is not None:
            rooms = [r for r in rooms if r.building_id == building_id]
        return rooms

    def cctvs(self, room_id: int = None) -> List[Cctv]:
        with self._lock:
            cctvs = list(self._tables[EntityKind.CCTV].values())
        if room_id is not None:
            cctvs = [c for c in cctvs if c.room_id == room_id]
        return cctvs

    def trends(self, cctv_id: int = None) -> List[ProductionTrend]:
        with self._lock:
            trends = list(self._tables[EntityKind.PRODUCTION_TREND].values())
        if cctv_id is not None:
            trends = [t for t in trends if t.cctv_id == cctv_id]
        return trends

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {
                "total_buildings": len(self._tables[EntityKind.BUILDING]),
                "total_rooms": len(self._tables[EntityKind.ROOM]),
                "total_cctvs": len(self._tables[EntityKind.CCTV]),
            }
