"""
In-memory adapters for RiskWatch.

These adapters implement the ports without external services.
They back the dry-run mode and the unit tests.
"""

import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from riskwatch.common.clock import ensure_utc
from riskwatch.common.geo import haversine_m
from riskwatch.core.errors import CollaboratorUnavailable, NotFound
from riskwatch.core.models import GeoPoint, Incident, Observer, TimelineEntry
from riskwatch.observability.logging_setup import get_logger

log = get_logger("riskwatch.memory")

class InMemoryIncidentStore:
    """메모리 기반 인시던트 저장소"""

    def __init__(self, incidents: Optional[Iterable[Incident]] = None):
        self._items: Dict[str, Incident] = {}
        for inc in incidents or []:
            self._items[inc.id] = inc.model_copy(deep=True)

    async def find_recent(self, since: datetime) -> List[Incident]:
        since = ensure_utc(since)
        found = [i for i in self._items.values() if i.created_at >= since]
        found.sort(key=lambda i: (i.created_at, i.id))
        return [i.model_copy(deep=True) for i in found]

    async def get(self, incident_id: str) -> Optional[Incident]:
        inc = self._items.get(incident_id)
        return inc.model_copy(deep=True) if inc else None

    async def get_many(self, incident_ids: Iterable[str]) -> List[Incident]:
        ids = list(dict.fromkeys(incident_ids))
        return [self._items[i].model_copy(deep=True) for i in ids if i in self._items]

    async def save(self, incident: Incident) -> None:
        """저장 시 기존 타임라인과 생성 시각은 유지됩니다."""
        existing = self._items.get(incident.id)
        stored = incident.model_copy(deep=True)
        if existing is not None:
            stored.timeline = list(existing.timeline)
            stored.created_at = existing.created_at
        else:
            stored.timeline = []
        self._items[incident.id] = stored

    async def append_timeline(self, incident_id: str, entry: TimelineEntry) -> None:
        inc = self._items.get(incident_id)
        if inc is None:
            raise NotFound("incident", incident_id)
        inc.timeline.append(entry.model_copy())

    async def find_within_radius(self, point: GeoPoint, radius_m: float,
                                 limit: int = 50) -> List[Incident]:
        found = [
            i for i in self._items.values()
            if haversine_m(point.latitude, point.longitude,
                           i.location.latitude, i.location.longitude) <= radius_m
        ]
        found.sort(key=lambda i: i.created_at, reverse=True)
        return [i.model_copy(deep=True) for i in found[:limit]]

class InMemoryGraphStore:
    """메모리 기반 관계 그래프 저장소 (간선 집합)"""

    def __init__(self):
        self.edges: Set[Tuple[str, str, str]] = set()

    def _merge(self, incident_id: str, kind: str, names: Iterable[str]) -> int:
        created = 0
        for name in names:
            edge = (incident_id, kind, name)
            if edge not in self.edges:
                self.edges.add(edge)
                created += 1
        return created

    async def merge_keyword_edges(self, incident_id: str, keywords: Iterable[str]) -> int:
        return self._merge(incident_id, "keyword", keywords)

    async def merge_place_edge(self, incident_id: str, place_name: str) -> bool:
        return self._merge(incident_id, "place", [place_name]) > 0

    def _neighbors(self, incident_id: str, kind: str) -> Dict[str, int]:
        mine = {name for (iid, k, name) in self.edges if iid == incident_id and k == kind}
        counts: Dict[str, int] = {}
        for iid, k, name in self.edges:
            if k == kind and iid != incident_id and name in mine:
                counts[iid] = counts.get(iid, 0) + 1
        return counts

    async def keyword_neighbors(self, incident_id: str) -> List[Tuple[str, int]]:
        return list(self._neighbors(incident_id, "keyword").items())

    async def place_neighbors(self, incident_id: str) -> List[str]:
        return list(self._neighbors(incident_id, "place"))

    async def edges_for(self, incident_id: str) -> List[Tuple[str, str]]:
        return sorted((k, name) for (iid, k, name) in self.edges if iid == incident_id)

    async def delete_incident(self, incident_id: str) -> int:
        doomed = {e for e in self.edges if e[0] == incident_id}
        self.edges -= doomed
        return len(doomed)

class InMemoryCache:
    """메모리 기반 TTL 캐시"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            self._data.pop(key, None)
            return None
        return value

    async def set_with_ttl(self, key: str, value: str, ttl_sec: int) -> None:
        self._data[key] = (value, self._clock() + ttl_sec)

class InMemoryTransport:
    """
    전송된 이벤트를 기록하는 메모리 전송 어댑터.

    fail=True이면 모든 전송이 CollaboratorUnavailable로 실패합니다.
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.broadcasts: List[Tuple[str, Dict[str, Any]]] = []
        self.direct: List[Tuple[str, Dict[str, Any]]] = []

    async def broadcast(self, topic: str, payload: Dict[str, Any]) -> None:
        if self.fail:
            raise CollaboratorUnavailable("transport")
        self.broadcasts.append((topic, payload))
        log.debug(f"브로드캐스트 기록 topic:{topic}")

    async def send_to_observer(self, observer_id: str, payload: Dict[str, Any]) -> None:
        if self.fail:
            raise CollaboratorUnavailable("transport")
        self.direct.append((observer_id, payload))

    def topics(self) -> List[str]:
        return [t for t, _ in self.broadcasts]

class InMemoryObserverRegistry:
    """메모리 기반 관찰자 등록소"""

    def __init__(self, observers: Optional[Iterable[Observer]] = None):
        self._observers: Dict[str, Observer] = {o.id: o for o in observers or []}

    async def list_geofenced(self) -> List[Observer]:
        return [self._observers[k] for k in sorted(self._observers)
                if len(self._observers[k].geofence) >= 3]

    async def register(self, observer: Observer) -> None:
        self._observers[observer.id] = observer

    async def remove(self, observer_id: str) -> bool:
        return self._observers.pop(observer_id, None) is not None
