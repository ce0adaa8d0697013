"""
Relationship graph for RiskWatch.

Links incidents through shared keyword and place nodes and
answers "related incidents" queries over those links.
"""

import math
from typing import Dict, Iterable, List, Optional

from riskwatch.core.errors import InvalidInput, NotFound
from riskwatch.core.models import GeoPoint, Incident, RelatedIncident
from riskwatch.observability.logging_setup import get_logger
from riskwatch.ports.graph import GraphStorePort
from riskwatch.ports.incident_store import IncidentStorePort

log = get_logger("riskwatch.graph")

DEFAULT_RELATED_LIMIT = 5

def normalize_keywords(keywords: Optional[Iterable[str]]) -> List[str]:
    """
    키워드를 정규화합니다 (공백 제거, 대소문자 무시, 중복 제거).

    Args:
        keywords: 원본 키워드

    Returns:
        처음 등장한 순서를 유지한 키워드 목록
    """
    out: List[str] = []
    for kw in keywords or []:
        if not isinstance(kw, str):
            continue
        norm = " ".join(kw.split()).casefold()
        if norm and norm not in out:
            out.append(norm)
    return out

def normalize_place(place_name: Optional[str]) -> Optional[str]:
    if not place_name or not isinstance(place_name, str):
        return None
    norm = " ".join(place_name.split())
    return norm or None

class RelationshipGraph:
    """인시던트 관계 그래프"""

    def __init__(self, graph_store: GraphStorePort, incident_store: IncidentStorePort):
        self.graph = graph_store
        self.incidents = incident_store

    async def upsert_incident_metadata(self, incident_id: str,
                                       keywords: Optional[Iterable[str]],
                                       place_name: Optional[str] = None) -> Dict[str, int]:
        """
        인시던트의 키워드/장소 간선을 병합합니다 (멱등).

        Args:
            incident_id: 인시던트 id
            keywords: 키워드 목록
            place_name: 장소명 (비어 있으면 장소 간선 없음)

        Returns:
            새로 생성된 간선 수 {"keyword_edges", "place_edges"}

        Raises:
            NotFound: 인시던트가 없는 경우
        """
        if await self.incidents.get(incident_id) is None:
            raise NotFound("incident", incident_id)

        kws = normalize_keywords(keywords)
        place = normalize_place(place_name)

        keyword_edges = await self.graph.merge_keyword_edges(incident_id, kws) if kws else 0
        place_edges = 0
        if place is not None and await self.graph.merge_place_edge(incident_id, place):
            place_edges = 1

        log.debug(f"관계 그래프 병합 incident_id:{incident_id} keywords:{len(kws)} "
                  f"new_keyword_edges:{keyword_edges} new_place_edges:{place_edges}")
        return {"keyword_edges": keyword_edges, "place_edges": place_edges}

    async def related_incidents(self, incident_id: str,
                                limit: int = DEFAULT_RELATED_LIMIT) -> List[RelatedIncident]:
        """
        키워드를 공유하는 인시던트를 반환합니다.

        공유 키워드 수 내림차순, 같으면 id 오름차순으로 정렬하며
        자기 자신은 포함하지 않습니다.
        """
        if limit <= 0:
            return []

        ranked = sorted(
            ((other, count) for other, count in await self.graph.keyword_neighbors(incident_id)
             if other != incident_id and count > 0),
            key=lambda pair: (-pair[1], pair[0])
        )
        if not ranked:
            return []

        loaded = {i.id: i for i in await self.incidents.get_many([other for other, _ in ranked])}
        related: List[RelatedIncident] = []
        for other, count in ranked:
            if other not in loaded:
                continue
            related.append(RelatedIncident(incident=loaded[other], shared_keyword_count=count))
            if len(related) >= limit:
                break
        return related

    async def incidents_at_place(self, incident_id: str) -> List[Incident]:
        """같은 장소 노드를 공유하는 인시던트 (id 순)."""
        others = sorted(o for o in await self.graph.place_neighbors(incident_id) if o != incident_id)
        return await self.incidents.get_many(others)

    async def incidents_near(self, point: GeoPoint, radius_m: float, limit: int = 50) -> List[Incident]:
        if not isinstance(radius_m, (int, float)) or not math.isfinite(radius_m) or radius_m <= 0:
            raise InvalidInput("radius must be a positive finite distance", {"radius_m": radius_m})
        return await self.incidents.find_within_radius(point, radius_m, limit)

    async def remove_incident(self, incident_id: str) -> int:
        """인시던트의 간선을 모두 제거합니다."""
        removed = await self.graph.delete_incident(incident_id)
        log.info(f"관계 그래프 간선 삭제 incident_id:{incident_id} edges:{removed}")
        return removed
