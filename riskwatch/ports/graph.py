"""
Relationship graph store port interface.

This module defines typed queries over keyword and place nodes.
All merge operations must be idempotent under concurrent writers.
"""

from typing import Iterable, List, Protocol, Tuple

class GraphStorePort(Protocol):
    """관계 그래프 저장소 포트 인터페이스"""

    async def merge_keyword_edges(self, incident_id: str, keywords: Iterable[str]) -> int:
        """
        키워드 노드와 인시던트-키워드 간선을 병합합니다.

        Returns:
            새로 생성된 간선 수
        """
        ...

    async def merge_place_edge(self, incident_id: str, place_name: str) -> bool:
        """장소 노드와 간선을 병합합니다 (새로 생성되면 True)."""
        ...

    async def keyword_neighbors(self, incident_id: str) -> List[Tuple[str, int]]:
        """키워드를 공유하는 다른 인시던트와 공유 키워드 수."""
        ...

    async def place_neighbors(self, incident_id: str) -> List[str]:
        """장소를 공유하는 다른 인시던트 id."""
        ...

    async def edges_for(self, incident_id: str) -> List[Tuple[str, str]]:
        """인시던트의 간선 목록 [(kind, name), ...] (kind: keyword|place)."""
        ...

    async def delete_incident(self, incident_id: str) -> int:
        """인시던트의 간선을 모두 삭제합니다 (삭제된 간선 수)."""
        ...
