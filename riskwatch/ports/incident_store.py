"""
Incident store port interface.

This module defines the protocol for incident persistence.
Timeline entries are owned by append_timeline; save() never
rewrites or removes existing entries.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Protocol
from riskwatch.core.models import GeoPoint, Incident, TimelineEntry

class IncidentStorePort(Protocol):
    """인시던트 저장소 포트 인터페이스"""

    async def find_recent(self, since: datetime) -> List[Incident]:
        """
        기준 시각 이후 생성된 인시던트를 조회합니다.

        Args:
            since: 생성 시각 하한 (포함)

        Returns:
            생성 시각 오름차순 인시던트 목록
        """
        ...

    async def get(self, incident_id: str) -> Optional[Incident]:
        """id로 인시던트를 조회합니다 (없으면 None)."""
        ...

    async def get_many(self, incident_ids: Iterable[str]) -> List[Incident]:
        """여러 인시던트를 조회합니다 (없는 id는 무시)."""
        ...

    async def save(self, incident: Incident) -> None:
        """인시던트 필드를 저장합니다 (타임라인 제외, upsert)."""
        ...

    async def append_timeline(self, incident_id: str, entry: TimelineEntry) -> None:
        """
        타임라인 항목을 추가합니다.

        Raises:
            NotFound: 인시던트가 없는 경우
        """
        ...

    async def find_within_radius(self, point: GeoPoint, radius_m: float,
                                 limit: int = 50) -> List[Incident]:
        """지점 반경 내 인시던트를 최신순으로 조회합니다."""
        ...
