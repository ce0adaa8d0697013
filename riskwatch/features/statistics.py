"""
Statistics service for RiskWatch.

Builds weekly/monthly category aggregates and heatmap buckets
and keeps them in the shared cache under one key.
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError

from riskwatch.common.clock import ensure_utc, utcnow
from riskwatch.core.errors import CollaboratorUnavailable
from riskwatch.core.statistics import Statistics, build_statistics
from riskwatch.observability.logging_setup import get_logger
from riskwatch.ports.cache import CachePort
from riskwatch.ports.incident_store import IncidentStorePort

log = get_logger("riskwatch.statistics")

CACHE_KEY = "statistics:v1"

# 월간 집계 구간
LOOKBACK = timedelta(days=30)

class StatisticsService:
    """통계 생성 및 캐시"""

    def __init__(self, store: IncidentStorePort, cache: CachePort,
                 *, ttl_sec: int = 3600, precision: int = 2):
        self.store = store
        self.cache = cache
        self.ttl_sec = ttl_sec
        self.precision = precision

    async def refresh(self, now: Optional[datetime] = None) -> Statistics:
        """
        통계를 다시 계산하고 캐시에 저장합니다.

        Raises:
            CollaboratorUnavailable: 저장소 또는 캐시 호출 실패
        """
        now = ensure_utc(now or utcnow())
        incidents = await self.store.find_recent(now - LOOKBACK)
        stats = build_statistics(incidents, now, self.precision)
        await self.cache.set_with_ttl(CACHE_KEY, stats.model_dump_json(), self.ttl_sec)
        log.info(f"통계 갱신 완료 incidents:{len(incidents)} buckets:{len(stats.heatmap)}")
        return stats

    async def get(self, now: Optional[datetime] = None) -> Statistics:
        """캐시된 통계를 반환하고, 없으면 새로 계산합니다."""
        try:
            raw = await self.cache.get(CACHE_KEY)
        except CollaboratorUnavailable as e:
            log.warning(f"통계 캐시 조회 실패 error:{str(e)}")
            raw = None

        if raw is not None:
            try:
                return Statistics.model_validate_json(raw)
            except ValidationError as e:
                log.warning(f"통계 캐시 항목 손상 errors:{e.error_count()}")

        return await self.refresh(now)
