"""
Cluster engine for RiskWatch.

Wraps the pure DBSCAN function with the trailing incident window
and a freshness-checked cache entry shared across passes.
"""

import json
import time
from datetime import datetime, timedelta
from typing import List, Optional

from riskwatch.common.clock import ensure_utc, utcnow
from riskwatch.core.clustering import DEFAULT_EPSILON_M, DEFAULT_MIN_POINTS, cluster, points_from_incidents
from riskwatch.core.errors import CollaboratorUnavailable
from riskwatch.core.models import Cluster
from riskwatch.observability import metrics
from riskwatch.observability.logging_setup import get_logger
from riskwatch.ports.cache import CachePort
from riskwatch.ports.incident_store import IncidentStorePort

log = get_logger("riskwatch.cluster_engine")

CACHE_KEY = "clusters:v1"

class ClusterEngine:
    """클러스터 계산 및 캐시 관리"""

    def __init__(self,
                 store: IncidentStorePort,
                 cache: CachePort,
                 *,
                 epsilon_m: float = DEFAULT_EPSILON_M,
                 min_points: int = DEFAULT_MIN_POINTS,
                 window_hours: float = 24.0,
                 freshness_sec: int = 300):
        """
        초기화합니다.

        Args:
            store: 인시던트 저장소
            cache: 공유 TTL 캐시
            epsilon_m: DBSCAN 이웃 반경 (미터)
            min_points: DBSCAN 최소 이웃 수
            window_hours: 클러스터링 대상 생성 시각 구간 (시간)
            freshness_sec: 캐시 유효 시간 (초)
        """
        self.store = store
        self.cache = cache
        self.epsilon_m = epsilon_m
        self.min_points = min_points
        self.window = timedelta(hours=window_hours)
        self.freshness_sec = freshness_sec

    async def _read_cache(self, now: datetime) -> Optional[List[Cluster]]:
        try:
            raw = await self.cache.get(CACHE_KEY)
        except CollaboratorUnavailable as e:
            log.warning(f"클러스터 캐시 조회 실패, 재계산합니다 error:{str(e)}")
            return None
        if raw is None:
            return None

        try:
            data = json.loads(raw)
            computed_at = ensure_utc(datetime.fromisoformat(data["computed_at"]))
            clusters = [Cluster.model_validate(c) for c in data["clusters"]]
        except (ValueError, KeyError, TypeError) as e:
            log.warning(f"클러스터 캐시 항목 손상, 재계산합니다 error:{str(e)}")
            return None

        age = (now - computed_at).total_seconds()
        if 0 <= age < self.freshness_sec:
            return clusters
        return None

    async def _write_cache(self, now: datetime, clusters: List[Cluster]) -> None:
        value = json.dumps({
            "computed_at": now.isoformat(),
            "clusters": [c.model_dump(mode="json") for c in clusters],
        })
        try:
            await self.cache.set_with_ttl(CACHE_KEY, value, self.freshness_sec)
        except CollaboratorUnavailable as e:
            log.warning(f"클러스터 캐시 저장 실패 error:{str(e)}")

    async def get_clusters(self, now: Optional[datetime] = None, force: bool = False) -> List[Cluster]:
        """
        최근 인시던트의 클러스터를 반환합니다.

        Args:
            now: 기준 시각
            force: True이면 캐시를 무시하고 재계산

        Returns:
            클러스터 목록
        """
        now = ensure_utc(now or utcnow())

        if not force:
            cached = await self._read_cache(now)
            if cached is not None:
                metrics.cluster_cache_lookups.labels(result="hit").inc()
                log.debug(f"클러스터 캐시 적중 clusters:{len(cached)}")
                return cached
            metrics.cluster_cache_lookups.labels(result="miss").inc()

        cutoff = now - self.window
        incidents = [i for i in await self.store.find_recent(cutoff) if i.created_at >= cutoff]

        started = time.perf_counter()
        clusters = cluster(points_from_incidents(incidents), self.epsilon_m, self.min_points)
        metrics.clustering_seconds.observe(time.perf_counter() - started)
        metrics.last_cluster_count.set(len(clusters))

        await self._write_cache(now, clusters)
        log.info(f"클러스터 재계산 완료 incidents:{len(incidents)} clusters:{len(clusters)} forced:{force}")
        return clusters
