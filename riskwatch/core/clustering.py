"""
Density-based spatial clustering for RiskWatch.

This module implements DBSCAN over incident coordinates using
great-circle distance in meters. Noise points are excluded from
the result and the output does not depend on input order.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from riskwatch.common.geo import centroid, haversine_m, validate_coordinates
from riskwatch.core.errors import InvalidInput
from riskwatch.core.models import Cluster, GeoPoint
from riskwatch.observability.logging_setup import get_logger

log = get_logger("riskwatch.clustering")

DEFAULT_EPSILON_M = 1000.0
DEFAULT_MIN_POINTS = 2

# DBSCAN 라벨
_UNVISITED = -2
_NOISE = -1

@dataclass(frozen=True)
class ClusterPoint:
    """클러스터링 입력 점"""
    id: str
    latitude: float
    longitude: float

def _sanitize(points: Sequence[ClusterPoint]) -> List[ClusterPoint]:
    """유효하지 않은 점은 경고와 함께 제외하고 id 순으로 정렬합니다."""
    valid: Dict[str, ClusterPoint] = {}
    for p in points:
        if not validate_coordinates(p.latitude, p.longitude):
            log.warning("유효하지 않은 좌표의 점 제외", point_id=p.id,
                        latitude=p.latitude, longitude=p.longitude)
            continue
        if p.id in valid:
            log.warning("중복된 점 id 제외", point_id=p.id)
            continue
        valid[p.id] = p
    return [valid[k] for k in sorted(valid)]

def _region_query(points: List[ClusterPoint], idx: int, epsilon_m: float) -> List[int]:
    origin = points[idx]
    return [
        j for j, other in enumerate(points)
        if haversine_m(origin.latitude, origin.longitude, other.latitude, other.longitude) <= epsilon_m
    ]

def cluster(points: Sequence[ClusterPoint],
            epsilon_m: float = DEFAULT_EPSILON_M,
            min_points: int = DEFAULT_MIN_POINTS) -> List[Cluster]:
    """
    DBSCAN으로 점들을 클러스터링합니다.

    Args:
        points: 클러스터링할 점들
        epsilon_m: 이웃 반경 (미터)
        min_points: 코어 점이 되기 위한 최소 이웃 수 (자기 자신 포함)

    Returns:
        클러스터 목록 (노이즈 제외, 가장 작은 멤버 id 순)

    Raises:
        InvalidInput: epsilon 또는 min_points가 잘못된 경우
    """
    if not isinstance(epsilon_m, (int, float)) or not epsilon_m > 0 or epsilon_m == float("inf"):
        raise InvalidInput("epsilon must be a positive finite distance", {"epsilon_m": epsilon_m})
    if isinstance(min_points, bool) or not isinstance(min_points, int) or min_points < 1:
        raise InvalidInput("min_points must be a positive integer", {"min_points": min_points})

    pts = _sanitize(points)
    if not pts:
        return []

    labels = [_UNVISITED] * len(pts)
    cluster_id = 0

    for i in range(len(pts)):
        if labels[i] != _UNVISITED:
            continue

        neighbors = _region_query(pts, i, epsilon_m)
        if len(neighbors) < min_points:
            labels[i] = _NOISE
            continue

        labels[i] = cluster_id
        seeds = [n for n in neighbors if n != i]
        while seeds:
            j = seeds.pop(0)
            if labels[j] == _NOISE:
                # 경계점으로 편입
                labels[j] = cluster_id
            if labels[j] != _UNVISITED:
                continue
            labels[j] = cluster_id
            j_neighbors = _region_query(pts, j, epsilon_m)
            if len(j_neighbors) >= min_points:
                seeds.extend(n for n in j_neighbors if labels[n] in (_UNVISITED, _NOISE))

        cluster_id += 1

    members: Dict[int, List[ClusterPoint]] = {}
    for p, label in zip(pts, labels):
        if label >= 0:
            members.setdefault(label, []).append(p)

    result: List[Cluster] = []
    for group in members.values():
        lat, lon = centroid((p.latitude, p.longitude) for p in group)
        ids = sorted(p.id for p in group)
        result.append(Cluster(centroid=GeoPoint(latitude=lat, longitude=lon),
                              incident_ids=ids, size=len(ids)))

    result.sort(key=lambda c: c.incident_ids[0])
    log.debug("클러스터링 완료", points=len(pts), clusters=len(result))
    return result

def points_from_incidents(incidents) -> List[ClusterPoint]:
    """인시던트 목록을 클러스터링 입력으로 변환합니다."""
    out: List[ClusterPoint] = []
    for inc in incidents:
        loc: Optional[GeoPoint] = getattr(inc, "location", None)
        if loc is None:
            log.warning("위치가 없는 인시던트 제외", incident_id=getattr(inc, "id", None))
            continue
        out.append(ClusterPoint(id=inc.id, latitude=loc.latitude, longitude=loc.longitude))
    return out
