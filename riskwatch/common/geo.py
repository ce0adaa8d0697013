"""
Geographic utilities for RiskWatch.

This module provides geographic calculations including
great-circle distance, point-in-polygon testing, centroids
and coordinate validation.
"""

import math
from typing import Iterable, List, Sequence, Tuple

# 지구 반지름 (미터)
EARTH_RADIUS_M = 6371000.0

# 1마일 = 1609.34미터
METERS_PER_MILE = 1609.34

def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 지점 간의 Haversine 거리를 계산합니다 (미터).

    Args:
        lat1: 첫 번째 지점의 위도
        lon1: 첫 번째 지점의 경도
        lat2: 두 번째 지점의 위도
        lon2: 두 번째 지점의 경도

    Returns:
        두 지점 간의 거리 (미터)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2) - math.radians(lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    # 부동소수 오차로 1을 살짝 넘는 경우 방지
    c = 2 * math.asin(math.sqrt(min(1.0, a)))

    return c * EARTH_RADIUS_M

def miles_to_meters(miles: float) -> float:
    return miles * METERS_PER_MILE

def point_in_polygon(point: Tuple[float, float], polygon: Sequence[Tuple[float, float]]) -> bool:
    """
    점이 폴리곤 내부에 있는지 Ray casting 알고리즘으로 확인합니다.

    Args:
        point: 확인할 점 (경도, 위도)
        polygon: 폴리곤의 꼭짓점들 [(경도, 위도), ...]

    Returns:
        점이 폴리곤 내부에 있으면 True, 외부에 있으면 False
    """
    if len(polygon) < 3:
        return False

    x, y = point
    n = len(polygon)
    inside = False
    xinters = x

    p1x, p1y = polygon[0]
    for i in range(1, n + 1):
        p2x, p2y = polygon[i % n]
        if y > min(p1y, p2y):
            if y <= max(p1y, p2y):
                if x <= max(p1x, p2x):
                    if p1y != p2y:
                        xinters = (y - p1y) * (p2x - p1x) / (p2y - p1y) + p1x
                    if p1x == p2x or x <= xinters:
                        inside = not inside
        p1x, p1y = p2x, p2y

    return inside

def centroid(points: Iterable[Tuple[float, float]]) -> Tuple[float, float]:
    """
    (위도, 경도) 점들의 산술 평균을 계산합니다.

    클러스터 반경(수 km)에서는 측지학적으로 정확하지 않아도 충분합니다.
    """
    pts: List[Tuple[float, float]] = list(points)
    if not pts:
        raise ValueError("centroid of an empty point set")
    lat = sum(p[0] for p in pts) / len(pts)
    lon = sum(p[1] for p in pts) / len(pts)
    return (lat, lon)

def is_finite_number(value) -> bool:
    """bool을 제외한 유한한 실수인지 확인합니다."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)

def validate_coordinates(lat: float, lon: float) -> bool:
    """
    좌표가 유효한지 확인합니다.

    Args:
        lat: 위도
        lon: 경도

    Returns:
        좌표가 유효하면 True
    """
    if not (is_finite_number(lat) and is_finite_number(lon)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180
