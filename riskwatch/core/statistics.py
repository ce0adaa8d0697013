"""
Aggregate statistics for RiskWatch.

This module contains pure functions for per-category aggregates
and heatmap buckets over a list of incidents.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Tuple
from pydantic import BaseModel, Field

from riskwatch.common.clock import ensure_utc
from riskwatch.core.models import Incident

class CategoryStats(BaseModel):
    category: str
    count: int
    average_severity: float
    average_impact_radius: float

class HeatmapBucket(BaseModel):
    lat: float
    lng: float
    weight: float

class Statistics(BaseModel):
    generated_at: datetime
    weekly: List[CategoryStats] = Field(default_factory=list)
    monthly: List[CategoryStats] = Field(default_factory=list)
    heatmap: List[HeatmapBucket] = Field(default_factory=list)

def aggregate_by_category(incidents: Iterable[Incident], since: datetime) -> List[CategoryStats]:
    """
    기준 시각 이후 인시던트를 유형별로 집계합니다 (건수 내림차순).
    """
    since = ensure_utc(since)
    buckets: Dict[str, List[Incident]] = {}
    for inc in incidents:
        if inc.created_at >= since:
            buckets.setdefault(inc.category, []).append(inc)

    stats = [
        CategoryStats(
            category=category,
            count=len(items),
            average_severity=sum(i.severity for i in items) / len(items),
            average_impact_radius=sum(i.impact_radius for i in items) / len(items),
        )
        for category, items in buckets.items()
    ]
    stats.sort(key=lambda s: (-s.count, s.category))
    return stats

def heatmap(incidents: Iterable[Incident], precision: int = 2) -> List[HeatmapBucket]:
    """
    좌표를 반올림한 격자별로 가중치(건수 x 평균 심각도)를 계산합니다.
    """
    cells: Dict[Tuple[float, float], List[float]] = {}
    for inc in incidents:
        key = (round(inc.location.latitude, precision), round(inc.location.longitude, precision))
        cells.setdefault(key, []).append(inc.severity)

    out = []
    for (lat, lng), severities in sorted(cells.items()):
        avg = sum(severities) / len(severities)
        out.append(HeatmapBucket(lat=lat, lng=lng, weight=len(severities) * avg))
    return out

def build_statistics(incidents: List[Incident], now: datetime, precision: int = 2) -> Statistics:
    now = ensure_utc(now)
    return Statistics(
        generated_at=now,
        weekly=aggregate_by_category(incidents, now - timedelta(days=7)),
        monthly=aggregate_by_category(incidents, now - timedelta(days=30)),
        heatmap=heatmap(incidents, precision),
    )
