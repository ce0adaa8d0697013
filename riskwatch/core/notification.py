"""
Notification building for RiskWatch.

Pure functions that turn an incident and an observer into a
targeted notification whose urgency follows the risk band.
"""

from datetime import datetime
from typing import Dict

from riskwatch.common.geo import point_in_polygon
from riskwatch.core import risk
from riskwatch.core.models import MAX_SEVERITY, Incident, Notification, Observer, RiskLevel

# 위험 등급 → 긴급도 문구
URGENCY_BY_LEVEL: Dict[str, str] = {
    "Critical": "URGENT",
    "High": "WARNING",
    "Moderate": "ALERT",
    "Low": "ALERT",
    "Minimal": "ADVISORY",
}

LEVEL_ORDER: Dict[str, int] = {
    "Minimal": 0,
    "Low": 1,
    "Moderate": 2,
    "High": 3,
    "Critical": 4,
}

def in_geofence(incident: Incident, observer: Observer) -> bool:
    """인시던트 지점이 관찰자의 지오펜스 폴리곤 내부인지 확인합니다."""
    if len(observer.geofence) < 3:
        return False
    point = (incident.location.longitude, incident.location.latitude)
    return point_in_polygon(point, observer.geofence)

def meets_preference(level: RiskLevel, observer: Observer) -> bool:
    return LEVEL_ORDER[level] >= LEVEL_ORDER[observer.min_risk_level]

def build_notification(incident: Incident, observer: Observer, now: datetime,
                       *, max_severity: float = MAX_SEVERITY) -> Notification:
    """
    관찰자의 등록 위치에서 평가한 위험 등급으로 알림을 생성합니다.

    Args:
        incident: 대상 인시던트
        observer: 알림을 받을 관찰자
        now: 기준 시각
        max_severity: 심각도 척도 최댓값

    Returns:
        알림
    """
    risk_score = risk.score(incident, observer.location, now, max_severity=max_severity)
    level = risk.risk_level(risk_score)
    urgency = URGENCY_BY_LEVEL[level]
    action = risk.recommended_actions(risk_score, incident.category)["specific_action"]

    return Notification(
        observer_id=observer.id,
        urgency=urgency,
        message=f"{urgency}: {incident.category} reported near your location. {action}",
        risk_score=risk_score,
        risk_level=level,
        incident_id=incident.id,
    )
