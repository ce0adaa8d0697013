"""
Risk scoring for RiskWatch.

This module contains pure functions that combine severity, distance
and time decay into a 0-100 risk score for one observer location,
plus the risk banding used for notification wording.
"""

import math
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

from riskwatch.common.clock import ensure_utc
from riskwatch.common.geo import haversine_m, is_finite_number, miles_to_meters, validate_coordinates
from riskwatch.core.errors import InvalidInput
from riskwatch.core.models import MAX_SEVERITY, GeoPoint, RiskLevel

SEVERITY_WEIGHT = 0.5
DISTANCE_WEIGHT = 0.3
TIME_WEIGHT = 0.2

# 위험도가 0으로 감소하는 시간
DECAY_HOURS = 24.0

# 위험 등급 (하한, 등급) 높은 순
RISK_BANDS: Tuple[Tuple[int, RiskLevel], ...] = (
    (80, "Critical"),
    (60, "High"),
    (40, "Moderate"),
    (20, "Low"),
)

GENERAL_ACTIONS: Dict[str, str] = {
    "Critical": "Evacuate immediately. Follow official instructions.",
    "High": "Prepare for possible evacuation. Stay alert for updates.",
    "Moderate": "Be prepared to act. Monitor official channels for updates.",
    "Low": "Stay informed. Review your emergency plan.",
    "Minimal": "Be aware of the situation. No immediate action required.",
}

SPECIFIC_ACTIONS: Dict[str, Dict[str, str]] = {
    "Earthquake": {
        "Critical": "Drop, cover, and hold on. Move to open areas if safe to do so.",
        "High": "Secure heavy objects. Identify safe spots in each room.",
        "Moderate": "Practice earthquake drills. Check emergency supplies.",
    },
    "Flood": {
        "Critical": "Move to higher ground immediately. Avoid walking or driving through flood waters.",
        "High": "Prepare to move valuables to upper floors. Charge devices and prepare go-bag.",
        "Moderate": "Clear drains and gutters. Move vehicles to higher ground.",
    },
    "Wildfire": {
        "Critical": "Evacuate immediately if ordered. Close all windows and doors.",
        "High": "Pack your go-bag. Clear area around house of flammable materials.",
        "Moderate": "Review evacuation plans. Ensure outdoor water sources are accessible.",
    },
}

ObserverLocation = Union[GeoPoint, Tuple[float, float], Dict[str, Any]]

def _require_finite(name: str, value: Any) -> float:
    if not is_finite_number(value):
        raise InvalidInput(f"{name} must be a finite number", {"field": name, "value": repr(value)})
    return float(value)

def _point(name: str, value: Any) -> Tuple[float, float]:
    """GeoPoint / (lat, lon) / {"latitude", "longitude"} 를 (위도, 경도)로 변환합니다."""
    if value is None:
        raise InvalidInput(f"{name} is required", {"field": name})
    if isinstance(value, dict):
        lat, lon = value.get("latitude"), value.get("longitude")
    elif isinstance(value, (tuple, list)) and len(value) == 2:
        lat, lon = value
    else:
        lat, lon = getattr(value, "latitude", None), getattr(value, "longitude", None)
    lat = _require_finite(f"{name}.latitude", lat)
    lon = _require_finite(f"{name}.longitude", lon)
    if not validate_coordinates(lat, lon):
        raise InvalidInput(f"{name} is out of range", {"field": name, "latitude": lat, "longitude": lon})
    return (lat, lon)

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

def severity_term(severity: float, max_severity: float = MAX_SEVERITY) -> float:
    return max(0.0, min(1.0, severity / max_severity))

def distance_term(distance_m: float, impact_radius_miles: float) -> float:
    """영향 반경 밖에서는 정확히 0, 진앙에서 1."""
    return max(0.0, min(1.0, 1.0 - distance_m / miles_to_meters(impact_radius_miles)))

def time_term(hours_since_creation: float) -> float:
    """생성 시점 1, 24시간 이후 정확히 0."""
    return max(0.0, min(1.0, 1.0 - hours_since_creation / DECAY_HOURS))

def score(incident: Any, observer: ObserverLocation, now: datetime,
          *, max_severity: float = MAX_SEVERITY) -> int:
    """
    인시던트와 관찰자 위치로부터 위험 점수를 계산합니다.

    Args:
        incident: severity, impact_radius, created_at, location을 가진 인시던트
        observer: 관찰자 위치
        now: 기준 시각 (명시적으로 전달하면 결정적)
        max_severity: 심각도 척도 최댓값

    Returns:
        0-100 정수 위험 점수

    Raises:
        InvalidInput: 필수 필드가 없거나 유한하지 않은 경우
    """
    if incident is None:
        raise InvalidInput("incident is required", {"field": "incident"})

    severity = _require_finite("severity", getattr(incident, "severity", None))
    impact_radius = _require_finite("impact_radius", getattr(incident, "impact_radius", None))
    if impact_radius <= 0:
        raise InvalidInput("impact_radius must be positive", {"field": "impact_radius", "value": impact_radius})
    created_at = getattr(incident, "created_at", None)
    if not isinstance(created_at, datetime):
        raise InvalidInput("created_at is required", {"field": "created_at"})
    if not isinstance(now, datetime):
        raise InvalidInput("now is required", {"field": "now"})
    if not is_finite_number(max_severity) or max_severity <= 0:
        raise InvalidInput("max_severity must be positive", {"field": "max_severity"})

    inc_lat, inc_lon = _point("incident.location", getattr(incident, "location", None))
    obs_lat, obs_lon = _point("observer", observer)

    distance = haversine_m(obs_lat, obs_lon, inc_lat, inc_lon)
    hours = (ensure_utc(now) - ensure_utc(created_at)).total_seconds() / 3600.0

    total = (severity_term(severity, max_severity) * SEVERITY_WEIGHT
             + distance_term(distance, impact_radius) * DISTANCE_WEIGHT
             + time_term(hours) * TIME_WEIGHT)

    return max(0, min(100, round_half_up(total * 100)))

def risk_level(risk_score: int) -> RiskLevel:
    """위험 점수를 등급으로 변환합니다."""
    for floor, level in RISK_BANDS:
        if risk_score >= floor:
            return level
    return "Minimal"

def recommended_actions(risk_score: int, category: Optional[str]) -> Dict[str, str]:
    """
    위험 등급과 재해 유형별 권장 행동을 반환합니다.

    유형별 문구가 없으면 일반 문구를 사용합니다.
    """
    level = risk_level(risk_score)
    general = GENERAL_ACTIONS[level]
    specific = SPECIFIC_ACTIONS.get(category or "", {}).get(level, general)
    return {"general_action": general, "specific_action": specific}
