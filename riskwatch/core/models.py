"""
Core domain models for RiskWatch.

This module defines the core domain models using Pydantic v2
for type safety and validation.
"""

import math
from datetime import datetime
from typing import List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

from riskwatch.common.clock import ensure_utc, utcnow

# 심각도 척도 (1-10으로 통일)
MIN_SEVERITY = 1.0
MAX_SEVERITY = 10.0

# 재해 유형
KNOWN_CATEGORIES = (
    "Fire", "Flood", "Earthquake", "Hurricane", "Tornado", "Landslide",
    "Tsunami", "Volcanic Eruption", "Wildfire", "Blizzard", "Drought",
    "Heatwave", "Chemical Spill", "Nuclear Incident", "Terrorist Attack",
    "Civil Unrest", "Pandemic", "Infrastructure Failure",
    "Transportation Accident", "Other",
)
UNKNOWN_CATEGORY = "Unknown"

_CATEGORY_LOOKUP = {c.casefold(): c for c in KNOWN_CATEGORIES}

RiskLevel = Literal["Critical", "High", "Moderate", "Low", "Minimal"]
IncidentStatus = Literal["active", "resolved", "archived"]
VerificationStatus = Literal["Pending", "Verified", "Unverified"]

def normalize_category(value: Optional[str]) -> str:
    """알려진 재해 유형으로 정규화하고, 그 외에는 Unknown을 반환합니다."""
    if not value or not isinstance(value, str):
        return UNKNOWN_CATEGORY
    return _CATEGORY_LOOKUP.get(value.strip().casefold(), UNKNOWN_CATEGORY)

def clamp_severity(value: float) -> float:
    return max(MIN_SEVERITY, min(MAX_SEVERITY, float(value)))

class GeoPoint(BaseModel):
    """지리 좌표 (WGS84)"""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

class IncidentMetadata(BaseModel):
    """분석으로부터 파생된 메타데이터"""
    keywords: List[str] = Field(default_factory=list)
    place_name: Optional[str] = None
    region_name: Optional[str] = None
    incident_name: Optional[str] = None

class TimelineEntry(BaseModel):
    """인시던트 타임라인 항목 (추가 전용)"""
    update: str
    timestamp: datetime = Field(default_factory=utcnow)
    severity: Optional[float] = None
    impact_radius: Optional[float] = None
    verification_score: Optional[float] = None

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

class Incident(BaseModel):
    """인시던트 모델"""
    id: str = Field(min_length=1)
    category: str = UNKNOWN_CATEGORY
    description: str = ""
    location: GeoPoint
    severity: float = Field(ge=MIN_SEVERITY, le=MAX_SEVERITY)
    impact_radius: float = Field(gt=0, allow_inf_nan=False)   # 마일
    created_at: datetime
    updated_at: Optional[datetime] = None
    summary: Optional[str] = None
    metadata: IncidentMetadata = Field(default_factory=IncidentMetadata)
    needs_review: bool = False
    verification_score: float = Field(default=0.0, ge=0.0, le=1.0)
    verification_status: VerificationStatus = "Pending"
    status: IncidentStatus = "active"
    timeline: List[TimelineEntry] = Field(default_factory=list)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v):
        return normalize_category(v)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

class IncidentAnalysis(BaseModel):
    """외부 분석 서비스의 결과"""
    model_config = ConfigDict(populate_by_name=True)

    category: str = UNKNOWN_CATEGORY
    severity: float
    impact_radius: float = Field(alias="impactRadius", gt=0, allow_inf_nan=False)
    summary: str = ""
    keywords: List[str] = Field(default_factory=list)
    place_name: Optional[str] = Field(default=None, alias="placeName")
    region_name: Optional[str] = Field(default=None, alias="regionName")
    incident_name: Optional[str] = Field(default=None, alias="incidentName")
    needs_review: bool = Field(default=False, alias="needsReview")

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v):
        return normalize_category(v)

    @field_validator("severity")
    @classmethod
    def _severity(cls, v: float) -> float:
        # 분석 결과는 1-10 척도로 강제
        if not math.isfinite(v):
            raise ValueError("severity must be finite")
        return clamp_severity(v)

class Cluster(BaseModel):
    """밀도 기반 클러스터 (매 패스마다 재계산)"""
    centroid: GeoPoint
    incident_ids: List[str]
    size: int

class RelatedIncident(BaseModel):
    """키워드를 공유하는 관련 인시던트"""
    incident: Incident
    shared_keyword_count: int

class Observer(BaseModel):
    """지오펜스를 등록한 관찰자"""
    id: str = Field(min_length=1)
    location: GeoPoint
    # (경도, 위도) 꼭짓점 목록
    geofence: List[Tuple[float, float]] = Field(default_factory=list)
    min_risk_level: RiskLevel = "Minimal"

class Notification(BaseModel):
    """관찰자 대상 알림"""
    observer_id: str
    urgency: str
    message: str
    risk_score: int
    risk_level: RiskLevel
    incident_id: str

class VerificationSignals(BaseModel):
    """검증 신호 (각 0-1)"""
    user: float = Field(default=0.0, ge=0.0, le=1.0)
    official: float = Field(default=0.0, ge=0.0, le=1.0)
    ai: float = Field(default=0.0, ge=0.0, le=1.0)
