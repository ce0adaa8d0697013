# riskwatch/settings.py
from __future__ import annotations
from pydantic import BaseModel, Field

class MqttCommon(BaseModel):
    host: str = "localhost"
    port: int = 1883
    username: str | None = None
    password: str | None = None
    tls: bool = False
    client_id: str | None = None
    keepalive: int = 30
    lwt_topic: str = "riskwatch/state"
    lwt_payload: str = "offline"

class LocalMQTT(MqttCommon):
    topic_prefix: str = "riskwatch"
    qos: int = 1
    retain: bool = False

class AnalysisConfig(BaseModel):
    base_url: str = "http://localhost:8000"
    token: str = ""
    timeout_sec: int = 20
    max_retries: int = 2

class VerificationConfig(BaseModel):
    official_url: str = ""                    # 공식 재난 정보 API (비어 있으면 공식 신호 0)
    timeout_sec: int = 10
    max_retries: int = 1
    corroboration_target: int = 3             # 사용자 신호 1에 필요한 주변 제보 수
    corroboration_window_hours: float = 6.0

class MonitorConfig(BaseModel):
    window_minutes: int = 30                  # 재처리 대상 최근 구간
    interval_sec: float = 60.0                # 세밀 패스 주기
    full_interval_sec: float = 300.0          # 전체 패스 주기
    call_timeout_sec: float = 30.0            # 외부 호출별 타임아웃
    concurrency: int = 4                      # 패스 내 동시 처리 수
    run_on_start: bool = True
    geofence_alerts: bool = True
    verification_enabled: bool = False

class ClusteringConfig(BaseModel):
    epsilon_m: float = 1000.0
    min_points: int = 2
    window_hours: float = 24.0
    freshness_sec: int = 300

class ScoringConfig(BaseModel):
    max_severity: float = 10.0

class StatisticsConfig(BaseModel):
    ttl_sec: int = 3600
    heatmap_precision: int = 2

class StorageConfig(BaseModel):
    incidents_path: str = "/data/incidents.db"
    graph_path: str = "/data/graph.db"
    cache_path: str = "/data/cache.db"
    observers_path: str = "/data/observers.db"
    outbox_path: str = "/data/outbox.db"

class Observability(BaseModel):
    http_port: int = 8099
    metrics_enabled: bool = True
    service_name: str = "RiskWatch"
    build_version: str = "0.1.0"
    build_date: str = "2026-10-01"
    log_level: str = "INFO"
    json_logs: bool = False

class Reliability(BaseModel):
    publish_max_retries: int = 10
    backoff_initial_sec: float = 0.5
    backoff_max_sec: float = 30.0

class Settings(BaseModel):
    # 상위 플래그(옵션)
    dry_run: bool = False

    # 하위 섹션 (기본값/팩토리로 누락 방지)
    local_mqtt: LocalMQTT = Field(default_factory=LocalMQTT)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    verification: VerificationConfig = Field(default_factory=VerificationConfig)
    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    statistics: StatisticsConfig = Field(default_factory=StatisticsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    observability: Observability = Field(default_factory=Observability)
    reliability: Reliability = Field(default_factory=Reliability)
