"""
HTTP endpoints for RiskWatch observability.

This module implements health, readiness, metrics and info endpoints
plus read-only views over clusters, statistics, related incidents
and per-location risk.
"""

from typing import Optional
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response, JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import time
from riskwatch.common.clock import utcnow
from riskwatch.core import risk
from riskwatch.core.errors import CollaboratorUnavailable, InvalidInput
from riskwatch.features.dispatcher import cluster_payload
from riskwatch.observability import metrics as rw_metrics
from riskwatch.observability.logging_setup import get_logger
from riskwatch.orchestrators.monitor import MonitorScheduler
from riskwatch.settings import Settings

log = get_logger("riskwatch.http")

def create_app(settings: Settings, scheduler: Optional[MonitorScheduler] = None) -> FastAPI:
    """FastAPI 애플리케이션을 생성합니다."""
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="RiskWatch incident monitoring service"
    )

    start_time = time.time()

    def _require_scheduler() -> MonitorScheduler:
        if scheduler is None:
            raise HTTPException(status_code=503, detail="Monitor not configured")
        return scheduler

    @app.get("/health")
    async def health():
        """헬스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """레디니스 체크 엔드포인트 (스케줄러 상태 포함)"""
        if scheduler is None:
            return JSONResponse(status_code=503, content={
                "status": "not_ready",
                "service": settings.observability.service_name,
                "timestamp": time.time()
            })
        last = scheduler.last_result
        return JSONResponse({
            "status": "ready",
            "service": settings.observability.service_name,
            "scheduler_state": scheduler.state,
            "passes_run": scheduler.passes_run,
            "last_pass": last.to_dict() if last else None,
            "timestamp": time.time()
        })

    @app.get("/metrics")
    async def metrics():
        """Prometheus 메트릭 엔드포인트"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")

        rw_metrics.uptime_seconds.set(time.time() - start_time)
        return Response(
            generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    @app.get("/info")
    async def info():
        """서비스 정보 엔드포인트"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level,
            "dry_run": settings.dry_run
        })

    @app.get("/clusters")
    async def clusters():
        """현재 클러스터 (캐시 우선)"""
        sched = _require_scheduler()
        try:
            found = await sched.clusters.get_clusters(utcnow())
        except CollaboratorUnavailable as e:
            log.error(f"클러스터 조회 실패 error:{str(e)}")
            raise HTTPException(status_code=503, detail=str(e))
        return JSONResponse(cluster_payload(found))

    @app.get("/statistics")
    async def statistics():
        """유형별 집계와 히트맵"""
        sched = _require_scheduler()
        try:
            stats = await sched.statistics.get(utcnow())
        except CollaboratorUnavailable as e:
            log.error(f"통계 조회 실패 error:{str(e)}")
            raise HTTPException(status_code=503, detail=str(e))
        return JSONResponse(stats.model_dump(mode="json"))

    @app.get("/incidents/{incident_id}/related")
    async def related(incident_id: str, limit: int = Query(default=5, ge=1, le=50)):
        """키워드를 공유하는 관련 인시던트"""
        sched = _require_scheduler()
        try:
            found = await sched.graph.related_incidents(incident_id, limit=limit)
        except CollaboratorUnavailable as e:
            raise HTTPException(status_code=503, detail=str(e))
        return JSONResponse({
            "incidentId": incident_id,
            "related": [
                {
                    "incidentId": r.incident.id,
                    "category": r.incident.category,
                    "severity": r.incident.severity,
                    "sharedKeywords": r.shared_keyword_count,
                }
                for r in found
            ]
        })

    @app.get("/incidents/{incident_id}/risk")
    async def incident_risk(incident_id: str, lat: float = Query(...), lon: float = Query(...)):
        """지정 위치에서의 위험 점수, 등급, 권장 행동"""
        sched = _require_scheduler()
        try:
            incident = await sched.store.get(incident_id)
        except CollaboratorUnavailable as e:
            raise HTTPException(status_code=503, detail=str(e))
        if incident is None:
            raise HTTPException(status_code=404, detail=f"incident not found: {incident_id}")

        try:
            score = risk.score(incident, (lat, lon), utcnow(),
                               max_severity=settings.scoring.max_severity)
        except InvalidInput as e:
            raise HTTPException(status_code=422, detail=e.to_dict())

        return JSONResponse({
            "incidentId": incident_id,
            "riskScore": score,
            "riskLevel": risk.risk_level(score),
            **risk.recommended_actions(score, incident.category)
        })

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "info": "/info",
                "clusters": "/clusters",
                "statistics": "/statistics",
                "related": "/incidents/{id}/related",
                "risk": "/incidents/{id}/risk?lat=&lon="
            }
        })

    return app
