"""
Monitor scheduler for RiskWatch.

This module implements the single-flight background loop that
re-evaluates recent incidents, refreshes the relationship graph,
recomputes clusters and statistics, and fans out updates.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from riskwatch.common.clock import ensure_utc, utcnow
from riskwatch.core import verification
from riskwatch.core.errors import CollaboratorUnavailable
from riskwatch.core.models import Incident, IncidentAnalysis, IncidentMetadata, TimelineEntry, UNKNOWN_CATEGORY
from riskwatch.features.cluster_engine import ClusterEngine
from riskwatch.features.dispatcher import NotificationDispatcher
from riskwatch.features.relationship_graph import RelationshipGraph, normalize_keywords, normalize_place
from riskwatch.features.statistics import StatisticsService
from riskwatch.observability import metrics
from riskwatch.observability.logging_setup import get_logger, with_context
from riskwatch.ports.analysis import AnalysisPort
from riskwatch.ports.incident_store import IncidentStorePort
from riskwatch.ports.verification import VerificationPort
from riskwatch.settings import MonitorConfig

log = get_logger("riskwatch.monitor")

T = TypeVar("T")

IDLE = "idle"
RUNNING = "running"

REPROCESS_NOTE = "Incident reprocessed"

@dataclass
class PassResult:
    """한 번의 모니터 패스 결과"""
    kind: str
    started_at: Optional[datetime] = None
    skipped: bool = False
    aborted: bool = False
    window_size: int = 0
    processed: int = 0
    failed: int = 0
    clusters: Optional[int] = None
    statistics_refreshed: bool = False
    errors: Dict[str, str] = field(default_factory=dict)
    duration_sec: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "skipped": self.skipped,
            "aborted": self.aborted,
            "window_size": self.window_size,
            "processed": self.processed,
            "failed": self.failed,
            "clusters": self.clusters,
            "statistics_refreshed": self.statistics_refreshed,
            "errors": dict(self.errors),
            "duration_sec": round(self.duration_sec, 3),
        }

def apply_analysis(incident: Incident, analysis: IncidentAnalysis, now: datetime) -> Incident:
    """
    분석 결과를 인시던트에 반영한 사본을 반환합니다.

    분석이 유형을 판별하지 못하면 기존 유형을 유지하고,
    비어 있는 장소/지역/요약은 기존 값을 유지합니다.
    """
    category = analysis.category
    if category == UNKNOWN_CATEGORY:
        category = incident.category

    metadata = IncidentMetadata(
        keywords=normalize_keywords(analysis.keywords),
        place_name=normalize_place(analysis.place_name) or incident.metadata.place_name,
        region_name=analysis.region_name or incident.metadata.region_name,
        incident_name=analysis.incident_name or incident.metadata.incident_name,
    )

    return incident.model_copy(update={
        "category": category,
        "severity": analysis.severity,
        "impact_radius": analysis.impact_radius,
        "summary": analysis.summary or incident.summary,
        "metadata": metadata,
        "needs_review": analysis.needs_review,
        "updated_at": now,
    }, deep=True)

class MonitorScheduler:
    """단일 실행(single-flight) 모니터 스케줄러"""

    def __init__(self,
                 *,
                 store: IncidentStorePort,
                 analyzer: AnalysisPort,
                 graph: RelationshipGraph,
                 clusters: ClusterEngine,
                 statistics: StatisticsService,
                 dispatcher: NotificationDispatcher,
                 verifier: Optional[VerificationPort] = None,
                 config: Optional[MonitorConfig] = None,
                 clock: Callable[[], datetime] = utcnow):
        """
        초기화합니다.

        Args:
            store: 인시던트 저장소
            analyzer: 분석 서비스
            graph: 관계 그래프
            clusters: 클러스터 엔진
            statistics: 통계 서비스
            dispatcher: 알림 발송기
            verifier: 검증 신호 수집기 (선택)
            config: 모니터 설정
            clock: 현재 시각 함수
        """
        self.store = store
        self.analyzer = analyzer
        self.graph = graph
        self.clusters = clusters
        self.statistics = statistics
        self.dispatcher = dispatcher
        self.verifier = verifier
        self.config = config or MonitorConfig()
        self._clock = clock

        # 인스턴스 소유 단일 실행 잠금
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self.last_result: Optional[PassResult] = None
        self.passes_run = 0

        log.info(f"모니터 스케줄러 초기화됨 window_min:{self.config.window_minutes} "
                 f"interval:{self.config.interval_sec} full_interval:{self.config.full_interval_sec}")

    @property
    def state(self) -> str:
        return RUNNING if self._lock.locked() else IDLE

    async def _call(self, collaborator: str, awaitable: Awaitable[T]) -> T:
        """외부 협력자 호출에 타임아웃을 적용합니다."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.config.call_timeout_sec)
        except asyncio.TimeoutError as e:
            raise CollaboratorUnavailable(collaborator, e) from e

    async def run_pass(self, full: bool = False, now: Optional[datetime] = None) -> PassResult:
        """
        모니터 패스를 한 번 실행합니다.

        이미 실행 중인 패스가 있으면 대기하지 않고 즉시 건너뜁니다.

        Args:
            full: 전체 패스 여부 (클러스터 캐시 무시)
            now: 기준 시각 (None이면 clock 사용)

        Returns:
            패스 결과
        """
        kind = "full" if full else "fine"
        if self._lock.locked():
            metrics.monitor_passes_skipped.labels(kind=kind).inc()
            log.info(f"이전 패스 실행 중, 건너뜀 kind:{kind}")
            return PassResult(kind=kind, skipped=True)

        async with self._lock:
            with with_context(pass_kind=kind):
                return await self._execute(kind, ensure_utc(now or self._clock()))

    async def _execute(self, kind: str, now: datetime) -> PassResult:
        result = PassResult(kind=kind, started_at=now)
        started = time.perf_counter()
        outcome = "ok"
        self.passes_run += 1

        try:
            since = now - timedelta(minutes=self.config.window_minutes)
            try:
                incidents = await self._call("incident_store", self.store.find_recent(since))
            except Exception as e:
                outcome = "aborted"
                result.aborted = True
                result.errors["fetch"] = str(e)
                log.error(f"최근 인시던트 조회 실패, 패스 중단 kind:{kind} error:{str(e)}")
                return result

            result.window_size = len(incidents)
            metrics.window_size.set(len(incidents))

            semaphore = asyncio.Semaphore(max(1, self.config.concurrency))

            async def guarded(incident: Incident) -> bool:
                async with semaphore:
                    return await self._process_incident(incident, now)

            outcomes = await asyncio.gather(*(guarded(i) for i in incidents))
            result.processed = sum(1 for ok in outcomes if ok)
            result.failed = len(outcomes) - result.processed
            if result.failed:
                outcome = "partial"

            # 클러스터 (전체 패스는 강제 재계산)
            try:
                clusters = await self._call("clustering", self.clusters.get_clusters(now, force=(kind == "full")))
                result.clusters = len(clusters)
                await self.dispatcher.cluster_updated(clusters)
            except Exception as e:
                result.errors["clustering"] = str(e)
                outcome = "partial"
                log.error(f"클러스터 계산 실패 kind:{kind} error:{str(e)}")

            # 통계
            try:
                await self._call("statistics", self.statistics.refresh(now))
                result.statistics_refreshed = True
            except Exception as e:
                result.errors["statistics"] = str(e)
                log.error(f"통계 갱신 실패 kind:{kind} error:{str(e)}")

            return result
        finally:
            result.duration_sec = time.perf_counter() - started
            metrics.pass_seconds.observe(result.duration_sec)
            metrics.monitor_passes.labels(kind=kind, outcome=outcome).inc()
            self.last_result = result
            log.info(f"모니터 패스 종료 kind:{kind} outcome:{outcome} window:{result.window_size} "
                     f"processed:{result.processed} failed:{result.failed} "
                     f"duration:{result.duration_sec:.3f}s")

    async def _process_incident(self, incident: Incident, now: datetime) -> bool:
        """
        인시던트 하나를 재처리합니다.

        순서: 분석 → 타임라인 추가 → 저장 → 관계 그래프 → 발송.
        처음 처리되는 인시던트(타임라인이 비어 있음)는 newIncident도 발송합니다.
        실패는 이 인시던트에만 한정됩니다.

        Returns:
            성공 여부
        """
        first_seen = not incident.timeline
        try:
            analysis = await self._call("analysis", self.analyzer.analyze(incident))
            updated = apply_analysis(incident, analysis, now)

            entry = TimelineEntry(
                update=REPROCESS_NOTE,
                timestamp=now,
                severity=updated.severity,
                impact_radius=updated.impact_radius,
            )

            verified = None
            if self.verifier is not None and self.config.verification_enabled:
                signals = await self._call("verification", self.verifier.collect(updated))
                score, status = verification.evaluate(signals)
                updated.verification_score = score
                updated.verification_status = status
                entry.verification_score = score
                verified = (score, status)

            await self._call("incident_store", self.store.append_timeline(updated.id, entry))
            await self._call("incident_store", self.store.save(updated))

            await self._call("graph", self.graph.upsert_incident_metadata(
                updated.id, updated.metadata.keywords, updated.metadata.place_name))
            related = await self._call("graph", self.graph.related_incidents(updated.id))

            if first_seen:
                await self.dispatcher.new_incident(updated)
            await self.dispatcher.incident_updated(updated, related)
            if verified is not None:
                await self.dispatcher.verification_updated(updated.id, verified[0], verified[1])
            if self.config.geofence_alerts:
                await self.dispatcher.notify_geofenced(updated, now)

        except Exception as e:
            metrics.incidents_processed.labels(outcome="failed").inc()
            log.error(f"인시던트 재처리 실패 incident_id:{incident.id} error:{type(e).__name__}: {e}")
            return False

        metrics.incidents_processed.labels(outcome="ok").inc()
        return True

    async def _loop(self, interval: float, full: bool) -> None:
        kind = "full" if full else "fine"
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_pass(full=full)
            except Exception as e:
                log.error(f"모니터 패스 예외 kind:{kind} error:{str(e)}")

    async def run_forever(self) -> None:
        """세밀 패스와 전체 패스 타이머를 실행합니다 (stop() 호출 시 종료)."""
        self._stop.clear()
        log.info("모니터 스케줄러 시작")

        if self.config.run_on_start:
            await self.run_pass(full=True)

        await asyncio.gather(
            self._loop(self.config.interval_sec, full=False),
            self._loop(self.config.full_interval_sec, full=True),
        )
        log.info("모니터 스케줄러 종료")

    def stop(self) -> None:
        self._stop.set()
