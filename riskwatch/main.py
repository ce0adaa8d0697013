# riskwatch/main.py
import os, asyncio, signal
from contextlib import AsyncExitStack
from typing import Optional
import uvicorn
from riskwatch.settings import Settings
from riskwatch.observability.health import create_app
from riskwatch.observability.logging_setup import setup_logging, get_logger
from riskwatch.adapters.analysis.http_client import AnalysisClient
from riskwatch.adapters.analysis.static_provider import StaticAnalyzer
from riskwatch.adapters.memory import (
    InMemoryCache, InMemoryGraphStore, InMemoryIncidentStore,
    InMemoryObserverRegistry, InMemoryTransport,
)
from riskwatch.adapters.mqtt_local.publisher_async import LocalMqttPublisher
from riskwatch.adapters.storage import (
    SQLiteCache, SQLiteGraphStore, SQLiteIncidentStore,
    SQLiteObserverRegistry, SQLiteOutbox,
)
from riskwatch.adapters.verification import OfficialSourceVerifier
from riskwatch.features import ClusterEngine, NotificationDispatcher, RelationshipGraph, StatisticsService
from riskwatch.orchestrators.monitor import MonitorScheduler

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def build_settings() -> Settings:
    s = Settings()
    # 플래그
    s.dry_run = _b("DRY_RUN", s.dry_run)

    # LOCAL MQTT
    s.local_mqtt.host  = os.getenv("LOCAL_MQTT_HOST", s.local_mqtt.host)
    s.local_mqtt.port  = int(os.getenv("LOCAL_MQTT_PORT", s.local_mqtt.port))
    s.local_mqtt.username = os.getenv("LOCAL_MQTT_USERNAME", s.local_mqtt.username)
    s.local_mqtt.password = os.getenv("LOCAL_MQTT_PASSWORD", s.local_mqtt.password)
    s.local_mqtt.client_id = os.getenv("LOCAL_MQTT_CLIENT_ID", s.local_mqtt.client_id)
    s.local_mqtt.tls = _b("LOCAL_MQTT_TLS", s.local_mqtt.tls)
    s.local_mqtt.topic_prefix = os.getenv("LOCAL_TOPIC_PREFIX", s.local_mqtt.topic_prefix)
    s.local_mqtt.lwt_payload = os.getenv("LOCAL_MQTT_LWT_PAYLOAD", s.local_mqtt.lwt_payload)

    # 분석 서비스
    s.analysis.base_url = os.getenv("ANALYSIS_BASE_URL", s.analysis.base_url)
    s.analysis.token = os.getenv("ANALYSIS_TOKEN", s.analysis.token)
    s.analysis.timeout_sec = int(os.getenv("ANALYSIS_TIMEOUT_SEC", s.analysis.timeout_sec))
    s.analysis.max_retries = int(os.getenv("ANALYSIS_MAX_RETRIES", s.analysis.max_retries))

    # 모니터
    s.monitor.window_minutes = int(os.getenv("MONITOR_WINDOW_MINUTES", s.monitor.window_minutes))
    s.monitor.interval_sec = float(os.getenv("MONITOR_INTERVAL_SEC", s.monitor.interval_sec))
    s.monitor.full_interval_sec = float(os.getenv("MONITOR_FULL_INTERVAL_SEC", s.monitor.full_interval_sec))
    s.monitor.call_timeout_sec = float(os.getenv("MONITOR_CALL_TIMEOUT_SEC", s.monitor.call_timeout_sec))
    s.monitor.concurrency = int(os.getenv("MONITOR_CONCURRENCY", s.monitor.concurrency))
    s.monitor.run_on_start = _b("MONITOR_RUN_ON_START", s.monitor.run_on_start)
    s.monitor.geofence_alerts = _b("GEOFENCE_ALERTS", s.monitor.geofence_alerts)
    s.monitor.verification_enabled = _b("VERIFICATION_ENABLED", s.monitor.verification_enabled)

    # 검증
    s.verification.official_url = os.getenv("VERIFICATION_OFFICIAL_URL", s.verification.official_url)
    s.verification.timeout_sec = int(os.getenv("VERIFICATION_TIMEOUT_SEC", s.verification.timeout_sec))
    s.verification.corroboration_target = int(os.getenv("VERIFICATION_CORROBORATION_TARGET", s.verification.corroboration_target))

    # 클러스터링
    s.clustering.epsilon_m = float(os.getenv("CLUSTER_EPSILON_M", s.clustering.epsilon_m))
    s.clustering.min_points = int(os.getenv("CLUSTER_MIN_POINTS", s.clustering.min_points))
    s.clustering.freshness_sec = int(os.getenv("CLUSTER_FRESHNESS_SEC", s.clustering.freshness_sec))

    # 통계
    s.statistics.ttl_sec = int(os.getenv("STATISTICS_TTL_SEC", s.statistics.ttl_sec))

    # 저장소
    s.storage.incidents_path = os.getenv("INCIDENTS_DB", s.storage.incidents_path)
    s.storage.graph_path = os.getenv("GRAPH_DB", s.storage.graph_path)
    s.storage.cache_path = os.getenv("CACHE_DB", s.storage.cache_path)
    s.storage.observers_path = os.getenv("OBSERVERS_DB", s.storage.observers_path)
    s.storage.outbox_path = os.getenv("OUTBOX_DB", s.storage.outbox_path)

    # 관측성
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.http_port = int(os.getenv("METRICS_PORT", s.observability.http_port))
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)
    s.observability.json_logs = _b("JSON_LOGS", s.observability.json_logs)

    # 신뢰성
    s.reliability.publish_max_retries = int(os.getenv("PUBLISH_MAX_RETRIES", s.reliability.publish_max_retries))

    return s

def build_verifier(settings: Settings, store) -> Optional[OfficialSourceVerifier]:
    if not settings.monitor.verification_enabled: return None
    v = settings.verification
    return OfficialSourceVerifier(
        v.official_url, store,
        timeout=v.timeout_sec,
        max_retries=v.max_retries,
        corroboration_target=v.corroboration_target,
        corroboration_window_hours=v.corroboration_window_hours,
    )

async def start_http(settings: Settings, scheduler: MonitorScheduler) -> Optional[asyncio.Task]:
    if not settings.observability.metrics_enabled: return None
    app = create_app(settings, scheduler)
    return asyncio.create_task(uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=settings.observability.http_port, log_level="info")
    ).serve())

async def main():
    s = build_settings()
    setup_logging(s.observability.log_level, s.observability.json_logs)
    log = get_logger("riskwatch.main")
    log.info(f"설정 로드 완료 dry_run:{s.dry_run}")

    async with AsyncExitStack() as stack:
        publisher: Optional[LocalMqttPublisher] = None

        if s.dry_run:
            store = InMemoryIncidentStore()
            graph_store = InMemoryGraphStore()
            cache = InMemoryCache()
            observers = InMemoryObserverRegistry()
            transport = InMemoryTransport()
            analyzer = StaticAnalyzer()
            log.info("DRY_RUN: 메모리 어댑터와 정적 분석기를 사용합니다")
        else:
            store = SQLiteIncidentStore(s.storage.incidents_path); await store.init()
            graph_store = SQLiteGraphStore(s.storage.graph_path); await graph_store.init()
            cache = SQLiteCache(s.storage.cache_path); await cache.init(); await cache.gc()
            observers = SQLiteObserverRegistry(s.storage.observers_path); await observers.init()
            outbox = SQLiteOutbox(s.storage.outbox_path); await outbox.init()

            publisher = LocalMqttPublisher(
                broker_host=s.local_mqtt.host,
                broker_port=s.local_mqtt.port,
                topic_prefix=s.local_mqtt.topic_prefix,
                outbox=outbox,
                username=s.local_mqtt.username,
                password=s.local_mqtt.password,
                tls=s.local_mqtt.tls,
                client_id=s.local_mqtt.client_id,
                keepalive=s.local_mqtt.keepalive,
                lwt_topic=s.local_mqtt.lwt_topic,
                lwt_payload_online="online",
                lwt_payload_offline=s.local_mqtt.lwt_payload,
                qos_default=s.local_mqtt.qos,
                retain_default=s.local_mqtt.retain,
                backoff_initial=s.reliability.backoff_initial_sec,
                backoff_max=s.reliability.backoff_max_sec,
                max_retries=s.reliability.publish_max_retries,
            )
            transport = publisher
            log.info("로컬 MQTT 퍼블리셔 생성 완료")

            analyzer = await stack.enter_async_context(AnalysisClient(
                base_url=s.analysis.base_url,
                token=s.analysis.token,
                timeout=s.analysis.timeout_sec,
                max_retries=s.analysis.max_retries,
            ))

        verifier = build_verifier(s, store)
        if verifier:
            await stack.enter_async_context(verifier)
            log.info("검증 수집기 활성화됨")

        graph = RelationshipGraph(graph_store, store)
        clusters = ClusterEngine(
            store, cache,
            epsilon_m=s.clustering.epsilon_m,
            min_points=s.clustering.min_points,
            window_hours=s.clustering.window_hours,
            freshness_sec=s.clustering.freshness_sec,
        )
        statistics = StatisticsService(
            store, cache,
            ttl_sec=s.statistics.ttl_sec,
            precision=s.statistics.heatmap_precision,
        )
        dispatcher = NotificationDispatcher(
            transport, observers,
            send_timeout_sec=s.monitor.call_timeout_sec,
            max_severity=s.scoring.max_severity,
        )
        scheduler = MonitorScheduler(
            store=store,
            analyzer=analyzer,
            graph=graph,
            clusters=clusters,
            statistics=statistics,
            dispatcher=dispatcher,
            verifier=verifier,
            config=s.monitor,
        )
        log.info("모니터 스케줄러 생성 완료")

        http_task = await start_http(s, scheduler)
        if http_task:
            log.info("HTTP 서버 시작됨")

        stop = asyncio.Future()
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
                except NotImplementedError: pass
        except RuntimeError: pass

        publisher_task = asyncio.create_task(publisher.start()) if publisher else None
        monitor_task = asyncio.create_task(scheduler.run_forever())
        await stop

        log.info("종료 신호 수신, 스케줄러 정지")
        scheduler.stop()
        await monitor_task
        if publisher:
            await publisher.stop()
            publisher_task.cancel()
        if http_task: http_task.cancel()

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
