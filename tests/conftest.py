"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import inspect
import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from riskwatch.adapters.memory import (
    InMemoryCache, InMemoryGraphStore, InMemoryIncidentStore,
    InMemoryObserverRegistry, InMemoryTransport,
)
from riskwatch.core.models import Incident, IncidentMetadata
from riskwatch.settings import Settings

# 테스트 기준 시각
NOW = datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_incident(incident_id: str = "inc-1", *, lat: float = 37.5665, lon: float = 126.9780,
                  severity: float = 6.0, impact_radius: float = 1.0, category: str = "Flood",
                  minutes_ago: float = 10.0, keywords=None, place_name=None,
                  now: datetime = NOW, **extra) -> Incident:
    """테스트용 인시던트 생성"""
    return Incident(
        id=incident_id,
        category=category,
        description=extra.pop("description", f"{category} reported"),
        location={"latitude": lat, "longitude": lon},
        severity=severity,
        impact_radius=impact_radius,
        created_at=now - timedelta(minutes=minutes_ago),
        metadata=IncidentMetadata(keywords=list(keywords or []), place_name=place_name),
        **extra,
    )


@pytest.fixture
def now():
    """고정된 기준 시각"""
    return NOW


@pytest.fixture
def incident_factory():
    """인시던트 생성 함수"""
    return make_incident


@pytest.fixture
def temp_db_path():
    """임시 데이터베이스 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # 테스트 후 파일 정리
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    settings.observability.http_port = 8080
    return settings


@pytest.fixture
def sample_polygon():
    """테스트용 폴리곤 (경도, 위도)"""
    return [
        (126.0, 37.0),  # 좌하
        (127.0, 37.0),  # 우하
        (127.0, 38.0),  # 우상
        (126.0, 38.0)   # 좌상
    ]


@pytest.fixture
def memory_store():
    return InMemoryIncidentStore()


@pytest.fixture
def memory_graph():
    return InMemoryGraphStore()


@pytest.fixture
def memory_cache():
    return InMemoryCache()


@pytest.fixture
def memory_transport():
    return InMemoryTransport()


@pytest.fixture
def memory_observers():
    return InMemoryObserverRegistry()


# pytest 설정
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "slow: 느린 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "integration: 통합 테스트 마커"
    )


def pytest_collection_modifyitems(config, items):
    """테스트 아이템 수정"""
    for item in items:
        # 비동기 테스트에 asyncio 마커 추가
        if inspect.iscoroutinefunction(getattr(item, "function", None)):
            item.add_marker(pytest.mark.asyncio)

        # 통합 테스트 마커 추가
        if "integration" in item.name or "end_to_end" in item.nodeid:
            item.add_marker(pytest.mark.integration)
