"""
Verification signal collector for RiskWatch.

This module gathers the three verification signals for an incident:
corroborating reports from the incident store, confirmation from an
official disaster information API over aiohttp, and the analysis
service's own review flag.
"""

import aiohttp
import asyncio
from datetime import timedelta
from typing import Any, Dict, Optional
from riskwatch.common.geo import miles_to_meters
from riskwatch.common.retry import retry_with_backoff
from riskwatch.core.models import Incident, VerificationSignals
from riskwatch.observability.logging_setup import get_logger
from riskwatch.ports.incident_store import IncidentStorePort

log = get_logger("riskwatch.verification")

class OfficialSourceVerifier:
    """공식 출처/주변 제보/분석 결과 기반 검증 신호 수집기"""

    def __init__(self,
                 official_url: str = "",
                 store: Optional[IncidentStorePort] = None,
                 *,
                 timeout: int = 10,
                 max_retries: int = 1,
                 base_delay: float = 0.5,
                 corroboration_target: int = 3,
                 corroboration_window_hours: float = 6.0):
        """
        초기화합니다.

        Args:
            official_url: 공식 재난 정보 API URL (비어 있으면 공식 신호 0)
            store: 주변 제보 조회용 인시던트 저장소 (없으면 사용자 신호 0)
            timeout: 요청 타임아웃 (초)
            max_retries: 최대 재시도 횟수
            base_delay: 재시도 기본 지연 (초)
            corroboration_target: 사용자 신호가 1이 되는 주변 제보 수
            corroboration_window_hours: 주변 제보로 인정하는 생성 시각 차이 (시간)
        """
        self.official_url = official_url
        self.store = store
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.corroboration_target = max(1, corroboration_target)
        self.corroboration_window = timedelta(hours=corroboration_window_hours)
        self.session: Optional[aiohttp.ClientSession] = None

        log.info(f"검증 수집기 초기화됨 official:{bool(official_url)} store:{store is not None}")

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        if self.session:
            await self.session.close()
            self.session = None

    async def collect(self, incident: Incident) -> VerificationSignals:
        """
        사용자/공식/AI 검증 신호를 수집합니다.

        Raises:
            CollaboratorUnavailable: 인시던트 저장소 조회 실패
        """
        signals = VerificationSignals(
            user=await self.user_signal(incident),
            official=await self.official_signal(incident),
            ai=self.ai_signal(incident),
        )
        log.debug(f"검증 신호 incident_id:{incident.id} user:{signals.user} "
                  f"official:{signals.official} ai:{signals.ai}")
        return signals

    async def user_signal(self, incident: Incident) -> float:
        """같은 유형의 주변 제보 수로 사용자 신호를 계산합니다."""
        if self.store is None:
            return 0.0

        nearby = await self.store.find_within_radius(
            incident.location, miles_to_meters(incident.impact_radius)
        )
        corroborating = [
            other for other in nearby
            if other.id != incident.id
            and other.category == incident.category
            and abs(other.created_at - incident.created_at) <= self.corroboration_window
        ]
        return min(1.0, len(corroborating) / self.corroboration_target)

    async def official_signal(self, incident: Incident) -> float:
        """
        공식 재난 정보 API의 확인 여부를 조회합니다.

        조회에 실패하면 확인되지 않은 것으로 보고 0을 반환합니다.
        """
        if not self.official_url:
            return 0.0
        if not self.session:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")

        params = {
            "lat": incident.location.latitude,
            "lon": incident.location.longitude,
            "type": incident.category,
        }

        async def _request() -> Dict[str, Any]:
            async with self.session.get(self.official_url, params=params) as response:
                response.raise_for_status()
                return await response.json()

        try:
            data = await retry_with_backoff(
                _request,
                max_retries=self.max_retries,
                base_delay=self.base_delay,
                retry_on=(aiohttp.ClientError, asyncio.TimeoutError)
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            log.warning(f"공식 출처 확인 실패 incident_id:{incident.id} error:{type(e).__name__}: {e}")
            return 0.0

        return 1.0 if isinstance(data, dict) and data.get("verified") else 0.0

    @staticmethod
    def ai_signal(incident: Incident) -> float:
        """분석 서비스가 검토 필요로 표시하지 않았으면 1"""
        return 0.0 if incident.needs_review else 1.0
