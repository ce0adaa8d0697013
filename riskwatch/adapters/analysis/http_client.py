"""
Analysis service HTTP client for RiskWatch.

This module provides an aiohttp client for the external text
analysis service that turns an incident description into a
category, severity, impact radius, summary and keywords.
"""

import aiohttp
import asyncio
from typing import Any, Dict, Optional
from pydantic import ValidationError
from riskwatch.common.retry import retry_with_backoff
from riskwatch.core.errors import CollaboratorUnavailable
from riskwatch.core.models import Incident, IncidentAnalysis
from riskwatch.observability import metrics
from riskwatch.observability.logging_setup import get_logger

log = get_logger("riskwatch.analysis")

class AnalysisClient:
    """분석 서비스 API 클라이언트"""

    def __init__(self,
                 base_url: str,
                 token: str = "",
                 timeout: int = 20,
                 max_retries: int = 2,
                 base_delay: float = 0.5):
        """
        초기화합니다.

        Args:
            base_url: 분석 서비스 기본 URL
            token: Bearer 토큰 (비어 있으면 생략)
            timeout: 요청 타임아웃 (초)
            max_retries: 최대 재시도 횟수
            base_delay: 재시도 기본 지연 (초)
        """
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session: Optional[aiohttp.ClientSession] = None

        log.info(f"분석 서비스 클라이언트 초기화됨 base_url:{self.base_url}")

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self.session = aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        if self.session:
            await self.session.close()
            self.session = None

    async def _make_request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """
        API 요청을 수행합니다.

        Args:
            method: HTTP 메서드
            endpoint: API 엔드포인트
            **kwargs: 추가 요청 매개변수

        Returns:
            응답 데이터
        """
        if not self.session:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")

        url = f"{self.base_url}{endpoint}"

        async def _request():
            async with self.session.request(method, url, **kwargs) as response:
                response.raise_for_status()
                return await response.json()

        return await retry_with_backoff(
            _request,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            retry_on=(aiohttp.ClientError, asyncio.TimeoutError)
        )

    @staticmethod
    def _request_body(incident: Incident) -> Dict[str, Any]:
        return {
            "id": incident.id,
            "description": incident.description,
            "category": incident.category,
            "location": {
                "latitude": incident.location.latitude,
                "longitude": incident.location.longitude,
            },
        }

    async def analyze(self, incident: Incident) -> IncidentAnalysis:
        """
        인시던트를 분석 서비스로 보내 구조화된 결과를 받습니다.

        Raises:
            CollaboratorUnavailable: 요청 실패, 타임아웃 또는 잘못된 응답
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            data = await self._make_request("POST", "/analyze", json=self._request_body(incident))
            analysis = IncidentAnalysis.model_validate(data)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.error(f"분석 요청 실패 incident_id:{incident.id} error:{str(e)}")
            raise CollaboratorUnavailable("analysis", e) from e
        except ValidationError as e:
            log.error(f"분석 응답 형식 오류 incident_id:{incident.id} errors:{e.error_count()}")
            raise CollaboratorUnavailable("analysis", e) from e
        finally:
            metrics.analysis_seconds.observe(loop.time() - started)

        log.debug(f"분석 완료 incident_id:{incident.id} severity:{analysis.severity}")
        return analysis
