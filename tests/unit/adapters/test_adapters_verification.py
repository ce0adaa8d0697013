"""
검증 Adapter 모듈 단위 테스트

이 모듈은 공식 출처/주변 제보/분석 결과 기반 검증 신호 수집기를 테스트합니다.
"""

import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from riskwatch.adapters.memory import InMemoryIncidentStore
from riskwatch.adapters.verification import OfficialSourceVerifier
from riskwatch.core import verification


def fake_get_session(json_data=None, exc=None):
    """GET 요청용 aiohttp 세션 목업"""
    response = MagicMock()
    response.raise_for_status = Mock()
    response.json = AsyncMock(return_value=json_data)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock()
    if exc is not None:
        session.get = Mock(side_effect=exc)
    else:
        session.get = Mock(return_value=ctx)
    return session


@pytest.fixture
def neighbourhood(incident_factory):
    """기준 인시던트와 주변 제보들"""
    target = incident_factory("a", minutes_ago=10)
    return target, [
        target,
        incident_factory("same-kind", minutes_ago=20),
        incident_factory("other-kind", minutes_ago=20, category="Fire"),
        incident_factory("far-away", lat=37.70, minutes_ago=20),
        incident_factory("stale", minutes_ago=60 * 24),
    ]


class TestUserSignal:
    """주변 제보 기반 사용자 신호 테스트"""

    @pytest.mark.asyncio
    async def test_counts_nearby_reports_of_same_kind(self, neighbourhood):
        target, incidents = neighbourhood
        verifier = OfficialSourceVerifier(store=InMemoryIncidentStore(incidents),
                                          corroboration_target=2)

        assert await verifier.user_signal(target) == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_caps_at_one(self, incident_factory):
        incidents = [incident_factory(f"r{i}", minutes_ago=5 + i) for i in range(5)]
        verifier = OfficialSourceVerifier(store=InMemoryIncidentStore(incidents),
                                          corroboration_target=2)

        assert await verifier.user_signal(incidents[0]) == 1.0

    @pytest.mark.asyncio
    async def test_without_store(self, incident_factory):
        assert await OfficialSourceVerifier().user_signal(incident_factory("a")) == 0.0


class TestOfficialSignal:
    """공식 출처 신호 테스트"""

    @pytest.mark.asyncio
    async def test_confirmed_by_official_source(self, incident_factory):
        verifier = OfficialSourceVerifier("http://official/check", max_retries=0)
        verifier.session = fake_get_session({"verified": True})

        assert await verifier.official_signal(incident_factory("a")) == 1.0
        url = verifier.session.get.call_args.args[0]
        params = verifier.session.get.call_args.kwargs["params"]
        assert url == "http://official/check"
        assert params == {"lat": 37.5665, "lon": 126.9780, "type": "Flood"}

    @pytest.mark.asyncio
    async def test_not_confirmed(self, incident_factory):
        verifier = OfficialSourceVerifier("http://official/check", max_retries=0)
        verifier.session = fake_get_session({"verified": False})

        assert await verifier.official_signal(incident_factory("a")) == 0.0

    @pytest.mark.asyncio
    async def test_request_failure_counts_as_unconfirmed(self, incident_factory):
        """재시도 후에도 실패하면 0"""
        verifier = OfficialSourceVerifier("http://official/check", max_retries=1)
        verifier.session = fake_get_session(exc=aiohttp.ClientConnectionError("refused"))

        with patch("riskwatch.common.retry.asyncio.sleep", new=AsyncMock()):
            assert await verifier.official_signal(incident_factory("a")) == 0.0
        assert verifier.session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_no_official_url(self, incident_factory):
        """URL이 없으면 세션 없이 0"""
        assert await OfficialSourceVerifier().official_signal(incident_factory("a")) == 0.0

    @pytest.mark.asyncio
    async def test_session_requires_context(self, incident_factory):
        verifier = OfficialSourceVerifier("http://official/check")
        with pytest.raises(RuntimeError):
            await verifier.official_signal(incident_factory("a"))

    @pytest.mark.asyncio
    async def test_context_manager_closes_session(self):
        async with OfficialSourceVerifier("http://official/check") as verifier:
            assert verifier.session is not None
        assert verifier.session is None


class TestCollect:
    """검증 신호 수집 테스트"""

    def test_ai_signal_follows_review_flag(self, incident_factory):
        assert OfficialSourceVerifier.ai_signal(incident_factory("a")) == 1.0
        assert OfficialSourceVerifier.ai_signal(incident_factory("a", needs_review=True)) == 0.0

    @pytest.mark.asyncio
    async def test_all_signals_verify_incident(self, neighbourhood):
        target, incidents = neighbourhood
        verifier = OfficialSourceVerifier("http://official/check",
                                          InMemoryIncidentStore(incidents),
                                          max_retries=0, corroboration_target=1)
        verifier.session = fake_get_session({"verified": True})

        signals = await verifier.collect(target)

        assert (signals.user, signals.official, signals.ai) == (1.0, 1.0, 1.0)
        assert verification.evaluate(signals) == (pytest.approx(1.0), "Verified")

    @pytest.mark.asyncio
    async def test_analysis_alone_does_not_verify(self, incident_factory):
        """공식 확인과 주변 제보가 없으면 미검증"""
        signals = await OfficialSourceVerifier().collect(incident_factory("a"))

        score, status = verification.evaluate(signals)
        assert score == pytest.approx(0.2)
        assert status == "Unverified"
