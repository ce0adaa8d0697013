"""
실행 진입점 설정 단위 테스트

이 모듈은 환경 변수 오버라이드와 검증 수집기 구성을 테스트합니다.
"""

from riskwatch.adapters.memory import InMemoryIncidentStore
from riskwatch.adapters.verification import OfficialSourceVerifier
from riskwatch.main import build_settings, build_verifier


class TestBuildSettings:
    """환경 변수 오버라이드 테스트"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("VERIFICATION_ENABLED", raising=False)
        monkeypatch.delenv("LOCAL_MQTT_LWT_PAYLOAD", raising=False)
        s = build_settings()

        assert s.monitor.verification_enabled is False
        assert s.local_mqtt.lwt_payload == "offline"

    def test_verification_overrides(self, monkeypatch):
        monkeypatch.setenv("VERIFICATION_ENABLED", "true")
        monkeypatch.setenv("VERIFICATION_OFFICIAL_URL", "http://official/check")
        monkeypatch.setenv("VERIFICATION_TIMEOUT_SEC", "3")
        monkeypatch.setenv("VERIFICATION_CORROBORATION_TARGET", "5")
        s = build_settings()

        assert s.monitor.verification_enabled is True
        assert s.verification.official_url == "http://official/check"
        assert s.verification.timeout_sec == 3
        assert s.verification.corroboration_target == 5

    def test_lwt_payload_override(self, monkeypatch):
        monkeypatch.setenv("LOCAL_MQTT_LWT_PAYLOAD", "down")
        assert build_settings().local_mqtt.lwt_payload == "down"


class TestBuildVerifier:
    """검증 수집기 구성 테스트"""

    def test_disabled(self, sample_settings):
        assert build_verifier(sample_settings, InMemoryIncidentStore()) is None

    def test_enabled(self, sample_settings):
        sample_settings.monitor.verification_enabled = True
        sample_settings.verification.official_url = "http://official/check"
        sample_settings.verification.corroboration_target = 4
        store = InMemoryIncidentStore()

        verifier = build_verifier(sample_settings, store)

        assert isinstance(verifier, OfficialSourceVerifier)
        assert verifier.official_url == "http://official/check"
        assert verifier.store is store
        assert verifier.corroboration_target == 4
