"""
hypothesis를 활용한 위험 점수 모듈 테스트

이 모듈은 심각도, 거리, 시간 감쇠 항과 최종 점수의
속성 기반 테스트를 수행합니다.
"""

import math
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from hypothesis import given, strategies as st, settings, example

from riskwatch.common.geo import METERS_PER_MILE
from riskwatch.core import risk
from riskwatch.core.errors import InvalidInput
from riskwatch.core.models import GeoPoint, Incident

NOW = datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)


def incident_at(lat=37.5, lon=127.0, severity=6.0, impact_radius=1.0, created_at=NOW):
    return Incident(
        id="inc",
        category="Flood",
        location={"latitude": lat, "longitude": lon},
        severity=severity,
        impact_radius=impact_radius,
        created_at=created_at,
    )


class TestScoreAtEpicenter:
    """진앙/생성 시점에서의 점수 테스트"""

    @given(
        severity=st.floats(min_value=1.0, max_value=10.0),
        impact_radius=st.floats(min_value=0.01, max_value=500.0),
        lat=st.floats(min_value=-89.0, max_value=89.0),
        lon=st.floats(min_value=-179.0, max_value=179.0),
    )
    @example(severity=6.0, impact_radius=1.0, lat=0.0, lon=0.0)
    def test_epicenter_at_creation(self, severity, impact_radius, lat, lon):
        """진앙, 생성 시점의 관찰자 점수는 심각도 항만으로 결정됨"""
        incident = incident_at(lat, lon, severity, impact_radius)

        result = risk.score(incident, GeoPoint(latitude=lat, longitude=lon), NOW)

        expected = risk.round_half_up(100 * (severity / 10 * 0.5 + 0.3 + 0.2))
        assert result == expected

    def test_maximum_score_is_100(self):
        """최대 심각도, 진앙, 생성 시점은 100점"""
        assert risk.score(incident_at(severity=10.0), (37.5, 127.0), NOW) == 100

    def test_accepts_dict_and_tuple_observer(self):
        """관찰자 위치는 GeoPoint, 튜플, dict 모두 허용"""
        inc = incident_at()
        a = risk.score(inc, GeoPoint(latitude=37.5, longitude=127.0), NOW)
        b = risk.score(inc, (37.5, 127.0), NOW)
        c = risk.score(inc, {"latitude": 37.5, "longitude": 127.0}, NOW)
        assert a == b == c


class TestDistanceTerm:
    """거리 항 테스트"""

    @given(
        impact_radius=st.floats(min_value=0.01, max_value=100.0),
        factor=st.floats(min_value=1.0001, max_value=1000.0),
    )
    def test_outside_radius_is_exactly_zero(self, impact_radius, factor):
        """영향 반경 밖에서는 거리와 무관하게 정확히 0"""
        distance = impact_radius * METERS_PER_MILE * factor
        assert risk.distance_term(distance, impact_radius) == 0.0

    def test_at_epicenter_is_one(self):
        """진앙에서 1"""
        assert risk.distance_term(0.0, 1.0) == 1.0

    def test_halfway_is_half(self):
        """반경 절반 거리에서 0.5"""
        assert risk.distance_term(METERS_PER_MILE / 2, 1.0) == pytest.approx(0.5)

    def test_far_observer_score_ignores_distance(self):
        """반경 밖 관찰자의 점수는 거리에 따라 달라지지 않음"""
        inc = incident_at(impact_radius=1.0)
        near_outside = risk.score(inc, (37.6, 127.0), NOW)   # 약 11km
        far_outside = risk.score(inc, (-30.0, 10.0), NOW)
        assert near_outside == far_outside == risk.round_half_up(100 * (0.3 + 0.2))


class TestTimeTerm:
    """시간 감쇠 항 테스트"""

    @given(hours=st.floats(min_value=24.0, max_value=10_000.0))
    def test_after_24_hours_is_exactly_zero(self, hours):
        """생성 후 24시간 이상이면 정확히 0"""
        assert risk.time_term(hours) == 0.0

    @given(hours=st.floats(min_value=0.0, max_value=24.0))
    def test_time_term_in_unit_interval(self, hours):
        """시간 항은 [0, 1] 범위"""
        assert 0.0 <= risk.time_term(hours) <= 1.0

    def test_future_creation_is_clamped(self):
        """미래 생성 시각은 1로 제한"""
        assert risk.time_term(-5.0) == 1.0

    def test_older_incident_scores_lower(self):
        """25시간 전 인시던트는 1시간 전보다 시간 항이 낮음"""
        old = incident_at(severity=10.0, created_at=NOW - timedelta(hours=25))
        fresh = incident_at(severity=10.0, created_at=NOW - timedelta(hours=1))
        assert risk.score(old, (37.5, 127.0), NOW) < risk.score(fresh, (37.5, 127.0), NOW)
        assert risk.time_term(25.0) < risk.time_term(1.0)


class TestScoreRange:
    """점수 범위 테스트"""

    @given(
        severity=st.floats(min_value=1.0, max_value=10.0),
        impact_radius=st.floats(min_value=0.01, max_value=100.0),
        obs_lat=st.floats(min_value=-90.0, max_value=90.0),
        obs_lon=st.floats(min_value=-180.0, max_value=180.0),
        hours_ago=st.floats(min_value=-48.0, max_value=100.0),
    )
    @settings(max_examples=200)
    def test_score_between_0_and_100(self, severity, impact_radius, obs_lat, obs_lon, hours_ago):
        """점수는 항상 0-100 정수"""
        inc = incident_at(severity=severity, impact_radius=impact_radius,
                          created_at=NOW - timedelta(hours=hours_ago))
        result = risk.score(inc, (obs_lat, obs_lon), NOW)
        assert isinstance(result, int)
        assert 0 <= result <= 100

    def test_round_half_up(self):
        """0.5는 올림"""
        assert risk.round_half_up(77.5) == 78
        assert risk.round_half_up(77.49) == 77
        assert risk.round_half_up(0.5) == 1


class TestInvalidInput:
    """잘못된 입력 테스트"""

    @pytest.mark.parametrize("field,value", [
        ("severity", None),
        ("severity", float("nan")),
        ("severity", float("inf")),
        ("impact_radius", None),
        ("impact_radius", 0.0),
        ("impact_radius", -1.0),
        ("impact_radius", float("nan")),
        ("created_at", None),
        ("location", None),
    ])
    def test_invalid_incident_fields(self, field, value):
        """필수 필드 누락/비유한 값은 InvalidInput"""
        data = {
            "severity": 5.0,
            "impact_radius": 1.0,
            "created_at": NOW,
            "location": GeoPoint(latitude=37.5, longitude=127.0),
        }
        data[field] = value
        with pytest.raises(InvalidInput):
            risk.score(SimpleNamespace(**data), (37.5, 127.0), NOW)

    @pytest.mark.parametrize("observer", [
        None,
        (float("nan"), 127.0),
        (37.5, float("inf")),
        (91.0, 0.0),
        {"latitude": 37.5},
        "somewhere",
    ])
    def test_invalid_observer(self, observer):
        """관찰자 위치가 없거나 비유한이면 InvalidInput"""
        with pytest.raises(InvalidInput):
            risk.score(incident_at(), observer, NOW)

    def test_invalid_input_is_value_error(self):
        """InvalidInput은 ValueError 하위 클래스"""
        with pytest.raises(ValueError):
            risk.score(None, (0.0, 0.0), NOW)


class TestRiskLevel:
    """위험 등급 테스트"""

    @pytest.mark.parametrize("value,level", [
        (100, "Critical"), (80, "Critical"), (79, "High"), (60, "High"),
        (59, "Moderate"), (40, "Moderate"), (39, "Low"), (20, "Low"),
        (19, "Minimal"), (0, "Minimal"),
    ])
    def test_bands(self, value, level):
        """등급 경계값"""
        assert risk.risk_level(value) == level

    @given(value=st.integers(min_value=0, max_value=100))
    def test_level_is_monotonic(self, value):
        """점수가 높을수록 등급이 낮아지지 않음"""
        order = ["Minimal", "Low", "Moderate", "High", "Critical"]
        if value < 100:
            assert order.index(risk.risk_level(value)) <= order.index(risk.risk_level(value + 1))


class TestRecommendedActions:
    """권장 행동 테스트"""

    def test_specific_action_for_known_category(self):
        """유형별 권장 행동"""
        actions = risk.recommended_actions(85, "Flood")
        assert actions["specific_action"].startswith("Move to higher ground")
        assert actions["general_action"] == risk.GENERAL_ACTIONS["Critical"]

    def test_falls_back_to_general(self):
        """유형별 문구가 없으면 일반 문구"""
        actions = risk.recommended_actions(10, "Earthquake")
        assert actions["specific_action"] == actions["general_action"] == risk.GENERAL_ACTIONS["Minimal"]

    def test_unknown_category(self):
        """알 수 없는 유형"""
        actions = risk.recommended_actions(65, None)
        assert actions["specific_action"] == risk.GENERAL_ACTIONS["High"]
