"""
Incident analysis port interface.

This module defines the protocol for the external analysis service.
"""

from typing import Protocol
from riskwatch.core.models import Incident, IncidentAnalysis

class AnalysisPort(Protocol):
    """인시던트 분석 포트 인터페이스"""

    async def analyze(self, incident: Incident) -> IncidentAnalysis:
        """
        인시던트 설명을 구조화된 분석으로 변환합니다.

        Args:
            incident: 분석할 인시던트

        Returns:
            유형, 심각도, 영향 반경, 요약, 키워드, 장소를 담은 분석 결과
        """
        ...
