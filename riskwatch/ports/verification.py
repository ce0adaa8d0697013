"""
Verification port interface.

This module defines the protocol for collecting verification
signals about an incident.
"""

from typing import Protocol
from riskwatch.core.models import Incident, VerificationSignals

class VerificationPort(Protocol):
    """검증 신호 수집 포트 인터페이스"""

    async def collect(self, incident: Incident) -> VerificationSignals:
        """사용자/공식/AI 검증 신호를 수집합니다."""
        ...
