"""
Verification scoring for RiskWatch.

Combines independent verification signals into a single
0-1 score and a Verified/Unverified status.
"""

from typing import Tuple

from riskwatch.core.models import VerificationSignals, VerificationStatus

USER_WEIGHT = 0.3
OFFICIAL_WEIGHT = 0.5
AI_WEIGHT = 0.2

VERIFIED_THRESHOLD = 0.7

def verification_score(signals: VerificationSignals) -> float:
    """가중 평균 검증 점수 (0-1)"""
    total = (signals.user * USER_WEIGHT
             + signals.official * OFFICIAL_WEIGHT
             + signals.ai * AI_WEIGHT)
    return max(0.0, min(1.0, total))

def verification_status(score: float) -> VerificationStatus:
    return "Verified" if score >= VERIFIED_THRESHOLD else "Unverified"

def evaluate(signals: VerificationSignals) -> Tuple[float, VerificationStatus]:
    s = verification_score(signals)
    return s, verification_status(s)
