"""
Deterministic analyzer for RiskWatch.

Echoes the analysis already stored on an incident without any
external call. Used in dry-run mode and wherever a stable
analysis result is needed: reprocessing an incident with this
analyzer never changes its severity or impact radius.
"""

import re
from typing import List

from riskwatch.core.models import KNOWN_CATEGORIES, Incident, IncidentAnalysis
from riskwatch.observability.logging_setup import get_logger

log = get_logger("riskwatch.analysis.static")

_WORD = re.compile(r"[\w-]+")

class StaticAnalyzer:
    """저장된 분석 값을 그대로 돌려주는 분석기"""

    MODEL_NAME = "static-echo-v1"

    def __init__(self, max_keywords: int = 5):
        self.max_keywords = max_keywords
        log.info(f"정적 분석기 초기화됨: {self.MODEL_NAME}")

    def _keywords(self, incident: Incident) -> List[str]:
        if incident.metadata.keywords:
            return list(incident.metadata.keywords)
        # 설명에 등장하는 재해 유형 단어를 키워드로 사용
        vocabulary = {w.casefold() for c in KNOWN_CATEGORIES for w in c.split()}
        found: List[str] = []
        for word in _WORD.findall(incident.description.casefold()):
            if word in vocabulary and word not in found:
                found.append(word)
        return found[: self.max_keywords]

    async def analyze(self, incident: Incident) -> IncidentAnalysis:
        return IncidentAnalysis(
            category=incident.category,
            severity=incident.severity,
            impact_radius=incident.impact_radius,
            summary=incident.summary or incident.description[:200],
            keywords=self._keywords(incident),
            place_name=incident.metadata.place_name,
            region_name=incident.metadata.region_name,
            incident_name=incident.metadata.incident_name,
            needs_review=incident.needs_review,
        )
