"""
Error hierarchy for RiskWatch.

Read paths degrade to empty results; these exceptions mark
malformed input, failed collaborators and missing write targets.
"""

import asyncio
from typing import Any, Dict, Optional


class RiskWatchError(Exception):
    """RiskWatch 공통 예외"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidInput(RiskWatchError, ValueError):
    """점수 계산/클러스터링 입력이 잘못됨 (부분 계산 없이 즉시 거부)"""


class CollaboratorUnavailable(RiskWatchError):
    """외부 협력자(분석/저장소/캐시/전송) 호출 실패 또는 타임아웃"""

    def __init__(self, collaborator: str, cause: Optional[BaseException] = None,
                 details: Optional[Dict[str, Any]] = None) -> None:
        self.collaborator = collaborator
        self.cause = cause
        if cause is None:
            reason = "unavailable"
        elif isinstance(cause, (TimeoutError, asyncio.TimeoutError)):
            reason = "timed out"
        else:
            reason = str(cause) or type(cause).__name__
        super().__init__(f"{collaborator}: {reason}", details)


class NotFound(RiskWatchError, LookupError):
    """쓰기 경로에서 대상 인시던트가 존재하지 않음"""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}", {"kind": kind, "key": key})
