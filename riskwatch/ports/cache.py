"""
Cache port interface.

This module defines the protocol for the shared TTL cache
used by clustering and statistics.
"""

from typing import Optional, Protocol

class CachePort(Protocol):
    """TTL 캐시 포트 인터페이스"""

    async def get(self, key: str) -> Optional[str]:
        """
        키로 값을 조회합니다.

        Args:
            key: 조회할 키

        Returns:
            값 또는 None (미스 또는 만료)
        """
        ...

    async def set_with_ttl(self, key: str, value: str, ttl_sec: int) -> None:
        """
        키-값을 TTL과 함께 저장합니다 (upsert, last-writer-wins).

        Args:
            key: 저장할 키
            value: 저장할 값
            ttl_sec: TTL (초)
        """
        ...
