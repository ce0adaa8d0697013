"""
Observer registry port interface.

This module defines the protocol for observers with registered
geofence polygons.
"""

from typing import List, Protocol
from riskwatch.core.models import Observer

class ObserverRegistryPort(Protocol):
    """관찰자 등록소 포트 인터페이스"""

    async def list_geofenced(self) -> List[Observer]:
        """지오펜스가 등록된 관찰자 목록."""
        ...

    async def register(self, observer: Observer) -> None:
        """관찰자를 등록하거나 갱신합니다."""
        ...

    async def remove(self, observer_id: str) -> bool:
        """관찰자를 삭제합니다 (존재했으면 True)."""
        ...
