"""
Delivery transport port interface.

This module defines the protocol for best-effort event delivery
to connected observers.
"""

from typing import Any, Dict, Protocol

class DeliveryTransportPort(Protocol):
    """이벤트 전송 포트 인터페이스"""

    async def broadcast(self, topic: str, payload: Dict[str, Any]) -> None:
        """
        기본 채널의 모든 관찰자에게 이벤트를 전송합니다.

        Args:
            topic: 이벤트 토픽
            payload: 이벤트 페이로드
        """
        ...

    async def send_to_observer(self, observer_id: str, payload: Dict[str, Any]) -> None:
        """
        특정 관찰자에게 이벤트를 전송합니다.

        Args:
            observer_id: 관찰자 id
            payload: 이벤트 페이로드
        """
        ...
