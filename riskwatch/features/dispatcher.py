"""
Notification dispatcher for RiskWatch.

Fans events out to observers through the delivery transport.
Delivery is fire-and-forget: transport failures are logged and
counted, never raised to the caller.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from riskwatch.core.errors import InvalidInput
from riskwatch.core.models import MAX_SEVERITY, Cluster, Incident, Notification, RelatedIncident
from riskwatch.core.notification import build_notification, in_geofence, meets_preference
from riskwatch.observability import metrics
from riskwatch.observability.logging_setup import get_logger
from riskwatch.ports.observers import ObserverRegistryPort
from riskwatch.ports.transport import DeliveryTransportPort

log = get_logger("riskwatch.dispatcher")

# 이벤트 토픽
INCIDENT_UPDATED = "incidentUpdated"
NEW_INCIDENT = "newIncident"
CLUSTER_UPDATED = "clusterUpdated"
VERIFICATION_UPDATED = "verificationUpdated"
USER_NOTIFICATION = "userNotification"

TOPICS = (INCIDENT_UPDATED, NEW_INCIDENT, CLUSTER_UPDATED, VERIFICATION_UPDATED, USER_NOTIFICATION)

def incident_payload(incident: Incident) -> Dict[str, Any]:
    """인시던트를 이벤트 페이로드로 변환합니다."""
    return {
        "incidentId": incident.id,
        "category": incident.category,
        "description": incident.description,
        "location": {
            "latitude": incident.location.latitude,
            "longitude": incident.location.longitude,
        },
        "severity": incident.severity,
        "impactRadius": incident.impact_radius,
        "summary": incident.summary,
        "keywords": list(incident.metadata.keywords),
        "placeName": incident.metadata.place_name,
        "regionName": incident.metadata.region_name,
        "incidentName": incident.metadata.incident_name,
        "needsReview": incident.needs_review,
        "verificationScore": incident.verification_score,
        "verificationStatus": incident.verification_status,
        "status": incident.status,
        "createdAt": incident.created_at.isoformat(),
        "updatedAt": incident.updated_at.isoformat() if incident.updated_at else None,
    }

def cluster_payload(clusters: Iterable[Cluster]) -> Dict[str, Any]:
    items = [
        {
            "centroid": {"latitude": c.centroid.latitude, "longitude": c.centroid.longitude},
            "incidentIds": list(c.incident_ids),
            "size": c.size,
        }
        for c in clusters
    ]
    return {"clusters": items, "count": len(items)}

def notification_payload(notification: Notification) -> Dict[str, Any]:
    return {
        "observerId": notification.observer_id,
        "urgency": notification.urgency,
        "message": notification.message,
        "riskScore": notification.risk_score,
        "riskLevel": notification.risk_level,
        "incidentId": notification.incident_id,
    }

class NotificationDispatcher:
    """이벤트 발송기 (브로드캐스트 + 관찰자 대상 알림)"""

    def __init__(self,
                 transport: DeliveryTransportPort,
                 observers: Optional[ObserverRegistryPort] = None,
                 *,
                 send_timeout_sec: float = 10.0,
                 max_severity: float = MAX_SEVERITY):
        """
        초기화합니다.

        Args:
            transport: 전송 어댑터
            observers: 지오펜스 관찰자 등록소 (없으면 대상 알림 비활성)
            send_timeout_sec: 전송 호출별 타임아웃 (초)
            max_severity: 심각도 척도 최댓값
        """
        self.transport = transport
        self.observers = observers
        self.send_timeout_sec = send_timeout_sec
        self.max_severity = max_severity

    async def publish(self, topic: str, payload: Dict[str, Any],
                      observer_id: Optional[str] = None) -> bool:
        """
        이벤트를 발송합니다.

        userNotification은 observer_id 대상으로, 나머지는 기본 채널로
        브로드캐스트합니다.

        Returns:
            전송 어댑터가 수락했으면 True

        Raises:
            InvalidInput: 알 수 없는 토픽이거나 대상 관찰자가 없는 경우
        """
        if topic not in TOPICS:
            raise InvalidInput(f"unknown topic: {topic}", {"topic": topic})
        if topic == USER_NOTIFICATION and not observer_id:
            raise InvalidInput("userNotification requires an observer id", {"topic": topic})

        try:
            if topic == USER_NOTIFICATION:
                send = self.transport.send_to_observer(observer_id, payload)
            else:
                send = self.transport.broadcast(topic, payload)
            await asyncio.wait_for(send, timeout=self.send_timeout_sec)
        except Exception as e:
            metrics.delivery_failures.labels(topic=topic).inc()
            log.warning(f"이벤트 전송 실패 (무시) topic:{topic} observer_id:{observer_id} "
                        f"error:{type(e).__name__}: {e}")
            return False

        metrics.events_published.labels(topic=topic).inc()
        return True

    async def incident_updated(self, incident: Incident,
                               related: Optional[List[RelatedIncident]] = None) -> bool:
        payload = incident_payload(incident)
        payload["relatedIncidents"] = [
            {
                "incidentId": r.incident.id,
                "category": r.incident.category,
                "sharedKeywords": r.shared_keyword_count,
            }
            for r in related or []
        ]
        return await self.publish(INCIDENT_UPDATED, payload)

    async def new_incident(self, incident: Incident) -> bool:
        return await self.publish(NEW_INCIDENT, incident_payload(incident))

    async def cluster_updated(self, clusters: List[Cluster]) -> bool:
        return await self.publish(CLUSTER_UPDATED, cluster_payload(clusters))

    async def verification_updated(self, incident_id: str, score: float, status: str) -> bool:
        return await self.publish(VERIFICATION_UPDATED, {
            "incidentId": incident_id,
            "score": score,
            "status": status,
        })

    async def notify_observer(self, notification: Notification) -> bool:
        return await self.publish(USER_NOTIFICATION, notification_payload(notification),
                                  observer_id=notification.observer_id)

    async def notify_geofenced(self, incident: Incident, now: datetime) -> int:
        """
        인시던트 지점을 지오펜스에 포함하는 관찰자에게 알림을 보냅니다.

        긴급도 문구는 관찰자 등록 위치에서 평가한 위험 등급을 따릅니다.

        Args:
            incident: 대상 인시던트
            now: 기준 시각

        Returns:
            전송된 알림 수
        """
        if self.observers is None:
            return 0

        try:
            observers = await asyncio.wait_for(self.observers.list_geofenced(),
                                               timeout=self.send_timeout_sec)
        except Exception as e:
            log.warning(f"관찰자 목록 조회 실패 (알림 생략) incident_id:{incident.id} error:{e}")
            return 0

        sent = 0
        for observer in observers:
            if not in_geofence(incident, observer):
                continue
            notification = build_notification(incident, observer, now, max_severity=self.max_severity)
            if not meets_preference(notification.risk_level, observer):
                log.debug(f"관찰자 선호 등급 미만 observer_id:{observer.id} level:{notification.risk_level}")
                continue
            if await self.notify_observer(notification):
                sent += 1

        if sent:
            log.info(f"지오펜스 알림 발송 incident_id:{incident.id} sent:{sent}")
        return sent
