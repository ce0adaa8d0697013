"""
Local MQTT delivery adapter for RiskWatch.

This module implements the delivery transport port over a local
MQTT broker with the outbox pattern: broadcast() and
send_to_observer() only enqueue, and a background worker drains
the outbox to the broker with retries and exponential backoff.
"""

import asyncio
import json
from typing import Any, Dict, Optional
from aiomqtt import Client, MqttError, TLSParameters, Will
from riskwatch.adapters.storage.sqlite_outbox import OutboxItem, SQLiteOutbox
from riskwatch.common.retry import exponential_backoff
from riskwatch.observability import metrics
from riskwatch.observability.logging_setup import get_logger

log = get_logger("riskwatch.mqtt_local")

class LocalMqttPublisher:
    """로컬 MQTT 전송 어댑터 (Outbox 패턴)"""

    def __init__(self,
                 *,
                 broker_host: str,
                 broker_port: int,
                 topic_prefix: str,
                 outbox: SQLiteOutbox,
                 username: str | None = None,
                 password: str | None = None,
                 tls: bool = False,
                 client_id: str | None = None,
                 keepalive: int = 30,
                 lwt_topic: str = "riskwatch/state",
                 lwt_payload_online: str = "online",
                 lwt_payload_offline: str = "offline",
                 qos_default: int = 1,
                 retain_default: bool = False,
                 backoff_initial: float = 0.5,
                 backoff_max: float = 30.0,
                 max_retries: int = 10,
                 batch_size: int = 50):
        """
        초기화합니다.

        Args:
            broker_host: MQTT 브로커 호스트
            broker_port: MQTT 브로커 포트
            topic_prefix: 토픽 접두사
            outbox: Outbox 인스턴스
            username: 사용자명
            password: 비밀번호
            tls: TLS 사용 여부
            client_id: 클라이언트 ID
            keepalive: keepalive 시간
            lwt_topic: Last Will and Testament 토픽
            lwt_payload_online: 온라인 상태 페이로드
            lwt_payload_offline: 연결이 끊겼을 때 브로커가 보내는 LWT 페이로드
            qos_default: 기본 QoS
            retain_default: 기본 retain 플래그
            backoff_initial: 초기 백오프 시간
            backoff_max: 최대 백오프 시간
            max_retries: 항목별 최대 발송 시도 횟수
            batch_size: 한 번에 꺼내는 Outbox 항목 수
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic_prefix = topic_prefix.rstrip("/")
        self.outbox = outbox
        self.username = username
        self.password = password
        self.tls = tls
        self.client_id = client_id
        self.keepalive = keepalive
        self.lwt_topic = lwt_topic
        self.lwt_payload_online = lwt_payload_online
        self.lwt_payload_offline = lwt_payload_offline
        self.qos_default = qos_default
        self.retain_default = retain_default
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.max_retries = max_retries
        self.batch_size = batch_size

        self._running = False
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def event_topic(self, topic: str) -> str:
        return f"{self.topic_prefix}/events/{topic}"

    def observer_topic(self, observer_id: str) -> str:
        return f"{self.topic_prefix}/observers/{observer_id}/notification"

    def topic_kind(self, topic: str) -> str:
        """
        메트릭 라벨용 토픽 종류를 반환합니다.

        관찰자 토픽은 관찰자 ID를 포함하므로 하나의 "observers" 라벨로 묶습니다.
        """
        if topic.startswith(f"{self.topic_prefix}/observers/"):
            return "observers"
        events = f"{self.topic_prefix}/events/"
        if topic.startswith(events):
            return f"events/{topic[len(events):]}"
        return "other"

    async def broadcast(self, topic: str, payload: Dict[str, Any]) -> None:
        """기본 채널(events/<topic>)로 이벤트를 Outbox에 추가합니다."""
        await self.enqueue_json(self.event_topic(topic), payload)

    async def send_to_observer(self, observer_id: str, payload: Dict[str, Any]) -> None:
        """관찰자 전용 토픽으로 알림을 Outbox에 추가합니다."""
        await self.enqueue_json(self.observer_topic(observer_id), payload)

    async def enqueue_json(self, topic: str, payload_obj: Dict[str, Any],
                           qos: Optional[int] = None, retain: Optional[bool] = None) -> int:
        """
        JSON 객체를 Outbox에 추가합니다.

        Args:
            topic: 전체 토픽
            payload_obj: 발송할 JSON 객체
            qos: QoS 레벨 (None이면 기본값 사용)
            retain: retain 플래그 (None이면 기본값 사용)

        Returns:
            생성된 Outbox 항목의 ID
        """
        payload = json.dumps(payload_obj, ensure_ascii=False, default=str).encode("utf-8")
        return await self.outbox.enqueue(
            topic,
            payload,
            self.qos_default if qos is None else qos,
            self.retain_default if retain is None else retain
        )

    def _client(self) -> Client:
        kwargs: Dict[str, Any] = {
            "hostname": self.broker_host,
            "port": self.broker_port,
            "keepalive": self.keepalive,
            "will": Will(topic=self.lwt_topic, payload=self.lwt_payload_offline, qos=1, retain=True),
        }
        if self.username:
            kwargs["username"] = self.username
        if self.password:
            kwargs["password"] = self.password
        if self.client_id:
            kwargs["identifier"] = self.client_id
        if self.tls:
            kwargs["tls_params"] = TLSParameters()
        return Client(**kwargs)

    async def start(self) -> None:
        """발송 워커를 시작합니다 (연결 끊김 시 백오프 후 재연결)."""
        self._running = True
        attempt = 0

        while self._running:
            try:
                async with self._client() as client:
                    self._connected = True
                    attempt = 0
                    await client.publish(self.lwt_topic, self.lwt_payload_online, qos=1, retain=True)
                    log.info(f"로컬 MQTT 브로커 연결됨: {self.broker_host}:{self.broker_port}")

                    while self._running:
                        try:
                            sent = await self._process_outbox(client)
                        except MqttError:
                            raise
                        except Exception as e:
                            # Outbox 저장소 오류는 연결을 유지한 채 대기 후 재시도
                            log.error(f"Outbox 처리 오류: {type(e).__name__}: {e}")
                            await asyncio.sleep(min(5.0, self.backoff_max))
                            continue
                        if sent == 0:
                            await asyncio.sleep(1)
            except MqttError as e:
                attempt += 1
                log.error(f"로컬 MQTT 연결 오류 attempt:{attempt} error:{str(e)}")
            finally:
                self._connected = False

            if self._running:
                await exponential_backoff(attempt, self.backoff_initial, self.backoff_max)

        log.info("로컬 MQTT 발송 워커 종료됨")

    async def _process_outbox(self, client: Client) -> int:
        """
        Outbox의 메시지를 오래된 순으로 발송합니다.

        Returns:
            발송에 성공한 항목 수
        """
        await self.outbox.purge_exhausted(self.max_retries)
        items = await self.outbox.peek_batch(self.batch_size)
        metrics.outbox_size.set(await self.outbox.get_count())

        sent = 0
        for item in items:
            if not await self._publish_item(client, item):
                break
            sent += 1
        return sent

    async def _publish_item(self, client: Client, item: OutboxItem) -> bool:
        try:
            await client.publish(item.topic, item.payload, qos=item.qos, retain=item.retain)
        except MqttError as e:
            log.error(f"메시지 발송 실패: id:{item.id} topic:{item.topic} error:{str(e)}")
            metrics.publish_retries.labels(kind=self.topic_kind(item.topic)).inc()
            await self.outbox.mark_attempt(item.id)
            await exponential_backoff(item.attempts + 1, self.backoff_initial, self.backoff_max)
            return False

        await self.outbox.delete(item.id)
        log.debug(f"메시지 발송 성공: id:{item.id} topic:{item.topic}")
        return True

    async def stop(self) -> None:
        """발송을 중지합니다."""
        self._running = False
