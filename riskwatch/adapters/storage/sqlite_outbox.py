"""
SQLite-based outbox for RiskWatch.

This module implements the outbox the MQTT delivery transport
drains. Enqueueing never waits on the broker, so event fan-out
stays fire-and-forget for the monitor loop.
"""

import aiosqlite
import time
from dataclasses import dataclass
from typing import List, Optional
from riskwatch.core.errors import CollaboratorUnavailable
from riskwatch.observability.logging_setup import get_logger

log = get_logger("riskwatch.outbox")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS outbox (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic TEXT NOT NULL,
    payload BLOB NOT NULL,
    qos INTEGER NOT NULL DEFAULT 1,
    retain INTEGER NOT NULL DEFAULT 0,
    created_at REAL NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_outbox_created ON outbox(created_at, id);
"""

@dataclass
class OutboxItem:
    """Outbox 항목"""
    id: int
    topic: str
    payload: bytes
    qos: int
    retain: bool
    attempts: int

class SQLiteOutbox:
    """SQLite 기반 Outbox"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path
        log.info(f"SQLiteOutbox 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        log.info(f"SQLiteOutbox 스키마 초기화 완료: {self.path}")

    async def enqueue(self, topic: str, payload: bytes, qos: int = 1, retain: bool = False) -> int:
        """
        메시지를 Outbox에 추가합니다.

        Returns:
            생성된 항목의 ID
        """
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "INSERT INTO outbox (topic, payload, qos, retain, created_at) VALUES (?, ?, ?, ?, ?)",
                    (topic, payload, qos, 1 if retain else 0, time.time())
                )
                await db.commit()
                return cursor.lastrowid
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("outbox", e) from e

    async def peek_batch(self, limit: int = 50) -> List[OutboxItem]:
        """
        오래된 순으로 항목들을 조회합니다 (삭제하지 않음).
        """
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "SELECT id, topic, payload, qos, retain, attempts FROM outbox "
                    "ORDER BY created_at ASC, id ASC LIMIT ?",
                    (limit,)
                )
                return [
                    OutboxItem(id=row[0], topic=row[1], payload=row[2], qos=row[3],
                               retain=bool(row[4]), attempts=row[5])
                    for row in await cursor.fetchall()
                ]
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("outbox", e) from e

    async def peek_oldest(self) -> Optional[OutboxItem]:
        items = await self.peek_batch(1)
        return items[0] if items else None

    async def mark_attempt(self, oid: int) -> None:
        """발송 시도 횟수를 증가시킵니다."""
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute("UPDATE outbox SET attempts = attempts + 1 WHERE id = ?", (oid,))
                await db.commit()
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("outbox", e) from e

    async def delete(self, oid: int) -> None:
        """발송 완료된 항목을 삭제합니다."""
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute("DELETE FROM outbox WHERE id = ?", (oid,))
                await db.commit()
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("outbox", e) from e

    async def purge_exhausted(self, max_attempts: int) -> int:
        """최대 재시도를 초과한 항목을 삭제합니다."""
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute("DELETE FROM outbox WHERE attempts >= ?", (max_attempts,))
                await db.commit()
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("outbox", e) from e
        if cursor.rowcount > 0:
            log.warning(f"최대 재시도 초과 항목 {cursor.rowcount}개 삭제")
        return cursor.rowcount

    async def get_count(self) -> int:
        """현재 저장된 항목 수를 반환합니다."""
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute("SELECT COUNT(*) FROM outbox")
                result = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("outbox", e) from e
        return result[0] if result else 0
