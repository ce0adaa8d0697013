"""
SQLite-based TTL cache for RiskWatch.

This module implements the shared cache port used for
cluster and statistics caching.
"""

import aiosqlite
import time
from typing import Callable, Optional
from riskwatch.core.errors import CollaboratorUnavailable
from riskwatch.observability.logging_setup import get_logger

log = get_logger("riskwatch.cache")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS cache (
    k TEXT PRIMARY KEY,
    v TEXT NOT NULL,
    exp REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cache_exp ON cache(exp);
"""

class SQLiteCache:
    """SQLite 기반 TTL 캐시"""

    def __init__(self, path: str, clock: Callable[[], float] = time.time):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
            clock: 현재 시각 함수 (Unix timestamp)
        """
        self.path = path
        self._clock = clock
        log.info(f"SQLiteCache 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        log.info("SQLiteCache 스키마 초기화 완료")

    async def get(self, key: str) -> Optional[str]:
        """
        만료되지 않은 값을 조회합니다.

        Args:
            key: 조회할 키

        Returns:
            값 또는 None
        """
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "SELECT v FROM cache WHERE k = ? AND exp > ?",
                    (key, self._clock())
                )
                row = await cursor.fetchone()
                return row[0] if row else None
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("cache", e) from e

    async def set_with_ttl(self, key: str, value: str, ttl_sec: int) -> None:
        """
        값을 TTL과 함께 저장합니다 (upsert).

        Args:
            key: 저장할 키
            value: 저장할 값
            ttl_sec: TTL (초)
        """
        exp = self._clock() + ttl_sec
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute(
                    "INSERT INTO cache (k, v, exp) VALUES (?, ?, ?) "
                    "ON CONFLICT(k) DO UPDATE SET v = excluded.v, exp = excluded.exp",
                    (key, value, exp)
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("cache", e) from e

    async def gc(self, now: Optional[float] = None) -> int:
        """
        만료된 항목들을 정리합니다.

        Args:
            now: 현재 시간 (Unix timestamp), None이면 현재 시간 사용

        Returns:
            삭제된 항목 수
        """
        if now is None:
            now = self._clock()

        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("DELETE FROM cache WHERE exp <= ?", (now,))
            await db.commit()
            deleted = cursor.rowcount
            if deleted > 0:
                log.info(f"만료된 캐시 항목 {deleted}개 정리됨")
            return deleted
