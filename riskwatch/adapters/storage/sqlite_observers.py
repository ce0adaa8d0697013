"""
SQLite-based observer registry for RiskWatch.

Stores each observer's registered location, geofence polygon
(as a JSON list of [lon, lat] vertices) and minimum risk level.
"""

import json
from typing import List

import aiosqlite

from riskwatch.core.errors import CollaboratorUnavailable
from riskwatch.core.models import Observer
from riskwatch.observability.logging_setup import get_logger

log = get_logger("riskwatch.observers")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS observers (
    id TEXT PRIMARY KEY,
    latitude REAL NOT NULL,
    longitude REAL NOT NULL,
    geofence TEXT NOT NULL DEFAULT '[]',
    min_risk_level TEXT NOT NULL DEFAULT 'Minimal'
);
"""

class SQLiteObserverRegistry:
    """SQLite 기반 관찰자 등록소"""

    def __init__(self, path: str):
        self.path = path
        log.info(f"SQLiteObserverRegistry 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()

    async def register(self, observer: Observer) -> None:
        """관찰자를 등록하거나 갱신합니다."""
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute(
                    "INSERT INTO observers (id, latitude, longitude, geofence, min_risk_level) "
                    "VALUES (?, ?, ?, ?, ?) ON CONFLICT(id) DO UPDATE SET "
                    "latitude = excluded.latitude, longitude = excluded.longitude, "
                    "geofence = excluded.geofence, min_risk_level = excluded.min_risk_level",
                    (observer.id, observer.location.latitude, observer.location.longitude,
                     json.dumps([list(v) for v in observer.geofence]), observer.min_risk_level)
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("observer_registry", e) from e
        log.info(f"관찰자 등록됨 observer_id:{observer.id} vertices:{len(observer.geofence)}")

    async def remove(self, observer_id: str) -> bool:
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute("DELETE FROM observers WHERE id = ?", (observer_id,))
                await db.commit()
                return cursor.rowcount > 0
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("observer_registry", e) from e

    async def list_geofenced(self) -> List[Observer]:
        """지오펜스(꼭짓점 3개 이상)가 있는 관찰자 목록."""
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "SELECT id, latitude, longitude, geofence, min_risk_level FROM observers ORDER BY id"
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("observer_registry", e) from e

        observers = []
        for row in rows:
            geofence = [tuple(v) for v in json.loads(row[3] or "[]")]
            if len(geofence) < 3:
                continue
            observers.append(Observer(
                id=row[0],
                location={"latitude": row[1], "longitude": row[2]},
                geofence=geofence,
                min_risk_level=row[4],
            ))
        return observers
