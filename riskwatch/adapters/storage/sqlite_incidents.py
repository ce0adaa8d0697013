"""
SQLite-based incident store for RiskWatch.

This module implements the incident store port with an
append-only timeline table. Timestamps are stored as UTC
ISO-8601 strings so that range queries compare lexically.
"""

import json
import math
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import aiosqlite

from riskwatch.common.geo import haversine_m
from riskwatch.core.errors import CollaboratorUnavailable, NotFound
from riskwatch.core.models import GeoPoint, Incident, TimelineEntry
from riskwatch.observability.logging_setup import get_logger

log = get_logger("riskwatch.incidents")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS incidents (
    id TEXT PRIMARY KEY,
    category TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    latitude REAL NOT NULL,
    longitude REAL NOT NULL,
    severity REAL NOT NULL,
    impact_radius REAL NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT,
    summary TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    needs_review INTEGER NOT NULL DEFAULT 0,
    verification_score REAL NOT NULL DEFAULT 0,
    verification_status TEXT NOT NULL DEFAULT 'Pending',
    status TEXT NOT NULL DEFAULT 'active'
);
CREATE INDEX IF NOT EXISTS idx_incidents_created ON incidents(created_at);

CREATE TABLE IF NOT EXISTS timeline (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    incident_id TEXT NOT NULL,
    update_text TEXT NOT NULL,
    ts TEXT NOT NULL,
    severity REAL,
    impact_radius REAL,
    verification_score REAL
);
CREATE INDEX IF NOT EXISTS idx_timeline_incident ON timeline(incident_id, seq);
"""

_COLUMNS = (
    "id, category, description, latitude, longitude, severity, impact_radius, "
    "created_at, updated_at, summary, metadata, needs_review, verification_score, "
    "verification_status, status"
)

# 위도 1도 ≈ 111.32km
_METERS_PER_DEGREE = 111320.0

def _ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")

class SQLiteIncidentStore:
    """SQLite 기반 인시던트 저장소"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path
        log.info(f"SQLiteIncidentStore 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        log.info(f"SQLiteIncidentStore 스키마 초기화 완료: {self.path}")

    @staticmethod
    def _row_to_dict(row) -> Dict:
        return {
            "id": row[0],
            "category": row[1],
            "description": row[2],
            "location": {"latitude": row[3], "longitude": row[4]},
            "severity": row[5],
            "impact_radius": row[6],
            "created_at": row[7],
            "updated_at": row[8],
            "summary": row[9],
            "metadata": json.loads(row[10] or "{}"),
            "needs_review": bool(row[11]),
            "verification_score": row[12],
            "verification_status": row[13],
            "status": row[14],
        }

    async def _load(self, db: aiosqlite.Connection, rows) -> List[Incident]:
        if not rows:
            return []
        ids = [r[0] for r in rows]
        placeholders = ",".join("?" for _ in ids)
        cursor = await db.execute(
            "SELECT incident_id, update_text, ts, severity, impact_radius, verification_score "
            f"FROM timeline WHERE incident_id IN ({placeholders}) ORDER BY seq ASC",
            ids
        )
        timelines: Dict[str, List[Dict]] = {}
        for t in await cursor.fetchall():
            timelines.setdefault(t[0], []).append({
                "update": t[1],
                "timestamp": t[2],
                "severity": t[3],
                "impact_radius": t[4],
                "verification_score": t[5],
            })

        incidents = []
        for r in rows:
            data = self._row_to_dict(r)
            data["timeline"] = timelines.get(r[0], [])
            incidents.append(Incident.model_validate(data))
        return incidents

    async def find_recent(self, since: datetime) -> List[Incident]:
        """
        기준 시각 이후 생성된 인시던트를 조회합니다.

        Args:
            since: 생성 시각 하한

        Returns:
            생성 시각 오름차순 인시던트 목록
        """
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM incidents WHERE created_at >= ? ORDER BY created_at ASC, id ASC",
                    (_ts(since),)
                )
                return await self._load(db, await cursor.fetchall())
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("incident_store", e) from e

    async def get(self, incident_id: str) -> Optional[Incident]:
        found = await self.get_many([incident_id])
        return found[0] if found else None

    async def get_many(self, incident_ids: Iterable[str]) -> List[Incident]:
        ids = list(dict.fromkeys(incident_ids))
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM incidents WHERE id IN ({placeholders})",
                    ids
                )
                loaded = {i.id: i for i in await self._load(db, await cursor.fetchall())}
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("incident_store", e) from e
        return [loaded[i] for i in ids if i in loaded]

    async def save(self, incident: Incident) -> None:
        """
        인시던트를 저장합니다 (upsert, 타임라인 제외).

        Args:
            incident: 저장할 인시던트
        """
        params = (
            incident.id,
            incident.category,
            incident.description,
            incident.location.latitude,
            incident.location.longitude,
            incident.severity,
            incident.impact_radius,
            _ts(incident.created_at),
            _ts(incident.updated_at),
            incident.summary,
            incident.metadata.model_dump_json(),
            1 if incident.needs_review else 0,
            incident.verification_score,
            incident.verification_status,
            incident.status,
        )
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute(
                    f"INSERT INTO incidents ({_COLUMNS}) VALUES ({','.join('?' * 15)}) "
                    "ON CONFLICT(id) DO UPDATE SET "
                    "category = excluded.category, description = excluded.description, "
                    "latitude = excluded.latitude, longitude = excluded.longitude, "
                    "severity = excluded.severity, impact_radius = excluded.impact_radius, "
                    "updated_at = excluded.updated_at, summary = excluded.summary, "
                    "metadata = excluded.metadata, needs_review = excluded.needs_review, "
                    "verification_score = excluded.verification_score, "
                    "verification_status = excluded.verification_status, status = excluded.status",
                    params
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("incident_store", e) from e

    async def append_timeline(self, incident_id: str, entry: TimelineEntry) -> None:
        """
        타임라인 항목을 추가합니다.

        Raises:
            NotFound: 인시던트가 없는 경우
        """
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute("SELECT 1 FROM incidents WHERE id = ?", (incident_id,))
                if await cursor.fetchone() is None:
                    raise NotFound("incident", incident_id)
                await db.execute(
                    "INSERT INTO timeline (incident_id, update_text, ts, severity, impact_radius, verification_score) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (incident_id, entry.update, _ts(entry.timestamp), entry.severity,
                     entry.impact_radius, entry.verification_score)
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("incident_store", e) from e

    async def find_within_radius(self, point: GeoPoint, radius_m: float,
                                 limit: int = 50) -> List[Incident]:
        """
        지점 반경 내 인시던트를 최신순으로 조회합니다.

        경계 상자로 먼저 거른 뒤 Haversine 거리로 확정합니다.
        """
        dlat = radius_m / _METERS_PER_DEGREE
        cos_lat = math.cos(math.radians(point.latitude))
        query = f"SELECT {_COLUMNS} FROM incidents WHERE latitude BETWEEN ? AND ?"
        params: list = [point.latitude - dlat, point.latitude + dlat]
        if cos_lat > 1e-6:
            dlon = radius_m / (_METERS_PER_DEGREE * cos_lat)
            # 날짜변경선을 넘는 경우 경도 필터 생략
            if -180 <= point.longitude - dlon and point.longitude + dlon <= 180:
                query += " AND longitude BETWEEN ? AND ?"
                params += [point.longitude - dlon, point.longitude + dlon]

        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(query, params)
                rows = await cursor.fetchall()
                rows = [
                    r for r in rows
                    if haversine_m(point.latitude, point.longitude, r[3], r[4]) <= radius_m
                ]
                rows.sort(key=lambda r: r[7], reverse=True)
                return await self._load(db, rows[:limit])
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("incident_store", e) from e
