"""
SQLite-based relationship graph store for RiskWatch.

Keyword and place nodes are merged by identity; edges are unique
per (incident, kind, name) so repeated merges never duplicate.
"""

from typing import Iterable, List, Tuple

import aiosqlite

from riskwatch.core.errors import CollaboratorUnavailable
from riskwatch.observability.logging_setup import get_logger

log = get_logger("riskwatch.graph_store")

KEYWORD = "keyword"
PLACE = "place"

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS nodes (
    kind TEXT NOT NULL,
    name TEXT NOT NULL,
    PRIMARY KEY (kind, name)
);
CREATE TABLE IF NOT EXISTS edges (
    incident_id TEXT NOT NULL,
    kind TEXT NOT NULL,
    name TEXT NOT NULL,
    PRIMARY KEY (incident_id, kind, name)
);
CREATE INDEX IF NOT EXISTS idx_edges_node ON edges(kind, name);
"""

class SQLiteGraphStore:
    """SQLite 기반 관계 그래프 저장소"""

    def __init__(self, path: str):
        self.path = path
        log.info(f"SQLiteGraphStore 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        log.info("SQLiteGraphStore 스키마 초기화 완료")

    async def _merge(self, incident_id: str, kind: str, names: Iterable[str]) -> int:
        created = 0
        try:
            async with aiosqlite.connect(self.path) as db:
                for name in names:
                    await db.execute("INSERT OR IGNORE INTO nodes (kind, name) VALUES (?, ?)", (kind, name))
                    cursor = await db.execute(
                        "INSERT OR IGNORE INTO edges (incident_id, kind, name) VALUES (?, ?, ?)",
                        (incident_id, kind, name)
                    )
                    created += max(0, cursor.rowcount)
                await db.commit()
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("graph_store", e) from e
        return created

    async def merge_keyword_edges(self, incident_id: str, keywords: Iterable[str]) -> int:
        """
        키워드 노드와 간선을 병합합니다.

        Returns:
            새로 생성된 간선 수
        """
        return await self._merge(incident_id, KEYWORD, keywords)

    async def merge_place_edge(self, incident_id: str, place_name: str) -> bool:
        return await self._merge(incident_id, PLACE, [place_name]) > 0

    async def _neighbors(self, incident_id: str, kind: str) -> List[Tuple[str, int]]:
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "SELECT other.incident_id, COUNT(*) FROM edges AS mine "
                    "JOIN edges AS other ON other.kind = mine.kind AND other.name = mine.name "
                    "WHERE mine.incident_id = ? AND mine.kind = ? AND other.incident_id <> mine.incident_id "
                    "GROUP BY other.incident_id",
                    (incident_id, kind)
                )
                return [(row[0], row[1]) for row in await cursor.fetchall()]
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("graph_store", e) from e

    async def keyword_neighbors(self, incident_id: str) -> List[Tuple[str, int]]:
        return await self._neighbors(incident_id, KEYWORD)

    async def place_neighbors(self, incident_id: str) -> List[str]:
        return [other for other, _ in await self._neighbors(incident_id, PLACE)]

    async def edges_for(self, incident_id: str) -> List[Tuple[str, str]]:
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "SELECT kind, name FROM edges WHERE incident_id = ? ORDER BY kind, name",
                    (incident_id,)
                )
                return [(row[0], row[1]) for row in await cursor.fetchall()]
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("graph_store", e) from e

    async def delete_incident(self, incident_id: str) -> int:
        """
        인시던트의 간선과 고립된 노드를 삭제합니다.

        Returns:
            삭제된 간선 수
        """
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute("DELETE FROM edges WHERE incident_id = ?", (incident_id,))
                deleted = cursor.rowcount
                await db.execute(
                    "DELETE FROM nodes WHERE NOT EXISTS "
                    "(SELECT 1 FROM edges WHERE edges.kind = nodes.kind AND edges.name = nodes.name)"
                )
                await db.commit()
                return deleted
        except aiosqlite.Error as e:
            raise CollaboratorUnavailable("graph_store", e) from e
