"""
Storage Adapter 모듈 단위 테스트

이 모듈은 SQLite 기반 저장소 어댑터들의 기능을 테스트합니다.
"""

import os
from datetime import timedelta

import pytest
import pytest_asyncio

from riskwatch.adapters.storage.sqlite_cache import SQLiteCache
from riskwatch.adapters.storage.sqlite_graph import SQLiteGraphStore
from riskwatch.adapters.storage.sqlite_incidents import SQLiteIncidentStore
from riskwatch.adapters.storage.sqlite_observers import SQLiteObserverRegistry
from riskwatch.adapters.storage.sqlite_outbox import SQLiteOutbox
from riskwatch.core.errors import CollaboratorUnavailable, NotFound
from riskwatch.core.models import GeoPoint, Observer, TimelineEntry


class FakeClock:
    """조작 가능한 시계"""

    def __init__(self, t: float = 1_000_000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


class TestSQLiteCache:
    """SQLite TTL 캐시 테스트"""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest_asyncio.fixture
    async def cache(self, temp_db_path, clock):
        c = SQLiteCache(temp_db_path, clock=clock)
        await c.init()
        return c

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache):
        """저장 후 조회"""
        await cache.set_with_ttl("k", "v", 60)
        assert await cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_miss(self, cache):
        """없는 키는 None"""
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_expiry(self, cache, clock):
        """TTL 경과 후 None"""
        await cache.set_with_ttl("k", "v", 60)
        clock.t += 61
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_upsert_last_writer_wins(self, cache):
        """같은 키는 마지막 값으로 갱신"""
        await cache.set_with_ttl("k", "v1", 60)
        await cache.set_with_ttl("k", "v2", 60)
        assert await cache.get("k") == "v2"

    @pytest.mark.asyncio
    async def test_gc(self, cache, clock):
        """만료 항목 정리"""
        await cache.set_with_ttl("a", "1", 10)
        await cache.set_with_ttl("b", "2", 100)
        clock.t += 50
        assert await cache.gc() == 1
        assert await cache.get("b") == "2"

    @pytest.mark.asyncio
    async def test_unreadable_db_raises_collaborator_unavailable(self, tmp_path):
        """DB 오류는 CollaboratorUnavailable"""
        cache = SQLiteCache(str(tmp_path))  # 디렉터리는 DB로 열 수 없음
        with pytest.raises(CollaboratorUnavailable):
            await cache.get("k")


class TestSQLiteIncidentStore:
    """SQLite 인시던트 저장소 테스트"""

    @pytest_asyncio.fixture
    async def store(self, temp_db_path):
        s = SQLiteIncidentStore(temp_db_path)
        await s.init()
        return s

    @pytest.mark.asyncio
    async def test_save_and_get(self, store, incident_factory):
        """저장 후 조회"""
        inc = incident_factory("a", keywords=["flood"], place_name="Han River")
        await store.save(inc)

        loaded = await store.get("a")
        assert loaded is not None
        assert loaded.severity == inc.severity
        assert loaded.created_at == inc.created_at
        assert loaded.metadata.keywords == ["flood"]
        assert loaded.metadata.place_name == "Han River"

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        """없는 id는 None"""
        assert await store.get("nope") is None

    @pytest.mark.asyncio
    async def test_find_recent(self, store, incident_factory, now):
        """기준 시각 이후 생성 인시던트만 오름차순으로"""
        await store.save(incident_factory("old", minutes_ago=120))
        await store.save(incident_factory("b", minutes_ago=5))
        await store.save(incident_factory("a", minutes_ago=20))

        found = await store.find_recent(now - timedelta(minutes=30))
        assert [i.id for i in found] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_timeline_append_only(self, store, incident_factory, now):
        """save는 타임라인을 덮어쓰지 않음"""
        inc = incident_factory("a")
        await store.save(inc)
        await store.append_timeline("a", TimelineEntry(update="first", timestamp=now, severity=6.0))
        await store.append_timeline("a", TimelineEntry(update="second", timestamp=now, severity=7.0))

        inc.severity = 7.0
        await store.save(inc)  # 타임라인이 빈 모델로 저장

        loaded = await store.get("a")
        assert [e.update for e in loaded.timeline] == ["first", "second"]
        assert loaded.severity == 7.0

    @pytest.mark.asyncio
    async def test_append_timeline_missing_incident(self, store, now):
        """없는 인시던트에 타임라인 추가는 NotFound"""
        with pytest.raises(NotFound):
            await store.append_timeline("ghost", TimelineEntry(update="x", timestamp=now))

    @pytest.mark.asyncio
    async def test_get_many_preserves_order(self, store, incident_factory):
        """요청 순서 유지, 없는 id 무시"""
        for i in ("a", "b", "c"):
            await store.save(incident_factory(i))
        found = await store.get_many(["c", "x", "a", "c"])
        assert [i.id for i in found] == ["c", "a"]

    @pytest.mark.asyncio
    async def test_find_within_radius(self, store, incident_factory):
        """반경 내 인시던트만 최신순"""
        await store.save(incident_factory("near-old", lat=37.5665, lon=126.9780, minutes_ago=30))
        await store.save(incident_factory("near-new", lat=37.5670, lon=126.9785, minutes_ago=5))
        await store.save(incident_factory("far", lat=35.1796, lon=129.0756))

        found = await store.find_within_radius(GeoPoint(latitude=37.5665, longitude=126.9780), 1000.0)
        assert [i.id for i in found] == ["near-new", "near-old"]

        limited = await store.find_within_radius(GeoPoint(latitude=37.5665, longitude=126.9780), 1000.0, limit=1)
        assert [i.id for i in limited] == ["near-new"]


class TestSQLiteGraphStore:
    """SQLite 관계 그래프 저장소 테스트"""

    @pytest_asyncio.fixture
    async def graph(self, temp_db_path):
        g = SQLiteGraphStore(temp_db_path)
        await g.init()
        return g

    @pytest.mark.asyncio
    async def test_merge_is_idempotent(self, graph):
        """같은 키워드 병합은 간선을 중복 생성하지 않음"""
        assert await graph.merge_keyword_edges("a", ["flood", "river"]) == 2
        assert await graph.merge_keyword_edges("a", ["flood", "river"]) == 0
        assert await graph.merge_place_edge("a", "Han River") is True
        assert await graph.merge_place_edge("a", "Han River") is False
        assert await graph.edges_for("a") == [("keyword", "flood"), ("keyword", "river"), ("place", "Han River")]

    @pytest.mark.asyncio
    async def test_keyword_neighbors_count_shared(self, graph):
        """공유 키워드 수 집계, 자기 자신 제외"""
        await graph.merge_keyword_edges("a", ["flood", "river", "rain"])
        await graph.merge_keyword_edges("b", ["flood", "river"])
        await graph.merge_keyword_edges("c", ["rain"])
        await graph.merge_keyword_edges("d", ["fire"])

        neighbors = dict(await graph.keyword_neighbors("a"))
        assert neighbors == {"b": 2, "c": 1}

    @pytest.mark.asyncio
    async def test_place_neighbors(self, graph):
        """장소 공유 인시던트"""
        await graph.merge_place_edge("a", "Han River")
        await graph.merge_place_edge("b", "Han River")
        await graph.merge_place_edge("c", "Busan")
        assert await graph.place_neighbors("a") == ["b"]

    @pytest.mark.asyncio
    async def test_delete_incident(self, graph):
        """인시던트 간선 삭제"""
        await graph.merge_keyword_edges("a", ["flood"])
        await graph.merge_keyword_edges("b", ["flood"])
        assert await graph.delete_incident("a") == 1
        assert await graph.edges_for("a") == []
        assert await graph.keyword_neighbors("b") == []


class TestSQLiteObserverRegistry:
    """SQLite 관찰자 등록소 테스트"""

    @pytest_asyncio.fixture
    async def registry(self, temp_db_path):
        r = SQLiteObserverRegistry(temp_db_path)
        await r.init()
        return r

    @pytest.mark.asyncio
    async def test_register_and_list(self, registry, sample_polygon):
        """지오펜스 관찰자만 조회"""
        await registry.register(Observer(id="o1", location={"latitude": 37.5, "longitude": 126.5},
                                         geofence=sample_polygon, min_risk_level="High"))
        await registry.register(Observer(id="o2", location={"latitude": 37.5, "longitude": 126.5}))

        observers = await registry.list_geofenced()
        assert [o.id for o in observers] == ["o1"]
        assert observers[0].geofence == sample_polygon
        assert observers[0].min_risk_level == "High"

    @pytest.mark.asyncio
    async def test_register_upserts(self, registry, sample_polygon):
        """재등록은 갱신"""
        await registry.register(Observer(id="o1", location={"latitude": 37.5, "longitude": 126.5},
                                         geofence=sample_polygon))
        await registry.register(Observer(id="o1", location={"latitude": 37.6, "longitude": 126.6},
                                         geofence=sample_polygon))
        observers = await registry.list_geofenced()
        assert len(observers) == 1
        assert observers[0].location.latitude == 37.6

    @pytest.mark.asyncio
    async def test_remove(self, registry, sample_polygon):
        """삭제"""
        await registry.register(Observer(id="o1", location={"latitude": 37.5, "longitude": 126.5},
                                         geofence=sample_polygon))
        assert await registry.remove("o1") is True
        assert await registry.remove("o1") is False
        assert await registry.list_geofenced() == []


class TestSQLiteOutbox:
    """SQLite Outbox 테스트"""

    @pytest_asyncio.fixture
    async def outbox(self, temp_db_path):
        o = SQLiteOutbox(temp_db_path)
        await o.init()
        return o

    @pytest.mark.asyncio
    async def test_outbox_init_schema(self, outbox):
        """Outbox 스키마 초기화 테스트"""
        assert os.path.exists(outbox.path)
        assert await outbox.get_count() == 0

    @pytest.mark.asyncio
    async def test_fifo_order(self, outbox):
        """오래된 순으로 조회"""
        first = await outbox.enqueue("t/1", b"1")
        second = await outbox.enqueue("t/2", b"2", qos=0, retain=True)

        items = await outbox.peek_batch(10)
        assert [i.id for i in items] == [first, second]
        assert items[1].retain is True
        assert items[1].qos == 0
        assert (await outbox.peek_oldest()).id == first

    @pytest.mark.asyncio
    async def test_attempts_and_purge(self, outbox):
        """시도 횟수 증가와 초과 항목 정리"""
        oid = await outbox.enqueue("t", b"x")
        keep = await outbox.enqueue("t", b"y")
        for _ in range(3):
            await outbox.mark_attempt(oid)

        assert await outbox.purge_exhausted(3) == 1
        items = await outbox.peek_batch()
        assert [i.id for i in items] == [keep]

    @pytest.mark.asyncio
    async def test_delete(self, outbox):
        """발송 완료 항목 삭제"""
        oid = await outbox.enqueue("t", b"x")
        await outbox.delete(oid)
        assert await outbox.get_count() == 0

    @pytest.mark.asyncio
    async def test_db_errors_raise_collaborator_unavailable(self, tmp_path):
        """조회/갱신 중 DB 오류는 모두 CollaboratorUnavailable"""
        outbox = SQLiteOutbox(str(tmp_path))  # 디렉터리는 DB로 열 수 없음
        calls = [
            outbox.peek_batch(),
            outbox.peek_oldest(),
            outbox.mark_attempt(1),
            outbox.delete(1),
            outbox.purge_exhausted(3),
            outbox.get_count(),
        ]
        for call in calls:
            with pytest.raises(CollaboratorUnavailable) as exc_info:
                await call
            assert exc_info.value.collaborator == "outbox"
