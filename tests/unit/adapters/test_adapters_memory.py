"""
In-memory Adapter 모듈 단위 테스트

이 모듈은 메모리 어댑터가 포트 계약을 지키는지 테스트합니다.
"""

from datetime import timedelta

import pytest

from riskwatch.adapters.memory import InMemoryCache, InMemoryTransport
from riskwatch.core.errors import CollaboratorUnavailable, NotFound
from riskwatch.core.models import GeoPoint, TimelineEntry


class TestInMemoryIncidentStore:
    """메모리 인시던트 저장소 테스트"""

    @pytest.mark.asyncio
    async def test_save_keeps_timeline(self, memory_store, incident_factory, now):
        """save는 타임라인과 생성 시각을 유지"""
        inc = incident_factory("a")
        await memory_store.save(inc)
        await memory_store.append_timeline("a", TimelineEntry(update="x", timestamp=now))

        changed = inc.model_copy(update={"severity": 9.0, "created_at": now})
        await memory_store.save(changed)

        loaded = await memory_store.get("a")
        assert loaded.severity == 9.0
        assert loaded.created_at == inc.created_at
        assert [e.update for e in loaded.timeline] == ["x"]

    @pytest.mark.asyncio
    async def test_append_missing(self, memory_store, now):
        """없는 인시던트는 NotFound"""
        with pytest.raises(NotFound):
            await memory_store.append_timeline("ghost", TimelineEntry(update="x", timestamp=now))

    @pytest.mark.asyncio
    async def test_returns_copies(self, memory_store, incident_factory, now):
        """조회 결과 수정이 저장소에 반영되지 않음"""
        await memory_store.save(incident_factory("a"))
        loaded = await memory_store.get("a")
        loaded.severity = 1.0
        assert (await memory_store.get("a")).severity != 1.0

    @pytest.mark.asyncio
    async def test_find_recent_and_radius(self, memory_store, incident_factory, now):
        """최근 구간과 반경 조회"""
        await memory_store.save(incident_factory("new", minutes_ago=1))
        await memory_store.save(incident_factory("old", minutes_ago=90))
        await memory_store.save(incident_factory("far", lat=35.0, lon=129.0, minutes_ago=2))

        recent = await memory_store.find_recent(now - timedelta(minutes=30))
        assert [i.id for i in recent] == ["far", "new"]

        near = await memory_store.find_within_radius(GeoPoint(latitude=37.5665, longitude=126.9780), 500)
        assert [i.id for i in near] == ["new", "old"]


class TestInMemoryGraphStore:
    """메모리 그래프 저장소 테스트"""

    @pytest.mark.asyncio
    async def test_merge_and_neighbors(self, memory_graph):
        """멱등 병합과 이웃 조회"""
        assert await memory_graph.merge_keyword_edges("a", ["x", "y"]) == 2
        assert await memory_graph.merge_keyword_edges("a", ["x", "y"]) == 0
        await memory_graph.merge_keyword_edges("b", ["x"])
        assert dict(await memory_graph.keyword_neighbors("a")) == {"b": 1}
        assert await memory_graph.delete_incident("a") == 2


class TestInMemoryCache:
    """메모리 캐시 테스트"""

    @pytest.mark.asyncio
    async def test_ttl(self):
        """TTL 만료"""
        t = [100.0]
        cache = InMemoryCache(clock=lambda: t[0])
        await cache.set_with_ttl("k", "v", 10)
        assert await cache.get("k") == "v"
        t[0] += 10
        assert await cache.get("k") is None


class TestInMemoryTransport:
    """메모리 전송 어댑터 테스트"""

    @pytest.mark.asyncio
    async def test_records_and_fails(self):
        """기록 및 실패 모드"""
        transport = InMemoryTransport()
        await transport.broadcast("clusterUpdated", {"clusters": []})
        await transport.send_to_observer("o1", {"m": 1})
        assert transport.topics() == ["clusterUpdated"]
        assert transport.direct == [("o1", {"m": 1})]

        transport.fail = True
        with pytest.raises(CollaboratorUnavailable):
            await transport.broadcast("x", {})
