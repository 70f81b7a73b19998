from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from feedrank.feed.domain.models import Item
from feedrank.feed.infra.signal_store import MemorySignalStore
from feedrank.feed.services.pager import FeedPager
from feedrank.feed.services.rank_cache import SnapshotCache
from feedrank.infra.redis import redis_client
from feedrank.settings import settings

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _items(count: int) -> list[Item]:
	return [
		Item(id=f"p{i}", owner_id="author", created_at=NOW - timedelta(minutes=10 + i), likes=count - i)
		for i in range(count)
	]


class _CountingStore(MemorySignalStore):
	def __init__(self) -> None:
		super().__init__()
		self.pool_reads = 0

	async def get_active_items(self, limit, before):
		self.pool_reads += 1
		return await super().get_active_items(limit, before)


@pytest.mark.asyncio
async def test_concurrent_misses_build_once():
	cache = SnapshotCache(ttl_seconds=30)
	calls = 0

	async def _build():
		nonlocal calls
		calls += 1
		await asyncio.sleep(0.01)
		return _items(3)

	results = await asyncio.gather(
		*[cache.get_or_build("1000:1714564800", built_at=NOW, builder=_build) for _ in range(5)]
	)

	assert calls == 1
	assert all([item.id for item in result] == ["p0", "p1", "p2"] for result in results)


@pytest.mark.asyncio
async def test_cached_pool_roundtrips_items(fake_redis):
	cache = SnapshotCache(ttl_seconds=30)
	items = _items(2)
	await cache.set("10:1", items, built_at=NOW)

	cached = await cache.get("10:1")
	assert [(item.id, item.likes, item.created_at) for item in cached] == [
		(item.id, item.likes, item.created_at) for item in items
	]
	assert 0 < await fake_redis.ttl("feed:pool:10:1") <= 30


@pytest.mark.asyncio
async def test_expired_entry_forces_rebuild(fake_redis):
	cache = SnapshotCache()
	calls = 0

	async def _build():
		nonlocal calls
		calls += 1
		return _items(1)

	await cache.get_or_build("k", built_at=NOW, builder=_build)
	# stands in for the TTL running out
	await fake_redis.delete("feed:pool:k")
	await cache.get_or_build("k", built_at=NOW, builder=_build)

	assert calls == 2


@pytest.mark.asyncio
async def test_corrupt_entry_is_a_miss(fake_redis):
	cache = SnapshotCache()
	await fake_redis.set("feed:pool:k", "{not json")

	assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_redis_outage_falls_back_to_builder(monkeypatch):
	cache = SnapshotCache()

	async def _down(*args, **kwargs):
		raise RedisConnectionError("redis down")

	monkeypatch.setattr(redis_client.client, "get", _down)
	monkeypatch.setattr(redis_client.client, "set", _down)

	async def _build():
		return _items(2)

	items = await cache.get_or_build("k", built_at=NOW, builder=_build)
	assert [item.id for item in items] == ["p0", "p1"]


@pytest.mark.asyncio
async def test_pager_scroll_reads_pool_once_within_ttl():
	store = _CountingStore()
	await store.seed(items=_items(6))
	pager = FeedPager(
		store,
		cache=SnapshotCache(ttl_seconds=30),
		settings=settings.model_copy(update={"feed_cache_enabled": True}),
		clock=lambda: NOW,
	)

	first = await pager.get_page("u1", page_size=2)
	second = await pager.get_page("u1", cursor=first.next_cursor, page_size=2)
	third = await pager.get_page("u1", cursor=second.next_cursor, page_size=2)

	assert store.pool_reads == 1
	assert first.item_ids + second.item_ids + third.item_ids == [f"p{i}" for i in range(6)]


@pytest.mark.asyncio
async def test_cached_pool_keeps_pages_exact_while_likes_move():
	store = _CountingStore()
	await store.seed(items=_items(4))
	pager = FeedPager(
		store,
		cache=SnapshotCache(ttl_seconds=30),
		settings=settings.model_copy(update={"feed_cache_enabled": True}),
		clock=lambda: NOW,
	)

	first = await pager.get_page("u1", page_size=2)
	store.items["p3"] = store.items["p3"].model_copy(update={"likes": 500})
	second = await pager.get_page("u1", cursor=first.next_cursor, page_size=2)

	assert first.item_ids == ["p0", "p1"]
	assert second.item_ids == ["p2", "p3"]
