from datetime import datetime, timedelta, timezone

import pytest

from feedrank.feed.domain.models import Item
from feedrank.feed.infra.signal_store import MemorySignalStore, resolve_signal_store

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_like_and_unlike_move_counter_once_per_user():
	store = MemorySignalStore()
	await store.seed(items=[Item(id="p1", owner_id="o", tags=["Art"], created_at=NOW)])

	await store.record_like("u1", "p1")
	await store.record_like("u1", "p1")
	await store.record_like("u2", "p1")
	assert store.items["p1"].likes == 2
	assert await store.get_user_liked_tags("u1") == {"art"}
	assert await store.get_user_like_set("u1", ["p1", "p2"]) == {"p1"}

	await store.record_unlike("u1", "p1")
	await store.record_unlike("u1", "p1")
	assert store.items["p1"].likes == 1
	assert await store.get_user_like_set("u1", ["p1"]) == set()


@pytest.mark.asyncio
async def test_unlike_never_drives_counter_negative():
	store = MemorySignalStore()
	await store.seed(items=[Item(id="p1", owner_id="o", created_at=NOW, likes=0)], likes=[("u1", "p1")])

	item = await store.record_unlike("u1", "p1")

	assert item.likes == 0


@pytest.mark.asyncio
async def test_active_items_are_newest_first_and_bounded():
	store = MemorySignalStore()
	await store.seed(
		items=[Item(id=f"p{i}", owner_id="o", created_at=NOW - timedelta(minutes=i)) for i in range(5)]
	)
	await store.deactivate("p0")

	items = await store.get_active_items(3, NOW)

	assert [item.id for item in items] == ["p1", "p2", "p3"]
	assert await store.get_max_engagement_counter([]) == 0


def test_backend_resolution():
	assert isinstance(resolve_signal_store("memory"), MemorySignalStore)
	assert not isinstance(resolve_signal_store("postgres"), MemorySignalStore)
