"""Signal store adapters consumed by the ranking engine.

The engine only reads from these. Content writes (posts, likes) belong to the
content service; the memory store exposes a few mutators so tests and local
runs can simulate interaction events.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from feedrank.feed.domain.models import Item, normalize_tags
from feedrank.infra.postgres import get_pool
from feedrank.settings import settings


class SignalStore(Protocol):
	async def get_user_liked_tags(self, user_id: str) -> set[str]: ...

	async def get_active_items(self, limit: int, before: datetime) -> list[Item]: ...

	async def get_max_engagement_counter(self, items: Sequence[Item]) -> int: ...

	async def get_user_like_set(self, user_id: str, item_ids: Sequence[str]) -> set[str]: ...


def max_likes_of(items: Iterable[Item]) -> int:
	return max((item.likes for item in items), default=0)


class MemorySignalStore:
	"""In-process store used for tests and the ``memory`` backend."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.items: dict[str, Item] = {}
		self.likes: set[tuple[str, str]] = set()

	async def reset(self) -> None:
		async with self._lock:
			self.items.clear()
			self.likes.clear()

	async def seed(
		self,
		*,
		items: Iterable[Item] | None = None,
		likes: Iterable[tuple[str, str]] | None = None,
	) -> None:
		async with self._lock:
			self.items = {item.id: item for item in items or []}
			self.likes = set(likes or [])

	async def record_like(self, user_id: str, item_id: str) -> Item:
		async with self._lock:
			item = self.items[item_id]
			if (user_id, item_id) not in self.likes:
				self.likes.add((user_id, item_id))
				item = item.liked()
				self.items[item_id] = item
			return item

	async def record_unlike(self, user_id: str, item_id: str) -> Item:
		async with self._lock:
			item = self.items[item_id]
			if (user_id, item_id) in self.likes:
				self.likes.discard((user_id, item_id))
				item = item.unliked()
				self.items[item_id] = item
			return item

	async def deactivate(self, item_id: str) -> None:
		async with self._lock:
			item = self.items[item_id]
			self.items[item_id] = item.model_copy(update={"is_active": False})

	async def get_user_liked_tags(self, user_id: str) -> set[str]:
		async with self._lock:
			tags: list[str] = []
			for liker, item_id in self.likes:
				item = self.items.get(item_id)
				if liker == user_id and item is not None:
					tags.extend(item.tags)
			return set(normalize_tags(tags))

	async def get_active_items(self, limit: int, before: datetime) -> list[Item]:
		async with self._lock:
			eligible = [item for item in self.items.values() if item.is_active and item.created_at <= before]
		eligible.sort(key=lambda item: (item.created_at, item.id), reverse=True)
		return eligible[:limit]

	async def get_max_engagement_counter(self, items: Sequence[Item]) -> int:
		return max_likes_of(items)

	async def get_user_like_set(self, user_id: str, item_ids: Sequence[str]) -> set[str]:
		wanted = set(item_ids)
		async with self._lock:
			return {item_id for liker, item_id in self.likes if liker == user_id and item_id in wanted}


class PostgresSignalStore:
	"""Reads signals from the content service's ``post`` and ``post_like`` tables."""

	async def get_user_liked_tags(self, user_id: str) -> set[str]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT DISTINCT lower(tag) AS tag
				FROM post_like l
				JOIN post p ON p.id = l.post_id
				CROSS JOIN LATERAL unnest(p.tags) AS tag
				WHERE l.user_id = $1
				""",
				user_id,
			)
		return set(normalize_tags(row["tag"] for row in rows))

	async def get_active_items(self, limit: int, before: datetime) -> list[Item]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT p.id::text AS id,
				       p.author_id::text AS owner_id,
				       p.tags,
				       p.created_at,
				       p.likes_count,
				       p.views_count,
				       p.comments_count,
				       p.shares_count
				FROM post p
				WHERE p.is_active
				  AND p.created_at <= $1
				ORDER BY p.created_at DESC, p.id DESC
				LIMIT $2
				""",
				before,
				limit,
			)
		return [
			Item(
				id=row["id"],
				owner_id=row["owner_id"],
				tags=list(row["tags"] or []),
				created_at=row["created_at"],
				likes=max(0, int(row["likes_count"] or 0)),
				views=max(0, int(row["views_count"] or 0)),
				comments=max(0, int(row["comments_count"] or 0)),
				shares=max(0, int(row["shares_count"] or 0)),
				is_active=True,
			)
			for row in rows
		]

	async def get_max_engagement_counter(self, items: Sequence[Item]) -> int:
		# Must describe the same snapshot that gets scored, so no fresh query here.
		return max_likes_of(items)

	async def get_user_like_set(self, user_id: str, item_ids: Sequence[str]) -> set[str]:
		if not item_ids:
			return set()
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT post_id::text AS post_id
				FROM post_like
				WHERE user_id = $1 AND post_id::text = ANY($2::text[])
				""",
				user_id,
				list(item_ids),
			)
		return {row["post_id"] for row in rows}


_MEMORY = MemorySignalStore()
_POSTGRES = PostgresSignalStore()


def memory_store() -> MemorySignalStore:
	return _MEMORY


def resolve_signal_store(backend: Optional[str] = None) -> SignalStore:
	name = (backend or settings.feed_signal_backend).lower()
	if name == "memory":
		return _MEMORY
	return _POSTGRES


async def seed_memory_store(
	*,
	items: Iterable[Item] | None = None,
	likes: Iterable[tuple[str, str]] | None = None,
) -> None:
	await _MEMORY.seed(items=items, likes=likes)


async def reset_memory_state() -> None:
	await _MEMORY.reset()


__all__ = [
	"MemorySignalStore",
	"PostgresSignalStore",
	"SignalStore",
	"memory_store",
	"reset_memory_state",
	"resolve_signal_store",
	"seed_memory_store",
]
