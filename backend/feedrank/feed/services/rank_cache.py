"""Redis-backed cache of candidate snapshots with per-key singleflight."""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime
from typing import Awaitable, Callable

from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from feedrank.feed.domain.models import Item
from feedrank.infra.redis import RedisProxy, redis_client
from feedrank.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

PoolBuilder = Callable[[], Awaitable[list[Item]]]


class CandidateSnapshot(BaseModel):
    """A candidate pool exactly as it was read from the signal store."""

    snapshot_id: str
    built_at: datetime
    items: list[Item]


class SnapshotCache:
    """Memoizes candidate pools for a short validity window.

    Normalization is always recomputed from the pool returned here, so a cached
    pool and its max-likes constant can never drift apart.
    """

    def __init__(
        self,
        redis: RedisProxy | None = None,
        *,
        ttl_seconds: int = 30,
        namespace: str = "feed:pool:",
    ) -> None:
        self.redis = redis or redis_client
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _key(self, snapshot_id: str) -> str:
        return f"{self.namespace}{snapshot_id}"

    def _lock(self, snapshot_id: str) -> asyncio.Lock:
        lock = self._locks.get(snapshot_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[snapshot_id] = lock
        return lock

    async def get(self, snapshot_id: str) -> list[Item] | None:
        try:
            raw = await self.redis.get(self._key(snapshot_id))
        except RedisError:
            logger.warning("feed_cache_read_failed", extra={"snapshot_id": snapshot_id}, exc_info=True)
            obs_metrics.inc_cache_event("error")
            return None
        if not raw:
            return None
        try:
            snapshot = CandidateSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning("feed_cache_corrupt_entry", extra={"snapshot_id": snapshot_id})
            obs_metrics.inc_cache_event("corrupt")
            return None
        return snapshot.items

    async def set(self, snapshot_id: str, items: list[Item], *, built_at: datetime) -> None:
        payload = CandidateSnapshot(snapshot_id=snapshot_id, built_at=built_at, items=items).model_dump_json()
        try:
            await self.redis.set(self._key(snapshot_id), payload, ex=self.ttl_seconds)
        except RedisError:
            logger.warning("feed_cache_write_failed", extra={"snapshot_id": snapshot_id}, exc_info=True)
            obs_metrics.inc_cache_event("error")

    async def get_or_build(self, snapshot_id: str, *, built_at: datetime, builder: PoolBuilder) -> list[Item]:
        cached = await self.get(snapshot_id)
        if cached is not None:
            obs_metrics.inc_cache_event("hit")
            return cached
        lock = self._lock(snapshot_id)
        async with lock:
            cached = await self.get(snapshot_id)
            if cached is not None:
                obs_metrics.inc_cache_event("hit")
                return cached
            obs_metrics.inc_cache_event("miss")
            items = await builder()
            await self.set(snapshot_id, items, built_at=built_at)
            return items


__all__ = ["CandidateSnapshot", "SnapshotCache"]
