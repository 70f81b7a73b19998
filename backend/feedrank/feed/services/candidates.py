"""Candidate selection and guarded signal store access."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Sequence, TypeVar

import asyncpg

from feedrank.feed.domain.exceptions import UpstreamUnavailable
from feedrank.feed.domain.models import Item, NormalizationContext, UserInterestProfile
from feedrank.feed.infra.signal_store import SignalStore
from feedrank.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UPSTREAM_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, ConnectionError, OSError)


async def call_upstream(op: str, awaitable: Awaitable[T], *, timeout: float) -> T:
	"""Await a signal store call, mapping timeouts and backend failures to UpstreamUnavailable."""

	try:
		return await asyncio.wait_for(awaitable, timeout=timeout)
	except asyncio.TimeoutError as exc:
		obs_metrics.inc_upstream_error(op, "timeout")
		logger.warning("feed_upstream_timeout", extra={"op": op, "timeout_s": timeout})
		raise UpstreamUnavailable() from exc
	except _UPSTREAM_ERRORS as exc:
		obs_metrics.inc_upstream_error(op, type(exc).__name__)
		logger.warning("feed_upstream_unavailable", extra={"op": op, "error": str(exc)})
		raise UpstreamUnavailable() from exc


class CandidateSelector:
	"""Bounded, newest-first pool of active items."""

	def __init__(self, store: SignalStore, *, limit: int, timeout: float) -> None:
		self.store = store
		self.limit = limit
		self.timeout = timeout

	async def select(self, before: datetime) -> list[Item]:
		items = await call_upstream(
			"get_active_items",
			self.store.get_active_items(self.limit, before),
			timeout=self.timeout,
		)
		pool: list[Item] = []
		seen: set[str] = set()
		for item in items:
			# stores are trusted to filter, but a pool must never repeat ids
			if not item.is_active or item.id in seen or item.created_at > before:
				continue
			seen.add(item.id)
			pool.append(item)
			if len(pool) >= self.limit:
				break
		return pool

	async def load_profile(self, user_id: str) -> UserInterestProfile:
		tags = await call_upstream(
			"get_user_liked_tags",
			self.store.get_user_liked_tags(user_id),
			timeout=self.timeout,
		)
		return UserInterestProfile.from_tags(user_id, tags or ())

	async def normalization(self, pool: Sequence[Item]) -> NormalizationContext:
		if not pool:
			return NormalizationContext(max_likes=0)
		max_likes = await call_upstream(
			"get_max_engagement_counter",
			self.store.get_max_engagement_counter(pool),
			timeout=self.timeout,
		)
		return NormalizationContext(max_likes=max(0, int(max_likes or 0)))

	async def liked_ids(self, user_id: str, item_ids: Sequence[str]) -> set[str]:
		if not item_ids:
			return set()
		liked = await call_upstream(
			"get_user_like_set",
			self.store.get_user_like_set(user_id, list(item_ids)),
			timeout=self.timeout,
		)
		return set(liked or ())


__all__ = ["CandidateSelector", "call_upstream"]
