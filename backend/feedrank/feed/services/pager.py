"""Stable pagination over ranked candidate pools.

Every page request re-reads the pool and re-ranks it; nothing is held in process
between a user's requests. Stability comes from the cursor instead:

* the first page pins a snapshot boundary ``as_of`` (wall clock floored to the
  snapshot bucket); later pages only consider items created at or before it and
  score recency against it, so a static pool ranks identically on every page;
* the first page also pins the scoring basis (pool max likes and a digest of the
  viewer's interest tags); later pages score with that same normalization and
  restart the scroll if the viewer's profile no longer matches the digest;
* the resume position is the first entry strictly after the cursor's composite
  key, which is well defined because the order is total.

Only an item whose own counters change mid-scroll can cross the boundary: one
that falls behind the cursor can be served a second time and one that climbs past
it is not served in that session. Removing other items from the pool moves no
remaining score. Static pools page exactly.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Sequence

from feedrank.feed.domain.exceptions import InternalInconsistency, InvalidPageSize, MalformedCursor
from feedrank.feed.domain.models import (
	FeedItem,
	FeedKind,
	FeedPage,
	Item,
	NormalizationContext,
	PagerState,
	RankedEntry,
	to_epoch_us,
)
from feedrank.feed.infra.signal_store import SignalStore
from feedrank.feed.ranking.ranker import locate_after, position_key, rank_candidates, rank_trending
from feedrank.feed.ranking.scorer import ScoreWeights
from feedrank.feed.services.candidates import CandidateSelector
from feedrank.feed.services.cursor import (
	CURSOR_VERSION,
	CursorPosition,
	DecodedCursor,
	ScoringBasis,
	SnapshotRef,
	decode_cursor,
	encode_cursor,
)
from feedrank.feed.services.rank_cache import SnapshotCache
from feedrank.obs import metrics as obs_metrics
from feedrank.settings import settings as default_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Ranker = Callable[
	[str, Sequence[Item], datetime, Optional[ScoringBasis]],
	Awaitable[tuple[list[RankedEntry], ScoringBasis]],
]


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def snapshot_boundary(now: datetime, bucket_seconds: int) -> datetime:
	"""Floor ``now`` to whole seconds and then to the snapshot bucket."""

	epoch = int(now.timestamp())
	if bucket_seconds > 1:
		epoch -= epoch % bucket_seconds
	return datetime.fromtimestamp(epoch, tz=timezone.utc)


class FeedPager:
	"""Serves fixed-size pages of the personalized and trending feeds."""

	def __init__(
		self,
		store: SignalStore,
		*,
		cache: SnapshotCache | None = None,
		settings=None,
		clock: Clock | None = None,
	) -> None:
		self.settings = settings or default_settings
		self.selector = CandidateSelector(
			store,
			limit=self.settings.feed_candidate_limit,
			timeout=self.settings.feed_upstream_timeout_seconds,
		)
		self.cache = cache
		self.weights = ScoreWeights.from_settings(self.settings)
		self.clock = clock or _utcnow

	async def get_page(
		self,
		user_id: str,
		cursor: Optional[str] = None,
		page_size: Optional[int] = None,
	) -> FeedPage:
		return await self._paginate(FeedKind.PERSONALIZED, user_id, cursor, page_size, self._rank_personalized)

	async def get_trending_page(
		self,
		user_id: str,
		cursor: Optional[str] = None,
		page_size: Optional[int] = None,
	) -> FeedPage:
		return await self._paginate(FeedKind.TRENDING, user_id, cursor, page_size, self._rank_trending)

	async def _rank_personalized(
		self,
		user_id: str,
		pool: Sequence[Item],
		as_of: datetime,
		basis: Optional[ScoringBasis],
	) -> tuple[list[RankedEntry], ScoringBasis]:
		profile = await self.selector.load_profile(user_id)
		if basis is None:
			norm = await self.selector.normalization(pool)
		elif basis.profile_digest != profile.digest:
			raise InternalInconsistency("profile_changed")
		else:
			norm = NormalizationContext(max_likes=basis.max_likes)
		ranked = rank_candidates(profile, pool, norm, as_of, self.weights)
		return ranked, ScoringBasis(max_likes=norm.max_likes, profile_digest=profile.digest)

	async def _rank_trending(
		self,
		user_id: str,
		pool: Sequence[Item],
		as_of: datetime,
		basis: Optional[ScoringBasis],
	) -> tuple[list[RankedEntry], ScoringBasis]:
		# raw like counts need neither normalization nor a profile
		window = timedelta(days=self.settings.feed_trending_window_days)
		return rank_trending(pool, as_of, window), ScoringBasis()

	def _validate_page_size(self, page_size: Optional[int]) -> int:
		if page_size is None:
			return int(self.settings.feed_page_size_default)
		if isinstance(page_size, bool) or not isinstance(page_size, int):
			raise InvalidPageSize()
		if page_size < 1 or page_size > self.settings.feed_page_size_max:
			raise InvalidPageSize()
		return page_size

	def _check_session(self, decoded: DecodedCursor, now: datetime) -> None:
		if decoded.version != CURSOR_VERSION:
			raise InternalInconsistency("cursor_version")
		if decoded.snapshot.pool_limit != self.settings.feed_candidate_limit:
			raise InternalInconsistency("pool_limit_changed")
		age = (now - decoded.snapshot.as_of).total_seconds()
		if age > self.settings.feed_session_max_age_seconds:
			raise InternalInconsistency("session_expired")

	def _decode(self, kind: FeedKind, cursor: Optional[str]) -> Optional[DecodedCursor]:
		if not cursor:
			return None
		try:
			decoded = decode_cursor(cursor, secret=self.settings.cursor_secret())
		except MalformedCursor:
			obs_metrics.inc_cursor_reject()
			raise
		if decoded.snapshot.kind != kind.value:
			obs_metrics.inc_cursor_reject()
			raise MalformedCursor("cursor_kind_mismatch")
		return decoded

	async def _load_pool(self, snapshot: SnapshotRef, now: datetime) -> list[Item]:
		async def _build() -> list[Item]:
			return await self.selector.select(snapshot.as_of)

		if self.cache is None or not self.settings.feed_cache_enabled:
			return await _build()
		return await self.cache.get_or_build(snapshot.pool_key, built_at=now, builder=_build)

	async def _paginate(
		self,
		kind: FeedKind,
		user_id: str,
		cursor: Optional[str],
		page_size: Optional[int],
		ranker: Ranker,
	) -> FeedPage:
		size = self._validate_page_size(page_size)
		now = self.clock()
		decoded = self._decode(kind, cursor)
		if decoded is not None:
			try:
				self._check_session(decoded, now)
				return await self._serve(kind, user_id, size, now, ranker, decoded=decoded, cursor=cursor)
			except InternalInconsistency as exc:
				obs_metrics.inc_cursor_reset(exc.reason)
				logger.info("feed_cursor_reset", extra={"reason": exc.reason, "kind": kind.value})
				return await self._serve(kind, user_id, size, now, ranker, reset=True)
		return await self._serve(kind, user_id, size, now, ranker)

	async def _serve(
		self,
		kind: FeedKind,
		user_id: str,
		size: int,
		now: datetime,
		ranker: Ranker,
		*,
		decoded: Optional[DecodedCursor] = None,
		cursor: Optional[str] = None,
		reset: bool = False,
	) -> FeedPage:
		if decoded is None:
			origin = PagerState.INITIAL
			snapshot = SnapshotRef(
				kind=kind.value,
				pool_limit=self.settings.feed_candidate_limit,
				as_of=snapshot_boundary(now, self.settings.feed_snapshot_bucket_seconds),
			)
			after = None
			basis = None
		else:
			origin = PagerState.PAGED
			snapshot = decoded.snapshot
			position = decoded.position
			after = position_key(position.score, position.created_us, position.item_id)
			basis = decoded.basis

		pool = await self._load_pool(snapshot, now)
		ranked, basis = await ranker(user_id, pool, snapshot.as_of, basis)

		start = locate_after(ranked, after)
		window = ranked[start : start + size]
		has_more = start + size < len(ranked)

		liked = await self.selector.liked_ids(user_id, [entry.item.id for entry in window])
		items = [
			FeedItem(item=entry.item, score=entry.score, liked_by_requester=entry.item.id in liked)
			for entry in window
		]

		if window:
			last = window[-1]
			next_cursor: Optional[str] = encode_cursor(
				snapshot,
				CursorPosition(
					score=last.score,
					created_us=to_epoch_us(last.item.created_at),
					item_id=last.item.id,
				),
				basis,
				secret=self.settings.cursor_secret(),
			)
		elif decoded is not None:
			# exhausted continuation keeps handing back the same position
			next_cursor = cursor
		else:
			next_cursor = None

		state = PagerState.PAGED if has_more else PagerState.EXHAUSTED
		obs_metrics.inc_page_served(kind.value, origin.value)
		logger.info(
			"feed_page_served",
			extra={
				"kind": kind.value,
				"origin": origin.value,
				"state": state.value,
				"page_size": size,
				"returned": len(items),
				"pool_size": len(ranked),
				"snapshot_id": snapshot.snapshot_id,
				"reset": reset,
			},
		)
		return FeedPage(
			items=items,
			next_cursor=next_cursor,
			has_more=has_more,
			state=state,
			reset=reset,
			total=len(ranked),
			kind=kind,
		)


__all__ = ["FeedPager", "snapshot_boundary"]
