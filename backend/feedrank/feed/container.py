"""Process-wide wiring for the feed engine."""

from __future__ import annotations

from feedrank.feed.infra.signal_store import resolve_signal_store
from feedrank.feed.services.pager import FeedPager
from feedrank.feed.services.rank_cache import SnapshotCache
from feedrank.settings import settings

_cache: SnapshotCache | None = None


def get_snapshot_cache() -> SnapshotCache:
	global _cache
	if _cache is None:
		_cache = SnapshotCache(ttl_seconds=settings.feed_cache_ttl_seconds)
	return _cache


def get_pager() -> FeedPager:
	"""FastAPI dependency; the store is resolved per call so backend switches apply."""
	return FeedPager(resolve_signal_store(), cache=get_snapshot_cache())


def reset_container() -> None:
	global _cache
	_cache = None
