"""Total ordering of candidate pools and cursor position lookup."""

from __future__ import annotations

from bisect import bisect_right
from datetime import datetime, timedelta
from time import perf_counter
from typing import Optional, Sequence

from feedrank.feed.domain.models import (
	Item,
	NormalizationContext,
	RankedEntry,
	UserInterestProfile,
)
from feedrank.feed.ranking.scorer import DEFAULT_WEIGHTS, ScoreWeights, score_item
from feedrank.obs import metrics as obs_metrics

SortKey = tuple[float, int, str]


def position_key(score: float, created_us: int, item_id: str) -> SortKey:
	"""Ascending sort key equivalent to (score desc, created_at desc, id asc)."""

	return (-score, -created_us, item_id)


def _finish(entries: list[RankedEntry], started: float) -> list[RankedEntry]:
	entries.sort(key=lambda entry: entry.sort_key)
	elapsed_ms = (perf_counter() - started) * 1000.0
	top = [entry.score for entry in entries[:20]]
	obs_metrics.observe_rank(len(entries), top, elapsed_ms)
	return entries


def rank_candidates(
	profile: UserInterestProfile,
	items: Sequence[Item],
	norm: NormalizationContext,
	now: datetime,
	weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> list[RankedEntry]:
	"""Score and totally order a candidate pool.

	The caller is responsible for slicing pages off the result.
	"""

	started = perf_counter()
	entries = [RankedEntry(item=item, score=score_item(profile, item, norm, now, weights)) for item in items]
	return _finish(entries, started)


def rank_trending(items: Sequence[Item], now: datetime, window: timedelta) -> list[RankedEntry]:
	"""Order the pool by raw like count, limited to items inside the trending window."""

	started = perf_counter()
	since = now - window
	entries = [
		RankedEntry(item=item, score=float(item.likes))
		for item in items
		if item.created_at >= since
	]
	return _finish(entries, started)


def locate_after(entries: Sequence[RankedEntry], key: Optional[SortKey]) -> int:
	"""Index of the first entry strictly after ``key`` in the total order."""

	if key is None:
		return 0
	keys = [entry.sort_key for entry in entries]
	return bisect_right(keys, key)


__all__ = [
	"SortKey",
	"locate_after",
	"position_key",
	"rank_candidates",
	"rank_trending",
]
