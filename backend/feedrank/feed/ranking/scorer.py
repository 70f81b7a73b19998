"""Relevance scoring for feed items.

A score is the weighted sum of three terms, each clamped to [0, 1]:

* tag match: share of the user's interest tags present on the item
* recency: ``1 / (hours + 1)`` with hours floored and clock skew clamped to zero
* popularity: ``ln(likes + 1) / ln(max_likes + 1)`` over the current pool

With weights summing to 1.0 the final score stays within [0, 1].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

from feedrank.feed.domain.models import Item, NormalizationContext, UserInterestProfile


@dataclass(slots=True, frozen=True)
class ScoreWeights:
	tags: float = 0.4
	recency: float = 0.3
	popularity: float = 0.3

	@classmethod
	def from_settings(cls, settings) -> "ScoreWeights":
		return cls(
			tags=float(settings.feed_weight_tags),
			recency=float(settings.feed_weight_recency),
			popularity=float(settings.feed_weight_popularity),
		)


DEFAULT_WEIGHTS = ScoreWeights()


def _clamp(value: float) -> float:
	return max(0.0, min(1.0, value))


def tag_match_term(profile: UserInterestProfile, item: Item) -> float:
	if not profile.tags or not item.tags:
		return 0.0
	matching = sum(1 for tag in item.tags if tag in profile.tags)
	return _clamp(matching / len(profile.tags))


def hours_since(created_at: datetime, now: datetime) -> int:
	elapsed = (now - created_at).total_seconds() / 3600.0
	return max(0, math.floor(elapsed))


def recency_term(item: Item, now: datetime) -> float:
	return _clamp(1.0 / (hours_since(item.created_at, now) + 1))


def popularity_term(item: Item, norm: NormalizationContext) -> float:
	if norm.max_likes <= 0:
		return 0.0
	# likes above the pool maximum can only come from a mismatched context
	return _clamp(math.log(item.likes + 1) / math.log(norm.max_likes + 1))


def score_item(
	profile: UserInterestProfile,
	item: Item,
	norm: NormalizationContext,
	now: datetime,
	weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> float:
	"""Score a single item for a user; pure and deterministic for fixed inputs."""

	score = (
		weights.tags * tag_match_term(profile, item)
		+ weights.recency * recency_term(item, now)
		+ weights.popularity * popularity_term(item, norm)
	)
	return float(_clamp(score))


__all__ = [
	"DEFAULT_WEIGHTS",
	"ScoreWeights",
	"hours_since",
	"popularity_term",
	"recency_term",
	"score_item",
	"tag_match_term",
]
