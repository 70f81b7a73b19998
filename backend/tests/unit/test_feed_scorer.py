from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import pytest

from feedrank.feed.domain.models import Item, NormalizationContext, UserInterestProfile
from feedrank.feed.ranking import ranker, scorer

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _item(item_id: str, *, tags=(), likes: int = 0, age: timedelta = timedelta(minutes=30)) -> Item:
	return Item(id=item_id, owner_id="owner", tags=list(tags), created_at=NOW - age, likes=likes)


def test_score_is_deterministic():
	profile = UserInterestProfile.from_tags("u1", ["python", "async"])
	item = _item("p1", tags=["python"], likes=7, age=timedelta(hours=5, minutes=10))
	norm = NormalizationContext(max_likes=42)

	first = scorer.score_item(profile, item, norm, NOW)
	for _ in range(5):
		assert scorer.score_item(profile, item, norm, NOW) == first


def test_score_stays_within_unit_interval():
	profiles = [
		UserInterestProfile.from_tags("u", []),
		UserInterestProfile.from_tags("u", ["a"]),
		UserInterestProfile.from_tags("u", ["a", "b", "c"]),
	]
	ages = [timedelta(0), timedelta(minutes=59), timedelta(hours=3), timedelta(days=30), timedelta(hours=-2)]
	for profile in profiles:
		for age in ages:
			for likes, max_likes in [(0, 0), (0, 10), (10, 10), (1_000_000, 1_000_000)]:
				item = _item("p", tags=["a", "b", "c"], likes=likes, age=age)
				value = scorer.score_item(profile, item, NormalizationContext(max_likes=max_likes), NOW)
				assert 0.0 <= value <= 1.0


def test_degenerate_maximum_reaches_one():
	profile = UserInterestProfile.from_tags("u", ["a"])
	item = _item("p", tags=["a"], likes=9, age=timedelta(0))
	value = scorer.score_item(profile, item, NormalizationContext(max_likes=9), NOW)
	assert value == pytest.approx(1.0)


def test_empty_profile_contributes_zero_tag_term():
	profile = UserInterestProfile.from_tags("u", [])
	assert scorer.tag_match_term(profile, _item("p", tags=["a", "b"])) == 0.0


def test_untagged_item_contributes_zero_tag_term():
	profile = UserInterestProfile.from_tags("u", ["a"])
	assert scorer.tag_match_term(profile, _item("p")) == 0.0


def test_tag_term_is_share_of_profile_tags():
	profile = UserInterestProfile.from_tags("u", ["Music", "art", "food", "travel"])
	item = _item("p", tags=["MUSIC", "food", "cars"])
	assert scorer.tag_match_term(profile, item) == pytest.approx(0.5)


def test_zero_max_likes_contributes_zero_popularity():
	assert scorer.popularity_term(_item("p", likes=0), NormalizationContext(max_likes=0)) == 0.0


def test_recency_uses_whole_hours():
	assert scorer.recency_term(_item("p", age=timedelta(minutes=59)), NOW) == 1.0
	assert scorer.recency_term(_item("p", age=timedelta(hours=1)), NOW) == 0.5
	assert scorer.recency_term(_item("p", age=timedelta(hours=3, minutes=59)), NOW) == 0.25


def test_recency_clamps_future_timestamps():
	future = _item("p", age=timedelta(hours=-5))
	assert scorer.hours_since(future.created_at, NOW) == 0
	assert scorer.recency_term(future, NOW) == 1.0


def test_recency_strictly_decreases_with_age():
	values = [scorer.recency_term(_item("p", age=timedelta(hours=h)), NOW) for h in range(0, 48)]
	assert all(a > b for a, b in zip(values, values[1:]))


def test_popularity_scenario_orders_by_likes():
	items = [_item("item1", likes=0), _item("item2", likes=10), _item("item3", likes=100)]
	norm = NormalizationContext.from_items(items)
	assert norm.max_likes == 100

	terms = [0.3 * scorer.popularity_term(item, norm) for item in items]
	assert terms[0] == 0.0
	assert terms[1] == pytest.approx(0.3 * math.log(11) / math.log(101))
	assert terms[2] == pytest.approx(0.3)

	profile = UserInterestProfile.from_tags("u", [])
	ranked = ranker.rank_candidates(profile, items, norm, NOW)
	assert [entry.item.id for entry in ranked] == ["item3", "item2", "item1"]


def test_custom_weights_shift_ranking():
	profile = UserInterestProfile.from_tags("u", ["rare"])
	tagged = _item("tagged", tags=["rare"], likes=0, age=timedelta(hours=10))
	popular = _item("popular", likes=100, age=timedelta(hours=10))
	norm = NormalizationContext.from_items([tagged, popular])

	tag_heavy = scorer.ScoreWeights(tags=0.8, recency=0.1, popularity=0.1)
	pop_heavy = scorer.ScoreWeights(tags=0.1, recency=0.1, popularity=0.8)

	assert ranker.rank_candidates(profile, [tagged, popular], norm, NOW, tag_heavy)[0].item.id == "tagged"
	assert ranker.rank_candidates(profile, [tagged, popular], norm, NOW, pop_heavy)[0].item.id == "popular"


def test_total_order_breaks_ties_by_recency_then_id():
	profile = UserInterestProfile.from_tags("u", [])
	same_time = NOW - timedelta(hours=2, minutes=5)
	newer = NOW - timedelta(hours=2, minutes=1)
	items = [
		Item(id="b", owner_id="o", created_at=same_time, likes=3),
		Item(id="a", owner_id="o", created_at=same_time, likes=3),
		Item(id="c", owner_id="o", created_at=newer, likes=3),
	]
	ranked = ranker.rank_candidates(profile, items, NormalizationContext.from_items(items), NOW)

	# identical scores: all three sit in the same whole-hour bucket with equal likes
	assert len({entry.score for entry in ranked}) == 1
	assert [entry.item.id for entry in ranked] == ["c", "a", "b"]
	keys = [entry.sort_key for entry in ranked]
	assert len(set(keys)) == len(keys)


def test_locate_after_skips_through_cursor_key():
	profile = UserInterestProfile.from_tags("u", [])
	items = [_item(f"p{i}", likes=i) for i in range(5)]
	ranked = ranker.rank_candidates(profile, items, NormalizationContext.from_items(items), NOW)

	assert ranker.locate_after(ranked, None) == 0
	assert ranker.locate_after(ranked, ranked[1].sort_key) == 2
	assert ranker.locate_after(ranked, ranked[-1].sort_key) == len(ranked)


def test_item_tags_and_counters_are_normalised():
	item = Item(id="p", owner_id="o", tags=[" Rust", "rust", "GO", ""], created_at=datetime(2024, 1, 1))
	assert item.tags == ["rust", "go"]
	assert item.created_at.tzinfo is not None
	assert item.unliked().likes == 0
	assert item.liked().liked().unliked().likes == 1
	with pytest.raises(ValueError):
		Item(id="p", owner_id="o", created_at=NOW, likes=-1)
