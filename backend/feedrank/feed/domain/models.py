"""Domain models for the ranked feed."""

from __future__ import annotations

import enum
import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICROSECOND = timedelta(microseconds=1)


def normalize_tags(tags: Iterable[str]) -> list[str]:
	"""Lower-case, strip and dedupe tags while keeping first-seen order."""

	seen: dict[str, None] = {}
	for tag in tags:
		text = str(tag).strip().lower()
		if text:
			seen.setdefault(text, None)
	return list(seen)


def to_epoch_us(value: datetime) -> int:
	"""Exact integer microseconds since the epoch for an aware datetime."""

	return (value - EPOCH) // _ONE_MICROSECOND


class Item(BaseModel):
	"""A content item as seen by the ranking engine."""

	id: str
	owner_id: str
	tags: list[str] = Field(default_factory=list)
	created_at: datetime
	likes: int = Field(default=0, ge=0)
	views: int = Field(default=0, ge=0)
	comments: int = Field(default=0, ge=0)
	shares: int = Field(default=0, ge=0)
	is_active: bool = True

	model_config = ConfigDict(from_attributes=True)

	@field_validator("tags", mode="before")
	@classmethod
	def _normalise_tags(cls, value):
		if value is None:
			return []
		return normalize_tags(value)

	@field_validator("created_at")
	@classmethod
	def _ensure_aware(cls, value: datetime) -> datetime:
		if value.tzinfo is None:
			return value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc)

	def liked(self) -> "Item":
		return self.model_copy(update={"likes": self.likes + 1})

	def unliked(self) -> "Item":
		# Counters never go negative.
		return self.model_copy(update={"likes": max(0, self.likes - 1)})


@dataclass(slots=True, frozen=True)
class UserInterestProfile:
	"""Tags a user has engaged with. An empty profile is valid."""

	user_id: str
	tags: frozenset[str] = frozenset()

	@classmethod
	def from_tags(cls, user_id: str, tags: Iterable[str]) -> "UserInterestProfile":
		return cls(user_id=user_id, tags=frozenset(normalize_tags(tags)))

	def __len__(self) -> int:
		return len(self.tags)

	@property
	def digest(self) -> str:
		"""Short stable fingerprint of the tag set, carried in cursors."""
		joined = "\n".join(sorted(self.tags))
		return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]


@dataclass(slots=True, frozen=True)
class NormalizationContext:
	"""Pool-wide statistics used to scale raw signals into [0, 1]."""

	max_likes: int = 0

	@classmethod
	def from_items(cls, items: Iterable[Item]) -> "NormalizationContext":
		return cls(max_likes=max((item.likes for item in items), default=0))


@dataclass(slots=True, frozen=True)
class RankedEntry:
	"""Item with its computed score; ordered by (score desc, created_at desc, id asc)."""

	item: Item
	score: float

	@property
	def sort_key(self) -> tuple[float, int, str]:
		return (-self.score, -to_epoch_us(self.item.created_at), self.item.id)


class PagerState(str, enum.Enum):
	INITIAL = "initial"
	PAGED = "paged"
	EXHAUSTED = "exhausted"


class FeedKind(str, enum.Enum):
	PERSONALIZED = "personalized"
	TRENDING = "trending"


@dataclass(slots=True)
class FeedItem:
	item: Item
	score: float
	liked_by_requester: bool


@dataclass(slots=True)
class FeedPage:
	"""A page of ranked items plus everything the client needs to continue."""

	items: list[FeedItem]
	next_cursor: Optional[str]
	has_more: bool
	state: PagerState
	reset: bool = False
	total: int = 0
	kind: FeedKind = FeedKind.PERSONALIZED

	@property
	def item_ids(self) -> list[str]:
		return [entry.item.id for entry in self.items]


__all__ = [
	"EPOCH",
	"FeedItem",
	"FeedKind",
	"FeedPage",
	"Item",
	"NormalizationContext",
	"PagerState",
	"RankedEntry",
	"UserInterestProfile",
	"normalize_tags",
	"to_epoch_us",
]
