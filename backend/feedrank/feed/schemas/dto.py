"""Pydantic schemas for the feed API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from feedrank.feed.domain.models import FeedPage


class FeedItemResponse(BaseModel):
	id: str
	owner_id: str
	tags: List[str] = Field(default_factory=list)
	created_at: datetime
	likes: int
	views: int
	comments: int
	shares: int
	score: float
	is_liked: bool


class FeedPageResponse(BaseModel):
	items: List[FeedItemResponse]
	next_cursor: Optional[str] = None
	has_more: bool
	reset: bool = False
	total: int = 0

	@classmethod
	def from_page(cls, page: FeedPage) -> "FeedPageResponse":
		return cls(
			items=[
				FeedItemResponse(
					id=entry.item.id,
					owner_id=entry.item.owner_id,
					tags=list(entry.item.tags),
					created_at=entry.item.created_at,
					likes=entry.item.likes,
					views=entry.item.views,
					comments=entry.item.comments,
					shares=entry.item.shares,
					score=entry.score,
					is_liked=entry.liked_by_requester,
				)
				for entry in page.items
			],
			next_cursor=page.next_cursor,
			has_more=page.has_more,
			reset=page.reset,
			total=page.total,
		)
