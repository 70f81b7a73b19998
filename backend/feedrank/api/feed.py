"""Feed endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from feedrank.feed.container import get_pager
from feedrank.feed.domain.exceptions import InvalidPageSize
from feedrank.feed.schemas import dto
from feedrank.feed.services.pager import FeedPager
from feedrank.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["feed"])


def _page_size(raw: str | None) -> int | None:
	# bounds are enforced by the pager; any unusable limit surfaces as invalid_page_size
	if raw is None:
		return None
	try:
		return int(raw.strip())
	except ValueError:
		raise InvalidPageSize() from None


@router.get("/feed", response_model=dto.FeedPageResponse)
async def get_feed_endpoint(
	limit: str | None = Query(default=None),
	cursor: str | None = Query(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	pager: FeedPager = Depends(get_pager),
) -> dto.FeedPageResponse:
	page = await pager.get_page(auth_user.id, cursor=cursor, page_size=_page_size(limit))
	return dto.FeedPageResponse.from_page(page)


@router.get("/feed/trending", response_model=dto.FeedPageResponse)
async def get_trending_endpoint(
	limit: str | None = Query(default=None),
	cursor: str | None = Query(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	pager: FeedPager = Depends(get_pager),
) -> dto.FeedPageResponse:
	page = await pager.get_trending_page(auth_user.id, cursor=cursor, page_size=_page_size(limit))
	return dto.FeedPageResponse.from_page(page)


__all__ = ["router"]
