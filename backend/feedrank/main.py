"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from feedrank.api import feed, ops
from feedrank.api.errors import install_error_handlers
from feedrank.infra import postgres
from feedrank.obs import init as obs_init
from feedrank.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.feed_signal_backend == "postgres":
		await postgres.init_pool()
	logger.info(
		"feedrank_started",
		extra={
			"signal_backend": settings.feed_signal_backend,
			"candidate_limit": settings.feed_candidate_limit,
			"cache_enabled": settings.feed_cache_enabled,
		},
	)
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="feedrank", lifespan=lifespan)
obs_init(app)
install_error_handlers(app)
app.include_router(ops.router)
app.include_router(feed.router)
