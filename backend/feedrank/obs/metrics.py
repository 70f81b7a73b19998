"""Central registry for Prometheus metrics used across the feed service."""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram, Summary

log = logging.getLogger(__name__)


REQUEST_COUNTER = Counter(
	"feedrank_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"feedrank_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

REDIS_UP = Gauge("feedrank_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("feedrank_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("feedrank_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("feedrank_postgres_latency_seconds", "Postgres ping latency (seconds)")

FEED_RANK_CANDIDATES = Counter(
	"feed_rank_candidates_total",
	"Candidates considered",
)

FEED_RANK_DURATION = Histogram(
	"feed_rank_duration_ms",
	"Feed rank duration",
	buckets=[5, 10, 20, 40, 80, 160, 320],
)

FEED_RANK_SCORE_AVG = Gauge(
	"feed_rank_score_avg",
	"Average score of top-N",
)

FEED_PAGES_SERVED = Counter(
	"feed_pages_served_total",
	"Feed pages served by pager state",
	["kind", "state"],
)

FEED_CURSOR_RESETS = Counter(
	"feed_cursor_resets_total",
	"Scroll sessions restarted from the top",
	["reason"],
)

FEED_CURSOR_REJECTS = Counter(
	"feed_cursor_rejects_total",
	"Cursors rejected as malformed or tampered",
)

FEED_CACHE_EVENTS = Counter(
	"feed_cache_events_total",
	"Candidate snapshot cache lookups",
	["result"],
)

FEED_UPSTREAM_ERRORS = Counter(
	"feed_upstream_errors_total",
	"Signal store failures and timeouts",
	["op", "reason"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def observe_rank(candidates: int, top_scores: list[float], elapsed_ms: float) -> None:
	if candidates:
		FEED_RANK_CANDIDATES.inc(candidates)
	if top_scores:
		FEED_RANK_SCORE_AVG.set(sum(top_scores) / len(top_scores))
	FEED_RANK_DURATION.observe(elapsed_ms)


def inc_page_served(kind: str, state: str) -> None:
	FEED_PAGES_SERVED.labels(kind=kind, state=state).inc()


def inc_cursor_reset(reason: str) -> None:
	FEED_CURSOR_RESETS.labels(reason=reason).inc()


def inc_cursor_reject() -> None:
	FEED_CURSOR_REJECTS.inc()


def inc_cache_event(result: str) -> None:
	FEED_CACHE_EVENTS.labels(result=result).inc()


def inc_upstream_error(op: str, reason: str) -> None:
	FEED_UPSTREAM_ERRORS.labels(op=op, reason=reason).inc()


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)
