"""Custom exceptions for the feed engine."""

from __future__ import annotations

from fastapi import status


class FeedError(Exception):
	"""Base class for feed related errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "feed_error"
	retryable: bool = False

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class ValidationError(FeedError):
	"""Raised for caller input the engine cannot serve; fix the input, do not retry."""

	detail = "validation_error"


class InvalidPageSize(ValidationError):
	detail = "invalid_page_size"


class MalformedCursor(ValidationError):
	"""Raised for undecodable or tampered cursors; retry without a cursor."""

	detail = "malformed_cursor"


class UpstreamUnavailable(FeedError):
	"""Raised when the signal store times out or fails; safe to retry with backoff."""

	status_code = status.HTTP_503_SERVICE_UNAVAILABLE
	detail = "upstream_unavailable"
	retryable = True
	retry_after_seconds = 1


class InternalInconsistency(FeedError):
	"""A decoded cursor no longer matches the current paging policy.

	Handled inside the pager by restarting the scroll; never reaches callers.
	"""

	status_code = status.HTTP_409_CONFLICT
	detail = "internal_inconsistency"

	def __init__(self, reason: str) -> None:
		super().__init__(f"cursor_reset:{reason}")
		self.reason = reason


__all__ = [
	"FeedError",
	"InternalInconsistency",
	"InvalidPageSize",
	"MalformedCursor",
	"UpstreamUnavailable",
	"ValidationError",
]
