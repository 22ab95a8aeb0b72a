# sreality_crawler/errors.py
from __future__ import annotations


class CrawlError(Exception):
    """Base class for everything the crawl pipeline raises on purpose."""


class TransientNetworkError(CrawlError):
    """Timeout, connection failure or retryable HTTP status."""

    def __init__(self, message: str, *, url: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class ExhaustedRetries(TransientNetworkError):
    def __init__(self, url: str, attempts: int, last_error: Exception) -> None:
        status = getattr(last_error, "status", None)
        super().__init__(f"gave up on {url} after {attempts} attempts: {last_error}", url=url, status=status)
        self.attempts = attempts
        self.last_error = last_error


class NormalizationError(CrawlError):
    """Upstream payload is structurally malformed."""


class IngestionError(CrawlError):
    """The ingestion sink rejected or failed a send."""


class CollaboratorUnavailable(CrawlError):
    """Queue/store or snapshot database unreachable. Fatal to the process."""
