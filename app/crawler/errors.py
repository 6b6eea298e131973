"""
Crawler error taxonomy.

Only :class:`NotFoundError` is surfaced to callers of the top-level
operations. Fetch and parse failures are caught where they happen and turned
into readable strings on the run's error list. Compliance denials and rate
limiting are plain return values, not exceptions.
"""
from __future__ import annotations


class CrawlerError(Exception):
    """Base class for crawler failures."""


class NotFoundError(CrawlerError):
    """Organization, document or static configuration is missing."""


class FetchError(CrawlerError):
    """Non-2xx HTTP response, network failure or timeout.

    ``str(err)`` is the HTTP status code when there was a response, otherwise
    the transport failure reason.
    """

    def __init__(self, url: str, *, status_code: int | None = None, reason: str | None = None):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        super().__init__(self.detail)

    @property
    def detail(self) -> str:
        if self.status_code is not None:
            return str(self.status_code)
        return self.reason or "unknown error"


class ParseError(CrawlerError):
    """Malformed feed or page content."""
