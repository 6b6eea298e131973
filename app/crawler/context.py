"""
Crawl run context.

Run-scoped state for one organization's crawl: the open CrawlLog row, the
running document count and the ordered error list that ends up on the log.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import NamedTuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crawler.organizations import OrganizationConfig
from app.models import CrawlLog

logger = logging.getLogger(__name__)


class CrawlOutcome(NamedTuple):
    documents_found: int
    errors: list[str]


@dataclass
class CrawlRunContext:
    """Holds run-scoped state for one organization crawl."""

    db: AsyncSession
    organization_id: UUID
    config: OrganizationConfig

    log: CrawlLog | None = None
    documents_found: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def slug(self) -> str:
        return self.config.slug

    def add_documents(self, count: int, *, source: str) -> None:
        self.documents_found += count
        logger.info("[crawl %s] %s new document(s) from %s", self.slug, count, source)

    def record_error(self, message: str) -> None:
        """Append a human-readable failure; the run carries on."""
        self.errors.append(message)
        logger.warning("[crawl %s] %s", self.slug, message)

    @property
    def status(self) -> str:
        return "completed_with_errors" if self.errors else "completed"

    def outcome(self) -> CrawlOutcome:
        return CrawlOutcome(self.documents_found, list(self.errors))
