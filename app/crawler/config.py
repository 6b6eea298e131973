"""
Crawler configuration.

Single source of truth for pipeline-level defaults and tunables. Organization
specific rules (paths, robots, rate budget) live in ``app.crawler.organizations``.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from app.config import CRAWLER_USER_AGENT


@dataclass(frozen=True)
class CrawlerConfig:
    """Immutable crawler configuration loaded once at startup."""

    # --- Network ---
    fetch_timeout_seconds: float = 30.0
    user_agent: str = CRAWLER_USER_AGENT

    # --- Compliance / admission ---
    robots_cache_ttl_seconds: float = 3600.0
    rate_window_seconds: float = 60.0
    max_links_per_page: int = 20

    # --- Chunking ---
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # --- Orchestration ---
    max_concurrent_organizations: int = 1  # 1 = sequential, one organization at a time
    crawl_type: str = "scheduled"

    # --- Document worker loop ---
    poll_interval_seconds: float = 30.0
    error_sleep_seconds: float = 5.0
    process_batch_size: int = 10

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - [CRAWLER] - %(levelname)s - %(message)s"


def load_crawler_config() -> CrawlerConfig:
    """Build CrawlerConfig from environment variables (with defaults)."""
    def _float(key: str, default: float) -> float:
        raw = os.getenv(key)
        if raw is None:
            return default
        try:
            return float(raw)
        except (TypeError, ValueError):
            return default

    def _int(key: str, default: int) -> int:
        raw = os.getenv(key)
        if raw is None:
            return default
        try:
            return int(raw)
        except (TypeError, ValueError):
            return default

    return CrawlerConfig(
        fetch_timeout_seconds=_float("CRAWLER_FETCH_TIMEOUT", 30.0),
        user_agent=os.getenv("CRAWLER_USER_AGENT", CRAWLER_USER_AGENT),
        robots_cache_ttl_seconds=_float("CRAWLER_ROBOTS_TTL", 3600.0),
        rate_window_seconds=_float("CRAWLER_RATE_WINDOW", 60.0),
        max_links_per_page=_int("CRAWLER_MAX_LINKS_PER_PAGE", 20),
        chunk_size=_int("CRAWLER_CHUNK_SIZE", 1000),
        chunk_overlap=_int("CRAWLER_CHUNK_OVERLAP", 200),
        max_concurrent_organizations=max(1, _int("CRAWLER_MAX_CONCURRENT_ORGS", 1)),
        crawl_type=os.getenv("CRAWLER_CRAWL_TYPE", "scheduled"),
        poll_interval_seconds=_float("CRAWLER_POLL_INTERVAL", 30.0),
        error_sleep_seconds=_float("CRAWLER_ERROR_SLEEP", 5.0),
        process_batch_size=max(1, _int("CRAWLER_PROCESS_BATCH_SIZE", 10)),
        log_level=os.getenv("CRAWLER_LOG_LEVEL", "INFO"),
        log_format=os.getenv(
            "CRAWLER_LOG_FORMAT",
            "%(asctime)s - [CRAWLER] - %(levelname)s - %(message)s",
        ),
    )
