"""Unit tests for app.crawler.config."""
from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from app.crawler.config import CrawlerConfig, load_crawler_config


# --- CrawlerConfig defaults ---

def test_crawler_config_defaults():
    cfg = CrawlerConfig()
    assert cfg.fetch_timeout_seconds == 30.0
    assert cfg.robots_cache_ttl_seconds == 3600.0
    assert cfg.rate_window_seconds == 60.0
    assert cfg.max_links_per_page == 20
    assert cfg.chunk_size == 1000
    assert cfg.chunk_overlap == 200
    assert cfg.max_concurrent_organizations == 1
    assert cfg.crawl_type == "scheduled"
    assert cfg.process_batch_size == 10
    assert cfg.log_level == "INFO"
    assert cfg.user_agent


def test_crawler_config_is_frozen():
    cfg = CrawlerConfig()
    with pytest.raises(AttributeError):
        cfg.chunk_size = 10  # type: ignore[misc]


# --- load_crawler_config ---

def test_load_crawler_config_defaults():
    with patch.dict(os.environ, {}, clear=True):
        cfg = load_crawler_config()
    assert cfg.fetch_timeout_seconds == 30.0
    assert cfg.max_concurrent_organizations == 1
    assert cfg.chunk_overlap == 200


def test_load_crawler_config_reads_env():
    env = {
        "CRAWLER_FETCH_TIMEOUT": "12.5",
        "CRAWLER_USER_AGENT": "Probe/2.0",
        "CRAWLER_ROBOTS_TTL": "60",
        "CRAWLER_MAX_LINKS_PER_PAGE": "5",
        "CRAWLER_CHUNK_SIZE": "500",
        "CRAWLER_CHUNK_OVERLAP": "50",
        "CRAWLER_MAX_CONCURRENT_ORGS": "3",
        "CRAWLER_CRAWL_TYPE": "manual",
        "CRAWLER_PROCESS_BATCH_SIZE": "25",
        "CRAWLER_LOG_LEVEL": "DEBUG",
    }
    with patch.dict(os.environ, env, clear=True):
        cfg = load_crawler_config()
    assert cfg.fetch_timeout_seconds == 12.5
    assert cfg.user_agent == "Probe/2.0"
    assert cfg.robots_cache_ttl_seconds == 60.0
    assert cfg.max_links_per_page == 5
    assert cfg.chunk_size == 500
    assert cfg.chunk_overlap == 50
    assert cfg.max_concurrent_organizations == 3
    assert cfg.crawl_type == "manual"
    assert cfg.process_batch_size == 25
    assert cfg.log_level == "DEBUG"


def test_load_crawler_config_bad_values_fall_back():
    env = {
        "CRAWLER_FETCH_TIMEOUT": "soon",
        "CRAWLER_CHUNK_SIZE": "big",
        "CRAWLER_MAX_CONCURRENT_ORGS": "0",
        "CRAWLER_PROCESS_BATCH_SIZE": "-3",
    }
    with patch.dict(os.environ, env, clear=True):
        cfg = load_crawler_config()
    assert cfg.fetch_timeout_seconds == 30.0
    assert cfg.chunk_size == 1000
    assert cfg.max_concurrent_organizations == 1
    assert cfg.process_batch_size == 1
