"""Shared fixtures for scraper tests."""

from __future__ import annotations

import random
from datetime import date

import pytest

from src.scraper.config import PaginationConfig, ScraperConfig, TimeoutConfig

TODAY = date(2024, 6, 15)


@pytest.fixture()
def fast_timeouts() -> TimeoutConfig:
    """Zero waits so a missing selector fails on the first lookup."""
    return TimeoutConfig(navigation=1.0, selector=0.0, account_probe=0.0, settle=1.0, poll_interval=0.0)


@pytest.fixture()
def sleeps() -> list:
    return []


@pytest.fixture()
def scraper_config(fast_timeouts: TimeoutConfig) -> ScraperConfig:
    config = ScraperConfig(timeouts=fast_timeouts, pagination=PaginationConfig())
    config.session.deadline_seconds = 5.0
    config.api.api_key = "test-api-key"
    return config


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(7)
