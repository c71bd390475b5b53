"""
Configuration schemas for the order import service using Hydra.

The dataclasses are the structured schema; conf/scraper.yaml supplies the
defaults that ship with the repo and command-line or API overrides are
applied on top with Hydra's compose API.
"""

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from hydra import compose, initialize_config_dir
from omegaconf import DictConfig, OmegaConf

CONF_DIR = Path(__file__).resolve().parents[2] / "conf"
CONFIG_NAME = "scraper"

# Hydra keeps one global instance per process
_HYDRA_LOCK = threading.Lock()


@dataclass
class BrowserConfig:
    """Chrome session settings."""

    headless: bool = True
    window_width: int = 1920
    window_height: int = 1080
    page_load_timeout: int = 30
    implicit_wait: int = 0


@dataclass
class TimeoutConfig:
    """Per-operation waits, in seconds."""

    navigation: float = 30.0
    selector: float = 15.0
    account_probe: float = 5.0
    settle: float = 30.0
    poll_interval: float = 0.25


@dataclass
class PaginationConfig:
    """Pagination limits and throttling."""

    max_pages_ceiling: int = 20
    delay_base: float = 2.0
    delay_jitter: float = 1.0


@dataclass
class SessionConfig:
    """Request-level session limits."""

    deadline_seconds: float = 240.0


@dataclass
class ApiConfig:
    """HTTP layer settings."""

    api_key: Optional[str] = None
    api_key_env: str = "SCRAPER_API_KEY"

    def resolve_api_key(self) -> Optional[str]:
        return os.getenv(self.api_key_env) or self.api_key


@dataclass
class ImportJobConfig:
    """One-off import run from the command line."""

    retailer: str = "amazon"
    max_pages: Optional[int] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


@dataclass
class ScraperConfig:
    """Main configuration class for the order import service."""

    browser: BrowserConfig = field(default_factory=BrowserConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    job: ImportJobConfig = field(default_factory=ImportJobConfig)


def to_scraper_config(cfg: DictConfig) -> ScraperConfig:
    """Validate a Hydra config against the schema and return the dataclass."""
    merged = OmegaConf.merge(OmegaConf.structured(ScraperConfig), cfg)
    return OmegaConf.to_object(merged)


def load_config(overrides: Optional[List[str]] = None) -> ScraperConfig:
    """
    Compose the service configuration.

    Args:
        overrides: Hydra-style overrides, e.g. ["session.deadline_seconds=60"]

    Returns:
        Populated ScraperConfig
    """
    if not (CONF_DIR / f"{CONFIG_NAME}.yaml").exists():
        return to_scraper_config(OmegaConf.from_dotlist(overrides or []))

    with _HYDRA_LOCK, initialize_config_dir(version_base=None, config_dir=str(CONF_DIR)):
        cfg = compose(config_name=CONFIG_NAME, overrides=overrides or [])
    return to_scraper_config(cfg)
