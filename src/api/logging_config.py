"""Logging setup for the order import API."""

from __future__ import annotations

import logging
import os

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
CLOUD_LOG_NAME = "order-import"

# Browser automation libraries log every driver command at INFO/DEBUG
BROWSER_LOGGERS = ("selenium", "urllib3", "WDM")


def _quiet_browser_loggers(level: int) -> None:
    for name in BROWSER_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def configure_logging() -> None:
    """Configure root logging for the order import service.

    ``LOG_LEVEL`` sets the level (default INFO) and ``LOG_FORMAT`` the line
    format. In ``production`` or ``staging`` (``ENVIRONMENT``) records go to
    Cloud Logging under ``order-import`` so the dotted ``import.*`` and
    ``request.*`` events and their ``extra`` fields are queryable; without
    cloud credentials it falls back to stderr. Selenium, urllib3 and
    webdriver-manager stay at WARNING or above. Scrape credentials are never
    passed to any logger.
    """
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_format = os.getenv("LOG_FORMAT", DEFAULT_LOG_FORMAT)
    environment = os.getenv("ENVIRONMENT", "local").lower()

    level = getattr(logging, level_name, logging.INFO)
    logging.captureWarnings(True)
    _quiet_browser_loggers(level)

    if environment in {"production", "staging"}:
        try:
            from google.cloud import logging as cloud_logging  # type: ignore

            cloud_logging.Client().setup_logging(
                log_level=level,
                excluded_loggers=BROWSER_LOGGERS,
                name=CLOUD_LOG_NAME,
            )
            logging.getLogger(__name__).info(
                "Order import logs routed to Cloud Logging (environment=%s)", environment
            )
            return
        except Exception as exc:  # pragma: no cover - no cloud credentials in CI
            logging.basicConfig(level=level, format=log_format)
            logging.getLogger(__name__).warning(
                "Cloud Logging unavailable for order import (environment=%s): %s",
                environment,
                exc,
            )
            return

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(level=level, format=log_format)
        return

    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)


__all__ = ["configure_logging"]
