"""
Command-line entry point for a single order import.

Secrets are read from the environment, never from the config:
    RETAILER_TOKEN                      for token retailers (amazon)
    RETAILER_USERNAME / RETAILER_PASSWORD  for credential retailers

Usage:
    python -m src.scraper.scraper job.retailer=walmart
    python -m src.scraper.scraper job.retailer=amazon job.max_pages=3 \
        job.start_date=2024-01-01 job.end_date=2024-12-31
"""

import json
import logging
import os
import sys
from datetime import date
from typing import Optional

import hydra
from omegaconf import DictConfig

from .config import ScraperConfig, to_scraper_config
from .core.errors import ScrapeError
from .core.models import DateRange
from .importer import ImportRequest, ImportResult, OrderImporter
from .retailers import AuthMode, profile_for

logger = logging.getLogger(__name__)


class OrderImportPipeline:
    """Runs one import described by the job section of the config."""

    def __init__(self, config: ScraperConfig):
        self.config = config
        self.job = config.job
        self._setup_logging()

    def _setup_logging(self) -> None:
        logging.basicConfig(
            level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def build_request(self) -> ImportRequest:
        """Assemble the import request from config and environment."""
        profile = profile_for(self.job.retailer)
        auth_type = profile.auth_mode.value if profile else AuthMode.CREDENTIALS.value

        return ImportRequest(
            retailer=self.job.retailer,
            auth_type=auth_type,
            token=os.getenv("RETAILER_TOKEN"),
            username=os.getenv("RETAILER_USERNAME"),
            password=os.getenv("RETAILER_PASSWORD"),
            date_range=self._date_range(),
            max_pages=self.job.max_pages,
        )

    def _date_range(self) -> Optional[DateRange]:
        if not self.job.start_date or not self.job.end_date:
            return None
        return DateRange(
            start_date=date.fromisoformat(str(self.job.start_date)),
            end_date=date.fromisoformat(str(self.job.end_date)),
        )

    def run(self) -> int:
        """Execute the import and print the result as JSON. Returns an exit code."""
        logger.info("=" * 60)
        logger.info(f"ORDER IMPORT: {self.job.retailer}")
        logger.info("=" * 60)

        try:
            result: ImportResult = OrderImporter(self.config).import_orders(self.build_request())
        except ValueError as e:
            logger.error(f"Invalid import request: {e}")
            print(json.dumps({"error": str(e)}))
            return 2
        except ScrapeError as e:
            logger.error(f"Import failed ({e.kind.value}): {e.message}")
            print(json.dumps(e.to_dict()))
            return 1

        print(json.dumps({
            "success": True,
            "retailer": result.retailer,
            "products": [product.to_dict() for product in result.products],
            "count": result.count,
        }, indent=2))
        logger.info(f"Imported {result.count} products")
        return 0


@hydra.main(version_base=None, config_path="../../conf", config_name="scraper")
def main(cfg: DictConfig) -> None:
    """
    Main entry point for a one-off order import.

    Args:
        cfg: Hydra configuration object
    """
    pipeline = OrderImportPipeline(to_scraper_config(cfg))
    sys.exit(pipeline.run())


if __name__ == "__main__":
    main()
