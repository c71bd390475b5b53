"""
Paginated order-history extraction.

Walks a retailer's order pages, reads raw records with the profile's fallback
chains and normalizes them page by page. A CAPTCHA anywhere aborts the whole
request; any other problem on a page stops pagination and keeps what was
already collected.
"""

import logging
import random
import time
from datetime import date
from typing import Callable, List, Optional

from .captcha import CaptchaGuard
from .config import PaginationConfig, TimeoutConfig
from .core.errors import ErrorKind, Stage, captcha_error, classify_error
from .core.models import CanonicalProduct, DateRange, ImportOptions, RawRecord
from .core.page import BrowserPage, PageElement, PageTimeoutError
from .normalize import normalize_record, resolve_image_url
from .retailers import MAX_PAGES_CEILING, RetailerProfile
from .selectors import first_attribute, first_match, first_match_all, first_text, wait_for_any

logger = logging.getLogger(__name__)


def clamp_max_pages(requested: Optional[int], default: int, ceiling: int = MAX_PAGES_CEILING) -> int:
    """Caller's page limit, or the profile default, held to [1, ceiling]."""
    pages = requested if requested else default
    return max(1, min(pages, ceiling))


class PaginatedExtractor:
    """Scrapes order pages for one request. Not reusable across requests."""

    def __init__(
        self,
        timeouts: Optional[TimeoutConfig] = None,
        pagination: Optional[PaginationConfig] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        today: Optional[date] = None,
    ):
        self.timeouts = timeouts or TimeoutConfig()
        self.pagination = pagination or PaginationConfig()
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock
        self._today = today

    def extract(
        self,
        page: BrowserPage,
        profile: RetailerProfile,
        max_pages: Optional[int] = None,
        date_range: Optional[DateRange] = None,
        import_options: Optional[ImportOptions] = None,
    ) -> List[CanonicalProduct]:
        """
        Extract every order item reachable within the page limit.

        Args:
            page: Authenticated browser page
            profile: Retailer being scraped
            max_pages: Requested page limit; profile default when None
            date_range: Used as a server-side year hint where supported
            import_options: Order classes to filter out on the page

        Returns:
            Canonical products in page order

        Raises:
            ScrapeError: CAPTCHA at any point, or PARSE_ERROR if the orders
                page cannot be opened at all
        """
        limit = clamp_max_pages(
            max_pages, profile.max_pages, min(MAX_PAGES_CEILING, self.pagination.max_pages_ceiling)
        )
        year = date_range.start_date.year if date_range else None
        orders_url = profile.orders_url_for_year(year)

        try:
            page.navigate(orders_url, self.timeouts.navigation)
        except Exception as e:
            raise classify_error(e, Stage.EXTRACTION, context=profile.display_name) from e

        if import_options is not None:
            self._apply_import_filters(page, profile, import_options)

        products: List[CanonicalProduct] = []
        current_page = 1

        while current_page <= limit:
            logger.info(f"Scraping {profile.display_name} page {current_page}...")
            try:
                if CaptchaGuard.detect_for(page, profile):
                    raise captcha_error(
                        f"{profile.display_name} presented CAPTCHA during scraping"
                    )

                try:
                    wait_for_any(
                        page,
                        profile.selectors.order_container,
                        timeout=self.timeouts.selector,
                        poll_interval=self.timeouts.poll_interval,
                    )
                except PageTimeoutError:
                    logger.warning(
                        f"No orders found on {profile.display_name} page {current_page}; stopping"
                    )
                    break

                raw_records = self.read_page(page, profile, current_page)
                page_products = self._normalize_page(raw_records)
                products.extend(page_products)
                logger.info(
                    f"Extracted {len(page_products)} items from "
                    f"{profile.display_name} page {current_page}"
                )

                if current_page >= limit or not self._go_to_next_page(page, profile):
                    break
                current_page += 1

            except Exception as e:
                error = classify_error(e, Stage.EXTRACTION, context=profile.display_name)
                if error.kind is ErrorKind.CAPTCHA:
                    raise error from e
                logger.error(f"Error on {profile.display_name} page {current_page}: {e}")
                break

        return products

    def read_page(self, page: BrowserPage, profile: RetailerProfile, page_number: int) -> List[RawRecord]:
        """Read every order item on the current page as RawRecords."""
        records: List[RawRecord] = []
        timestamp = int(self._clock() * 1000)

        for card_index, card in enumerate(first_match_all(page, profile.selectors.order_container)):
            try:
                if profile.selectors.item_rows:
                    records.extend(self._read_multi_item_card(card, profile, timestamp, card_index))
                else:
                    record = self._read_single_item_card(card, profile, timestamp, page_number, card_index)
                    if record is not None:
                        records.append(record)
            except Exception as e:
                logger.error(f"Error extracting item: {e}")

        return records

    def _normalize_page(self, raw_records: List[RawRecord]) -> List[CanonicalProduct]:
        """Normalize records one at a time; a bad record is skipped, not the page."""
        page_products: List[CanonicalProduct] = []
        for raw in raw_records:
            try:
                product = normalize_record(raw, today=self._today)
            except Exception as e:
                logger.error(f"Error normalizing {raw.external_id}: {e}")
                continue
            if product.name:
                page_products.append(product)
        return page_products

    def _read_single_item_card(
        self,
        card: PageElement,
        profile: RetailerProfile,
        timestamp: int,
        page_number: int,
        index: int,
    ) -> Optional[RawRecord]:
        selectors = profile.selectors
        name = first_text(card, selectors.product_name)
        order_date = first_text(card, selectors.order_date, attribute="datetime")
        if not name or not order_date:
            return None

        return RawRecord(
            external_id=f"{profile.retailer_id}_{timestamp}_{page_number}_{index}",
            name_text=name,
            price_text=first_text(card, selectors.product_price) or "0",
            date_text=order_date,
            retailer=profile.retailer_id,
            image_url=resolve_image_url(
                first_attribute(card, selectors.product_image, "src"), profile.base_url
            ),
        )

    def _read_multi_item_card(
        self,
        card: PageElement,
        profile: RetailerProfile,
        timestamp: int,
        card_index: int,
    ) -> List[RawRecord]:
        selectors = profile.selectors
        header = card.query(".order-header") or card
        order_date = first_text(header, selectors.order_date, attribute="datetime")
        order_total = first_text(header, selectors.product_price)
        order_number = first_text(header, selectors.order_number)

        records: List[RawRecord] = []
        for item_index, item in enumerate(first_match_all(card, selectors.item_rows)):
            name = first_text(item, selectors.product_name)
            if not name or not order_date:
                continue

            records.append(RawRecord(
                external_id=order_number or f"{timestamp}-{card_index}-{item_index}",
                name_text=name,
                price_text=first_text(item, selectors.item_price) or order_total,
                date_text=order_date,
                retailer=profile.retailer_id,
                image_url=resolve_image_url(
                    first_attribute(item, selectors.product_image, "src"), profile.base_url
                ),
            ))
        return records

    def _go_to_next_page(self, page: BrowserPage, profile: RetailerProfile) -> bool:
        """Click the next-page control if there is an enabled one."""
        next_button = first_match(page, profile.selectors.next_page)
        if next_button is None or not next_button.is_enabled():
            return False

        next_button.click()
        page.wait_until_settled(self.timeouts.settle)
        self._sleep(self.pagination.delay_base + self._rng.uniform(0, self.pagination.delay_jitter))
        return True

    def _apply_import_filters(
        self,
        page: BrowserPage,
        profile: RetailerProfile,
        import_options: ImportOptions,
    ) -> None:
        """Uncheck filter boxes for excluded order classes; best effort."""
        for option, excluded in import_options.excluded().items():
            selector = profile.import_filters.get(option)
            if not excluded or not selector:
                continue
            try:
                checkbox = page.query(selector)
                if checkbox is not None and checkbox.get_attribute("checked") is not None:
                    checkbox.click()
                    page.wait_until_settled(self.timeouts.settle)
                    logger.info(f"Excluded {option} orders on {profile.display_name}")
            except Exception as e:
                logger.warning(f"Could not apply {option} filter: {e}")
