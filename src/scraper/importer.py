"""Order import service: validates a request and runs one scrape end to end."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Tuple

from .auth import AuthenticationFlow
from .config import ScraperConfig
from .core.browser_factory import BrowserFactory
from .core.models import CanonicalProduct, Credential, DateRange, ImportOptions
from .core.page import BrowserPage
from .extractor import PaginatedExtractor
from .retailers import AuthMode, RetailerProfile, profile_for
from .session import SessionFactory, SessionGuard

logger = logging.getLogger(__name__)


class InvalidImportRequest(ValueError):
    """The request is malformed or does not fit the retailer's auth mode."""


@dataclass(frozen=True)
class ImportRequest:
    """Transport-independent import request."""

    retailer: str
    auth_type: str
    token: Optional[str] = field(default=None, repr=False)
    username: Optional[str] = field(default=None, repr=False)
    password: Optional[str] = field(default=None, repr=False)
    date_range: Optional[DateRange] = None
    import_options: Optional[ImportOptions] = None
    max_pages: Optional[int] = None


@dataclass
class ImportResult:
    """Products scraped for one request."""

    retailer: str
    products: List[CanonicalProduct]

    @property
    def count(self) -> int:
        return len(self.products)


def resolve_request(request: ImportRequest) -> Tuple[RetailerProfile, Credential]:
    """
    Pick the retailer profile and check the auth fields against it.

    Raises:
        InvalidImportRequest: Unknown retailer, wrong auth type, missing
            auth fields, or an inverted date range
    """
    profile = profile_for(request.retailer)
    if profile is None:
        raise InvalidImportRequest(f"Unsupported retailer: {request.retailer}")

    if profile.auth_mode is AuthMode.TOKEN:
        if request.auth_type != AuthMode.TOKEN.value or not request.token:
            raise InvalidImportRequest(
                f"{profile.display_name} requires OAuth authentication with token"
            )
        credential = Credential(token=request.token)
    else:
        if (
            request.auth_type != AuthMode.CREDENTIALS.value
            or not request.username
            or not request.password
        ):
            raise InvalidImportRequest(
                f"{profile.display_name} requires credentials authentication "
                "with username and password"
            )
        credential = Credential(username=request.username, password=request.password)

    date_range = request.date_range
    if date_range is not None and date_range.start_date > date_range.end_date:
        raise InvalidImportRequest("date_range.start_date must not be after end_date")

    return profile, credential


def filter_by_date_range(
    products: List[CanonicalProduct], date_range: Optional[DateRange]
) -> List[CanonicalProduct]:
    """Keep products purchased inside the inclusive range."""
    if date_range is None:
        return products
    return [
        product
        for product in products
        if date_range.contains(date.fromisoformat(product.purchase_date))
    ]


class OrderImporter:
    """Runs authenticate -> extract -> filter inside a guarded session."""

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        session_factory: Optional[SessionFactory] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Optional[date] = None,
    ):
        self.config = config or ScraperConfig()
        self.session_factory = session_factory or BrowserFactory(self.config.browser)
        # None means a fresh generator per request
        self._rng = rng
        self._sleep = sleep
        self._today = today

    def import_orders(self, request: ImportRequest) -> ImportResult:
        """
        Import one user's order history.

        Parameters
        ----------
        request : ImportRequest
            Retailer, auth fields and optional filters.

        Returns
        -------
        ImportResult
            Normalized products, already filtered by date range.

        Raises
        ------
        InvalidImportRequest
            Before any browser is started, if the request is unusable.
        ScrapeError
            For every failure once the session is open.
        """
        profile, credential = resolve_request(request)
        logger.info(f"Starting {profile.display_name} import ({profile.auth_mode.value})")
        rng = self._rng or random.Random()

        guard = SessionGuard(self.session_factory, self.config.session.deadline_seconds)
        products = guard.run(
            lambda page: self._authenticate_and_extract(page, profile, credential, request, rng),
            context=profile.display_name,
        )

        products = filter_by_date_range(products, request.date_range)
        logger.info(f"{profile.display_name} import finished with {len(products)} products")
        return ImportResult(retailer=profile.retailer_id, products=products)

    def _authenticate_and_extract(
        self,
        page: BrowserPage,
        profile: RetailerProfile,
        credential: Credential,
        request: ImportRequest,
        rng: random.Random,
    ) -> List[CanonicalProduct]:
        flow = AuthenticationFlow(page, profile, timeouts=self.config.timeouts, rng=rng)
        result = flow.run(credential)
        if not result.ok:
            raise result.error

        extractor = PaginatedExtractor(
            timeouts=self.config.timeouts,
            pagination=self.config.pagination,
            rng=rng,
            sleep=self._sleep,
            today=self._today,
        )
        return extractor.extract(
            page,
            profile,
            max_pages=request.max_pages,
            date_range=request.date_range,
            import_options=request.import_options,
        )
