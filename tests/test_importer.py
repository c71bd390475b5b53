"""Tests for request validation and the end-to-end import flow."""

import random
from datetime import date, timedelta

import pytest

from src.scraper import importer as importer_module
from src.scraper.core.errors import ErrorKind, ScrapeError
from src.scraper.core.models import CanonicalProduct, DateRange
from src.scraper.importer import (
    ImportRequest,
    InvalidImportRequest,
    OrderImporter,
    filter_by_date_range,
    resolve_request,
)
from src.scraper.retailers import AMAZON, WALMART

from conftest import TODAY
from fakes import (
    FakeElement,
    FakePage,
    amazon_card,
    amazon_signed_in_routes,
    credential_login_routes,
    order_card,
    order_screens,
)

TOKEN = "amzn-access-token-123456"


def product(purchase_date, name="Widget"):
    return CanonicalProduct(
        external_id=name,
        name=name,
        price=1.0,
        purchase_date=purchase_date,
        retailer="walmart",
        category=name,
    )


class TestResolveRequest:
    """Validation that happens before any browser starts."""

    def test_token_retailer(self):
        profile, credential = resolve_request(ImportRequest("Amazon", "oauth", token=TOKEN))

        assert profile is AMAZON
        assert credential.token == TOKEN
        assert credential.is_token

    def test_credential_retailer(self):
        profile, credential = resolve_request(
            ImportRequest("walmart", "credentials", username="ada@example.com", password="pw")
        )

        assert profile is WALMART
        assert credential.username == "ada@example.com"
        assert not credential.is_token

    def test_unknown_retailer(self):
        with pytest.raises(InvalidImportRequest, match="Unsupported retailer: ebay"):
            resolve_request(ImportRequest("ebay", "credentials", username="a", password="b"))

    @pytest.mark.parametrize(
        "request_",
        [
            ImportRequest("amazon", "oauth"),
            ImportRequest("amazon", "credentials", username="a", password="b", token=TOKEN),
        ],
    )
    def test_amazon_requires_token(self, request_):
        with pytest.raises(InvalidImportRequest, match="Amazon requires OAuth authentication with token"):
            resolve_request(request_)

    @pytest.mark.parametrize(
        "request_",
        [
            ImportRequest("target", "credentials", username="ada@example.com"),
            ImportRequest("target", "credentials", password="pw"),
            ImportRequest("target", "oauth", token=TOKEN),
        ],
    )
    def test_credential_retailer_requires_username_and_password(self, request_):
        with pytest.raises(
            InvalidImportRequest,
            match="Target requires credentials authentication with username and password",
        ):
            resolve_request(request_)

    def test_inverted_date_range(self):
        with pytest.raises(InvalidImportRequest, match="start_date"):
            resolve_request(ImportRequest(
                "amazon", "oauth", token=TOKEN,
                date_range=DateRange(date(2024, 5, 1), date(2024, 1, 1)),
            ))

    def test_invalid_request_is_a_value_error(self):
        assert issubclass(InvalidImportRequest, ValueError)

    def test_secrets_not_in_repr(self):
        request = ImportRequest("walmart", "credentials", username="ada", password="hunter22")
        assert "hunter22" not in repr(request)
        assert "hunter22" not in repr(resolve_request(request)[1])


class TestDateFilter:
    """Inclusive purchase-date window."""

    def test_bounds_are_inclusive(self):
        products = [
            product("2023-12-31", "Before"),
            product("2024-01-01", "First"),
            product("2024-06-30", "Last"),
            product("2024-07-01", "After"),
        ]

        kept = filter_by_date_range(products, DateRange(date(2024, 1, 1), date(2024, 6, 30)))

        assert [p.name for p in kept] == ["First", "Last"]

    def test_no_range_keeps_everything(self):
        products = [product("2020-01-01")]
        assert filter_by_date_range(products, None) == products


class TestOrderImporter:
    """Full authenticate, extract and filter runs against a fake browser."""

    @pytest.fixture()
    def make_importer(self, scraper_config, rng, sleeps):
        def make(page, factory=None):
            return OrderImporter(
                config=scraper_config,
                session_factory=factory or (lambda: page),
                rng=rng,
                sleep=sleeps.append,
                today=TODAY,
            )
        return make

    def test_amazon_import(self, make_importer):
        page = FakePage(amazon_signed_in_routes(AMAZON))
        order_screens(page, AMAZON, [[
            amazon_card(AMAZON, items=[{"name": "Widget Pro", "price": "$19.99"}], order_date="2 days ago"),
        ]])

        result = make_importer(page).import_orders(ImportRequest("amazon", "oauth", token=TOKEN))

        assert result.retailer == "amazon"
        assert result.count == 1
        item = result.products[0]
        assert item.name == "Widget Pro"
        assert item.price == 19.99
        assert item.purchase_date == (TODAY - timedelta(days=2)).isoformat()
        assert item.category == "Widget"
        assert page.closed

    def test_walmart_import_with_date_range(self, make_importer):
        page = FakePage()
        page.routes.update(credential_login_routes(WALMART, page))
        order_screens(page, WALMART, [[
            order_card(WALMART, name="Old Lamp", order_date="2023-11-20", price="$30"),
            order_card(WALMART, name="New Kettle", order_date="2024-02-10", price="$25"),
        ]])

        result = make_importer(page).import_orders(ImportRequest(
            "walmart", "credentials", username="ada@example.com", password="hunter22",
            date_range=DateRange(date(2024, 1, 1), date(2024, 12, 31)),
        ))

        assert [p.name for p in result.products] == ["New Kettle"]
        assert page.visited == [WALMART.login_url, WALMART.orders_url]
        assert page.closed

    def test_invalid_request_never_opens_browser(self, make_importer):
        opened = []

        def factory():
            opened.append(True)
            return FakePage()

        importer = make_importer(None, factory=factory)
        with pytest.raises(InvalidImportRequest):
            importer.import_orders(ImportRequest("walmart", "credentials", username="ada"))

        assert opened == []

    def test_auth_failure_is_raised_and_page_closed(self, make_importer):
        page = FakePage({WALMART.login_url: {}})

        with pytest.raises(ScrapeError) as excinfo:
            make_importer(page).import_orders(ImportRequest(
                "walmart", "credentials", username="ada@example.com", password="hunter22",
            ))

        assert excinfo.value.kind is ErrorKind.AUTH_FAILED
        assert page.closed

    def test_each_request_gets_its_own_generator(self, scraper_config, sleeps, monkeypatch):
        generators = []
        real_flow = importer_module.AuthenticationFlow

        def recording_flow(page, profile, timeouts=None, rng=None):
            generators.append(rng)
            return real_flow(page, profile, timeouts=timeouts, rng=rng)

        monkeypatch.setattr(importer_module, "AuthenticationFlow", recording_flow)
        pages = []

        def factory():
            page = FakePage(amazon_signed_in_routes(AMAZON))
            order_screens(page, AMAZON, [[amazon_card(AMAZON, items=[{"name": "Widget"}], order_date="2024-01-02")]])
            pages.append(page)
            return page

        importer = OrderImporter(config=scraper_config, session_factory=factory, sleep=sleeps.append)
        for _ in range(2):
            importer.import_orders(ImportRequest("amazon", "oauth", token=TOKEN))

        assert len(generators) == 2
        assert all(page.closed for page in pages)
        assert all(isinstance(generator, random.Random) for generator in generators)
        assert generators[0] is not generators[1]

    def test_captcha_during_scraping_discards_results(self, make_importer):
        page = FakePage(amazon_signed_in_routes(AMAZON))
        screens = order_screens(page, AMAZON, [
            [amazon_card(AMAZON, items=[{"name": "Widget"}], order_date="2024-01-02")],
            [amazon_card(AMAZON, items=[{"name": "Gadget"}], order_date="2024-01-03")],
        ])
        screens[1][AMAZON.selectors.captcha[0]] = [FakeElement()]

        with pytest.raises(ScrapeError) as excinfo:
            make_importer(page).import_orders(ImportRequest("amazon", "oauth", token=TOKEN))

        assert excinfo.value.kind is ErrorKind.CAPTCHA
        assert page.closed
