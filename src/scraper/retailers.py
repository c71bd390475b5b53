"""
Retailer profiles: where to log in, where the orders live, and how to find
things on each site's pages.

Every selector is a fallback chain. Retailers run layout experiments and
ship page variants, so each entry lists candidates in priority order and the
first one that matches wins.

Profiles are built once at import time and are read-only afterwards.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

SelectorChain = Tuple[str, ...]

# Hard ceiling on pages per request, whatever the caller asks for
MAX_PAGES_CEILING = 20

USER_AGENTS: Tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
)


class AuthMode(str, Enum):
    """How a retailer session is authenticated."""

    TOKEN = "oauth"
    CREDENTIALS = "credentials"


@dataclass(frozen=True)
class SelectorSet:
    """Named fallback chains for one retailer."""

    order_container: SelectorChain
    product_name: SelectorChain
    order_date: SelectorChain
    product_price: SelectorChain
    product_image: SelectorChain
    next_page: SelectorChain
    captcha: SelectorChain
    two_factor: SelectorChain = ()
    login_email: SelectorChain = ()
    login_password: SelectorChain = ()
    login_submit: SelectorChain = ()
    account_markers: SelectorChain = ()
    order_number: SelectorChain = ()
    # When set, each order container holds several item rows that share the
    # container's date, total and order number
    item_rows: SelectorChain = ()
    item_price: SelectorChain = ()


@dataclass(frozen=True)
class RetailerProfile:
    """Static description of one retailer front end."""

    retailer_id: str
    display_name: str
    auth_mode: AuthMode
    base_url: str
    login_url: str
    orders_url: str
    selectors: SelectorSet
    max_pages: int = 5
    home_url: Optional[str] = None
    account_url: Optional[str] = None
    captcha_text_markers: Tuple[str, ...] = ()
    supports_year_filter: bool = False
    import_filters: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    token_storage_key: Optional[str] = None
    token_cookie_name: Optional[str] = None
    token_cookie_domain: Optional[str] = None

    def orders_url_for_year(self, year: Optional[int]) -> str:
        """Orders URL, narrowed server-side to one year where supported."""
        if year is None or not self.supports_year_filter:
            return self.orders_url
        return f"{self.orders_url}?orderFilter=year-{year}"


AMAZON = RetailerProfile(
    retailer_id="amazon",
    display_name="Amazon",
    auth_mode=AuthMode.TOKEN,
    base_url="https://www.amazon.com",
    login_url="https://www.amazon.com",
    home_url="https://www.amazon.com",
    account_url="https://www.amazon.com/gp/css/homepage.html",
    orders_url="https://www.amazon.com/gp/css/order-history",
    max_pages=10,
    supports_year_filter=True,
    selectors=SelectorSet(
        order_container=(
            '[data-test-id="order-card"]',
            ".order-card",
            ".a-box.shipment",
            ".order-info",
            ".order",
        ),
        item_rows=(".item-view-left-col-inner", ".item-row", ".product-row"),
        product_name=(
            'a[href*="/dp/"]',
            'a[href*="/product/"]',
            ".item-title",
            ".product-title",
        ),
        order_date=(
            ".order-date",
            ".order-placed-date",
            '[data-test-id="order-date"]',
            ".order-info .a-color-secondary",
        ),
        product_price=(
            ".order-total",
            ".grand-total-price",
            ".a-price-whole",
            ".order-summary-total",
        ),
        item_price=(".item-price", ".a-price-whole", ".price"),
        order_number=(".order-number", '[data-test-id="order-number"]'),
        product_image=("img",),
        next_page=(
            '[data-test-id="pagination-next"]:not([disabled])',
            ".a-pagination .a-last:not(.a-disabled)",
        ),
        captcha=(
            "#captchacharacters",
            ".cvf-widget-container",
            '[name="cvf_captcha_input"]',
            "#auth-captcha-image",
            ".captcha-container",
        ),
        two_factor=("#auth-mfa-otpcode", '[name="otpCode"]'),
        account_markers=(
            '[data-test-id="nav-your-account"]',
            "#nav-link-accountList",
            ".nav-line-1-container",
        ),
    ),
    captcha_text_markers=(
        "enter the characters you see below",
        "sorry, we just need to make sure you're not a robot",
    ),
    import_filters=MappingProxyType({
        "returns": 'input[value="returns"]',
        "digital": 'input[value="digital"]',
        "subscriptions": 'input[value="subscription"]',
    }),
    token_storage_key="amazon_access_token",
    token_cookie_name="amazon_auth_token",
    token_cookie_domain=".amazon.com",
)

WALMART = RetailerProfile(
    retailer_id="walmart",
    display_name="Walmart",
    auth_mode=AuthMode.CREDENTIALS,
    base_url="https://www.walmart.com",
    login_url="https://www.walmart.com/account/login",
    orders_url="https://www.walmart.com/orders",
    selectors=SelectorSet(
        login_email=("#sign-in-email", 'input[name="email"]'),
        login_password=("#sign-in-password", 'input[name="password"]'),
        login_submit=('button[data-automation-id="signin-submit-btn"]', 'button[type="submit"]'),
        order_container=('[data-automation-id="order-card"]', ".order-card", ".order-item"),
        product_name=('[data-automation-id="product-title"]', ".product-title", ".item-title"),
        order_date=('[data-automation-id="order-date"]', ".order-date", ".date"),
        product_price=('[data-automation-id="product-price"]', ".price", ".item-price"),
        product_image=('img[data-automation-id="product-image"]', ".product-image img"),
        next_page=('[data-automation-id="pagination-next"]', ".paginator-btn:last-child"),
        captcha=("#funcaptcha", ".captcha", '[data-automation-id="captcha"]'),
        two_factor=('[data-automation-id="verification-code"]', "#two-step-verification"),
    ),
    captcha_text_markers=("press & hold", "activate and hold the button"),
)

TARGET = RetailerProfile(
    retailer_id="target",
    display_name="Target",
    auth_mode=AuthMode.CREDENTIALS,
    base_url="https://www.target.com",
    login_url="https://www.target.com/account/signin",
    orders_url="https://www.target.com/account/orders",
    selectors=SelectorSet(
        login_email=("#username",),
        login_password=("#password",),
        login_submit=("#login", 'button[type="submit"]'),
        order_container=(".order-card", '[data-test="order-card"]', ".order-item"),
        product_name=('[data-test="product-title"]', ".product-title", ".item-name"),
        order_date=('[data-test="order-date"]', ".order-date", ".date-placed"),
        product_price=('[data-test="product-price"]', ".price", ".item-price"),
        product_image=('[data-test="product-image"] img', ".product-image img"),
        next_page=('[data-test="next-page"]', ".next-page", ".pagination-next"),
        captcha=(".recaptcha", "#captcha", '[data-test="captcha"]'),
        two_factor=('[data-test="verification-code"]', "#verification-code"),
    ),
)

BESTBUY = RetailerProfile(
    retailer_id="bestbuy",
    display_name="BestBuy",
    auth_mode=AuthMode.CREDENTIALS,
    base_url="https://www.bestbuy.com",
    login_url="https://www.bestbuy.com/identity/signin",
    orders_url="https://www.bestbuy.com/profile/orders",
    selectors=SelectorSet(
        login_email=("#fld-e",),
        login_password=("#fld-p1",),
        login_submit=('button[type="submit"]',),
        order_container=(".order-card", ".order-item", '[data-testid="order-card"]'),
        product_name=(".order-item-title", ".product-title", '[data-testid="product-title"]'),
        order_date=(".order-date", '[data-testid="order-date"]'),
        product_price=(".order-item-price", ".price", '[data-testid="product-price"]'),
        product_image=(".order-item-image img", ".product-image img"),
        next_page=(".pagination-next", 'a[aria-label="Next Page"]'),
        captcha=(".g-recaptcha", "#captcha"),
        two_factor=("#verificationCode", '[data-testid="verification-code"]'),
    ),
)

_REGISTRY: Mapping[str, RetailerProfile] = MappingProxyType({
    profile.retailer_id: profile for profile in (AMAZON, WALMART, TARGET, BESTBUY)
})


def profile_for(retailer_id: str) -> Optional[RetailerProfile]:
    """Look up a retailer profile by case-insensitive id; None if unknown."""
    if not retailer_id:
        return None
    return _REGISTRY.get(retailer_id.strip().lower())


def supported_retailers() -> List[RetailerProfile]:
    return list(_REGISTRY.values())
