"""
Field normalization for scraped order data.

Turns the raw text read from order pages into the canonical product shape.
None of these functions raise: unparseable input falls back to a safe
default (empty string, 0.0, today's date, "Unknown").
"""

import logging
import re
import warnings
from datetime import date, datetime, timedelta
from typing import Optional
from urllib.parse import urljoin

import pandas as pd

from .core.models import CanonicalProduct, RawRecord

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 255
UNKNOWN_CATEGORY = "Unknown"

_UNSAFE_CHARS = re.compile(r"[^\w\s\-.,()]")
_PRICE_TOKEN = re.compile(r"\d[\d,]*(?:\.\d+)?")
_DATE_NOISE = re.compile(r"[^\w\s,./-]")
_DATE_LABEL = re.compile(
    r"^(?:order(?:ed)?\s+(?:placed|on|date)|placed\s+on|purchased\s+on|delivered)\s*:?\s*",
    re.IGNORECASE,
)
_RELATIVE_DATE = re.compile(r"(\d+)\s*(day|week|month)", re.IGNORECASE)


def sanitize_text(value: Optional[str]) -> str:
    """
    Reduce free text to a conservative character set.

    Strips angle brackets and anything outside word characters, whitespace,
    hyphen, period, comma and parentheses, then truncates to 255 characters.
    Trimming happens last so the function is idempotent.
    """
    if not value:
        return ""

    cleaned = value.strip().replace("<", "").replace(">", "")
    cleaned = _UNSAFE_CHARS.sub("", cleaned)
    return cleaned[:MAX_TEXT_LENGTH].strip()


def parse_price(value: Optional[str]) -> float:
    """Parse the first numeric token of a price string; 0.0 if there is none."""
    if not value:
        return 0.0

    match = _PRICE_TOKEN.search(value)
    if not match:
        return 0.0

    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return 0.0


def _parse_absolute(text: str) -> Optional[date]:
    with warnings.catch_warnings():
        # pandas warns when it has to fall back to dateutil guessing
        warnings.simplefilter("ignore", UserWarning)
        parsed = pd.to_datetime(text, errors="coerce")

    if parsed is None or pd.isna(parsed):
        return None
    try:
        # year 0 and similar out-of-calendar stamps have no date()
        return parsed.date()
    except (ValueError, OverflowError, NotImplementedError):
        return None


def _parse_relative(text: str, today: date) -> Optional[date]:
    match = _RELATIVE_DATE.search(text)
    if not match:
        return None

    amount = int(match.group(1))
    unit = match.group(2).lower()

    if unit == "day":
        return today - timedelta(days=amount)
    if unit == "week":
        return today - timedelta(weeks=amount)
    return (pd.Timestamp(today) - pd.DateOffset(months=amount)).date()


def parse_date(value: Optional[str], today: Optional[date] = None) -> str:
    """
    Parse an order date into an ISO calendar date string.

    Absolute dates ("March 3, 2024", "2024-03-03") are tried first, then
    relative ones ("3 days ago", "2 weeks ago", "1 month ago"). Anything else
    becomes today's date.

    Args:
        value: Raw date text from the page
        today: Reference date for relative dates and the fallback

    Returns:
        Date formatted as YYYY-MM-DD
    """
    today = today or datetime.now().date()
    if not value:
        return today.isoformat()

    cleaned = _DATE_NOISE.sub("", value).strip()
    cleaned = _DATE_LABEL.sub("", cleaned).strip()

    try:
        parsed = _parse_absolute(cleaned) if cleaned else None
        if parsed is None:
            parsed = _parse_relative(cleaned, today)
        if parsed is not None:
            return parsed.isoformat()
    except (ValueError, OverflowError, TypeError, NotImplementedError) as e:
        logger.debug(f"Date parsing error for {value!r}: {e}")

    return today.isoformat()


def infer_category(name: Optional[str]) -> str:
    """First whitespace-delimited token of the product name."""
    tokens = (name or "").split()
    return tokens[0] if tokens else UNKNOWN_CATEGORY


def resolve_image_url(src: Optional[str], base_url: str) -> Optional[str]:
    """Absolute image URL, or None for missing and inline images."""
    if not src or not src.strip():
        return None
    src = src.strip()
    if src.startswith("data:"):
        return None
    return urljoin(base_url + "/", src)


def normalize_record(raw: RawRecord, today: Optional[date] = None) -> CanonicalProduct:
    """Convert one RawRecord into a CanonicalProduct."""
    name = sanitize_text(raw.name_text)
    return CanonicalProduct(
        external_id=sanitize_text(raw.external_id) or raw.external_id,
        name=name,
        price=parse_price(raw.price_text),
        purchase_date=parse_date(raw.date_text, today=today),
        retailer=raw.retailer.lower(),
        category=infer_category(name),
        image_url=raw.image_url or None,
    )
