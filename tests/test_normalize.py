"""Tests for raw field normalization."""

from __future__ import annotations

import re
from datetime import date, timedelta

import pytest

from src.scraper.core.models import RawRecord
from src.scraper.normalize import (
    infer_category,
    normalize_record,
    parse_date,
    parse_price,
    resolve_image_url,
    sanitize_text,
)

from conftest import TODAY

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   Widget Pro   ",
        "<script>alert('x')</script> Gadget",
        "Café crème (500g), pack of 2 - 1.5L",
        "#1 best seller!! ™ ",
        "a" * 300,
        ("word " * 60) + "tail",
        "\t\n<>\n",
        "[bracketed] {braces} $9.99 & more",
    ],
)
def test_sanitize_text_is_safe_bounded_and_idempotent(raw: str) -> None:
    cleaned = sanitize_text(raw)

    assert "<" not in cleaned and ">" not in cleaned
    assert len(cleaned) <= 255
    assert sanitize_text(cleaned) == cleaned


def test_sanitize_text_keeps_safe_characters() -> None:
    assert sanitize_text("  Widget Pro (Blue), 2-pack v1.2  ") == "Widget Pro (Blue), 2-pack v1.2"
    assert sanitize_text("<b>Bold</b> & $5") == "bBoldb  5"
    assert sanitize_text(None) == ""


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$1,234.56", 1234.56),
        ("$19.99", 19.99),
        ("USD 5", 5.0),
        ("Total: 12,000", 12000.0),
        ("", 0.0),
        ("no digits", 0.0),
        ("no, digits, here", 0.0),
        (None, 0.0),
    ],
)
def test_parse_price(raw, expected) -> None:
    assert parse_price(raw) == pytest.approx(expected)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("March 3, 2024", "2024-03-03"),
        ("2024-01-31", "2024-01-31"),
        ("Order placed March 3, 2024", "2024-03-03"),
        ("Ordered on: Jan 5, 2023", "2023-01-05"),
    ],
)
def test_parse_date_absolute(raw: str, expected: str) -> None:
    assert parse_date(raw, today=TODAY) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("3 days ago", TODAY - timedelta(days=3)),
        ("2 weeks ago", TODAY - timedelta(weeks=2)),
        ("1 month ago", date(2024, 5, 15)),
    ],
)
def test_parse_date_relative(raw: str, expected: date) -> None:
    assert parse_date(raw, today=TODAY) == expected.isoformat()


def test_parse_date_relative_uses_current_date_by_default() -> None:
    assert parse_date("3 days ago") == (date.today() - timedelta(days=3)).isoformat()


@pytest.mark.parametrize(
    "raw", ["", None, "garbage", "!!!", "not a date at all", "0000", "00:00", "Ordered on: 0000"]
)
def test_parse_date_falls_back_to_today(raw) -> None:
    assert parse_date(raw, today=TODAY) == TODAY.isoformat()


@pytest.mark.parametrize(
    "raw", ["99999999999999", "0001-01-01", "9999-12-31", "-1 days ago", "12/31/1899", "\x00"]
)
def test_parse_date_never_raises_on_odd_input(raw) -> None:
    assert ISO_DATE.match(parse_date(raw, today=TODAY))


def test_infer_category() -> None:
    assert infer_category("Widget Pro") == "Widget"
    assert infer_category("  Anker  USB-C cable") == "Anker"
    assert infer_category("") == "Unknown"
    assert infer_category(None) == "Unknown"


def test_resolve_image_url() -> None:
    base = "https://www.amazon.com"

    assert resolve_image_url("/images/I/abc.jpg", base) == "https://www.amazon.com/images/I/abc.jpg"
    assert resolve_image_url("https://cdn.example.com/x.png", base) == "https://cdn.example.com/x.png"
    assert resolve_image_url("", base) is None
    assert resolve_image_url("data:image/gif;base64,R0lGOD", base) is None


def test_normalize_record_produces_canonical_product() -> None:
    raw = RawRecord(
        external_id="walmart_1_1_0",
        name_text="  <i>Widget</i> Pro  ",
        price_text="$1,019.50",
        date_text="2 days ago",
        retailer="Walmart",
        image_url="https://i5.walmartimages.com/widget.jpg",
    )

    product = normalize_record(raw, today=TODAY)

    assert product.name == "iWidgeti Pro"
    assert product.price == pytest.approx(1019.50)
    assert product.purchase_date == (TODAY - timedelta(days=2)).isoformat()
    assert product.retailer == "walmart"
    assert product.category == "iWidgeti"
    assert product.image_url == "https://i5.walmartimages.com/widget.jpg"
