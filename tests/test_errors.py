"""Tests for the error taxonomy and classifier."""

import pytest

from src.scraper.core.errors import (
    ErrorKind,
    ScrapeError,
    Stage,
    auth_error,
    captcha_error,
    classify_error,
)


@pytest.mark.parametrize("stage", list(Stage))
def test_captcha_message_wins_at_any_stage(stage):
    error = classify_error(RuntimeError("Solve the CAPTCHA to continue"), stage, context="Walmart")

    assert error.kind is ErrorKind.CAPTCHA
    assert error.recoverable is False
    assert error.message == "Walmart requires CAPTCHA verification"


def test_extraction_errors_are_recoverable_parse_errors():
    error = classify_error(ValueError("bad row"), Stage.EXTRACTION, context="Target")

    assert error.kind is ErrorKind.PARSE_ERROR
    assert error.recoverable is True
    assert error.message == "Target order extraction failed: bad row"


def test_authentication_errors_are_fatal():
    error = classify_error(RuntimeError("net::ERR_ABORTED"), Stage.AUTHENTICATION, context="Amazon")

    assert error.kind is ErrorKind.AUTH_FAILED
    assert error.recoverable is False
    assert error.message == "Amazon authentication failed: net::ERR_ABORTED"


def test_session_errors_are_auth_failures():
    error = classify_error(OSError("no chrome"), Stage.SESSION)

    assert error.kind is ErrorKind.AUTH_FAILED
    assert error.message == "browser session failed: no chrome"


def test_classified_errors_pass_through():
    original = ScrapeError(ErrorKind.RATE_LIMIT, "slow down", recoverable=True)

    assert classify_error(original, Stage.EXTRACTION) is original


def test_empty_message_uses_exception_name():
    error = classify_error(TimeoutError(), Stage.AUTHENTICATION)

    assert error.message == "authentication failed: TimeoutError"


@pytest.mark.parametrize(
    "error, status",
    [
        (auth_error("nope"), 401),
        (captcha_error("robot check"), 422),
        (ScrapeError(ErrorKind.PARSE_ERROR, "x", recoverable=True), 500),
        (ScrapeError(ErrorKind.TIMEOUT, "x", recoverable=False), 500),
        (ScrapeError(ErrorKind.RATE_LIMIT, "x", recoverable=True), 500),
    ],
)
def test_http_status(error, status):
    assert error.http_status == status


def test_error_body():
    assert captcha_error("Amazon requires CAPTCHA verification").to_dict() == {
        "error": "Amazon requires CAPTCHA verification",
        "type": "CAPTCHA",
        "recoverable": False,
    }
    parse = ScrapeError(ErrorKind.PARSE_ERROR, "bad card", recoverable=True, order_id="112-1")
    assert parse.to_dict()["order_id"] == "112-1"
