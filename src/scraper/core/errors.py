"""
Error taxonomy for order-history scraping.

Every failure that leaves the scraping core is a ScrapeError. Anything else
raised by the browser or by our own code is run through classify_error()
first, so the HTTP layer never has to guess what went wrong.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Failure classes understood by callers."""

    CAPTCHA = "CAPTCHA"
    AUTH_FAILED = "AUTH_FAILED"
    PARSE_ERROR = "PARSE_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    TIMEOUT = "TIMEOUT"


class Stage(str, Enum):
    """Where in the request a failure surfaced."""

    SESSION = "session"
    AUTHENTICATION = "authentication"
    EXTRACTION = "extraction"


_STATUS_CODES = {
    ErrorKind.AUTH_FAILED: 401,
    ErrorKind.CAPTCHA: 422,
}


class ScrapeError(Exception):
    """A classified scraping failure."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        recoverable: bool,
        order_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = ErrorKind(kind)
        self.message = message
        self.recoverable = recoverable
        self.order_id = order_id

    @property
    def http_status(self) -> int:
        return _STATUS_CODES.get(self.kind, 500)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": self.message,
            "type": self.kind.value,
            "recoverable": self.recoverable,
        }
        if self.order_id:
            body["order_id"] = self.order_id
        return body

    def __repr__(self) -> str:
        return (
            f"ScrapeError(kind={self.kind.value}, message={self.message!r}, "
            f"recoverable={self.recoverable})"
        )


def captcha_error(message: str) -> ScrapeError:
    return ScrapeError(ErrorKind.CAPTCHA, message, recoverable=False)


def auth_error(message: str) -> ScrapeError:
    return ScrapeError(ErrorKind.AUTH_FAILED, message, recoverable=False)


def classify_error(exc: BaseException, stage: Stage, context: str = "") -> ScrapeError:
    """
    Map any exception onto the error taxonomy.

    Already-classified errors pass through untouched. Messages that mention a
    captcha become CAPTCHA regardless of stage. Otherwise the stage decides:
    extraction failures are recoverable PARSE_ERRORs, authentication and
    session failures are fatal AUTH_FAILEDs.

    Args:
        exc: The exception to classify
        stage: Stage the exception surfaced from
        context: Optional prefix for the message, e.g. the retailer name

    Returns:
        ScrapeError describing the failure
    """
    if isinstance(exc, ScrapeError):
        return exc

    detail = str(exc) or exc.__class__.__name__
    prefix = f"{context} " if context else ""

    if "captcha" in detail.lower():
        return captcha_error(f"{prefix}requires CAPTCHA verification".strip())

    if stage is Stage.EXTRACTION:
        return ScrapeError(
            ErrorKind.PARSE_ERROR,
            f"{prefix}order extraction failed: {detail}".strip(),
            recoverable=True,
        )

    if stage is Stage.SESSION:
        return auth_error(f"{prefix}browser session failed: {detail}".strip())

    return auth_error(f"{prefix}authentication failed: {detail}".strip())
