"""
Prioritized-candidate lookup over fallback selector chains.

These helpers only need something with query()/query_all(), so they work on
pages and on elements alike, for any driver behind the BrowserPage protocol.
"""

import logging
import time
from typing import Callable, Iterable, List, Optional

from .core.page import PageElement, PageTimeoutError

logger = logging.getLogger(__name__)


def first_match(scope, chain: Iterable[str]) -> Optional[PageElement]:
    """Return the first element matched by any selector, in chain order."""
    for selector in chain:
        element = scope.query(selector)
        if element is not None:
            return element
    return None


def first_match_all(scope, chain: Iterable[str]) -> List[PageElement]:
    """Return every element of the first selector that matches anything."""
    for selector in chain:
        elements = scope.query_all(selector)
        if elements:
            return elements
    return []


def first_text(scope, chain: Iterable[str], attribute: Optional[str] = None) -> str:
    """
    Text of the first matching element that has any.

    Args:
        scope: Page or element to search within
        chain: Fallback selector chain
        attribute: Attribute to read when the element text is empty
            (e.g. "datetime" on <time> tags)

    Returns:
        Stripped text, or "" when nothing matched
    """
    for selector in chain:
        element = scope.query(selector)
        if element is None:
            continue
        text = (element.text or "").strip()
        if not text and attribute:
            text = (element.get_attribute(attribute) or "").strip()
        if text:
            return text
    return ""


def first_attribute(scope, chain: Iterable[str], attribute: str) -> Optional[str]:
    """Attribute value of the first matching element that has it."""
    for selector in chain:
        element = scope.query(selector)
        if element is None:
            continue
        value = element.get_attribute(attribute)
        if value:
            return value
    return None


def wait_for_any(
    scope,
    chain: Iterable[str],
    timeout: float,
    poll_interval: float = 0.25,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> PageElement:
    """
    Poll the chain until one selector matches or the timeout expires.

    The chain is always checked at least once, so a zero timeout is a plain
    lookup that raises instead of returning None.

    Raises:
        PageTimeoutError: If no selector matched in time
    """
    chain = tuple(chain)
    deadline = clock() + timeout

    while True:
        element = first_match(scope, chain)
        if element is not None:
            return element
        remaining = deadline - clock()
        if remaining <= 0:
            break
        sleep(min(poll_interval, remaining))

    logger.debug(f"No match for {chain} after {timeout}s")
    raise PageTimeoutError(f"Timed out after {timeout}s waiting for any of {list(chain)}")
