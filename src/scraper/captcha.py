"""
Block-page detection.
"""

import logging
from typing import Iterable

from .core.page import BrowserPage
from .retailers import RetailerProfile

logger = logging.getLogger(__name__)


class CaptchaGuard:
    """Checks a page for known CAPTCHA / bot-challenge markers."""

    @staticmethod
    def detect(
        page: BrowserPage,
        markers: Iterable[str],
        text_markers: Iterable[str] = (),
    ) -> bool:
        """
        Return True if any marker selector matches or any marker phrase
        appears in the page text. Reads the page only.
        """
        for selector in markers:
            if page.query(selector) is not None:
                logger.warning(f"CAPTCHA detected: '{selector}' present on page")
                return True

        text_markers = tuple(text_markers)
        if not text_markers:
            return False

        page_source = (page.content() or "").lower()
        for indicator in text_markers:
            if indicator in page_source:
                logger.warning(f"CAPTCHA detected: '{indicator}' found in page")
                return True

        return False

    @classmethod
    def detect_for(cls, page: BrowserPage, profile: RetailerProfile) -> bool:
        """detect() with the profile's own markers."""
        return cls.detect(page, profile.selectors.captcha, profile.captcha_text_markers)
