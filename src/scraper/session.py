"""
Per-request browser session ownership.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional, TypeVar

from .core.errors import ErrorKind, ScrapeError, Stage, classify_error
from .core.page import BrowserPage

logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionFactory = Callable[[], BrowserPage]


class SessionGuard:
    """
    Owns one browser session for the length of a request.

    The authenticate-and-extract work runs on a dedicated worker thread and
    races a wall-clock deadline. Whatever happens (success, classified error,
    unexpected exception, or deadline expiry) the page is torn down before
    control returns to the caller. Teardown problems are logged and dropped.
    """

    def __init__(self, session_factory: SessionFactory, deadline_seconds: float = 240.0):
        self.session_factory = session_factory
        self.deadline_seconds = deadline_seconds

    def run(self, work: Callable[[BrowserPage], T], context: str = "") -> T:
        """
        Acquire a session, run work(page) under the deadline, tear down.

        Raises:
            ScrapeError: Always classified; TIMEOUT when the deadline expires
        """
        try:
            page = self.session_factory()
        except Exception as e:
            raise classify_error(e, Stage.SESSION, context=context) from e

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="scrape-session")
        try:
            future = executor.submit(work, page)
            try:
                return future.result(timeout=self.deadline_seconds)
            except FutureTimeoutError as e:
                logger.error(f"Scrape deadline of {self.deadline_seconds}s exceeded")
                raise ScrapeError(
                    ErrorKind.TIMEOUT,
                    f"{context} scrape exceeded the {self.deadline_seconds:g}s deadline".strip(),
                    recoverable=False,
                ) from e
            except ScrapeError:
                raise
            except Exception as e:
                raise classify_error(e, Stage.EXTRACTION, context=context) from e
        finally:
            self.teardown(page)
            # after a deadline the worker can still be inside a browser call
            executor.shutdown(wait=False)

    @staticmethod
    def teardown(page: Optional[BrowserPage]) -> None:
        """Close the page and its browser; never raises."""
        if page is None:
            return
        try:
            page.close()
        except Exception as e:
            logger.warning(f"Cleanup error: {e}")
