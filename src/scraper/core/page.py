"""
Minimal browser capability used by the authentication and extraction code.

AuthenticationFlow and PaginatedExtractor only talk to BrowserPage and
PageElement, so they run the same against a real Selenium session or the
in-memory DOM used by the tests.
"""

import json
import logging
from typing import Dict, List, Optional, Protocol

from selenium import webdriver
from selenium.common.exceptions import (
    InvalidSelectorException,
    StaleElementReferenceException,
    TimeoutException,
)
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support.ui import WebDriverWait

logger = logging.getLogger(__name__)


class PageTimeoutError(Exception):
    """A navigation or wait did not finish within its timeout."""


class PageElement(Protocol):
    """A node in the page that can be read, searched, and acted on."""

    @property
    def text(self) -> str: ...

    def get_attribute(self, name: str) -> Optional[str]: ...

    def query(self, selector: str) -> Optional["PageElement"]: ...

    def query_all(self, selector: str) -> List["PageElement"]: ...

    def click(self) -> None: ...

    def fill(self, value: str) -> None: ...

    def is_enabled(self) -> bool: ...


class BrowserPage(Protocol):
    """One automated browser tab owned by a single request."""

    def navigate(self, url: str, timeout: float) -> None: ...

    def wait_until_settled(self, timeout: float) -> None: ...

    def query(self, selector: str) -> Optional[PageElement]: ...

    def query_all(self, selector: str) -> List[PageElement]: ...

    def content(self) -> str: ...

    def set_user_agent(self, user_agent: str) -> None: ...

    def set_viewport(self, width: int, height: int) -> None: ...

    def set_extra_headers(self, headers: Dict[str, str]) -> None: ...

    def add_init_script(self, source: str) -> None: ...

    def set_cookie(self, name: str, value: str, domain: str, path: str = "/") -> None: ...

    def close(self) -> None: ...


def _find_all(root, selector: str) -> List[WebElement]:
    try:
        return root.find_elements(By.CSS_SELECTOR, selector)
    except InvalidSelectorException:
        logger.debug(f"Skipping invalid selector: {selector}")
        return []


class SeleniumElement:
    """PageElement backed by a Selenium WebElement."""

    def __init__(self, element: WebElement):
        self._element = element

    @property
    def text(self) -> str:
        # Selenium returns "" for hidden nodes; textContent does not
        text = self._element.text
        if not text:
            text = self._element.get_attribute("textContent") or ""
        return text.strip()

    def get_attribute(self, name: str) -> Optional[str]:
        return self._element.get_attribute(name)

    def query(self, selector: str) -> Optional["SeleniumElement"]:
        matches = self.query_all(selector)
        return matches[0] if matches else None

    def query_all(self, selector: str) -> List["SeleniumElement"]:
        try:
            return [SeleniumElement(el) for el in _find_all(self._element, selector)]
        except StaleElementReferenceException:
            return []

    def click(self) -> None:
        self._element.click()

    def fill(self, value: str) -> None:
        self._element.clear()
        self._element.send_keys(value)

    def is_enabled(self) -> bool:
        if not self._element.is_enabled():
            return False
        return (self._element.get_attribute("aria-disabled") or "").lower() != "true"


class SeleniumPage:
    """BrowserPage backed by a Selenium Chrome driver."""

    def __init__(self, driver: webdriver.Chrome):
        self.driver = driver
        self._network_enabled = False

    def navigate(self, url: str, timeout: float) -> None:
        self.driver.set_page_load_timeout(timeout)
        try:
            self.driver.get(url)
        except TimeoutException as e:
            raise PageTimeoutError(f"Navigation to {url} timed out after {timeout}s") from e
        self.wait_until_settled(timeout)

    def wait_until_settled(self, timeout: float) -> None:
        try:
            WebDriverWait(self.driver, timeout).until(
                lambda d: d.execute_script("return document.readyState") == "complete"
            )
        except TimeoutException as e:
            raise PageTimeoutError(f"Page did not settle within {timeout}s") from e

    def query(self, selector: str) -> Optional[SeleniumElement]:
        matches = self.query_all(selector)
        return matches[0] if matches else None

    def query_all(self, selector: str) -> List[SeleniumElement]:
        return [SeleniumElement(el) for el in _find_all(self.driver, selector)]

    def content(self) -> str:
        return self.driver.page_source

    def set_user_agent(self, user_agent: str) -> None:
        self._enable_network()
        self.driver.execute_cdp_cmd("Network.setUserAgentOverride", {"userAgent": user_agent})
        self.add_init_script(
            "Object.defineProperty(navigator, 'userAgent', {get: () => %s});"
            % json.dumps(user_agent)
        )

    def set_viewport(self, width: int, height: int) -> None:
        self.driver.set_window_size(width, height)

    def set_extra_headers(self, headers: Dict[str, str]) -> None:
        self._enable_network()
        self.driver.execute_cdp_cmd("Network.setExtraHTTPHeaders", {"headers": headers})

    def add_init_script(self, source: str) -> None:
        self.driver.execute_cdp_cmd(
            "Page.addScriptToEvaluateOnNewDocument", {"source": source}
        )

    def set_cookie(self, name: str, value: str, domain: str, path: str = "/") -> None:
        self._enable_network()
        self.driver.execute_cdp_cmd(
            "Network.setCookie",
            {"name": name, "value": value, "domain": domain, "path": path},
        )

    def close(self) -> None:
        # quit() closes every window and ends the browser process
        self.driver.quit()
        logger.debug("Driver quit successfully")

    def _enable_network(self) -> None:
        if not self._network_enabled:
            self.driver.execute_cdp_cmd("Network.enable", {})
            self._network_enabled = True
