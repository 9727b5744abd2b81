"""
Browser transport for the last-resort extraction step.

The collector only sees the narrow BrowserSession interface: render a URL,
drain the JSON payloads captured from same-origin network responses, and
click an ajax "next page" control. All parsing happens in the collector with
the same extractors used for plain HTTP responses.

PlaywrightBrowserSession is the real implementation (Chromium, optional
playwright-stealth, proxy from ProxyManager). Tests use a recorded fixture.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, Response, sync_playwright

logger = logging.getLogger(__name__)

NEXT_CONTROL_SELECTORS = [
    "a[rel='next']",
    "span[title='Siguiente']",
    "a[title='Siguiente']",
    "button[title='Siguiente']",
    "[data-path][title='Siguiente']",
    "a[aria-label='Siguiente']",
    "a[aria-label='Next']",
    "a[aria-label='Next page']",
    "button[aria-label='Next']",
    ".b_paginador .sel + a",
    "a.pagination-next",
]


class BrowserSessionError(RuntimeError):
    """Raised when the browser cannot launch or navigate."""


@dataclass
class RenderedPage:
    url: str
    html: str
    cookies: List[Dict[str, Any]] = field(default_factory=list)


class BrowserSession(ABC):
    """Transport contract the collector depends on"""

    @abstractmethod
    def render(self, url: str) -> RenderedPage:
        """Navigate to url and return the rendered document"""

    @abstractmethod
    def snapshot(self) -> RenderedPage:
        """Current document after in-page navigation (e.g. click_next)"""

    @abstractmethod
    def drain_network_payloads(self) -> List[Any]:
        """JSON payloads captured since the last drain"""

    @abstractmethod
    def click_next(self) -> bool:
        """Activate the next-page control; False when none is usable"""

    def close(self) -> None:
        return None

    def __enter__(self) -> "BrowserSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _same_origin(url: str, origin: str) -> bool:
    if not origin:
        return True
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}" == origin


class PlaywrightBrowserSession(BrowserSession):
    """Single serialized Chromium context driven through the sync API"""

    def __init__(self, config, proxy: Optional[Dict[str, str]] = None):
        self.config = config
        self.proxy = proxy
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._origin = ""
        self._payloads: List[Any] = []

    def start_browser(self) -> None:
        """Launch Chromium with stealth flags and the configured proxy"""
        if self.page is not None:
            return
        logger.info("Starting browser...")
        try:
            self.playwright = sync_playwright().start()
            launch_kwargs: Dict[str, Any] = {
                "headless": self.config.is_headless(),
                "args": [
                    "--disable-blink-features=AutomationControlled",
                    "--disable-dev-shm-usage",
                ],
            }
            if self.proxy:
                launch_kwargs["proxy"] = self.proxy
            self.browser = self.playwright.chromium.launch(**launch_kwargs)
            self.context = self.browser.new_context(
                viewport={"width": 1366, "height": 768},
                locale=self.config.get_browser_locale(),
            )
            self.page = self.context.new_page()
        except Exception as exc:
            self.close()
            raise BrowserSessionError(f"Browser launch failed: {exc}") from exc

        self.page.set_default_timeout(self.config.get_navigation_timeout())
        self.page.set_default_navigation_timeout(self.config.get_navigation_timeout())
        self.page.on("response", self._on_response)

        if self.config.use_stealth():
            try:
                from playwright_stealth.stealth import Stealth
                Stealth().apply_stealth_sync(self.page)
                logger.info("Playwright stealth enabled")
            except Exception as exc:
                logger.warning("Failed to enable stealth mode: %s", exc)

        logger.info("Browser started successfully")

    def _on_response(self, response: Response) -> None:
        try:
            content_type = (response.headers.get("content-type") or "").lower()
            if "json" not in content_type:
                return
            if not _same_origin(response.url, self._origin):
                return
            if response.status != 200:
                return
            payload = json.loads(response.text())
        except Exception as exc:
            logger.debug("Ignoring captured response %s: %s", getattr(response, "url", "?"), exc)
            return
        self._payloads.append(payload)

    def _wait_for_idle(self) -> None:
        try:
            self.page.wait_for_load_state("networkidle", timeout=self.config.get_idle_timeout())
        except Exception:
            logger.debug("Network did not go idle; continuing with current DOM")

    def render(self, url: str) -> RenderedPage:
        self.start_browser()
        parsed = urlparse(url)
        self._origin = f"{parsed.scheme}://{parsed.netloc}"
        logger.info("Browser: processing %s", url)
        try:
            self.page.goto(url, wait_until="domcontentloaded")
        except Exception as exc:
            raise BrowserSessionError(f"Navigation to {url} failed: {exc}") from exc
        self._wait_for_idle()
        return self.snapshot()

    def snapshot(self) -> RenderedPage:
        if self.page is None:
            raise BrowserSessionError("Browser is not started")
        return RenderedPage(
            url=self.page.url,
            html=self.page.content(),
            cookies=list(self.context.cookies()) if self.context else [],
        )

    def drain_network_payloads(self) -> List[Any]:
        payloads, self._payloads = self._payloads, []
        return payloads

    def click_next(self) -> bool:
        if self.page is None:
            return False
        for selector in NEXT_CONTROL_SELECTORS:
            element = self.page.query_selector(selector)
            if not element:
                continue
            aria_disabled = (element.get_attribute("aria-disabled") or "").lower()
            disabled_attr = element.get_attribute("disabled")
            if aria_disabled in ("true", "disabled") or disabled_attr is not None:
                return False
            try:
                element.click()
            except Exception as exc:
                logger.warning("Next-page click failed (%s): %s", selector, exc)
                return False
            self._wait_for_idle()
            return True
        return False

    def close(self) -> None:
        """Clean up browser resources"""
        try:
            if self.context:
                self.context.close()
        except Exception:
            logger.debug("Browser context close failed", exc_info=True)
        try:
            if self.browser:
                self.browser.close()
        except Exception:
            logger.debug("Browser close failed", exc_info=True)
        try:
            if self.playwright:
                self.playwright.stop()
        except Exception:
            logger.debug("Playwright stop failed", exc_info=True)
        self.page = None
        self.context = None
        self.browser = None
        self.playwright = None
        logger.info("Browser closed")
