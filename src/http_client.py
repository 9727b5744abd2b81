"""
Lightweight HTTP client for listing, API and detail fetches.

Cookie-aware and proxy-routed wrapper around requests.Session. Every attempt
is preceded by a small randomized delay so request timing is not mechanical.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
DEFAULT_ACCEPT_LANGUAGE = "es-ES,es;q=0.9,en;q=0.8"
ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
ACCEPT_JSON = "application/json"

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class FetchError(RuntimeError):
    """Raised when a fetch fails after its retry budget is spent."""

    def __init__(self, message: str, *, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


@dataclass
class HttpResponse:
    url: str
    status_code: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class HttpClient:
    """requests.Session with timeouts, a retry budget and jittered pacing"""

    def __init__(
        self,
        *,
        proxy_url: Optional[str] = None,
        timeout: float = 15.0,
        retries: int = 2,
        min_delay: float = 0.3,
        max_delay: float = 1.2,
        user_agent: str = DEFAULT_USER_AGENT,
        accept_language: str = DEFAULT_ACCEPT_LANGUAGE,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = float(timeout)
        self.retries = max(int(retries), 0)
        self.min_delay = float(min_delay)
        self.max_delay = float(max_delay)
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent,
                "Accept-Language": accept_language,
            }
        )
        if proxy_url:
            self.session.proxies.update({"http": proxy_url, "https": proxy_url})

    @classmethod
    def from_config(cls, config, proxy_url: Optional[str] = None) -> "HttpClient":
        return cls(
            proxy_url=proxy_url,
            timeout=config.get_http_timeout(),
            retries=config.get_http_retries(),
            min_delay=config.get_http_min_delay(),
            max_delay=config.get_http_max_delay(),
            user_agent=config.get_user_agent(),
            accept_language=config.get_accept_language(),
        )

    def _random_delay(self) -> None:
        if self.max_delay <= 0:
            return
        time.sleep(random.uniform(self.min_delay, self.max_delay))

    def get(
        self,
        url: str,
        *,
        accept: str = ACCEPT_HTML,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        raise_for_status: bool = True,
    ) -> HttpResponse:
        """
        GET a URL, retrying timeouts, connection errors and 429/5xx.

        A 4xx other than 429 is final. When raise_for_status is set, any
        non-200 final response raises FetchError.
        """
        timeout = self.timeout if timeout is None else float(timeout)
        budget = self.retries if retries is None else max(int(retries), 0)
        last_error: Optional[str] = None
        last_status: Optional[int] = None

        for attempt in range(1, budget + 2):
            self._random_delay()
            try:
                resp = self.session.get(url, headers={"Accept": accept}, timeout=timeout)
            except requests.RequestException as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.debug("GET %s failed (attempt %s/%s): %s", url, attempt, budget + 1, last_error)
                continue

            last_status = resp.status_code
            if resp.status_code in RETRYABLE_STATUS and attempt <= budget:
                logger.debug("GET %s returned %s (attempt %s/%s)", url, resp.status_code, attempt, budget + 1)
                last_error = f"HTTP {resp.status_code}"
                continue

            response = HttpResponse(
                url=resp.url or url,
                status_code=resp.status_code,
                text=resp.text or "",
                headers=dict(resp.headers or {}),
            )
            if raise_for_status and not response.ok:
                raise FetchError(f"HTTP {resp.status_code} for {url}", url=url, status_code=resp.status_code)
            return response

        raise FetchError(
            f"GET {url} failed after {budget + 1} attempt(s): {last_error}",
            url=url,
            status_code=last_status,
        )

    def seed_cookies(self, cookies: List[Dict[str, Any]]) -> int:
        """Copy Playwright-format cookies into the session jar"""
        added = 0
        for cookie in cookies or []:
            if not isinstance(cookie, dict):
                continue
            name = cookie.get("name")
            value = cookie.get("value")
            if not name or value is None:
                continue
            self.session.cookies.set(
                str(name),
                str(value),
                domain=str(cookie.get("domain") or ""),
                path=str(cookie.get("path") or "/"),
            )
            added += 1
        if added:
            logger.info("Seeded HTTP client with %s browser cookies", added)
        return added

    def close(self) -> None:
        self.session.close()
