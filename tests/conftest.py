"""
Shared fixtures: canned Computrabajo markup, a scripted HTTP client and a
recorded browser session. Nothing here touches the network.
"""

import json
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from browser_session import BrowserSession, BrowserSessionError, RenderedPage
from config_loader import ConfigLoader
from http_client import FetchError, HttpResponse

BASE_URL = "https://ar.computrabajo.com"
LISTING_URL = f"{BASE_URL}/empleos-de-administracion-y-oficina"


def card_html(title: str, href: str, company: str = "Acme SA", location: str = "Capital Federal",
              salary: str = "", description: str = "", posted: str = "Hace 2 días") -> str:
    salary_html = f'<p class="fs16 fc_base">{salary}</p>' if salary else ""
    description_html = f'<p class="fs13 fc_base mt10">{description}</p>' if description else ""
    return f"""
    <article class="box_offer">
      <h2><a class="js-o-link" href="{href}">{title}</a></h2>
      <p class="fs16 fc_base mt5">{company}</p>
      <p class="fs13 fc_base">{location}</p>
      {salary_html}
      {description_html}
      <p class="fs13 fc_aux">{posted}</p>
    </article>
    """


def listing_html(cards: Sequence[str], next_href: Optional[str] = None, extra_head: str = "") -> str:
    next_html = f'<a title="Siguiente" href="{next_href}">Siguiente</a>' if next_href else ""
    return f"""
    <html><head>{extra_head}</head>
    <body>
      <div id="offersGridOfferContainer">{''.join(cards)}</div>
      <div class="b_paginador">{next_html}</div>
    </body></html>
    """


def ld_json_script(data: Any) -> str:
    return f'<script type="application/ld+json">{json.dumps(data)}</script>'


def make_config(**sections: Dict[str, Any]) -> ConfigLoader:
    """Config with test-friendly defaults: no pacing, no browser, no enrichment"""
    data: Dict[str, Any] = {
        "search": {"max_jobs": 10, "include_full_description": False},
        "http": {"min_delay": 0, "max_delay": 0, "retries": 0},
        "browser": {"enabled": False},
    }
    for name, values in sections.items():
        data.setdefault(name, {}).update(values)
    return ConfigLoader.from_dict(data)


class FakeHttpClient:
    """
    Scripted stand-in for HttpClient.

    routes maps a URL to (status, body) or to an exception instance that is
    raised when the URL is requested. Unknown URLs answer 404.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.requests: List[Tuple[str, str]] = []
        self.seeded_cookies: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def get(self, url, *, accept="text/html", timeout=None, retries=None, raise_for_status=True):
        with self._lock:
            self.requests.append((url, accept))
        route = self.routes.get(url, (404, ""))
        if isinstance(route, Exception):
            raise route
        status, body = route
        if raise_for_status and status != 200:
            raise FetchError(f"HTTP {status} for {url}", url=url, status_code=status)
        return HttpResponse(url=url, status_code=status, text=body, headers={})

    def seed_cookies(self, cookies):
        self.seeded_cookies.extend(cookies or [])
        return len(cookies or [])

    def close(self):
        return None

    def requested_urls(self) -> List[str]:
        return [url for url, _ in self.requests]


class FixtureBrowserSession(BrowserSession):
    """
    Recorded browser: a list of pages, each with HTML and the JSON payloads
    "captured" while it loaded. click_next advances to the next page.
    """

    def __init__(self, pages: Sequence[Dict[str, Any]], url: str = LISTING_URL, fail_render: bool = False):
        self.pages = list(pages)
        self.url = url
        self.fail_render = fail_render
        self.index = 0
        self.rendered: List[str] = []
        self.clicks = 0
        self.closed = False
        self._pending: List[Any] = []

    def _current(self) -> RenderedPage:
        page = self.pages[self.index]
        return RenderedPage(
            url=page.get("url", self.url),
            html=page.get("html", ""),
            cookies=page.get("cookies", [{"name": "session", "value": "abc", "domain": ".computrabajo.com"}]),
        )

    def render(self, url):
        if self.fail_render:
            raise BrowserSessionError(f"Navigation to {url} failed")
        self.rendered.append(url)
        self.index = 0
        self._pending = list(self.pages[0].get("payloads", []))
        return self._current()

    def snapshot(self):
        return self._current()

    def drain_network_payloads(self):
        payloads, self._pending = self._pending, []
        return payloads

    def click_next(self):
        if self.index + 1 >= len(self.pages):
            return False
        self.clicks += 1
        self.index += 1
        self._pending = list(self.pages[self.index].get("payloads", []))
        return True

    def close(self):
        self.closed = True


@pytest.fixture
def three_card_listing() -> str:
    """Cards 1 and 3 point at the same offer"""
    return listing_html([
        card_html("Analista Administrativo", "/ofertas-de-trabajo/oferta-de-trabajo-de-analista-administrativo-AAA1"),
        card_html("Recepcionista", "/ofertas-de-trabajo/oferta-de-trabajo-de-recepcionista-BBB2", company="Hotel Sur"),
        card_html("Analista Administrativo Sr", "/ofertas-de-trabajo/oferta-de-trabajo-de-analista-administrativo-AAA1"),
    ])


@pytest.fixture
def fake_client() -> FakeHttpClient:
    return FakeHttpClient()
