"""
HTTP pagination over listing pages.

The next URL comes from an explicit "next" anchor when the page has one,
otherwise from bumping the page-number query parameter. Pages are fetched one
at a time and parsed with the HTML card extractor.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from bs4 import BeautifulSoup

from html_extractor import absolute_url, extract_jobs_via_html
from http_client import ACCEPT_HTML, FetchError, HttpClient
from models import JobPosting, RunState
from normalizer import count_unique_jobs

logger = logging.getLogger(__name__)

PAGE_PARAM = "p"
JOBS_PER_PAGE = 20
MAX_PAGES_CEILING = 100

# (selector, attribute holding the target)
NEXT_LINK_PATTERNS = [
    ("link[rel='next']", "href"),
    ("a[rel='next']", "href"),
    ("a[title='Siguiente']", "href"),
    ("[data-path][title='Siguiente']", "data-path"),
    ("a[aria-label='Siguiente']", "href"),
    ("a[aria-label='Next']", "href"),
    ("a[aria-label='Next page']", "href"),
    ("a.pagination-next", "href"),
    ("li.next a", "href"),
]


@dataclass
class ListingPage:
    url: str
    html: str
    jobs: List[JobPosting]


def effective_max_pages(max_jobs: int, configured: int = 0) -> int:
    """Configured page limit, or one derived from the job target, capped"""
    if configured and configured > 0:
        return min(configured, MAX_PAGES_CEILING)
    derived = -(-max_jobs // JOBS_PER_PAGE) if max_jobs > 0 else MAX_PAGES_CEILING
    return max(1, min(derived, MAX_PAGES_CEILING))


def current_page_number(url: str, page_param: str = PAGE_PARAM) -> int:
    for key, value in parse_qsl(urlparse(url).query):
        if key == page_param:
            try:
                return max(int(value), 1)
            except ValueError:
                return 1
    return 1


def page_number_url(url: str, page: int, page_param: str = PAGE_PARAM) -> str:
    """Set (or add) the page-number query parameter"""
    parsed = urlparse(url)
    params = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != page_param]
    params.append((page_param, str(page)))
    return urlunparse(parsed._replace(query=urlencode(params), fragment=""))


def find_next_link(html: str, base_url: str) -> Optional[str]:
    """Explicit next-page target from the page markup, if any"""
    if not html:
        return None
    soup = BeautifulSoup(html, "lxml")
    for selector, attribute in NEXT_LINK_PATTERNS:
        element = soup.select_one(selector)
        if element is None:
            continue
        if (element.get("aria-disabled") or "").lower() == "true" or element.has_attr("disabled"):
            return None
        target = (element.get(attribute) or "").strip()
        if target and not target.startswith(("#", "javascript:")):
            return absolute_url(base_url, target)
    return None


def find_next_page_url(html: str, current_url: str, base_url: str, page_param: str = PAGE_PARAM) -> Optional[str]:
    next_link = find_next_link(html, base_url)
    if next_link:
        return next_link
    if not current_url:
        return None
    return page_number_url(current_url, current_page_number(current_url, page_param) + 1, page_param)


def iter_listing_pages(
    client: HttpClient,
    state: RunState,
    base_url: str,
    *,
    max_jobs: int,
    max_pages: int,
) -> Iterator[ListingPage]:
    """
    Yield further listing pages after the one recorded in state.

    The caller records each yielded page into state before asking for the
    next one; this generator only reads state. It stops at the job target,
    the page ceiling, a missing or already-visited next URL, a failed fetch,
    or a page with no job cards.
    """
    current_url = state.last_page_url
    current_html = state.last_page_html

    while True:
        if count_unique_jobs(state.jobs, base_url) >= max_jobs:
            logger.info("Reached target of %s jobs; stopping pagination", max_jobs)
            return
        if state.pages_processed >= max_pages:
            logger.info("Reached page limit (%s); stopping pagination", max_pages)
            return

        next_url = find_next_page_url(current_html, current_url, base_url)
        if not next_url:
            logger.info("No next page URL found; stopping pagination")
            return
        if next_url in state.visited_urls:
            logger.info("Next page %s already visited; stopping pagination", next_url)
            return

        try:
            response = client.get(next_url, accept=ACCEPT_HTML)
        except FetchError as exc:
            logger.warning("Failed to fetch page %s: %s", next_url, exc)
            return

        result = extract_jobs_via_html(response.text, base_url)
        if not result.jobs:
            logger.info("No jobs on page %s, stopping pagination", next_url)
            return

        yield ListingPage(url=next_url, html=response.text, jobs=result.jobs)
        current_url, current_html = next_url, response.text
