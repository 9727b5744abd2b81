"""
HTML job-card extraction with selector-fallback chains.

Computrabajo has changed its markup several times, so both the card container
and each field inside a card are located through an ordered list of CSS
selectors. The first selector that produces usable text wins; later ones only
matter when the earlier markup is gone.
"""

import logging
import re
from typing import Callable, List, Optional, Sequence
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from models import NOT_SPECIFIED, ExtractionMethod, ExtractionResult, JobPosting

logger = logging.getLogger(__name__)

CARD_SELECTORS = [
    "article.box_offer",
    "div.bRS.bClick",
    "article[data-id]",
    "article.offer",
    ".job-item",
]
TITLE_SELECTORS = ["h2 a", "h3 a", ".js-o-link", "a[data-title]"]
COMPANY_SELECTORS = [".fs16.fc_base.mt5", ".company", "p.fs16.fc_base"]
LOCATION_SELECTORS = [".fs13.fc_base", ".location", "p.fs13"]
SALARY_SELECTORS = [".fs16.fc_base", ".salary", "p.fs16:not(.mt5)"]
DESCRIPTION_SELECTORS = [".fs13.fc_base.mt10", ".description", "p.fs13.fc_base"]
DATE_SELECTORS = [".fs13.fc_aux", ".date", "p.fs13.fc_aux"]

_WS_RE = re.compile(r"\s+")


def element_text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return _WS_RE.sub(" ", element.get_text(" ", strip=True)).strip()


def absolute_url(base_url: str, href: str) -> str:
    """Resolve a relative or partial href against the page origin"""
    href = (href or "").strip()
    if not href:
        return ""
    if href.startswith(("http://", "https://")):
        return href
    parsed = urlparse(base_url)
    origin = f"{parsed.scheme}://{parsed.netloc}/" if parsed.netloc else base_url
    return urljoin(origin, href)


class SelectorChain:
    """
    Ordered selectors evaluated until one yields acceptable text.

    Each selector takes the first element it matches inside the root; the
    element's trimmed text must be non-empty and pass the optional predicate.
    """

    def __init__(self, selectors: Sequence[str]):
        self.selectors = list(selectors)

    def first_element(self, root: Tag, accept: Optional[Callable[[str], bool]] = None) -> Optional[Tag]:
        for selector in self.selectors:
            element = root.select_one(selector)
            text = element_text(element)
            if not text:
                continue
            if accept is not None and not accept(text):
                continue
            return element
        return None

    def first_text(self, root: Tag, accept: Optional[Callable[[str], bool]] = None) -> str:
        return element_text(self.first_element(root, accept))

    def __repr__(self) -> str:
        return f"<SelectorChain {self.selectors!r}>"


TITLE_CHAIN = SelectorChain(TITLE_SELECTORS)
COMPANY_CHAIN = SelectorChain(COMPANY_SELECTORS)
LOCATION_CHAIN = SelectorChain(LOCATION_SELECTORS)
SALARY_CHAIN = SelectorChain(SALARY_SELECTORS)
DESCRIPTION_CHAIN = SelectorChain(DESCRIPTION_SELECTORS)
DATE_CHAIN = SelectorChain(DATE_SELECTORS)


def find_job_cards(soup: BeautifulSoup, selectors: Sequence[str] = CARD_SELECTORS) -> List[Tag]:
    """Cards from the first container selector that matches anything"""
    for selector in selectors:
        cards = soup.select(selector)
        if cards:
            logger.info("Found %s job cards using selector: %s", len(cards), selector)
            return cards
    return []


def parse_job_card(card: Tag, base_url: str) -> Optional[JobPosting]:
    """Map one card to a JobPosting; cards without a title are dropped"""
    title = ""
    href = ""
    title_elem = TITLE_CHAIN.first_element(card)
    if title_elem is not None:
        title = element_text(title_elem)
        href = title_elem.get("href") or ""
    if not title:
        title = (card.get("data-title") or "").strip()
    if not title:
        return None
    if not href:
        href = card.get("data-url") or card.get("data-href") or ""
        if not href:
            anchor = card.select_one("a[href]")
            href = anchor.get("href") if anchor is not None else ""

    company = COMPANY_CHAIN.first_text(card)
    location = LOCATION_CHAIN.first_text(card)

    def _salary_ok(text: str) -> bool:
        return len(text) > 2 and text != company and text != location

    salary = SALARY_CHAIN.first_text(card, accept=_salary_ok) or NOT_SPECIFIED
    description = DESCRIPTION_CHAIN.first_text(card)
    posted_date = DATE_CHAIN.first_text(card)

    return JobPosting(
        title=title,
        company=company,
        location=location,
        salary=salary,
        job_type=NOT_SPECIFIED,
        posted_date=posted_date,
        description_text=description,
        url=absolute_url(base_url, href),
    )


def jobs_from_soup(soup: BeautifulSoup, base_url: str) -> List[JobPosting]:
    jobs: List[JobPosting] = []
    for card in find_job_cards(soup):
        job = parse_job_card(card, base_url)
        if job is None:
            logger.debug("Dropping job card without title")
            continue
        jobs.append(job)
    return jobs


def extract_jobs_via_html(html: str, base_url: str) -> ExtractionResult:
    """Strategy: parse job cards out of listing HTML"""
    logger.info("Extracting jobs via HTML card parsing")
    if not html:
        return ExtractionResult.empty(ExtractionMethod.HTML)

    soup = BeautifulSoup(html, "lxml")
    jobs = jobs_from_soup(soup, base_url)
    if jobs:
        logger.info("HTML extraction successful: %s jobs", len(jobs))
    return ExtractionResult(jobs=jobs, method=ExtractionMethod.HTML)
