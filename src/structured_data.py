"""
JSON-LD (schema.org JobPosting) extraction.

Every <script type="application/ld+json"> block is parsed on its own, so one
malformed block never costs the rest of the page. Supported containers:

- a single JobPosting object
- an array of objects
- an @graph wrapper
- an ItemList whose itemListElement entries may wrap the posting in "item"
"""

import html as html_lib
import json
import logging
import re
from typing import Any, Iterator, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from models import NOT_SPECIFIED, ExtractionMethod, ExtractionResult, JobPosting

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_html(markup: Optional[str]) -> str:
    """Drop tags, unescape entities and collapse whitespace"""
    if not markup:
        return ""
    text = _TAG_RE.sub(" ", str(markup))
    text = html_lib.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def _is_job_posting(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return "JobPosting" in node_type
    return node_type == "JobPosting"


def iter_job_posting_nodes(data: Any) -> Iterator[dict]:
    """Flatten the supported container shapes into JobPosting nodes"""
    if isinstance(data, list):
        for item in data:
            yield from iter_job_posting_nodes(item)
        return
    if not isinstance(data, dict):
        return
    if _is_job_posting(data):
        yield data
        return
    graph = data.get("@graph")
    if graph is not None:
        yield from iter_job_posting_nodes(graph)
        return
    if data.get("@type") == "ItemList":
        elements = data.get("itemListElement") or []
        if isinstance(elements, dict):
            elements = [elements]
        for element in elements:
            if not isinstance(element, dict):
                continue
            job = element.get("item") if isinstance(element.get("item"), dict) else element
            if _is_job_posting(job):
                yield job


def _format_number(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if value is None:
        return ""
    return str(value).strip()


def format_salary(base_salary: Any) -> str:
    """
    Render baseSalary as "<min> - <max> <currency>" or "<min> <currency>".

    Accepts a scalar, a MonetaryAmount with a scalar or QuantitativeValue
    "value", or a bare {minValue, maxValue, currency} object.
    """
    if base_salary is None or base_salary == "":
        return NOT_SPECIFIED
    if not isinstance(base_salary, dict):
        text = _format_number(base_salary)
        return text or NOT_SPECIFIED

    currency = base_salary.get("currency")
    value = base_salary.get("value", base_salary)
    if isinstance(value, dict):
        currency = currency or value.get("currency")
        low = value.get("minValue")
        if low is None:
            low = value.get("value")
        high = value.get("maxValue")
    else:
        low, high = value, None

    low_text = _format_number(low)
    high_text = _format_number(high)
    if not low_text and not high_text:
        return NOT_SPECIFIED
    if low_text and high_text:
        salary = f"{low_text} - {high_text}"
    else:
        salary = low_text or high_text
    if isinstance(currency, str) and currency.strip():
        salary = f"{salary} {currency.strip()}"
    return salary


def format_location(job_location: Any) -> str:
    """jobLocation may be a string, a Place with an address, or a list of Places"""
    if not job_location:
        return ""
    if isinstance(job_location, str):
        return job_location.strip()
    if isinstance(job_location, list):
        for entry in job_location:
            found = format_location(entry)
            if found:
                return found
        return ""
    if not isinstance(job_location, dict):
        return ""

    address = job_location.get("address", job_location)
    if isinstance(address, str):
        return address.strip()
    if not isinstance(address, dict):
        return ""

    parts = []
    for key in ("addressLocality", "addressRegion", "addressCountry"):
        part = address.get(key)
        if isinstance(part, dict):
            part = part.get("name")
        if isinstance(part, str) and part.strip():
            parts.append(part.strip())
    return ", ".join(parts)


def _organization_name(org: Any) -> str:
    if isinstance(org, str):
        return org.strip()
    if isinstance(org, dict):
        name = org.get("name")
        return name.strip() if isinstance(name, str) else ""
    return ""


def _employment_type(value: Any) -> str:
    if isinstance(value, list):
        labels = [str(v).strip() for v in value if str(v).strip()]
        return ", ".join(labels) or NOT_SPECIFIED
    if isinstance(value, str) and value.strip():
        return value.strip()
    return NOT_SPECIFIED


def parse_job_posting(node: dict, base_url: str = "") -> Optional[JobPosting]:
    """Map a JobPosting node to a record; None when it has no title"""
    title = node.get("title") or node.get("name") or ""
    if not isinstance(title, str) or not title.strip():
        logger.debug("Skipping JSON-LD JobPosting without title")
        return None

    description = node.get("description") or ""
    if not isinstance(description, str):
        description = ""

    url = node.get("url") or ""
    if isinstance(url, str) and url and base_url:
        url = urljoin(base_url, url)

    return JobPosting(
        title=title,
        company=_organization_name(node.get("hiringOrganization")),
        location=format_location(node.get("jobLocation")),
        salary=format_salary(node.get("baseSalary")),
        job_type=_employment_type(node.get("employmentType")),
        posted_date=node.get("datePosted") or "",
        description_html=description,
        description_text=strip_html(description),
        url=url if isinstance(url, str) else "",
    )


def iter_ld_json_blocks(soup: BeautifulSoup) -> Iterator[Any]:
    """Yield parsed ld+json payloads, skipping malformed blocks"""
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text() or ""
        if not raw.strip():
            continue
        try:
            yield json.loads(raw)
        except (json.JSONDecodeError, ValueError) as exc:
            logger.debug("Failed to parse JSON-LD block: %s", exc)


def jobs_from_soup(soup: BeautifulSoup, base_url: str = "") -> List[JobPosting]:
    jobs: List[JobPosting] = []
    for data in iter_ld_json_blocks(soup):
        for node in iter_job_posting_nodes(data):
            job = parse_job_posting(node, base_url)
            if job:
                jobs.append(job)
    return jobs


def extract_jobs_via_json_ld(html: str, base_url: str = "") -> ExtractionResult:
    """Strategy: JSON-LD structured data embedded in a page"""
    logger.info("Attempting to extract jobs from JSON-LD structured data")
    if not html:
        return ExtractionResult.empty(ExtractionMethod.JSON_LD)

    soup = BeautifulSoup(html, "lxml")
    jobs = jobs_from_soup(soup, base_url)
    if jobs:
        logger.info("JSON-LD extraction successful: %s jobs", len(jobs))
    return ExtractionResult(jobs=jobs, method=ExtractionMethod.JSON_LD)
