"""
Per-job detail page enrichment.

Detail pages are fetched by a small pool of worker threads. Workers claim the
next job index from a shared cursor and own that job until it is merged, so no
two workers ever touch the same record. A failed fetch or parse leaves that
one job with its listing data.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from html_extractor import SelectorChain, element_text
from http_client import ACCEPT_HTML, FetchError, HttpClient
from models import NOT_SPECIFIED, JobPosting
from structured_data import iter_job_posting_nodes, iter_ld_json_blocks, parse_job_posting, strip_html

logger = logging.getLogger(__name__)

MAX_CONCURRENCY = 10

DETAIL_TITLE = SelectorChain(["h1", ".box_detail h1", "[itemprop='title']", ".title_offer"])
DETAIL_COMPANY = SelectorChain([
    "a.dIB.fs16.js-o-link",
    ".box_detail a.js-o-link",
    "[itemprop='hiringOrganization']",
    "p.fs16 a",
    ".company",
])
DETAIL_LOCATION = SelectorChain([
    ".box_detail p.fs16",
    "[itemprop='jobLocation']",
    "[itemprop='addressLocality']",
    ".location",
])
DETAIL_SALARY = SelectorChain([
    "[itemprop='baseSalary']",
    "span.tag.base",
    ".box_detail .salary",
    ".salary",
])
DETAIL_JOB_TYPE = SelectorChain([
    "[itemprop='employmentType']",
    "span.tag.jornada",
    ".job-type",
])
DETAIL_DATE = SelectorChain([
    "[itemprop='datePosted']",
    "p.fc_aux.fs13",
    ".box_detail .fc_aux",
    ".date",
])
DETAIL_DESCRIPTION = SelectorChain([
    "div[div-link='oferta']",
    "[itemprop='description']",
    "#job-description",
    ".box_detail .mb40",
    ".description",
])

MERGE_FIELDS = ("title", "company", "location", "salary", "job_type", "posted_date")
DESCRIPTION_FIELDS = ("description_html", "description_text")


@dataclass
class DetailData:
    title: str = ""
    company: str = ""
    location: str = ""
    salary: str = ""
    job_type: str = ""
    posted_date: str = ""
    description_html: str = ""
    description_text: str = ""

    def fill_from(self, other: "DetailData") -> None:
        for name in MERGE_FIELDS + DESCRIPTION_FIELDS:
            if _is_blank(getattr(self, name)) and not _is_blank(getattr(other, name)):
                setattr(self, name, getattr(other, name))


def _is_blank(value: Optional[str]) -> bool:
    return not value or not value.strip() or value.strip() == NOT_SPECIFIED


def parse_detail_page(html: str, url: str = "") -> DetailData:
    """JSON-LD first, then detail-page selectors for whatever is still missing"""
    soup = BeautifulSoup(html or "", "lxml")
    detail = DetailData()

    for data in iter_ld_json_blocks(soup):
        for node in iter_job_posting_nodes(data):
            job = parse_job_posting(node, url)
            if job is None:
                continue
            detail.fill_from(DetailData(
                title=job.title,
                company=job.company,
                location=job.location,
                salary=job.salary,
                job_type=job.job_type,
                posted_date=job.posted_date,
                description_html=job.description_html,
                description_text=job.description_text,
            ))
            break

    description_elem = DETAIL_DESCRIPTION.first_element(soup)
    description_html = description_elem.decode_contents().strip() if description_elem is not None else ""
    detail.fill_from(DetailData(
        title=DETAIL_TITLE.first_text(soup),
        company=DETAIL_COMPANY.first_text(soup),
        location=DETAIL_LOCATION.first_text(soup),
        salary=DETAIL_SALARY.first_text(soup),
        job_type=DETAIL_JOB_TYPE.first_text(soup),
        posted_date=DETAIL_DATE.first_text(soup),
        description_html=description_html,
        description_text=element_text(description_elem) if description_elem is not None else "",
    ))

    if detail.description_html and not detail.description_text:
        detail.description_text = strip_html(detail.description_html)
    return detail


def merge_detail(job: JobPosting, detail: DetailData, include_full_description: bool = True) -> JobPosting:
    """Detail values replace listing values only when they are non-empty"""
    fields = MERGE_FIELDS + (DESCRIPTION_FIELDS if include_full_description else ())
    update: Dict[str, str] = {}
    for name in fields:
        value = getattr(detail, name)
        if not _is_blank(value):
            update[name] = value.strip()
    if not update:
        return job
    return job.model_copy(update=update)


def _has_detail_url(job: JobPosting) -> bool:
    return (job.url or "").startswith(("http://", "https://"))


class DetailEnricher:
    """Bounded worker pool over a shared claim cursor"""

    def __init__(self, client: HttpClient, *, concurrency: int = MAX_CONCURRENCY,
                 timeout: Optional[float] = None, retries: Optional[int] = None):
        self.client = client
        self.concurrency = max(1, min(int(concurrency), MAX_CONCURRENCY))
        self.timeout = timeout
        self.retries = retries
        self.detail_pages_fetched = 0
        self._lock = threading.Lock()
        self._cursor = 0

    def _claim(self, total: int) -> Optional[int]:
        with self._lock:
            if self._cursor >= total:
                return None
            index = self._cursor
            self._cursor += 1
            return index

    def _enrich_one(self, job: JobPosting, include_full_description: bool) -> JobPosting:
        if not _has_detail_url(job):
            return job
        try:
            response = self.client.get(job.url, accept=ACCEPT_HTML, timeout=self.timeout, retries=self.retries)
        except FetchError as exc:
            logger.warning("Detail fetch failed for %s: %s", job.url, exc)
            return job
        with self._lock:
            self.detail_pages_fetched += 1
        try:
            detail = parse_detail_page(response.text, job.url)
        except Exception as exc:
            logger.warning("Detail parse failed for %s: %s", job.url, exc)
            return job
        return merge_detail(job, detail, include_full_description)

    def _worker(self, jobs: List[JobPosting], results: List[JobPosting], include_full_description: bool) -> None:
        while True:
            index = self._claim(len(jobs))
            if index is None:
                return
            results[index] = self._enrich_one(jobs[index], include_full_description)

    def enrich(self, jobs: List[JobPosting], include_full_description: bool = True) -> List[JobPosting]:
        """Return jobs in the same order, each merged with its detail page"""
        if not jobs:
            return []
        self._cursor = 0
        results = list(jobs)
        workers = min(self.concurrency, len(jobs))
        logger.info("Enriching %s jobs with %s workers", len(jobs), workers)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="detail") as pool:
            futures = [
                pool.submit(self._worker, jobs, results, include_full_description)
                for _ in range(workers)
            ]
            for future in futures:
                future.result()

        logger.info("Detail enrichment complete: %s pages fetched", self.detail_pages_fetched)
        return results
