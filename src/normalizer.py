"""
Deduplication and final normalization of collected jobs.

The canonical URL (absolute, origin-resolved, fragment-free, lowercase
scheme and host) is the dedup key. The first record seen for a key is kept
as-is; later duplicates are dropped.
"""

import html as html_lib
import logging
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlparse, urlunparse

from models import NOT_SPECIFIED, JobPosting
from structured_data import strip_html

logger = logging.getLogger(__name__)


def canonical_url(url: str, base_url: str = "") -> str:
    url = (url or "").strip()
    if not url:
        return ""
    if not url.lower().startswith(("http://", "https://")):
        if not base_url:
            return ""
        parsed_base = urlparse(base_url)
        url = urljoin(f"{parsed_base.scheme}://{parsed_base.netloc}/", url)
    parsed = urlparse(url)
    path = parsed.path or "/"
    return urlunparse(
        (parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.params, parsed.query, "")
    )


def _blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def finalize_job(job: JobPosting) -> JobPosting:
    """Fill sentinels and guarantee a non-empty description pair"""
    description_html = (job.description_html or "").strip()
    description_text = (job.description_text or "").strip()

    if not description_html:
        if description_text:
            description_html = f"<p>{html_lib.escape(description_text)}</p>"
        else:
            description_html = f"<p>{NOT_SPECIFIED}</p>"
            description_text = NOT_SPECIFIED
    if not description_text:
        description_text = strip_html(description_html) or NOT_SPECIFIED

    return job.model_copy(
        update={
            "company": job.company if not _blank(job.company) else NOT_SPECIFIED,
            "location": job.location if not _blank(job.location) else NOT_SPECIFIED,
            "salary": job.salary if not _blank(job.salary) else NOT_SPECIFIED,
            "job_type": job.job_type if not _blank(job.job_type) else NOT_SPECIFIED,
            "posted_date": job.posted_date or "",
            "description_html": description_html,
            "description_text": description_text,
        }
    )


def matches_job_type(job: JobPosting, job_type: str) -> bool:
    """Unknown job types pass; known ones must contain the filter"""
    wanted = (job_type or "").strip().lower()
    if not wanted:
        return True
    actual = (job.job_type or "").strip().lower()
    if not actual or actual == NOT_SPECIFIED.lower():
        return True
    return wanted in actual


def dedupe_jobs(jobs: Iterable[JobPosting], base_url: str, max_jobs: int) -> List[JobPosting]:
    """First occurrence per canonical URL wins; stop at max_jobs"""
    seen = set()
    unique: List[JobPosting] = []
    dropped_no_url = 0
    for job in jobs:
        key = canonical_url(job.url, base_url)
        if not key:
            dropped_no_url += 1
            continue
        if key in seen:
            continue
        seen.add(key)
        unique.append(job if job.url == key else job.model_copy(update={"url": key}))
        if len(unique) >= max_jobs:
            break
    if dropped_no_url:
        logger.info("Dropped %s jobs without a usable URL", dropped_no_url)
    return unique


def count_unique_jobs(jobs: Iterable[JobPosting], base_url: str) -> int:
    """Number of distinct canonical URLs, the same keys dedupe_jobs uses"""
    keys = {canonical_url(job.url, base_url) for job in jobs}
    keys.discard("")
    return len(keys)


def normalize_jobs(
    jobs: Iterable[JobPosting],
    base_url: str,
    max_jobs: int,
    job_type: str = "",
) -> List[JobPosting]:
    """Filter by job type, dedupe, truncate and finalize"""
    kept = [job for job in jobs if matches_job_type(job, job_type)]
    unique = dedupe_jobs(kept, base_url, max_jobs)
    return [finalize_job(job) for job in unique]
