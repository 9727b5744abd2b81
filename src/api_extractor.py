"""
Speculative direct-API extraction.

The listing URL is rewritten into a handful of guessed JSON endpoints. Nothing
guarantees a site exposes any of them, so this strategy is strictly
best-effort: every failure just means "no jobs from this candidate".

Responses are scanned without a per-site schema: a depth-bounded walk over the
decoded JSON looks for arrays whose first object has a job-like key (English
or Spanish), then each element is mapped field by field through synonym lists.
"""

import json
import logging
from typing import Any, Iterable, List, Optional
from urllib.parse import urljoin, urlparse

from http_client import ACCEPT_JSON, FetchError, HttpClient
from models import NOT_SPECIFIED, ExtractionMethod, ExtractionResult, JobPosting
from structured_data import strip_html

logger = logging.getLogger(__name__)

MAX_SCAN_DEPTH = 5
API_TIMEOUT_SECONDS = 10
API_RETRIES = 1

JOB_MARKER_KEYS = {"title", "titulo", "company", "empresa"}
ENVELOPE_KEYS = ("jobs", "ofertas", "results", "data", "items", "listings")

FIELD_SYNONYMS = {
    "title": ("title", "titulo", "name", "nombre"),
    "company": ("company", "empresa", "nombreEmpresa", "companyName", "employer"),
    "location": ("location", "ubicacion", "city", "ciudad", "localidad"),
    "salary": ("salary", "salario", "sueldo"),
    "job_type": ("type", "tipo", "employmentType", "jornada", "jobType"),
    "posted_date": ("date", "fecha", "postedDate", "fechaPublicacion", "datePosted"),
    "description": ("descriptionHtml", "description", "descripcion"),
    "url": ("url", "link", "enlace", "href"),
}


def candidate_endpoints(url: str) -> List[str]:
    """Guessed JSON endpoints for a listing URL, in the order they are tried"""
    parsed = urlparse(url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    candidates = []
    if "/empleos-de-" in url:
        candidates.append(url.replace("/empleos-de-", "/api/search?q=", 1) + "&limit=100")
    separator = "&" if parsed.query else "?"
    candidates.append(f"{url}{separator}format=json")
    candidates.append(f"{origin}/api/jobs")

    unique = []
    for candidate in candidates:
        if candidate not in unique:
            unique.append(candidate)
    return unique


def _looks_like_job_array(value: Any) -> bool:
    if not isinstance(value, list) or not value:
        return False
    first = value[0]
    if not isinstance(first, dict):
        return False
    return any(str(key).lower() in JOB_MARKER_KEYS for key in first.keys())


def _ordered_items(obj: dict) -> Iterable:
    # Known envelope keys first so the usual shapes are found before exotic ones.
    known = [(k, v) for k, v in obj.items() if str(k).lower() in ENVELOPE_KEYS]
    other = [(k, v) for k, v in obj.items() if str(k).lower() not in ENVELOPE_KEYS]
    return known + other


def find_job_arrays(data: Any, depth: int = 0, max_depth: int = MAX_SCAN_DEPTH) -> List[list]:
    """Collect job-like arrays from an arbitrary decoded JSON tree"""
    if depth > max_depth:
        return []
    if _looks_like_job_array(data):
        return [data]

    found: List[list] = []
    if isinstance(data, dict):
        for _, value in _ordered_items(data):
            if isinstance(value, (dict, list)):
                found.extend(find_job_arrays(value, depth + 1, max_depth))
    elif isinstance(data, list):
        for value in data:
            if isinstance(value, (dict, list)):
                found.extend(find_job_arrays(value, depth + 1, max_depth))
    return found


def _coerce_text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (int, float, str)):
        return str(value).strip()
    if isinstance(value, dict):
        for key in ("name", "nombre", "title", "label", "value"):
            inner = value.get(key)
            if isinstance(inner, (str, int, float)) and not isinstance(inner, bool):
                return str(inner).strip()
    return ""


def first_value(item: dict, keys: Iterable[str]) -> str:
    """First non-empty value across synonym keys (case-insensitive)"""
    lowered = {str(k).lower(): v for k, v in item.items()}
    for key in keys:
        text = _coerce_text(item.get(key, lowered.get(key.lower())))
        if text:
            return text
    return ""


def map_api_record(item: Any, base_url: str = "") -> Optional[JobPosting]:
    if not isinstance(item, dict):
        return None
    title = first_value(item, FIELD_SYNONYMS["title"])
    if not title:
        return None

    description = first_value(item, FIELD_SYNONYMS["description"])
    url = first_value(item, FIELD_SYNONYMS["url"])
    if url and base_url:
        url = urljoin(base_url, url)

    return JobPosting(
        title=title,
        company=first_value(item, FIELD_SYNONYMS["company"]),
        location=first_value(item, FIELD_SYNONYMS["location"]),
        salary=first_value(item, FIELD_SYNONYMS["salary"]) or NOT_SPECIFIED,
        job_type=first_value(item, FIELD_SYNONYMS["job_type"]) or NOT_SPECIFIED,
        posted_date=first_value(item, FIELD_SYNONYMS["posted_date"]),
        description_html=description,
        description_text=strip_html(description),
        url=url,
    )


def jobs_from_payload(data: Any, base_url: str = "") -> List[JobPosting]:
    """Map every job-like array found in a payload"""
    jobs: List[JobPosting] = []
    for array in find_job_arrays(data):
        for item in array:
            job = map_api_record(item, base_url)
            if job:
                jobs.append(job)
    return jobs


def extract_jobs_via_api(
    url: str,
    client: HttpClient,
    *,
    timeout: float = API_TIMEOUT_SECONDS,
    retries: int = API_RETRIES,
) -> ExtractionResult:
    """Strategy: try each guessed endpoint; the first yielding jobs wins"""
    logger.info("Attempting to extract jobs via internal API (HTTP + JSON)")
    parsed = urlparse(url)
    base_url = f"{parsed.scheme}://{parsed.netloc}"

    for endpoint in candidate_endpoints(url):
        try:
            response = client.get(
                endpoint,
                accept=ACCEPT_JSON,
                timeout=timeout,
                retries=retries,
                raise_for_status=False,
            )
        except FetchError as exc:
            logger.warning("API endpoint failed: %s - %s", endpoint, exc)
            continue

        if response.status_code != 200:
            logger.debug("API endpoint %s returned %s", endpoint, response.status_code)
            continue

        try:
            data = json.loads(response.text)
        except (json.JSONDecodeError, ValueError) as exc:
            logger.debug("Failed to parse JSON from %s: %s", endpoint, exc)
            continue

        jobs = jobs_from_payload(data, base_url)
        if jobs:
            logger.info("API extraction successful: %s jobs from %s", len(jobs), endpoint)
            return ExtractionResult(jobs=jobs, method=ExtractionMethod.API)

    return ExtractionResult.empty(ExtractionMethod.API)
