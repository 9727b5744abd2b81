"""
Job Collector - runs the extraction waterfall for one listing URL

Order of attempts (first non-empty result wins):
  1. guessed JSON API endpoints
  2. one plain HTTP fetch of the listing, parsed as HTML cards, then JSON-LD
  3. a rendered browser page: captured network JSON, then JSON-LD, then HTML

Further listing pages are then fetched over HTTP (unless the browser already
paginated through click controls), the accumulated jobs are deduplicated,
optionally enriched from their detail pages, and finalized.
"""

import logging
from typing import Callable, List, Optional

from api_extractor import extract_jobs_via_api, jobs_from_payload
from browser_session import BrowserSession, BrowserSessionError, RenderedPage
from config_loader import MAX_JOBS_CEILING
from detail_enricher import DetailEnricher
from html_extractor import extract_jobs_via_html
from http_client import ACCEPT_HTML, FetchError, HttpClient
from models import ExtractionMethod, ExtractionResult, JobPosting, RunState, RunStats
from normalizer import count_unique_jobs, dedupe_jobs, matches_job_type, normalize_jobs
from paginator import effective_max_pages, iter_listing_pages
from run_metrics import RunMetrics
from structured_data import extract_jobs_via_json_ld
from url_builder import origin_of

logger = logging.getLogger(__name__)

BrowserFactory = Callable[[], BrowserSession]


class JobCollector:
    """Owns the run state and sequences the extraction strategies"""

    def __init__(
        self,
        config,
        client: HttpClient,
        browser_factory: Optional[BrowserFactory] = None,
        enricher: Optional[DetailEnricher] = None,
        metrics: Optional[RunMetrics] = None,
    ):
        self.config = config
        self.client = client
        self.browser_factory = browser_factory
        self.enricher = enricher
        self.metrics = metrics or RunMetrics()
        self.state = RunState()
        self.search_url = ""

    # === Waterfall steps ===

    def _try_api(self, url: str) -> ExtractionResult:
        self.metrics.inc("attempts_api")
        return extract_jobs_via_api(
            url,
            self.client,
            timeout=self.config.get_api_timeout(),
            retries=self.config.get_api_retries(),
        )

    def _try_http_listing(self, url: str, base_url: str) -> tuple:
        """Fetch the listing once; HTML cards first, JSON-LD on the same body"""
        self.metrics.inc("attempts_http")
        try:
            response = self.client.get(url, accept=ACCEPT_HTML)
        except FetchError as exc:
            logger.warning("Listing fetch failed for %s: %s", url, exc)
            return ExtractionResult.empty(ExtractionMethod.HTML), ""

        result = extract_jobs_via_html(response.text, base_url)
        if result.jobs:
            return result, response.text

        logger.info("No job cards found, trying JSON-LD")
        return extract_jobs_via_json_ld(response.text, base_url), response.text

    def _extract_rendered(self, session: BrowserSession, page: RenderedPage, base_url: str) -> ExtractionResult:
        """Apply the plain extractors to a browser page and its captured JSON"""
        api_jobs: List[JobPosting] = []
        for payload in session.drain_network_payloads():
            api_jobs.extend(jobs_from_payload(payload, base_url))
        if api_jobs:
            logger.info("Captured network JSON yielded %s jobs", len(api_jobs))
            return ExtractionResult(jobs=api_jobs, method=ExtractionMethod.BROWSER_API)

        result = extract_jobs_via_json_ld(page.html, base_url)
        if result.jobs:
            return ExtractionResult(jobs=result.jobs, method=ExtractionMethod.BROWSER_JSON_LD)

        result = extract_jobs_via_html(page.html, base_url)
        return ExtractionResult(jobs=result.jobs, method=ExtractionMethod.BROWSER_HTML)

    def _paginate_browser(self, session: BrowserSession, base_url: str, max_jobs: int, max_pages: int) -> bool:
        """
        Click through ajax pagination inside the browser.

        Returns True when at least one click happened, which means the
        browser owned pagination for this run.
        """
        state = self.state
        page_limit = min(self.config.get_browser_max_pages(), max_pages)
        clicked = False

        while count_unique_jobs(state.jobs, base_url) < max_jobs and state.pages_processed < page_limit:
            if not session.click_next():
                logger.info("No usable next control in browser")
                break
            clicked = True
            page = session.snapshot()
            result = self._extract_rendered(session, page, base_url)
            if not result.jobs:
                logger.info("Browser page %s yielded no jobs; stopping", state.pages_processed + 1)
                break
            state.add_page(page.url, page.html, result.jobs)
            state.cookies = page.cookies or state.cookies
            self.metrics.inc("pages_browser")
            logger.info("Browser page %s: %s jobs", state.pages_processed, len(result.jobs))

        return clicked

    def _try_browser(self, url: str, base_url: str, max_jobs: int, max_pages: int) -> ExtractionResult:
        if self.browser_factory is None or not self.config.is_browser_enabled():
            logger.info("Browser fallback disabled")
            return ExtractionResult.empty(ExtractionMethod.BROWSER_HTML)

        self.metrics.inc("attempts_browser")
        try:
            session = self.browser_factory()
        except BrowserSessionError as exc:
            logger.warning("Browser session unavailable: %s", exc)
            return ExtractionResult.empty(ExtractionMethod.BROWSER_HTML)

        with session:
            try:
                page = session.render(url)
            except BrowserSessionError as exc:
                logger.warning("Browser navigation failed: %s", exc)
                self.metrics.record_event("browser_failed", url=url, error=str(exc))
                return ExtractionResult.empty(ExtractionMethod.BROWSER_HTML)

            result = self._extract_rendered(session, page, base_url)
            if not result.jobs:
                return result

            self.state.method = result.method
            self.state.add_page(page.url or url, page.html, result.jobs)
            self.state.cookies = page.cookies
            self.state.browser_completed = self._paginate_browser(session, base_url, max_jobs, max_pages)

        return result

    # === Continuation phases ===

    def _paginate_http(self, base_url: str, max_jobs: int, max_pages: int) -> None:
        if self.state.cookies:
            self.client.seed_cookies(self.state.cookies)
        for page in iter_listing_pages(self.client, self.state, base_url, max_jobs=max_jobs, max_pages=max_pages):
            self.state.add_page(page.url, page.html, page.jobs)
            self.metrics.inc("pages_http")
            logger.info("Page %s: %s jobs (%s total)", self.state.pages_processed, len(page.jobs), len(self.state.jobs))

    def _build_enricher(self) -> DetailEnricher:
        return DetailEnricher(
            self.client,
            concurrency=self.config.get_enrichment_concurrency(),
            timeout=self.config.get_enrichment_timeout(),
            retries=self.config.get_enrichment_retries(),
        )

    def _enrich(self, jobs: List[JobPosting]) -> List[JobPosting]:
        enricher = self.enricher or self._build_enricher()
        enriched = enricher.enrich(jobs, include_full_description=self.config.include_full_description())
        self.state.detail_pages_fetched += enricher.detail_pages_fetched
        self.metrics.inc("detail_pages", enricher.detail_pages_fetched)
        return enriched

    # === Entry point ===

    def run(self, search_url: str, max_jobs: int) -> ExtractionResult:
        """
        Collect up to max_jobs unique jobs from a listing URL.

        max_jobs == 0 means the hard ceiling; a negative value is rejected
        before anything is fetched.
        """
        if max_jobs is None or int(max_jobs) < 0:
            raise ValueError(f"max_jobs must be non-negative, got {max_jobs}")
        max_jobs = MAX_JOBS_CEILING if int(max_jobs) == 0 else min(int(max_jobs), MAX_JOBS_CEILING)

        self.state = RunState()
        self.search_url = search_url
        base_url = origin_of(search_url)
        max_pages = effective_max_pages(max_jobs, self.config.get_max_pages())
        logger.info("Collecting up to %s jobs from %s (page limit %s)", max_jobs, search_url, max_pages)

        result = self._try_api(search_url)
        if result.jobs:
            self.state.method = result.method
            self.state.add_page(search_url, "", result.jobs)
        else:
            result, html = self._try_http_listing(search_url, base_url)
            if result.jobs:
                self.state.method = result.method
                self.state.add_page(search_url, html, result.jobs)
            else:
                logger.info("HTTP strategies found nothing, falling back to browser")
                self._try_browser(search_url, base_url, max_jobs, max_pages)

        if not self.state.jobs:
            logger.warning("No jobs found with any extraction method")
            self.metrics.record_event("no_jobs", url=search_url)
            return ExtractionResult.empty(ExtractionMethod.NONE)

        logger.info("Extraction method: %s (%s jobs on first page)", self.state.method.value, len(self.state.jobs))
        self.metrics.record_event("method_selected", method=self.state.method.value)

        if self.state.browser_completed:
            logger.info("Browser pagination completed; skipping HTTP pagination")
        else:
            self._paginate_http(base_url, max_jobs, max_pages)

        job_type = self.config.get_job_type()
        candidates = [job for job in self.state.jobs if matches_job_type(job, job_type)]
        unique = dedupe_jobs(candidates, base_url, max_jobs)
        logger.info("Deduplicated %s scraped jobs to %s", len(self.state.jobs), len(unique))

        if unique and self.config.is_enrichment_enabled():
            unique = self._enrich(unique)

        jobs = normalize_jobs(unique, base_url, max_jobs, job_type)
        self.metrics.inc("jobs_emitted", len(jobs))
        return ExtractionResult(jobs=jobs, method=self.state.method)

    def build_stats(self, total_jobs: int) -> RunStats:
        return self.metrics.snapshot(self.state, total_jobs, self.search_url or None)
