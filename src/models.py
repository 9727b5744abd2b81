"""
Data models for the Computrabajo scraper
Defines structure for job postings, extraction results, run state and stats
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

NOT_SPECIFIED = "Not specified"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExtractionMethod(str, Enum):
    """Which waterfall step produced the jobs"""

    NONE = "None"
    API = "Api"
    HTML = "Html"
    JSON_LD = "JsonLd"
    BROWSER_API = "BrowserApi"
    BROWSER_JSON_LD = "BrowserJsonLd"
    BROWSER_HTML = "BrowserHtml"


class JobPosting(BaseModel):
    """Represents a single job posting"""

    title: str
    company: str = ""
    location: str = ""
    salary: str = NOT_SPECIFIED
    job_type: str = Field(default=NOT_SPECIFIED, alias="jobType")
    posted_date: str = Field(default="", alias="postedDate")
    description_html: str = Field(default="", alias="descriptionHtml")
    description_text: str = Field(default="", alias="descriptionText")
    url: str = ""
    scraped_at: str = Field(default_factory=_utc_now_iso, alias="scrapedAt")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("title must be non-empty")
        return value

    @field_validator(
        "company", "location", "salary", "job_type", "posted_date",
        "description_html", "description_text", "url",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    def to_record(self) -> Dict[str, Any]:
        """Dataset row with camelCase keys"""
        return self.model_dump(by_alias=True)

    def __str__(self) -> str:
        return f"{self.title} at {self.company or '?'} ({self.location or '?'})"


@dataclass
class ExtractionResult:
    """Jobs produced by one strategy attempt"""

    jobs: List[JobPosting]
    method: ExtractionMethod

    @classmethod
    def empty(cls, method: ExtractionMethod) -> "ExtractionResult":
        return cls(jobs=[], method=method)


@dataclass
class SearchInput:
    """Search parameters used to build the listing URL"""

    country: str = "ar"
    query: str = "administracion-y-oficina"
    location: str = ""
    url: str = ""
    job_type: str = ""

    def __str__(self) -> str:
        if self.url:
            return self.url
        where = f" in {self.location}" if self.location else ""
        return f"'{self.query}'{where} ({self.country})"


@dataclass
class RunState:
    """
    Accumulated state for a single run.

    Created by the collector at run start and mutated only by it; the
    paginator reads it to decide when to stop.
    """

    jobs: List[JobPosting] = field(default_factory=list)
    visited_urls: Set[str] = field(default_factory=set)
    pages_processed: int = 0
    method: ExtractionMethod = ExtractionMethod.NONE
    detail_pages_fetched: int = 0
    browser_completed: bool = False
    cookies: List[Dict[str, Any]] = field(default_factory=list)
    last_page_html: str = ""
    last_page_url: str = ""

    def add_page(self, url: str, html: str, jobs: List[JobPosting]) -> None:
        self.visited_urls.add(url)
        self.pages_processed += 1
        self.jobs.extend(jobs)
        self.last_page_url = url
        self.last_page_html = html


@dataclass(frozen=True)
class RunStats:
    """Immutable statistics snapshot written once at run end"""

    extraction_method: str
    pages_processed: int
    total_jobs: int
    duration_seconds: float
    detail_pages_fetched: int
    started_at: str
    finished_at: str
    search_url: Optional[str] = None
    counters: Dict[str, int] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "extractionMethod": self.extraction_method,
            "pagesProcessed": self.pages_processed,
            "totalJobs": self.total_jobs,
            "durationSeconds": self.duration_seconds,
            "detailPagesFetched": self.detail_pages_fetched,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "searchUrl": self.search_url,
            "counters": dict(self.counters),
            "events": list(self.events),
        }
