import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from models import RunState, RunStats


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RunMetrics:
    """
    Lightweight run metrics tracker.

    Counters and events accumulate during the run; snapshot() turns them and
    the final RunState into the immutable statistics record.
    """

    started_at_iso: str = field(default_factory=_utc_now_iso)
    started_at_monotonic: float = field(default_factory=time.monotonic)
    ended_at_iso: Optional[str] = None
    duration_seconds: Optional[float] = None
    counters: Dict[str, int] = field(default_factory=dict)
    events: list[dict[str, Any]] = field(default_factory=list)

    def inc(self, key: str, amount: int = 1) -> None:
        if not key:
            return
        self.counters[key] = int(self.counters.get(key, 0)) + int(amount)

    def record_event(self, kind: str, **data: Any) -> None:
        if not kind:
            return
        payload: dict[str, Any] = {"t": _utc_now_iso(), "kind": kind}
        payload.update({k: v for k, v in data.items() if v is not None})
        self.events.append(payload)

    def finish(self) -> None:
        """Mark the run as finished and record end time."""
        if self.ended_at_iso is None:
            self.ended_at_iso = _utc_now_iso()
            self.duration_seconds = max(time.monotonic() - self.started_at_monotonic, 0.0)

    def snapshot(self, state: RunState, total_jobs: int, search_url: Optional[str] = None) -> RunStats:
        self.finish()
        return RunStats(
            extraction_method=state.method.value,
            pages_processed=state.pages_processed,
            total_jobs=total_jobs,
            duration_seconds=round(self.duration_seconds or 0.0, 3),
            detail_pages_fetched=state.detail_pages_fetched,
            started_at=self.started_at_iso,
            finished_at=self.ended_at_iso or _utc_now_iso(),
            search_url=search_url,
            counters=dict(self.counters),
            events=list(self.events),
        )
