"""Thread-safe run statistics aggregation."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import replace
from datetime import datetime, timezone
import threading
from typing import Any, Mapping

from .session import AdmitResult, AdmitStatus
from .types import ClassificationVerdict, CrawlStats, FetchResult


class SkipReason:
    EXISTING = "existing"
    EMPTY_OR_ERROR = "empty_or_error"
    LIMIT = "limit"
    TOO_SHORT = "too_short"
    CANCELLED = "cancelled"


# Admission outcomes folded into the core `skipped_filtered` counter.
_FILTERED = frozenset(
    {
        AdmitStatus.SKIPPED_EXCLUDED,
        AdmitStatus.SKIPPED_FILTERED,
        AdmitStatus.SKIPPED_OTHER_ORIGIN,
    }
)

_ADMIT_FIELDS = {
    AdmitStatus.ADMITTED: "admitted",
    AdmitStatus.SKIPPED_SEEN: "skipped_seen",
    AdmitStatus.SKIPPED_LIMIT: "skipped_limit",
}

_SKIP_FIELDS = {
    SkipReason.EXISTING: "skipped_existing",
    SkipReason.EMPTY_OR_ERROR: "skipped_empty",
}


class StatsCollector:
    """Collect and summarize harvester runtime statistics.

    Core totals live on a `CrawlStats` record; everything else is a named
    `Counter` bucket that shows up verbatim in the JSON summary. All methods
    may be called from any worker thread.
    """

    def __init__(self, base: CrawlStats | None = None) -> None:
        self._lock = threading.Lock()
        self._core = base or CrawlStats()
        self._buckets: defaultdict[str, Counter] = defaultdict(Counter)
        self._session_view: dict[str, Any] = {}
        self._elapsed_ms: list[int] = []
        self._bytes_seen = 0

    def _bump(self, field_name: str) -> None:
        setattr(self._core, field_name, getattr(self._core, field_name) + 1)

    def record_admit(self, outcome: AdmitResult | AdmitStatus) -> None:
        """Record one admission outcome."""

        status = outcome.status if isinstance(outcome, AdmitResult) else outcome
        with self._lock:
            field_name = _ADMIT_FIELDS.get(status)
            if field_name is not None:
                self._bump(field_name)
                return
            if status in _FILTERED:
                self._bump("skipped_filtered")
            self._buckets["admission"][status.value] += 1

    def record_session_snapshot(self, snapshot: Mapping[str, Any]) -> None:
        """Attach the latest session snapshot for diagnostics."""

        with self._lock:
            self._session_view = dict(snapshot)

    def record_fetch(self, result: FetchResult) -> None:
        with self._lock:
            self._bump("fetched_ok" if result.ok else "fetched_error")
            if result.status_code is not None:
                self._buckets["status_code"][str(result.status_code)] += 1
            if result.error:
                kind = result.error.partition(":")[0].strip()
                self._buckets["error_type"][kind or "Unknown"] += 1
            if result.ok:
                self._buckets["content_kind"][result.content_kind.value] += 1
            if result.elapsed_ms is not None:
                self._elapsed_ms.append(int(result.elapsed_ms))
            self._bytes_seen += result.content_length or 0

    def record_verdict(self, verdict: ClassificationVerdict) -> None:
        with self._lock:
            counts = self._buckets["classifier"]
            counts["classified"] += 1
            counts["needs_render"] += int(verdict.needs_render)
            counts["empty_or_error"] += int(verdict.is_empty_or_error)

    def record_render(self, *, ok: bool) -> None:
        with self._lock:
            self._bump("rendered_ok" if ok else "rendered_error")

    def record_convert(self, *, ok: bool) -> None:
        with self._lock:
            self._bump("converted_ok" if ok else "converted_error")

    def record_written(self, strategy: str) -> None:
        with self._lock:
            self._bump("written_docs")
            self._buckets["written_by_strategy"][strategy or "unknown"] += 1

    def record_skip(self, reason: str) -> None:
        with self._lock:
            self._buckets["skipped"][reason] += 1
            if reason in _SKIP_FIELDS:
                self._bump(_SKIP_FIELDS[reason])

    def increment(self, name: str, value: int = 1) -> None:
        """Add to a free-form counter reported under `custom_counters`."""

        if name and value:
            with self._lock:
                self._buckets["custom_counters"][name] += value

    def finish(self) -> None:
        with self._lock:
            self._core.finish()

    def core(self) -> CrawlStats:
        """Snapshot of the core totals."""

        with self._lock:
            return replace(self._core)

    def to_json(self) -> dict[str, Any]:
        """Core totals plus rates, timings and every counter bucket."""

        with self._lock:
            core = self._core
            started = _as_utc(core.started_at)
            ended = _as_utc(core.finished_at)
            seconds = max(0.0, (ended - started).total_seconds())

            def per_second(count: int) -> float:
                return count / seconds if seconds > 0 else 0.0

            samples = len(self._elapsed_ms)
            total_ms = sum(self._elapsed_ms)
            buckets = {name: dict(counts) for name, counts in self._buckets.items()}

            return {
                **core.to_json(),
                "duration_seconds": seconds,
                "throughput": {
                    "fetched_per_second": per_second(core.fetched_ok + core.fetched_error),
                    "written_per_second": per_second(core.written_docs),
                },
                "admission": {
                    "extra_status_counts": buckets.pop("admission", {}),
                    "session": dict(self._session_view),
                },
                "fetch": {
                    "status_code_counts": buckets.pop("status_code", {}),
                    "error_type_counts": buckets.pop("error_type", {}),
                    "content_kind_counts": buckets.pop("content_kind", {}),
                    "elapsed_ms_total": total_ms,
                    "elapsed_ms_samples": samples,
                    "elapsed_ms_avg": total_ms / samples if samples else 0.0,
                    "bytes_total": self._bytes_seen,
                },
                "classifier": buckets.pop("classifier", {}),
                "skipped": buckets.pop("skipped", {}),
                "written_by_strategy": buckets.pop("written_by_strategy", {}),
                "custom_counters": buckets.pop("custom_counters", {}),
            }


def _as_utc(stamp: str | None) -> datetime:
    """Parse an ISO timestamp as UTC; missing or garbled stamps mean now."""

    now = datetime.now(timezone.utc)
    if not stamp:
        return now
    try:
        moment = datetime.fromisoformat(stamp)
    except ValueError:
        return now
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


__all__ = ["SkipReason", "StatsCollector"]
