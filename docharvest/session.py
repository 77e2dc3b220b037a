"""Per-run crawl state shared by all workers of one strategy execution."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import threading

from .config import CrawlOptions
from .url import (
    compile_exclude_patterns,
    has_url_prefix,
    is_excluded,
    normalize_url,
    origin_host,
    resolve_url,
    same_origin,
)

LOGGER = logging.getLogger(__name__)


class AdmitStatus(str, Enum):
    """Result status for admission attempts."""

    ADMITTED = "admitted"
    SKIPPED_EMPTY = "skipped_empty"
    SKIPPED_OTHER_ORIGIN = "skipped_other_origin"
    SKIPPED_EXCLUDED = "skipped_excluded"
    SKIPPED_FILTERED = "skipped_filtered"
    SKIPPED_LIMIT = "skipped_limit"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_CANCELLED = "skipped_cancelled"


@dataclass(frozen=True, slots=True)
class AdmitResult:
    """Outcome of one admission attempt."""

    status: AdmitStatus
    normalized_url: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status == AdmitStatus.ADMITTED


class CrawlSession:
    """Seen-set, page counter, and cancellation signal for one run.

    - All shared mutable state lives here behind a single lock.
    - `admit` is an atomic test-and-mark: two workers offering the same link
      concurrently can never both get ADMITTED.
    - `reserve_page`/`release_page` keep the processed count at or below the
      configured limit even when several workers finish at once.
    """

    def __init__(
        self,
        root_url: str,
        options: CrawlOptions,
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        normalized_root = normalize_url(root_url)
        if normalized_root is None:
            raise ValueError(f"Invalid root URL: {root_url!r}")

        self.root_url = normalized_root
        self.base_host = origin_host(normalized_root)
        self.options = options
        self.exclude_patterns = compile_exclude_patterns(options.exclude)

        self._lock = threading.Lock()
        self._cancel_event = cancel_event or threading.Event()

        self._seen: dict[str, bool] = {}
        self._processed_count = 0
        self._reserved_count = 0
        self._status_counts: dict[str, int] = {status.value: 0 for status in AdmitStatus}

    @property
    def limit(self) -> int:
        return self.options.limit

    def _limit_hit_locked(self) -> bool:
        return self.limit > 0 and self._processed_count + self._reserved_count >= self.limit

    def admit(self, link: str | None, current_page: str | None = None) -> AdmitResult:
        """Attempt to admit one link; marks it seen on success."""

        if not link or not link.strip():
            return self._count(AdmitResult(AdmitStatus.SKIPPED_EMPTY))

        if current_page:
            normalized = resolve_url(current_page, link)
        else:
            normalized = normalize_url(link)
        if normalized is None:
            return self._count(AdmitResult(AdmitStatus.SKIPPED_EMPTY))

        if self.cancelled:
            return self._count(AdmitResult(AdmitStatus.SKIPPED_CANCELLED, normalized))

        if not same_origin(normalized, self.root_url):
            return self._count(AdmitResult(AdmitStatus.SKIPPED_OTHER_ORIGIN, normalized))

        if is_excluded(normalized, self.exclude_patterns):
            return self._count(AdmitResult(AdmitStatus.SKIPPED_EXCLUDED, normalized))

        if not has_url_prefix(normalized, self.options.filter_url):
            return self._count(AdmitResult(AdmitStatus.SKIPPED_FILTERED, normalized))

        with self._lock:
            if self.limit > 0 and self._processed_count >= self.limit:
                status = AdmitStatus.SKIPPED_LIMIT
            elif normalized in self._seen:
                status = AdmitStatus.SKIPPED_SEEN
            else:
                self._seen[normalized] = True
                status = AdmitStatus.ADMITTED
            self._status_counts[status.value] += 1

        return AdmitResult(status, normalized)

    def should_admit(self, link: str | None, current_page: str | None = None) -> bool:
        """Boolean form of `admit`."""

        return self.admit(link, current_page).accepted

    def mark_seen(self, url: str) -> bool:
        """Mark a URL seen without filters; returns False if already seen.

        Used for the root URL, which is always processed even when it falls
        outside the prefix filter.
        """

        normalized = normalize_url(url)
        if normalized is None:
            return False
        with self._lock:
            if normalized in self._seen:
                return False
            self._seen[normalized] = True
            self._status_counts[AdmitStatus.ADMITTED.value] += 1
            return True

    def reserve_page(self) -> bool:
        """Claim one slot under the page limit before writing a page."""

        with self._lock:
            if self._limit_hit_locked():
                return False
            self._reserved_count += 1
            return True

    def release_page(self, *, processed: bool) -> None:
        """Return a reserved slot, counting it as processed when it succeeded."""

        with self._lock:
            if self._reserved_count > 0:
                self._reserved_count -= 1
            if processed:
                self._processed_count += 1

    @property
    def processed_count(self) -> int:
        with self._lock:
            return self._processed_count

    @property
    def limit_reached(self) -> bool:
        with self._lock:
            return self.limit > 0 and self._processed_count >= self.limit

    def cancel(self) -> None:
        """Raise the run-scoped cancellation signal."""

        if not self._cancel_event.is_set():
            LOGGER.info("Cancellation requested; no new work will be admitted")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def is_seen(self, url: str) -> bool:
        normalized = normalize_url(url)
        with self._lock:
            return normalized in self._seen

    def _count(self, result: AdmitResult) -> AdmitResult:
        with self._lock:
            self._status_counts[result.status.value] += 1
        return result

    def snapshot(self) -> dict[str, int | bool | str]:
        """Return session counters for logs/stats reporting."""

        with self._lock:
            return {
                "root_url": self.root_url,
                "base_host": self.base_host,
                "seen_urls": len(self._seen),
                "processed": self._processed_count,
                "in_flight": self._reserved_count,
                "limit": self.limit,
                "cancelled": self._cancel_event.is_set(),
                **self._status_counts,
            }


__all__ = [
    "AdmitResult",
    "AdmitStatus",
    "CrawlSession",
]
