"""Extract pages listed in an XML sitemap or sitemap index."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import threading
from urllib.parse import urlsplit

from ..config import CrawlOptions
from ..discovery import SitemapEntry, parse_sitemap_document
from ..errors import FatalConfigError, ProbeParseError
from ..processor import process_url_list
from ..session import CrawlSession
from ..url import normalize_url
from .base import Strategy, apply_list_filters, truncate_to_limit

LOGGER = logging.getLogger(__name__)

MAX_INDEX_DEPTH = 3
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def sort_by_lastmod(entries: list[SitemapEntry]) -> list[SitemapEntry]:
    """Most recently modified first; entries without lastmod go last."""

    return sorted(entries, key=lambda entry: entry.lastmod or _EPOCH, reverse=True)


class SitemapStrategy(Strategy):
    name = "sitemap"

    def can_handle(self, url: str) -> bool:
        path = urlsplit(url.lower()).path
        if path.endswith(("sitemap.xml", "sitemap.xml.gz")):
            return True
        return "sitemap" in path and path.endswith((".xml", ".xml.gz"))

    def execute(
        self,
        url: str,
        options: CrawlOptions,
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        session = self.new_session(url, options, cancel_event)
        self._process_sitemap(session, url, depth=0)
        self.deps.stats.record_session_snapshot(session.snapshot())
        LOGGER.info("Sitemap extraction completed: %d page(s)", session.processed_count)

    def _process_sitemap(self, session: CrawlSession, url: str, *, depth: int) -> None:
        LOGGER.info("Fetching sitemap %s", url)
        result = self.deps.fetcher.get(url)
        self.deps.stats.record_fetch(result)
        if not result.ok:
            raise FatalConfigError(
                f"Failed to fetch sitemap {url}: {result.error or f'HTTP {result.status_code}'}"
            )

        try:
            document = parse_sitemap_document(result.body or b"")
        except ProbeParseError as exc:
            raise FatalConfigError(f"Failed to parse sitemap {url}: {exc}") from exc

        if document.is_index:
            self._process_index(session, document.sitemaps, depth=depth)
            return

        urls: list[str] = []
        for entry in sort_by_lastmod(document.entries):
            normalized = normalize_url(entry.loc)
            if normalized is not None and session.mark_seen(normalized):
                urls.append(normalized)

        urls = truncate_to_limit(apply_list_filters(urls, session), session.options)
        LOGGER.info("Processing %d URL(s) from sitemap", len(urls))

        process_url_list(
            self.new_processor(session),
            urls,
            concurrency=session.options.concurrency,
            desc="Downloading",
        )

    def _process_index(self, session: CrawlSession, sitemaps: list[str], *, depth: int) -> None:
        LOGGER.info("Processing sitemap index with %d sitemap(s)", len(sitemaps))
        if depth >= MAX_INDEX_DEPTH:
            LOGGER.warning("Sitemap index nesting deeper than %d, skipping", MAX_INDEX_DEPTH)
            return

        for nested_url in sitemaps:
            if session.cancelled or session.limit_reached:
                return
            try:
                self._process_sitemap(session, nested_url, depth=depth + 1)
            except FatalConfigError as exc:
                LOGGER.warning("Failed to process nested sitemap %s: %s", nested_url, exc)


__all__ = ["SitemapStrategy", "sort_by_lastmod"]
