"""Discovery-first extraction for statically hosted documentation sites.

Structured inventories (llms.txt, sitemaps, search indexes) are tried before
any link-following. When every probe fails the generic crawler takes over.
"""

from __future__ import annotations

import logging
import threading
from urllib.parse import urlsplit

from ..config import CrawlOptions
from ..constants import (
    DISCOVERY_MAX_CONCURRENCY,
    DISCOVERY_RENDER_TIMEOUT_SECONDS,
    DISCOVERY_RENDER_WAIT_STABLE_SECONDS,
    MIN_CONVERTED_CHARS,
)
from ..discovery import DiscoveryEngine
from ..errors import DiscoveryExhausted, InvalidURLError
from ..fetcher import RenderOptions
from ..processor import process_url_list
from ..url import filter_and_dedupe_urls, normalize_url, should_skip_asset_url
from .base import Strategy, apply_list_filters, truncate_to_limit
from .crawler import CrawlerStrategy

LOGGER = logging.getLogger(__name__)

DISCOVERY_RENDER_OPTIONS = RenderOptions(
    timeout=DISCOVERY_RENDER_TIMEOUT_SECONDS,
    wait_stable=DISCOVERY_RENDER_WAIT_STABLE_SECONDS,
    scroll_to_end=True,
)


def is_github_pages_url(url: str) -> bool:
    host = (urlsplit(url).hostname or "").lower()
    return host.endswith(".github.io")


def normalize_base_url(url: str) -> str:
    """Keep scheme, host and project sub-path; drop trailing slash and query."""

    normalized = normalize_url(url)
    if normalized is None:
        raise InvalidURLError(url)
    parts = urlsplit(normalized)
    path = parts.path.rstrip("/")
    return f"{parts.scheme}://{parts.netloc}{path}"


class GitHubPagesStrategy(Strategy):
    name = "github_pages"

    def __init__(self, deps, *, fallback: Strategy | None = None) -> None:
        super().__init__(deps)
        self.engine = DiscoveryEngine(
            deps.fetcher,
            nested_sitemap_limit=deps.config.nested_sitemap_limit,
        )
        self.fallback = fallback or CrawlerStrategy(deps)

    def can_handle(self, url: str) -> bool:
        return is_github_pages_url(url)

    def execute(
        self,
        url: str,
        options: CrawlOptions,
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        base_url = normalize_base_url(url)
        LOGGER.info("Starting discovery-first extraction of %s", base_url)

        try:
            discovered = self.engine.discover(base_url, cancel_event=cancel_event)
        except DiscoveryExhausted as exc:
            LOGGER.info("%s; falling back to link crawl", exc)
            self.deps.stats.increment("discovery_fallbacks")
            self.fallback.execute(url, options, cancel_event=cancel_event)
            return

        self.deps.stats.increment(f"discovery_probe_{discovered.probe_name}")
        session = self.new_session(base_url, options, cancel_event)

        urls = filter_and_dedupe_urls(discovered.urls, base_url)
        urls = [candidate for candidate in urls if not should_skip_asset_url(candidate)]
        urls = truncate_to_limit(apply_list_filters(urls, session), options)
        for candidate in urls:
            session.mark_seen(candidate)
        LOGGER.info("Processing %d URL(s) discovered via %s", len(urls), discovered.probe_name)

        processor = self.new_processor(
            session,
            render_options=DISCOVERY_RENDER_OPTIONS,
            min_content_chars=MIN_CONVERTED_CHARS,
        )
        process_url_list(
            processor,
            urls,
            concurrency=min(options.concurrency, DISCOVERY_MAX_CONCURRENCY),
            desc="Extracting",
        )
        self.deps.stats.record_session_snapshot(session.snapshot())
        LOGGER.info("Discovery-first extraction completed: %d page(s)", session.processed_count)


__all__ = [
    "DISCOVERY_RENDER_OPTIONS",
    "GitHubPagesStrategy",
    "is_github_pages_url",
    "normalize_base_url",
]
