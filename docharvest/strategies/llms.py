"""Extract every page linked from an llms.txt index."""

from __future__ import annotations

import logging
import threading
from urllib.parse import urlsplit

from ..config import CrawlOptions
from ..discovery import parse_llms_links
from ..errors import FatalConfigError
from ..processor import process_url_list
from ..url import resolve_url
from .base import Strategy, apply_list_filters, truncate_to_limit

LOGGER = logging.getLogger(__name__)


class LLMSStrategy(Strategy):
    name = "llms"

    def can_handle(self, url: str) -> bool:
        return urlsplit(url.lower()).path.endswith("llms.txt")

    def execute(
        self,
        url: str,
        options: CrawlOptions,
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        session = self.new_session(url, options, cancel_event)
        LOGGER.info("Fetching llms.txt %s", url)

        result = self.deps.fetcher.get(url)
        self.deps.stats.record_fetch(result)
        if not result.ok:
            raise FatalConfigError(
                f"Failed to fetch llms.txt {url}: {result.error or f'HTTP {result.status_code}'}"
            )

        titles: dict[str, str] = {}
        urls: list[str] = []
        for link in parse_llms_links(result.text()):
            resolved = resolve_url(url, link.url)
            if resolved is None or not session.mark_seen(resolved):
                continue
            urls.append(resolved)
            if link.title:
                titles[resolved] = link.title
        LOGGER.info("Found %d link(s) in llms.txt", len(urls))

        urls = truncate_to_limit(apply_list_filters(urls, session), options)
        if options.filter_url:
            LOGGER.info("%d link(s) under filter %s", len(urls), options.filter_url)

        process_url_list(
            self.new_processor(session),
            urls,
            concurrency=options.concurrency,
            titles=titles,
            desc="Extracting",
        )
        self.deps.stats.record_session_snapshot(session.snapshot())
        LOGGER.info("llms.txt extraction completed: %d page(s)", session.processed_count)


__all__ = ["LLMSStrategy"]
