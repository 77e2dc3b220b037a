"""Generic concurrent link-following crawler."""

from __future__ import annotations

import logging
import queue
import threading

from tqdm import tqdm

from ..config import CrawlOptions
from ..fetcher import RenderOptions
from ..processor import PageOutcome, PageProcessor
from ..session import CrawlSession
from ..types import CrawlItem
from ..url import extract_links_from_html, is_http_url, should_skip_asset_url
from .base import Strategy

LOGGER = logging.getLogger(__name__)

POP_TIMEOUT_SECONDS = 0.5
WORKER_JOIN_TIMEOUT_SECONDS = 5.0


class CrawlFrontier:
    """FIFO of admitted `CrawlItem`s shared by crawler workers.

    Deduplication happens in `CrawlSession.admit` before anything reaches the
    queue, so every item here is fetched exactly once.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[CrawlItem] = queue.Queue()
        self._closed = threading.Event()

    def push(self, item: CrawlItem) -> None:
        self._queue.put(item)

    def pop(self, *, timeout: float = POP_TIMEOUT_SECONDS) -> CrawlItem | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def join(self) -> None:
        self._queue.join()

    def close(self) -> None:
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def empty(self) -> bool:
        return self._queue.empty()


class CrawlerStrategy(Strategy):
    """Breadth-first crawl of same-origin links from a root URL.

    The root page is depth 0. Links found on a page at depth d are admitted at
    depth d + 1 while d + 1 <= `max_depth`.
    """

    name = "crawler"

    def __init__(self, deps, *, render_options: RenderOptions | None = None) -> None:
        super().__init__(deps)
        self.render_options = render_options

    def can_handle(self, url: str) -> bool:
        return is_http_url(url)

    def execute(
        self,
        url: str,
        options: CrawlOptions,
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        session = self.new_session(url, options, cancel_event)
        self.crawl(session)

    def crawl(self, session: CrawlSession) -> None:
        """Run worker threads until the frontier drains or the run is cancelled."""

        options = session.options
        LOGGER.info(
            "Starting crawl of %s (concurrency=%d, max_depth=%d, limit=%s)",
            session.root_url,
            options.concurrency,
            options.max_depth,
            options.limit or "unlimited",
        )
        if options.filter_url:
            LOGGER.info("URL filter active: only crawling URLs under %s", options.filter_url)

        processor = self.new_processor(session, render_options=self.render_options)
        frontier = CrawlFrontier()

        # The root bypasses filter_url and exclusions; it is always processed.
        session.mark_seen(session.root_url)
        frontier.push(CrawlItem(url=session.root_url, depth=0))

        progress = tqdm(
            desc="Crawling",
            unit="page",
            disable=not self.deps.config.show_progress,
        )
        workers = [
            threading.Thread(
                target=self._worker,
                args=(frontier, processor, progress),
                name=f"crawler-worker-{idx}",
                daemon=True,
            )
            for idx in range(options.concurrency)
        ]

        for worker in workers:
            worker.start()

        try:
            frontier.join()
        except KeyboardInterrupt:
            session.cancel()
            raise
        finally:
            frontier.close()
            for worker in workers:
                worker.join(timeout=WORKER_JOIN_TIMEOUT_SECONDS)
            progress.close()
            self.deps.stats.record_session_snapshot(session.snapshot())

        LOGGER.info(
            "Crawl finished: %d page(s) processed%s",
            session.processed_count,
            " (cancelled)" if session.cancelled else "",
        )

    def _worker(
        self,
        frontier: CrawlFrontier,
        processor: PageProcessor,
        progress: tqdm,
    ) -> None:
        session = processor.session
        while True:
            item = frontier.pop()
            if item is None:
                if frontier.closed and frontier.empty():
                    return
                continue

            try:
                if session.cancelled or session.limit_reached:
                    continue
                outcome = processor.process(item.url, need_html=True, referrer=item.referrer)
                progress.update(1)
                self._enqueue_links(frontier, session, item, outcome)
            except Exception as exc:
                LOGGER.exception("Unexpected crawler failure on %s: %s", item.url, exc)
            finally:
                frontier.task_done()

    def _enqueue_links(
        self,
        frontier: CrawlFrontier,
        session: CrawlSession,
        item: CrawlItem,
        outcome: PageOutcome,
    ) -> None:
        if not outcome.html or session.cancelled:
            return

        next_depth = item.depth + 1
        if next_depth > session.options.max_depth:
            return

        base_url = outcome.final_url or item.url
        for link in extract_links_from_html(outcome.html, base_url=base_url):
            if should_skip_asset_url(link):
                continue
            result = session.admit(link)
            self.deps.stats.record_admit(result)
            if not result.accepted:
                continue
            frontier.push(
                CrawlItem(url=result.normalized_url or link, depth=next_depth, referrer=item.url)
            )


__all__ = ["CrawlFrontier", "CrawlerStrategy"]
