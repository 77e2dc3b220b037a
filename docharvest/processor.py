"""Per-page processing shared by every strategy.

One page goes fetch -> classify -> (render) -> convert -> write. Per-page
failures are logged, recorded to `errors.jsonl`, and never propagated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import queue
import threading
from typing import Iterable

from tqdm import tqdm

from .config import HarvestConfig
from .converter import Converter, MarkdownReader, PlainTextReader
from .errors import ConversionError, FetchError, PerPageError, RenderError, WriteError
from .fetcher import Fetcher, RenderOptions, Renderer
from .quality import classify
from .session import CrawlSession
from .stats import SkipReason, StatsCollector
from .types import ContentKind, CrawlStage, Document, ErrorRecord, FetchResult
from .writer import DocumentWriter

LOGGER = logging.getLogger(__name__)

_STAGES = {
    FetchError: CrawlStage.FETCH,
    RenderError: CrawlStage.RENDER,
    ConversionError: CrawlStage.CONVERT,
    WriteError: CrawlStage.WRITE,
}


@dataclass(slots=True)
class Dependencies:
    """Capabilities injected into strategies for one run."""

    config: HarvestConfig
    fetcher: Fetcher
    renderer: Renderer | None
    converter: Converter
    writer: DocumentWriter
    stats: StatsCollector
    markdown_reader: MarkdownReader = field(default_factory=MarkdownReader)
    text_reader: PlainTextReader = field(default_factory=PlainTextReader)

    @classmethod
    def build(cls, config: HarvestConfig) -> "Dependencies":
        return cls(
            config=config,
            fetcher=Fetcher(config),
            renderer=Renderer(config),
            converter=Converter(),
            writer=DocumentWriter(config.output_dir, flat=config.flat_output),
            stats=StatsCollector(),
        )

    def close(self) -> None:
        self.fetcher.close()
        if self.renderer is not None:
            self.renderer.close()


@dataclass(slots=True)
class PageOutcome:
    """What happened to one page."""

    url: str
    html: str | None = None
    final_url: str | None = None
    path: Path | None = None
    document: Document | None = None
    skipped: str | None = None
    error: PerPageError | None = None

    @property
    def written(self) -> bool:
        return self.path is not None


class PageProcessor:
    """Run the per-page steps for one strategy against a shared session."""

    def __init__(
        self,
        deps: Dependencies,
        session: CrawlSession,
        *,
        strategy_name: str,
        render_options: RenderOptions | None = None,
        min_content_chars: int = 0,
    ) -> None:
        self.deps = deps
        self.session = session
        self.strategy_name = strategy_name
        self.render_options = render_options or RenderOptions.from_config(deps.config)
        self.min_content_chars = min_content_chars

    @property
    def options(self):
        return self.session.options

    def process(
        self,
        url: str,
        *,
        title_hint: str | None = None,
        need_html: bool = False,
        referrer: str | None = None,
    ) -> PageOutcome:
        """Process one admitted URL.

        With `need_html=False` an already-written page is skipped before any
        network call; with `need_html=True` the page is always fetched so the
        caller can follow its links.
        """

        outcome = PageOutcome(url=url)
        if self.session.cancelled:
            outcome.skipped = SkipReason.CANCELLED
            return outcome

        if not need_html and not self.options.force and self.deps.writer.exists(url):
            if not self.session.reserve_page():
                outcome.skipped = SkipReason.LIMIT
                self.deps.stats.record_skip(SkipReason.LIMIT)
                return outcome
            self.session.release_page(processed=True)
            return self._skip_existing(outcome)

        result = self.deps.fetcher.get(url)
        self.deps.stats.record_fetch(result)
        if not result.ok:
            self._record_error(outcome, _fetch_error(url, result), referrer)
            return outcome

        outcome.final_url = result.final_url or url
        kind = result.content_kind
        if kind == ContentKind.HTML:
            outcome.html = result.text()

        if not self.session.reserve_page():
            outcome.skipped = SkipReason.LIMIT
            self.deps.stats.record_skip(SkipReason.LIMIT)
            return outcome

        processed = False
        try:
            if not self.options.force and self.deps.writer.exists(url):
                processed = True
                return self._skip_existing(outcome)

            if kind == ContentKind.HTML:
                document = self._convert_html(outcome, result)
            elif kind in {ContentKind.MARKDOWN, ContentKind.TEXT}:
                document = self._read_source(outcome, result, kind)
            else:
                LOGGER.debug("Skipping non-document content %s (%s)", url, result.content_type)
                outcome.skipped = SkipReason.EMPTY_OR_ERROR
                self.deps.stats.record_skip(SkipReason.EMPTY_OR_ERROR)
                return outcome

            if document is None:
                return outcome

            if self.min_content_chars and document.char_count < self.min_content_chars:
                LOGGER.debug("Skipping %s: only %d chars", url, document.char_count)
                outcome.skipped = SkipReason.TOO_SHORT
                self.deps.stats.record_skip(SkipReason.TOO_SHORT)
                return outcome

            if title_hint and document.metadata.get("title_from_url"):
                document.title = title_hint
            document.source_strategy = self.strategy_name
            document.fetched_at = result.fetched_at
            outcome.document = document

            processed = self._write(outcome, document, referrer)
            return outcome
        finally:
            self.session.release_page(processed=processed)

    def _skip_existing(self, outcome: PageOutcome) -> PageOutcome:
        LOGGER.debug("Skipping %s: already on disk", outcome.url)
        outcome.skipped = SkipReason.EXISTING
        self.deps.stats.record_skip(SkipReason.EXISTING)
        return outcome

    def _convert_html(self, outcome: PageOutcome, result: FetchResult) -> Document | None:
        url = outcome.url
        html = outcome.html or ""
        verdict = classify(html)
        self.deps.stats.record_verdict(verdict)

        rendered = False
        if self.options.force_render or verdict.needs_render:
            rendered_html = self._render(outcome)
            if rendered_html is not None:
                html = rendered_html
                outcome.html = html
                rendered = True
                verdict = classify(html)

        if verdict.is_empty_or_error:
            LOGGER.debug("Skipping %s: empty or error page", url)
            outcome.skipped = SkipReason.EMPTY_OR_ERROR
            outcome.html = None
            self.deps.stats.record_skip(SkipReason.EMPTY_OR_ERROR)
            return None

        try:
            document = self.deps.converter.convert(html, url)
        except ConversionError as exc:
            self.deps.stats.record_convert(ok=False)
            self._record_error(outcome, exc)
            return None

        self.deps.stats.record_convert(ok=True)
        document.rendered_with_js = rendered
        return document

    def _render(self, outcome: PageOutcome) -> str | None:
        renderer = self.deps.renderer
        if renderer is None or not renderer.available or self.session.cancelled:
            return None
        try:
            html = renderer.render(outcome.url, self.render_options)
        except RenderError as exc:
            self.deps.stats.record_render(ok=False)
            self._record_error(outcome, exc, keep_error=False)
            return None
        self.deps.stats.record_render(ok=True)
        return html

    def _read_source(
        self, outcome: PageOutcome, result: FetchResult, kind: ContentKind
    ) -> Document | None:
        reader = self.deps.markdown_reader if kind == ContentKind.MARKDOWN else self.deps.text_reader
        try:
            document = reader.read(result.body or b"", outcome.url)
        except ConversionError as exc:
            self.deps.stats.record_convert(ok=False)
            self._record_error(outcome, exc)
            return None
        self.deps.stats.record_convert(ok=True)
        return document

    def _write(self, outcome: PageOutcome, document: Document, referrer: str | None) -> bool:
        if self.options.dry_run:
            LOGGER.info("[dry-run] would write %s", self.deps.writer.path_for(document.url))
            return True
        try:
            outcome.path = self.deps.writer.write(document)
        except WriteError as exc:
            self._record_error(outcome, exc, referrer)
            return False
        self.deps.stats.record_written(self.strategy_name)
        LOGGER.debug("Wrote %s -> %s", document.url, outcome.path)
        return True

    def _record_error(
        self,
        outcome: PageOutcome,
        exc: PerPageError,
        referrer: str | None = None,
        *,
        keep_error: bool = True,
    ) -> None:
        LOGGER.warning("%s", exc)
        if keep_error:
            outcome.error = exc
        if self.options.dry_run:
            return
        self.deps.writer.save_error(
            ErrorRecord.from_exception(
                stage=_STAGES.get(type(exc), CrawlStage.FETCH),
                url=outcome.url,
                exc=exc,
                strategy=self.strategy_name,
                referrer=referrer,
                status_code=getattr(exc, "status_code", None),
            )
        )


def _fetch_error(url: str, result: FetchResult) -> FetchError:
    if result.error:
        return FetchError(url, result.error, status_code=result.status_code)
    if result.status_code is not None and not 200 <= result.status_code < 300:
        return FetchError(url, f"HTTP {result.status_code}", status_code=result.status_code)
    return FetchError(url, "empty response body", status_code=result.status_code)


def process_url_list(
    processor: PageProcessor,
    urls: Iterable[str],
    *,
    concurrency: int,
    titles: dict[str, str] | None = None,
    desc: str = "Processing pages",
) -> list[PageOutcome]:
    """Process a fixed URL list with a bounded pool of worker threads."""

    work: queue.Queue[str] = queue.Queue()
    for url in urls:
        work.put(url)
    total = work.qsize()
    if total == 0:
        return []

    titles = titles or {}
    outcomes: list[PageOutcome] = []
    outcomes_lock = threading.Lock()
    progress = tqdm(
        total=total,
        desc=desc,
        unit="page",
        disable=not processor.deps.config.show_progress,
    )

    def worker() -> None:
        while True:
            try:
                url = work.get_nowait()
            except queue.Empty:
                return
            try:
                if processor.session.cancelled or processor.session.limit_reached:
                    continue
                outcome = processor.process(url, title_hint=titles.get(url))
                with outcomes_lock:
                    outcomes.append(outcome)
            except Exception as exc:
                LOGGER.exception("Unexpected failure while processing %s: %s", url, exc)
            finally:
                progress.update(1)
                work.task_done()

    workers = [
        threading.Thread(target=worker, name=f"page-worker-{idx}", daemon=True)
        for idx in range(max(1, min(concurrency, total)))
    ]
    try:
        for thread in workers:
            thread.start()
        for thread in workers:
            thread.join()
    finally:
        progress.close()

    return outcomes


__all__ = [
    "Dependencies",
    "PageOutcome",
    "PageProcessor",
    "process_url_list",
]
