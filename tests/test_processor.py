"""Tests for the per-page fetch/classify/render/convert/write pipeline."""

import json
import threading
from pathlib import Path

from conftest import FakeConverter, FakeFetcher, content_page

from docharvest.config import CrawlOptions
from docharvest.processor import PageProcessor, process_url_list
from docharvest.session import CrawlSession
from docharvest.stats import SkipReason

ROOT = "https://example.com/"


def make_processor(deps, **kwargs) -> PageProcessor:
    options = kwargs.pop("options", CrawlOptions())
    session = CrawlSession(ROOT, options)
    return PageProcessor(deps, session, strategy_name="test", **kwargs)


def read_errors(deps) -> list[dict]:
    path = Path(deps.config.output_dir) / "manifests" / "errors.jsonl"
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestProcess:
    def test_writes_html_page(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add("https://example.com/guide", content_page("Guide", []))
        deps = make_deps(fetcher)

        outcome = make_processor(deps).process("https://example.com/guide")

        assert outcome.written
        assert outcome.path == Path(deps.config.output_dir) / "guide.md"
        assert outcome.document.source_strategy == "test"
        assert deps.stats.core().converted_ok == 1

    def test_conversion_error_is_recorded(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add("https://example.com/bad", content_page("Bad", []))
        deps = make_deps(fetcher, converter=FakeConverter(fail_for={"https://example.com/bad"}))

        outcome = make_processor(deps).process("https://example.com/bad", referrer=ROOT)

        assert not outcome.written
        assert outcome.error is not None
        [record] = read_errors(deps)
        assert record["stage"] == "convert"
        assert record["strategy"] == "test"

    def test_markdown_title_hint(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add("https://example.com/notes.md", "Some notes.", content_type="text/markdown")
        deps = make_deps(fetcher)

        outcome = make_processor(deps).process("https://example.com/notes.md", title_hint="Notes")
        assert outcome.document.title == "Notes"

    def test_title_hint_does_not_replace_real_title(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add("https://example.com/a.md", "# Real\n\nBody.", content_type="text/markdown")
        deps = make_deps(fetcher)

        outcome = make_processor(deps).process("https://example.com/a.md", title_hint="Hint")
        assert outcome.document.title == "Real"

    def test_too_short(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add("https://example.com/s.md", "# S\n\nshort", content_type="text/markdown")
        deps = make_deps(fetcher)

        outcome = make_processor(deps, min_content_chars=50).process("https://example.com/s.md")
        assert outcome.skipped == SkipReason.TOO_SHORT
        assert not outcome.written

    def test_binary_content_is_skipped(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add("https://example.com/file", b"\x00\x01", content_type="application/octet-stream")
        deps = make_deps(fetcher)

        outcome = make_processor(deps).process("https://example.com/file")
        assert outcome.skipped == SkipReason.EMPTY_OR_ERROR

    def test_existing_file_skips_network(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add("https://example.com/guide", content_page("Guide", []))
        deps = make_deps(fetcher)
        processor = make_processor(deps)
        processor.process("https://example.com/guide")

        outcome = processor.process("https://example.com/guide")
        assert outcome.skipped == SkipReason.EXISTING
        assert fetcher.call_counts()["https://example.com/guide"] == 1

    def test_cancelled(self, make_deps):
        fetcher = FakeFetcher()
        deps = make_deps(fetcher)
        cancel = threading.Event()
        cancel.set()
        session = CrawlSession(ROOT, CrawlOptions(), cancel_event=cancel)
        processor = PageProcessor(deps, session, strategy_name="test")

        assert processor.process("https://example.com/guide").skipped == SkipReason.CANCELLED
        assert fetcher.calls == []


class TestProcessUrlList:
    def test_limit_caps_written_pages(self, make_deps):
        fetcher = FakeFetcher()
        urls = [f"https://example.com/p{idx}" for idx in range(10)]
        for url in urls:
            fetcher.add(url, content_page(url, []))
        deps = make_deps(fetcher)
        processor = make_processor(deps, options=CrawlOptions(limit=3))

        outcomes = process_url_list(processor, urls, concurrency=4)

        assert sum(outcome.written for outcome in outcomes) == 3
        assert len(list(Path(deps.config.output_dir).glob("*.md"))) == 3

    def test_empty_list(self, make_deps):
        processor = make_processor(make_deps(FakeFetcher()))
        assert process_url_list(processor, [], concurrency=2) == []
