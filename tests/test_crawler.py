"""Tests for the generic concurrent crawler."""

import threading
from pathlib import Path

from conftest import SPA_SHELL, FakeFetcher, FakeRenderer, content_page

from docharvest.config import CrawlOptions
from docharvest.strategies.crawler import CrawlerStrategy

ROOT = "https://example.com/"


def site() -> FakeFetcher:
    fetcher = FakeFetcher()
    fetcher.add(
        ROOT,
        content_page("Home", ["/a", "/b", "/a#top", "/blog/x", "https://other.com/", "/logo.png"]),
    )
    fetcher.add("https://example.com/a", content_page("A", ["/b", "/c", ROOT]))
    fetcher.add("https://example.com/b", content_page("B", ["/a", "/c"]))
    fetcher.add("https://example.com/c", content_page("C", ["/d"]))
    fetcher.add("https://example.com/d", content_page("D", ["/a"]))
    fetcher.add("https://example.com/blog/x", content_page("Blog", []))
    return fetcher


def run(make_deps, fetcher, renderer=None, cancel_event=None, **options):
    deps = make_deps(fetcher, renderer=renderer)
    strategy = CrawlerStrategy(deps)
    strategy.execute(ROOT, CrawlOptions(**options), cancel_event=cancel_event)
    return deps


class TestCrawl:
    def test_every_page_fetched_once(self, make_deps):
        fetcher = site()
        deps = run(make_deps, fetcher, concurrency=4, max_depth=5)

        counts = fetcher.call_counts()
        assert set(counts) == {
            ROOT,
            "https://example.com/a",
            "https://example.com/b",
            "https://example.com/c",
            "https://example.com/d",
            "https://example.com/blog/x",
        }
        assert all(count == 1 for count in counts.values())
        assert deps.stats.core().written_docs == 6

        out = Path(deps.config.output_dir)
        assert (out / "index.md").exists()
        assert (out / "blog" / "x.md").exists()

    def test_depth_bound(self, make_deps):
        fetcher = site()
        run(make_deps, fetcher, concurrency=2, max_depth=1)
        assert set(fetcher.call_counts()) == {
            ROOT,
            "https://example.com/a",
            "https://example.com/b",
            "https://example.com/blog/x",
        }

    def test_depth_zero_is_root_only(self, make_deps):
        fetcher = site()
        run(make_deps, fetcher, max_depth=0)
        assert fetcher.calls == [ROOT]

    def test_exclude_pattern(self, make_deps):
        fetcher = site()
        run(make_deps, fetcher, max_depth=5, exclude=["/blog"])
        assert "https://example.com/blog/x" not in fetcher.call_counts()

    def test_root_outside_filter_is_still_processed(self, make_deps):
        fetcher = site()
        fetcher.add("https://example.com/docs/a", content_page("Docs A", []))
        fetcher.add(ROOT, content_page("Home", ["/docs/a", "/a"]))
        run(make_deps, fetcher, max_depth=3, filter_url="/docs")
        assert set(fetcher.call_counts()) == {ROOT, "https://example.com/docs/a"}

    def test_limit_with_concurrency(self, make_deps):
        fetcher = site()
        deps = run(make_deps, fetcher, concurrency=4, max_depth=5, limit=2)
        assert deps.stats.core().written_docs <= 2
        written = list(Path(deps.config.output_dir).rglob("*.md"))
        assert len(written) <= 2
        # Workers already holding a page may finish it; nothing new is fetched.
        assert len(fetcher.calls) <= 2 + 4

    def test_queued_pages_not_fetched_after_limit(self, make_deps):
        fetcher = FakeFetcher()
        links = [f"/p{idx}" for idx in range(30)]
        fetcher.add(ROOT, content_page("Home", links))
        for link in links:
            fetcher.add(f"https://example.com{link}", content_page(link, []))

        deps = run(make_deps, fetcher, concurrency=1, max_depth=2, limit=2)

        assert deps.stats.core().written_docs == 2
        assert len(fetcher.calls) == 2

    def test_existing_file_skipped_unless_forced(self, make_deps):
        fetcher = site()
        deps = run(make_deps, fetcher, max_depth=0)
        index = Path(deps.config.output_dir) / "index.md"
        index.write_text("stale", encoding="utf-8")

        deps = run(make_deps, site(), max_depth=0)
        assert index.read_text(encoding="utf-8") == "stale"
        assert deps.stats.core().skipped_existing == 1

        run(make_deps, site(), max_depth=0, force=True)
        assert index.read_text(encoding="utf-8") != "stale"

    def test_existing_page_links_are_still_followed(self, make_deps):
        deps = run(make_deps, site(), max_depth=0)
        assert (Path(deps.config.output_dir) / "index.md").exists()

        fetcher = site()
        run(make_deps, fetcher, max_depth=1)
        assert "https://example.com/a" in fetcher.call_counts()

    def test_dry_run_writes_nothing(self, make_deps):
        deps = run(make_deps, site(), max_depth=2, dry_run=True)
        assert not Path(deps.config.output_dir).exists()


class TestPerPageFailures:
    def test_fetch_error_does_not_abort(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add(ROOT, content_page("Home", ["/missing", "/ok"]))
        fetcher.add("https://example.com/ok", content_page("OK", []))

        deps = run(make_deps, fetcher, max_depth=2)

        assert deps.stats.core().written_docs == 2
        assert deps.stats.core().fetched_error == 1
        errors = (Path(deps.config.output_dir) / "manifests" / "errors.jsonl").read_text()
        assert "https://example.com/missing" in errors

    def test_error_page_is_skipped(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add(ROOT, content_page("Home", ["/gone"]))
        fetcher.add(
            "https://example.com/gone",
            "<html><head><title>404 Not Found</title></head><body><h1>404 Not Found</h1>"
            "<p>The page you requested could not be located on this server at all.</p>"
            + " " * 400
            + "</body></html>",
        )

        deps = run(make_deps, fetcher, max_depth=2)
        assert deps.stats.core().skipped_empty == 1
        assert not (Path(deps.config.output_dir) / "gone.md").exists()


class TestRendering:
    def test_spa_shell_is_rendered(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add(ROOT, SPA_SHELL)
        renderer = FakeRenderer({ROOT: content_page("Rendered", [])})

        deps = run(make_deps, fetcher, renderer=renderer, max_depth=0)

        assert [url for url, _ in renderer.calls] == [ROOT]
        text = (Path(deps.config.output_dir) / "index.md").read_text(encoding="utf-8")
        assert "rendered_with_js: true" in text

    def test_render_failure_falls_back_to_fetched_html(self, make_deps):
        fetcher = FakeFetcher()
        fetcher.add(ROOT, content_page("Home", []))
        renderer = FakeRenderer(fail=True)

        deps = run(make_deps, fetcher, renderer=renderer, max_depth=0, force_render=True)

        assert deps.stats.core().rendered_error == 1
        assert deps.stats.core().written_docs == 1

    def test_no_render_for_real_content(self, make_deps):
        renderer = FakeRenderer()
        run(make_deps, site(), renderer=renderer, max_depth=1)
        assert renderer.calls == []


class TestCancellation:
    def test_cancelled_before_start(self, make_deps):
        fetcher = site()
        cancel = threading.Event()
        cancel.set()
        run(make_deps, fetcher, cancel_event=cancel, max_depth=3)
        assert fetcher.calls == []

    def test_cancel_mid_crawl_stops_admission(self, make_deps):
        cancel = threading.Event()

        class CancellingFetcher(FakeFetcher):
            def get(self, url):
                result = super().get(url)
                cancel.set()
                return result

        fetcher = CancellingFetcher(site().pages)
        run(make_deps, fetcher, cancel_event=cancel, concurrency=1, max_depth=5)
        assert fetcher.calls == [ROOT]
