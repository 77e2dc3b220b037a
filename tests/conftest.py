"""Shared fakes for network-free tests."""

from __future__ import annotations

import threading
from collections import Counter

import pytest

from docharvest.config import HarvestConfig
from docharvest.errors import ConversionError, RenderError
from docharvest.processor import Dependencies
from docharvest.stats import StatsCollector
from docharvest.types import Document, FetchResult
from docharvest.writer import DocumentWriter

PROSE = (
    "This guide explains how to configure the client library, authenticate "
    "requests, and paginate through large result sets. Each section includes "
    "runnable examples and notes on edge cases that commonly trip people up. "
)


def content_page(title: str = "Guide", links: list[str] | None = None, paragraphs: int = 4) -> str:
    """Build an HTML page the classifier accepts as real content."""

    anchors = "".join(f'<a href="{href}">{href}</a> ' for href in links or [])
    body = "".join(f"<p>{PROSE}</p>" for _ in range(paragraphs))
    return (
        f"<html><head><title>{title}</title></head>"
        f"<body><nav>{anchors}</nav><main><h1>{title}</h1>{body}</main></body></html>"
    )


SPA_SHELL = (
    "<html><head><title>App</title></head><body><div id=\"root\"></div>"
    "<script src=\"/static/js/main.js\"></script></body></html>"
)


class FakeFetcher:
    """Serve canned responses and record every request, thread-safely."""

    def __init__(self, pages: dict[str, tuple[int, str, bytes | str]] | None = None) -> None:
        self.pages = dict(pages or {})
        self.calls: list[str] = []
        self._lock = threading.Lock()
        self.closed = False

    def add(self, url: str, body: bytes | str, *, status: int = 200, content_type: str = "text/html") -> None:
        self.pages[url] = (status, content_type, body)

    def get(self, url: str) -> FetchResult:
        with self._lock:
            self.calls.append(url)

        entry = self.pages.get(url) or self.pages.get(url.rstrip("/"))
        if entry is None:
            return FetchResult(
                requested_url=url,
                final_url=url,
                status_code=404,
                content_type="text/html",
                body=b"<html><body>404 Not Found</body></html>",
            )

        status, content_type, body = entry
        if isinstance(body, str):
            body = body.encode("utf-8")
        return FetchResult(
            requested_url=url,
            final_url=url,
            status_code=status,
            content_type=content_type,
            body=body,
        )

    def call_counts(self) -> Counter:
        with self._lock:
            return Counter(self.calls)

    def close(self) -> None:
        self.closed = True


class FakeRenderer:
    def __init__(self, pages: dict[str, str] | None = None, *, fail: bool = False) -> None:
        self.pages = dict(pages or {})
        self.fail = fail
        self.calls: list[tuple[str, object]] = []
        self.available = True
        self.closed = False

    def render(self, url: str, options=None) -> str:
        self.calls.append((url, options))
        if self.fail or url not in self.pages:
            raise RenderError(url, "render failed")
        return self.pages[url]

    def close(self) -> None:
        self.closed = True


class FakeConverter:
    """Return the page title and a fixed body without running extractors."""

    def __init__(self, *, fail_for: set[str] | None = None) -> None:
        self.fail_for = set(fail_for or ())
        self.calls: list[str] = []

    def convert(self, html, url: str) -> Document:
        self.calls.append(url)
        if url in self.fail_for:
            raise ConversionError(url, "boom")
        return Document(url=url, title="Converted", content=f"# Converted\n\n{PROSE}")


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def make_deps(tmp_path):
    """Factory for `Dependencies` wired to fakes and a real writer under tmp_path."""

    def factory(
        fetcher: FakeFetcher,
        *,
        renderer: FakeRenderer | None = None,
        converter=None,
        **config_overrides,
    ) -> Dependencies:
        config = HarvestConfig(output_dir=str(tmp_path / "out"), **config_overrides)
        return Dependencies(
            config=config,
            fetcher=fetcher,
            renderer=renderer,
            converter=converter or FakeConverter(),
            writer=DocumentWriter(config.output_dir, flat=config.flat_output),
            stats=StatsCollector(),
        )

    return factory
