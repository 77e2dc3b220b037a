"""Records passed between the fetcher, processor, writer and stats.

Nothing here imports from the rest of the package.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from hashlib import sha256
from typing import Any

MARKDOWN_SUFFIXES = (".md", ".markdown", ".mdx")
PLAIN_TEXT_SUFFIXES = (".txt",)

_MARKDOWN_TYPES = frozenset({"text/markdown", "text/x-markdown"})
_NON_DOCUMENT_TEXT = frozenset({"text/css", "text/javascript"})

JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


class ContentKind(str, Enum):
    HTML = "html"
    MARKDOWN = "markdown"
    TEXT = "text"
    BINARY = "binary"


class CrawlStage(str, Enum):
    """Where in the page pipeline an error happened."""

    FETCH = "fetch"
    RENDER = "render"
    CONVERT = "convert"
    WRITE = "write"


def utc_now_iso() -> str:
    """Current UTC time, second precision, for frontmatter and manifests."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def infer_content_kind(content_type: str | None, url: str) -> ContentKind:
    """Classify a response by its media type, then by the URL suffix."""

    mime = (content_type or "").partition(";")[0].strip().lower()
    path = url.partition("#")[0].partition("?")[0].lower()

    if mime in _MARKDOWN_TYPES or path.endswith(MARKDOWN_SUFFIXES):
        return ContentKind.MARKDOWN
    if "html" in mime:
        return ContentKind.HTML
    if path.endswith(PLAIN_TEXT_SUFFIXES):
        return ContentKind.TEXT
    if mime.startswith("text/") and mime not in _NON_DOCUMENT_TEXT:
        return ContentKind.TEXT
    # No Content-Type at all is almost always an HTML page.
    return ContentKind.BINARY if mime else ContentKind.HTML


@dataclass(slots=True)
class FetchResult:
    """Outcome of downloading one URL; `error` is set instead of raising."""

    requested_url: str
    final_url: str | None
    status_code: int | None
    content_type: str | None
    body: bytes | None
    fetched_at: str = field(default_factory=utc_now_iso)
    elapsed_ms: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        if self.error is not None or self.body is None:
            return False
        return self.status_code is not None and 200 <= self.status_code < 300

    @property
    def content_length(self) -> int | None:
        if self.body is None:
            return None
        return len(self.body)

    @property
    def content_kind(self) -> ContentKind:
        return infer_content_kind(self.content_type, self.final_url or self.requested_url)

    def text(self) -> str:
        return (self.body or b"").decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class CrawlItem:
    """A URL admitted to the crawl queue."""

    url: str
    depth: int
    referrer: str | None = None


@dataclass(frozen=True, slots=True)
class ClassificationVerdict:
    """Two independent judgements over one fetched HTML body."""

    needs_render: bool
    is_empty_or_error: bool


@dataclass(slots=True)
class Document:
    """One converted page, ready for the writer."""

    url: str
    title: str
    content: str
    source_strategy: str = ""
    fetched_at: str = field(default_factory=utc_now_iso)
    rendered_with_js: bool = False
    description: str = ""
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    @property
    def char_count(self) -> int:
        return len(self.content)

    def frontmatter(self) -> JSONDict:
        digest = sha256(self.content.encode("utf-8")).hexdigest()
        return {
            "title": self.title,
            "url": self.url,
            "source": self.source_strategy,
            "fetched_at": self.fetched_at,
            "rendered_with_js": self.rendered_with_js,
            "word_count": self.word_count,
            "content_hash": digest,
        }


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """One line of manifests/errors.jsonl."""

    stage: CrawlStage
    url: str
    message: str
    error_type: str | None = None
    strategy: str | None = None
    referrer: str | None = None
    status_code: int | None = None
    created_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_exception(
        cls,
        *,
        stage: CrawlStage,
        url: str,
        exc: Exception,
        **kwargs: Any,
    ) -> "ErrorRecord":
        return cls(stage=stage, url=url, message=str(exc), error_type=type(exc).__name__, **kwargs)

    def to_json(self) -> JSONDict:
        row = asdict(self)
        row["stage"] = self.stage.value
        return row


@dataclass(slots=True)
class CrawlStats:
    """Core run totals; `StatsCollector` owns the only live instance."""

    admitted: int = 0
    skipped_seen: int = 0
    skipped_filtered: int = 0
    skipped_limit: int = 0

    fetched_ok: int = 0
    fetched_error: int = 0
    rendered_ok: int = 0
    rendered_error: int = 0
    converted_ok: int = 0
    converted_error: int = 0
    written_docs: int = 0
    skipped_existing: int = 0
    skipped_empty: int = 0

    started_at: str = field(default_factory=utc_now_iso)
    finished_at: str | None = None

    def finish(self) -> None:
        self.finished_at = utc_now_iso()

    def to_json(self) -> JSONDict:
        return asdict(self)


__all__ = [
    "ClassificationVerdict",
    "ContentKind",
    "CrawlItem",
    "CrawlStage",
    "CrawlStats",
    "Document",
    "ErrorRecord",
    "FetchResult",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "MARKDOWN_SUFFIXES",
    "PLAIN_TEXT_SUFFIXES",
    "infer_content_kind",
    "utc_now_iso",
]
