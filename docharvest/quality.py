"""Content quality heuristics: client-rendered shells and error/placeholder pages.

Both checks are pure functions over raw HTML. The thresholds are empirical and
meant to be overridden, not treated as correctness guarantees.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

from bs4 import BeautifulSoup

from .types import ClassificationVerdict

MIN_RENDER_BYTES = 500
SPA_MIN_TEXT_CHARS = 100
SCRIPT_HEAVY_MAX_TEXT_CHARS = 500
SCRIPT_HEAVY_MIN_SCRIPTS = 4
MIN_CONTENT_BYTES = 300
ERROR_PAGE_MAX_TEXT_CHARS = 1000
MIN_BODY_TEXT_CHARS = 60

SPA_MOUNT_IDS = frozenset({"root", "app", "__next", "__nuxt", "___gatsby", "svelte"})
SPA_ROOT_TAGS = frozenset({"app-root"})
SPA_ROOT_ATTRIBUTES = ("data-reactroot", "ng-version", "ng-app", "v-cloak")
SPA_SCRIPT_MARKERS = (
    "__NEXT_DATA__",
    "window.__NUXT__",
    "window.__INITIAL_STATE__",
    "window.__PRELOADED_STATE__",
)

ERROR_SIGNATURE_RE = re.compile(
    r"\b30[12]\b.{0,40}?\b(moved permanently|found|redirect(ing|ed)?)\b"
    r"|\b403\b.{0,40}?\b(forbidden|access denied)\b"
    r"|\b(forbidden|access denied)\b.{0,40}?\b403\b"
    r"|\b404\b.{0,40}?\b(not found|page not found)\b"
    r"|\b(not found)\b.{0,40}?\b404\b"
    r"|\b500\b.{0,40}?\binternal server error\b"
    r"|\b502\b.{0,40}?\bbad gateway\b"
    r"|\b503\b.{0,40}?\bservice (temporarily )?unavailable\b"
    r"|\bpage not found\b"
    r"|\bpage could not be found\b"
    r"|\baccess denied\b",
    re.IGNORECASE | re.DOTALL,
)

_NON_CONTENT_TAGS = ("script", "style", "noscript", "template")


@dataclass(frozen=True, slots=True)
class QualityThresholds:
    """Tunable cutoffs for the two classifiers."""

    min_render_bytes: int = MIN_RENDER_BYTES
    spa_min_text_chars: int = SPA_MIN_TEXT_CHARS
    script_heavy_max_text_chars: int = SCRIPT_HEAVY_MAX_TEXT_CHARS
    script_heavy_min_scripts: int = SCRIPT_HEAVY_MIN_SCRIPTS
    min_content_bytes: int = MIN_CONTENT_BYTES
    error_page_max_text_chars: int = ERROR_PAGE_MAX_TEXT_CHARS
    min_body_text_chars: int = MIN_BODY_TEXT_CHARS


DEFAULT_THRESHOLDS = QualityThresholds()


@dataclass(slots=True)
class _PageView:
    size: int
    title: str
    body_text: str
    script_count: int
    has_mount_marker: bool


def _byte_length(html: str | bytes) -> int:
    if isinstance(html, bytes):
        return len(html)
    return len(html.encode("utf-8", errors="replace"))


def _has_mount_marker(soup: BeautifulSoup, raw: str) -> bool:
    if any(marker in raw for marker in SPA_SCRIPT_MARKERS):
        return True
    for element in soup.find_all(id=True):
        if str(element.get("id", "")).lower() in SPA_MOUNT_IDS:
            return True
    if soup.find(list(SPA_ROOT_TAGS)) is not None:
        return True
    return any(soup.find(attrs={attr: True}) is not None for attr in SPA_ROOT_ATTRIBUTES)


def _view(html: str | bytes) -> _PageView:
    raw = html.decode("utf-8", errors="replace") if isinstance(html, bytes) else html
    soup = BeautifulSoup(raw, "lxml")

    script_count = len(soup.find_all("script"))
    has_marker = _has_mount_marker(soup, raw)

    title_tag = soup.find("title")
    title = title_tag.get_text(" ", strip=True) if title_tag else ""

    for element in soup.find_all(_NON_CONTENT_TAGS):
        element.decompose()

    root = soup.body or soup
    body_text = " ".join(root.get_text(" ", strip=True).split())
    if soup.body is None and title:
        # Without a <body>, get_text() picks up the <title> as well.
        body_text = body_text.replace(title, "", 1).strip()

    return _PageView(
        size=_byte_length(html),
        title=title,
        body_text=body_text,
        script_count=script_count,
        has_mount_marker=has_marker,
    )


def _needs_render(view: _PageView, thresholds: QualityThresholds) -> bool:
    if view.size < thresholds.min_render_bytes:
        return True
    if not view.body_text:
        return True
    if view.has_mount_marker and len(view.body_text) < thresholds.spa_min_text_chars:
        return True
    return (
        len(view.body_text) < thresholds.script_heavy_max_text_chars
        and view.script_count >= thresholds.script_heavy_min_scripts
    )


def _is_empty_or_error(view: _PageView, thresholds: QualityThresholds) -> bool:
    if view.size < thresholds.min_content_bytes:
        return True
    if len(view.body_text) < thresholds.min_body_text_chars:
        return True
    if len(view.body_text) <= thresholds.error_page_max_text_chars:
        probe = f"{view.title} {view.body_text}"
        if ERROR_SIGNATURE_RE.search(probe):
            return True
    return False


def needs_render(html: str | bytes, thresholds: QualityThresholds | None = None) -> bool:
    """Return True when the page looks like a client-rendered shell.

    True for tiny documents, documents whose body has no text once scripts and
    styles are removed, documents carrying a single-page-app mount marker with
    little text, and script-heavy documents with little text.
    """

    return _needs_render(_view(html), thresholds or DEFAULT_THRESHOLDS)


def is_empty_or_error(html: str | bytes, thresholds: QualityThresholds | None = None) -> bool:
    """Return True when the page is too small, empty, or a short error page.

    Error signatures only count on short documents so that long prose which
    mentions e.g. "500" as a version number is never rejected.
    """

    return _is_empty_or_error(_view(html), thresholds or DEFAULT_THRESHOLDS)


def classify(html: str | bytes, thresholds: QualityThresholds | None = None) -> ClassificationVerdict:
    """Compute both verdicts from a single parse of the document."""

    resolved = thresholds or DEFAULT_THRESHOLDS
    view = _view(html)
    return ClassificationVerdict(
        needs_render=_needs_render(view, resolved),
        is_empty_or_error=_is_empty_or_error(view, resolved),
    )


__all__ = [
    "DEFAULT_THRESHOLDS",
    "ERROR_PAGE_MAX_TEXT_CHARS",
    "ERROR_SIGNATURE_RE",
    "MIN_BODY_TEXT_CHARS",
    "MIN_CONTENT_BYTES",
    "MIN_RENDER_BYTES",
    "QualityThresholds",
    "SCRIPT_HEAVY_MAX_TEXT_CHARS",
    "SCRIPT_HEAVY_MIN_SCRIPTS",
    "SPA_MIN_TEXT_CHARS",
    "SPA_MOUNT_IDS",
    "classify",
    "is_empty_or_error",
    "needs_render",
]
