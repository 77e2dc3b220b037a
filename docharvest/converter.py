"""HTML/markdown/plain-text to `Document` conversion.

HTML goes through Readability first (main-content isolation), then
markdownify. Trafilatura's markdown output is the fallback for pages where
Readability keeps too little, and a sanitized main-content pass is the last
resort.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import posixpath
import re
from urllib.parse import urlsplit

from bs4 import BeautifulSoup
from markdownify import markdownify
from readability import Document as ReadabilityDocument
import trafilatura
import yaml  # type: ignore

from .errors import ConversionError
from .types import Document

LOGGER = logging.getLogger(__name__)

NON_CONTENT_TAGS = (
    "script",
    "style",
    "noscript",
    "iframe",
    "nav",
    "footer",
    "header",
    "aside",
    "form",
    "button",
    "input",
    "select",
    "textarea",
    "svg",
)
NON_CONTENT_SELECTORS = (
    '[role="navigation"]',
    '[role="banner"]',
    '[role="contentinfo"]',
    '[role="search"]',
    ".sidebar",
    ".navbar",
    ".cookie-banner",
    ".cookie-notice",
    ".edit-this-page",
    ".pagination-nav",
)
MAIN_CONTENT_CANDIDATES = ("main", "article", '[role="main"]', ".markdown", ".content", ".md-content")

_FRONTMATTER_RE = re.compile(r"\A---\s*\n(.*?)\n---\s*\n?", re.DOTALL)
_HEADING_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$", re.MULTILINE)
_BLANK_RUN_RE = re.compile(r"\n{3,}")


@dataclass(slots=True)
class ConverterConfig:
    """Config for HTML conversion."""

    use_readability: bool = True
    use_trafilatura: bool = True
    min_readability_chars: int = 200
    heading_style: str = "ATX"


def _coerce_text(content: str | bytes) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def _title_from_url(url: str) -> str:
    path = urlsplit(url).path.rstrip("/")
    name = posixpath.basename(path) or urlsplit(url).hostname or url
    name = re.sub(r"\.(md|markdown|mdx|txt|html?)$", "", name, flags=re.IGNORECASE)
    return name.replace("-", " ").replace("_", " ").strip() or url


def _clean_markdown(markdown: str) -> str:
    lines = [line.rstrip() for line in markdown.replace("\r\n", "\n").split("\n")]
    return _BLANK_RUN_RE.sub("\n\n", "\n".join(lines)).strip()


def _code_language(element) -> str:
    # markdownify hands us the <pre>; highlighters put the class on either it or <code>.
    candidates = [element]
    code = element.find("code")
    if code is not None:
        candidates.append(code)
    for candidate in candidates:
        for cls in candidate.get("class", []) or []:
            if cls.startswith("language-"):
                return cls[len("language-"):]
            if cls.startswith("lang-"):
                return cls[len("lang-"):]
    return ""


def sanitize_html(html: str) -> BeautifulSoup:
    """Parse HTML and drop navigation, chrome, and script elements."""

    soup = BeautifulSoup(html, "lxml")
    for element in soup.find_all(NON_CONTENT_TAGS):
        element.decompose()
    for selector in NON_CONTENT_SELECTORS:
        for element in soup.select(selector):
            element.decompose()
    return soup


def extract_title(soup: BeautifulSoup) -> str | None:
    """Title priority: og:title, <title>, then first h1/h2."""

    og_title = soup.find("meta", attrs={"property": "og:title"})
    if og_title and og_title.get("content", "").strip():
        return og_title["content"].strip()
    for element in (soup.title, soup.find(["h1", "h2"])):
        text = element.get_text(" ", strip=True) if element is not None else ""
        if text:
            return text
    return None


def extract_description(soup: BeautifulSoup) -> str:
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content", "").strip():
            return meta["content"].strip()
    return ""


class Converter:
    """Convert fetched HTML into a markdown `Document`."""

    def __init__(self, config: ConverterConfig | None = None) -> None:
        self.config = config or ConverterConfig()

    def convert(self, html: str | bytes, url: str) -> Document:
        html_text = _coerce_text(html)
        if not html_text.strip():
            raise ConversionError(url, "empty HTML body")

        soup = BeautifulSoup(html_text, "lxml")
        title = extract_title(soup)
        description = extract_description(soup)

        readability_md, readability_title, readability_error = self._with_readability(html_text)
        if not title and readability_title:
            title = readability_title

        markdown = readability_md
        extractor = "readability"
        if len(markdown) < self.config.min_readability_chars:
            trafilatura_md, trafilatura_error = self._with_trafilatura(html_text)
            if len(trafilatura_md) > len(markdown):
                markdown = trafilatura_md
                extractor = "trafilatura"
            if trafilatura_error:
                LOGGER.debug("Trafilatura failed for %s: %s", url, trafilatura_error)

        if not markdown:
            markdown = self._with_main_content(html_text)
            extractor = "main-content"

        if not markdown:
            details = readability_error or "no extractable content"
            raise ConversionError(url, details)

        return Document(
            url=url,
            title=title or _title_from_url(url),
            content=markdown,
            description=description,
            metadata={"extractor": extractor, "title_from_url": not title},
        )

    def to_markdown(self, html: str) -> str:
        """Convert an HTML fragment to cleaned-up markdown."""

        soup = sanitize_html(html)
        root = soup.body or soup
        markdown = markdownify(
            str(root),
            heading_style=self.config.heading_style,
            bullets="-",
            code_language_callback=_code_language,
            escape_asterisks=False,
            escape_underscores=False,
        )
        return _clean_markdown(markdown)

    def _with_readability(self, html_text: str) -> tuple[str, str | None, str | None]:
        if not self.config.use_readability:
            return "", None, "readability is turned off"

        try:
            article = ReadabilityDocument(html_text)
            title = (article.short_title() or "").strip() or None
            body = _coerce_text(article.summary(html_partial=True))
        except Exception as exc:
            return "", None, f"readability: {type(exc).__name__}: {exc}"

        return (self.to_markdown(body) if body else ""), title, None

    def _with_trafilatura(self, html_text: str) -> tuple[str, str | None]:
        if not self.config.use_trafilatura:
            return "", "trafilatura is turned off"

        try:
            text = trafilatura.extract(
                html_text,
                output_format="markdown",
                include_comments=False,
                include_tables=True,
                include_images=False,
                include_links=True,
                deduplicate=True,
            )
        except Exception as exc:
            return "", f"trafilatura: {type(exc).__name__}: {exc}"
        return _clean_markdown(text or ""), None

    def _with_main_content(self, html_text: str) -> str:
        soup = sanitize_html(html_text)
        for selector in MAIN_CONTENT_CANDIDATES:
            candidate = soup.select_one(selector)
            if candidate is not None and len(candidate.get_text(strip=True)) > 50:
                return self.to_markdown(str(candidate))
        root = soup.body or soup
        if not root.get_text(strip=True):
            return ""
        return self.to_markdown(str(root))


class MarkdownReader:
    """Read markdown sources as-is, lifting the title from frontmatter or `# `."""

    def read(self, content: str | bytes, url: str) -> Document:
        text = _coerce_text(content).lstrip("\ufeff")
        title: str | None = None

        match = _FRONTMATTER_RE.match(text)
        if match:
            try:
                meta = yaml.safe_load(match.group(1))
            except yaml.YAMLError:
                meta = None
            if isinstance(meta, dict) and meta.get("title"):
                title = str(meta["title"]).strip()
            text = text[match.end():]

        body = _clean_markdown(text)
        if not body:
            raise ConversionError(url, "empty markdown document")

        if not title:
            heading = _HEADING_RE.search(body)
            if heading:
                title = heading.group(1).strip()

        return Document(
            url=url,
            title=title or _title_from_url(url),
            content=body,
            metadata={"extractor": "markdown", "title_from_url": not title},
        )


class PlainTextReader:
    """Wrap plain-text sources; the first non-empty line becomes the title."""

    max_title_chars = 120

    def read(self, content: str | bytes, url: str) -> Document:
        body = _coerce_text(content).replace("\r\n", "\n").strip()
        if not body:
            raise ConversionError(url, "empty text document")

        first_line = next((line.strip() for line in body.split("\n") if line.strip()), "")
        title = first_line.lstrip("#").strip()[: self.max_title_chars]

        return Document(
            url=url,
            title=title or _title_from_url(url),
            content=body,
            metadata={"extractor": "plain-text", "title_from_url": not title},
        )


__all__ = [
    "Converter",
    "ConverterConfig",
    "MarkdownReader",
    "PlainTextReader",
    "extract_description",
    "extract_title",
    "sanitize_html",
]
