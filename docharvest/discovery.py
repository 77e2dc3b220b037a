"""Structured-inventory discovery: cheap probes tried before link-following.

Each probe is a fixed (path, parser, name) triple. Probes run strictly in the
order of `DISCOVERY_PROBES`; the first one that fetches with HTTP 200, parses
without error, and yields at least one URL wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import gzip
import json
import logging
import re
import threading
import zlib
from typing import Any, Callable, Iterable
from urllib.parse import urljoin, urlsplit

from lxml import etree

from .errors import DiscoveryExhausted, ProbeParseError
from .types import FetchResult
from .url import filter_and_dedupe_urls

LOGGER = logging.getLogger(__name__)

MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
GENERIC_URL_FIELDS = ("url", "permalink", "href", "location", "path")

_XML_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)
_GZIP_MAGIC = b"\x1f\x8b"


def base_directory(base_url: str) -> str:
    """Return base URL with exactly one trailing slash, for relative joins."""

    return base_url.rstrip("/") + "/"


def resolve_against_base(href: str, base_url: str) -> str:
    """Resolve an inventory entry against the site base (keeps project sub-paths)."""

    href = href.strip()
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(base_directory(base_url), href)


def _looks_like_html(text: str) -> bool:
    head = text.lstrip()[:256].lower()
    return head.startswith("<!doctype html") or head.startswith("<html")


def _decode(content: bytes | str) -> str:
    if isinstance(content, str):
        return content
    return content.decode("utf-8", errors="replace")


def _load_json(content: bytes | str) -> Any:
    try:
        return json.loads(_decode(content))
    except json.JSONDecodeError as exc:
        raise ProbeParseError(f"invalid JSON: {exc}") from exc


# -- llms.txt ---------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LLMSLink:
    """One `[title](url)` entry of an llms.txt file."""

    title: str
    url: str


def parse_llms_links(content: bytes | str) -> list[LLMSLink]:
    """Extract markdown links, skipping empty and fragment-only targets."""

    links: list[LLMSLink] = []
    for match in MARKDOWN_LINK_RE.finditer(_decode(content)):
        title = match.group(1).strip()
        url = match.group(2).strip()
        if not url or url.startswith("#"):
            continue
        links.append(LLMSLink(title=title, url=url))
    return links


def parse_llms_txt(content: bytes, base_url: str) -> list[str]:
    text = _decode(content)
    if _looks_like_html(text):
        raise ProbeParseError("llms.txt probe returned an HTML page")
    links = parse_llms_links(text)
    if not links:
        raise ProbeParseError("no links found in llms.txt")
    return [resolve_against_base(link.url, base_url) for link in links]


# -- sitemaps ---------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SitemapEntry:
    loc: str
    lastmod: datetime | None = None


@dataclass(slots=True)
class SitemapDocument:
    """Parsed `urlset` or `sitemapindex` document."""

    entries: list[SitemapEntry] = field(default_factory=list)
    sitemaps: list[str] = field(default_factory=list)

    @property
    def is_index(self) -> bool:
        return bool(self.sitemaps) and not self.entries


def parse_lastmod(value: str | None) -> datetime | None:
    if not value:
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_sitemap_document(content: bytes) -> SitemapDocument:
    """Parse sitemap XML (optionally gzip-compressed)."""

    if content[:2] == _GZIP_MAGIC:
        try:
            content = gzip.decompress(content)
        except (OSError, EOFError, zlib.error) as exc:
            raise ProbeParseError(f"invalid gzip sitemap: {exc}") from exc

    try:
        root = etree.fromstring(content.strip(), parser=_XML_PARSER)
    except etree.XMLSyntaxError as exc:
        raise ProbeParseError(f"invalid sitemap XML: {exc}") from exc

    tag = etree.QName(root).localname
    document = SitemapDocument()

    if tag == "urlset":
        for node in root.iterfind("{*}url"):
            loc = (node.findtext("{*}loc") or "").strip()
            if loc:
                document.entries.append(
                    SitemapEntry(loc=loc, lastmod=parse_lastmod(node.findtext("{*}lastmod")))
                )
    elif tag == "sitemapindex":
        for node in root.iterfind("{*}sitemap"):
            loc = (node.findtext("{*}loc") or "").strip()
            if loc:
                document.sitemaps.append(loc)
    else:
        raise ProbeParseError(f"unexpected sitemap root element <{tag}>")

    return document


def parse_sitemap_xml(content: bytes, base_url: str) -> list[str]:
    document = parse_sitemap_document(content)
    if document.entries:
        return [resolve_against_base(entry.loc, base_url) for entry in document.entries]
    if document.sitemaps:
        return [resolve_against_base(loc, base_url) for loc in document.sitemaps]
    raise ProbeParseError("empty sitemap")


def parse_sitemap_index_xml(content: bytes, base_url: str) -> list[str]:
    document = parse_sitemap_document(content)
    if not document.sitemaps:
        raise ProbeParseError("empty sitemap index")
    return [resolve_against_base(loc, base_url) for loc in document.sitemaps]


def is_sitemap_url(url: str) -> bool:
    path = urlsplit(url).path.lower()
    return path.endswith((".xml", ".xml.gz")) and "sitemap" in path


# -- search indexes ---------------------------------------------------------


def parse_mkdocs_index(content: bytes, base_url: str) -> list[str]:
    payload = _load_json(content)
    docs = payload.get("docs") if isinstance(payload, dict) else None
    if not isinstance(docs, list) or not docs:
        raise ProbeParseError("empty MkDocs index")

    urls: list[str] = []
    seen: set[str] = set()
    for doc in docs:
        if not isinstance(doc, dict):
            continue
        location = str(doc.get("location") or "").split("#", maxsplit=1)[0]
        if location == ".":
            location = ""
        full_url = base_directory(base_url) + location.lstrip("/")
        if full_url not in seen:
            seen.add(full_url)
            urls.append(full_url)
    if not urls:
        raise ProbeParseError("MkDocs index has no locations")
    return urls


def _entries(payload: Any, what: str) -> list[dict[str, Any]]:
    if not isinstance(payload, list) or not payload:
        raise ProbeParseError(f"empty {what}")
    return [entry for entry in payload if isinstance(entry, dict)]


def _first_string(entry: dict[str, Any], fields: Iterable[str]) -> str | None:
    for name in fields:
        value = entry.get(name)
        if isinstance(value, str) and value.strip():
            return value
    return None


def parse_docusaurus_index(content: bytes, base_url: str) -> list[str]:
    entries = _entries(_load_json(content), "Docusaurus index")
    return [
        resolve_against_base(url, base_url)
        for url in (_first_string(entry, ("url",)) for entry in entries)
        if url
    ]


def parse_hugo_index(content: bytes, base_url: str) -> list[str]:
    entries = _entries(_load_json(content), "Hugo index")
    return [
        resolve_against_base(url, base_url)
        for url in (_first_string(entry, ("permalink", "url")) for entry in entries)
        if url
    ]


def parse_generic_search_index(content: bytes, base_url: str) -> list[str]:
    entries = _entries(_load_json(content), "search index")
    urls = [
        resolve_against_base(url, base_url)
        for url in (_first_string(entry, GENERIC_URL_FIELDS) for entry in entries)
        if url
    ]
    if not urls:
        raise ProbeParseError("no URLs found in search index")
    return urls


def parse_vitepress_hashmap(content: bytes, base_url: str) -> list[str]:
    payload = _load_json(content)
    if not isinstance(payload, dict) or not payload:
        raise ProbeParseError("empty VitePress hashmap")

    # Keys look like "guide_getting-started.md" for /guide/getting-started.
    urls: list[str] = []
    for key in sorted(payload):
        path = str(key).replace("_", "/").removesuffix(".md")
        if path == "index":
            path = ""
        elif path.endswith("/index"):
            path = path[: -len("index")]
        urls.append(base_directory(base_url) + path.lstrip("/"))
    return urls


# -- probe table ------------------------------------------------------------

ProbeParser = Callable[[bytes, str], list[str]]


@dataclass(frozen=True, slots=True)
class DiscoveryProbe:
    """One structured-inventory location and how to read it."""

    path: str
    parser: ProbeParser
    name: str
    expand_nested_sitemaps: bool = False

    def url_for(self, base_url: str) -> str:
        return base_url.rstrip("/") + self.path


DISCOVERY_PROBES: tuple[DiscoveryProbe, ...] = (
    DiscoveryProbe("/llms.txt", parse_llms_txt, "llms.txt"),
    DiscoveryProbe("/sitemap.xml", parse_sitemap_xml, "sitemap.xml", expand_nested_sitemaps=True),
    DiscoveryProbe("/sitemap-0.xml", parse_sitemap_xml, "sitemap-0.xml", expand_nested_sitemaps=True),
    DiscoveryProbe(
        "/sitemap_index.xml",
        parse_sitemap_index_xml,
        "sitemap_index.xml",
        expand_nested_sitemaps=True,
    ),
    DiscoveryProbe("/search/search_index.json", parse_mkdocs_index, "mkdocs-search"),
    DiscoveryProbe("/search-index.json", parse_docusaurus_index, "docusaurus-search"),
    DiscoveryProbe("/index.json", parse_hugo_index, "hugo-index"),
    DiscoveryProbe("/search.json", parse_generic_search_index, "search.json"),
    DiscoveryProbe("/hashmap.json", parse_vitepress_hashmap, "vitepress"),
)


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    """URLs found by the winning probe."""

    urls: list[str]
    probe_name: str
    probe_url: str


class DiscoveryEngine:
    """Run the probe table against a base URL.

    `fetcher` only needs a `get(url) -> FetchResult` method.
    """

    def __init__(
        self,
        fetcher,
        *,
        probes: tuple[DiscoveryProbe, ...] = DISCOVERY_PROBES,
        nested_sitemap_limit: int = 50,
    ) -> None:
        self.fetcher = fetcher
        self.probes = probes
        self.nested_sitemap_limit = nested_sitemap_limit

    def discover(
        self,
        base_url: str,
        *,
        cancel_event: threading.Event | None = None,
    ) -> DiscoveryResult:
        """Return the first non-empty inventory, or raise DiscoveryExhausted."""

        attempted: list[str] = []

        for probe in self.probes:
            if cancel_event is not None and cancel_event.is_set():
                LOGGER.info("Discovery cancelled after %d probe(s)", len(attempted))
                break

            attempted.append(probe.name)
            probe_url = probe.url_for(base_url)

            urls = self._run_probe(probe, probe_url, base_url, cancel_event)
            if not urls:
                continue

            filtered = filter_and_dedupe_urls(urls, base_url)
            if not filtered:
                LOGGER.debug("Probe %s yielded only off-site URLs", probe.name)
                continue

            LOGGER.info(
                "Discovered %d URL(s) via %s (%s)", len(filtered), probe.name, probe_url
            )
            return DiscoveryResult(urls=filtered, probe_name=probe.name, probe_url=probe_url)

        raise DiscoveryExhausted(base_url, attempted)

    def _fetch_ok(self, url: str) -> FetchResult | None:
        result = self.fetcher.get(url)
        if result.error is not None or result.status_code != 200 or not result.body:
            LOGGER.debug(
                "Probe fetch miss %s: status=%s error=%s", url, result.status_code, result.error
            )
            return None
        return result

    def _run_probe(
        self,
        probe: DiscoveryProbe,
        probe_url: str,
        base_url: str,
        cancel_event: threading.Event | None,
    ) -> list[str]:
        result = self._fetch_ok(probe_url)
        if result is None:
            return []

        try:
            urls = probe.parser(result.body or b"", base_url)
        except ProbeParseError as exc:
            LOGGER.debug("Probe %s parse failed: %s", probe.name, exc)
            return []

        if probe.expand_nested_sitemaps:
            urls = self._expand_nested_sitemaps(urls, base_url, cancel_event)
        return urls

    def _expand_nested_sitemaps(
        self,
        urls: list[str],
        base_url: str,
        cancel_event: threading.Event | None,
        *,
        depth: int = 0,
    ) -> list[str]:
        pages = [url for url in urls if not is_sitemap_url(url)]
        nested = [url for url in urls if is_sitemap_url(url)]

        for sitemap_url in nested[: self.nested_sitemap_limit]:
            if cancel_event is not None and cancel_event.is_set():
                break
            result = self._fetch_ok(sitemap_url)
            if result is None:
                continue
            try:
                document = parse_sitemap_document(result.body or b"")
            except ProbeParseError as exc:
                LOGGER.debug("Nested sitemap %s parse failed: %s", sitemap_url, exc)
                continue

            pages.extend(resolve_against_base(entry.loc, base_url) for entry in document.entries)
            if document.sitemaps and depth < 1:
                pages.extend(
                    self._expand_nested_sitemaps(
                        [resolve_against_base(loc, base_url) for loc in document.sitemaps],
                        base_url,
                        cancel_event,
                        depth=depth + 1,
                    )
                )

        return pages


__all__ = [
    "DISCOVERY_PROBES",
    "DiscoveryEngine",
    "DiscoveryProbe",
    "DiscoveryResult",
    "LLMSLink",
    "MARKDOWN_LINK_RE",
    "SitemapDocument",
    "SitemapEntry",
    "base_directory",
    "is_sitemap_url",
    "parse_docusaurus_index",
    "parse_generic_search_index",
    "parse_hugo_index",
    "parse_lastmod",
    "parse_llms_links",
    "parse_llms_txt",
    "parse_mkdocs_index",
    "parse_sitemap_document",
    "parse_sitemap_index_xml",
    "parse_sitemap_xml",
    "parse_vitepress_hashmap",
    "resolve_against_base",
]
