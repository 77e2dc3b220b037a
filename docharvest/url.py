"""URL normalization, origin/prefix filtering, and link extraction helpers."""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Iterable, Sequence
from urllib.parse import SplitResult, quote, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

LOGGER = logging.getLogger(__name__)

HTTP_SCHEMES = frozenset({"http", "https"})
DEFAULT_PORTS = {"http": 80, "https": 443}
SKIP_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:", "data:")

_REPEATED_SLASHES = re.compile(r"/{2,}")

ASSET_PATH_MARKERS = (
    "/assets/",
    "/static/",
    "/_next/",
    "/_nuxt/",
    "/img/",
    "/images/",
    "/media/",
    "/css/",
    "/js/",
    "/fonts/",
)
ASSET_EXTENSIONS = (
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".css",
    ".js",
    ".mjs",
    ".map",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".pdf",
    ".zip",
    ".tar",
    ".gz",
    ".tgz",
)
FEED_FILENAMES = ("feed.xml", "rss.xml", "atom.xml", "index.xml")


def is_http_url(url: str) -> bool:
    """True for absolute http(s) URLs."""

    parts = urlsplit(url or "")
    return bool(parts.netloc) and parts.scheme.lower() in HTTP_SCHEMES


def _explicit_port(parts: SplitResult) -> int | None:
    """The URL's port, or None when absent, malformed, or the scheme default."""

    try:
        port = parts.port
    except ValueError:
        return None
    if port == DEFAULT_PORTS.get(parts.scheme.lower()):
        return None
    return port


def _canonical_netloc(parts: SplitResult) -> str:
    host = (parts.hostname or "").lower()
    if not host:
        return parts.netloc.lower()

    credentials = ""
    if parts.username:
        credentials = quote(parts.username, safe="")
        if parts.password:
            credentials = f"{credentials}:{quote(parts.password, safe='')}"
        credentials += "@"

    port = _explicit_port(parts)
    suffix = f":{port}" if port is not None else ""
    return credentials + host + suffix


def _canonical_path(path: str, *, keep_trailing_slash: bool) -> str:
    squashed = _REPEATED_SLASHES.sub("/", path or "/")
    resolved = posixpath.normpath(squashed)
    if resolved == ".":
        resolved = "/"
    if not resolved.startswith("/"):
        resolved = "/" + resolved
    if keep_trailing_slash and squashed.endswith("/") and resolved != "/":
        resolved += "/"
    return resolved


def normalize_url(url: str | None, *, remove_trailing_slash: bool = True) -> str | None:
    """Canonicalize an absolute URL for dedup and seen-set consistency.

    Lower-cases scheme and host, drops the default port, strips the fragment,
    and trims the trailing slash (the root path stays `/`). The query string is
    kept verbatim since documentation sites route on it.

    Anything that is not an absolute http(s) URL yields `None`.
    """

    raw = (url or "").strip()
    if not is_http_url(raw):
        return None

    parts = urlsplit(raw)
    netloc = _canonical_netloc(parts)
    if not netloc:
        return None

    path = _canonical_path(parts.path, keep_trailing_slash=not remove_trailing_slash)
    return urlunsplit((parts.scheme.lower(), netloc, path, parts.query, ""))


def resolve_url(base_url: str, href: str | None) -> str | None:
    """Join a link onto the page it came from and normalize it.

    In-page anchors and non-navigational schemes resolve to `None`.
    """

    link = (href or "").strip()
    if not link or link.lower().startswith(SKIP_HREF_PREFIXES):
        return None
    return normalize_url(urljoin(base_url, link))


def origin_host(url: str) -> str:
    """Return the exact lower-cased host (plus non-default port) of a URL.

    No `www.` folding and no registrable-domain logic: `docs.example.com` and
    `example.com` are different origins.
    """

    parts = urlsplit(url or "")
    if not parts.netloc:
        return ""
    host = (parts.hostname or "").lower().rstrip(".")
    port = _explicit_port(parts)
    return host if port is None else f"{host}:{port}"


def same_origin(url: str, base_url: str) -> bool:
    """Return True when both URLs share exactly the same host."""

    host = origin_host(url)
    return bool(host) and host == origin_host(base_url)


def _path_has_prefix(path: str, prefix_path: str) -> bool:
    path = path.rstrip("/")
    prefix_path = prefix_path.rstrip("/")
    if not prefix_path:
        return True
    return path == prefix_path or path.startswith(prefix_path + "/")


def has_url_prefix(url: str, url_filter: str | None) -> bool:
    """Check a URL against a prefix filter.

    A full-URL filter (`https://example.com/docs`) requires the same host and
    a path-segment prefix. A path-only filter (`/docs`) is matched against the
    URL's path. An empty filter matches everything.
    """

    if not url_filter:
        return True

    parsed = urlsplit(url)
    if is_http_url(url_filter):
        if not same_origin(url, url_filter):
            return False
        return _path_has_prefix(parsed.path, urlsplit(url_filter).path)

    if url_filter.startswith("/"):
        return _path_has_prefix(parsed.path, url_filter)

    return url_filter in url


def compile_exclude_patterns(patterns: Iterable[str] | None) -> list[re.Pattern[str]]:
    """Compile exclusion regexes, dropping invalid ones with a warning."""

    compiled: list[re.Pattern[str]] = []
    for pattern in patterns or ():
        if not pattern:
            continue
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            LOGGER.warning("Ignoring invalid exclude pattern %r: %s", pattern, exc)
    return compiled


def is_excluded(url: str, patterns: Sequence[re.Pattern[str]]) -> bool:
    """Return True when any exclusion pattern matches anywhere in the URL."""

    return any(pattern.search(url) for pattern in patterns)


def should_skip_asset_url(url: str) -> bool:
    """Return True for URLs that point at static assets or feeds, not pages."""

    path = urlsplit(url.lower()).path
    if any(marker in path for marker in ASSET_PATH_MARKERS):
        return True
    if path.endswith(ASSET_EXTENSIONS):
        return True
    return posixpath.basename(path) in FEED_FILENAMES


def filter_and_dedupe_urls(urls: Iterable[str], base_url: str) -> list[str]:
    """Normalize, keep same-host URLs only, and dedupe while preserving order."""

    output: list[str] = []
    seen: set[str] = set()

    for url in urls:
        normalized = normalize_url(url)
        if normalized is None:
            continue
        if not same_origin(normalized, base_url):
            continue
        if normalized in seen:
            continue
        seen.add(normalized)
        output.append(normalized)

    return output


def extract_links_from_html(
    html: str | bytes,
    *,
    base_url: str,
    include_nofollow: bool = False,
) -> list[str]:
    """Collect `<a>`/`<area>` targets as normalized absolute URLs.

    A `<base href>` element overrides `base_url`. Order follows the document
    and each URL appears once.
    """

    soup = BeautifulSoup(html, "lxml")
    base = soup.find("base", href=True)
    if base is not None:
        base_url = urljoin(base_url, base["href"])

    links: dict[str, None] = {}
    for tag in soup.find_all(["a", "area"], href=True):
        rel = [token.lower() for token in tag.get("rel") or ()]
        if "nofollow" in rel and not include_nofollow:
            continue
        target = resolve_url(base_url, tag["href"])
        if target:
            links.setdefault(target)
    return list(links)


_CODE_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")


def _dir_safe(value: str) -> str:
    return "".join(char for char in value.lower() if char.isalnum() or char in {"-", "_"})


def output_dir_name_for(url: str) -> str:
    """Derive a `docs_<name>` directory name from a source URL."""

    parsed = urlsplit(url or "")
    host = (parsed.hostname or "").lower()
    parts = [part for part in parsed.path.strip("/").split("/") if part]

    name = ""
    if any(code_host in host for code_host in _CODE_HOSTS) and parts:
        name = parts[1] if len(parts) >= 2 else parts[0]
        name = name.removesuffix(".git")
    elif "pkg.go.dev" in host and parts:
        name = next((part for part in reversed(parts) if "." not in part), parts[-1])
    elif "docs.rs" in host and parts:
        name = parts[1] if parts[0] == "crate" and len(parts) >= 2 else parts[0]

    if not name:
        name = host.removeprefix("www.")

    name = _dir_safe(name)
    return f"docs_{name}" if name else "docs"


__all__ = [
    "ASSET_EXTENSIONS",
    "ASSET_PATH_MARKERS",
    "HTTP_SCHEMES",
    "SKIP_HREF_PREFIXES",
    "compile_exclude_patterns",
    "extract_links_from_html",
    "filter_and_dedupe_urls",
    "has_url_prefix",
    "is_excluded",
    "is_http_url",
    "normalize_url",
    "origin_host",
    "output_dir_name_for",
    "resolve_url",
    "same_origin",
    "should_skip_asset_url",
]
