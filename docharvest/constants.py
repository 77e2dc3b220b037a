"""Default values shared by config, fetcher, classifier, and strategies."""

from __future__ import annotations


DEFAULT_CONCURRENCY = 5
DEFAULT_MAX_DEPTH = 3
# 0 disables the page limit.
DEFAULT_LIMIT = 0

DEFAULT_OUTPUT_DIR = "docs"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0
DEFAULT_RATE_LIMIT_SECONDS = 0.0
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0 Safari/537.36 docharvest/0.1"
)
DEFAULT_HTTP_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,text/markdown;q=0.8,*/*;q=0.7",
    "Accept-Language": "en-US,en;q=0.9",
}

DEFAULT_RENDER_TIMEOUT_SECONDS = 60.0
DEFAULT_RENDER_WAIT_STABLE_SECONDS = 2.0
DEFAULT_RENDER_SCROLL_TO_END = True

# Site generators that need client-side rendering get a longer budget.
DISCOVERY_RENDER_TIMEOUT_SECONDS = 90.0
DISCOVERY_RENDER_WAIT_STABLE_SECONDS = 3.0
DISCOVERY_MAX_CONCURRENCY = 5

DEFAULT_NESTED_SITEMAP_LIMIT = 50
MIN_CONVERTED_CHARS = 50

SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
JSON_INDENT = 2

MANIFESTS_SUBDIR = "manifests"
LOGS_SUBDIR = "logs"
MAX_FILENAME_LENGTH = 200


__all__ = [
    "DEFAULT_CONCURRENCY",
    "DEFAULT_HTTP_HEADERS",
    "DEFAULT_LIMIT",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_NESTED_SITEMAP_LIMIT",
    "DEFAULT_OUTPUT_DIR",
    "DEFAULT_RATE_LIMIT_SECONDS",
    "DEFAULT_RENDER_SCROLL_TO_END",
    "DEFAULT_RENDER_TIMEOUT_SECONDS",
    "DEFAULT_RENDER_WAIT_STABLE_SECONDS",
    "DEFAULT_RETRIES",
    "DEFAULT_RETRY_BACKOFF_SECONDS",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_USER_AGENT",
    "DISCOVERY_MAX_CONCURRENCY",
    "DISCOVERY_RENDER_TIMEOUT_SECONDS",
    "DISCOVERY_RENDER_WAIT_STABLE_SECONDS",
    "JSON_INDENT",
    "LOGS_SUBDIR",
    "MANIFESTS_SUBDIR",
    "MAX_FILENAME_LENGTH",
    "MIN_CONVERTED_CHARS",
    "SUPPORTED_CONFIG_SUFFIXES",
]
