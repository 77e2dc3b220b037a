"""Route an input URL to the first strategy that accepts it."""

from __future__ import annotations

from enum import Enum
import logging
from urllib.parse import urlsplit

from .errors import NoStrategyError
from .processor import Dependencies
from .strategies import (
    CrawlerStrategy,
    GitHubPagesStrategy,
    LLMSStrategy,
    SitemapStrategy,
    Strategy,
)
from .strategies.github_pages import is_github_pages_url

LOGGER = logging.getLogger(__name__)


class StrategyType(str, Enum):
    LLMS = "llms"
    SITEMAP = "sitemap"
    GITHUB_PAGES = "github_pages"
    CRAWLER = "crawler"
    UNKNOWN = "unknown"


def detect_strategy(url: str | None) -> StrategyType:
    """Classify URL by the built-in predicates without building strategies."""

    raw = (url or "").strip()
    if not raw:
        return StrategyType.UNKNOWN

    try:
        parts = urlsplit(raw)
    except ValueError:
        return StrategyType.UNKNOWN

    if parts.scheme.lower() not in {"http", "https"} or not parts.hostname:
        return StrategyType.UNKNOWN

    path = parts.path.lower()
    if path.endswith("llms.txt"):
        return StrategyType.LLMS
    if path.endswith(("sitemap.xml", "sitemap.xml.gz")) or (
        "sitemap" in path and path.endswith((".xml", ".xml.gz"))
    ):
        return StrategyType.SITEMAP
    if is_github_pages_url(raw):
        return StrategyType.GITHUB_PAGES
    return StrategyType.CRAWLER


class StrategyDispatcher:
    """Ordered strategy list; specialized strategies first, crawler last."""

    def __init__(self, strategies: list[Strategy]) -> None:
        self._strategies = list(strategies)

    @classmethod
    def with_defaults(cls, deps: Dependencies) -> "StrategyDispatcher":
        crawler = CrawlerStrategy(deps)
        return cls(
            [
                LLMSStrategy(deps),
                SitemapStrategy(deps),
                GitHubPagesStrategy(deps, fallback=crawler),
                crawler,
            ]
        )

    @property
    def strategies(self) -> list[Strategy]:
        return list(self._strategies)

    def register(self, strategy: Strategy, *, first: bool = True) -> None:
        """Add a strategy ahead of the built-ins (or just before the catch-all)."""

        if first:
            self._strategies.insert(0, strategy)
        elif self._strategies:
            self._strategies.insert(len(self._strategies) - 1, strategy)
        else:
            self._strategies.append(strategy)

    def dispatch(self, url: str) -> Strategy:
        for strategy in self._strategies:
            if strategy.can_handle(url):
                LOGGER.debug("Dispatching %s to %s", url, strategy.name)
                return strategy
        raise NoStrategyError(url)


__all__ = [
    "StrategyDispatcher",
    "StrategyType",
    "detect_strategy",
]
