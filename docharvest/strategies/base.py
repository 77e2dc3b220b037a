"""Strategy interface shared by all extraction algorithms."""

from __future__ import annotations

from abc import ABC, abstractmethod
import threading

from ..config import CrawlOptions
from ..errors import FatalConfigError, InvalidURLError
from ..processor import Dependencies, PageProcessor
from ..session import CrawlSession
from ..url import has_url_prefix, is_excluded


class Strategy(ABC):
    """A pluggable extraction algorithm bound to a URL predicate."""

    name: str = ""

    def __init__(self, deps: Dependencies) -> None:
        if deps is None:
            raise FatalConfigError(f"{type(self).__name__} requires dependencies")
        self.deps = deps

    @abstractmethod
    def can_handle(self, url: str) -> bool:
        """Return True if this strategy accepts URL."""

    @abstractmethod
    def execute(
        self,
        url: str,
        options: CrawlOptions,
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Extract documentation reachable from URL and hand it to the writer."""

    def new_session(
        self,
        url: str,
        options: CrawlOptions,
        cancel_event: threading.Event | None,
    ) -> CrawlSession:
        try:
            return CrawlSession(url, options, cancel_event=cancel_event)
        except ValueError as exc:
            raise InvalidURLError(url, str(exc)) from exc

    def new_processor(self, session: CrawlSession, **kwargs) -> PageProcessor:
        return PageProcessor(self.deps, session, strategy_name=self.name, **kwargs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def apply_list_filters(urls: list[str], session: CrawlSession) -> list[str]:
    """Apply `filter_url` and exclude patterns to a fixed URL list."""

    return [
        url
        for url in urls
        if has_url_prefix(url, session.options.filter_url)
        and not is_excluded(url, session.exclude_patterns)
    ]


def truncate_to_limit(urls: list[str], options: CrawlOptions) -> list[str]:
    if options.limit > 0 and len(urls) > options.limit:
        return urls[: options.limit]
    return urls


__all__ = [
    "Dependencies",
    "Strategy",
    "apply_list_filters",
    "truncate_to_limit",
]
