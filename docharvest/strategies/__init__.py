"""Built-in extraction strategies."""

from .base import Dependencies, Strategy
from .crawler import CrawlerStrategy
from .github_pages import GitHubPagesStrategy
from .llms import LLMSStrategy
from .sitemap import SitemapStrategy

__all__ = [
    "CrawlerStrategy",
    "Dependencies",
    "GitHubPagesStrategy",
    "LLMSStrategy",
    "SitemapStrategy",
    "Strategy",
]
