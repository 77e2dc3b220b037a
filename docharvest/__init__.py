"""Documentation harvester: strategy dispatch, discovery, crawling, and conversion."""

from .config import CrawlOptions, HarvestConfig, load_config, save_config
from .converter import Converter, ConverterConfig, MarkdownReader, PlainTextReader
from .discovery import DISCOVERY_PROBES, DiscoveryEngine, DiscoveryProbe, DiscoveryResult
from .dispatcher import StrategyDispatcher, StrategyType, detect_strategy
from .errors import (
    ConversionError,
    CrawlCancelled,
    DiscoveryExhausted,
    DocharvestError,
    FatalConfigError,
    FetchError,
    InvalidURLError,
    NoStrategyError,
    PerPageError,
    RenderError,
    WriteError,
)
from .fetcher import Fetcher, RenderOptions, Renderer
from .orchestrator import Orchestrator, execute
from .processor import Dependencies, PageOutcome, PageProcessor
from .quality import QualityThresholds, classify, is_empty_or_error, needs_render
from .session import AdmitResult, AdmitStatus, CrawlSession
from .stats import StatsCollector
from .strategies import (
    CrawlerStrategy,
    GitHubPagesStrategy,
    LLMSStrategy,
    SitemapStrategy,
    Strategy,
)
from .types import (
    ClassificationVerdict,
    ContentKind,
    CrawlItem,
    CrawlStage,
    CrawlStats,
    Document,
    ErrorRecord,
    FetchResult,
)
from .url import (
    extract_links_from_html,
    filter_and_dedupe_urls,
    has_url_prefix,
    normalize_url,
    resolve_url,
    same_origin,
)
from .writer import DocumentWriter

__all__ = [
    "AdmitResult",
    "AdmitStatus",
    "ClassificationVerdict",
    "ContentKind",
    "ConversionError",
    "Converter",
    "ConverterConfig",
    "CrawlCancelled",
    "CrawlItem",
    "CrawlOptions",
    "CrawlSession",
    "CrawlStage",
    "CrawlStats",
    "CrawlerStrategy",
    "DISCOVERY_PROBES",
    "Dependencies",
    "DiscoveryEngine",
    "DiscoveryExhausted",
    "DiscoveryProbe",
    "DiscoveryResult",
    "DocharvestError",
    "Document",
    "DocumentWriter",
    "ErrorRecord",
    "FatalConfigError",
    "FetchError",
    "FetchResult",
    "Fetcher",
    "GitHubPagesStrategy",
    "HarvestConfig",
    "InvalidURLError",
    "LLMSStrategy",
    "MarkdownReader",
    "NoStrategyError",
    "Orchestrator",
    "PageOutcome",
    "PageProcessor",
    "PerPageError",
    "PlainTextReader",
    "QualityThresholds",
    "RenderError",
    "RenderOptions",
    "Renderer",
    "SitemapStrategy",
    "StatsCollector",
    "Strategy",
    "StrategyDispatcher",
    "StrategyType",
    "WriteError",
    "classify",
    "detect_strategy",
    "execute",
    "extract_links_from_html",
    "filter_and_dedupe_urls",
    "has_url_prefix",
    "is_empty_or_error",
    "load_config",
    "needs_render",
    "normalize_url",
    "resolve_url",
    "same_origin",
    "save_config",
]
