"""Run-level entry point: validate, dispatch, execute, and write manifests."""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

from .config import CrawlOptions, HarvestConfig
from .dispatcher import StrategyDispatcher
from .errors import CrawlCancelled, FatalConfigError, InvalidURLError, NoStrategyError
from .processor import Dependencies
from .strategies import Strategy
from .url import normalize_url

LOGGER = logging.getLogger(__name__)


def _resolve_options(
    options: CrawlOptions | Mapping[str, Any] | None,
    config: HarvestConfig,
) -> CrawlOptions:
    if options is None:
        return config.options
    if isinstance(options, CrawlOptions):
        return options
    try:
        return CrawlOptions.from_dict(options)
    except ValueError as exc:
        raise FatalConfigError(f"Invalid options: {exc}") from exc


class Orchestrator:
    """Wire capabilities, pick a strategy, and drive one run to completion.

    Only `FatalConfigError` (and its subclasses) and `CrawlCancelled` escape
    `execute`; per-page failures end up in logs and `errors.jsonl`.
    """

    def __init__(
        self,
        config: HarvestConfig | None = None,
        *,
        deps: Dependencies | None = None,
        dispatcher: StrategyDispatcher | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config or (deps.config if deps is not None else HarvestConfig())
        self._owns_deps = deps is None
        self.deps = deps or Dependencies.build(self.config)
        self.dispatcher = dispatcher or StrategyDispatcher.with_defaults(self.deps)
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        """Stop admitting new work; in-flight pages finish on their own timeouts."""

        self.cancel_event.set()

    def select_strategy(self, url: str, strategy_name: str | None = None) -> Strategy:
        if not strategy_name:
            return self.dispatcher.dispatch(url)
        for strategy in self.dispatcher.strategies:
            if strategy.name == strategy_name:
                return strategy
        raise NoStrategyError(url)

    def execute(
        self,
        root_url: str,
        options: CrawlOptions | Mapping[str, Any] | None = None,
        *,
        strategy_name: str | None = None,
    ) -> dict[str, Any]:
        """Run one extraction and return a summary payload."""

        try:
            return self._run(root_url, options, strategy_name)
        finally:
            if self._owns_deps:
                self.deps.close()

    def _run(
        self,
        root_url: str,
        options: CrawlOptions | Mapping[str, Any] | None,
        strategy_name: str | None,
    ) -> dict[str, Any]:
        url = (root_url or "").strip()
        if normalize_url(url) is None:
            raise InvalidURLError(url)

        resolved_options = _resolve_options(options, self.config)
        strategy = self.select_strategy(url, strategy_name)
        LOGGER.info("Using strategy %s for %s", strategy.name, url)

        writer = self.deps.writer
        if not resolved_options.dry_run:
            writer.save_run_config(
                {
                    "url": url,
                    "strategy": strategy.name,
                    "options": resolved_options.to_dict(),
                    "config": self.config.to_dict(),
                }
            )

        try:
            strategy.execute(url, resolved_options, cancel_event=self.cancel_event)
        except KeyboardInterrupt as exc:
            self.cancel()
            raise CrawlCancelled(f"Run for {url} interrupted") from exc
        finally:
            self.deps.stats.finish()
            summary = self.deps.stats.to_json()
            if not resolved_options.dry_run:
                writer.save_crawl_stats(summary)

        if self.cancel_event.is_set():
            raise CrawlCancelled(f"Run for {url} was cancelled")

        return {
            "url": url,
            "strategy": strategy.name,
            "dry_run": resolved_options.dry_run,
            "paths": writer.paths,
            "stats": summary,
        }


def execute(
    root_url: str,
    options: CrawlOptions | Mapping[str, Any] | None = None,
    *,
    config: HarvestConfig | None = None,
    cancel_event: threading.Event | None = None,
    strategy_name: str | None = None,
) -> dict[str, Any]:
    """Convenience wrapper building a one-shot `Orchestrator`."""

    orchestrator = Orchestrator(config, cancel_event=cancel_event)
    return orchestrator.execute(root_url, options, strategy_name=strategy_name)


__all__ = ["Orchestrator", "execute"]
