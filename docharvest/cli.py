"""CLI entrypoint for documentation extraction."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from .config import HarvestConfig, load_config
from .constants import DEFAULT_OUTPUT_DIR, LOGS_SUBDIR
from .dispatcher import StrategyType
from .errors import CrawlCancelled, FatalConfigError
from .orchestrator import Orchestrator
from .url import output_dir_name_for

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that flood the run log on messy pages.
QUIET_LOGGERS = {
    "trafilatura": logging.ERROR,
    "readability": logging.ERROR,
    "selenium": logging.WARNING,
    "urllib3": logging.WARNING,
}

# CLI dest -> HarvestConfig key, applied when the flag was given.
CONFIG_FLAGS = ("timeout_seconds", "retries", "rate_limit_seconds", "user_agent")
# CLI dest -> CrawlOptions key.
OPTION_FLAGS = {
    "concurrency": "concurrency",
    "limit": "limit",
    "max_depth": "max_depth",
    "filter_url": "filter_url",
}
OPTION_SWITCHES = {"force": "force", "dry_run": "dry_run", "render_js": "force_render"}

SUMMARY_KEYS = (
    "admitted",
    "skipped_seen",
    "skipped_filtered",
    "fetched_ok",
    "fetched_error",
    "rendered_ok",
    "rendered_error",
    "converted_ok",
    "converted_error",
    "written_docs",
    "skipped_existing",
    "skipped_empty",
    "duration_seconds",
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Extract documentation from a website into markdown files.",
    )
    parser.add_argument("url", help="Root URL (site, llms.txt, or sitemap).")
    parser.add_argument("--config", type=Path, help="Path to JSON/YAML harvest config.")
    parser.add_argument(
        "-o",
        "--output_dir",
        type=Path,
        help="Output directory. Defaults to docs_<name> derived from the URL.",
    )
    parser.add_argument(
        "--strategy",
        choices=[kind.value for kind in StrategyType if kind != StrategyType.UNKNOWN],
        help="Force a strategy instead of detecting it from the URL.",
    )

    crawl = parser.add_argument_group("crawl options")
    crawl.add_argument("-j", "--concurrency", type=int)
    crawl.add_argument("-l", "--limit", type=int, help="Maximum pages to process. 0 means unlimited.")
    crawl.add_argument("-d", "--max_depth", type=int)
    crawl.add_argument(
        "--exclude",
        action="append",
        default=[],
        help="Regex of URLs to skip (repeatable).",
    )
    crawl.add_argument(
        "--filter",
        dest="filter_url",
        help="Only process URLs under this URL or path prefix.",
    )
    crawl.add_argument("--force", action="store_true", help="Overwrite documents already on disk.")
    crawl.add_argument("--dry_run", action="store_true", help="Do everything except write files.")
    crawl.add_argument(
        "--render_js",
        action="store_true",
        help="Render every HTML page in a headless browser.",
    )

    net = parser.add_argument_group("network")
    net.add_argument("--timeout_seconds", type=float)
    net.add_argument("--retries", type=int)
    net.add_argument("--rate_limit_seconds", type=float)
    net.add_argument("--user_agent")

    out = parser.add_argument_group("output")
    out.add_argument("--flat", action="store_true", help="Write all documents into one directory.")
    out.add_argument("--progress", action="store_true", help="Show progress bars.")
    out.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Dump the full stats payload after the summary.",
    )
    out.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> HarvestConfig:
    """Layer CLI flags over an optional config file.

    A config file that leaves `output_dir` at its default still gets the
    URL-derived directory name.
    """

    payload: dict[str, Any] = {}
    if args.config is not None:
        payload = load_config(args.config).to_dict()
        if payload["output_dir"] == DEFAULT_OUTPUT_DIR:
            del payload["output_dir"]
    options: dict[str, Any] = dict(payload.get("options") or {})

    if args.output_dir is not None:
        payload["output_dir"] = str(args.output_dir)
    payload.setdefault("output_dir", output_dir_name_for(args.url))

    for key in CONFIG_FLAGS:
        value = getattr(args, key)
        if value is not None:
            payload[key] = value
    if args.flat:
        payload["flat_output"] = True
    if args.progress:
        payload["show_progress"] = True

    for dest, key in OPTION_FLAGS.items():
        value = getattr(args, dest)
        if value is not None:
            options[key] = value
    for dest, key in OPTION_SWITCHES.items():
        if getattr(args, dest):
            options[key] = True
    if args.exclude:
        options["exclude"] = [*(options.get("exclude") or []), *args.exclude]

    payload["options"] = options
    return HarvestConfig.from_dict(payload)


def setup_logging(output_dir: Path | None, verbose: bool) -> None:
    """Send logs to stdout and, given an output dir, to `logs/harvest.log`."""

    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if output_dir is not None:
        log_path = output_dir / LOGS_SUBDIR / "harvest.log"
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def print_summary(result: dict[str, Any], *, print_stats_json: bool) -> None:
    paths = result.get("paths") or {}
    stats = result.get("stats") or {}

    lines = [
        "",
        "=== Extraction Complete ===",
        f"url: {result.get('url')}",
        f"strategy: {result.get('strategy')}",
        f"output_dir: {paths.get('output_dir')}",
    ]
    if result.get("dry_run"):
        lines.append("dry_run: no files written")
    else:
        lines += [f"errors: {paths.get('errors')}", f"stats: {paths.get('run_stats')}"]

    lines += ["", "--- Core Stats ---"]
    lines += [f"{key}: {stats[key]}" for key in SUMMARY_KEYS if key in stats]
    print("\n".join(lines))

    if print_stats_json:
        print("\n--- Full Stats JSON ---")
        print(json.dumps(stats, indent=2, sort_keys=True))


def main(argv: list[str] | None = None) -> int:
    """Run one extraction; returns the process exit code."""

    args = parse_args(argv)
    try:
        config = build_config(args)
    except (OSError, ValueError) as exc:
        setup_logging(None, verbose=args.verbose)
        logging.error("Invalid configuration: %s", exc)
        return 2

    setup_logging(Path(config.output_dir), verbose=args.verbose)
    options = config.options
    logging.info(
        "Extracting %s into %s (concurrency=%d, limit=%s)",
        args.url,
        config.output_dir,
        options.concurrency,
        options.limit or "unlimited",
    )

    try:
        result = Orchestrator(config).execute(args.url, strategy_name=args.strategy)
    except FatalConfigError as exc:
        logging.error("%s", exc)
        return 2
    except (CrawlCancelled, KeyboardInterrupt):
        logging.error("Extraction cancelled")
        return 130
    except Exception:
        logging.exception("Extraction failed")
        return 1

    print_summary(result, print_stats_json=args.print_stats_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
