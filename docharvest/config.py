"""Typed run options and harvester configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_LIMIT,
    DEFAULT_MAX_DEPTH,
    DEFAULT_NESTED_SITEMAP_LIMIT,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_RATE_LIMIT_SECONDS,
    DEFAULT_RENDER_SCROLL_TO_END,
    DEFAULT_RENDER_TIMEOUT_SECONDS,
    DEFAULT_RENDER_WAIT_STABLE_SECONDS,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    JSON_INDENT,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .types import JSONDict

Coercer = Callable[[Any, str], Any]


def _bad(kind: str, key: str, value: Any) -> ValueError:
    return ValueError(f"'{key}' expects {kind}, got {value!r}")


def _to_float(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise _bad("a number", key, value)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise _bad("a number", key, value) from exc


def _to_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise _bad("an integer", key, value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise _bad("an integer", key, value) from exc


def _to_bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise _bad("true or false", key, value)
    return value


def _to_text(value: Any, key: str) -> str:
    return "" if value is None else str(value)


def _to_str_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        raise _bad("a list of strings", key, value)
    return [str(item) for item in value]


def _to_headers(value: Any, key: str) -> dict[str, str]:
    if not isinstance(value, Mapping):
        raise _bad("a mapping", key, value)
    return {str(name): str(header) for name, header in value.items()}


def _coerce_fields(payload: Mapping[str, Any], schema: Mapping[str, Coercer]) -> dict[str, Any]:
    """Pick the known keys out of payload and convert each one."""

    return {
        key: convert(payload[key], key)
        for key, convert in schema.items()
        if key in payload
    }


@dataclass(slots=True)
class CrawlOptions:
    """The fixed option set accepted by every strategy."""

    concurrency: int = DEFAULT_CONCURRENCY
    limit: int = DEFAULT_LIMIT
    max_depth: int = DEFAULT_MAX_DEPTH
    exclude: list[str] = field(default_factory=list)
    filter_url: str = ""
    force: bool = False
    dry_run: bool = False
    force_render: bool = False

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth cannot be negative, got {self.max_depth}")
        # Any limit at or below zero means unlimited.
        self.limit = max(0, self.limit)
        self.exclude = [pattern for pattern in self.exclude if pattern]
        self.filter_url = (self.filter_url or "").strip()

    @property
    def unlimited(self) -> bool:
        return self.limit <= 0

    def to_dict(self) -> JSONDict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlOptions":
        return cls(**_coerce_fields(payload, _OPTION_SCHEMA))


_OPTION_SCHEMA: dict[str, Coercer] = {
    "concurrency": _to_int,
    "limit": _to_int,
    "max_depth": _to_int,
    "exclude": _to_str_list,
    "filter_url": _to_text,
    "force": _to_bool,
    "dry_run": _to_bool,
    "force_render": _to_bool,
}


@dataclass(slots=True)
class HarvestConfig:
    """Ambient settings for fetcher, renderer, and writer."""

    output_dir: str = DEFAULT_OUTPUT_DIR
    flat_output: bool = False

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    rate_limit_seconds: float = DEFAULT_RATE_LIMIT_SECONDS

    user_agent: str = DEFAULT_USER_AGENT
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))

    render_timeout_seconds: float = DEFAULT_RENDER_TIMEOUT_SECONDS
    render_wait_stable_seconds: float = DEFAULT_RENDER_WAIT_STABLE_SECONDS
    render_scroll_to_end: bool = DEFAULT_RENDER_SCROLL_TO_END

    nested_sitemap_limit: int = DEFAULT_NESTED_SITEMAP_LIMIT
    show_progress: bool = False

    options: CrawlOptions = field(default_factory=CrawlOptions)

    def __post_init__(self) -> None:
        self.output_dir = str(self.output_dir)
        if not self.output_dir.strip():
            raise ValueError("output_dir cannot be blank")

        positive = ("timeout_seconds", "render_timeout_seconds", "nested_sitemap_limit")
        for name in positive:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

        non_negative = (
            "retries",
            "retry_backoff_seconds",
            "rate_limit_seconds",
            "render_wait_stable_seconds",
        )
        for name in non_negative:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative, got {getattr(self, name)}")

    def headers(self) -> dict[str, str]:
        """Request headers, with our User-Agent unless one is configured."""

        return {"User-Agent": self.user_agent, **self.default_headers}

    def to_dict(self) -> JSONDict:
        """Plain-data view written to the run manifest."""

        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "HarvestConfig":
        """Build config from a parsed dictionary.

        Missing keys keep their defaults; a present key with the wrong type
        raises `ValueError`.
        """

        nested = payload.get("options") or {}
        if not isinstance(nested, Mapping):
            raise _bad("a mapping", "options", nested)

        values = _coerce_fields(payload, _CONFIG_SCHEMA)
        return cls(**values, options=CrawlOptions.from_dict(nested))


_CONFIG_SCHEMA: dict[str, Coercer] = {
    "output_dir": _to_text,
    "flat_output": _to_bool,
    "timeout_seconds": _to_float,
    "retries": _to_int,
    "retry_backoff_seconds": _to_float,
    "rate_limit_seconds": _to_float,
    "user_agent": _to_text,
    "default_headers": _to_headers,
    "render_timeout_seconds": _to_float,
    "render_wait_stable_seconds": _to_float,
    "render_scroll_to_end": _to_bool,
    "nested_sitemap_limit": _to_int,
    "show_progress": _to_bool,
}


def _config_format(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        allowed = ", ".join(SUPPORTED_CONFIG_SUFFIXES)
        raise ValueError(f"{path}: config files must end in one of {allowed}")
    return "json" if suffix == ".json" else "yaml"


def load_config(path: str | Path) -> HarvestConfig:
    """Load HarvestConfig from JSON/YAML path."""

    source = Path(path)
    fmt = _config_format(source)
    text = source.read_text(encoding="utf-8")
    if fmt == "json":
        payload = json.loads(text)
    else:
        # An empty YAML document parses to None.
        payload = yaml.safe_load(text) or {}

    if not isinstance(payload, Mapping):
        raise ValueError(f"{source}: top level of a config file must be a mapping")
    return HarvestConfig.from_dict(payload)


def save_config(config: HarvestConfig, path: str | Path) -> None:
    """Save HarvestConfig as JSON or YAML based on file extension."""

    target = Path(path)
    fmt = _config_format(target)
    data = config.to_dict()
    if fmt == "json":
        text = json.dumps(data, indent=JSON_INDENT, sort_keys=True) + "\n"
    else:
        text = yaml.safe_dump(data, sort_keys=False)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")


__all__ = [
    "CrawlOptions",
    "HarvestConfig",
    "load_config",
    "save_config",
]
