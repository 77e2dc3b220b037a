"""Filesystem-backed writer for converted documents and run manifests.

The writer owns the on-disk layout. Strategies call `write`/`exists` and never
build output paths themselves.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
import re
import tempfile
import threading
from typing import Any, Mapping
from urllib.parse import urlsplit

import yaml  # type: ignore

from .constants import MANIFESTS_SUBDIR, MAX_FILENAME_LENGTH
from .errors import WriteError
from .types import CrawlStats, Document, ErrorRecord, JSONDict

DROPPED_SUFFIXES = (".html", ".htm", ".php", ".mdx")
WINDOWS_RESERVED_NAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{idx}" for idx in range(1, 10)}
    | {f"LPT{idx}" for idx in range(1, 10)}
)

_INVALID_CHARS_RE = re.compile(r'[<>:"|?*\\/]')
_SEPARATOR_RUN_RE = re.compile(r"[-_\s]+")


def sanitize_filename(name: str) -> str:
    """Make one path segment safe for any common filesystem."""

    cleaned = _INVALID_CHARS_RE.sub("-", name)
    cleaned = _SEPARATOR_RUN_RE.sub("-", cleaned)

    stem, dot, ext = cleaned.rpartition(".")
    if dot and stem:
        cleaned = stem.strip("- ") + "." + ext
    else:
        cleaned = cleaned.strip("- ")

    if cleaned.split(".", maxsplit=1)[0].upper() in WINDOWS_RESERVED_NAMES:
        cleaned = "_" + cleaned

    if len(cleaned) > MAX_FILENAME_LENGTH:
        suffix = Path(cleaned).suffix
        cleaned = cleaned[: MAX_FILENAME_LENGTH - len(suffix)] + suffix

    return cleaned or "untitled"


def _url_path_stem(url: str) -> str:
    path = urlsplit(url).path.strip("/")
    if not path:
        return "index"
    for suffix in DROPPED_SUFFIXES:
        if path.lower().endswith(suffix):
            path = path[: -len(suffix)]
            break
    return path or "index"


def url_to_relative_path(url: str, *, flat: bool = False) -> Path:
    """Map a page URL to its markdown path relative to the output root."""

    stem = _url_path_stem(url)
    if flat:
        name = sanitize_filename(stem.replace("/", "-"))
        return Path(name if name.endswith(".md") else name + ".md")

    parts = [sanitize_filename(part) for part in stem.split("/") if part]
    relative = Path(*parts) if parts else Path("index")
    if relative.suffix != ".md":
        relative = relative.with_name(relative.name + ".md")
    return relative


def render_frontmatter(doc: Document) -> str:
    """Serialize document metadata as a YAML frontmatter block."""

    data = yaml.safe_dump(doc.frontmatter(), sort_keys=False, allow_unicode=True)
    return f"---\n{data}---\n\n"


class DocumentWriter:
    """Persist converted documents under a single `output_dir` root.

    Safe for concurrent `write` calls: each file is written through a
    temporary file and an atomic rename, and manifest appends share one lock.
    """

    def __init__(self, output_dir: str | Path, *, flat: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.flat = flat

        self.manifests_dir = self.output_dir / MANIFESTS_SUBDIR
        self.errors_path = self.manifests_dir / "errors.jsonl"
        self.run_stats_path = self.manifests_dir / "run_stats.json"
        self.run_config_path = self.manifests_dir / "run_config.json"

        self._jsonl_lock = threading.Lock()
        self._written_lock = threading.Lock()
        self._written: set[Path] = set()

    @property
    def paths(self) -> JSONDict:
        """Locations reported in the run summary."""

        return {
            "output_dir": str(self.output_dir),
            "errors": str(self.errors_path),
            "run_stats": str(self.run_stats_path),
            "run_config": str(self.run_config_path),
        }

    def path_for(self, url: str) -> Path:
        return self.output_dir / url_to_relative_path(url, flat=self.flat)

    def exists(self, url: str) -> bool:
        """Return True if a document for URL is already on disk."""

        return self.path_for(url).exists()

    def write(self, doc: Document) -> Path:
        """Write one document with frontmatter; raises WriteError on failure."""

        path = self.path_for(doc.url)
        content = render_frontmatter(doc) + doc.content.rstrip() + "\n"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write_bytes(path, content.encode("utf-8"))
        except OSError as exc:
            raise WriteError(doc.url, f"{exc.__class__.__name__}: {exc}") from exc

        with self._written_lock:
            self._written.add(path)
        return path

    def written_count(self) -> int:
        with self._written_lock:
            return len(self._written)

    def save_error(self, record: ErrorRecord) -> None:
        """Append error record to `manifests/errors.jsonl`."""

        self._append_jsonl(self.errors_path, record.to_json())

    def save_run_config(self, payload: Mapping[str, Any]) -> None:
        """Write the effective run configuration manifest."""

        self._atomic_write_json(self.run_config_path, dict(payload))

    def save_crawl_stats(self, stats: CrawlStats | Mapping[str, Any]) -> None:
        """Write run stats manifest atomically as JSON."""

        data = stats.to_json() if isinstance(stats, CrawlStats) else dict(stats)
        self._atomic_write_json(self.run_stats_path, data)

    def _append_jsonl(self, path: Path, row: Mapping[str, Any]) -> None:
        encoded = json.dumps(row, ensure_ascii=False, sort_keys=True) + "\n"
        with self._jsonl_lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as sink:
                sink.write(encoded)

    @staticmethod
    def _atomic_write_bytes(path: Path, data: bytes) -> None:
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        )
        try:
            with os.fdopen(tmp_fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    @classmethod
    def _atomic_write_json(cls, path: Path, payload: Mapping[str, Any]) -> None:
        content = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
        path.parent.mkdir(parents=True, exist_ok=True)
        cls._atomic_write_bytes(path, content.encode("utf-8"))


__all__ = [
    "DocumentWriter",
    "render_frontmatter",
    "sanitize_filename",
    "url_to_relative_path",
]
