"""Tests for output paths, frontmatter, and manifests."""

import json
from pathlib import Path

import pytest
import yaml

from docharvest.types import CrawlStage, Document, ErrorRecord
from docharvest.writer import DocumentWriter, sanitize_filename, url_to_relative_path


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://example.com/", "index.md"),
        ("https://example.com", "index.md"),
        ("https://example.com/docs/intro", "docs/intro.md"),
        ("https://example.com/docs/intro/", "docs/intro.md"),
        ("https://example.com/docs/intro.html", "docs/intro.md"),
        ("https://example.com/docs/intro.md", "docs/intro.md"),
        ("https://example.com/search?q=x", "search.md"),
        ("https://example.com/a:b/c", "a-b/c.md"),
    ],
)
def test_url_to_relative_path(url, expected):
    assert url_to_relative_path(url) == Path(expected)


def test_flat_layout():
    assert url_to_relative_path("https://example.com/docs/api/ref", flat=True) == Path(
        "docs-api-ref.md"
    )


class TestSanitizeFilename:
    def test_invalid_characters(self):
        assert sanitize_filename('a<b>c"d') == "a-b-c-d"

    def test_reserved_windows_name(self):
        assert sanitize_filename("con.md") == "_con.md"

    def test_long_name_keeps_extension(self):
        name = sanitize_filename("x" * 300 + ".md")
        assert len(name) <= 200
        assert name.endswith(".md")

    def test_empty(self):
        assert sanitize_filename("???") == "untitled"


class TestDocumentWriter:
    def test_write_with_frontmatter(self, tmp_path):
        writer = DocumentWriter(tmp_path)
        document = Document(
            url="https://example.com/guide/setup",
            title="Setup: the basics",
            content="# Setup\n\nInstall it.",
            source_strategy="crawler",
            rendered_with_js=True,
        )

        path = writer.write(document)

        assert path == tmp_path / "guide" / "setup.md"
        assert writer.exists(document.url)
        assert writer.written_count() == 1

        text = path.read_text(encoding="utf-8")
        _, frontmatter, body = text.split("---\n", 2)
        meta = yaml.safe_load(frontmatter)
        assert meta["title"] == "Setup: the basics"
        assert meta["url"] == document.url
        assert meta["source"] == "crawler"
        assert meta["rendered_with_js"] is True
        assert meta["word_count"] == 4
        assert body.strip() == "# Setup\n\nInstall it."

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        writer = DocumentWriter(tmp_path)
        document = Document(url="https://example.com/a", title="A", content="one")
        writer.write(document)
        document.content = "two"
        writer.write(document)

        assert "two" in (tmp_path / "a.md").read_text(encoding="utf-8")
        assert not list(tmp_path.glob("*.tmp"))

    def test_save_error_appends_jsonl(self, tmp_path):
        writer = DocumentWriter(tmp_path)
        for idx in range(2):
            writer.save_error(
                ErrorRecord(
                    stage=CrawlStage.FETCH,
                    url=f"https://example.com/{idx}",
                    message="HTTP 500",
                    status_code=500,
                )
            )

        lines = writer.errors_path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["url"] for line in lines] == [
            "https://example.com/0",
            "https://example.com/1",
        ]
        assert json.loads(lines[0])["stage"] == "fetch"

    def test_manifests(self, tmp_path):
        writer = DocumentWriter(tmp_path)
        writer.save_run_config({"url": "https://example.com/"})
        writer.save_crawl_stats({"written_docs": 3})

        assert json.loads(writer.run_config_path.read_text())["url"] == "https://example.com/"
        assert json.loads(writer.run_stats_path.read_text())["written_docs"] == 3
        assert writer.paths["output_dir"] == str(tmp_path)
