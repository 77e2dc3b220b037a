"""Unit tests for the content quality classifier."""

from conftest import PROSE, SPA_SHELL, content_page

from docharvest.quality import (
    QualityThresholds,
    classify,
    is_empty_or_error,
    needs_render,
)


class TestNeedsRender:
    def test_real_content_does_not_need_render(self):
        assert not needs_render(content_page())

    def test_tiny_document(self):
        assert needs_render("<html><body><p>hi</p></body></html>")

    def test_spa_mount_marker_with_little_text(self):
        padded = SPA_SHELL.replace("</body>", "<!-- " + "x" * 600 + " --></body>")
        assert needs_render(padded)

    def test_mount_marker_with_substantial_text_is_fine(self):
        html = content_page().replace("<main>", '<main id="root">')
        assert not needs_render(html)

    def test_whitespace_only_body(self):
        html = "<html><head><title>T</title><style>" + "a{}" * 300 + "</style></head><body>   </body></html>"
        assert needs_render(html)

    def test_script_heavy_page(self):
        scripts = "".join(f'<script src="/s{idx}.js"></script>' for idx in range(5))
        html = f"<html><body><p>Loading the docs app, please wait.</p>{scripts}{' ' * 400}</body></html>"
        assert needs_render(html)


class TestIsEmptyOrError:
    def test_real_content(self):
        assert not is_empty_or_error(content_page())

    def test_short_404_page(self):
        html = (
            "<html><head><title>404 Not Found</title></head><body>"
            "<h1>404</h1><p>Not Found. The page you requested does not exist on this server. "
            "Check the address or go back to the home page.</p>"
            + " " * 300
            + "</body></html>"
        )
        assert is_empty_or_error(html)

    def test_title_only_document(self):
        html = "<html><head><title>Docs</title></head><body>" + " " * 400 + "</body></html>"
        assert is_empty_or_error(html)

    def test_long_prose_mentioning_status_codes_is_kept(self):
        html = content_page(paragraphs=8).replace(
            "</main>",
            "<p>The API returns 404 when a resource is not found and 503 while "
            "the service is unavailable.</p></main>",
        )
        assert not is_empty_or_error(html)

    def test_custom_thresholds(self):
        html = content_page(paragraphs=2)
        assert not is_empty_or_error(html)
        assert is_empty_or_error(html, QualityThresholds(min_body_text_chars=10_000))


class TestClassify:
    def test_verdicts_are_independent(self):
        verdict = classify(SPA_SHELL)
        assert verdict.needs_render
        assert verdict.is_empty_or_error

        verdict = classify(content_page())
        assert not verdict.needs_render
        assert not verdict.is_empty_or_error


class TestReferenceDocuments:
    def test_bare_mount_point_needs_render(self):
        assert needs_render('<div id="root"></div>')

    def test_bare_404_heading_is_error(self):
        assert is_empty_or_error("<h1>404 Not Found</h1>")

    def test_version_number_500_in_long_prose(self):
        html = content_page(paragraphs=8).replace(
            "</main>",
            "<p>Release 500 removed the legacy transport; upgrade notes for 500 "
            "are listed in the changelog.</p></main>",
        )
        assert not is_empty_or_error(html)
        assert not needs_render(html)

    def test_static_page_of_about_5kb(self):
        sections = "".join(
            f"<h2>Section {idx}</h2>" + "".join(f"<p>{PROSE}</p>" for _ in range(3))
            for idx in range(7)
        )
        html = f"<html><head><title>Manual</title></head><body><h1>Manual</h1>{sections}</body></html>"
        assert 4_000 < len(html.encode()) < 6_500

        verdict = classify(html)
        assert not verdict.needs_render
        assert not verdict.is_empty_or_error
