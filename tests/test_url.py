"""Unit tests for URL normalization and filtering."""

from docharvest.url import (
    compile_exclude_patterns,
    extract_links_from_html,
    filter_and_dedupe_urls,
    has_url_prefix,
    is_excluded,
    normalize_url,
    output_dir_name_for,
    resolve_url,
    same_origin,
    should_skip_asset_url,
)


class TestNormalizeUrl:
    def test_strips_fragment_and_trailing_slash(self):
        assert normalize_url("https://example.com/docs/#intro") == "https://example.com/docs"

    def test_root_keeps_slash(self):
        assert normalize_url("https://example.com") == "https://example.com/"
        assert normalize_url("https://example.com/") == "https://example.com/"

    def test_lowercases_scheme_and_host_only(self):
        assert normalize_url("HTTPS://Example.COM/API/Ref") == "https://example.com/API/Ref"

    def test_drops_default_port(self):
        assert normalize_url("https://example.com:443/a") == "https://example.com/a"
        assert normalize_url("http://example.com:8080/a") == "http://example.com:8080/a"

    def test_keeps_query(self):
        assert normalize_url("https://example.com/search?q=x") == "https://example.com/search?q=x"

    def test_rejects_relative_and_other_schemes(self):
        assert normalize_url("/docs") is None
        assert normalize_url("ftp://example.com/file") is None
        assert normalize_url("") is None
        assert normalize_url(None) is None


class TestResolveUrl:
    def test_relative_reference(self):
        assert resolve_url("https://example.com/docs/a", "b") == "https://example.com/docs/b"
        assert resolve_url("https://example.com/docs/a", "../c/") == "https://example.com/c"

    def test_skips_non_navigational_hrefs(self):
        base = "https://example.com/"
        for href in ["#top", "javascript:void(0)", "mailto:a@b.c", "tel:123", "data:text/plain,x", ""]:
            assert resolve_url(base, href) is None


class TestSameOrigin:
    def test_exact_host(self):
        assert same_origin("https://example.com/a", "https://EXAMPLE.com/b")

    def test_subdomain_is_other_origin(self):
        assert not same_origin("https://docs.example.com/a", "https://example.com/")
        assert not same_origin("https://example.com/a", "https://www.example.com/")


class TestHasUrlPrefix:
    def test_empty_filter_matches(self):
        assert has_url_prefix("https://example.com/x", "")

    def test_path_filter(self):
        assert has_url_prefix("https://example.com/docs/intro", "/docs")
        assert has_url_prefix("https://example.com/docs", "/docs/")
        assert not has_url_prefix("https://example.com/docsearch", "/docs")
        assert not has_url_prefix("https://example.com/blog/post", "/docs")

    def test_full_url_filter(self):
        assert has_url_prefix("https://example.com/docs/a", "https://example.com/docs")
        assert not has_url_prefix("https://other.com/docs/a", "https://example.com/docs")


class TestExcludePatterns:
    def test_invalid_pattern_dropped_with_warning(self, caplog):
        patterns = compile_exclude_patterns(["/blog", "([unclosed"])
        assert len(patterns) == 1
        assert "Ignoring invalid exclude pattern" in caplog.text

    def test_search_anywhere(self):
        patterns = compile_exclude_patterns([r"/blog"])
        assert is_excluded("https://example.com/blog/post", patterns)
        assert not is_excluded("https://example.com/docs/post", patterns)


class TestAssetSkipList:
    def test_assets_are_skipped(self):
        assert should_skip_asset_url("https://example.com/assets/app.js")
        assert should_skip_asset_url("https://example.com/img/logo.png")
        assert should_skip_asset_url("https://example.com/feed.xml")

    def test_json_is_not_mistaken_for_js(self):
        assert not should_skip_asset_url("https://example.com/docs/config-json")
        assert not should_skip_asset_url("https://example.com/docs/getting-started")


class TestFilterAndDedupe:
    def test_orders_dedupes_and_keeps_same_host(self):
        urls = [
            "https://example.com/a/",
            "https://example.com/a#x",
            "https://other.com/b",
            "not a url",
            "https://example.com/c",
        ]
        assert filter_and_dedupe_urls(urls, "https://example.com") == [
            "https://example.com/a",
            "https://example.com/c",
        ]


class TestExtractLinks:
    def test_resolves_in_document_order(self):
        html = (
            '<html><body><a href="/b">b</a><a href="a">a</a>'
            '<a href="/b#frag">dup</a><a href="mailto:x@y.z">m</a></body></html>'
        )
        links = extract_links_from_html(html, base_url="https://example.com/docs/")
        assert links == ["https://example.com/b", "https://example.com/docs/a"]

    def test_honors_base_tag(self):
        html = '<html><head><base href="https://example.com/v2/"></head><body><a href="x">x</a></body></html>'
        assert extract_links_from_html(html, base_url="https://example.com/") == [
            "https://example.com/v2/x"
        ]

    def test_skips_nofollow(self):
        html = '<html><body><a rel="nofollow" href="/x">x</a></body></html>'
        assert extract_links_from_html(html, base_url="https://example.com/") == []


class TestOutputDirName:
    def test_host_based(self):
        assert output_dir_name_for("https://docs.example.com/guide") == "docs_docsexamplecom"

    def test_code_host_uses_repo(self):
        assert output_dir_name_for("https://github.com/acme/widget.git") == "docs_widget"
