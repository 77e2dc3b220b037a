"""Tests for the requests-backed fetcher and the selenium renderer."""

from unittest import mock

import pytest
import requests
from selenium.common.exceptions import TimeoutException

from docharvest.config import HarvestConfig
from docharvest.errors import RenderError
from docharvest.fetcher import Fetcher, RenderOptions, Renderer
from docharvest.types import ContentKind


def response(status=200, body=b"<html></html>", content_type="text/html", url="https://example.com/"):
    resp = mock.Mock()
    resp.status_code = status
    resp.content = body
    resp.headers = {"Content-Type": content_type}
    resp.url = url
    return resp


@pytest.fixture
def http_session():
    with mock.patch("docharvest.fetcher.requests.Session") as session_cls:
        yield session_cls.return_value


class TestFetcher:
    def test_success(self, http_session):
        http_session.get.return_value = response(body=b"<p>hi</p>")
        fetcher = Fetcher(HarvestConfig(retries=0))

        result = fetcher.get("https://Example.com/#frag")

        assert result.ok
        assert result.body == b"<p>hi</p>"
        assert result.content_kind == ContentKind.HTML
        url = http_session.get.call_args.args[0]
        assert url == "https://example.com/"
        assert http_session.get.call_args.kwargs["headers"]["User-Agent"]
        # Rendered pages are flagged on the Document, not on the fetch result.
        assert not hasattr(result, "backend")

    def test_retries_server_errors(self, http_session):
        http_session.get.side_effect = [response(status=503), response(status=200)]
        fetcher = Fetcher(HarvestConfig(retries=2, retry_backoff_seconds=0))

        result = fetcher.get("https://example.com/")

        assert result.status_code == 200
        assert http_session.get.call_count == 2

    def test_client_error_is_not_retried(self, http_session):
        http_session.get.return_value = response(status=404)
        fetcher = Fetcher(HarvestConfig(retries=3, retry_backoff_seconds=0))

        result = fetcher.get("https://example.com/missing")

        assert not result.ok
        assert result.status_code == 404
        assert http_session.get.call_count == 1

    def test_network_error_becomes_result(self, http_session):
        http_session.get.side_effect = requests.ConnectionError("refused")
        fetcher = Fetcher(HarvestConfig(retries=1, retry_backoff_seconds=0))

        result = fetcher.get("https://example.com/")

        assert not result.ok
        assert result.error.startswith("ConnectionError")
        assert http_session.get.call_count == 2

    def test_invalid_url(self, http_session):
        result = Fetcher(HarvestConfig()).get("mailto:someone@example.com")
        assert result.error == "Invalid or unsupported URL"
        http_session.get.assert_not_called()

    def test_closed_fetcher(self, http_session):
        fetcher = Fetcher(HarvestConfig())
        fetcher.close()
        assert fetcher.get("https://example.com/").error == "Fetcher is closed"


class FakeDriver:
    def __init__(self, page_source="<html><body>rendered</body></html>", fail=False):
        self.page_source = page_source
        self.fail = fail
        self.visited = []
        self.quit_called = False

    def set_page_load_timeout(self, seconds):
        self.timeout = seconds

    def get(self, url):
        if self.fail:
            raise TimeoutException("too slow")
        self.visited.append(url)

    def execute_script(self, script):
        pass

    def quit(self):
        self.quit_called = True


QUICK = RenderOptions(timeout=5, wait_stable=0, scroll_to_end=False)


class TestRenderer:
    def test_driver_started_once(self):
        driver = FakeDriver()
        factory = mock.Mock(return_value=driver)
        renderer = Renderer(HarvestConfig(), driver_factory=factory)

        assert "rendered" in renderer.render("https://example.com/a", QUICK)
        assert "rendered" in renderer.render("https://example.com/b", QUICK)

        factory.assert_called_once()
        assert driver.visited == ["https://example.com/a", "https://example.com/b"]
        assert driver.timeout == 5

        renderer.close()
        assert driver.quit_called

    def test_startup_failure_disables_rendering(self):
        factory = mock.Mock(side_effect=RuntimeError("no browser"))
        renderer = Renderer(HarvestConfig(), driver_factory=factory)

        with pytest.raises(RenderError):
            renderer.render("https://example.com/", QUICK)
        assert not renderer.available
        with pytest.raises(RenderError):
            renderer.render("https://example.com/", QUICK)
        factory.assert_called_once()

    def test_page_timeout(self):
        renderer = Renderer(HarvestConfig(), driver_factory=lambda: FakeDriver(fail=True))
        with pytest.raises(RenderError):
            renderer.render("https://example.com/", QUICK)
        assert renderer.available

    def test_empty_document(self):
        renderer = Renderer(HarvestConfig(), driver_factory=lambda: FakeDriver(page_source=""))
        with pytest.raises(RenderError):
            renderer.render("https://example.com/", QUICK)
