"""HTTP fetching (requests) and headless rendering (selenium)."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
import time
from typing import Callable

import requests
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.firefox.options import Options as FirefoxOptions

from .config import HarvestConfig
from .errors import RenderError
from .types import FetchResult
from .url import normalize_url, origin_host

LOGGER = logging.getLogger(__name__)

STABILITY_POLL_SECONDS = 0.5
RETRYABLE_STATUS = frozenset({408, 429})

CHROME_FLAGS = (
    "--headless=new",
    "--disable-gpu",
    "--no-sandbox",
    "--disable-dev-shm-usage",
)


@dataclass(frozen=True, slots=True)
class RenderOptions:
    """Per-call rendering budget."""

    timeout: float
    wait_stable: float
    scroll_to_end: bool = True

    @classmethod
    def from_config(cls, config: HarvestConfig) -> "RenderOptions":
        return cls(
            timeout=config.render_timeout_seconds,
            wait_stable=config.render_wait_stable_seconds,
            scroll_to_end=config.render_scroll_to_end,
        )


def _failed(url: str, message: str, *, elapsed_ms: int | None = None) -> FetchResult:
    return FetchResult(
        requested_url=url,
        final_url=None,
        status_code=None,
        content_type=None,
        body=None,
        elapsed_ms=elapsed_ms,
        error=message,
    )


def should_retry(result: FetchResult) -> bool:
    """Network errors, timeouts, throttling and 5xx are worth another try."""

    code = result.status_code
    if result.error is not None or code is None:
        return True
    return code in RETRYABLE_STATUS or code >= 500


class _HostThrottle:
    """Space out requests to the same host by a fixed interval."""

    def __init__(self, interval: float) -> None:
        self.interval = max(0.0, interval)
        self._lock = threading.Lock()
        self._slots: dict[str, float] = {}

    def acquire(self, url: str) -> None:
        if self.interval <= 0:
            return
        host = origin_host(url)
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._slots.get(host, 0.0))
            self._slots[host] = slot + self.interval
        delay = slot - now
        if delay > 0:
            time.sleep(delay)


class Fetcher:
    """Fetch URLs over HTTP with retries and per-host rate limiting.

    The fetcher never raises for network problems: failures come back as a
    `FetchResult` with `error` set, and callers decide what to do with them.
    """

    def __init__(self, config: HarvestConfig) -> None:
        self.config = config
        self._local = threading.local()
        self._throttle = _HostThrottle(config.rate_limit_seconds)
        self._closed = threading.Event()

    def get(self, url: str) -> FetchResult:
        """Fetch one URL with configured retries and rate limit."""

        target = normalize_url(url, remove_trailing_slash=False)
        if target is None:
            return _failed(url, "Invalid or unsupported URL")

        tries = max(1, self.config.retries + 1)
        backoff = max(0.0, self.config.retry_backoff_seconds)

        result = _failed(target, "Unknown fetch failure")
        for attempt in range(1, tries + 1):
            if self._closed.is_set():
                return _failed(target, "Fetcher is closed")

            result = self._request(target)
            if not should_retry(result):
                break

            LOGGER.debug(
                "Attempt %d/%d for %s gave status=%s error=%s",
                attempt,
                tries,
                target,
                result.status_code,
                result.error,
            )
            if attempt < tries and backoff:
                time.sleep(backoff * attempt)
        return result

    def close(self) -> None:
        """Close the fetcher; later calls return an error result."""

        self._closed.set()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def _session(self) -> requests.Session:
        if not hasattr(self._local, "http"):
            self._local.http = requests.Session()
        return self._local.http

    def _request(self, url: str) -> FetchResult:
        self._throttle.acquire(url)
        t0 = time.perf_counter()
        try:
            resp = self._session.get(
                url,
                headers=self.config.headers(),
                timeout=self.config.timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            took = int((time.perf_counter() - t0) * 1000)
            return _failed(url, f"{type(exc).__name__}: {exc}", elapsed_ms=took)

        return FetchResult(
            requested_url=url,
            final_url=resp.url or url,
            status_code=resp.status_code,
            content_type=resp.headers.get("Content-Type"),
            body=resp.content or b"",
            elapsed_ms=int((time.perf_counter() - t0) * 1000),
        )


class Renderer:
    """Render pages in a headless browser.

    One shared browser is created lazily on first use and serialized with a
    lock. If the browser cannot be started, rendering is disabled for the rest
    of the run and every call raises `RenderError` immediately.
    """

    def __init__(
        self,
        config: HarvestConfig,
        *,
        driver_factory: Callable[[], object] | None = None,
    ) -> None:
        self.config = config
        self._factory = driver_factory or self._launch_browser
        self._mutex = threading.Lock()
        self._browser = None
        self._startup_error: str | None = None

    @property
    def available(self) -> bool:
        return self._startup_error is None

    def render(self, url: str, options: RenderOptions | None = None) -> str:
        """Load URL in the browser and return the settled DOM as HTML."""

        opts = options or RenderOptions.from_config(self.config)
        with self._mutex:
            browser = self._ensure_browser(url)
            try:
                browser.set_page_load_timeout(max(1, int(opts.timeout)))
                browser.get(url)
                html = _settle(browser, opts)
            except (TimeoutException, WebDriverException) as exc:
                raise RenderError(url, f"{type(exc).__name__}: {exc}") from exc

        if not html:
            raise RenderError(url, "browser returned an empty document")
        return html

    def close(self) -> None:
        """Quit the shared browser if it was started."""

        with self._mutex:
            browser, self._browser = self._browser, None
            if browser is None:
                return
            try:
                browser.quit()
            except WebDriverException as exc:
                LOGGER.debug("Browser did not shut down cleanly: %s", exc)

    def __enter__(self) -> "Renderer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _ensure_browser(self, url: str):
        if self._startup_error is not None:
            raise RenderError(url, f"renderer unavailable: {self._startup_error}")
        if self._browser is None:
            try:
                self._browser = self._factory()
            except (RuntimeError, WebDriverException) as exc:
                self._startup_error = str(exc)
                LOGGER.warning("Headless browser unavailable, rendering disabled: %s", exc)
                raise RenderError(url, f"renderer unavailable: {exc}") from exc
            LOGGER.info("Headless browser started for JS rendering")
        return self._browser

    def _launch_browser(self):
        agent = self.config.user_agent
        failures = []

        chrome = ChromeOptions()
        for flag in CHROME_FLAGS:
            chrome.add_argument(flag)
        chrome.add_argument(f"--user-agent={agent}")
        try:
            return webdriver.Chrome(options=chrome)
        except WebDriverException as exc:
            failures.append(f"Chrome: {exc}")

        firefox = FirefoxOptions()
        firefox.add_argument("-headless")
        firefox.set_preference("general.useragent.override", agent)
        try:
            return webdriver.Firefox(options=firefox)
        except WebDriverException as exc:
            failures.append(f"Firefox: {exc}")

        raise RuntimeError("; ".join(failures))


def _settle(browser, options: RenderOptions) -> str:
    """Poll the DOM until its size stops changing or the budget runs out."""

    deadline = time.monotonic() + options.timeout
    html = browser.page_source or ""
    changed_at = time.monotonic()

    while time.monotonic() < deadline:
        if options.scroll_to_end:
            browser.execute_script("window.scrollTo(0, document.body.scrollHeight);")
        time.sleep(STABILITY_POLL_SECONDS)

        snapshot = browser.page_source or ""
        if len(snapshot) != len(html):
            changed_at = time.monotonic()
        elif time.monotonic() - changed_at >= options.wait_stable:
            html = snapshot
            break
        html = snapshot

    return html


__all__ = [
    "Fetcher",
    "RenderOptions",
    "Renderer",
    "should_retry",
]
