"""Exception hierarchy for docharvest.

Only fatal configuration problems and cancellation escape `execute`. Per-page
failures are raised by capabilities, caught by the page processor, and logged.
"""

from __future__ import annotations


class DocharvestError(Exception):
    """Base class for all docharvest errors."""


class FatalConfigError(DocharvestError):
    """The run cannot start or cannot acquire its source."""


class InvalidURLError(FatalConfigError):
    """Root URL is not an absolute http(s) URL."""

    def __init__(self, url: str, reason: str = "expected an absolute http(s) URL") -> None:
        self.url = url
        super().__init__(f"Invalid URL {url!r}: {reason}")


class NoStrategyError(FatalConfigError):
    """No registered strategy accepts the URL."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"No strategy can handle {url!r}")


class CrawlCancelled(DocharvestError):
    """The run's cancellation signal was raised before completion."""


class DiscoveryExhausted(Exception):
    """Every discovery probe failed; callers fall back to link-following.

    A control signal rather than a failure, so not a DocharvestError.
    """

    def __init__(self, base_url: str, attempted: list[str] | None = None) -> None:
        self.base_url = base_url
        self.attempted = list(attempted or [])
        super().__init__(
            f"No discovery probe succeeded for {base_url} "
            f"(tried: {', '.join(self.attempted) or 'none'})"
        )


class ProbeParseError(ValueError):
    """A discovery probe body could not be parsed or yielded no URLs."""


class PerPageError(DocharvestError):
    """Failure confined to a single page."""

    stage = "page"

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(f"{self.stage} failed for {url}: {message}")


class FetchError(PerPageError):
    stage = "fetch"

    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(url, message)


class RenderError(PerPageError):
    stage = "render"


class ConversionError(PerPageError):
    stage = "convert"


class WriteError(PerPageError):
    stage = "write"


__all__ = [
    "ConversionError",
    "CrawlCancelled",
    "DiscoveryExhausted",
    "DocharvestError",
    "FatalConfigError",
    "FetchError",
    "InvalidURLError",
    "NoStrategyError",
    "PerPageError",
    "ProbeParseError",
    "RenderError",
    "WriteError",
]
