class ScraperError(Exception):
    """Base class for errors raised by the scrape pipeline."""


class ValidationError(ScraperError):
    """A URL failed the SSRF pre-flight check."""


class FetchTimeoutError(ScraperError, TimeoutError):
    """No complete response arrived before the per-request deadline."""

    def __init__(self, url, timeout_ms):
        super().__init__(f"Request timeout after {timeout_ms}ms: {url}")
        self.url = url
        self.timeout_ms = timeout_ms


class NetworkError(ScraperError):
    """Connection-level failure (DNS, refused, reset, protocol)."""


class ParseError(ScraperError):
    """A JSON body could not be decoded."""


class CriticalVenueError(ScraperError):
    """A venue's listing endpoint was unreachable or returned non-200."""

    def __init__(self, venue_id, message):
        super().__init__(f"{venue_id}: {message}")
        self.venue_id = venue_id


class RunTimeoutError(ScraperError, TimeoutError):
    """The whole run exceeded its wall-clock ceiling."""
