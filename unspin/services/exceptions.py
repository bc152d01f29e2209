from __future__ import annotations


class ExtractionError(Exception):
    """Base class for extraction pipeline errors."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class InvalidInput(ExtractionError):
    """The caller supplied something that is not an absolute http(s) URL."""


class RobotsDisallowed(ExtractionError):
    """robots.txt forbids the pipeline from fetching the URL."""


class RateLimited(ExtractionError):
    """The per-origin request window is exhausted."""


class NetworkError(ExtractionError):
    """Network instability while fetching a source document."""


class FetchTimeout(NetworkError):
    """A single attempt exceeded its time budget."""


class HttpError(ExtractionError):
    """The server answered with a non-success status."""

    def __init__(
        self, message: str, *, url: str | None = None, status_code: int | None = None
    ) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code


class AllTiersExhausted(ExtractionError):
    """No tier produced text above its threshold."""


__all__ = [
    "ExtractionError",
    "InvalidInput",
    "RobotsDisallowed",
    "RateLimited",
    "NetworkError",
    "FetchTimeout",
    "HttpError",
    "AllTiersExhausted",
]
