"""Typed failures surfaced to callers of the fetch queue."""

from __future__ import annotations

from typing import Optional


class FetchError(Exception):
    """Base class for every failure a fetch request can resolve with."""


class URLRejected(FetchError):
    """The URL was refused before any rendering resource was touched."""


class InvalidURL(URLRejected):
    pass


class ProtocolNotAllowed(URLRejected):
    pass


class DomainNotAllowed(URLRejected):
    pass


class HostUnavailable(FetchError):
    """No browser is attached to host the render page."""


class LoadFailure(FetchError):
    """Navigation failed for a reason other than the deadline."""

    def __init__(
        self,
        description: str,
        code: Optional[int] = None,
        name: Optional[str] = None,
    ) -> None:
        message = f"Failed to load page: {description or 'Unknown error'}"
        if code is not None:
            message += f" ({code})"
        super().__init__(message)
        self.description = description
        self.code = code
        self.name = name


class LoadTimeout(FetchError):
    """The page did not load, settle and extract before the deadline."""

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(f"Timeout: {url} took longer than {timeout:.1f}s to load")
        self.url = url
        self.timeout = timeout


class MalformedExtractionResult(FetchError):
    """The in-page step returned data that does not match the expected shape."""


class CoordinatorClosed(FetchError):
    """The fetch queue was shut down before the request could run."""
