"""URL checks applied before a request is queued."""

from __future__ import annotations

from typing import AbstractSet
from urllib.parse import urlsplit

from .errors import DomainNotAllowed, InvalidURL, ProtocolNotAllowed


def validate_url(url: str, allowed_hosts: AbstractSet[str]) -> str:
    """Return ``url`` stripped of surrounding whitespace, or raise why it is refused.

    The host allow-list is checked before the protocol.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidURL("Invalid URL format")
    candidate = url.strip()
    try:
        parsed = urlsplit(candidate)
        hostname = parsed.hostname
        # urlsplit only validates the port when it is read.
        parsed.port
    except ValueError as exc:
        raise InvalidURL(f"Invalid URL format: {exc}") from exc
    if not parsed.scheme or not hostname:
        raise InvalidURL("Invalid URL format")
    if hostname not in allowed_hosts:
        raise DomainNotAllowed(f"Domain {hostname} is not allowed")
    if parsed.scheme.lower() != "https":
        raise ProtocolNotAllowed("Only HTTPS URLs are allowed")
    return candidate
