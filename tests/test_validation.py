"""Tests for URL validation."""

from __future__ import annotations

import pytest

from votewatch.config import DEFAULT_ALLOWED_HOSTS
from votewatch.errors import DomainNotAllowed, InvalidURL, ProtocolNotAllowed, URLRejected
from votewatch.validation import validate_url


def test_allowed_url_is_returned():
    url = "https://top-serveurs.net/dayz/vote/fr-revolutiondayz-beta"
    assert validate_url(f"  {url} ", DEFAULT_ALLOWED_HOSTS) == url


def test_explicit_port_is_allowed():
    assert validate_url("https://top-serveurs.net:443/x", DEFAULT_ALLOWED_HOSTS)


@pytest.mark.parametrize(
    "url",
    [
        "",
        "   ",
        "not a url",
        "https://",
        "https://[::1",
        "https://top-serveurs.net:abc/",
        "https://top-serveurs.net:99999/",
        None,
        42,
    ],
)
def test_invalid_url(url):
    with pytest.raises(InvalidURL):
        validate_url(url, DEFAULT_ALLOWED_HOSTS)


@pytest.mark.parametrize(
    "url",
    ["http://top-serveurs.net/dayz", "ftp://top-serveurs.net/file", "javascript://top-serveurs.net/x"],
)
def test_protocol_not_allowed(url):
    with pytest.raises(ProtocolNotAllowed):
        validate_url(url, DEFAULT_ALLOWED_HOSTS)


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/",
        "https://www.top-serveurs.net/dayz",
        "https://top-serveurs.net.evil.com/",
    ],
)
def test_domain_not_allowed(url):
    with pytest.raises(DomainNotAllowed):
        validate_url(url, DEFAULT_ALLOWED_HOSTS)


def test_allow_list_is_configurable():
    assert validate_url("https://example.com/page", {"example.com"}) == "https://example.com/page"


def test_rejections_share_a_base_class():
    with pytest.raises(URLRejected):
        validate_url("http://example.com", DEFAULT_ALLOWED_HOSTS)


def test_host_is_checked_before_protocol():
    with pytest.raises(DomainNotAllowed):
        validate_url("http://example.com/", DEFAULT_ALLOWED_HOSTS)
