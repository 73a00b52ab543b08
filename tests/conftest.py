"""Shared pytest configuration for the votewatch test suite."""

from __future__ import annotations

import logging

import pytest

from fakes import VOTE_URL, FakePage, FakeSessions, fast_config, load_fixture


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Tests that wire several components together")


@pytest.fixture(autouse=True)
def _debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger="votewatch")


@pytest.fixture
def config():
    return fast_config()


@pytest.fixture
def vote_page_html() -> str:
    return load_fixture("vote_page.html")


@pytest.fixture
def vote_page(vote_page_html) -> FakePage:
    return FakePage(vote_page_html, title="Voter pour RevolutionDayZ - Top Serveurs")


@pytest.fixture
def sessions(vote_page) -> FakeSessions:
    return FakeSessions(vote_page)


@pytest.fixture
def vote_url() -> str:
    return VOTE_URL
