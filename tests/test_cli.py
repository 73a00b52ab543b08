"""Tests for the command-line interface."""

from __future__ import annotations

import io
import json
from typing import List

import pytest

from fakes import VOTE_URL, make_result
from votewatch import cli
from votewatch.config import DEFAULT_VOTE_URL
from votewatch.errors import DomainNotAllowed, LoadTimeout


class ScriptedCoordinator:
    """Coordinator stand-in returning queued outcomes in order."""

    def __init__(self, outcomes: List[object]) -> None:
        self.outcomes = list(outcomes)
        self.submitted: List[str] = []

    def __call__(self, config):
        self.config = config
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def submit(self, url: str):
        self.submitted.append(url)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "_configure_logging", lambda verbose: None)


class TestParseArgs:
    def test_bare_urls_default_to_fetch(self):
        args = cli.parse_args([VOTE_URL, "https://top-serveurs.net/other"])
        assert args.command == "fetch"
        assert args.urls == [VOTE_URL, "https://top-serveurs.net/other"]
        assert args.timeout == 15.0
        assert args.settle == 3.0

    def test_watch_defaults(self):
        args = cli.parse_args(["watch"])
        assert args.url == DEFAULT_VOTE_URL
        assert args.interval == 60.0
        assert args.count == 0
        assert args.headed is False

    def test_build_config(self):
        args = cli.parse_args(["fetch", VOTE_URL, "--timeout", "5", "--settle", "0.5", "--headed"])
        config = cli._build_config(args)
        assert config.load_timeout == 5.0
        assert config.settle_delay == 0.5
        assert config.headless is False


class TestWriteOutcome:
    def test_success_line(self):
        stream = io.StringIO()
        assert cli.write_outcome(VOTE_URL, make_result(VOTE_URL, vote_count=12), stream) is True
        data = json.loads(stream.getvalue())
        assert data["success"] is True
        assert data["voteCount"] == 12

    def test_failure_line(self):
        stream = io.StringIO()
        error = DomainNotAllowed("Domain example.com is not allowed")
        assert cli.write_outcome("https://example.com", error, stream) is False
        data = json.loads(stream.getvalue())
        assert data == {
            "success": False,
            "url": "https://example.com",
            "error": "DomainNotAllowed",
            "message": "Domain example.com is not allowed",
        }


def test_main_exit_status_reflects_failures(monkeypatch, capsys):
    async def fake_fetch_all(urls, config):
        return [make_result(urls[0]), LoadTimeout(urls[1], config.load_timeout)]

    monkeypatch.setattr(cli, "fetch_all", fake_fetch_all)

    with pytest.raises(SystemExit) as excinfo:
        cli.main([VOTE_URL, "https://top-serveurs.net/slow"])

    assert excinfo.value.code == 1
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [line["success"] for line in lines] == [True, False]
    assert lines[1]["error"] == "LoadTimeout"


def test_main_succeeds_when_every_url_succeeds(monkeypatch):
    async def fake_fetch_all(urls, config):
        return [make_result(url) for url in urls]

    monkeypatch.setattr(cli, "fetch_all", fake_fetch_all)

    with pytest.raises(SystemExit) as excinfo:
        cli.main([VOTE_URL])

    assert excinfo.value.code == 0


@pytest.mark.asyncio
async def test_watch_counts_failures(monkeypatch):
    coordinator = ScriptedCoordinator([make_result(VOTE_URL), LoadTimeout(VOTE_URL, 1.0), make_result(VOTE_URL)])
    monkeypatch.setattr(cli, "FetchCoordinator", coordinator)
    stream = io.StringIO()

    failures = await cli.watch(VOTE_URL, cli.FetchConfig(), interval=0, count=3, stream=stream)

    assert failures == 1
    assert coordinator.submitted == [VOTE_URL] * 3
    assert len(stream.getvalue().splitlines()) == 3
