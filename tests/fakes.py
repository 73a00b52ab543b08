"""Stand-ins for Playwright objects and pipeline stages used across tests."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional

from votewatch.config import FetchConfig
from votewatch.lifecycle import READY_STATE_SCRIPT, SNAPSHOT_SCRIPT
from votewatch.models import ExtractionInfo, ExtractionResult

FIXTURES = Path(__file__).parent / "fixtures"
VOTE_URL = "https://top-serveurs.net/dayz/vote/fr-revolutiondayz-beta"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def fast_config(**overrides) -> FetchConfig:
    values = dict(load_timeout=1.0, settle_delay=0.0, probe_delay=0.0, drain_delay=0.0)
    values.update(overrides)
    return FetchConfig(**values)


def make_result(url: str, vote_count: Optional[int] = None) -> ExtractionResult:
    return ExtractionResult(
        available=True,
        remaining_ms=0,
        vote_count=vote_count,
        info=ExtractionInfo(page_title="", url=url, body_text_sample=""),
    )


class FakePage:
    """Scriptable replacement for a Playwright ``Page``."""

    def __init__(
        self,
        html: str = "<html><body></body></html>",
        *,
        title: str = "",
        goto_errors: Optional[Dict[str, BaseException]] = None,
        goto_delays: Optional[Dict[str, float]] = None,
        ready_state: str = "complete",
        ready_error: Optional[BaseException] = None,
        payload: Optional[object] = None,
    ) -> None:
        self.html = html
        self.title = title
        self.goto_errors = goto_errors or {}
        self.goto_delays = goto_delays or {}
        self.ready_state = ready_state
        self.ready_error = ready_error
        self.payload = payload
        self.visits: List[str] = []
        self.evaluations: List[str] = []
        self.closed = False
        self.current_url = "about:blank"

    async def goto(self, url: str, wait_until: str = "load", timeout: float = 0) -> None:
        self.visits.append(url)
        delay = self.goto_delays.get(url, 0.0)
        if delay:
            await asyncio.sleep(delay)
        error = self.goto_errors.get(url)
        if error is not None:
            raise error
        self.current_url = url

    async def evaluate(self, expression: str) -> object:
        self.evaluations.append(expression)
        if expression == READY_STATE_SCRIPT:
            if self.ready_error is not None:
                raise self.ready_error
            return self.ready_state
        if expression == SNAPSHOT_SCRIPT:
            if self.payload is not None:
                return self.payload
            return json.dumps(
                {
                    "url": self.current_url,
                    "title": self.title,
                    "readyState": "complete",
                    "html": self.html,
                }
            )
        raise AssertionError(f"unexpected expression {expression!r}")

    def is_closed(self) -> bool:
        return self.closed

    def on(self, event: str, handler) -> None:
        pass

    async def close(self) -> None:
        self.closed = True


class FakeSessions:
    """Replacement for :class:`RenderSessionManager` handing out one page."""

    def __init__(self, page: Optional[FakePage] = None, error: Optional[BaseException] = None) -> None:
        self.page = page or FakePage()
        self.error = error
        self.calls = 0
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def get_session(self) -> FakePage:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.page

    async def close(self) -> None:
        self.closed = True


class RecordingLifecycle:
    """Lifecycle stand-in that records ordering and overlap of runs."""

    def __init__(self, delay: float = 0.01, failures: Optional[Dict[str, BaseException]] = None) -> None:
        self.delay = delay
        self.failures = failures or {}
        self.started: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def run(self, url: str) -> ExtractionResult:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.started.append(url)
        try:
            await asyncio.sleep(self.delay)
            if url in self.failures:
                raise self.failures[url]
            return make_result(url, vote_count=len(self.started))
        finally:
            self.in_flight -= 1
