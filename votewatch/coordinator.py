"""FIFO queue that serializes fetch requests onto the single render page."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Deque, Optional

from .config import FetchConfig
from .errors import CoordinatorClosed, FetchError, LoadFailure
from .lifecycle import LoadLifecycle
from .models import ExtractionResult, FetchRequest
from .session import RenderSessionManager
from .validation import validate_url

logger = logging.getLogger("votewatch")


class FetchCoordinator:
    """Entry point for callers: ``await coordinator.submit(url)``.

    Requests run strictly one at a time in submission order. Use as an
    async context manager so the browser is launched on entry and every
    still-pending request is rejected on exit.
    """

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        sessions: Optional[RenderSessionManager] = None,
        lifecycle: Optional[LoadLifecycle] = None,
    ) -> None:
        self.config = config or FetchConfig()
        self.sessions = sessions or RenderSessionManager(self.config)
        self.lifecycle = lifecycle or LoadLifecycle(self.sessions, self.config)
        self._pending: Deque[FetchRequest] = deque()
        self._busy = False
        self._closed = False
        self._current: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "FetchCoordinator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def start(self) -> None:
        await self.sessions.start()

    async def submit(self, url: str) -> ExtractionResult:
        """Queue ``url`` and wait for its result.

        URL checks run first so a refused URL never touches the browser.
        """
        if self._closed:
            raise CoordinatorClosed("Fetch queue is shut down")
        url = validate_url(url, self.config.allowed_hosts)
        loop = asyncio.get_running_loop()
        request = FetchRequest(url=url, future=loop.create_future())
        self._pending.append(request)
        logger.debug("Queued %s (%d pending)", url, len(self._pending))
        self._schedule_drain(loop, 0)
        return await request.future

    def _schedule_drain(self, loop: asyncio.AbstractEventLoop, delay: float) -> None:
        # Never drain inline: callers must not observe re-entrancy from submit().
        if delay > 0:
            loop.call_later(delay, self._drain)
        else:
            loop.call_soon(self._drain)

    def _drain(self) -> None:
        if self._busy or self._closed:
            return
        while self._pending and self._pending[0].future.done():
            # The caller gave up while the request was queued.
            self._pending.popleft()
        if not self._pending:
            return
        request = self._pending.popleft()
        self._busy = True
        self._current = asyncio.ensure_future(self._dispatch(request))

    async def _dispatch(self, request: FetchRequest) -> None:
        try:
            result = await self.lifecycle.run(request.url)
        except FetchError as exc:
            self._resolve(request, error=exc)
        except asyncio.CancelledError:
            self._resolve(request, error=CoordinatorClosed("Fetch queue is shut down"))
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unexpected error fetching %s", request.url)
            self._resolve(request, error=LoadFailure(str(exc) or type(exc).__name__))
        else:
            self._resolve(request, result=result)
        finally:
            self._busy = False
            self._current = None
            if self._pending and not self._closed:
                self._schedule_drain(asyncio.get_running_loop(), self.config.drain_delay)

    @staticmethod
    def _resolve(
        request: FetchRequest,
        result: Optional[ExtractionResult] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        if request.future.done():
            return
        if error is not None:
            request.future.set_exception(error)
        else:
            request.future.set_result(result)

    async def close(self) -> None:
        """Reject pending requests, wait for the in-flight one and release the browser."""
        if self._closed:
            return
        self._closed = True
        while self._pending:
            request = self._pending.popleft()
            self._resolve(request, error=CoordinatorClosed("Fetch queue shut down before the request ran"))
        if self._current is not None:
            await asyncio.gather(self._current, return_exceptions=True)
        await self.sessions.close()
