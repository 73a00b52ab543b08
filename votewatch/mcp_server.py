"""MCP server exposing the vote page fetcher as a tool."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from mcp.server.fastmcp import FastMCP

from .config import DEFAULT_VOTE_URL, FetchConfig
from .coordinator import FetchCoordinator

logger = logging.getLogger("votewatch.mcp")
logger.setLevel(logging.ERROR)


class CoordinatorProvider:
    """Owns the server's coordinator: started on first use, closed at shutdown."""

    def __init__(self, factory: Optional[Callable[[], FetchCoordinator]] = None) -> None:
        self._factory = factory or (lambda: FetchCoordinator(FetchConfig()))
        self._coordinator: Optional[FetchCoordinator] = None
        self._lock = asyncio.Lock()

    async def get(self) -> FetchCoordinator:
        async with self._lock:
            if self._coordinator is None:
                coordinator = self._factory()
                await coordinator.start()
                self._coordinator = coordinator
            return self._coordinator

    async def close(self) -> None:
        """Reject pending requests and release the browser, if one was started."""
        async with self._lock:
            coordinator, self._coordinator = self._coordinator, None
        if coordinator is not None:
            await coordinator.close()


provider = CoordinatorProvider()


@asynccontextmanager
async def server_lifespan(server: FastMCP) -> AsyncIterator[None]:
    try:
        yield
    finally:
        await provider.close()


mcp = FastMCP(name="votewatch", lifespan=server_lifespan)


@mcp.tool()
async def vote_status(
    url: str = DEFAULT_VOTE_URL,
) -> str:
    """Render a vote page and return its cooldown, monthly votes and ranking as JSON."""

    coordinator = await provider.get()
    result = await coordinator.submit(url)
    return result.to_json()


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
