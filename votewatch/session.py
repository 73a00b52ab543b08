"""Ownership of the single reusable Playwright page used for rendering."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Dialog,
    Page,
    Playwright,
    Error as PlaywrightError,
    async_playwright,
)

from .config import FetchConfig
from .errors import HostUnavailable

logger = logging.getLogger("votewatch")

HIDDEN_VIEWPORT = {"width": 1280, "height": 800}


class RenderSessionManager:
    """Launch Chromium once and hand out one long-lived page.

    The browser is the host; the page lives in its own browser context so
    its cookies and storage never mix with any other surface.
    """

    def __init__(self, config: Optional[FetchConfig] = None) -> None:
        self.config = config or FetchConfig()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._lock = asyncio.Lock()
        self.sessions_created = 0

    @property
    def host_available(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def start(self) -> None:
        """Launch Playwright and Chromium unless a host is already attached."""
        if self.host_available:
            return
        if self._playwright is not None:
            # The previous browser disconnected; its driver is still running.
            logger.info("Rendering browser disconnected; restarting Playwright")
            await self._playwright.stop()
            self._playwright = None
        logger.info("Starting headless Chromium for rendering")
        self._playwright = await async_playwright().start()
        try:
            browser = await self._playwright.chromium.launch(headless=self.config.headless)
        except PlaywrightError:
            await self._playwright.stop()
            self._playwright = None
            raise
        self.attach(browser)

    def attach(self, browser: Browser) -> None:
        """Use ``browser`` as the host for the render page."""
        self._browser = browser
        self._context = None
        self._page = None

    async def get_session(self) -> Page:
        """Return the live render page, creating it when missing or closed."""
        if not self.host_available:
            raise HostUnavailable("No browser is attached to host the render page")
        async with self._lock:
            if self._page is not None and not self._page.is_closed():
                return self._page
            if self._context is None:
                self._context = await self._new_context()
            try:
                page = await self._context.new_page()
            except PlaywrightError:
                # The context died while the browser stayed connected.
                logger.warning("Render context is unusable; creating a new one", exc_info=True)
                self._context = await self._new_context()
                page = await self._context.new_page()
            page.on("dialog", _dismiss_dialog)
            self._page = page
            self.sessions_created += 1
            logger.debug("Created render page #%d", self.sessions_created)
            return page

    async def _new_context(self) -> BrowserContext:
        return await self._browser.new_context(
            java_script_enabled=True,
            bypass_csp=False,
            accept_downloads=False,
            service_workers="block",
            viewport=HIDDEN_VIEWPORT,
            user_agent=self.config.user_agent,
        )

    async def close(self) -> None:
        """Release the page, its context, the browser and Playwright."""
        async with self._lock:
            page, context, browser, playwright = self._page, self._context, self._browser, self._playwright
            self._page = self._context = self._browser = None
            self._playwright = None
        for resource in (page, context, browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except PlaywrightError:
                logger.debug("Failed to close %s", type(resource).__name__, exc_info=True)
        if playwright is not None:
            await playwright.stop()


async def _dismiss_dialog(dialog: Dialog) -> None:
    # alert/confirm would otherwise block the page until the deadline.
    await dialog.dismiss()
