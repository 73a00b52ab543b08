"""Navigate, settle and extract for one request on the shared render page."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from playwright.async_api import Error as PlaywrightError

from .config import FetchConfig
from .errors import FetchError, LoadFailure, LoadTimeout
from .extraction import ExtractionEngine
from .models import DocumentSnapshot, ExtractionResult
from .session import RenderSessionManager

logger = logging.getLogger("votewatch")

SNAPSHOT_SCRIPT = """() => JSON.stringify({
  url: window.location.href || '',
  title: document.title || '',
  readyState: document.readyState,
  html: document.documentElement ? document.documentElement.outerHTML : '',
  text: document.body ? (document.body.innerText || document.body.textContent || '') : ''
})"""

READY_STATE_SCRIPT = "() => document.readyState"

NET_ERROR_PATTERN = re.compile(r"net::(ERR_[A-Z0-9_]+)")

CHROMIUM_NET_ERRORS: Dict[str, int] = {
    "ERR_FAILED": -2,
    "ERR_ABORTED": -3,
    "ERR_TIMED_OUT": -7,
    "ERR_BLOCKED_BY_CLIENT": -20,
    "ERR_NETWORK_CHANGED": -21,
    "ERR_BLOCKED_BY_RESPONSE": -27,
    "ERR_CONNECTION_CLOSED": -100,
    "ERR_CONNECTION_RESET": -101,
    "ERR_CONNECTION_REFUSED": -102,
    "ERR_NAME_NOT_RESOLVED": -105,
    "ERR_INTERNET_DISCONNECTED": -106,
    "ERR_SSL_PROTOCOL_ERROR": -107,
    "ERR_ADDRESS_UNREACHABLE": -109,
    "ERR_CERT_COMMON_NAME_INVALID": -200,
    "ERR_CERT_DATE_INVALID": -201,
    "ERR_CERT_AUTHORITY_INVALID": -202,
    "ERR_TOO_MANY_REDIRECTS": -310,
    "ERR_EMPTY_RESPONSE": -324,
}

# Aborted or superseded navigations often still leave a complete document.
CHROMIUM_PROBE_CODES = frozenset({-3, -21})


class NavigationAction(Enum):
    PROBE = "probe"
    FATAL = "fatal"


@dataclass(frozen=True)
class NavigationFailure:
    """A navigation error mapped onto the rendering engine's error table."""

    description: str
    action: NavigationAction
    code: Optional[int] = None
    name: Optional[str] = None

    def to_error(self) -> LoadFailure:
        return LoadFailure(self.description, code=self.code, name=self.name)


class NavigationErrorPolicy:
    """Decide whether a navigation error is fatal or worth a ready-state probe."""

    def __init__(
        self,
        codes: Mapping[str, int] = CHROMIUM_NET_ERRORS,
        probe_codes: FrozenSet[int] = CHROMIUM_PROBE_CODES,
    ) -> None:
        self.codes = dict(codes)
        self.probe_codes = frozenset(probe_codes)

    def classify(self, error: BaseException) -> NavigationFailure:
        message = str(error).strip()
        description = message.splitlines()[0] if message else type(error).__name__
        match = NET_ERROR_PATTERN.search(message)
        name = match.group(1) if match else None
        code = self.codes.get(name) if name else None
        action = NavigationAction.PROBE if code in self.probe_codes else NavigationAction.FATAL
        return NavigationFailure(description=name or description, action=action, code=code, name=name)


class LifecycleState(Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    LOADED = "loaded"
    SETTLING = "settling"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset(
    {LifecycleState.COMPLETED, LifecycleState.FAILED, LifecycleState.TIMED_OUT}
)


@dataclass
class LifecycleContext:
    """State of the request currently holding the render page."""

    url: str
    page: Any
    started_at: float
    future: "asyncio.Future[ExtractionResult]"
    timeout_handle: Optional[asyncio.TimerHandle] = None
    state: LifecycleState = LifecycleState.IDLE
    transitions: List[LifecycleState] = field(default_factory=list)
    resolved: bool = False

    def transition(self, state: LifecycleState) -> None:
        if self.resolved:
            return
        logger.debug("%s: %s -> %s", self.url, self.state.value, state.value)
        self.state = state
        self.transitions.append(state)

    def settle(
        self,
        state: LifecycleState,
        result: Optional[ExtractionResult] = None,
        error: Optional[BaseException] = None,
    ) -> bool:
        """Resolve the request once; later calls return False and do nothing."""
        if state not in TERMINAL_STATES:
            raise ValueError(f"{state.value} is not a terminal state")
        if self.resolved:
            return False
        self.transition(state)
        self.resolved = True
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
        if not self.future.done():
            if error is not None:
                self.future.set_exception(error)
            else:
                self.future.set_result(result)
        return True


class LoadLifecycle:
    """Drive one request through navigate, settle and extract on the shared page."""

    def __init__(
        self,
        sessions: RenderSessionManager,
        config: Optional[FetchConfig] = None,
        engine: Optional[ExtractionEngine] = None,
        policy: Optional[NavigationErrorPolicy] = None,
    ) -> None:
        self.sessions = sessions
        self.config = config or FetchConfig()
        self.engine = engine or ExtractionEngine(self.config)
        self.policy = policy or NavigationErrorPolicy()
        self._active: Optional[LifecycleContext] = None
        self.last_context: Optional[LifecycleContext] = None

    @property
    def in_flight(self) -> int:
        return 0 if self._active is None else 1

    @property
    def active(self) -> Optional[LifecycleContext]:
        return self._active

    async def run(self, url: str) -> ExtractionResult:
        """Render ``url`` and extract its data, or raise a :class:`FetchError`."""
        if self._active is not None:
            raise RuntimeError("A render is already in flight on the shared page")
        page = await self.sessions.get_session()
        loop = asyncio.get_running_loop()
        context = LifecycleContext(
            url=url,
            page=page,
            started_at=loop.time(),
            future=loop.create_future(),
        )
        self._active = self.last_context = context
        context.timeout_handle = loop.call_later(self.config.load_timeout, self._on_timeout, context)
        driver = asyncio.ensure_future(self._drive(context))
        try:
            return await context.future
        finally:
            context.timeout_handle.cancel()
            if not driver.done():
                driver.cancel()
                await asyncio.gather(driver, return_exceptions=True)
            self._active = None
            logger.info(
                "Finished %s in %.2fs (%s)",
                url,
                loop.time() - context.started_at,
                context.state.value,
            )

    def _on_timeout(self, context: LifecycleContext) -> None:
        error = LoadTimeout(context.url, self.config.load_timeout)
        if context.settle(LifecycleState.TIMED_OUT, error=error):
            logger.warning("%s", error)

    async def _drive(self, context: LifecycleContext) -> None:
        try:
            result = await self._load_and_extract(context)
        except FetchError as exc:
            if context.settle(LifecycleState.FAILED, error=exc):
                logger.warning("Fetching %s failed: %s", context.url, exc)
        except PlaywrightError as exc:
            error = self.policy.classify(exc).to_error()
            if context.settle(LifecycleState.FAILED, error=error):
                logger.warning("Fetching %s failed: %s", context.url, error)
        except Exception as exc:  # pylint: disable=broad-except
            context.settle(LifecycleState.FAILED, error=exc)
        else:
            context.settle(LifecycleState.COMPLETED, result=result)

    async def _load_and_extract(self, context: LifecycleContext) -> ExtractionResult:
        page = context.page
        context.transition(LifecycleState.NAVIGATING)
        logger.info("Loading %s", context.url)
        try:
            # The lifecycle deadline governs; Playwright's own timeout is disabled.
            await page.goto(context.url, wait_until="load", timeout=0)
        except PlaywrightError as exc:
            failure = self.policy.classify(exc)
            if failure.action is not NavigationAction.PROBE:
                raise failure.to_error() from exc
            logger.warning(
                "Navigation to %s aborted (%s, %s); probing document state",
                context.url,
                failure.name,
                failure.code,
            )
            await self._probe_ready_state(context, failure)
        else:
            context.transition(LifecycleState.LOADED)

        context.transition(LifecycleState.SETTLING)
        await asyncio.sleep(self.config.settle_delay)

        context.transition(LifecycleState.EXTRACTING)
        if page.is_closed():
            raise LoadFailure("Render page was closed before extraction")
        payload = await page.evaluate(SNAPSHOT_SCRIPT)
        snapshot = DocumentSnapshot.from_json(payload)
        return self.engine.extract(snapshot)

    async def _probe_ready_state(self, context: LifecycleContext, failure: NavigationFailure) -> None:
        await asyncio.sleep(self.config.probe_delay)
        try:
            ready_state = await context.page.evaluate(READY_STATE_SCRIPT)
        except PlaywrightError as exc:
            raise failure.to_error() from exc
        if ready_state != "complete":
            raise failure.to_error()
        context.transition(LifecycleState.LOADED)
