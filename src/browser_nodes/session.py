"""
Browser session management.

Connects to a remote browser over the Chrome DevTools Protocol for exactly
one operation request. A session reuses the remote side's first browsing
context and page when they exist, otherwise it creates one of each, and it
is always closed before the request completes.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Protocol

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeout,
    async_playwright,
)

from .config import NodeSettings, get_settings
from .errors import BrowserConnectionError, ErrorContext
from .logging_config import get_logger
from .models import ModelCredential

logger = get_logger(__name__)


@dataclass
class BrowserSession:
    """
    A connection bound to one CDP endpoint.

    Owns at most one browsing context and one page. ``release`` is
    idempotent and never raises.
    """

    endpoint: str
    browser: Browser | None = None
    context: BrowserContext | None = None
    page: Page | None = None
    credential: ModelCredential | None = None
    created_context: bool = False
    created_page: bool = False
    _playwright: Any = None
    _released: bool = False

    @property
    def released(self) -> bool:
        return self._released

    def require_page(self) -> Page:
        """Return the session page."""
        if self._released or self.page is None:
            raise BrowserConnectionError(
                "Browser session is not active",
                context=ErrorContext(metadata={"endpoint": self.endpoint}),
            )
        return self.page

    async def release(self) -> None:
        """Disconnect from the browser and stop Playwright."""
        if self._released:
            return
        self._released = True

        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                logger.warning("session_close_failed", endpoint=self.endpoint, error=str(e))
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning("playwright_stop_failed", endpoint=self.endpoint, error=str(e))

        self.browser = None
        self.context = None
        self.page = None
        self._playwright = None
        logger.debug("session_released", endpoint=self.endpoint)


class SessionProvider(Protocol):
    """Anything that can hand out a scoped browser session."""

    def acquire(
        self,
        endpoint: str,
        credential: ModelCredential | None = None,
    ) -> Any:  # async context manager yielding BrowserSession
        ...


class CdpSessionProvider:
    """
    Opens one CDP session per request.

    There is no connection pool: every request pays for its own connect and
    teardown, and a failing request can never leave state behind for the next.

    Usage:
        provider = CdpSessionProvider()
        async with provider.acquire("ws://localhost:9222/devtools/browser/...") as session:
            await session.require_page().goto("https://example.com")
    """

    def __init__(
        self,
        settings: NodeSettings | None = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        self.settings = settings or get_settings()
        self._playwright_factory = playwright_factory

    async def open(self, endpoint: str, credential: ModelCredential | None = None) -> BrowserSession:
        """
        Connect to ``endpoint`` and select a context and page.

        Raises:
            BrowserConnectionError: On refused connection, handshake failure
                or connect timeout.
        """
        context = ErrorContext(metadata={"endpoint": endpoint})
        try:
            playwright = await self._playwright_factory().start()
        except PlaywrightError as e:
            raise BrowserConnectionError(
                f"Could not start Playwright: {e.message}", context=context, cause=e
            ) from e
        session = BrowserSession(endpoint=endpoint, credential=credential, _playwright=playwright)

        try:
            session.browser = await playwright.chromium.connect_over_cdp(
                endpoint,
                timeout=self.settings.connect_timeout_ms,
            )
        except PlaywrightTimeout as e:
            await session.release()
            raise BrowserConnectionError(
                f"Timed out connecting to {endpoint}", context=context, cause=e
            ) from e
        except PlaywrightError as e:
            await session.release()
            raise BrowserConnectionError(
                f"Could not connect to {endpoint}: {e.message}", context=context, cause=e
            ) from e

        try:
            contexts = session.browser.contexts
            if contexts:
                session.context = contexts[0]
            else:
                session.context = await session.browser.new_context()
                session.created_context = True

            pages = session.context.pages
            if pages:
                session.page = pages[0]
            else:
                session.page = await session.context.new_page()
                session.created_page = True

            session.context.set_default_timeout(self.settings.default_timeout_ms)
            session.context.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        except PlaywrightError as e:
            await session.release()
            raise BrowserConnectionError(
                f"Could not open a page on {endpoint}: {e.message}", context=context, cause=e
            ) from e

        logger.debug(
            "session_acquired",
            endpoint=endpoint,
            created_context=session.created_context,
            created_page=session.created_page,
        )
        return session

    @asynccontextmanager
    async def acquire(
        self,
        endpoint: str,
        credential: ModelCredential | None = None,
    ) -> AsyncIterator[BrowserSession]:
        """Yield a session that is released on every exit path."""
        session = await self.open(endpoint, credential)
        try:
            yield session
        finally:
            await session.release()
