"""Shared fixtures for the browser node tests."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from browser_nodes.config import NodeSettings
from browser_nodes.dispatcher import OperationDispatcher
from browser_nodes.errors import BrowserConnectionError
from browser_nodes.models import ModelCredential
from browser_nodes.session import BrowserSession


class FakeSessionProvider:
    """Session provider handing out sessions bound to a mocked page."""

    def __init__(self, page, connect_error=None):
        self.page = page
        self.connect_error = connect_error
        self.acquired = 0
        self.released = 0
        self.endpoints = []

    @asynccontextmanager
    async def acquire(self, endpoint, credential=None):
        self.endpoints.append(endpoint)
        if self.connect_error is not None:
            raise self.connect_error
        self.acquired += 1
        session = BrowserSession(endpoint=endpoint, page=self.page, credential=credential)
        try:
            yield session
        finally:
            await session.release()
            self.released += 1


def make_page():
    page = MagicMock()
    page.url = "https://example.com/"
    page.goto = AsyncMock(return_value=MagicMock(status=200))
    page.title = AsyncMock(return_value="Example Domain")
    page.click = AsyncMock()
    page.fill = AsyncMock()
    page.press = AsyncMock()
    page.select_option = AsyncMock(return_value=["blue"])
    page.wait_for_load_state = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.screenshot = AsyncMock(return_value=b"\xff\xd8\xff\xe0jpeg")
    page.evaluate = AsyncMock(return_value=42)
    page.keyboard.press = AsyncMock()

    locator = MagicMock()
    for method in ("click", "fill", "press", "press_sequentially", "select_option", "hover", "check", "uncheck"):
        setattr(locator, method, AsyncMock())
    page.locator = MagicMock(return_value=locator)
    return page


@pytest.fixture
def settings():
    return NodeSettings(
        _env_file=None,
        default_timeout_ms=5000,
        connect_timeout_ms=5000,
        screenshot_quality=80,
        snapshot_max_chars=1000,
    )


@pytest.fixture
def page():
    return make_page()


@pytest.fixture
def provider(page):
    return FakeSessionProvider(page)


@pytest.fixture
def refused_provider(page):
    return FakeSessionProvider(
        page,
        connect_error=BrowserConnectionError("Could not connect to ws://nowhere"),
    )


@pytest.fixture
def dispatcher(provider, settings):
    return OperationDispatcher(provider, settings=settings)


@pytest.fixture
def credential():
    return ModelCredential(
        provider_namespace="openai",
        model_name="gpt-4o-mini",
        api_key="sk-test",
    )
