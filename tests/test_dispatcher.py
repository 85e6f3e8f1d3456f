"""
Tests for the per-item operation dispatcher.
"""

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from browser_nodes.dispatcher import OperationDispatcher
from browser_nodes.errors import SchemaError
from browser_nodes.models import OperationRequest
from browser_nodes.schema import CanonicalSchema

ENDPOINT = "ws://localhost:9222/devtools/browser/abc"


def request(operation, parameters=None, **kwargs):
    kwargs.setdefault("endpoint", ENDPOINT)
    return OperationRequest(operation=operation, parameters=parameters or {}, **kwargs)


class TestStaticChecks:
    """Failures that must happen before any session is opened."""

    @pytest.mark.asyncio
    async def test_unknown_operation_never_connects(self, dispatcher, provider):
        result = await dispatcher.run(request("teleport"))

        assert result.failure.kind == "UnsupportedOperationError"
        assert result.operation == "teleport"
        assert provider.acquired == 0
        assert provider.endpoints == []

    @pytest.mark.asyncio
    async def test_bogus_load_state_is_unsupported(self, dispatcher, provider):
        result = await dispatcher.run(request("wait_for_load_state", {"state": "bogus"}))

        assert result.failure.kind == "UnsupportedOperationError"
        assert "bogus" in result.failure.message
        assert provider.acquired == 0

    @pytest.mark.asyncio
    async def test_screenshot_quality_out_of_range(self, dispatcher, provider, page):
        result = await dispatcher.run(request("screenshot", {"quality": 150}))

        assert result.failure.kind == "ValidationError"
        assert "quality" in result.failure.message
        assert provider.acquired == 0
        page.screenshot.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["act", "extract", "observe"])
    async def test_language_operations_need_credential(self, dispatcher, provider, operation):
        parameters = {
            "instruction": "find the title",
            "fields": [{"name": "title", "kind": "string"}],
        }
        result = await dispatcher.run(request(operation, parameters))

        assert result.failure.kind == "ValidationError"
        assert "language model" in result.failure.message
        assert provider.acquired == 0

    @pytest.mark.asyncio
    async def test_missing_required_parameter(self, dispatcher, provider):
        result = await dispatcher.run(request("click"))

        assert result.failure.kind == "ValidationError"
        assert "selector" in result.failure.message
        assert provider.acquired == 0

    @pytest.mark.asyncio
    async def test_missing_endpoint(self, dispatcher, provider):
        result = await dispatcher.run(request("navigate", {"url": "https://example.com"}, endpoint=""))

        assert result.failure.kind == "ValidationError"
        assert "CDP endpoint" in result.failure.message
        assert provider.acquired == 0

    @pytest.mark.asyncio
    async def test_unsupported_mouse_button(self, dispatcher, provider):
        result = await dispatcher.run(request("click", {"selector": "#go", "button": "side"}))

        assert result.failure.kind == "UnsupportedOperationError"
        assert provider.acquired == 0

    @pytest.mark.asyncio
    async def test_bad_extract_schema(self, dispatcher, provider, credential):
        parameters = {
            "instruction": "get it",
            "schema_source": "field_list",
            "fields": [{"name": "title", "kind": "date"}],
        }
        result = await dispatcher.run(request("extract", parameters, credential=credential))

        assert result.failure.kind == "SchemaError"
        assert provider.acquired == 0

    @pytest.mark.asyncio
    async def test_schema_resolver_is_injectable(self, provider, settings, credential):
        def refuse(descriptor):
            raise SchemaError("nope")

        dispatcher = OperationDispatcher(provider, schema_resolver=refuse, settings=settings)
        parameters = {"instruction": "get it", "fields": [{"name": "title", "kind": "string"}]}
        result = await dispatcher.run(request("extract", parameters, credential=credential))

        assert result.failure.kind == "SchemaError"
        assert result.failure.message == "nope"

    @pytest.mark.asyncio
    async def test_schema_resolver_crash_is_contained(self, provider, settings, credential):
        def crash(descriptor):
            raise TypeError("unhashable type: 'dict'")

        dispatcher = OperationDispatcher(provider, schema_resolver=crash, settings=settings)
        parameters = {"instruction": "get it", "fields": [{"name": "title", "kind": "string"}]}
        result = await dispatcher.run(request("extract", parameters, credential=credential))

        assert result.failure.kind == "InternalError"
        assert result.operation == "extract"
        assert provider.acquired == 0


class TestSessionOperations:
    @pytest.mark.asyncio
    async def test_navigate(self, dispatcher, provider, page):
        result = await dispatcher.run(request("navigate", {"url": "https://example.com"}))

        assert result.succeeded
        assert result.payload == {
            "url": "https://example.com/",
            "title": "Example Domain",
            "status": 200,
        }
        page.goto.assert_awaited_once_with("https://example.com", wait_until="load", timeout=30000)
        assert provider.endpoints == [ENDPOINT]
        assert provider.acquired == provider.released == 1

    @pytest.mark.asyncio
    async def test_click_with_camel_case_parameters(self, dispatcher, page):
        result = await dispatcher.run(
            request("click", {"selector": "#go", "button": "right", "clickCount": 2})
        )

        assert result.succeeded
        page.click.assert_awaited_once_with("#go", button="right", click_count=2, timeout=30000)

    @pytest.mark.asyncio
    async def test_fill(self, dispatcher, page):
        result = await dispatcher.run(request("fill", {"selector": "#email", "text": "me@example.com"}))

        assert result.payload == {"action": "fill", "selector": "#email"}
        page.fill.assert_awaited_once_with("#email", "me@example.com", timeout=30000)

    @pytest.mark.asyncio
    async def test_type_uses_key_by_key_typing(self, dispatcher, page):
        result = await dispatcher.run(
            request("type", {"selector": "#q", "text": "hello", "delay_ms": 20})
        )

        assert result.payload["length"] == 5
        page.locator.assert_called_once_with("#q")
        page.locator.return_value.press_sequentially.assert_awaited_once_with(
            "hello", delay=20, timeout=30000
        )

    @pytest.mark.asyncio
    async def test_press_without_selector_uses_keyboard(self, dispatcher, page):
        result = await dispatcher.run(request("press", {"key": "Enter"}))

        assert result.succeeded
        page.keyboard.press.assert_awaited_once_with("Enter")
        page.press.assert_not_called()

    @pytest.mark.asyncio
    async def test_select_option_accepts_single_value(self, dispatcher, page):
        result = await dispatcher.run(request("select_option", {"selector": "#color", "values": "blue"}))

        assert result.payload["selected"] == ["blue"]
        page.select_option.assert_awaited_once_with("#color", ["blue"], timeout=30000)

    @pytest.mark.asyncio
    async def test_screenshot_attachment(self, dispatcher, page, provider):
        result = await dispatcher.run(request("screenshot", {"fullPage": True}))

        assert result.succeeded
        page.screenshot.assert_awaited_once_with(
            full_page=True, type="jpeg", quality=80, timeout=30000
        )
        attachment = result.attachments["screenshot"]
        assert attachment.mime_type == "image/jpeg"
        assert attachment.file_name == "screenshot.jpg"

        item = result.to_item()
        binary = item["binary"]["screenshot"]
        assert base64.b64decode(binary["data"]) == b"\xff\xd8\xff\xe0jpeg"
        assert item["result"]["full_page"] is True
        assert provider.released == 1

    @pytest.mark.asyncio
    async def test_evaluate_returns_json_safe_value(self, dispatcher, page):
        page.evaluate.return_value = {"when": object()}
        result = await dispatcher.run(request("evaluate", {"script": "() => 1"}))

        assert result.succeeded
        assert isinstance(result.payload["result"]["when"], str)

    @pytest.mark.asyncio
    async def test_wait_for_selector(self, dispatcher, page):
        result = await dispatcher.run(
            request("wait_for_selector", {"selector": ".done", "state": "attached"})
        )

        assert result.payload == {"selector": ".done", "state": "attached"}
        page.wait_for_selector.assert_awaited_once_with(".done", state="attached", timeout=30000)


class TestFailures:
    """Every failure is a failed result and the session is still released."""

    @pytest.mark.asyncio
    async def test_connection_refused(self, refused_provider, settings):
        dispatcher = OperationDispatcher(refused_provider, settings=settings)
        result = await dispatcher.run(request("navigate", {"url": "https://example.com"}))

        assert result.failure.kind == "ConnectionError"
        assert refused_provider.acquired == 0

    @pytest.mark.asyncio
    async def test_playwright_error_is_action_error(self, dispatcher, provider, page):
        page.click.side_effect = PlaywrightError("Element is not attached to the DOM")
        result = await dispatcher.run(request("click", {"selector": "#gone"}))

        assert result.failure.kind == "ActionError"
        assert "not attached" in result.failure.message
        assert provider.acquired == provider.released == 1

    @pytest.mark.asyncio
    async def test_playwright_timeout_is_timeout_error(self, dispatcher, provider, page):
        page.wait_for_selector.side_effect = PlaywrightTimeout("Timeout 30000ms exceeded")
        result = await dispatcher.run(request("wait_for_selector", {"selector": "#never"}))

        assert result.failure.kind == "TimeoutError"
        assert provider.acquired == provider.released == 1

    @pytest.mark.asyncio
    async def test_playwright_timeout_without_request_bound(self, dispatcher, page):
        page.wait_for_selector.side_effect = PlaywrightTimeout("Timeout 30000ms exceeded")
        result = await dispatcher.run(request("wait_for_selector", {"selector": "#never"}, timeout_ms=0))

        assert result.failure.kind == "TimeoutError"
        assert "Timeout 30000ms exceeded" in result.failure.message
        assert "after 0ms" not in result.failure.message

    @pytest.mark.asyncio
    async def test_time_bound_overrun(self, dispatcher, provider, page):
        async def slow_goto(*args, **kwargs):
            await asyncio.sleep(5)

        page.goto.side_effect = slow_goto
        result = await dispatcher.run(
            request("navigate", {"url": "https://example.com"}, timeout_ms=20)
        )

        assert result.failure.kind == "TimeoutError"
        assert "20ms" in result.failure.message
        assert provider.acquired == provider.released == 1

    @pytest.mark.asyncio
    async def test_zero_timeout_means_no_bound(self, dispatcher, page):
        async def short_goto(*args, **kwargs):
            await asyncio.sleep(0.01)
            return MagicMock(status=204)

        page.goto.side_effect = short_goto
        result = await dispatcher.run(
            request("navigate", {"url": "https://example.com"}, timeout_ms=0)
        )

        assert result.succeeded
        assert result.payload["status"] == 204

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_internal_error(self, dispatcher, provider, page):
        page.evaluate.side_effect = RuntimeError("boom")
        result = await dispatcher.run(request("evaluate", {"script": "1"}))

        assert result.failure.kind == "InternalError"
        assert result.failure.message == "boom"
        assert provider.acquired == provider.released == 1


class TestLanguageOperations:
    @pytest.fixture
    def agent(self):
        agent = MagicMock()
        agent.act = AsyncMock(return_value={"success": True, "message": "clicked"})
        agent.observe = AsyncMock(return_value=[{"selector": "xpath=/html[1]/body[1]/a[1]"}])
        agent.extract = AsyncMock(return_value={"title": "Example Domain"})
        agent.accessibility_tree = AsyncMock(return_value={"accessibility_tree": "", "xpaths": []})
        return agent

    @pytest.fixture
    def agent_factory(self, agent):
        return MagicMock(return_value=agent)

    @pytest.fixture
    def llm_factory(self):
        return MagicMock()

    @pytest.fixture
    def language_dispatcher(self, provider, settings, agent_factory, llm_factory):
        return OperationDispatcher(
            provider,
            agent_factory=agent_factory,
            llm_factory=llm_factory,
            settings=settings,
        )

    @pytest.mark.asyncio
    async def test_act(
        self, language_dispatcher, agent, agent_factory, llm_factory, credential, page, settings
    ):
        result = await language_dispatcher.run(
            request("act", {"instruction": "click sign in"}, credential=credential, enable_caching=False)
        )

        assert result.payload == {"success": True, "message": "clicked"}
        agent.act.assert_awaited_once_with("click sign in")
        llm_factory.assert_called_once_with(credential, enable_caching=False, settings=settings)
        agent_factory.assert_called_once_with(page, llm_factory.return_value, settings)

    @pytest.mark.asyncio
    async def test_extract_passes_resolved_schema(self, language_dispatcher, agent, credential):
        parameters = {
            "instruction": "get the title",
            "schema_source": "example",
            "example_json": '{"title": "x", "count": 1}',
        }
        result = await language_dispatcher.run(request("extract", parameters, credential=credential))

        assert result.payload == {"title": "Example Domain"}
        instruction, schema = agent.extract.await_args.args
        assert instruction == "get the title"
        assert isinstance(schema, CanonicalSchema)
        assert schema.names == ["title", "count"]

    @pytest.mark.asyncio
    async def test_observe_allows_empty_instruction(self, language_dispatcher, agent, credential):
        result = await language_dispatcher.run(request("observe", credential=credential))

        assert result.succeeded
        agent.observe.assert_awaited_once_with("")

    @pytest.mark.asyncio
    async def test_accessibility_tree_needs_no_credential(
        self, language_dispatcher, agent_factory, llm_factory, page, settings
    ):
        result = await language_dispatcher.run(request("accessibility_tree"))

        assert result.succeeded
        llm_factory.assert_not_called()
        agent_factory.assert_called_once_with(page, None, settings)


class TestExecutablePath:
    @pytest.mark.asyncio
    async def test_runs_without_session(self, dispatcher, provider):
        playwright = MagicMock()
        playwright.chromium.executable_path = "/opt/chromium/chrome"
        manager = MagicMock()
        manager.__aenter__.return_value = playwright

        with patch("browser_nodes.operations.system.async_playwright", return_value=manager):
            result = await dispatcher.run(request("executable_path", endpoint=""))

        assert result.payload == {"executable_path": "/opt/chromium/chrome"}
        assert provider.acquired == 0
