"""
Tests for the MCP tool surface.
"""

import pytest
from fastmcp import FastMCP

from browser_nodes import register_node_tools

ENDPOINT = "ws://localhost:9222/devtools/browser/abc"


@pytest.fixture
def mcp(dispatcher):
    mcp = FastMCP("test")
    register_node_tools(mcp, dispatcher)
    return mcp


def tool(mcp, name):
    return mcp._tool_manager._tools[name].fn


def test_registers_tools(dispatcher):
    mcp = FastMCP("test")
    names = register_node_tools(mcp, dispatcher)

    assert names == ["browser_node_run", "browser_node_batch", "browser_node_operations"]
    assert set(names) <= set(mcp._tool_manager._tools)


@pytest.mark.asyncio
async def test_run_navigate(mcp, provider):
    run = tool(mcp, "browser_node_run")

    item = await run(operation="navigate", cdp_url=ENDPOINT, parameters={"url": "https://example.com"})

    assert item["operation"] == "navigate"
    assert item["result"]["title"] == "Example Domain"
    assert provider.acquired == provider.released == 1


@pytest.mark.asyncio
async def test_run_screenshot_returns_binary(mcp):
    run = tool(mcp, "browser_node_run")

    item = await run(operation="screenshot", cdp_url=ENDPOINT, parameters={"quality": 50})

    assert item["binary"]["screenshot"]["mime_type"] == "image/jpeg"
    assert item["result"]["quality"] == 50


@pytest.mark.asyncio
async def test_run_partial_credential_is_rejected(mcp, provider):
    run = tool(mcp, "browser_node_run")

    item = await run(
        operation="act",
        cdp_url=ENDPOINT,
        parameters={"instruction": "click login"},
        model_provider="openai",
        model_name="gpt-4o-mini",
    )

    assert item["failure"]["kind"] == "ValidationError"
    assert "credential" in item["failure"]["message"]
    assert provider.acquired == 0


@pytest.mark.asyncio
async def test_run_negative_timeout(mcp, provider):
    run = tool(mcp, "browser_node_run")

    item = await run(operation="navigate", cdp_url=ENDPOINT, parameters={"url": "https://a.example"}, timeout_ms=-5)

    assert item["failure"]["kind"] == "ValidationError"
    assert provider.acquired == 0


@pytest.mark.asyncio
async def test_batch_keeps_one_output_per_item(mcp, provider):
    batch = tool(mcp, "browser_node_batch")

    output = await batch(
        items=[
            {"operation": "navigate", "cdp_url": ENDPOINT, "parameters": {"url": "https://a.example"}},
            {"operation": "teleport", "cdp_url": ENDPOINT},
            {"operation": "observe", "cdp_url": ENDPOINT},
        ]
    )

    kinds = [item.get("failure", {}).get("kind") for item in output["items"]]
    assert kinds == [None, "UnsupportedOperationError", "ValidationError"]
    assert provider.acquired == provider.released == 1


@pytest.mark.asyncio
async def test_batch_with_invalid_credential(mcp, provider):
    batch = tool(mcp, "browser_node_batch")

    output = await batch(
        items=[{"operation": "navigate", "cdp_url": ENDPOINT, "url": "https://a.example"}],
        model_provider="openai",
        model_name="",
        model_api_key="sk-test",
    )

    assert output["items"][0]["failure"]["kind"] == "ValidationError"
    assert provider.acquired == 0


def test_operations_listing(mcp):
    listing = tool(mcp, "browser_node_operations")()
    operations = {op["id"]: op for op in listing["operations"]}

    assert set(operations) == {
        "navigate",
        "click",
        "fill",
        "type",
        "press",
        "select_option",
        "wait_for_selector",
        "wait_for_load_state",
        "wait_for_timeout",
        "screenshot",
        "evaluate",
        "act",
        "extract",
        "observe",
        "accessibility_tree",
        "executable_path",
    }
    assert operations["fill"]["required"] == ["selector", "text"]
    assert operations["act"]["needs_credential"] is True
    assert operations["executable_path"]["needs_session"] is False
    assert operations["wait_for_load_state"]["enumerations"] == {
        "state": ["load", "domcontentloaded", "networkidle"]
    }
