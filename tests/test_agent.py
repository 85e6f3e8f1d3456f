"""
Tests for the natural-language page agent.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from browser_nodes.agent import PageAgent
from browser_nodes.errors import ActionError, LLMOutputParsingError
from browser_nodes.schema import parse_schema_expression

SNAPSHOT = {
    "url": "https://example.com/login",
    "title": "Sign in",
    "text": "Welcome back. Sign in to continue. Price: 42",
    "elements": [
        {"tag": "input", "role": "textbox", "name": "Email", "xpath": "/html[1]/body[1]/form[1]/input[1]"},
        {"tag": "button", "role": "button", "name": "Sign in", "xpath": "/html[1]/body[1]/form[1]/button[1]"},
        {"tag": "a", "role": "link", "name": "", "xpath": "/html[1]/body[1]/a[1]"},
    ],
}


@pytest.fixture
def llm():
    llm = MagicMock()
    llm.complete_json = AsyncMock()
    return llm


@pytest.fixture
def agent(page, llm, settings):
    page.evaluate = AsyncMock(return_value=SNAPSHOT)
    return PageAgent(page, llm, settings)


@pytest.mark.asyncio
async def test_accessibility_tree_is_indexed_from_zero(agent):
    tree = await agent.accessibility_tree()

    assert tree["accessibility_tree"].splitlines() == [
        '[0] textbox: "Email"',
        '[1] button: "Sign in"',
        "[2] link",
    ]
    assert tree["xpaths"][1] == "/html[1]/body[1]/form[1]/button[1]"
    assert tree["title"] == "Sign in"


@pytest.mark.asyncio
async def test_snapshot_text_is_truncated(page, llm, settings):
    page.evaluate = AsyncMock(return_value={**SNAPSHOT, "text": "x" * 5000})
    snapshot = await PageAgent(page, llm, settings).snapshot()

    assert snapshot.text.startswith("x" * settings.snapshot_max_chars)
    assert snapshot.text.endswith("(truncated)")


@pytest.mark.asyncio
async def test_observe_maps_indices_to_xpaths(agent, llm):
    llm.complete_json.return_value = {
        "elements": [
            {"index": 1, "description": "Sign in button", "method": "click", "arguments": []},
            {"index": 7, "description": "does not exist"},
            {"index": 0, "method": "teleport"},
        ]
    }

    candidates = await agent.observe("sign in")

    assert candidates == [
        {
            "selector": "xpath=/html[1]/body[1]/form[1]/button[1]",
            "description": "Sign in button",
            "method": "click",
            "arguments": [],
        },
        {
            "selector": "xpath=/html[1]/body[1]/form[1]/input[1]",
            "description": "Email",
            "method": "click",
            "arguments": [],
        },
    ]
    prompt = llm.complete_json.await_args.kwargs["prompt"]
    assert '[1] button: "Sign in"' in prompt


@pytest.mark.asyncio
async def test_observe_rejects_malformed_answer(agent, llm):
    llm.complete_json.return_value = ["not", "an", "object"]

    with pytest.raises(LLMOutputParsingError):
        await agent.observe("anything")


@pytest.mark.asyncio
async def test_act_performs_first_candidate(agent, llm, page):
    llm.complete_json.return_value = {
        "elements": [{"index": 0, "description": "Email field", "method": "fill", "arguments": ["me@example.com"]}]
    }

    result = await agent.act("type my email")

    assert result["success"] is True
    assert result["selector"] == "xpath=/html[1]/body[1]/form[1]/input[1]"
    page.locator.assert_called_once_with("xpath=/html[1]/body[1]/form[1]/input[1]")
    page.locator.return_value.fill.assert_awaited_once_with("me@example.com")


@pytest.mark.asyncio
async def test_act_without_candidate_is_not_an_error(agent, llm, page):
    llm.complete_json.return_value = {"elements": []}

    result = await agent.act("open the settings")

    assert result["success"] is False
    page.locator.assert_not_called()


@pytest.mark.asyncio
async def test_act_fill_without_argument(agent, llm):
    llm.complete_json.return_value = {"elements": [{"index": 0, "method": "fill"}]}

    with pytest.raises(ActionError):
        await agent.act("fill the email")


@pytest.mark.asyncio
async def test_extract_validates_against_schema(agent, llm):
    schema = parse_schema_expression(
        'z.object({title: z.string(), price: z.number(), note: z.string().optional()})'
    )
    llm.complete_json.return_value = {"title": "Sign in", "price": 42}

    data = await agent.extract("get the title and price", schema)

    assert data == {"title": "Sign in", "price": 42}
    prompt = llm.complete_json.await_args.kwargs["prompt"]
    assert '"required": [' in prompt
    assert "Price: 42" in prompt


@pytest.mark.asyncio
async def test_extract_rejects_mismatched_answer(agent, llm):
    schema = parse_schema_expression("z.object({price: z.number()})")
    llm.complete_json.return_value = {"price": "not a number"}

    with pytest.raises(ActionError) as exc_info:
        await agent.extract("get the price", schema)

    assert "price" in exc_info.value.message


@pytest.mark.asyncio
async def test_language_operations_need_a_model(page, settings):
    page.evaluate = AsyncMock(return_value=SNAPSHOT)
    agent = PageAgent(page, None, settings)

    with pytest.raises(ActionError):
        await agent.observe("anything")
