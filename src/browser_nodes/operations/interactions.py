"""
Interaction operations - click, fill, type, press, select.
"""

from __future__ import annotations

from typing import Any

from .params import (
    MOUSE_BUTTONS,
    ClickParams,
    FillParams,
    PressParams,
    SelectOptionParams,
    TypeParams,
)
from .registry import OperationContext, operation


@operation("click", ClickParams, enumerations={"button": MOUSE_BUTTONS})
async def click(ctx: OperationContext) -> dict[str, Any]:
    """Click an element."""
    params = ctx.params
    await ctx.page.click(
        params.selector,
        button=params.button,
        click_count=params.click_count,
        timeout=ctx.timeout_ms,
    )
    return {"action": "click", "selector": params.selector}


@operation("fill", FillParams)
async def fill(ctx: OperationContext) -> dict[str, Any]:
    """Replace the content of an input element."""
    await ctx.page.fill(ctx.params.selector, ctx.params.text, timeout=ctx.timeout_ms)
    return {"action": "fill", "selector": ctx.params.selector}


@operation("type", TypeParams)
async def type_text(ctx: OperationContext) -> dict[str, Any]:
    """Type text into an element key by key."""
    params = ctx.params
    await ctx.page.locator(params.selector).press_sequentially(
        params.text,
        delay=params.delay_ms,
        timeout=ctx.timeout_ms,
    )
    return {"action": "type", "selector": params.selector, "length": len(params.text)}


@operation("press", PressParams)
async def press(ctx: OperationContext) -> dict[str, Any]:
    """Press a key, optionally on a focused element."""
    params = ctx.params
    if params.selector:
        await ctx.page.press(params.selector, params.key, timeout=ctx.timeout_ms)
    else:
        await ctx.page.keyboard.press(params.key)
    return {"action": "press", "key": params.key, "selector": params.selector}


@operation("select_option", SelectOptionParams)
async def select_option(ctx: OperationContext) -> dict[str, Any]:
    """Select options in a <select> element."""
    selected = await ctx.page.select_option(
        ctx.params.selector,
        ctx.params.values,
        timeout=ctx.timeout_ms,
    )
    return {"action": "select_option", "selector": ctx.params.selector, "selected": selected}
