"""
Navigation operations - navigate, wait for load state, selector or timeout.
"""

from __future__ import annotations

from typing import Any

from .params import (
    LOAD_STATES,
    SELECTOR_STATES,
    WAIT_UNTIL,
    NavigateParams,
    WaitForLoadStateParams,
    WaitForSelectorParams,
    WaitForTimeoutParams,
)
from .registry import OperationContext, operation


@operation("navigate", NavigateParams, enumerations={"wait_until": WAIT_UNTIL})
async def navigate(ctx: OperationContext) -> dict[str, Any]:
    """Navigate the page to a URL."""
    page = ctx.page
    response = await page.goto(
        ctx.params.url,
        wait_until=ctx.params.wait_until,
        timeout=ctx.timeout_ms,
    )
    return {
        "url": page.url,
        "title": await page.title(),
        "status": response.status if response else None,
    }


@operation("wait_for_load_state", WaitForLoadStateParams, enumerations={"state": LOAD_STATES})
async def wait_for_load_state(ctx: OperationContext) -> dict[str, Any]:
    """Wait until the page reaches a load state."""
    await ctx.page.wait_for_load_state(ctx.params.state, timeout=ctx.timeout_ms)
    return {"state": ctx.params.state}


@operation("wait_for_selector", WaitForSelectorParams, enumerations={"state": SELECTOR_STATES})
async def wait_for_selector(ctx: OperationContext) -> dict[str, Any]:
    """Wait until an element reaches a state."""
    await ctx.page.wait_for_selector(
        ctx.params.selector,
        state=ctx.params.state,
        timeout=ctx.timeout_ms,
    )
    return {"selector": ctx.params.selector, "state": ctx.params.state}


@operation("wait_for_timeout", WaitForTimeoutParams)
async def wait_for_timeout(ctx: OperationContext) -> dict[str, Any]:
    """Wait for a fixed duration."""
    await ctx.page.wait_for_timeout(ctx.params.duration_ms)
    return {"waited_ms": ctx.params.duration_ms}
