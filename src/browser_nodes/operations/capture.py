"""
Capture operations - screenshot, evaluate, accessibility tree.
"""

from __future__ import annotations

import json
from typing import Any

from ..models import BinaryAttachment, OperationResult
from .params import EvaluateParams, NoParams, ScreenshotParams
from .registry import OperationContext, operation

SCREENSHOT_MIME_TYPE = "image/jpeg"
SCREENSHOT_FILE_NAME = "screenshot.jpg"


@operation("screenshot", ScreenshotParams)
async def screenshot(ctx: OperationContext) -> OperationResult:
    """Take a JPEG screenshot of the page."""
    params = ctx.params
    quality = params.quality if params.quality is not None else ctx.settings.screenshot_quality
    data = await ctx.page.screenshot(
        full_page=params.full_page,
        type="jpeg",
        quality=quality,
        timeout=ctx.timeout_ms,
    )
    attachment = BinaryAttachment(
        data=data,
        mime_type=SCREENSHOT_MIME_TYPE,
        file_name=SCREENSHOT_FILE_NAME,
    )
    return OperationResult.ok(
        ctx.request.operation,
        payload={
            "success": True,
            "full_page": params.full_page,
            "quality": quality,
            "size": len(data),
        },
        attachments={"screenshot": attachment},
    )


@operation("evaluate", EvaluateParams)
async def evaluate(ctx: OperationContext) -> dict[str, Any]:
    """Evaluate a JavaScript expression in the page."""
    value = await ctx.page.evaluate(ctx.params.script)
    # Values Playwright cannot map to JSON types are stringified
    return {"result": json.loads(json.dumps(value, default=str))}


@operation("accessibility_tree", NoParams, uses_agent=True)
async def accessibility_tree(ctx: OperationContext) -> dict[str, Any]:
    """Return the indexed element tree with the xpath of every index."""
    return await ctx.agent.accessibility_tree()
