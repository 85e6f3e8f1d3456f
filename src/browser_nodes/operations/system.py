"""
Operations that do not touch a remote browser.
"""

from __future__ import annotations

from typing import Any

from playwright.async_api import async_playwright

from .params import NoParams
from .registry import OperationContext, operation


@operation("executable_path", NoParams, needs_session=False)
async def executable_path(ctx: OperationContext) -> dict[str, Any]:
    """Return the path of the locally installed Chromium executable."""
    async with async_playwright() as p:
        return {"executable_path": p.chromium.executable_path}
