"""
Natural-language operations - act, extract, observe.

All three need an attached model credential; the dispatcher checks it before
any session is opened.
"""

from __future__ import annotations

from typing import Any

from .params import InstructionParams, ObserveParams
from .registry import OperationContext, operation


@operation("act", InstructionParams, needs_credential=True, uses_agent=True)
async def act(ctx: OperationContext) -> dict[str, Any]:
    """Perform an action described in natural language."""
    return await ctx.agent.act(ctx.params.instruction)


@operation(
    "extract",
    InstructionParams,
    needs_credential=True,
    needs_schema=True,
    uses_agent=True,
)
async def extract(ctx: OperationContext) -> dict[str, Any]:
    """Extract structured data shaped by a schema."""
    return await ctx.agent.extract(ctx.params.instruction, ctx.schema)


@operation("observe", ObserveParams, needs_credential=True, uses_agent=True)
async def observe(ctx: OperationContext) -> list[dict[str, Any]]:
    """List elements matching a natural-language instruction."""
    return await ctx.agent.observe(ctx.params.instruction)
