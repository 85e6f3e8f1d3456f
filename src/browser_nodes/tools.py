"""
Browser node tools - MCP surface of the nodes.

- browser_node_run: run one operation against a CDP endpoint
- browser_node_batch: run a batch of parameter bags, one result per bag
- browser_node_operations: list the supported operations

The attached language model arrives as three plain arguments
(provider, model, API key) and is validated here, before the dispatcher
sees it.
"""

from __future__ import annotations

from typing import Any

from fastmcp import FastMCP
from pydantic import ValidationError as PydanticValidationError

from .config import get_settings
from .dispatcher import OperationDispatcher
from .errors import ErrorContext, NodeError, ValidationError
from .models import ModelCredential, OperationRequest, OperationResult
from .operations import list_operations
from .runner import BatchRunner


def build_credential(
    model_provider: str | None,
    model_name: str | None,
    model_api_key: str | None,
) -> ModelCredential | None:
    """
    Build a credential from tool arguments.

    Returns None when no model is attached at all.

    Raises:
        ValidationError: If a model is only partly described.
    """
    if not any((model_provider, model_name, model_api_key)):
        return None
    try:
        return ModelCredential(
            provider_namespace=model_provider or "",
            model_name=model_name or "",
            api_key=model_api_key or "",
        )
    except PydanticValidationError as e:
        problems = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ValidationError(
            f"Invalid language model credential: {'; '.join(problems)}",
            validation_errors=problems,
            context=ErrorContext(parameter="credential"),
        ) from None


def register_tools(mcp: FastMCP, dispatcher: OperationDispatcher | None = None) -> list[str]:
    """
    Register the browser node tools.

    Args:
        mcp: FastMCP server instance
        dispatcher: Dispatcher to run requests with (default: CDP sessions)

    Returns:
        List of registered tool names
    """
    settings = get_settings()
    dispatcher = dispatcher or OperationDispatcher(settings=settings)
    runner = BatchRunner(dispatcher, settings=settings)

    @mcp.tool()
    async def browser_node_run(
        operation: str,
        cdp_url: str = "",
        parameters: dict[str, Any] | None = None,
        timeout_ms: int = settings.default_timeout_ms,
        enable_caching: bool = settings.enable_caching,
        model_provider: str | None = None,
        model_name: str | None = None,
        model_api_key: str | None = None,
    ) -> dict:
        """
        Run one browser operation against a remote browser.

        Args:
            operation: Operation id (see browser_node_operations)
            cdp_url: CDP endpoint of the remote browser, e.g. ws://host:9222/devtools/browser/<id>
            parameters: Operation parameters (e.g. {"url": "https://example.com"})
            timeout_ms: Time bound for the action in ms (0 = no bound, default: 30000)
            enable_caching: Reuse identical language-model answers (default: True)
            model_provider: Provider of the attached language model (e.g. "openai")
            model_name: Model name (e.g. "gpt-4o-mini")
            model_api_key: API key for the model provider

        Returns:
            Dict with "operation" and either "result" (plus "binary" for
            screenshots) or "failure"
        """
        try:
            request = OperationRequest(
                operation=operation,
                endpoint=cdp_url.strip(),
                parameters=parameters or {},
                timeout_ms=timeout_ms,
                enable_caching=enable_caching,
                credential=build_credential(model_provider, model_name, model_api_key),
            )
        except NodeError as e:
            return OperationResult.failed(operation, e).to_item()

        result = await dispatcher.run(request)
        return result.to_item()

    @mcp.tool()
    async def browser_node_batch(
        items: list[dict[str, Any]],
        model_provider: str | None = None,
        model_name: str | None = None,
        model_api_key: str | None = None,
    ) -> dict:
        """
        Run a batch of operations sequentially, one output per input item.

        Each item is a dict like:
            {"operation": "click", "cdp_url": "ws://...",
             "parameters": {"selector": "#submit"}, "options": {"timeout_ms": 5000}}

        Args:
            items: Items to run, in order
            model_provider: Provider of the attached language model
            model_name: Model name
            model_api_key: API key for the model provider

        Returns:
            Dict with "items": one output dict per input item, in order
        """
        try:
            credential = build_credential(model_provider, model_name, model_api_key)
        except NodeError as e:
            failed = [
                OperationResult.failed(str(item.get("operation", "")), e).to_item()
                if isinstance(item, dict)
                else OperationResult.failed("", e).to_item()
                for item in items
            ]
            return {"items": failed}

        results = await runner.run_items(items, credential)
        return {"items": [r.to_item() for r in results]}

    @mcp.tool()
    def browser_node_operations() -> dict:
        """
        List the operations the browser node supports.

        Returns:
            Dict with "operations": id, description, required parameters and
            whether a session or language model is needed
        """
        return {"operations": [spec.describe() for spec in list_operations()]}

    return ["browser_node_run", "browser_node_batch", "browser_node_operations"]
