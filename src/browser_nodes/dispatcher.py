"""
Per-item operation dispatcher.

Turns one OperationRequest into one OperationResult:

    Idle -> ParametersValidated -> SessionAcquired -> ActionInvoked
         -> Succeeded | Failed -> SessionReleased

Static checks (known operation, valid parameters, enumerated values,
credential, endpoint, schema) run before any session is opened. Every
failure becomes a failed result, and the session is always released before
the result is returned.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from .agent import PageAgent
from .config import NodeSettings, get_settings
from .errors import (
    ActionError,
    ErrorContext,
    NodeError,
    OperationTimeoutError,
    ValidationError,
)
from .llm import LLMClient
from .logging_config import ItemLogContext, get_logger
from .models import OperationRequest, OperationResult
from .operations import OperationContext, OperationSpec, get_operation
from .schema import CanonicalSchema, parse_descriptor, resolve
from .session import BrowserSession, CdpSessionProvider, SessionProvider

logger = get_logger(__name__)


class OperationDispatcher:
    """
    Runs single operation requests.

    Usage:
        dispatcher = OperationDispatcher(CdpSessionProvider())
        result = await dispatcher.run(OperationRequest(
            operation="navigate",
            endpoint="ws://localhost:9222/devtools/browser/...",
            parameters={"url": "https://example.com"},
        ))
    """

    def __init__(
        self,
        session_provider: SessionProvider | None = None,
        schema_resolver: Callable[[Any], CanonicalSchema] = resolve,
        agent_factory: Callable[..., PageAgent] = PageAgent,
        llm_factory: Callable[..., LLMClient] = LLMClient,
        settings: NodeSettings | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_provider = session_provider or CdpSessionProvider(self.settings)
        self.schema_resolver = schema_resolver
        self.agent_factory = agent_factory
        self.llm_factory = llm_factory

    async def run(self, request: OperationRequest, item_index: int | None = None) -> OperationResult:
        """Run one request. Never raises for per-item failures."""
        with ItemLogContext(operation=request.operation, item_index=item_index):
            try:
                spec, params, schema = self.prepare(request)
            except NodeError as e:
                logger.info("parameters_rejected", kind=e.kind, error=e.message)
                return OperationResult.failed(request.operation, e)
            except Exception as e:
                logger.exception("parameters_crashed", error=str(e))
                return OperationResult.failed(request.operation, e)
            logger.debug("parameters_validated")

            try:
                result = await self._execute(spec, request, params, schema)
            except NodeError as e:
                logger.info("operation_failed", kind=e.kind, error=e.message)
                return OperationResult.failed(request.operation, e)
            except Exception as e:
                logger.exception("operation_crashed", error=str(e))
                return OperationResult.failed(request.operation, e)

            logger.info("operation_succeeded")
            return result

    def prepare(self, request: OperationRequest) -> tuple[OperationSpec, Any, CanonicalSchema | None]:
        """
        Run every check that does not need a browser.

        Raises:
            UnsupportedOperationError: Unknown operation or enumerated value.
            ValidationError: Invalid parameters, missing credential or endpoint.
            SchemaError: The extraction schema cannot be normalized.
        """
        spec = get_operation(request.operation)
        params = spec.validate(request.parameters)

        if spec.needs_credential and request.credential is None:
            raise ValidationError(
                f"Operation '{spec.id}' requires an attached language model",
                context=ErrorContext(operation=spec.id, parameter="credential"),
            )
        if spec.needs_session and not request.endpoint:
            raise ValidationError(
                f"Operation '{spec.id}' requires a CDP endpoint",
                context=ErrorContext(operation=spec.id, parameter="cdp_url"),
            )

        schema = None
        if spec.needs_schema:
            schema = self.schema_resolver(parse_descriptor(request.parameters))
        return spec, params, schema

    async def _execute(
        self,
        spec: OperationSpec,
        request: OperationRequest,
        params: Any,
        schema: CanonicalSchema | None,
    ) -> OperationResult:
        if not spec.needs_session:
            ctx = OperationContext(request=request, params=params, settings=self.settings)
            return await self._invoke(spec, ctx)

        async with self.session_provider.acquire(request.endpoint, request.credential) as session:
            logger.debug("session_acquired", endpoint=request.endpoint)
            ctx = OperationContext(
                request=request,
                params=params,
                settings=self.settings,
                session=session,
                agent=self._build_agent(spec, request, session),
                schema=schema,
            )
            return await self._invoke(spec, ctx)

    def _build_agent(
        self,
        spec: OperationSpec,
        request: OperationRequest,
        session: BrowserSession,
    ) -> PageAgent | None:
        if not spec.uses_agent:
            return None
        llm = None
        if request.credential is not None:
            llm = self.llm_factory(
                request.credential,
                enable_caching=request.enable_caching,
                settings=self.settings,
            )
        return self.agent_factory(session.require_page(), llm, self.settings)

    async def _invoke(self, spec: OperationSpec, ctx: OperationContext) -> OperationResult:
        request = ctx.request
        logger.debug("action_invoked", timeout_ms=request.timeout_ms)
        try:
            if request.timeout_ms:
                payload = await asyncio.wait_for(spec.handler(ctx), request.timeout_ms / 1000)
            else:
                payload = await spec.handler(ctx)
        except (asyncio.TimeoutError, PlaywrightTimeout) as e:
            if request.timeout_ms:
                message = f"Operation '{spec.id}' timed out after {request.timeout_ms}ms"
            else:
                # no per-request bound; Playwright's own default fired
                message = f"Operation '{spec.id}' timed out: {e}"
            raise OperationTimeoutError(
                message,
                context=ErrorContext(operation=spec.id),
                cause=e,
            ) from e
        except PlaywrightError as e:
            raise ActionError(
                f"Operation '{spec.id}' failed: {e.message}",
                context=ErrorContext(operation=spec.id),
                cause=e,
            ) from e

        if isinstance(payload, OperationResult):
            return payload
        return OperationResult.ok(request.operation, payload)
