"""
Batch runner.

Processes a batch of items strictly one after another and returns exactly
one result per item, in input order. A failing item never stops the batch.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .config import NodeSettings, get_settings
from .dispatcher import OperationDispatcher
from .errors import BatchCancelledError, NodeError, ValidationError
from .logging_config import get_logger
from .models import ModelCredential, OperationRequest, OperationResult

logger = get_logger(__name__)


class BatchRunner:
    """
    Sequential batch executor.

    Usage:
        runner = BatchRunner(OperationDispatcher())
        results = await runner.run_all(requests)
    """

    def __init__(
        self,
        dispatcher: OperationDispatcher | None = None,
        settings: NodeSettings | None = None,
    ):
        self.settings = settings or get_settings()
        self.dispatcher = dispatcher or OperationDispatcher(settings=self.settings)

    async def run_all(
        self,
        requests: Sequence[OperationRequest],
        cancel_event: asyncio.Event | None = None,
    ) -> list[OperationResult]:
        """
        Run every request in order.

        Args:
            requests: Requests to run.
            cancel_event: Once set, no further request is started; the
                remaining ones get a CancelledError failure.
        """
        results: list[OperationResult] = []
        for index, request in enumerate(requests):
            if cancel_event is not None and cancel_event.is_set():
                results.extend(self._cancelled(requests[index:]))
                logger.info("batch_cancelled", completed=index, skipped=len(requests) - index)
                break
            results.append(await self.dispatcher.run(request, item_index=index))

        failed = sum(1 for r in results if not r.succeeded)
        logger.info("batch_completed", items=len(results), failed=failed)
        return results

    async def run_items(
        self,
        items: Iterable[Mapping[str, Any]],
        credential: ModelCredential | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[OperationResult]:
        """
        Build requests from host parameter bags and run them.

        A bag that cannot be turned into a request keeps its position with a
        failed result.
        """
        items = list(items)
        prepared: list[OperationRequest | OperationResult] = []
        for item in items:
            if not isinstance(item, Mapping):
                prepared.append(
                    OperationResult.failed("", ValidationError("Each item must be an object"))
                )
                continue
            try:
                prepared.append(
                    OperationRequest.from_item(
                        item,
                        credential,
                        default_timeout_ms=self.settings.default_timeout_ms,
                        default_enable_caching=self.settings.enable_caching,
                    )
                )
            except NodeError as e:
                operation = item.get("operation")
                prepared.append(
                    OperationResult.failed(operation if isinstance(operation, str) else "", e)
                )

        requests = [p for p in prepared if isinstance(p, OperationRequest)]
        run = iter(await self.run_all(requests, cancel_event))
        return [p if isinstance(p, OperationResult) else next(run) for p in prepared]

    @staticmethod
    def _cancelled(requests: Sequence[OperationRequest]) -> list[OperationResult]:
        return [
            OperationResult.failed(
                request.operation,
                BatchCancelledError("Batch was cancelled before this item started"),
            )
            for request in requests
        ]
