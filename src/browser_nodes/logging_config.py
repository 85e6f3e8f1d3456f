"""
Structured Logging Configuration

Logging for the browser nodes with structlog:
- Colored console output for development, JSON for log aggregation
- Per-item context (operation, item index) attached to every entry
- Duration logging for remote calls
"""

from __future__ import annotations

import contextvars
import logging
import sys
import time
from functools import wraps
from typing import Any, Callable, TypeVar

import structlog
from structlog.types import Processor

# Context variables for per-item tracing
operation_var: contextvars.ContextVar[str] = contextvars.ContextVar("operation", default="")
item_index_var: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "item_index", default=None
)

T = TypeVar("T")


def add_item_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add the current operation and item index to log entries."""
    operation = operation_var.get()
    item_index = item_index_var.get()

    if operation:
        event_dict.setdefault("operation", operation)
    if item_index is not None:
        event_dict.setdefault("item_index", item_index)

    return event_dict


def configure_logging(
    json_output: bool = False,
    log_level: str = "INFO",
    include_timestamps: bool = True,
    stream: Any = None,
) -> None:
    """
    Configure structured logging for the nodes.

    Args:
        json_output: Output logs as JSON (for production)
        log_level: Minimum log level
        include_timestamps: Include ISO timestamps
        stream: Output stream (default: stdout). The MCP server passes
            stderr in stdio mode so logs never mix with the protocol.

    Usage:
        configure_logging(json_output=False, log_level="DEBUG")
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_item_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamps:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("litellm").setLevel(logging.WARNING)
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger.

    Usage:
        logger = get_logger(__name__)
        logger.info("session_acquired", endpoint=endpoint)
    """
    return structlog.get_logger(name)


class ItemLogContext:
    """
    Context manager binding the operation and item index for log entries.

    Usage:
        with ItemLogContext(operation="navigate", item_index=3):
            logger.info("dispatching")  # Includes operation and item_index
    """

    def __init__(self, operation: str | None = None, item_index: int | None = None):
        self.operation = operation
        self.item_index = item_index
        self._tokens: list[tuple[contextvars.ContextVar, contextvars.Token]] = []

    def __enter__(self) -> ItemLogContext:
        if self.operation:
            self._tokens.append((operation_var, operation_var.set(self.operation)))
        if self.item_index is not None:
            self._tokens.append((item_index_var, item_index_var.set(self.item_index)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


def log_duration(
    event: str,
    logger: structlog.stdlib.BoundLogger | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator logging how long an async call took.

    Usage:
        @log_duration("llm_completion")
        async def complete(...):
            ...
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        _logger = logger or get_logger(func.__module__)

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _logger.warning(
                    f"{event}_failed",
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            _logger.debug(
                f"{event}_completed",
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            return result

        return wrapper

    return decorator
