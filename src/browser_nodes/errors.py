"""Browser Nodes Error Hierarchy.

Every failure a node can report inherits from NodeError so that the
dispatcher can turn it into a per-item failure record:
- ValidationError: missing or malformed parameters / credentials
- UnsupportedOperationError: unknown operation or enumerated sub-value
- BrowserConnectionError: CDP endpoint unreachable or handshake failure
- OperationTimeoutError: action exceeded its time bound
- SchemaError: schema descriptor could not be normalized
- ActionError: the remote browser (or the model driving it) reported failure

The ``kind`` attribute is the stable, host-facing name of the error.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ErrorCategory(StrEnum):
    """High-level error categories for classification."""

    VALIDATION = "validation"
    OPERATION = "operation"
    CONNECTION = "connection"
    TIMEOUT = "timeout"
    SCHEMA = "schema"
    ACTION = "action"
    LLM = "llm"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Structured context for debugging errors."""

    operation: str | None = None
    item_index: int | None = None
    parameter: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class NodeError(Exception):
    """Base exception for all browser node errors.

    Example:
        try:
            payload = await handler(ctx)
        except NodeError as e:
            return OperationResult.failed(request.operation, e.to_record())
    """

    kind: str = "NodeError"
    error_code: str = "NODE_ERROR"
    category: ErrorCategory = ErrorCategory.INTERNAL
    retry_allowed: bool = False

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.context = context or ErrorContext()
        self.__cause__ = cause

    @property
    def cause(self) -> str | None:
        """Short description of the underlying exception, if any."""
        if self.__cause__ is None:
            return None
        return f"{type(self.__cause__).__name__}: {self.__cause__}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "kind": self.kind,
            "error_code": self.error_code,
            "message": self.message,
            "category": self.category.value,
            "retry_allowed": self.retry_allowed,
            "cause": self.cause,
            "context": {
                "operation": self.context.operation,
                "item_index": self.context.item_index,
                "parameter": self.context.parameter,
                "metadata": self.context.metadata,
            },
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.error_code}, message={self.message!r})"


# =============================================================================
# Static (pre-session) errors
# =============================================================================


class ValidationError(NodeError):
    """Raised when a parameter, credential or request is missing or malformed."""

    kind = "ValidationError"
    error_code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        validation_errors: list[str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.validation_errors = validation_errors or []


class UnsupportedOperationError(NodeError):
    """Raised for unknown operation ids or unsupported enumerated values."""

    kind = "UnsupportedOperationError"
    error_code = "UNSUPPORTED_OPERATION"
    category = ErrorCategory.OPERATION


class SchemaError(NodeError):
    """Raised when a schema descriptor cannot be normalized."""

    kind = "SchemaError"
    error_code = "SCHEMA_ERROR"
    category = ErrorCategory.SCHEMA


# =============================================================================
# Runtime errors
# =============================================================================


class BrowserConnectionError(NodeError):
    """Raised when the CDP endpoint is unreachable or the handshake fails."""

    kind = "ConnectionError"
    error_code = "CONNECTION_ERROR"
    category = ErrorCategory.CONNECTION
    retry_allowed = True


class OperationTimeoutError(NodeError):
    """Raised when an action exceeds its time bound."""

    kind = "TimeoutError"
    error_code = "OPERATION_TIMEOUT"
    category = ErrorCategory.TIMEOUT
    retry_allowed = True


class ActionError(NodeError):
    """Raised when the remote action reports failure (e.g. selector not found)."""

    kind = "ActionError"
    error_code = "ACTION_ERROR"
    category = ErrorCategory.ACTION


class BatchCancelledError(NodeError):
    """Recorded for items not started because their batch was cancelled."""

    kind = "CancelledError"
    error_code = "BATCH_CANCELLED"
    category = ErrorCategory.OPERATION


# =============================================================================
# LLM errors
# =============================================================================


class LLMError(ActionError):
    """Base exception for language-model failures during an action."""

    error_code = "LLM_ERROR"
    category = ErrorCategory.LLM


class LLMRateLimitError(LLMError):
    """Raised when the provider rate-limits the request."""

    error_code = "LLM_RATE_LIMIT"
    retry_allowed = True

    def __init__(self, message: str, *, retry_after: float = 1.0, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class LLMTransientError(LLMError):
    """Raised for provider timeouts and connection failures."""

    error_code = "LLM_TRANSIENT"
    retry_allowed = True


class LLMAuthenticationError(LLMError):
    """Raised when the provider rejects the API key."""

    error_code = "LLM_AUTHENTICATION"


class LLMOutputParsingError(LLMError):
    """Raised when the model answer is not the JSON we asked for."""

    error_code = "LLM_OUTPUT_PARSING"


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "NodeError",
    "ValidationError",
    "UnsupportedOperationError",
    "SchemaError",
    "BrowserConnectionError",
    "OperationTimeoutError",
    "ActionError",
    "BatchCancelledError",
    "LLMError",
    "LLMRateLimitError",
    "LLMTransientError",
    "LLMAuthenticationError",
    "LLMOutputParsingError",
]
