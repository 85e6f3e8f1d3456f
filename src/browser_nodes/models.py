"""Request, result and credential types shared by the dispatcher and the host boundary."""

from __future__ import annotations

import base64
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ErrorContext, NodeError, ValidationError


class ModelCredential(BaseModel):
    """
    Language-model credential attached to natural-language operations.

    The host boundary builds this from the attached chat model before the
    dispatcher ever sees it, so the core only handles validated values.
    """

    model_config = ConfigDict(frozen=True)

    provider_namespace: str = Field(..., min_length=1)
    model_name: str = Field(..., min_length=1)
    api_key: str = Field(..., min_length=1, repr=False)

    @field_validator("provider_namespace", "model_name", "api_key")
    @classmethod
    def _strip(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @property
    def provider(self) -> str:
        # deepseek models are served through OpenAI-compatible chat classes
        if "deepseek" in self.model_name.lower():
            return "deepseek"
        return self.provider_namespace

    @property
    def model_id(self) -> str:
        """LiteLLM model identifier, e.g. ``openai/gpt-4o``."""
        prefix = f"{self.provider}/"
        if self.model_name.startswith(prefix):
            return self.model_name
        return prefix + self.model_name


@dataclass(frozen=True)
class OperationRequest:
    """One item's operation: what to do, where, with which parameters."""

    operation: str
    endpoint: str = ""
    parameters: Mapping[str, Any] = field(default_factory=dict)
    timeout_ms: int = 30000
    enable_caching: bool = True
    credential: ModelCredential | None = None

    def __post_init__(self) -> None:
        if self.timeout_ms < 0:
            raise ValidationError(
                f"timeout_ms must be >= 0, got {self.timeout_ms}",
                context=ErrorContext(operation=self.operation, parameter="timeout_ms"),
            )
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    @classmethod
    def from_item(
        cls,
        item: Mapping[str, Any],
        credential: ModelCredential | None = None,
        *,
        default_timeout_ms: int = 30000,
        default_enable_caching: bool = True,
    ) -> OperationRequest:
        """
        Build a request from a host parameter bag.

        Accepted keys: ``operation``, ``cdp_url``/``cdpUrl``, ``parameters``
        (operation-specific values; top-level extras are merged in) and
        ``options`` with ``timeout_ms``/``timeoutMs`` and
        ``enable_caching``/``enableCaching``.

        Raises:
            ValidationError: If the bag has no operation or invalid options.
        """
        operation = item.get("operation")
        if not isinstance(operation, str) or not operation.strip():
            raise ValidationError(
                "Parameter 'operation' is required",
                context=ErrorContext(parameter="operation"),
            )

        reserved = {"operation", "cdp_url", "cdpUrl", "parameters", "options"}
        parameters: dict[str, Any] = {k: v for k, v in item.items() if k not in reserved}
        nested = item.get("parameters") or {}
        if not isinstance(nested, Mapping):
            raise ValidationError(
                "Parameter 'parameters' must be an object",
                context=ErrorContext(operation=operation, parameter="parameters"),
            )
        parameters.update(nested)

        options = item.get("options") or {}
        if not isinstance(options, Mapping):
            raise ValidationError(
                "Parameter 'options' must be an object",
                context=ErrorContext(operation=operation, parameter="options"),
            )
        timeout = options.get("timeout_ms", options.get("timeoutMs", default_timeout_ms))
        caching = options.get("enable_caching", options.get("enableCaching", default_enable_caching))
        return cls(
            operation=operation.strip(),
            endpoint=str(item.get("cdp_url", item.get("cdpUrl", "")) or "").strip(),
            parameters=parameters,
            timeout_ms=_parse_timeout(timeout, operation),
            enable_caching=_parse_flag(caching, operation, "enable_caching"),
            credential=credential,
        )


def _parse_timeout(value: Any, operation: str) -> int:
    context = ErrorContext(operation=operation, parameter="timeout_ms")
    # bool is an int subclass; floats must be whole numbers
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"Option 'timeout_ms' must be an integer, got {value!r}", context=context)
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValidationError(
            f"Option 'timeout_ms' must be an integer, got {value!r}",
            context=context,
            cause=e,
        ) from e


def _parse_flag(value: Any, operation: str, parameter: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(
        f"Option '{parameter}' must be a boolean, got {value!r}",
        context=ErrorContext(operation=operation, parameter=parameter),
    )


@dataclass(frozen=True)
class BinaryAttachment:
    """Binary output of an operation, e.g. a screenshot."""

    data: bytes
    mime_type: str
    file_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": base64.b64encode(self.data).decode(),
            "mime_type": self.mime_type,
            "file_name": self.file_name,
            "size": len(self.data),
        }


@dataclass(frozen=True)
class ErrorRecord:
    """Failure detail carried by a failed result."""

    kind: str
    message: str
    code: str = "NODE_ERROR"
    cause: str | None = None

    @classmethod
    def from_error(cls, error: BaseException) -> ErrorRecord:
        if isinstance(error, NodeError):
            return cls(
                kind=error.kind,
                message=error.message,
                code=error.error_code,
                cause=error.cause,
            )
        return cls(
            kind="InternalError",
            message=str(error) or type(error).__name__,
            code="INTERNAL_ERROR",
            cause=type(error).__name__,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "cause": self.cause,
        }


@dataclass(frozen=True)
class OperationResult:
    """
    The output of one item.

    Either a payload (plus optional binary attachments) or a failure record.
    """

    operation: str
    payload: Any = None
    attachments: Mapping[str, BinaryAttachment] = field(default_factory=dict)
    failure: ErrorRecord | None = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    @classmethod
    def ok(
        cls,
        operation: str,
        payload: Any = None,
        attachments: Mapping[str, BinaryAttachment] | None = None,
    ) -> OperationResult:
        return cls(operation=operation, payload=payload, attachments=dict(attachments or {}))

    @classmethod
    def failed(cls, operation: str, error: BaseException) -> OperationResult:
        return cls(operation=operation, failure=ErrorRecord.from_error(error))

    def to_item(self) -> dict[str, Any]:
        """Render the host-facing output item."""
        if self.failure is not None:
            return {"operation": self.operation, "failure": self.failure.to_dict()}

        item: dict[str, Any] = {"operation": self.operation, "result": self.payload}
        if self.attachments:
            item["binary"] = {name: a.to_dict() for name, a in self.attachments.items()}
        return item
