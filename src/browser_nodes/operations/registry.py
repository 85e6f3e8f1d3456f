"""
Operation registry.

Every operation a node can run is registered here with its parameter model,
its enumerated sub-values and what it needs before it can run (a browser
session, a language-model credential, an extraction schema). The set is
closed: an id missing from the registry is an UnsupportedOperationError.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..errors import ErrorContext, UnsupportedOperationError, ValidationError

if TYPE_CHECKING:
    from ..agent import PageAgent
    from ..config import NodeSettings
    from ..models import OperationRequest
    from ..schema import CanonicalSchema
    from ..session import BrowserSession


class OperationParams(BaseModel):
    """
    Base parameter model.

    Accepts snake_case and camelCase keys and ignores keys it does not know
    (the same bag also carries schema descriptor keys and host extras).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


@dataclass
class OperationContext:
    """Everything a handler may use for one request."""

    request: OperationRequest
    params: Any
    settings: NodeSettings
    session: BrowserSession | None = None
    agent: PageAgent | None = None
    schema: CanonicalSchema | None = None

    @property
    def page(self):
        assert self.session is not None, "only session operations reach the page"
        return self.session.require_page()

    @property
    def timeout_ms(self) -> int:
        """Per-call Playwright timeout (0 disables it)."""
        return self.request.timeout_ms


Handler = Callable[[OperationContext], Awaitable[Any]]


@dataclass(frozen=True)
class OperationSpec:
    """A registered operation."""

    id: str
    params: type[OperationParams]
    handler: Handler
    description: str = ""
    enumerations: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    needs_session: bool = True
    needs_credential: bool = False
    needs_schema: bool = False
    uses_agent: bool = False

    @property
    def required(self) -> list[str]:
        return [name for name, info in self.params.model_fields.items() if info.is_required()]

    def validate(self, parameters: Mapping[str, Any]) -> OperationParams:
        """
        Validate raw parameters against the parameter model and enumerations.

        Raises:
            ValidationError: If a parameter is missing or has the wrong type/range.
            UnsupportedOperationError: If an enumerated value is outside its set.
        """
        try:
            params = self.params.model_validate(dict(parameters))
        except PydanticValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
            ]
            first = e.errors()[0]["loc"] if e.errors() else ()
            raise ValidationError(
                f"Invalid parameters for '{self.id}': {'; '.join(problems)}",
                validation_errors=problems,
                context=ErrorContext(
                    operation=self.id,
                    parameter=str(first[0]) if first else None,
                ),
            ) from None

        for name, allowed in self.enumerations.items():
            value = getattr(params, name)
            if value is not None and value not in allowed:
                raise UnsupportedOperationError(
                    f"Unsupported {name} '{value}' for '{self.id}'. Supported: {', '.join(allowed)}",
                    context=ErrorContext(
                        operation=self.id,
                        parameter=name,
                        metadata={"supported": list(allowed)},
                    ),
                )
        return params

    def describe(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "required": self.required,
            "parameters": sorted(self.params.model_fields),
            "enumerations": {k: list(v) for k, v in self.enumerations.items()},
            "needs_session": self.needs_session,
            "needs_credential": self.needs_credential,
        }


_OPERATIONS: dict[str, OperationSpec] = {}


def operation(
    op_id: str,
    params: type[OperationParams],
    *,
    description: str = "",
    enumerations: Mapping[str, tuple[str, ...]] | None = None,
    needs_session: bool = True,
    needs_credential: bool = False,
    needs_schema: bool = False,
    uses_agent: bool = False,
) -> Callable[[Handler], Handler]:
    """
    Register a handler under ``op_id``.

    Usage:
        @operation("navigate", NavigateParams, enumerations={"wait_until": WAIT_UNTIL})
        async def navigate(ctx: OperationContext) -> dict:
            ...
    """

    def decorator(handler: Handler) -> Handler:
        if op_id in _OPERATIONS:
            raise ValueError(f"Operation '{op_id}' is already registered")
        _OPERATIONS[op_id] = OperationSpec(
            id=op_id,
            params=params,
            handler=handler,
            description=description or next(iter((handler.__doc__ or "").strip().splitlines()), ""),
            enumerations=dict(enumerations or {}),
            needs_session=needs_session,
            needs_credential=needs_credential,
            needs_schema=needs_schema,
            uses_agent=uses_agent,
        )
        return handler

    return decorator


def get_operation(op_id: str) -> OperationSpec:
    """
    Look up a registered operation.

    Raises:
        UnsupportedOperationError: If ``op_id`` is not registered.
    """
    spec = _OPERATIONS.get(op_id)
    if spec is None:
        raise UnsupportedOperationError(
            f"Unsupported operation: {op_id}",
            context=ErrorContext(
                operation=op_id,
                parameter="operation",
                metadata={"supported": sorted(_OPERATIONS)},
            ),
        )
    return spec


def list_operations() -> list[OperationSpec]:
    return [_OPERATIONS[op_id] for op_id in sorted(_OPERATIONS)]
