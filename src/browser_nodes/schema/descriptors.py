"""
Schema descriptors: the four ways a user can describe an extraction schema.

- FieldList: typed field list (name, kind, optional)
- ExampleDocument: an example JSON value used as a shape template
- JsonSchemaDocument: a JSON-Schema object
- FreeFormExpression: schema-builder expression text, e.g.
  ``z.object({title: z.string().describe("Page title")})``
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from ..errors import ErrorContext, SchemaError, UnsupportedOperationError, ValidationError

FIELD_KINDS = ("string", "number", "boolean", "array", "object")


@dataclass(frozen=True)
class FieldSpec:
    """One entry of a field list."""

    name: str
    kind: str
    optional: bool = False


@dataclass(frozen=True)
class FieldList:
    fields: tuple[FieldSpec, ...]


@dataclass(frozen=True)
class ExampleDocument:
    value: Any


@dataclass(frozen=True)
class JsonSchemaDocument:
    document: Any


@dataclass(frozen=True)
class FreeFormExpression:
    source: str


SchemaDescriptor = Union[FieldList, ExampleDocument, JsonSchemaDocument, FreeFormExpression]

# Accepted ``schema_source`` values, snake_case and camelCase
SCHEMA_SOURCES: dict[str, str] = {
    "field_list": "field_list",
    "fieldList": "field_list",
    "fields": "field_list",
    "example": "example",
    "example_json": "example",
    "json_schema": "json_schema",
    "jsonSchema": "json_schema",
    "expression": "expression",
    "manual": "expression",
}

# Parameter keys holding each source's payload, in lookup order
SOURCE_KEYS: dict[str, tuple[str, ...]] = {
    "field_list": ("fields",),
    "example": ("example_json", "exampleJson", "example"),
    "json_schema": ("json_schema", "jsonSchema", "schema"),
    "expression": ("schema_expression", "manualZod", "expression"),
}


def parse_descriptor(parameters: Mapping[str, Any]) -> SchemaDescriptor:
    """
    Build a schema descriptor from an operation's parameters.

    Args:
        parameters: Operation parameters containing ``schema_source`` and the
            payload for that source.

    Raises:
        UnsupportedOperationError: If ``schema_source`` is not a known source.
        ValidationError: If the payload for the source is missing.
        SchemaError: If a JSON payload cannot be decoded.
    """
    raw_source = parameters.get("schema_source", parameters.get("schemaSource", "field_list"))
    source = SCHEMA_SOURCES.get(str(raw_source))
    if source is None:
        raise UnsupportedOperationError(
            f"Unsupported schema source: {raw_source}",
            context=ErrorContext(
                parameter="schema_source",
                metadata={"supported": sorted(set(SCHEMA_SOURCES.values()))},
            ),
        )

    payload = _lookup(parameters, SOURCE_KEYS[source])
    if payload is None:
        raise ValidationError(
            f"Schema source '{source}' requires parameter '{SOURCE_KEYS[source][0]}'",
            context=ErrorContext(parameter=SOURCE_KEYS[source][0]),
        )

    if source == "field_list":
        return FieldList(fields=_parse_fields(payload))
    if source == "example":
        return ExampleDocument(value=_decode_json(payload, "example_json"))
    if source == "json_schema":
        return JsonSchemaDocument(document=_decode_json(payload, "json_schema"))
    if not isinstance(payload, str):
        raise ValidationError(
            "Parameter 'schema_expression' must be a string",
            context=ErrorContext(parameter="schema_expression"),
        )
    return FreeFormExpression(source=payload)


def _lookup(parameters: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if parameters.get(key) is not None:
            return parameters[key]
    return None


def _decode_json(payload: Any, parameter: str) -> Any:
    if not isinstance(payload, str):
        return payload
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise SchemaError(
            f"Parameter '{parameter}' is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
            context=ErrorContext(parameter=parameter),
            cause=e,
        ) from e
    except RecursionError as e:
        raise SchemaError(
            f"Parameter '{parameter}' is nested too deeply",
            context=ErrorContext(parameter=parameter),
            cause=e,
        ) from e


def _parse_fields(payload: Any) -> tuple[FieldSpec, ...]:
    payload = _decode_json(payload, "fields")
    # The host may wrap the list as {"field": [...]}
    if isinstance(payload, Mapping):
        payload = payload.get("field", payload.get("fields"))
    if not isinstance(payload, list):
        raise ValidationError(
            "Parameter 'fields' must be a list of field definitions",
            context=ErrorContext(parameter="fields"),
        )

    specs: list[FieldSpec] = []
    for position, entry in enumerate(payload):
        if not isinstance(entry, Mapping):
            raise ValidationError(
                f"Field definition {position} must be an object",
                context=ErrorContext(parameter="fields"),
            )
        specs.append(
            FieldSpec(
                name=str(entry.get("name", entry.get("fieldName", "")) or ""),
                kind=str(entry.get("kind", entry.get("fieldType", entry.get("type", "string")))),
                optional=_parse_flag(entry.get("optional", False), position),
            )
        )
    return tuple(specs)


def _parse_flag(value: Any, position: int) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(
        f"Field definition {position}: 'optional' must be a boolean, got {value!r}",
        context=ErrorContext(parameter="fields"),
    )
