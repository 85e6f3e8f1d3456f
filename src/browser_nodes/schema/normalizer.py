"""Resolve schema descriptors into a CanonicalSchema."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..errors import SchemaError
from ..logging_config import get_logger
from .canonical import CanonicalSchema, FieldKind, SchemaField, SchemaType
from .descriptors import (
    FIELD_KINDS,
    ExampleDocument,
    FieldList,
    FreeFormExpression,
    JsonSchemaDocument,
    SchemaDescriptor,
)
from .expression import parse_schema_expression

logger = get_logger(__name__)

# JSON-Schema keywords we refuse to guess a resolution strategy for
UNSUPPORTED_KEYWORDS = (
    "$ref",
    "oneOf",
    "anyOf",
    "allOf",
    "not",
    "if",
    "then",
    "else",
    "patternProperties",
    "dependentSchemas",
)

JSON_SCHEMA_KINDS = {
    "string": FieldKind.STRING,
    "number": FieldKind.NUMBER,
    "integer": FieldKind.NUMBER,
    "boolean": FieldKind.BOOLEAN,
    "array": FieldKind.ARRAY,
    "object": FieldKind.OBJECT,
}


def resolve(descriptor: SchemaDescriptor) -> CanonicalSchema:
    """
    Resolve a schema descriptor into a CanonicalSchema.

    Resolution is pure: the same descriptor always yields an equal schema.

    Raises:
        SchemaError: If the descriptor is malformed or cannot be expressed
            as a structural schema.
    """
    if isinstance(descriptor, FieldList):
        schema = from_field_list(descriptor)
    elif isinstance(descriptor, ExampleDocument):
        schema = from_example(descriptor.value)
    elif isinstance(descriptor, JsonSchemaDocument):
        schema = from_json_schema(descriptor.document)
    elif isinstance(descriptor, FreeFormExpression):
        schema = parse_schema_expression(descriptor.source)
    else:
        raise SchemaError(f"Unsupported schema descriptor: {type(descriptor).__name__}")

    logger.debug(
        "schema_resolved",
        descriptor=type(descriptor).__name__,
        fields=schema.names,
    )
    return schema


# ---------------------------------------------------------------------------
# Field list
# ---------------------------------------------------------------------------


def from_field_list(descriptor: FieldList) -> CanonicalSchema:
    """
    Map each entry to a field of the stated kind.

    Arrays become unconstrained arrays and objects become open objects:
    the field list has no way to describe element types or nested fields.
    """
    fields: list[SchemaField] = []
    seen: set[str] = set()
    for spec in descriptor.fields:
        name = spec.name.strip()
        if not name:
            raise SchemaError("Field names must not be empty")
        if name in seen:
            raise SchemaError(f"Duplicate field name '{name}'")
        if spec.kind not in FIELD_KINDS:
            raise SchemaError(
                f"Unsupported field type '{spec.kind}' for field '{name}'. "
                f"Expected one of: {', '.join(FIELD_KINDS)}"
            )
        seen.add(name)

        kind = FieldKind(spec.kind)
        if kind is FieldKind.OBJECT:
            schema_type = SchemaType(kind, open=True)
        else:
            schema_type = SchemaType(kind)
        fields.append(SchemaField(name=name, type=schema_type, optional=spec.optional))

    if not fields:
        raise SchemaError("Field list must define at least one field")
    return CanonicalSchema(fields=tuple(fields))


# ---------------------------------------------------------------------------
# Example document
# ---------------------------------------------------------------------------


def from_example(example: Any) -> CanonicalSchema:
    """Infer a schema from the runtime kinds of an example object's values."""
    if not isinstance(example, Mapping):
        raise SchemaError(
            f"Example JSON must be an object at the top level, got {_json_type_name(example)}"
        )
    try:
        fields = _infer_fields(example)
    except RecursionError as e:
        raise SchemaError("Example JSON is nested too deeply", cause=e) from e
    return CanonicalSchema(fields=fields)


def _infer_fields(example: Mapping[str, Any]) -> tuple[SchemaField, ...]:
    return tuple(
        SchemaField(name=str(key), type=_infer_type(value), optional=value is None)
        for key, value in example.items()
    )


def _infer_type(value: Any) -> SchemaType:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return SchemaType(FieldKind.BOOLEAN)
    if isinstance(value, (int, float)):
        return SchemaType(FieldKind.NUMBER)
    if isinstance(value, str):
        return SchemaType(FieldKind.STRING)
    if isinstance(value, list):
        items = _infer_type(value[0]) if value else None
        if items is not None and items.kind is FieldKind.ANY:
            items = None
        return SchemaType(FieldKind.ARRAY, items=items)
    if isinstance(value, Mapping):
        return SchemaType(FieldKind.OBJECT, fields=_infer_fields(value))
    return SchemaType(FieldKind.ANY)


def _json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


# ---------------------------------------------------------------------------
# JSON Schema
# ---------------------------------------------------------------------------


def from_json_schema(document: Any) -> CanonicalSchema:
    """
    Translate a JSON-Schema object document.

    Best effort: ``type``, ``properties``, ``items``, ``required``,
    ``description`` and ``additionalProperties`` are honored; composition and
    reference keywords are rejected instead of guessed.
    """
    if not isinstance(document, Mapping):
        raise SchemaError(f"JSON Schema must be an object, got {_json_type_name(document)}")

    try:
        root = _translate(document, "$")
    except RecursionError as e:
        raise SchemaError("JSON Schema is nested too deeply", cause=e) from e
    if root.kind is not FieldKind.OBJECT:
        raise SchemaError(f"JSON Schema must describe an object at the top level, got '{root.kind}'")
    return CanonicalSchema(fields=root.fields, open=root.open, description=root.description)


def _translate(node: Any, path: str) -> SchemaType:
    if node is True or node == {}:
        return SchemaType(FieldKind.ANY)
    if not isinstance(node, Mapping):
        raise SchemaError(f"Schema at {path} must be an object")

    for keyword in UNSUPPORTED_KEYWORDS:
        if keyword in node:
            raise SchemaError(f"Unsupported JSON Schema keyword '{keyword}' at {path}")

    kind = _json_kind(node, path)
    description = node.get("description")
    if description is not None and not isinstance(description, str):
        raise SchemaError(f"'description' at {path} must be a string")

    if kind is FieldKind.ARRAY:
        items = node.get("items")
        if isinstance(items, list):
            raise SchemaError(f"Tuple-style 'items' at {path} is not supported")
        item_type = _translate(items, f"{path}[]") if items not in (None, True, {}) else None
        return SchemaType(kind, description=description, items=item_type)

    if kind is FieldKind.OBJECT:
        properties = node.get("properties", {})
        if not isinstance(properties, Mapping):
            raise SchemaError(f"'properties' at {path} must be an object")
        required = node.get("required", [])
        if not isinstance(required, list) or not all(isinstance(r, str) for r in required):
            raise SchemaError(f"'required' at {path} must be a list of property names")

        fields = []
        for name, prop in properties.items():
            prop_type = _translate(prop, f"{path}.{name}")
            nullable = isinstance(prop, Mapping) and _is_nullable(prop)
            fields.append(
                SchemaField(
                    name=name,
                    type=prop_type,
                    optional=name not in required or nullable,
                )
            )

        additional = node.get("additionalProperties", not properties)
        if isinstance(additional, Mapping):
            additional = True
        return SchemaType(
            kind,
            description=description,
            fields=tuple(fields),
            open=bool(additional),
        )

    return SchemaType(kind, description=description)


def _json_kind(node: Mapping[str, Any], path: str) -> FieldKind:
    declared = node.get("type")
    if declared is None:
        if "properties" in node:
            return FieldKind.OBJECT
        if "items" in node:
            return FieldKind.ARRAY
        if "enum" in node or "const" in node:
            return _enum_kind(node, path)
        return FieldKind.ANY

    if isinstance(declared, list):
        non_null = [t for t in declared if t != "null"]
        if len(non_null) != 1:
            raise SchemaError(f"Union types {declared} at {path} are not supported")
        declared = non_null[0]

    if not isinstance(declared, str):
        raise SchemaError(f"'type' at {path} must be a string or a list of strings")
    if declared not in JSON_SCHEMA_KINDS:
        raise SchemaError(f"Unsupported JSON Schema type '{declared}' at {path}")
    return JSON_SCHEMA_KINDS[declared]


def _enum_kind(node: Mapping[str, Any], path: str) -> FieldKind:
    values = node.get("enum", [node.get("const")])
    if not isinstance(values, list):
        raise SchemaError(f"'enum' at {path} must be a list")
    kinds = {_infer_type(v).kind for v in values if v is not None}
    if len(kinds) != 1:
        raise SchemaError(f"Mixed-type enum at {path} is not supported")
    return kinds.pop()


def _is_nullable(node: Mapping[str, Any]) -> bool:
    declared = node.get("type")
    return isinstance(declared, list) and "null" in declared or node.get("nullable") is True
