"""Canonical structured-extraction schema.

Every schema descriptor resolves to a ``CanonicalSchema``: an ordered set of
named fields, each with a kind, an optionality flag and, for containers, the
element type or nested fields. The schema renders to JSON Schema (sent to the
model) and to a pydantic model (used to validate what the model returns).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, create_model

from ..errors import SchemaError


class FieldKind(StrEnum):
    """Structural kinds a canonical field can take."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    ANY = "any"


@dataclass(frozen=True)
class SchemaType:
    """
    Structural type of a value.

    ``items`` is the element type of an array (``None`` means unconstrained).
    ``fields`` are the named properties of an object; ``open`` permits
    additional, unnamed properties.
    """

    kind: FieldKind
    description: str | None = None
    items: SchemaType | None = None
    fields: tuple[SchemaField, ...] = ()
    open: bool = False

    def __post_init__(self) -> None:
        if self.kind is not FieldKind.ARRAY and self.items is not None:
            raise SchemaError(f"Only arrays can declare an element type, not {self.kind}")
        if self.kind is not FieldKind.OBJECT and (self.fields or self.open):
            raise SchemaError(f"Only objects can declare properties, not {self.kind}")
        _check_unique(self.fields)

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {}
        if self.kind is not FieldKind.ANY:
            schema["type"] = self.kind.value
        if self.description:
            schema["description"] = self.description
        if self.kind is FieldKind.ARRAY:
            schema["items"] = self.items.to_json_schema() if self.items else {}
        elif self.kind is FieldKind.OBJECT:
            schema.update(_object_json_schema(self.fields, self.open))
        return schema


@dataclass(frozen=True)
class SchemaField:
    """A named property with its type and presence requirement."""

    name: str
    type: SchemaType
    optional: bool = False

    @property
    def kind(self) -> FieldKind:
        return self.type.kind

    @property
    def description(self) -> str | None:
        return self.type.description


@dataclass(frozen=True)
class CanonicalSchema:
    """Normalized description of the fields an extraction should produce."""

    fields: tuple[SchemaField, ...]
    open: bool = False
    description: str | None = None

    def __post_init__(self) -> None:
        _check_unique(self.fields)

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]

    def field(self, name: str) -> SchemaField:
        """Return the field called ``name``."""
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def to_json_schema(self) -> dict[str, Any]:
        """Render as a JSON Schema object document."""
        schema: dict[str, Any] = {"type": "object"}
        if self.description:
            schema["description"] = self.description
        schema.update(_object_json_schema(self.fields, self.open))
        return schema

    def to_model(self, name: str = "ExtractedData") -> type[BaseModel]:
        """
        Build a pydantic model validating payloads of this shape.

        Field names are not required to be Python identifiers, so every
        field is declared under a positional attribute name and aliased to
        its real name. Dump instances with ``by_alias=True``.
        """
        return _build_model(name, self.fields, self.open)


def _check_unique(fields: tuple[SchemaField, ...]) -> None:
    seen: set[str] = set()
    for f in fields:
        if f.name in seen:
            raise SchemaError(f"Duplicate field name '{f.name}'")
        seen.add(f.name)


def _object_json_schema(fields: tuple[SchemaField, ...], open_: bool) -> dict[str, Any]:
    return {
        "properties": {f.name: f.type.to_json_schema() for f in fields},
        "required": [f.name for f in fields if not f.optional],
        "additionalProperties": open_,
    }


def _annotation(schema_type: SchemaType, path: str) -> Any:
    kind = schema_type.kind
    if kind is FieldKind.STRING:
        return str
    if kind is FieldKind.NUMBER:
        return int | float
    if kind is FieldKind.BOOLEAN:
        return bool
    if kind is FieldKind.ARRAY:
        if schema_type.items is None:
            return list[Any]
        return list[_annotation(schema_type.items, f"{path}Item")]
    if kind is FieldKind.OBJECT:
        if not schema_type.fields:
            return dict[str, Any] if schema_type.open else _build_model(path, (), False)
        return _build_model(path, schema_type.fields, schema_type.open)
    return Any


def _build_model(name: str, fields: tuple[SchemaField, ...], open_: bool) -> type[BaseModel]:
    definitions: dict[str, Any] = {}
    for index, f in enumerate(fields):
        annotation = _annotation(f.type, f"{name}_{index}")
        if f.optional:
            definitions[f"field_{index}"] = (
                annotation | None,
                Field(default=None, alias=f.name, description=f.description),
            )
        else:
            definitions[f"field_{index}"] = (
                annotation,
                Field(..., alias=f.name, description=f.description),
            )
    config = ConfigDict(populate_by_name=True, extra="allow" if open_ else "ignore")
    return create_model(name, __config__=config, **definitions)
