"""
Schema normalization for structured extraction.

Four descriptor variants resolve into one CanonicalSchema:
- FieldList: typed field list
- ExampleDocument: example JSON value
- JsonSchemaDocument: JSON-Schema object
- FreeFormExpression: schema-builder expression (parsed, never executed)
"""

from .canonical import CanonicalSchema, FieldKind, SchemaField, SchemaType
from .descriptors import (
    ExampleDocument,
    FieldList,
    FieldSpec,
    FreeFormExpression,
    JsonSchemaDocument,
    SchemaDescriptor,
    parse_descriptor,
)
from .expression import parse_schema_expression
from .normalizer import resolve

__all__ = [
    "CanonicalSchema",
    "FieldKind",
    "SchemaField",
    "SchemaType",
    "SchemaDescriptor",
    "FieldList",
    "FieldSpec",
    "ExampleDocument",
    "JsonSchemaDocument",
    "FreeFormExpression",
    "parse_descriptor",
    "parse_schema_expression",
    "resolve",
]
