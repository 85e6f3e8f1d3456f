"""
Schema-builder expression parser.

Parses schema expressions such as::

    z.object({
      title: z.string().describe("The page title"),
      tags: z.array(z.string()).optional(),
    })

The text is parsed with ``ast.parse(mode="eval")`` and walked by a visitor
that only understands the schema-builder vocabulary. Nothing is executed:
any node outside the grammar raises SchemaError.

Grammar:
    expr      := builder modifier*
    builder   := z.string() | z.number() | z.boolean() | z.any()
               | z.array(expr) | z.object({key: expr, ...})
    modifier  := .optional() | .nullable() | .describe("text") | .passthrough()
    key       := identifier | "string literal"
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, replace

from ..errors import SchemaError
from .canonical import CanonicalSchema, FieldKind, SchemaField, SchemaType

BUILDER_NAMESPACE = "z"

SCALAR_BUILDERS = {
    "string": FieldKind.STRING,
    "number": FieldKind.NUMBER,
    "boolean": FieldKind.BOOLEAN,
    "any": FieldKind.ANY,
}

MODIFIERS = ("optional", "nullable", "describe", "passthrough")


class ExpressionError(SchemaError):
    """Raised when an expression falls outside the schema-builder grammar."""

    error_code = "SCHEMA_EXPRESSION_ERROR"

    def __init__(self, message: str, node: ast.AST | None = None, **kwargs):
        self.line = getattr(node, "lineno", None) if node else None
        self.col = getattr(node, "col_offset", None) if node else None
        parts = [message]
        if self.line is not None:
            parts.append(f" at line {self.line}")
        if self.col is not None:
            parts.append(f", column {self.col + 1}")
        super().__init__("".join(parts), **kwargs)


@dataclass(frozen=True)
class _Built:
    """Intermediate result: a type plus the presence flag set by modifiers."""

    type: SchemaType
    optional: bool = False


class SchemaExpressionVisitor(ast.NodeVisitor):
    def visit(self, node: ast.AST) -> _Built:
        # Only explicitly handled nodes are accepted
        method = "visit_" + node.__class__.__name__
        visitor = getattr(self, method, self.generic_visit)
        return visitor(node)

    def generic_visit(self, node: ast.AST):
        raise ExpressionError(f"Use of {node.__class__.__name__} is not allowed", node=node)

    def visit_Expression(self, node: ast.Expression) -> _Built:
        return self.visit(node.body)

    def visit_Call(self, node: ast.Call) -> _Built:
        func = node.func
        if not isinstance(func, ast.Attribute):
            raise ExpressionError("Only z.<builder>() and .<modifier>() calls are allowed", node=node)
        if node.keywords:
            raise ExpressionError(f"Keyword arguments are not allowed in '{func.attr}'", node=node)

        if isinstance(func.value, ast.Name):
            if func.value.id != BUILDER_NAMESPACE:
                raise ExpressionError(f"Name '{func.value.id}' is not defined", node=func.value)
            return self._builder(func.attr, node)
        return self._modifier(func.attr, self.visit(func.value), node)

    def _builder(self, name: str, node: ast.Call) -> _Built:
        if name in SCALAR_BUILDERS:
            self._expect_args(node, name, 0)
            return _Built(SchemaType(SCALAR_BUILDERS[name]))

        if name == "array":
            self._expect_args(node, name, 1)
            element = self.visit(node.args[0])
            return _Built(SchemaType(FieldKind.ARRAY, items=element.type))

        if name == "object":
            self._expect_args(node, name, 1)
            shape = node.args[0]
            if not isinstance(shape, ast.Dict):
                raise ExpressionError("z.object() expects an object literal", node=shape)
            return _Built(SchemaType(FieldKind.OBJECT, fields=self._fields(shape)))

        raise ExpressionError(f"Unknown builder 'z.{name}'", node=node)

    def _modifier(self, name: str, target: _Built, node: ast.Call) -> _Built:
        if name not in MODIFIERS:
            raise ExpressionError(f"Call to method '{name}' is not allowed", node=node)

        if name in ("optional", "nullable"):
            self._expect_args(node, name, 0)
            return replace(target, optional=True)

        if name == "describe":
            self._expect_args(node, name, 1)
            text = node.args[0]
            if not isinstance(text, ast.Constant) or not isinstance(text.value, str):
                raise ExpressionError("describe() expects a string literal", node=text)
            return replace(target, type=replace(target.type, description=text.value))

        # passthrough
        self._expect_args(node, name, 0)
        if target.type.kind is not FieldKind.OBJECT:
            raise ExpressionError("passthrough() is only valid on z.object()", node=node)
        return replace(target, type=replace(target.type, open=True))

    def _fields(self, shape: ast.Dict) -> tuple[SchemaField, ...]:
        fields: list[SchemaField] = []
        seen: set[str] = set()
        for key, value in zip(shape.keys, shape.values, strict=True):
            if key is None:
                raise ExpressionError("Spread entries are not allowed", node=value)
            if isinstance(key, ast.Name):
                name = key.id
            elif isinstance(key, ast.Constant) and isinstance(key.value, str):
                name = key.value
            else:
                raise ExpressionError("Object keys must be identifiers or strings", node=key)
            if name in seen:
                raise ExpressionError(f"Duplicate field name '{name}'", node=key)
            seen.add(name)
            built = self.visit(value)
            fields.append(SchemaField(name=name, type=built.type, optional=built.optional))
        return tuple(fields)

    @staticmethod
    def _expect_args(node: ast.Call, name: str, count: int) -> None:
        if len(node.args) != count:
            raise ExpressionError(
                f"'{name}' expects {count} argument{'s' if count != 1 else ''}, got {len(node.args)}",
                node=node,
            )


def parse_schema_expression(source: str) -> CanonicalSchema:
    """
    Parse a schema-builder expression into a CanonicalSchema.

    Args:
        source: Expression text. A trailing ``;`` is tolerated.

    Returns:
        The canonical schema described by the top-level ``z.object(...)``.

    Raises:
        SchemaError: If the text is not valid syntax or uses anything outside
            the schema-builder grammar.

    Example:
        >>> schema = parse_schema_expression('z.object({title: z.string()})')
        >>> schema.names
        ['title']
    """
    text = source.strip().rstrip(";").strip()
    if not text:
        raise SchemaError("Schema expression is empty")

    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as e:
        raise SchemaError(
            f"Invalid syntax in schema expression: {e.msg} at line {e.lineno}, column {e.offset}",
            cause=e,
        ) from e
    except (ValueError, RecursionError) as e:
        raise SchemaError(f"Schema expression could not be parsed: {e}", cause=e) from e

    try:
        built = SchemaExpressionVisitor().visit(tree)
    except RecursionError as e:
        raise SchemaError("Schema expression is nested too deeply", cause=e) from e
    if built.type.kind is not FieldKind.OBJECT:
        raise SchemaError("Schema expression must be a z.object(...) at the top level")
    return CanonicalSchema(
        fields=built.type.fields,
        open=built.type.open,
        description=built.type.description,
    )


__all__ = ["ExpressionError", "parse_schema_expression"]
