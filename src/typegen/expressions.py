"""Type-expression mini-language used by nango.yaml model fields.

A field expression is compiled into a small tree of ``TypeRef`` nodes by a
recursive-descent parser:

    expression := "?"? member ("|" member)*
    member     := literal | array | record | identifier
    array      := member "[]" | "(" expression ")" "[]" | "Array<" expression ">"
    record     := "Record<" expression "," expression ">"
    literal    := "'" chars "'" | '"' chars '"'

``null`` and ``undefined`` members are not kept as union members; they wrap
the result in ``Nullable`` and ``Optional`` respectively.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from errors import FieldExpressionError

if TYPE_CHECKING:
    from collections.abc import Collection

# DSL primitive name -> canonical primitive name
PRIMITIVE_ALIASES: dict[str, str] = {
    "string": "string",
    "str": "string",
    "number": "number",
    "float": "number",
    "integer": "integer",
    "int": "integer",
    "boolean": "boolean",
    "bool": "boolean",
    "date": "date",
    "Date": "date",
    "any": "any",
    "object": "object",
    "null": "null",
}

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_OPENERS = {"<": ">", "(": ")", "[": "]"}
_CLOSERS = {">", ")", "]"}


@dataclass(frozen=True)
class Primitive:
    name: str


@dataclass(frozen=True)
class ModelRef:
    name: str


@dataclass(frozen=True)
class ArrayOf:
    item: TypeRef


@dataclass(frozen=True)
class RecordOf:
    key: TypeRef
    value: TypeRef


@dataclass(frozen=True)
class Nullable:
    inner: TypeRef


@dataclass(frozen=True)
class Optional:
    """A value that may be absent (``undefined`` / leading ``?``)."""

    inner: TypeRef


@dataclass(frozen=True)
class LiteralUnion:
    """Union in source order; ``str`` members are string literals."""

    members: tuple[str | TypeRef, ...]


TypeRef = Primitive | ModelRef | ArrayOf | RecordOf | Nullable | Optional | LiteralUnion


def split_top_level(text: str, separator: str) -> list[str]:
    """Split ``text`` on ``separator`` outside quotes and brackets."""
    parts: list[str] = []
    depth = 0
    quote: str | None = None
    start = 0

    for index, char in enumerate(text):
        if quote is not None:
            if char == quote:
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
        elif char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth = max(depth - 1, 0)
        elif char == separator and depth == 0:
            parts.append(text[start:index])
            start = index + 1

    parts.append(text[start:])
    return parts


class _ExpressionParser:
    def __init__(
        self,
        raw: str,
        known_model_names: Collection[str],
        *,
        model: str,
        field: str,
    ) -> None:
        self.raw = raw
        self.known_model_names = known_model_names
        self.model = model
        self.field = field

    def error(self, detail: str) -> FieldExpressionError:
        return FieldExpressionError(
            f'Field "{self.raw}" in the model {self.model} {detail}',
            model=self.model,
            field=self.field,
        )

    def parse_expression(self, text: str) -> TypeRef:
        text = text.strip()
        optional = False
        if text.startswith("?"):
            optional = True
            text = text[1:].strip()

        nullable = False
        members: list[str | TypeRef] = []
        for part in split_top_level(text, "|"):
            member = part.strip()
            if not member:
                raise self.error("has an empty union member.")
            if member == "null":
                nullable = True
            elif member == "undefined":
                optional = True
            else:
                members.append(self.parse_member(member))

        ref: TypeRef
        if not members:
            ref = Primitive("null")
            nullable = False
        elif len(members) == 1 and not isinstance(members[0], str):
            ref = members[0]
        else:
            ref = LiteralUnion(tuple(members))

        if nullable:
            ref = Nullable(ref)
        if optional:
            ref = Optional(ref)
        return ref

    def parse_member(self, member: str) -> str | TypeRef:
        if member[0] in ("'", '"'):
            if len(member) < 2 or member[-1] != member[0]:
                raise self.error(f"has an unterminated literal {member}.")
            return member[1:-1]

        if member.endswith("[]"):
            inner = member[:-2].strip()
            if not inner:
                raise self.error("declares an array without an item type.")
            if inner.startswith("(") and inner.endswith(")"):
                return ArrayOf(self.parse_expression(inner[1:-1]))
            return ArrayOf(self.as_type(self.parse_member(inner)))

        generic = self.parse_generic(member)
        if generic is not None:
            return generic

        if _IDENTIFIER.match(member):
            if member in PRIMITIVE_ALIASES:
                return Primitive(PRIMITIVE_ALIASES[member])
            if member in self.known_model_names:
                return ModelRef(member)
            raise self.error(f'references an unknown type "{member}".')

        raise self.error("is not a valid type expression.")

    def parse_generic(self, member: str) -> TypeRef | None:
        if not member.endswith(">") or "<" not in member:
            return None

        name, _, args_text = member[:-1].partition("<")
        args = split_top_level(args_text, ",")
        name = name.strip()

        if name == "Record":
            if len(args) != 2:
                raise self.error("must give Record exactly two type arguments.")
            return RecordOf(
                self.parse_expression(args[0]),
                self.parse_expression(args[1]),
            )
        if name == "Array":
            if len(args) != 1:
                raise self.error("must give Array exactly one type argument.")
            return ArrayOf(self.parse_expression(args[0]))

        raise self.error(f'uses an unsupported generic type "{name}".')

    @staticmethod
    def as_type(member: str | TypeRef) -> TypeRef:
        if isinstance(member, str):
            return LiteralUnion((member,))
        return member


def compile_field(
    raw: str,
    known_model_names: Collection[str],
    *,
    model: str,
    field: str | None = None,
) -> TypeRef:
    """Compile a raw field expression into a ``TypeRef``.

    Args:
        raw: The expression as written in nango.yaml (e.g. ``"Other[] | null"``).
        known_model_names: Model names that may be referenced.
        model: Name of the model owning the field, used in error messages.
        field: Name of the field, used in error messages.

    Raises:
        FieldExpressionError: If the expression ends with ``,`` or ``;`` or
            contains a token that is neither a primitive nor a known model.
    """
    field_name = field if field is not None else raw
    if raw.rstrip().endswith((",", ";")):
        raise FieldExpressionError(
            f'Field "{raw}" in the model {model} ends with a comma or semicolon '
            "which is not allowed.",
            model=model,
            field=field_name,
        )

    parser = _ExpressionParser(raw, known_model_names, model=model, field=field_name)
    if not raw.strip():
        raise parser.error("is empty.")
    return parser.parse_expression(raw)


def referenced_models(ref: TypeRef) -> list[str]:
    """Return model names referenced anywhere inside ``ref``, in order."""
    if isinstance(ref, ModelRef):
        return [ref.name]
    if isinstance(ref, ArrayOf):
        return referenced_models(ref.item)
    if isinstance(ref, RecordOf):
        return referenced_models(ref.key) + referenced_models(ref.value)
    if isinstance(ref, (Nullable, Optional)):
        return referenced_models(ref.inner)
    if isinstance(ref, LiteralUnion):
        names: list[str] = []
        for member in ref.members:
            if not isinstance(member, str):
                names.extend(referenced_models(member))
        return names
    return []


def type_ref_to_dict(ref: TypeRef) -> dict[str, Any]:
    """Tagged, JSON-friendly form of a ``TypeRef``."""
    if isinstance(ref, Primitive):
        return {"kind": "primitive", "name": ref.name}
    if isinstance(ref, ModelRef):
        return {"kind": "model", "name": ref.name}
    if isinstance(ref, ArrayOf):
        return {"kind": "array", "item": type_ref_to_dict(ref.item)}
    if isinstance(ref, RecordOf):
        return {
            "kind": "record",
            "key": type_ref_to_dict(ref.key),
            "value": type_ref_to_dict(ref.value),
        }
    if isinstance(ref, Nullable):
        return {"kind": "nullable", "inner": type_ref_to_dict(ref.inner)}
    if isinstance(ref, Optional):
        return {"kind": "optional", "inner": type_ref_to_dict(ref.inner)}
    return {
        "kind": "union",
        "members": [
            {"kind": "literal", "value": member}
            if isinstance(member, str)
            else type_ref_to_dict(member)
            for member in ref.members
        ],
    }


__all__ = [
    "PRIMITIVE_ALIASES",
    "ArrayOf",
    "LiteralUnion",
    "ModelRef",
    "Nullable",
    "Optional",
    "Primitive",
    "RecordOf",
    "TypeRef",
    "compile_field",
    "referenced_models",
    "split_top_level",
    "type_ref_to_dict",
]
