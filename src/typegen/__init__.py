"""Type-expression compilation and model declaration rendering."""

from typegen.expressions import (
    ArrayOf,
    LiteralUnion,
    ModelRef,
    Nullable,
    Optional,
    Primitive,
    RecordOf,
    TypeRef,
    compile_field,
)
from typegen.render import render_model, render_models, render_type

__all__ = [
    "ArrayOf",
    "LiteralUnion",
    "ModelRef",
    "Nullable",
    "Optional",
    "Primitive",
    "RecordOf",
    "TypeRef",
    "compile_field",
    "render_model",
    "render_models",
    "render_type",
]
