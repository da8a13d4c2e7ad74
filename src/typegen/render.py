"""Render model declarations as a Python module of ``TypedDict`` classes."""

from __future__ import annotations

import keyword
from typing import TYPE_CHECKING

from typegen.expressions import (
    ArrayOf,
    LiteralUnion,
    ModelRef,
    Nullable,
    Optional,
    Primitive,
    RecordOf,
)

if TYPE_CHECKING:
    from schema.ir import ModelDefinition, ModelField, ProjectConfig
    from typegen.expressions import TypeRef

PYTHON_TYPES: dict[str, str] = {
    "string": "str",
    "number": "float",
    "integer": "int",
    "boolean": "bool",
    "date": "datetime",
    "any": "Any",
    "object": "dict[str, Any]",
    "null": "None",
}

MODULE_HEADER = '''"""Models generated from nango.yaml. Do not edit by hand."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, NotRequired, TypedDict
'''

# Bound by MODULE_HEADER or used by rendered annotations.
RESERVED_NAMES = frozenset(
    {
        "annotations",
        "datetime",
        "Any",
        "Literal",
        "NotRequired",
        "TypedDict",
        "str",
        "float",
        "int",
        "bool",
        "list",
        "dict",
    }
)


def is_valid_model_name(name: str) -> bool:
    """True when ``name`` can be declared as a class in the generated module."""
    return (
        name.isidentifier()
        and not keyword.iskeyword(name)
        and name not in RESERVED_NAMES
    )


def render_type(ref: TypeRef) -> str:
    """Render a ``TypeRef`` as a Python type expression."""
    if isinstance(ref, Primitive):
        return PYTHON_TYPES[ref.name]
    if isinstance(ref, ModelRef):
        return ref.name
    if isinstance(ref, ArrayOf):
        return f"list[{render_type(ref.item)}]"
    if isinstance(ref, RecordOf):
        return f"dict[{render_type(ref.key)}, {render_type(ref.value)}]"
    if isinstance(ref, Nullable):
        return f"{render_type(ref.inner)} | None"
    if isinstance(ref, Optional):
        # absence can only be expressed on a TypedDict key
        if isinstance(ref.inner, Nullable):
            return render_type(ref.inner)
        return f"{render_type(ref.inner)} | None"
    return _render_union(ref)


def _render_union(ref: LiteralUnion) -> str:
    parts: list[str] = []
    literals: list[str] = []

    def flush() -> None:
        if literals:
            parts.append(f"Literal[{', '.join(repr(value) for value in literals)}]")
            literals.clear()

    for member in ref.members:
        if isinstance(member, str):
            literals.append(member)
        else:
            flush()
            parts.append(render_type(member))
    flush()
    return " | ".join(parts)


def render_field_type(model_field: ModelField) -> str:
    """Render the annotation of one TypedDict key."""
    ref = model_field.type_ref
    if isinstance(ref, Optional):
        return f"NotRequired[{render_type(ref.inner)}]"
    return render_type(ref)


def _needs_functional_form(model: ModelDefinition) -> bool:
    return any(
        not model_field.name.isidentifier() or keyword.iskeyword(model_field.name)
        for model_field in model.fields
    )


def render_model(
    model: ModelDefinition,
    inherited: tuple[ModelField, ...] = (),
) -> str:
    """Render one model declaration.

    Keys that are not valid Python identifiers force the functional
    ``TypedDict("Name", {...})`` form; that form cannot inherit, so fields of
    base models are passed in through ``inherited`` and inlined.
    """
    if _needs_functional_form(model):
        entries = [
            f"        {model_field.name!r}: {render_field_type(model_field)!r},"
            for model_field in (*inherited, *model.fields)
        ]
        body = "\n".join(entries)
        return f'{model.name} = TypedDict(\n    "{model.name}",\n    {{\n{body}\n    }},\n)\n'

    bases = ", ".join(model.extends) if model.extends else "TypedDict"
    lines = [f"class {model.name}({bases}):"]
    if not model.fields:
        lines.append("    pass")
    for model_field in model.fields:
        lines.append(f"    {model_field.name}: {render_field_type(model_field)}")
    return "\n".join(lines) + "\n"


def _ordered_models(models: tuple[ModelDefinition, ...]) -> list[ModelDefinition]:
    """Declaration order, except that base models precede their subclasses."""
    by_name = {model.name: model for model in models}
    ordered: list[ModelDefinition] = []
    placed: set[str] = set()

    def place(model: ModelDefinition, visiting: frozenset[str]) -> None:
        if model.name in placed or model.name in visiting:
            return
        for base in model.extends:
            if base in by_name:
                place(by_name[base], visiting | {model.name})
        placed.add(model.name)
        ordered.append(model)

    for model in models:
        place(model, frozenset())
    return ordered


def _inherited_fields(
    model: ModelDefinition,
    by_name: dict[str, ModelDefinition],
    visiting: frozenset[str] = frozenset(),
) -> tuple[ModelField, ...]:
    fields: list[ModelField] = []
    for base_name in model.extends:
        base = by_name.get(base_name)
        if base is None or base_name in visiting:
            continue
        fields.extend(_inherited_fields(base, by_name, visiting | {model.name}))
        fields.extend(base.fields)
    return tuple(fields)


def render_models(config: ProjectConfig) -> str:
    """Render the whole generated models module for a project."""
    by_name = {model.name: model for model in config.models}
    ordered = _ordered_models(config.models)

    blocks = [MODULE_HEADER]
    if ordered:
        names = "\n".join(f'    "{model.name}",' for model in ordered)
        blocks.append(f"__all__ = [\n{names}\n]\n")
    for model in ordered:
        inherited = (
            _inherited_fields(model, by_name) if _needs_functional_form(model) else ()
        )
        blocks.append(render_model(model, inherited))
    return "\n\n".join(blocks)


__all__ = [
    "MODULE_HEADER",
    "PYTHON_TYPES",
    "RESERVED_NAMES",
    "is_valid_model_name",
    "render_field_type",
    "render_model",
    "render_models",
    "render_type",
]
