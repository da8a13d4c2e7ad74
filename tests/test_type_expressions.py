from __future__ import annotations

import pytest

from errors import FieldExpressionError
from typegen.expressions import (
    ArrayOf,
    LiteralUnion,
    ModelRef,
    Nullable,
    Optional,
    Primitive,
    RecordOf,
    compile_field,
    referenced_models,
    split_top_level,
)

MODELS = ("Other", "GithubIssue")


def _compile(raw: str):
    return compile_field(raw, MODELS, model="Person", field="value")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("string", Primitive("string")),
        ("str", Primitive("string")),
        ("number", Primitive("number")),
        ("int", Primitive("integer")),
        ("bool", Primitive("boolean")),
        ("Date", Primitive("date")),
        ("any", Primitive("any")),
        ("Other", ModelRef("Other")),
        ("Other[]", ArrayOf(ModelRef("Other"))),
        ("string[][]", ArrayOf(ArrayOf(Primitive("string")))),
        ("Array<Other>", ArrayOf(ModelRef("Other"))),
        (
            "(string | number)[]",
            ArrayOf(LiteralUnion((Primitive("string"), Primitive("number")))),
        ),
        ("Record<string, Other>", RecordOf(Primitive("string"), ModelRef("Other"))),
        ("string | null", Nullable(Primitive("string"))),
        ("string | undefined", Optional(Primitive("string"))),
        ("?string", Optional(Primitive("string"))),
        ("'male' | 'female'", LiteralUnion(("male", "female"))),
        ("'male' | null", Nullable(LiteralUnion(("male",)))),
        ('"a|b" | "c"', LiteralUnion(("a|b", "c"))),
    ],
)
def test_compile_field(raw: str, expected: object) -> None:
    assert _compile(raw) == expected


def test_union_preserves_member_order() -> None:
    ref = _compile("Other | 'none' | number")

    assert ref == LiteralUnion((ModelRef("Other"), "none", Primitive("number")))


def test_array_of_model_is_never_a_literal() -> None:
    ref = _compile("Other[]")

    assert not isinstance(ref, LiteralUnion)
    assert referenced_models(ref) == ["Other"]


@pytest.mark.parametrize("raw", ["string,", "string;", "Other[] | null;", "number , "])
def test_trailing_punctuation_is_rejected(raw: str) -> None:
    with pytest.raises(FieldExpressionError) as exc_info:
        _compile(raw)

    message = exc_info.value.user_message
    assert f'Field "{raw}"' in message
    assert "model Person" in message
    assert "ends with a comma or semicolon" in message


@pytest.mark.parametrize("raw", ["string,", "string;"])
def test_stripping_trailing_punctuation_compiles(raw: str) -> None:
    assert _compile(raw[:-1]) == Primitive("string")


@pytest.mark.parametrize(
    ("raw", "detail"),
    [
        ("Missing", 'unknown type "Missing"'),
        ("strings", 'unknown type "strings"'),
        ("Map<string, number>", 'unsupported generic type "Map"'),
        ("string |", "empty union member"),
        ("[]", "array without an item type"),
        ("'open", "unterminated literal"),
        ("Record<string>", "exactly two type arguments"),
    ],
)
def test_invalid_expressions_name_field_and_model(raw: str, detail: str) -> None:
    with pytest.raises(FieldExpressionError) as exc_info:
        _compile(raw)

    error = exc_info.value
    assert error.model == "Person"
    assert error.field == "value"
    assert detail in error.user_message


def test_split_top_level_ignores_nested_separators() -> None:
    assert split_top_level("Record<string, number>, 'a,b'", ",") == [
        "Record<string, number>",
        " 'a,b'",
    ]
