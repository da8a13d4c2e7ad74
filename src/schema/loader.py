"""Load, validate and normalize nango.yaml files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
import yaml
from pydantic import ValidationError

from errors import (
    FieldExpressionError,
    ModelInvariantError,
    SchemaError,
    SchemaValidationError,
)
from schema.ir import (
    Dialect,
    IntegrationConfig,
    ModelDefinition,
    ModelField,
    OperationConfig,
    OperationKind,
    ProjectConfig,
)
from schema.models import DialectV1, DialectV2
from typegen.expressions import ModelRef, Optional, compile_field
from typegen.render import is_valid_model_name

if TYPE_CHECKING:
    from collections.abc import Collection

    from schema.models import RawDocument, V1Operation, V2Action, V2Sync
    from typegen.expressions import TypeRef

logger = structlog.get_logger(__name__)

NANGO_YAML = "nango.yaml"
EXTENDS_KEY = "__extends"

_WORD_SPLIT = re.compile(r"[^A-Za-z0-9]+")


@dataclass(frozen=True)
class LoadResult:
    """Outcome of ``load``: exactly one of ``config`` and ``error`` is set."""

    config: ProjectConfig | None = None
    error: SchemaError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def load(directory: Path | str) -> LoadResult:
    """Load the nango.yaml file found in ``directory``.

    Never raises for schema problems; the error is returned instead and the
    config is ``None``.
    """
    try:
        return LoadResult(config=parse_project(directory))
    except SchemaError as exc:
        return LoadResult(error=exc)


def parse_project(directory: Path | str) -> ProjectConfig:
    """Load the nango.yaml file found in ``directory`` or raise ``SchemaError``."""
    path = Path(directory) / NANGO_YAML
    data = _read_yaml(path)
    dialect = detect_dialect(data)
    document = _validate_document(data, dialect, path)

    models = _build_models(document.models)
    model_names = [model.name for model in models]

    if isinstance(document, DialectV2):
        integrations = _normalize_v2(document, model_names)
    else:
        integrations = _normalize_v1(document, model_names)

    _check_unique_operation_names(integrations)
    _check_sync_output_ids(integrations, models)

    config = ProjectConfig(
        dialect=dialect,
        integrations=tuple(integrations),
        models=tuple(models),
    )
    logger.debug(
        "schema_loaded",
        path=str(path),
        dialect=dialect.value,
        integrations=len(config.integrations),
        models=len(config.models),
    )
    return config


def get_model_names(config: ProjectConfig) -> list[str]:
    return config.model_names()


def detect_dialect(data: dict[str, Any]) -> Dialect:
    """Detect the grammar version from the shape of the document."""
    integrations = data.get("integrations")
    if isinstance(integrations, dict):
        for body in integrations.values():
            if isinstance(body, dict) and ("syncs" in body or "actions" in body):
                return Dialect.V2
    return Dialect.V1


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise SchemaValidationError(internal_details=f"{path} does not exist")

    try:
        with path.open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as exc:
        raise SchemaValidationError(
            internal_details=f"Could not read {path}: {exc}"
        ) from exc

    if not isinstance(data, dict):
        raise SchemaValidationError(
            internal_details=f"{path} must contain a mapping at the top level"
        )
    return data


def format_pydantic_error(err: ValidationError) -> str:
    """Render a pydantic error as ``loc: msg`` lines."""
    lines = ["Validation failed:"]
    for detail in err.errors():
        loc = ".".join(str(part) for part in detail["loc"])
        lines.append(f"  - {loc}: {detail['msg']}")
    return "\n".join(lines)


def _validate_document(
    data: dict[str, Any],
    dialect: Dialect,
    path: Path,
) -> RawDocument:
    model = DialectV2 if dialect is Dialect.V2 else DialectV1
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise SchemaValidationError(
            internal_details=f"{path} ({dialect.value}): {format_pydantic_error(exc)}"
        ) from exc


def _pascal_case(name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in _WORD_SPLIT.split(name))


def _collect_raw_models(raw_models: dict[str, Any]) -> list[tuple[str, dict[Any, Any]]]:
    """Flatten inline object fields into auxiliary models named ``<Model><Field>``."""
    collected: list[tuple[str, dict[Any, Any]]] = []

    def visit(name: str, body: Any) -> None:
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise SchemaValidationError(
                internal_details=f"Model {name} must map field names to types"
            )
        collected.append((name, body))
        for key, value in body.items():
            if isinstance(value, dict):
                visit(f"{name}{_pascal_case(str(key).rstrip('?'))}", value)

    for name, body in raw_models.items():
        visit(str(name), body)
    return collected


def _check_model_names(names: list[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if not is_valid_model_name(name):
            raise SchemaValidationError(
                internal_details=f'Model name "{name}" cannot be declared in Python'
            )
        if name in seen:
            raise SchemaValidationError(
                internal_details=f'Model "{name}" is declared more than once'
            )
        seen.add(name)


def _build_models(raw_models: dict[str, Any]) -> list[ModelDefinition]:
    collected = _collect_raw_models(raw_models)
    names = [name for name, _ in collected]
    _check_model_names(names)

    models: list[ModelDefinition] = []
    for name, body in collected:
        extends: tuple[str, ...] = ()
        fields: list[ModelField] = []
        for key, value in body.items():
            key_text = str(key)
            if key_text == EXTENDS_KEY:
                extends = _parse_extends(name, value, names)
                continue
            fields.append(_build_field(name, key_text, value, names))
        models.append(ModelDefinition(name=name, fields=tuple(fields), extends=extends))
    return models


def _parse_extends(model: str, value: Any, names: Collection[str]) -> tuple[str, ...]:
    bases = tuple(part.strip() for part in str(value).split(",") if part.strip())
    for base in bases:
        if base not in names or base == model:
            raise FieldExpressionError(
                f'Model {model} extends unknown model "{base}".',
                model=model,
                field=EXTENDS_KEY,
            )
    return bases


def _build_field(model: str, key: str, value: Any, names: Collection[str]) -> ModelField:
    optional_key = key.endswith("?")
    field_name = key[:-1] if optional_key else key

    if isinstance(value, dict):
        raw = f"{model}{_pascal_case(field_name)}"
        type_ref = ModelRef(raw)
    elif isinstance(value, str):
        raw = value
        type_ref = compile_field(value, names, model=model, field=field_name)
    else:
        raise FieldExpressionError(
            f'Field "{value}" in the model {model} is not a valid type expression.',
            model=model,
            field=field_name,
        )

    if optional_key and not isinstance(type_ref, Optional):
        type_ref = Optional(type_ref)

    return ModelField(
        name=field_name,
        raw=raw,
        type_ref=type_ref,
        optional=isinstance(type_ref, Optional),
    )


def _as_tuple(value: str | list[str] | None) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _compile_operation_types(
    integration: str,
    operation: str,
    names: tuple[str, ...],
    model_names: Collection[str],
) -> tuple[TypeRef, ...]:
    refs: list[TypeRef] = []
    for name in names:
        # Non-model inputs and outputs are never passed through as raw
        # identifiers: a typo such as `strings` fails the load.
        try:
            refs.append(
                compile_field(name, model_names, model=f"{integration}/{operation}")
            )
        except FieldExpressionError as exc:
            raise SchemaValidationError(
                internal_details=(
                    f'"{name}" used by {integration}/{operation} is neither a '
                    f"model nor a valid type: {exc}"
                )
            ) from exc
    return tuple(refs)


def _normalize_v1(
    document: DialectV1,
    model_names: list[str],
) -> list[IntegrationConfig]:
    integrations: list[IntegrationConfig] = []
    for integration_name, operations in document.integrations.items():
        normalized = [
            _normalize_v1_operation(integration_name, name, raw, model_names)
            for name, raw in operations.items()
        ]
        integrations.append(
            IntegrationConfig(name=integration_name, operations=tuple(normalized))
        )
    return integrations


def _normalize_v1_operation(
    integration: str,
    name: str,
    raw: V1Operation,
    model_names: list[str],
) -> OperationConfig:
    output = _compile_operation_types(
        integration, name, _as_tuple(raw.returns), model_names
    )
    inputs = _compile_operation_types(
        integration, name, _as_tuple(raw.input), model_names
    )
    return OperationConfig(
        name=name,
        kind=OperationKind(raw.type),
        integration=integration,
        output=output,
        input=inputs[0] if inputs else None,
        runs=raw.runs,
        webhook_subscriptions=_as_tuple(raw.webhook_subscriptions),
        track_deletes=raw.track_deletes,
        auto_start=raw.auto_start,
        scopes=_as_tuple(raw.scopes),
        description=raw.description,
        version=raw.version,
    )


def _normalize_v2(
    document: DialectV2,
    model_names: list[str],
) -> list[IntegrationConfig]:
    integrations: list[IntegrationConfig] = []
    for integration_name, body in document.integrations.items():
        operations = [
            _normalize_v2_operation(integration_name, name, raw, model_names)
            for name, raw in body.syncs.items()
        ]
        operations.extend(
            _normalize_v2_operation(integration_name, name, raw, model_names)
            for name, raw in body.actions.items()
        )
        integrations.append(
            IntegrationConfig(name=integration_name, operations=tuple(operations))
        )
    return integrations


def _normalize_v2_operation(
    integration: str,
    name: str,
    raw: V2Sync | V2Action,
    model_names: list[str],
) -> OperationConfig:
    output = _compile_operation_types(
        integration, name, _as_tuple(raw.output), model_names
    )
    inputs = _compile_operation_types(
        integration, name, _as_tuple(raw.input), model_names
    )
    common: dict[str, Any] = {
        "name": name,
        "kind": OperationKind(raw.type),
        "integration": integration,
        "output": output,
        "input": inputs[0] if inputs else None,
        "endpoints": _as_tuple(raw.endpoint),
        "scopes": _as_tuple(raw.scopes),
        "description": raw.description,
        "version": raw.version,
    }
    if raw.type == "action":
        return OperationConfig(**common)

    return OperationConfig(
        **common,
        runs=raw.runs,
        webhook_subscriptions=_as_tuple(raw.webhook_subscriptions),
        sync_type=raw.sync_type,
        track_deletes=raw.track_deletes,
        auto_start=raw.auto_start,
    )


def _check_unique_operation_names(integrations: list[IntegrationConfig]) -> None:
    seen: dict[str, str] = {}
    for integration in integrations:
        for operation in integration.operations:
            previous = seen.get(operation.name)
            if previous is not None:
                raise SchemaValidationError(
                    internal_details=(
                        f'Operation "{operation.name}" is declared by both '
                        f"{previous} and {integration.name}"
                    )
                )
            seen[operation.name] = integration.name


def _all_field_names(
    model: ModelDefinition,
    models_by_name: dict[str, ModelDefinition],
    visiting: frozenset[str] = frozenset(),
) -> set[str]:
    names = set(model.field_names())
    for base in model.extends:
        if base in visiting or base not in models_by_name:
            continue
        names |= _all_field_names(
            models_by_name[base], models_by_name, visiting | {model.name}
        )
    return names


def _check_sync_output_ids(
    integrations: list[IntegrationConfig],
    models: list[ModelDefinition],
) -> None:
    models_by_name = {model.name: model for model in models}
    for integration in integrations:
        for sync in integration.syncs:
            for model_name in sync.output_models:
                model = models_by_name.get(model_name)
                if model is None:
                    continue
                if "id" not in _all_field_names(model, models_by_name):
                    raise ModelInvariantError(model_name)


__all__ = [
    "EXTENDS_KEY",
    "NANGO_YAML",
    "LoadResult",
    "detect_dialect",
    "format_pydantic_error",
    "get_model_names",
    "load",
    "parse_project",
]
