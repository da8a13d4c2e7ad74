"""Dialect-agnostic representation of a loaded nango.yaml file."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from typegen.expressions import ModelRef, TypeRef, referenced_models, type_ref_to_dict


class OperationKind(str, Enum):
    """Kind of a scripted operation."""

    SYNC = "sync"
    ACTION = "action"


class Dialect(str, Enum):
    """nango.yaml grammar version."""

    V1 = "v1"
    V2 = "v2"


@dataclass(frozen=True)
class ModelField:
    name: str
    raw: str
    type_ref: TypeRef
    optional: bool = False


@dataclass(frozen=True)
class ModelDefinition:
    """A named record type; ``fields`` keeps declaration order."""

    name: str
    fields: tuple[ModelField, ...]
    extends: tuple[str, ...] = ()

    def field_names(self) -> list[str]:
        return [model_field.name for model_field in self.fields]


@dataclass(frozen=True)
class OperationConfig:
    name: str
    kind: OperationKind
    integration: str
    output: tuple[TypeRef, ...] = ()
    input: TypeRef | None = None
    runs: str | None = None
    endpoints: tuple[str, ...] = ()
    webhook_subscriptions: tuple[str, ...] = ()
    sync_type: str | None = None
    track_deletes: bool = False
    auto_start: bool = True
    scopes: tuple[str, ...] = ()
    description: str | None = None
    version: str | None = None

    @property
    def output_models(self) -> list[str]:
        """Model names returned by the operation, in declaration order."""
        names: list[str] = []
        for ref in self.output:
            for name in referenced_models(ref):
                if name not in names:
                    names.append(name)
        return names

    @property
    def terminal_output_models(self) -> list[str]:
        """Models directly returned (not nested inside another type)."""
        return [ref.name for ref in self.output if isinstance(ref, ModelRef)]

    @property
    def folder(self) -> str:
        return "syncs" if self.kind is OperationKind.SYNC else "actions"


@dataclass(frozen=True)
class IntegrationConfig:
    name: str
    operations: tuple[OperationConfig, ...]

    @property
    def syncs(self) -> list[OperationConfig]:
        return [op for op in self.operations if op.kind is OperationKind.SYNC]

    @property
    def actions(self) -> list[OperationConfig]:
        return [op for op in self.operations if op.kind is OperationKind.ACTION]


@dataclass(frozen=True)
class ProjectConfig:
    """A fully loaded and validated nango.yaml file."""

    dialect: Dialect
    integrations: tuple[IntegrationConfig, ...]
    models: tuple[ModelDefinition, ...] = field(default_factory=tuple)

    def model_names(self) -> list[str]:
        return [model.name for model in self.models]

    def get_model(self, name: str) -> ModelDefinition | None:
        for model in self.models:
            if model.name == name:
                return model
        return None

    def find_operation(self, name: str) -> OperationConfig | None:
        for integration in self.integrations:
            for operation in integration.operations:
                if operation.name == name:
                    return operation
        return None

    def iter_operations(self) -> list[OperationConfig]:
        return [op for integration in self.integrations for op in integration.operations]

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly form of the whole configuration."""
        return {
            "dialect": self.dialect.value,
            "integrations": [
                {
                    "name": integration.name,
                    "operations": [
                        _operation_to_dict(op) for op in integration.operations
                    ],
                }
                for integration in self.integrations
            ],
            "models": [
                {
                    "name": model.name,
                    "extends": list(model.extends),
                    "fields": [
                        {
                            "name": model_field.name,
                            "raw": model_field.raw,
                            "optional": model_field.optional,
                            "type": type_ref_to_dict(model_field.type_ref),
                        }
                        for model_field in model.fields
                    ],
                }
                for model in self.models
            ],
        }


def _operation_to_dict(operation: OperationConfig) -> dict[str, Any]:
    return {
        "name": operation.name,
        "type": operation.kind.value,
        "runs": operation.runs,
        "endpoints": list(operation.endpoints),
        "input": type_ref_to_dict(operation.input) if operation.input else None,
        "output": [type_ref_to_dict(ref) for ref in operation.output],
        "webhook_subscriptions": list(operation.webhook_subscriptions),
        "sync_type": operation.sync_type,
        "track_deletes": operation.track_deletes,
        "auto_start": operation.auto_start,
        "scopes": list(operation.scopes),
        "description": operation.description,
        "version": operation.version,
    }


__all__ = [
    "Dialect",
    "IntegrationConfig",
    "ModelDefinition",
    "ModelField",
    "OperationConfig",
    "OperationKind",
    "ProjectConfig",
]
