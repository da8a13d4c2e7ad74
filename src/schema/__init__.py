"""nango.yaml loading and validation."""

from schema.ir import (
    Dialect,
    IntegrationConfig,
    ModelDefinition,
    ModelField,
    OperationConfig,
    OperationKind,
    ProjectConfig,
)
from schema.loader import NANGO_YAML, LoadResult, get_model_names, load, parse_project

__all__ = [
    "NANGO_YAML",
    "Dialect",
    "IntegrationConfig",
    "LoadResult",
    "ModelDefinition",
    "ModelField",
    "OperationConfig",
    "OperationKind",
    "ProjectConfig",
    "get_model_names",
    "load",
    "parse_project",
]
