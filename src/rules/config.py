from __future__ import annotations

from pathlib import Path
from typing import Any

import tomllib
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

CONFIG_FILENAME = "nango-compiler.toml"


class CompilerConfig(BaseModel):
    """Configuration for compiling a nango project."""

    model_config = ConfigDict(extra="forbid")

    output_dir: str = Field(
        default="dist",
        description="Output directory for compiled scripts and artifacts",
    )
    models_file: str = Field(
        default="models.py",
        description="Generated models module, relative to the project root",
    )
    workers: int = Field(
        default=1,
        ge=1,
        description="Number of scripts compiled in parallel",
    )
    nested_gitignore: bool = Field(
        default=False,
        description=(
            "Enable nested .gitignore composition (default: false for root-only)"
        ),
    )

    @field_validator("models_file", mode="before")
    @classmethod
    def validate_models_file(cls, v: Any) -> Any:
        """Models must be a plain top-level ``.py`` module so scripts can import it."""
        if not isinstance(v, str):
            return v

        path = Path(v)
        if path.suffix != ".py" or len(path.parts) != 1 or not path.stem.isidentifier():
            msg = (
                f"models_file '{v}' must be a module name such as 'models.py' "
                "placed at the project root"
            )
            raise ValueError(msg)
        return v

    @property
    def models_module(self) -> str:
        return Path(self.models_file).stem


class ConfigError(Exception):
    """Raised when config file exists but cannot be parsed."""


def resolve_output_dir(root: Path, output_dir: str) -> Path:
    """Resolve a config-provided output_dir safely within the project root.

    The config output_dir must be a non-empty relative path that remains
    within the project root after resolution. Absolute paths and paths
    that escape the root are rejected.
    """
    if not output_dir:
        msg = "output_dir must be a non-empty relative path"
        raise ConfigError(msg)

    if output_dir.startswith("~"):
        msg = "output_dir must be a relative path within the project root"
        raise ConfigError(msg)

    output_path = Path(output_dir)
    if output_path.is_absolute():
        msg = "output_dir must be a relative path within the project root"
        raise ConfigError(msg)

    try:
        resolved_root = root.resolve()
        resolved_output = (resolved_root / output_path).resolve()
    except OSError as exc:
        msg = f"Failed to resolve output_dir '{output_dir}': {exc}"
        raise ConfigError(msg) from exc

    try:
        relative = resolved_output.relative_to(resolved_root)
    except ValueError as exc:
        msg = f"output_dir '{output_dir}' escapes the project root"
        raise ConfigError(msg) from exc

    if not relative.parts:
        msg = "output_dir must not be the project root itself"
        raise ConfigError(msg)

    return resolved_output


def load_config(root: Path) -> CompilerConfig:
    """Load configuration from nango-compiler.toml if it exists."""
    config_path = Path(root) / CONFIG_FILENAME

    if not config_path.is_file():
        return CompilerConfig()

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return CompilerConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid config in {config_path}: {e}"
        raise ConfigError(msg) from e
