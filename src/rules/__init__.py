"""Compiler configuration and the nango usage contract."""

from rules.config import (
    CompilerConfig,
    ConfigError,
    load_config,
    resolve_output_dir,
)
from rules.usage import FileUsageResult, UsageViolation, handler_name

__all__ = [
    "CompilerConfig",
    "ConfigError",
    "FileUsageResult",
    "UsageViolation",
    "handler_name",
    "load_config",
    "resolve_output_dir",
]
