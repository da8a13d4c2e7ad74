"""Parsing utilities for integration scripts."""

from parse.ast_imports import (
    ImportRef,
    extract_imports,
    resolve_module_file,
    resolve_relative_import,
)
from parse.treesitter_usage import analyze_usage, calls_are_used_correctly

__all__ = [
    "ImportRef",
    "analyze_usage",
    "calls_are_used_correctly",
    "extract_imports",
    "resolve_module_file",
    "resolve_relative_import",
]
