"""Compile orchestration for nango projects."""

from compiler.compile import (
    BatchCompileResult,
    CompileOptions,
    FileCompileResult,
    FileToCompile,
    compile_all_files,
    compile_project,
    compile_single_file,
    get_file_to_compile,
)
from compiler.generate import GenerateResult, generate, init, write_models

__all__ = [
    "BatchCompileResult",
    "CompileOptions",
    "FileCompileResult",
    "FileToCompile",
    "GenerateResult",
    "compile_all_files",
    "compile_project",
    "compile_single_file",
    "generate",
    "get_file_to_compile",
    "init",
    "write_models",
]
