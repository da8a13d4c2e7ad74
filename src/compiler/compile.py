"""Compile every integration script declared in nango.yaml.

One run loads the schema, writes the models module once and then checks and
byte-compiles each script independently. A failing script never stops the
batch; the run succeeds only when every script does.
"""

from __future__ import annotations

import ast
import py_compile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from compiler.artifacts import COMPILE_REPORT_JSON, NANGO_JSON, write_json
from compiler.generate import write_models
from errors import PathContainmentError, SchemaError
from parse.ast_imports import extract_imports, resolve_relative_import
from parse.treesitter_usage import analyze_usage
from rules.config import CompilerConfig, load_config, resolve_output_dir
from scan.files import (
    ScriptLocation,
    _is_within_root,
    find_scripts,
    flat_script_path,
    nested_script_path,
)
from schema.loader import parse_project
from utils import compiled_path, relative_posix

if TYPE_CHECKING:
    from collections.abc import Collection

    from parse.ast_imports import ImportRef
    from schema.ir import OperationConfig, ProjectConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CompileOptions:
    """Settings of one compile run.

    ``out_dir`` and ``workers`` override the values of ``config`` when set.
    """

    root: Path
    config: CompilerConfig = field(default_factory=CompilerConfig)
    out_dir: Path | None = None
    workers: int | None = None

    @classmethod
    def for_root(
        cls,
        root: Path,
        *,
        out_dir: Path | None = None,
        workers: int | None = None,
    ) -> CompileOptions:
        """Options for ``root`` using its nango-compiler.toml, if any."""
        return cls(root=root, config=load_config(root), out_dir=out_dir, workers=workers)

    def output_path(self) -> Path:
        if self.out_dir is not None:
            return self.out_dir
        return resolve_output_dir(self.root, self.config.output_dir)

    def models_path(self) -> Path:
        return self.root / self.config.models_file

    def max_workers(self) -> int:
        return self.workers or self.config.workers


@dataclass(frozen=True)
class FileToCompile:
    input_file: Path
    output_file: Path


@dataclass(frozen=True)
class FileCompileResult:
    path: str
    operation: str | None
    ok: bool
    diagnostics: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "operation": self.operation,
            "ok": self.ok,
            "diagnostics": list(self.diagnostics),
        }


@dataclass(frozen=True)
class BatchCompileResult:
    """Outcome of a compile run; ``error`` is set when nango.yaml did not load."""

    success: bool
    files: tuple[FileCompileResult, ...] = ()
    error: str | None = None

    @property
    def failed(self) -> list[FileCompileResult]:
        return [result for result in self.files if not result.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "files": [result.to_dict() for result in self.files],
        }


def get_file_to_compile(path: Path | str, options: CompileOptions) -> FileToCompile:
    """Pair a script with the compiled module it produces."""
    input_file = Path(path)
    if not input_file.is_absolute():
        input_file = options.root / input_file
    return FileToCompile(
        input_file=input_file,
        output_file=compiled_path(input_file, options.root, options.output_path()),
    )


@lru_cache(maxsize=8)
def _declared_names(models_source: str) -> frozenset[str]:
    """Top-level names bound by the generated models module."""
    names: set[str] = set()
    for node in ast.parse(models_source).body:
        if isinstance(node, ast.ClassDef):
            names.add(node.name)
        elif isinstance(node, ast.Assign):
            names.update(
                target.id for target in node.targets if isinstance(target, ast.Name)
            )
    names.discard("__all__")
    return frozenset(names)


def _byte_compile(source: Path, output: Path, root: Path) -> str | None:
    """Compile ``source`` into ``output``; return the error text on failure."""
    output.parent.mkdir(parents=True, exist_ok=True)
    try:
        py_compile.compile(
            str(source),
            cfile=str(output),
            dfile=relative_posix(source, root),
            doraise=True,
            invalidation_mode=py_compile.PycInvalidationMode.UNCHECKED_HASH,
        )
    except py_compile.PyCompileError as exc:
        return exc.msg.strip()
    return None


class _ScriptCompiler:
    """Checks and compiles one operation script together with its helpers."""

    def __init__(
        self,
        location: ScriptLocation,
        models_source: str,
        config: ProjectConfig,
        model_names: Collection[str],
        options: CompileOptions,
    ) -> None:
        self.location = location
        self.operation = location.operation
        self.models_source = models_source
        self.config = config
        self.model_names = model_names
        self.options = options
        self.root = options.root
        self.models_file = options.models_path()
        self.models_module = options.config.models_module
        self.integration_names = {
            integration.name for integration in config.integrations
        }
        self.diagnostics: list[str] = []
        self.visited: set[Path] = set()

    def fail(self, path: Path, message: str) -> None:
        self.diagnostics.append(f"{relative_posix(path, self.root)}: {message}")

    def run(self) -> bool:
        self.compile_file(self.location.path)
        return not self.diagnostics

    def compile_file(self, path: Path) -> None:
        resolved = path.resolve()
        if resolved in self.visited:
            return
        self.visited.add(resolved)

        usage = analyze_usage(
            path,
            self.operation.kind,
            self.operation.output_models,
            require_handler=path == self.location.path,
        )
        for violation in usage.violations:
            where = f"line {violation.line}: " if violation.line else ""
            self.fail(path, f"{where}{violation.message}")

        helpers = self.check_imports(path)

        if usage.ok and not self.diagnostics_for(path):
            target = get_file_to_compile(path, self.options)
            error = _byte_compile(target.input_file, target.output_file, self.root)
            if error is not None:
                self.fail(path, error)

        for helper in helpers:
            self.compile_file(helper)

    def diagnostics_for(self, path: Path) -> bool:
        prefix = f"{relative_posix(path, self.root)}: "
        return any(message.startswith(prefix) for message in self.diagnostics)

    def check_imports(self, path: Path) -> list[Path]:
        """Validate the imports of ``path`` and return the helper files it uses."""
        helpers: list[Path] = []
        for ref in extract_imports(path):
            if ref.is_relative:
                helpers.extend(self.check_relative_import(path, ref))
            elif ref.module == self.models_module:
                self.check_models_import(path, ref)
            elif self.is_sibling_integration(ref.top_level):
                self.fail(
                    path,
                    f"line {ref.line}: importing the integration "
                    f'"{ref.top_level}" from another integration is not allowed',
                )
        return helpers

    def check_relative_import(self, path: Path, ref: ImportRef) -> list[Path]:
        target = resolve_relative_import(path, ref)
        files = [
            file for file in target.files if file.resolve() != self.models_file.resolve()
        ]
        if target.files and not files:
            # the generated models module may be imported from anywhere
            return []

        allowed_root = self.location.integration_root
        outside = [
            candidate
            for candidate in (target.location, *files)
            if not _is_within_root(candidate, allowed_root)
        ]
        if outside:
            error = PathContainmentError(
                importer=relative_posix(path, self.root),
                target=relative_posix(outside[0], self.root),
                root=relative_posix(allowed_root, self.root) or ".",
            )
            self.fail(path, f"line {ref.line}: {error.user_message}")
            return []

        for name in target.unresolved:
            self.fail(path, f"line {ref.line}: cannot resolve relative import of {name!r}")
        return files

    def check_models_import(self, path: Path, ref: ImportRef) -> None:
        declared = _declared_names(self.models_source)
        for name in ref.names:
            if name == "*":
                continue
            if name not in self.model_names:
                self.fail(
                    path,
                    f'line {ref.line}: "{name}" is not a model declared in nango.yaml',
                )
            elif name not in declared:
                self.fail(
                    path,
                    f'line {ref.line}: "{name}" is missing from the generated '
                    f"{self.models_module} module; run generate first",
                )

    def is_sibling_integration(self, name: str) -> bool:
        if name not in self.integration_names:
            return False
        if self.location.nested and name == self.operation.integration:
            return False
        return (self.root / name).is_dir()


def _missing_script_result(
    location: ScriptLocation,
    options: CompileOptions,
) -> FileCompileResult:
    operation = location.operation
    nested = relative_posix(nested_script_path(options.root, operation), options.root)
    flat = relative_posix(flat_script_path(options.root, operation), options.root)
    message = (
        f"No script found for {operation.kind.value} '{operation.name}' of "
        f"integration '{operation.integration}' (looked for {nested} and {flat})"
    )
    return FileCompileResult(
        path=nested,
        operation=operation.name,
        ok=False,
        diagnostics=(message,),
    )


def _compile_location(
    location: ScriptLocation,
    models_source: str,
    config: ProjectConfig,
    model_names: Collection[str],
    options: CompileOptions,
) -> FileCompileResult:
    if not location.exists:
        result = _missing_script_result(location, options)
    else:
        compiler = _ScriptCompiler(location, models_source, config, model_names, options)
        ok = compiler.run()
        result = FileCompileResult(
            path=relative_posix(location.path, options.root),
            operation=location.operation.name,
            ok=ok,
            diagnostics=tuple(compiler.diagnostics),
        )

    logger.info(
        "file_compiled",
        path=result.path,
        operation=result.operation,
        ok=result.ok,
    )
    for message in result.diagnostics:
        logger.warning("compile_diagnostic", path=result.path, detail=message)
    return result


def _operation_for_file(config: ProjectConfig, path: Path) -> OperationConfig | None:
    operation = config.find_operation(path.stem)
    if operation is None:
        return None
    parts = path.parts
    if len(parts) >= 3 and parts[-2] in ("syncs", "actions"):
        if parts[-3] != operation.integration or parts[-2] != operation.folder:
            return None
    return operation


def compile_single_file(
    file: FileToCompile,
    models_source: str,
    config: ProjectConfig,
    model_names: Collection[str],
    options: CompileOptions,
) -> bool:
    """Check and compile one operation script.

    Args:
        file: Script and its compiled destination.
        models_source: Text of the generated models module the script
            imports from.
        config: Loaded project configuration.
        model_names: Names of every model declared in nango.yaml.
        options: Run settings.

    Returns:
        True when the script and every helper it imports pass the usage
        checks and compile.
    """
    operation = _operation_for_file(config, file.input_file)
    if operation is None:
        logger.warning(
            "file_not_declared",
            path=relative_posix(file.input_file, options.root),
        )
        return False

    nested = file.input_file.parent.name == operation.folder
    location = ScriptLocation(
        operation=operation,
        path=file.input_file,
        integration_root=(
            options.root / operation.integration if nested else options.root
        ),
        nested=nested,
    )
    return _compile_location(location, models_source, config, model_names, options).ok


def _write_models_artifacts(
    config: ProjectConfig,
    options: CompileOptions,
    out_dir: Path,
) -> str:
    models_path, models_source = write_models(options.root, config, options.config)
    error = _byte_compile(
        models_path,
        out_dir / Path(options.config.models_file).with_suffix(".pyc"),
        options.root,
    )
    if error is not None:
        # rendered from a validated schema, so this is a bug in the renderer
        msg = f"Generated {models_path.name} does not compile: {error}"
        raise RuntimeError(msg)
    write_json(out_dir / NANGO_JSON, config.to_dict())
    return models_source


def compile_project(options: CompileOptions) -> BatchCompileResult:
    """Run a full compile and report per-file results."""
    root = options.root
    try:
        config = parse_project(root)
    except SchemaError as exc:
        return BatchCompileResult(success=False, error=exc.user_message)

    out_dir = options.output_path()
    out_dir.mkdir(parents=True, exist_ok=True)
    models_source = _write_models_artifacts(config, options, out_dir)
    model_names = config.model_names()

    locations = list(
        find_scripts(
            root,
            config,
            output_dir=relative_posix(out_dir, root).split("/", 1)[0],
            nested_gitignore=options.config.nested_gitignore,
        )
    )

    with ThreadPoolExecutor(max_workers=options.max_workers()) as pool:
        files = tuple(
            pool.map(
                lambda location: _compile_location(
                    location, models_source, config, model_names, options
                ),
                locations,
            )
        )

    result = BatchCompileResult(
        success=all(file_result.ok for file_result in files),
        files=files,
    )
    write_json(out_dir / COMPILE_REPORT_JSON, result)
    logger.info(
        "compile_finished",
        success=result.success,
        files=len(files),
        failed=len(result.failed),
    )
    return result


def compile_all_files(options: CompileOptions) -> bool:
    """Compile every script of the project; True iff all of them compiled."""
    return compile_project(options).success


__all__ = [
    "BatchCompileResult",
    "CompileOptions",
    "FileCompileResult",
    "FileToCompile",
    "compile_all_files",
    "compile_project",
    "compile_single_file",
    "get_file_to_compile",
]
