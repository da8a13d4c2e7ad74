"""AST-based import analysis for integration scripts."""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ImportRef:
    """One import statement.

    ``module`` is empty for ``from . import x``; ``level`` is 0 for absolute
    imports and the number of leading dots otherwise.
    """

    line: int
    module: str
    names: tuple[str, ...] = ()
    level: int = 0

    @property
    def is_relative(self) -> bool:
        return self.level > 0

    @property
    def top_level(self) -> str:
        return self.module.split(".", 1)[0]


@dataclass(frozen=True)
class RelativeImportTarget:
    """Where a relative import points on disk.

    ``location`` is the lexical target (used for containment checks even when
    nothing exists there), ``files`` the script files it resolved to and
    ``unresolved`` the dotted names that matched no file.
    """

    location: Path
    files: tuple[Path, ...] = ()
    unresolved: tuple[str, ...] = field(default_factory=tuple)


def _process_import_node(node: ast.Import, imports: list[ImportRef]) -> None:
    """Process a standard import node (import x)."""
    for name in node.names:
        imports.append(ImportRef(line=node.lineno, module=name.name))


def _process_import_from_node(node: ast.ImportFrom, imports: list[ImportRef]) -> None:
    """Process a from-import node (from x import y)."""
    imports.append(
        ImportRef(
            line=node.lineno,
            module=node.module or "",
            names=tuple(name.name for name in node.names),
            level=node.level,
        )
    )


def extract_imports(file_path: Path) -> list[ImportRef]:
    """Extract import statements from a Python file using AST.

    Args:
        file_path: Path to the Python file to analyze

    Returns:
        Imports in source order. A file that cannot be parsed yields no
        imports; the usage analyzer reports the syntax error.
    """
    imports: list[ImportRef] = []

    try:
        with file_path.open(encoding="utf-8") as file:
            tree = ast.parse(file.read(), str(file_path))
    except (SyntaxError, UnicodeDecodeError):
        return imports

    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            _process_import_node(node, imports)
        elif isinstance(node, ast.ImportFrom):
            _process_import_from_node(node, imports)

    imports.sort(key=lambda ref: ref.line)
    return imports


def resolve_module_file(base: Path, dotted: str) -> Path | None:
    """Return the ``.py`` file or package ``__init__.py`` for ``dotted`` under base."""
    target = base.joinpath(*dotted.split("."))
    module_file = target.with_name(f"{target.name}.py")
    if module_file.is_file():
        return module_file
    package_file = target / "__init__.py"
    if package_file.is_file():
        return package_file
    return None


def resolve_relative_import(importer: Path, ref: ImportRef) -> RelativeImportTarget:
    """Resolve a relative import of ``importer`` to files on disk.

    Examples:
        ``from .helpers import paginate`` in ``github/syncs/issues.py``
        resolves to ``github/syncs/helpers.py``; ``from .. import shared``
        resolves to ``github/shared.py``.
    """
    base = importer.parent
    for _ in range(ref.level - 1):
        base = base.parent

    if ref.module:
        location = base.joinpath(*ref.module.split("."))
        resolved = resolve_module_file(base, ref.module)
        if resolved is None:
            return RelativeImportTarget(location=location, unresolved=(ref.module,))
        return RelativeImportTarget(location=location, files=(resolved,))

    files: list[Path] = []
    unresolved: list[str] = []
    package_init = base / "__init__.py"
    for name in ref.names:
        resolved = resolve_module_file(base, name) if name != "*" else None
        if resolved is not None:
            files.append(resolved)
        elif package_init.is_file():
            # attribute of the package itself
            if package_init not in files:
                files.append(package_init)
        else:
            unresolved.append(name)

    return RelativeImportTarget(
        location=base,
        files=tuple(files),
        unresolved=tuple(unresolved),
    )


__all__ = [
    "ImportRef",
    "RelativeImportTarget",
    "extract_imports",
    "resolve_module_file",
    "resolve_relative_import",
]
