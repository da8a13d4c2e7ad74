"""Script discovery for nango projects."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, cast

import structlog
from gitignore_parser import parse_gitignore  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from schema.ir import OperationConfig, ProjectConfig

logger = structlog.get_logger(__name__)

SCRIPT_SUFFIX = ".py"


@dataclass(frozen=True)
class ScriptLocation:
    """Where the script of one operation lives.

    ``integration_root`` bounds the relative imports of the script: the
    integration directory for the nested layout, the project root for the
    flat layout.
    """

    operation: OperationConfig
    path: Path
    integration_root: Path
    nested: bool

    @property
    def exists(self) -> bool:
        return self.path.is_file()


def nested_script_path(root: Path, operation: OperationConfig) -> Path:
    return (
        root / operation.integration / operation.folder / f"{operation.name}{SCRIPT_SUFFIX}"
    )


def flat_script_path(root: Path, operation: OperationConfig) -> Path:
    return root / f"{operation.name}{SCRIPT_SUFFIX}"


def locate_script(root: Path, operation: OperationConfig) -> ScriptLocation:
    """Nested ``<integration>/<syncs|actions>/<name>.py`` wins over ``<name>.py``."""
    nested = nested_script_path(root, operation)
    if nested.is_file():
        return ScriptLocation(
            operation=operation,
            path=nested,
            integration_root=root / operation.integration,
            nested=True,
        )
    return ScriptLocation(
        operation=operation,
        path=flat_script_path(root, operation),
        integration_root=root,
        nested=False,
    )


def _should_include_file(
    path: Path,
    directory: Path,
    output_dir: str,
    gitignore_matches: Callable[[str], bool] | None,
) -> bool:
    """Check if an existing script should be compiled."""
    if not _is_within_root(path, directory):
        return False

    try:
        rel_path = path.relative_to(directory)
    except ValueError:
        return False

    if output_dir and rel_path.parts and rel_path.parts[0] == output_dir:
        return False

    return not (gitignore_matches is not None and gitignore_matches(str(path)))


def _is_within_root(path: Path, root: Path) -> bool:
    """Return True when the resolved path stays within the resolved root."""
    try:
        root_resolved = root.resolve()
        path_resolved = path.resolve()
    except OSError:
        return False

    try:
        path_resolved.relative_to(root_resolved)
    except ValueError:
        return False

    return True


def _iter_gitignore_files(root: Path) -> list[Path]:
    """Return sorted list of .gitignore files under root (including root)."""
    gitignore_paths = [root / ".gitignore"]
    gitignore_paths.extend(root.rglob(".gitignore"))
    unique_paths = {path for path in gitignore_paths if path.is_file()}
    return sorted(unique_paths, key=lambda p: p.relative_to(root).as_posix())


def _build_gitignore_matcher(
    root: Path,
    *,
    nested_gitignore: bool,
) -> Callable[[str], bool] | None:
    if not nested_gitignore:
        gitignore_path = root / ".gitignore"
        if gitignore_path.is_file():
            return cast("Callable[[str], bool]", parse_gitignore(gitignore_path))
        return None

    gitignore_paths = _iter_gitignore_files(root)
    if not gitignore_paths:
        return None

    matchers = [parse_gitignore(path) for path in gitignore_paths]

    def matches(path_str: str) -> bool:
        for matcher in matchers:
            try:
                if matcher(path_str):
                    return True
            except ValueError:
                continue
        return False

    return matches


def find_scripts(
    directory: Path,
    config: ProjectConfig,
    *,
    output_dir: str = "dist",
    nested_gitignore: bool = False,
) -> Iterator[ScriptLocation]:
    """Find the script of every operation declared in nango.yaml.

    Args:
        directory: Project root holding nango.yaml
        config: Loaded project configuration
        output_dir: Directory name to skip (default "dist")
        nested_gitignore: Compose nested .gitignore files instead of only
            the root one

    Yields:
        One ScriptLocation per operation, in declaration order. Locations of
        missing scripts are yielded too so callers can report them; scripts
        that are gitignored or resolve outside the root are skipped.
    """
    gitignore_matches = _build_gitignore_matcher(
        directory,
        nested_gitignore=nested_gitignore,
    )

    for operation in config.iter_operations():
        location = locate_script(directory, operation)
        if location.exists and not _should_include_file(
            location.path,
            directory,
            output_dir,
            gitignore_matches,
        ):
            logger.info(
                "script_skipped",
                operation=operation.name,
                path=str(location.path),
            )
            continue
        yield location


__all__ = [
    "SCRIPT_SUFFIX",
    "ScriptLocation",
    "find_scripts",
    "flat_script_path",
    "locate_script",
    "nested_script_path",
]
