"""Shared path utilities for the compiler."""

from __future__ import annotations

from pathlib import Path

COMPILED_SUFFIX = ".pyc"


def relative_posix(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` as a POSIX string.

    Examples:
        >>> relative_posix(Path("/p/github/syncs/issues.py"), Path("/p"))
        'github/syncs/issues.py'
        >>> relative_posix(Path("/elsewhere/x.py"), Path("/p"))
        '/elsewhere/x.py'
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        pass
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except (OSError, ValueError):
        return path.as_posix()


def compiled_path(source: Path, root: Path, out_dir: Path) -> Path:
    """Map a source script to its compiled module, mirroring the source layout.

    Examples:
        >>> compiled_path(Path("/p/github/syncs/issues.py"), Path("/p"), Path("/p/dist"))
        PosixPath('/p/dist/github/syncs/issues.pyc')
    """
    rel = Path(relative_posix(source, root))
    if rel.is_absolute():
        msg = f"{source} is not inside the project root {root}"
        raise ValueError(msg)
    return out_dir / rel.with_suffix(COMPILED_SUFFIX)
