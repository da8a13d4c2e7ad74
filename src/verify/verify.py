"""Determinism verification for the generated models module."""

from __future__ import annotations

import filecmp
import tempfile
from dataclasses import dataclass
from pathlib import Path

from compiler.generate import write_models
from rules.config import CompilerConfig
from schema.loader import parse_project


@dataclass(frozen=True)
class DeterminismResult:
    ok: bool
    models_path: str
    missing: bool = False


def verify_models(*, root: Path, models_path: Path) -> DeterminismResult:
    """Verify that the models module matches a fresh rendering of nango.yaml.

    Regenerates the module into a temporary directory and compares it
    byte-for-byte against ``models_path``.

    Args:
        root: Project root holding nango.yaml.
        models_path: Existing generated models module to verify.

    Returns:
        DeterminismResult with ok status; ``missing`` is set when
        ``models_path`` does not exist.

    Raises:
        SchemaError: If nango.yaml cannot be loaded.
    """
    if not models_path.is_file():
        return DeterminismResult(ok=False, models_path=str(models_path), missing=True)

    config = parse_project(root)
    with tempfile.TemporaryDirectory() as temp_dir:
        regenerated, _ = write_models(Path(temp_dir), config, CompilerConfig())
        ok = filecmp.cmp(models_path, regenerated, shallow=False)

    return DeterminismResult(ok=ok, models_path=str(models_path))
