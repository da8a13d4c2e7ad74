from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

from scan.files import _build_gitignore_matcher, find_scripts, locate_script
from schema.loader import parse_project

FIXTURES = Path(__file__).parent / "fixtures"


def _copy_fixture(name: str, root: Path) -> Path:
    shutil.copytree(FIXTURES / name, root)
    return root


def _found(root: Path, **kwargs: object) -> dict[str, str]:
    config = parse_project(root)
    return {
        location.operation.name: location.path.relative_to(root).as_posix()
        for location in find_scripts(root, config, **kwargs)  # type: ignore[arg-type]
    }


@pytest.mark.skipif(
    os.name == "nt",
    reason="Symlink semantics vary on Windows test runners.",
)
def test_find_scripts_skips_symlink_outside_root(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    external_root = tmp_path / "external"
    external_root.mkdir()
    leak = external_root / "tickets.py"
    leak.write_text("async def fetch_data(nango):\n    pass\n", encoding="utf-8")

    tickets = root / "linear" / "syncs" / "tickets.py"
    tickets.unlink()
    tickets.symlink_to(leak)

    found = _found(root)

    assert found["issues"] == "github/syncs/issues.py"
    assert "tickets" not in found


def test_find_scripts_yields_missing_scripts(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    (root / "linear" / "syncs" / "tickets.py").unlink()

    config = parse_project(root)
    locations = {loc.operation.name: loc for loc in find_scripts(root, config)}

    assert not locations["tickets"].exists
    assert locations["tickets"].path == root / "tickets.py"


def test_nested_script_wins_over_flat(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    (root / "issues.py").write_text("async def fetch_data(nango):\n    pass\n", encoding="utf-8")

    config = parse_project(root)
    operation = next(op for op in config.iter_operations() if op.name == "issues")
    location = locate_script(root, operation)

    assert location.nested
    assert location.path == root / "github" / "syncs" / "issues.py"
    assert location.integration_root == root / "github"


def test_flat_script_is_bounded_by_project_root(tmp_path: Path) -> None:
    root = _copy_fixture("flat_project", tmp_path / "project")

    config = parse_project(root)
    operation = next(op for op in config.iter_operations() if op.name == "contacts")
    location = locate_script(root, operation)

    assert not location.nested
    assert location.integration_root == root


def test_nested_gitignore_is_opt_in(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    (root / "linear" / ".gitignore").write_text("syncs/tickets.py\n", encoding="utf-8")

    assert "tickets" in _found(root)
    assert "tickets" not in _found(root, nested_gitignore=True)


@pytest.mark.skipif(
    os.name == "nt",
    reason="Symlink semantics vary on Windows test runners.",
)
def test_nested_gitignore_skips_symlinked_gitignore(tmp_path: Path) -> None:
    root = tmp_path / "project"
    root.mkdir()
    (root / "github").mkdir()
    (root / "github" / "issues.py").write_text("print('ok')\n", encoding="utf-8")
    (root / ".gitignore").write_text("*.bin\n", encoding="utf-8")

    external_root = tmp_path / "external"
    external_root.mkdir()
    (external_root / "outside.gitignore").write_text(
        "github/issues.py\n", encoding="utf-8"
    )

    symlink_gitignore = root / "linked.gitignore"
    symlink_gitignore.symlink_to(external_root / "outside.gitignore")

    matcher = _build_gitignore_matcher(root, nested_gitignore=True)
    assert matcher is not None
    assert matcher(str(root / "github" / "issues.py")) is False
