from __future__ import annotations

import asyncio
import importlib
import shutil
import sys
from pathlib import Path
from typing import Any

import pytest

from compiler.artifacts import COMPILE_REPORT_JSON, NANGO_JSON, load_json
from compiler.compile import (
    CompileOptions,
    compile_all_files,
    compile_project,
    compile_single_file,
    get_file_to_compile,
)
from compiler.generate import write_models
from rules.config import CompilerConfig
from schema.loader import parse_project

FIXTURES = Path(__file__).parent / "fixtures"


def _copy_fixture(name: str, root: Path) -> Path:
    shutil.copytree(FIXTURES / name, root)
    return root


def _project_modules() -> list[str]:
    return [
        name
        for name in sys.modules
        if name == "models" or name == "github" or name.startswith("github.")
    ]


def _results_by_operation(options: CompileOptions) -> dict[str, Any]:
    result = compile_project(options)
    return {file_result.operation: file_result for file_result in result.files}


def test_nested_layout_compiles(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")

    assert compile_all_files(CompileOptions(root=root))

    dist = root / "dist"
    assert (dist / "github" / "syncs" / "issues.pyc").is_file()
    assert (dist / "github" / "actions" / "create_issue.pyc").is_file()
    assert (dist / "github" / "helpers" / "paginate.pyc").is_file()
    assert (dist / "linear" / "syncs" / "tickets.pyc").is_file()
    assert (dist / "models.pyc").is_file()
    assert (root / "models.py").is_file()


def test_flat_layout_compiles(tmp_path: Path) -> None:
    root = _copy_fixture("flat_project", tmp_path / "project")

    result = compile_project(CompileOptions(root=root))

    assert result.success
    assert [file_result.path for file_result in result.files] == [
        "contacts.py",
        "update_contact.py",
        "whoami.py",
    ]
    assert (root / "dist" / "contacts.pyc").is_file()


def test_layouts_mix_per_integration(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    linear_dir = root / "linear"
    shutil.move(str(linear_dir / "syncs" / "tickets.py"), str(root / "tickets.py"))
    shutil.rmtree(linear_dir)

    result = compile_project(CompileOptions(root=root))

    assert result.success
    paths = {file_result.operation: file_result.path for file_result in result.files}
    assert paths["issues"] == "github/syncs/issues.py"
    assert paths["tickets"] == "tickets.py"


def test_compiled_modules_run_from_output_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    out_dir = tmp_path / "out"
    assert compile_all_files(CompileOptions(root=root, out_dir=out_dir))

    class _Response:
        def __init__(self, payload: Any) -> None:
            self._payload = payload

        def json(self) -> Any:
            return self._payload

    class _FakeNango:
        def __init__(self) -> None:
            self.saved: list[tuple[list[Any], str]] = []
            self.pages = [
                [{"id": 1, "title": "Bug", "state": "open", "labels": [{"name": "bug"}]}],
                [],
            ]

        async def get(self, **kwargs: Any) -> _Response:
            return _Response(self.pages.pop(0))

        async def batch_save(self, records: list[Any], model: str) -> None:
            self.saved.append((records, model))

    monkeypatch.syspath_prepend(str(out_dir))
    for name in _project_modules():
        monkeypatch.delitem(sys.modules, name)

    try:
        module = importlib.import_module("github.syncs.issues")
        nango = _FakeNango()
        asyncio.run(module.fetch_data(nango))
    finally:
        for name in _project_modules():
            del sys.modules[name]

    assert nango.saved == [
        ([{"id": 1, "title": "Bug", "state": "open", "labels": ["bug"]}], "GithubIssue")
    ]


def test_parent_escape_fails_only_that_file(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    issues = root / "github" / "syncs" / "issues.py"
    issues.write_text(
        "from ...linear.syncs.tickets import QUERY\n\n" + issues.read_text(encoding="utf-8"),
        encoding="utf-8",
    )

    options = CompileOptions(root=root)
    result = compile_project(options)

    assert not result.success
    by_operation = {file_result.operation: file_result for file_result in result.files}
    assert not by_operation["issues"].ok
    assert "outside of the integration directory github" in by_operation[
        "issues"
    ].diagnostics[0]
    assert by_operation["create_issue"].ok
    assert by_operation["tickets"].ok
    assert (root / "dist" / "linear" / "syncs" / "tickets.pyc").is_file()
    assert not (root / "dist" / "github" / "syncs" / "issues.pyc").exists()


def test_import_of_sibling_integration_fails(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    tickets = root / "linear" / "syncs" / "tickets.py"
    tickets.write_text(
        "import github.helpers.paginate\n" + tickets.read_text(encoding="utf-8"),
        encoding="utf-8",
    )

    results = _results_by_operation(CompileOptions(root=root))

    assert not results["tickets"].ok
    assert 'importing the integration "github"' in results["tickets"].diagnostics[0]
    assert results["issues"].ok


def test_flat_layout_cannot_import_above_root(tmp_path: Path) -> None:
    root = _copy_fixture("flat_project", tmp_path / "project")
    (tmp_path / "secrets.py").write_text("TOKEN = 'x'\n", encoding="utf-8")
    contacts = root / "contacts.py"
    contacts.write_text(
        "from ..secrets import TOKEN\n" + contacts.read_text(encoding="utf-8"),
        encoding="utf-8",
    )

    results = _results_by_operation(CompileOptions(root=root))

    assert not results["contacts"].ok
    assert results["update_contact"].ok


def test_helper_syntax_error_fails_importer(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    (root / "github" / "helpers" / "paginate.py").write_text(
        "async def collect(nango, endpoint)\n    return []\n",
        encoding="utf-8",
    )

    results = _results_by_operation(CompileOptions(root=root))

    assert not results["issues"].ok
    assert results["issues"].diagnostics[0].startswith("github/helpers/paginate.py:")
    assert results["create_issue"].ok


def test_helper_nango_misuse_fails_importer(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    (root / "github" / "helpers" / "paginate.py").write_text(
        "async def collect(nango, endpoint):\n"
        "    nango.get(endpoint=endpoint)\n"
        "    return []\n",
        encoding="utf-8",
    )

    results = _results_by_operation(CompileOptions(root=root))

    assert not results["issues"].ok
    assert "must be awaited" in results["issues"].diagnostics[0]


def test_unresolvable_relative_import_fails(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    shutil.rmtree(root / "github" / "helpers")

    results = _results_by_operation(CompileOptions(root=root))

    assert not results["issues"].ok
    assert "cannot resolve relative import" in results["issues"].diagnostics[0]


def test_unknown_model_import_fails(tmp_path: Path) -> None:
    root = _copy_fixture("flat_project", tmp_path / "project")
    (root / "whoami.py").write_text(
        "from models import HubspotOwner\n\n\n"
        "async def run_action(nango, input=None):\n"
        "    return await nango.get_connection()\n",
        encoding="utf-8",
    )

    results = _results_by_operation(CompileOptions(root=root))

    assert not results["whoami"].ok
    assert '"HubspotOwner" is not a model declared in nango.yaml' in results[
        "whoami"
    ].diagnostics[0]


def test_script_without_handler_fails_but_helpers_need_none(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    (root / "github" / "actions" / "create_issue.py").write_text(
        "async def run(nango, input=None):\n"
        "    await nango.post(endpoint=\"/issues\", data=input)\n",
        encoding="utf-8",
    )

    results = _results_by_operation(CompileOptions(root=root))

    assert not results["create_issue"].ok
    assert "must define the module-level handler run_action" in results[
        "create_issue"
    ].diagnostics[0]
    # issues imports a helper module that defines no fetch_data
    assert results["issues"].ok


def test_missing_script_is_a_file_failure(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    (root / "linear" / "syncs" / "tickets.py").unlink()

    result = compile_project(CompileOptions(root=root))

    assert not result.success
    assert [failed.operation for failed in result.failed] == ["tickets"]
    assert "No script found for sync 'tickets'" in result.failed[0].diagnostics[0]


def test_gitignored_script_is_skipped(tmp_path: Path) -> None:
    root = _copy_fixture("flat_project", tmp_path / "project")
    (root / ".gitignore").write_text("whoami.py\n", encoding="utf-8")

    result = compile_project(CompileOptions(root=root))

    assert result.success
    assert [file_result.operation for file_result in result.files] == [
        "contacts",
        "update_contact",
    ]


def test_schema_error_aborts_before_files(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    (root / "nango.yaml").write_text(
        "integrations:\n  github:\n    syncs:\n      issues:\n        runs: daily\n",
        encoding="utf-8",
    )

    result = compile_project(CompileOptions(root=root))

    assert not result.success
    assert result.files == ()
    assert result.error == "Problem validating the nango.yaml file."
    assert not (root / "dist").exists()


def test_undeclarable_model_name_is_a_schema_error(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    schema = root / "nango.yaml"
    schema.write_text(
        schema.read_text(encoding="utf-8") + "  my-user:\n    login: string\n",
        encoding="utf-8",
    )

    result = compile_project(CompileOptions(root=root))

    assert not result.success
    assert result.error == "Problem validating the nango.yaml file."
    assert not (root / "models.py").exists()


def test_artifacts_are_written(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")

    compile_project(CompileOptions(root=root))

    nango_json = load_json(root / "dist" / NANGO_JSON)
    assert nango_json["dialect"] == "v2"
    report = load_json(root / "dist" / COMPILE_REPORT_JSON)
    assert report["success"] is True
    assert [entry["operation"] for entry in report["files"]] == [
        "issues",
        "create_issue",
        "tickets",
    ]


def test_parallel_run_keeps_discovery_order(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")

    result = compile_project(CompileOptions(root=root, workers=4))

    assert result.success
    assert [file_result.operation for file_result in result.files] == [
        "issues",
        "create_issue",
        "tickets",
    ]


def test_compiled_output_is_deterministic(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    first_out = tmp_path / "first"
    second_out = tmp_path / "second"

    assert compile_all_files(CompileOptions(root=root, out_dir=first_out))
    assert compile_all_files(CompileOptions(root=root, out_dir=second_out))

    first = sorted(p.relative_to(first_out) for p in first_out.rglob("*") if p.is_file())
    second = sorted(p.relative_to(second_out) for p in second_out.rglob("*") if p.is_file())
    assert first == second
    for rel in first:
        assert (first_out / rel).read_bytes() == (second_out / rel).read_bytes()


def test_compile_single_file(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    options = CompileOptions(root=root)
    config = parse_project(root)
    _, models_source = write_models(root, config, CompilerConfig())

    file = get_file_to_compile("github/actions/create_issue.py", options)

    assert file.output_file == root / "dist" / "github" / "actions" / "create_issue.pyc"
    assert compile_single_file(file, models_source, config, config.model_names(), options)
    assert file.output_file.is_file()


def test_compile_single_file_rejects_undeclared_script(tmp_path: Path) -> None:
    root = _copy_fixture("nested_project", tmp_path / "project")
    options = CompileOptions(root=root)
    config = parse_project(root)
    _, models_source = write_models(root, config, CompilerConfig())
    stray = root / "github" / "syncs" / "stray.py"
    stray.write_text("async def fetch_data(nango):\n    pass\n", encoding="utf-8")

    file = get_file_to_compile(stray, options)

    assert not compile_single_file(
        file, models_source, config, config.model_names(), options
    )
