"""Generate the models module and scaffold missing scripts."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from rules.config import CompilerConfig, load_config
from schema.ir import Dialect, OperationKind
from schema.loader import NANGO_YAML, parse_project
from scan.files import flat_script_path, locate_script, nested_script_path
from typegen.render import render_models

if TYPE_CHECKING:
    from schema.ir import OperationConfig, ProjectConfig

logger = structlog.get_logger(__name__)

EXAMPLE_NANGO_YAML = """\
integrations:
  github:
    syncs:
      issues:
        runs: every half hour
        endpoint: GET /github/issues
        output: GithubIssue
        track_deletes: true
    actions:
      create-issue:
        endpoint: POST /github/issues
        input: GithubIssueInput
        output: GithubIssue

models:
  GithubIssue:
    id: integer
    owner: string
    repo: string
    title: string
    state: "'open' | 'closed'"
    labels: string[]
    closed_at?: date | null
  GithubIssueInput:
    owner: string
    repo: string
    title: string
"""

EXAMPLE_SYNC = '''\
from models import GithubIssue


async def fetch_data(nango):
    response = await nango.get(endpoint="/repos/nangohq/nango/issues", retries=3)
    issues: list[GithubIssue] = [
        {
            "id": issue["id"],
            "owner": "nangohq",
            "repo": "nango",
            "title": issue["title"],
            "state": issue["state"],
            "labels": [label["name"] for label in issue["labels"]],
        }
        for issue in response.json()
    ]
    await nango.batch_save(issues, "GithubIssue")
'''

EXAMPLE_ACTION = '''\
from models import GithubIssue, GithubIssueInput


async def run_action(nango, input: GithubIssueInput) -> GithubIssue:
    response = await nango.post(
        endpoint=f"/repos/{input['owner']}/{input['repo']}/issues",
        data={"title": input["title"]},
        retries=2,
    )
    return response.json()
'''

_SYNC_STUB = '''\
{imports}

async def fetch_data(nango):
    records{annotation} = []
    await nango.batch_save(records, "{model}")
'''

_SYNC_STUB_WITHOUT_MODEL = '''\
async def fetch_data(nango):
    await nango.log("{name} has no output model yet")
'''

_ACTION_STUB = '''\
{imports}

async def run_action(nango, input=None){returns}:
    response = await nango.get(endpoint="/")
    return response.json()
'''


@dataclass(frozen=True)
class GenerateResult:
    models_path: Path
    created: tuple[Path, ...] = field(default_factory=tuple)


def write_models(
    root: Path,
    config: ProjectConfig,
    compiler_config: CompilerConfig | None = None,
) -> tuple[Path, str]:
    """Render the models module next to nango.yaml and return its path and text."""
    compiler_config = compiler_config or CompilerConfig()
    source = render_models(config)
    path = root / compiler_config.models_file
    path.write_bytes(source.encode("utf-8"))
    logger.debug("models_written", path=str(path), models=len(config.models))
    return path, source


def _imports_for(models: list[str], module: str) -> str:
    if not models:
        return ""
    return f"from {module} import {', '.join(models)}\n"


def render_stub(operation: OperationConfig, models_module: str = "models") -> str:
    """Starter script for an operation that has none yet."""
    models = operation.terminal_output_models
    if operation.kind is OperationKind.ACTION:
        returns = f" -> {models[0]}" if len(models) == 1 else ""
        return _ACTION_STUB.format(
            imports=_imports_for(models[:1], models_module),
            returns=returns,
        ).lstrip("\n")

    if not models:
        return _SYNC_STUB_WITHOUT_MODEL.format(name=operation.name)
    return _SYNC_STUB.format(
        imports=_imports_for(models[:1], models_module),
        annotation=f": list[{models[0]}]",
        model=models[0],
    )


def generate(
    root: Path,
    *,
    compiler_config: CompilerConfig | None = None,
) -> GenerateResult:
    """Write the models module and a stub for every operation without a script.

    v2 projects get the nested layout, v1 projects the flat one. Existing
    scripts are never overwritten.

    Raises:
        SchemaError: If nango.yaml cannot be loaded.
    """
    compiler_config = compiler_config or load_config(root)
    config = parse_project(root)
    models_path, _ = write_models(root, config, compiler_config)

    created: list[Path] = []
    for operation in config.iter_operations():
        if locate_script(root, operation).exists:
            continue
        if config.dialect is Dialect.V2:
            path = nested_script_path(root, operation)
        else:
            path = flat_script_path(root, operation)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            render_stub(operation, compiler_config.models_module),
            encoding="utf-8",
        )
        logger.info("script_scaffolded", operation=operation.name, path=str(path))
        created.append(path)

    return GenerateResult(models_path=models_path, created=tuple(created))


def init(root: Path) -> list[Path]:
    """Create an example project in ``root``; existing files are left alone."""
    root.mkdir(parents=True, exist_ok=True)
    targets = {
        root / NANGO_YAML: EXAMPLE_NANGO_YAML,
        root / "github" / "syncs" / "issues.py": EXAMPLE_SYNC,
        root / "github" / "actions" / "create-issue.py": EXAMPLE_ACTION,
    }

    created: list[Path] = []
    for path, content in targets.items():
        if path.exists():
            logger.info("init_skipped_existing", path=str(path))
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        created.append(path)
    return created


__all__ = [
    "EXAMPLE_NANGO_YAML",
    "GenerateResult",
    "generate",
    "init",
    "render_stub",
    "write_models",
]
