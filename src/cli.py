"""Command-line interface for nango-compiler."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import structlog

from compiler.compile import CompileOptions, compile_project
from compiler.generate import generate, init
from errors import SchemaError
from rules.config import ConfigError, load_config
from schema.loader import NANGO_YAML
from verify.verify import verify_models


def _stderr_logger(*_args: object) -> structlog.PrintLogger:
    # resolved per logger so a replaced sys.stderr is never pinned
    return structlog.PrintLogger(file=sys.stderr)


def _configure_logging(*, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.WARNING
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def _add_common_paths(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Project root holding nango.yaml (default: .)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nango-compiler")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log debug events to stderr",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create an example project")
    _add_common_paths(init_parser)

    generate_parser = subparsers.add_parser(
        "generate", help="Generate models and scaffold missing scripts"
    )
    _add_common_paths(generate_parser)

    compile_parser = subparsers.add_parser("compile", help="Compile all scripts")
    _add_common_paths(compile_parser)
    compile_parser.add_argument(
        "--out-dir",
        default=None,
        help="Output directory for compiled scripts (default: config output dir)",
    )
    compile_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of scripts compiled in parallel (default: config workers)",
    )

    verify_parser = subparsers.add_parser(
        "verify", help="Verify the generated models are up to date"
    )
    _add_common_paths(verify_parser)
    verify_parser.add_argument(
        "--models",
        default=None,
        help="Generated models module (default: config models file)",
    )

    return parser


def _resolve_output_dir(out_dir: str | None) -> Path | None:
    if out_dir is None:
        return None
    return Path(out_dir).expanduser().resolve()


def _resolve_models_path(root: Path, models: str | None) -> Path:
    if models is None:
        config = load_config(root)
        return root / config.models_file
    return Path(models).expanduser().resolve()


def _require_schema(root: Path) -> bool:
    if (root / NANGO_YAML).is_file():
        return True
    sys.stderr.write(f"error: {root / NANGO_YAML} does not exist\n")
    return False


def _handle_init(root: Path) -> int:
    for path in init(root):
        sys.stdout.write(f"created: {path.relative_to(root).as_posix()}\n")
    return 0


def _handle_generate(root: Path) -> int:
    if not _require_schema(root):
        return 2
    try:
        result = generate(root)
    except SchemaError as exc:
        sys.stderr.write(f"error: {exc.user_message}\n")
        return 1
    sys.stdout.write(f"models: {result.models_path.relative_to(root).as_posix()}\n")
    for path in result.created:
        sys.stdout.write(f"created: {path.relative_to(root).as_posix()}\n")
    return 0


def _handle_compile(root: Path, out_dir: str | None, workers: int | None) -> int:
    if not _require_schema(root):
        return 2
    options = CompileOptions.for_root(
        root,
        out_dir=_resolve_output_dir(out_dir),
        workers=workers,
    )
    result = compile_project(options)
    if result.error is not None:
        sys.stderr.write(f"error: {result.error}\n")
        return 1
    if not result.success:
        for failed in result.failed:
            sys.stderr.write(f"failed: {failed.path}\n")
            for message in failed.diagnostics:
                sys.stderr.write(f"  {message}\n")
        return 1
    sys.stdout.write(f"compiled {len(result.files)} file(s)\n")
    return 0


def _handle_verify(root: Path, models: str | None) -> int:
    if not _require_schema(root):
        return 2
    models_path = _resolve_models_path(root, models)
    try:
        result = verify_models(root=root, models_path=models_path)
    except SchemaError as exc:
        sys.stderr.write(f"error: {exc.user_message}\n")
        return 1
    if result.missing:
        sys.stderr.write(f"models: {models_path}\n")
        sys.stderr.write("error: generated models module does not exist\n")
        return 2
    if not result.ok:
        sys.stderr.write(f"mismatch: {models_path}\n")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(debug=args.debug)

    root = Path(args.root).expanduser().resolve()

    try:
        if args.command == "init":
            return _handle_init(root)

        if args.command == "generate":
            return _handle_generate(root)

        if args.command == "compile":
            return _handle_compile(root, args.out_dir, args.workers)

        if args.command == "verify":
            return _handle_verify(root, args.models)
    except ConfigError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 1

    raise AssertionError


if __name__ == "__main__":
    raise SystemExit(main())
