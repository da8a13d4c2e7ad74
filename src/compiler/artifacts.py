"""Output artifact names and JSON writers."""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from pathlib import Path

# Files written at the top of the output directory.
NANGO_JSON = "nango.json"
COMPILE_REPORT_JSON = "compile_report.json"


def _to_dict(obj: object) -> object:
    """Convert object to dict for JSON serialization."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    return obj


def write_json(path: Path, obj: object) -> None:
    payload = _to_dict(obj)
    opts = orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(payload, option=opts) + b"\n")


def load_json(path: Path) -> Any:
    return orjson.loads(path.read_bytes())


__all__ = ["COMPILE_REPORT_JSON", "NANGO_JSON", "load_json", "write_json"]
