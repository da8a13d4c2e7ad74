"""Call-site contract for scripts using the ``nango`` object."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from schema.ir import OperationKind

UsageRule = Literal[
    "syntax_error",
    "missing_handler",
    "unawaited_call",
    "return_in_sync",
    "missing_action_return",
    "retry_on_without_retries",
    "unknown_model",
    "disallowed_in_action",
]

NANGO_RECEIVERS = frozenset({"nango"})

HANDLER_NAMES: dict[OperationKind, str] = {
    OperationKind.SYNC: "fetch_data",
    OperationKind.ACTION: "run_action",
}

ASYNC_METHODS = frozenset(
    {
        "batch_send",
        "batch_save",
        "batch_update",
        "batch_delete",
        "log",
        "get_field_mapping",
        "set_field_mapping",
        "get_metadata",
        "set_metadata",
        "update_metadata",
        "get_connection",
        "get_token",
        "set_last_sync_date",
        "get_environment_variables",
        "trigger_action",
        "proxy",
        "get",
        "post",
        "put",
        "patch",
        "delete",
    }
)

# Methods whose second positional argument (or ``model=``) names a model.
MODEL_METHODS = frozenset({"batch_send", "batch_save", "batch_update", "batch_delete"})

ACTION_DISALLOWED_METHODS = MODEL_METHODS

DEPRECATED_METHODS: dict[str, str] = {
    "batch_send": "batch_save",
    "get_field_mapping": "get_metadata",
    "set_field_mapping": "set_metadata",
}

RETRY_ON_OPTION = "retry_on"
RETRIES_OPTION = "retries"


@dataclass(frozen=True)
class UsageViolation:
    rule: UsageRule
    message: str
    line: int | None = None
    column: int | None = None

    def location(self, path: str) -> str:
        if self.line is None:
            return path
        return f"{path}:{self.line}:{self.column or 1}"

    def to_dict(self) -> dict[str, object]:
        return {
            "rule": self.rule,
            "message": self.message,
            "line": self.line,
            "column": self.column,
        }


@dataclass
class FileUsageResult:
    path: str
    violations: list[UsageViolation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    def rules(self) -> set[UsageRule]:
        return {violation.rule for violation in self.violations}


def handler_name(kind: OperationKind) -> str:
    return HANDLER_NAMES[kind]


def is_disallowed(method: str, kind: OperationKind) -> bool:
    return kind is OperationKind.ACTION and method in ACTION_DISALLOWED_METHODS


__all__ = [
    "ACTION_DISALLOWED_METHODS",
    "ASYNC_METHODS",
    "DEPRECATED_METHODS",
    "HANDLER_NAMES",
    "MODEL_METHODS",
    "NANGO_RECEIVERS",
    "RETRIES_OPTION",
    "RETRY_ON_OPTION",
    "FileUsageResult",
    "UsageRule",
    "UsageViolation",
    "handler_name",
    "is_disallowed",
]
