"""Tree-sitter based verification of ``nango`` call sites in a script."""

from __future__ import annotations

import ast
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import structlog
from tree_sitter import Language, Node, Parser
from tree_sitter_python import language as get_python_language

from rules.usage import (
    ASYNC_METHODS,
    DEPRECATED_METHODS,
    MODEL_METHODS,
    NANGO_RECEIVERS,
    RETRIES_OPTION,
    RETRY_ON_OPTION,
    FileUsageResult,
    UsageRule,
    UsageViolation,
    handler_name,
    is_disallowed,
)
from schema.ir import OperationKind

if TYPE_CHECKING:
    from collections.abc import Collection

logger = structlog.get_logger(__name__)

Scope = Literal["module", "handler", "nested"]

_PARSER: Parser | None = None

_SCOPE_NODES = frozenset({"function_definition", "lambda", "class_definition"})
_GUARD_NODES = frozenset({"await", "return_statement", "try_statement"})


def _get_parser() -> Parser:
    """Initialize and return the Tree-sitter parser with Python language."""
    global _PARSER
    if _PARSER is None:
        lang = Language(get_python_language())
        _PARSER = Parser(lang)

    return _PARSER


def _text(node: Node) -> str:
    return node.text.decode("utf8", errors="ignore") if node.text else ""


def _string_literal(node: Node | None) -> str | None:
    """Return the value of a plain string literal node, else None."""
    if node is None or node.type not in ("string", "concatenated_string"):
        return None
    try:
        value = ast.literal_eval(_text(node))
    except (ValueError, SyntaxError):
        return None
    return value if isinstance(value, str) else None


def _first_error_node(node: Node) -> Node | None:
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_error_node(child)
            if found is not None:
                return found
    return None


def _is_guarded(call: Node) -> bool:
    """True when the call is awaited, returned or inside a ``try`` statement."""
    parent = call.parent
    while parent is not None and parent.type not in _SCOPE_NODES:
        if parent.type in _GUARD_NODES:
            return True
        parent = parent.parent
    return False


def _call_arguments(call: Node) -> tuple[list[Node], dict[str, Node]]:
    args_node = call.child_by_field_name("arguments")
    positional: list[Node] = []
    keywords: dict[str, Node] = {}
    if args_node is None or args_node.type != "argument_list":
        return positional, keywords

    for child in args_node.named_children:
        if child.type == "keyword_argument":
            name_node = child.child_by_field_name("name")
            value_node = child.child_by_field_name("value")
            if name_node is not None and value_node is not None:
                keywords[_text(name_node)] = value_node
        elif child.type not in ("comment", "list_splat", "dictionary_splat"):
            positional.append(child)
    return positional, keywords


def _option_names(positional: list[Node], keywords: dict[str, Node]) -> set[str]:
    """Keyword names plus string keys of dict literals passed to the call."""
    names = set(keywords)
    for argument in positional:
        if argument.type != "dictionary":
            continue
        for pair in argument.named_children:
            if pair.type != "pair":
                continue
            key = _string_literal(pair.child_by_field_name("key"))
            if key is not None:
                names.add(key)
    return names


class _UsageWalker:
    def __init__(
        self,
        path: str,
        kind: OperationKind,
        expected_model_names: Collection[str],
    ) -> None:
        self.path = path
        self.kind = kind
        self.expected_model_names = expected_model_names
        self.handler = handler_name(kind)
        self.violations: list[UsageViolation] = []
        self.handler_found = False
        self.handler_returns_value = False

    def report(self, rule: UsageRule, message: str, node: Node) -> None:
        violation = UsageViolation(
            rule=rule,
            message=message,
            line=node.start_point[0] + 1,
            column=node.start_point[1] + 1,
        )
        logger.warning(
            "usage_violation",
            path=self.path,
            rule=rule,
            line=violation.line,
            detail=message,
        )
        self.violations.append(violation)

    def walk(self, node: Node, scope_stack: list[Scope]) -> None:
        pushed = False
        if node.type in _SCOPE_NODES:
            scope_stack.append(self._scope_for(node, scope_stack))
            pushed = True

        if node.type == "call":
            self.check_call(node)
        elif node.type == "return_statement":
            self.check_return(node, scope_stack[-1])

        for child in node.children:
            self.walk(child, scope_stack)

        if pushed:
            scope_stack.pop()

    def _scope_for(self, node: Node, scope_stack: list[Scope]) -> Scope:
        if node.type != "function_definition" or scope_stack != ["module"]:
            return "nested"
        name_node = node.child_by_field_name("name")
        if name_node is not None and _text(name_node) == self.handler:
            self.handler_found = True
            return "handler"
        return "nested"

    def check_return(self, node: Node, scope: Scope) -> None:
        if scope != "handler":
            return
        values = [child for child in node.named_children if child.type != "comment"]
        if not values or values[0].type == "none":
            return
        if self.kind is OperationKind.ACTION:
            self.handler_returns_value = True
            return
        self.report(
            "return_in_sync",
            f"Return statements with a value are not allowed in a sync script "
            f"({self.handler}); save records with nango.batch_save instead.",
            node,
        )

    def check_call(self, node: Node) -> None:
        positional, keywords = _call_arguments(node)

        options = _option_names(positional, keywords)
        if RETRY_ON_OPTION in options and RETRIES_OPTION not in options:
            self.report(
                "retry_on_without_retries",
                f'"{RETRY_ON_OPTION}" only takes effect together with '
                f'"{RETRIES_OPTION}".',
                node,
            )

        method = self._nango_method(node)
        if method is None:
            return

        if method in DEPRECATED_METHODS:
            logger.warning(
                "deprecated_call",
                path=self.path,
                line=node.start_point[0] + 1,
                method=method,
                replacement=DEPRECATED_METHODS[method],
            )

        if is_disallowed(method, self.kind):
            self.report(
                "disallowed_in_action",
                f"nango.{method} is not allowed in an action script.",
                node,
            )

        if method in ASYNC_METHODS and not _is_guarded(node):
            self.report(
                "unawaited_call",
                f"nango.{method} returns a coroutine and must be awaited.",
                node,
            )

        if method in MODEL_METHODS:
            model_node = positional[1] if len(positional) > 1 else keywords.get("model")
            model = _string_literal(model_node)
            if model is not None and model not in self.expected_model_names:
                self.report(
                    "unknown_model",
                    f'"{model}" is not a valid model name for this script. '
                    f"Expected one of: {', '.join(self.expected_model_names) or '-'}.",
                    node,
                )

    @staticmethod
    def _nango_method(node: Node) -> str | None:
        """Method name of a direct ``nango.<method>(...)`` call, else None.

        Only the ``nango`` name itself is recognized. Calls through an alias
        (``session = nango``) or an attribute (``self.nango``) are not
        followed and go unchecked.
        """
        callee = node.child_by_field_name("function")
        if callee is None or callee.type != "attribute":
            return None
        receiver = callee.child_by_field_name("object")
        attribute = callee.child_by_field_name("attribute")
        if receiver is None or attribute is None or receiver.type != "identifier":
            return None
        if _text(receiver) not in NANGO_RECEIVERS:
            return None
        return _text(attribute)

    def finish(self, root: Node, *, require_handler: bool) -> None:
        if not self.handler_found:
            if require_handler:
                self.report(
                    "missing_handler",
                    f"{self.kind.value.capitalize()} scripts must define the "
                    f"module-level handler {self.handler}.",
                    root,
                )
            return
        if (
            self.kind is OperationKind.ACTION
            and self.expected_model_names
            and not self.handler_returns_value
        ):
            self.report(
                "missing_action_return",
                f"The action handler {self.handler} must return its output.",
                root,
            )


def analyze_usage(
    file_path: Path | str,
    kind: OperationKind,
    expected_model_names: Collection[str],
    *,
    require_handler: bool = True,
) -> FileUsageResult:
    """Check every ``nango`` call site of a script against the usage contract.

    Args:
        file_path: Script to analyze.
        kind: Whether the script implements a sync or an action.
        expected_model_names: Models the script may reference.
        require_handler: Whether the file must define the handler; helper
            modules imported by a script do not.

    Returns:
        FileUsageResult listing every violation found in the file.
    """
    path = Path(file_path)
    result = FileUsageResult(path=path.as_posix())

    try:
        source_bytes = path.read_bytes()
    except OSError as exc:
        result.violations.append(
            UsageViolation(rule="syntax_error", message=f"Could not read file: {exc}")
        )
        return result

    tree = _get_parser().parse(source_bytes)
    root = tree.root_node

    if root.has_error:
        error_node = _first_error_node(root) or root
        result.violations.append(
            UsageViolation(
                rule="syntax_error",
                message="The script could not be parsed.",
                line=error_node.start_point[0] + 1,
                column=error_node.start_point[1] + 1,
            )
        )
        return result

    walker = _UsageWalker(result.path, kind, expected_model_names)
    walker.walk(root, ["module"])
    walker.finish(root, require_handler=require_handler)
    result.violations.extend(walker.violations)
    return result


def calls_are_used_correctly(
    file_path: Path | str,
    kind: OperationKind,
    expected_model_names: Collection[str],
) -> bool:
    """Return True iff the script satisfies the ``nango`` usage contract."""
    return analyze_usage(file_path, kind, expected_model_names).ok


__all__ = ["analyze_usage", "calls_are_used_correctly"]
