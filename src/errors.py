"""Exception hierarchy for nango-compiler.

User-facing messages are safe to display and intentionally coarse where the
schema grammar is concerned. Technical details (pydantic error lists, file
paths, offending values) are logged through structlog and never placed in
the message itself.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)

SCHEMA_VALIDATION_MESSAGE = "Problem validating the nango.yaml file."


class NangoCompilerError(Exception):
    """Base exception for nango-compiler.

    Args:
        user_message: Message shown to the user.
        internal_details: Optional technical details, logged only.
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.internal_details = internal_details

        if internal_details:
            logger.error(
                "compiler_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


class SchemaError(NangoCompilerError):
    """Any error that aborts loading a nango.yaml file."""


class SchemaValidationError(SchemaError):
    """Structural violation of the nango.yaml grammar.

    The message is always the generic validation message; the reason is
    only available through ``internal_details``.
    """

    def __init__(self, *, internal_details: str | None = None) -> None:
        super().__init__(
            SCHEMA_VALIDATION_MESSAGE,
            internal_details=internal_details,
        )


class FieldExpressionError(SchemaError):
    """A model field holds a type expression that cannot be compiled."""

    def __init__(self, message: str, *, model: str, field: str) -> None:
        super().__init__(message)
        self.model = model
        self.field = field


class ModelInvariantError(SchemaError):
    """A model used as a sync output is missing its ``id`` field."""

    def __init__(self, model: str) -> None:
        super().__init__(
            f'Model "{model}" doesn\'t have an id field. This is required to be '
            "able to uniquely identify the data record."
        )
        self.model = model


class PathContainmentError(NangoCompilerError):
    """An import in a script escapes its integration root."""

    def __init__(self, importer: str, target: str, root: str) -> None:
        super().__init__(
            f"Import of {target} in {importer} is outside of the integration "
            f"directory {root}"
        )
        self.importer = importer
        self.target = target
        self.root = root


__all__ = [
    "SCHEMA_VALIDATION_MESSAGE",
    "FieldExpressionError",
    "ModelInvariantError",
    "NangoCompilerError",
    "PathContainmentError",
    "SchemaError",
    "SchemaValidationError",
]
