"""Errors raised while building schemas and marshallers.

Every error is reported against the most specific offending element (a
member, a type or the schema entry point) and aborts only the generation
unit that raised it.
"""


class ProtoSchemaBuilderError(RuntimeError):
    """Base class for all fatal schema generation errors."""

    def __init__(self, message: str, element: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.element = element

    def __str__(self) -> str:
        if self.element:
            return f"{self.element}: {self.message}"
        return self.message


class SelectionError(ProtoSchemaBuilderError):
    """Conflicting or empty class selection, or an invalid package name."""


class EligibilityError(ProtoSchemaBuilderError):
    """Disallowed nesting, modifiers or kind on a generation root."""


class SchemaValidationError(ProtoSchemaBuilderError):
    """Structurally invalid field, enum value or type declaration."""


class NumberConflictError(SchemaValidationError):
    """Two fields or two enum values share a number."""


class NameCollisionError(SchemaValidationError):
    """Two entities resolve to the same schema name in one scope."""


class UnresolvedTypeError(ProtoSchemaBuilderError):
    """A referenced type is unknown or excluded from the schema."""


class BindingError(ProtoSchemaBuilderError):
    """A field cannot be bound to a construction or accessor path."""


class EmissionError(ProtoSchemaBuilderError):
    """An output conflicts with something already written."""
