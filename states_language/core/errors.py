"""
Error family raised by builders, the graph validator and the codec.

Every failure surfaces as a single exception type carrying a categorised kind.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Categories of validation failure."""

    INVALID_PATH = "InvalidPath"
    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    TYPE_MISMATCH = "TypeMismatch"
    UNRESOLVED_REFERENCE = "UnresolvedReference"
    MALFORMED_DOCUMENT = "MalformedDocument"
    INVALID_VALUE = "InvalidValue"


class ValidationError(Exception):
    """
    Raised when a builder, the graph validator or the codec rejects its input.

    Attributes:
        kind: Failure category
        field: Name of the offending field, when known
        value: Offending value, when known
        issues: All issues collected by graph validation (empty for field-level failures)
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        issues: Optional[list] = None,
    ):
        self.kind = kind
        self.message = message
        self.field = field
        self.value = value
        self.issues = issues or []
        super().__init__(f"[{kind.value}] {message}")

    def as_malformed_document(self) -> "ValidationError":
        """Re-categorise this error as a document parsing failure."""
        return ValidationError(
            ErrorKind.MALFORMED_DOCUMENT,
            self.message,
            field=self.field,
            value=self.value,
            issues=self.issues,
        )


def missing_field(field: str, owner: str) -> ValidationError:
    """Build a MISSING_REQUIRED_FIELD error for ``owner``."""
    return ValidationError(
        ErrorKind.MISSING_REQUIRED_FIELD,
        f"{owner} requires '{field}'",
        field=field,
    )


def invalid_value(field: str, value: Any, reason: str) -> ValidationError:
    """Build an INVALID_VALUE error."""
    return ValidationError(
        ErrorKind.INVALID_VALUE,
        f"Invalid value for '{field}': {value!r} ({reason})",
        field=field,
        value=value,
    )
