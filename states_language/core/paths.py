"""
Syntactic validation of JSONPath expressions used by state fields.

Two grammars are accepted:
- PATH: any JSONPath rooted at ``$`` (filters, wildcards, slices and recursive
  descent allowed). A ``$$`` prefix addresses the context object.
- REFERENCE_PATH: only property-name and single array-index steps rooted at ``$``.

Paths are never evaluated against a document.
"""

import logging
from enum import Enum
from functools import lru_cache
from typing import Optional

from jsonpath_ng import jsonpath
from jsonpath_ng.ext import parse as parse_extended

from states_language.core.errors import ErrorKind, ValidationError

logger = logging.getLogger(__name__)


class PathKind(str, Enum):
    """Grammar a path string must satisfy."""

    PATH = "Path"
    REFERENCE_PATH = "ReferencePath"


ROOT = "$"
CONTEXT_ROOT = "$$"


class PathValidator:
    """
    Validates path strings against the PATH or REFERENCE_PATH grammar.

    Parsing is delegated to jsonpath-ng's extended parser; the resulting
    expression tree is inspected to enforce the reference-path restriction.
    """

    def validate(self, path: Optional[str], kind: PathKind, field: str) -> None:
        """
        Validate a path string.

        Args:
            path: Path expression to check
            kind: Grammar the path must satisfy
            field: Field name reported on failure

        Raises:
            ValidationError: INVALID_PATH if the path is malformed or uses
                constructs the grammar forbids
        """
        if not isinstance(path, str) or not path:
            raise self._error(field, path, "path must be a non-empty string")

        expression = path
        if kind == PathKind.PATH and path.startswith(CONTEXT_ROOT):
            # Context object paths follow the same grammar once re-rooted
            expression = ROOT + path[len(CONTEXT_ROOT):]

        if not expression.startswith(ROOT):
            raise self._error(field, path, "path must start with '$'")

        try:
            tree = _parse(expression)
        except Exception as e:
            # jsonpath-ng raises lexer, parser and plain exceptions depending on the input
            raise self._error(field, path, f"not a valid JSONPath expression: {e}") from e

        if kind == PathKind.REFERENCE_PATH and not self._is_reference(tree):
            raise self._error(
                field,
                path,
                "reference paths may only contain property names and single array indices",
            )

    def is_valid(self, path: Optional[str], kind: PathKind) -> bool:
        """Check a path without raising."""
        try:
            self.validate(path, kind, field="path")
        except ValidationError:
            return False
        return True

    def _is_reference(self, node: jsonpath.JSONPath) -> bool:
        """Check that an expression tree is a chain of simple steps from the root."""
        if isinstance(node, jsonpath.Root):
            return True
        if isinstance(node, jsonpath.Child):
            return self._is_reference(node.left) and self._is_step(node.right)
        return False

    def _is_step(self, node: jsonpath.JSONPath) -> bool:
        if isinstance(node, jsonpath.Child):
            return self._is_step(node.left) and self._is_step(node.right)
        if isinstance(node, jsonpath.Fields):
            return len(node.fields) == 1 and node.fields[0] != "*"
        if isinstance(node, jsonpath.Index):
            indices = getattr(node, "indices", None) or (node.index,)
            return len(indices) == 1
        return False

    @staticmethod
    def _error(field: str, path: Optional[str], reason: str) -> ValidationError:
        return ValidationError(
            ErrorKind.INVALID_PATH,
            f"Invalid path for '{field}': {path!r} ({reason})",
            field=field,
            value=path,
        )


@lru_cache(maxsize=512)
def _parse(expression: str) -> jsonpath.JSONPath:
    """Parse an expression with jsonpath-ng's extended grammar."""
    logger.debug(f"Parsing JSONPath expression {expression!r}")
    return parse_extended(expression)


_validator = PathValidator()


def validate_path(path: Optional[str], kind: PathKind, field: str) -> None:
    """Validate ``path`` against ``kind`` using the shared validator."""
    _validator.validate(path, kind, field)


def validate_optional_path(path: Optional[str], kind: PathKind, field: str) -> Optional[str]:
    """Validate ``path`` if it is set; returns it unchanged."""
    if path is not None:
        _validator.validate(path, kind, field)
    return path


def is_valid_path(path: Optional[str], kind: PathKind) -> bool:
    """Check ``path`` against ``kind`` without raising."""
    return _validator.is_valid(path, kind)
