"""
Unit tests for path validation.
"""

import pytest

from states_language.core.errors import ErrorKind, ValidationError
from states_language.core.paths import (
    PathKind,
    PathValidator,
    is_valid_path,
    validate_optional_path,
    validate_path,
)


class TestReferencePaths:
    """Tests for the restricted reference path grammar."""

    @pytest.mark.parametrize("path", ["$", "$.foo", "$.foo.bar", "$.foo[0]", "$.items[3].name"])
    def test_simple_steps_accepted(self, path):
        """Test property names and single indices are accepted."""
        validate_path(path, PathKind.REFERENCE_PATH, "result_path")

    @pytest.mark.parametrize("path", ["$.foo[*]", "$..foo", "$.foo[0:2]", "$.*"])
    def test_wildcards_and_descent_rejected(self, path):
        """Test operators outside the reference grammar are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_path(path, PathKind.REFERENCE_PATH, "result_path")

        assert exc_info.value.kind == ErrorKind.INVALID_PATH
        assert exc_info.value.field == "result_path"
        assert exc_info.value.value == path

    def test_context_root_not_a_reference(self):
        """Test reference paths cannot address the context object."""
        assert not is_valid_path("$$.Execution.Id", PathKind.REFERENCE_PATH)


class TestGeneralPaths:
    """Tests for the general path grammar."""

    @pytest.mark.parametrize("path", ["$", "$.foo", "$.foo[*]", "$..author", "$.book[0:2]"])
    def test_general_paths_accepted(self, path):
        """Test wildcards, slices and descent are allowed."""
        assert is_valid_path(path, PathKind.PATH)

    def test_context_object_path(self):
        """Test a $$ prefix addresses the context object."""
        validate_path("$$.Execution.Id", PathKind.PATH, "input_path")

    @pytest.mark.parametrize("path", ["", "$.", "foo.bar", "$.foo[0", "$$."])
    def test_malformed_paths_rejected(self, path):
        """Test empty, unrooted and unbalanced paths fail."""
        with pytest.raises(ValidationError) as exc_info:
            validate_path(path, PathKind.PATH, "input_path")

        assert exc_info.value.kind == ErrorKind.INVALID_PATH
        assert exc_info.value.field == "input_path"

    def test_non_string_rejected(self):
        """Test non-string values are invalid paths."""
        assert not PathValidator().is_valid(42, PathKind.PATH)


class TestOptionalPaths:
    """Tests for optional path fields."""

    def test_none_is_unset(self):
        assert validate_optional_path(None, PathKind.PATH, "output_path") is None

    def test_value_returned_unchanged(self):
        assert validate_optional_path("$.foo", PathKind.PATH, "output_path") == "$.foo"
