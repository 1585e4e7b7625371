"""
Unit tests for numeric and timestamp canonical forms.
"""

import copy
import pickle
from datetime import datetime, timedelta, timezone

import pytest

from states_language.core.errors import ErrorKind, ValidationError
from states_language.core.values import (
    FrozenDict,
    FrozenList,
    canonical_number,
    canonical_timestamp,
    freeze_json,
    number_text,
    parse_timestamp,
    timestamp_text,
)


class TestCanonicalNumber:
    """Tests for numeric normalisation."""

    def test_integer_kept(self):
        assert canonical_number(42) == 42
        assert number_text(canonical_number(42)) == "42"

    def test_integral_float_becomes_int(self):
        """Test 42.0 and 42 share a canonical form."""
        value = canonical_number(42.0)

        assert isinstance(value, int)
        assert number_text(value) == "42"

    def test_decimal_text_preserved(self):
        assert number_text(canonical_number(9000.1)) == "9000.1"

    @pytest.mark.parametrize("value", [True, False, "42", None])
    def test_non_numbers_rejected(self, value):
        """Test bools and strings are never numbers."""
        with pytest.raises(ValidationError) as exc_info:
            canonical_number(value)

        assert exc_info.value.kind == ErrorKind.TYPE_MISMATCH

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            canonical_number(value)

        assert exc_info.value.kind == ErrorKind.TYPE_MISMATCH


class TestCanonicalTimestamp:
    """Tests for timestamp normalisation."""

    def test_converted_to_utc(self):
        """Test offsets are normalised to UTC."""
        pacific = timezone(timedelta(hours=-8))
        value = canonical_timestamp(datetime(2016, 3, 14, 1, 59, 0, 123000, tzinfo=pacific))

        assert value == datetime(2016, 3, 14, 9, 59, 0, 123000, tzinfo=timezone.utc)
        assert timestamp_text(value) == "2016-03-14T09:59:00.123Z"

    def test_truncated_to_milliseconds(self):
        value = canonical_timestamp(datetime(2020, 1, 1, 0, 0, 0, 123999, tzinfo=timezone.utc))

        assert value.microsecond == 123000

    def test_whole_seconds_omit_fraction(self):
        value = canonical_timestamp(datetime(2020, 1, 1, 12, 30, tzinfo=timezone.utc))

        assert timestamp_text(value) == "2020-01-01T12:30:00Z"

    def test_naive_datetime_rejected(self):
        """Test timestamps without a timezone are ambiguous and rejected."""
        with pytest.raises(ValidationError) as exc_info:
            canonical_timestamp(datetime(2020, 1, 1))

        assert exc_info.value.kind == ErrorKind.TYPE_MISMATCH

    def test_parse_with_offset(self):
        value = parse_timestamp("2016-03-14T01:59:00.123-08:00")

        assert timestamp_text(value) == "2016-03-14T09:59:00.123Z"

    def test_parse_zulu(self):
        assert parse_timestamp("2016-03-14T09:59:00Z") == datetime(2016, 3, 14, 9, 59, tzinfo=timezone.utc)

    @pytest.mark.parametrize("text", ["not a timestamp", "2016-03-14T09:59:00", 1457949540])
    def test_parse_rejects_invalid(self, text):
        """Test unparseable, naive and non-string timestamps fail."""
        with pytest.raises(ValidationError) as exc_info:
            parse_timestamp(text)

        assert exc_info.value.kind == ErrorKind.TYPE_MISMATCH

    def test_early_year_padded(self):
        """Test years below 1000 keep four digits and parse back."""
        value = canonical_timestamp(datetime(999, 1, 1, tzinfo=timezone.utc))

        assert timestamp_text(value) == "0999-01-01T00:00:00Z"
        assert parse_timestamp(timestamp_text(value)) == value

    def test_out_of_range_in_utc(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_timestamp("0001-01-01T00:00:00+05:00")

        assert exc_info.value.kind == ErrorKind.INVALID_VALUE


class TestFreezeJson:
    """Tests for read-only JSON containers."""

    def test_nested_containers_frozen(self):
        value = freeze_json({"a": [1, {"b": 2}]})

        assert isinstance(value, FrozenDict)
        assert isinstance(value["a"], FrozenList)
        assert isinstance(value["a"][1], FrozenDict)
        assert value == {"a": [1, {"b": 2}]}

    def test_tuples_become_arrays(self):
        assert freeze_json((1, 2)) == [1, 2]

    def test_mutation_rejected(self):
        value = freeze_json({"a": [1]})

        with pytest.raises(TypeError):
            value["b"] = 2
        with pytest.raises(TypeError):
            del value["a"]
        with pytest.raises(TypeError):
            value["a"].extend([2])
        with pytest.raises(TypeError):
            value["a"][0] = 5

    def test_copies_share_frozen_value(self):
        value = freeze_json({"a": [1]})

        assert copy.deepcopy(value) is value
        assert pickle.loads(pickle.dumps(value)) == value
