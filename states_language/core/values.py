"""
Canonical forms for numeric and timestamp values.

Numbers: integral values are kept as ints (42.0 -> 42), other floats keep the
shortest decimal text that round-trips (9000.1 -> "9000.1").

Timestamps: converted to UTC and truncated to millisecond precision. Text form
is ``YYYY-MM-DDTHH:MM:SS.mmmZ`` when the millisecond part is non-zero, otherwise
``YYYY-MM-DDTHH:MM:SSZ``.

Opaque JSON values (Task and Parallel parameters, Pass results) are stored as
read-only FrozenDict / FrozenList trees.
"""

import math
from datetime import datetime, timezone
from typing import Any, Union

from states_language.core.errors import ErrorKind, ValidationError

Number = Union[int, float]


def is_number(value: Any) -> bool:
    """Check for an int or float that is not a bool."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def canonical_number(value: Any, field: str = "expected_value") -> Number:
    """
    Normalise a numeric value.

    Raises:
        ValidationError: TYPE_MISMATCH for non-numbers, bools, NaN and infinity
    """
    if not is_number(value):
        raise ValidationError(
            ErrorKind.TYPE_MISMATCH,
            f"'{field}' must be a number, got {type(value).__name__}",
            field=field,
            value=value,
        )
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(
                ErrorKind.TYPE_MISMATCH,
                f"'{field}' must be a finite number, got {value!r}",
                field=field,
                value=value,
            )
        if value.is_integer():
            return int(value)
    return value


def number_text(value: Number) -> str:
    """Text form of a canonical number."""
    return repr(value) if isinstance(value, float) else str(value)


def canonical_timestamp(value: Any, field: str = "timestamp") -> datetime:
    """
    Normalise an aware datetime to UTC with millisecond precision.

    Raises:
        ValidationError: TYPE_MISMATCH for non-datetimes and naive datetimes,
            INVALID_VALUE when the UTC instant falls outside the datetime range
    """
    if not isinstance(value, datetime):
        raise ValidationError(
            ErrorKind.TYPE_MISMATCH,
            f"'{field}' must be a datetime, got {type(value).__name__}",
            field=field,
            value=value,
        )
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationError(
            ErrorKind.TYPE_MISMATCH,
            f"'{field}' must be timezone-aware",
            field=field,
            value=value,
        )
    try:
        utc = value.astimezone(timezone.utc)
    except OverflowError as e:
        raise ValidationError(
            ErrorKind.INVALID_VALUE,
            f"'{field}' is out of range in UTC",
            field=field,
            value=value,
        ) from e
    return utc.replace(microsecond=(utc.microsecond // 1000) * 1000)


def timestamp_text(value: datetime) -> str:
    """ISO-8601 text of a canonical timestamp."""
    millis = value.microsecond // 1000
    # Year is always four digits
    text = value.replace(tzinfo=None, microsecond=0).isoformat()
    if millis:
        text += f".{millis:03d}"
    return text + "Z"


def parse_timestamp(text: Any, field: str = "timestamp") -> datetime:
    """
    Parse ISO-8601 text into a canonical timestamp.

    Raises:
        ValidationError: TYPE_MISMATCH if the text is not an ISO-8601 instant
            with a timezone designator
    """
    if not isinstance(text, str):
        raise ValidationError(
            ErrorKind.TYPE_MISMATCH,
            f"'{field}' must be an ISO-8601 string, got {type(text).__name__}",
            field=field,
            value=text,
        )
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(
            ErrorKind.TYPE_MISMATCH,
            f"'{field}' is not an ISO-8601 timestamp: {text!r}",
            field=field,
            value=text,
        ) from e
    return canonical_timestamp(parsed, field)


class FrozenDict(dict):
    """Read-only JSON object held by a built state."""

    def _readonly(self, *args, **kwargs):
        raise TypeError(f"{type(self).__name__} is read-only")

    __setitem__ = __delitem__ = __ior__ = _readonly
    clear = pop = popitem = setdefault = update = _readonly

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return type(self), (dict(self),)


class FrozenList(list):
    """Read-only JSON array held by a built state."""

    def _readonly(self, *args, **kwargs):
        raise TypeError(f"{type(self).__name__} is read-only")

    __setitem__ = __delitem__ = __iadd__ = __imul__ = _readonly
    append = extend = insert = pop = remove = clear = sort = reverse = _readonly

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return type(self), (list(self),)


def freeze_json(value: Any) -> Any:
    """Deeply convert JSON objects and arrays into their read-only forms."""
    if isinstance(value, dict):
        return FrozenDict((key, freeze_json(item)) for key, item in value.items())
    if isinstance(value, (list, tuple)):
        return FrozenList(freeze_json(item) for item in value)
    return value
