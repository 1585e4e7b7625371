"""
Error-handling policies attached to Task and Parallel states.

Retriers describe how a failed state is retried; catchers describe where control
goes once retries are exhausted. Both are matched in declared order by error name.
"""

from typing import Optional

from pydantic import Field, field_validator

from states_language.core.base import Builder, FrozenModel, build_model
from states_language.core.errors import invalid_value, missing_field
from states_language.core.paths import PathKind, validate_optional_path
from states_language.core.transitions import Transition, TransitionBuilder
from states_language.core.values import is_number

# Reserved error name matching any error
ALL_ERRORS = "States.ALL"


def _validate_error_equals(v: tuple[str, ...]) -> tuple[str, ...]:
    if not v:
        raise missing_field("error_equals", "Error matcher")
    for name in v:
        if not name:
            raise invalid_value("error_equals", v, "error names must be non-empty")
    if ALL_ERRORS in v and len(v) > 1:
        raise invalid_value("error_equals", v, f"{ALL_ERRORS} must appear alone")
    if len(v) != len(set(v)):
        raise invalid_value("error_equals", v, "duplicate error names")
    return v


class Retrier(FrozenModel):
    """Retry policy for a set of error names."""

    error_equals: tuple[str, ...]
    interval_seconds: int = Field(default=1, description="Delay before the first retry")
    max_attempts: int = Field(default=3, description="Maximum retry attempts (0 disables)")
    backoff_rate: float = Field(default=2.0, description="Multiplier applied to the delay")

    @field_validator("error_equals")
    @classmethod
    def validate_error_equals(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return _validate_error_equals(v)

    @field_validator("interval_seconds")
    @classmethod
    def validate_interval_seconds(cls, v: int) -> int:
        if v < 1:
            raise invalid_value("interval_seconds", v, "must be a positive integer")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 0:
            raise invalid_value("max_attempts", v, "must be non-negative")
        return v

    @field_validator("backoff_rate")
    @classmethod
    def validate_backoff_rate(cls, v: float) -> float:
        if v < 1.0:
            raise invalid_value("backoff_rate", v, "must be >= 1.0")
        return v

    @property
    def is_catch_all(self) -> bool:
        return ALL_ERRORS in self.error_equals

    def matches(self, error_name: str) -> bool:
        """Check whether this retrier applies to ``error_name``."""
        return self.is_catch_all or error_name in self.error_equals

    def delay_seconds(self, attempt: int) -> float:
        """
        Delay this policy describes before retry number ``attempt`` (1-based).

        Example: interval 2, backoff 2.0 -> 2, 4, 8, ...
        """
        if attempt < 1:
            raise invalid_value("attempt", attempt, "attempts are numbered from 1")
        return self.interval_seconds * self.backoff_rate ** (attempt - 1)


class Catcher(FrozenModel):
    """Fallback transition for a set of error names."""

    error_equals: tuple[str, ...]
    transition: Transition
    result_path: Optional[str] = None

    @field_validator("error_equals")
    @classmethod
    def validate_error_equals(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return _validate_error_equals(v)

    @field_validator("result_path")
    @classmethod
    def validate_result_path(cls, v: Optional[str]) -> Optional[str]:
        return validate_optional_path(v, PathKind.REFERENCE_PATH, "result_path")

    @property
    def is_catch_all(self) -> bool:
        return ALL_ERRORS in self.error_equals

    def matches(self, error_name: str) -> bool:
        """Check whether this catcher applies to ``error_name``."""
        return self.is_catch_all or error_name in self.error_equals


class _ErrorMatcherBuilder:
    def __init__(self):
        self._error_equals: list[str] = []

    def error_equals(self, *error_names: str):
        """Set the error names this policy applies to."""
        self._error_equals = list(error_names)
        return self


class RetrierBuilder(_ErrorMatcherBuilder, Builder[Retrier]):
    """Builder for a Retrier."""

    def __init__(self):
        super().__init__()
        self._interval_seconds: Optional[int] = None
        self._max_attempts: Optional[int] = None
        self._backoff_rate: Optional[float] = None

    def retry_on_all_errors(self) -> "RetrierBuilder":
        """Match every error (``States.ALL``)."""
        self._error_equals = [ALL_ERRORS]
        return self

    def interval_seconds(self, interval_seconds: int) -> "RetrierBuilder":
        self._interval_seconds = interval_seconds
        return self

    def max_attempts(self, max_attempts: int) -> "RetrierBuilder":
        self._max_attempts = max_attempts
        return self

    def backoff_rate(self, backoff_rate: float) -> "RetrierBuilder":
        self._backoff_rate = backoff_rate
        return self

    def build(self) -> Retrier:
        fields = {"error_equals": tuple(self._error_equals)}
        if self._interval_seconds is not None:
            fields["interval_seconds"] = self._interval_seconds
        if self._max_attempts is not None:
            fields["max_attempts"] = self._max_attempts
        if self._backoff_rate is not None:
            rate = self._backoff_rate
            fields["backoff_rate"] = float(rate) if is_number(rate) else rate
        return build_model(Retrier, **fields)


class CatcherBuilder(_ErrorMatcherBuilder, Builder[Catcher]):
    """Builder for a Catcher."""

    def __init__(self):
        super().__init__()
        self._transition: Optional[TransitionBuilder] = None
        self._result_path: Optional[str] = None

    def catch_all(self) -> "CatcherBuilder":
        """Match every error (``States.ALL``)."""
        self._error_equals = [ALL_ERRORS]
        return self

    def transition(self, transition: TransitionBuilder) -> "CatcherBuilder":
        self._transition = transition
        return self

    def result_path(self, result_path: Optional[str]) -> "CatcherBuilder":
        """Set the reference path where the error output is injected."""
        self._result_path = result_path
        return self

    def build(self) -> Catcher:
        if self._transition is None:
            raise missing_field("transition", "Catcher")
        return build_model(
            Catcher,
            error_equals=tuple(self._error_equals),
            transition=self._transition.build(),
            result_path=self._result_path,
        )


def validate_policy_order(policies: tuple, field: str) -> tuple:
    """
    Check that a catch-all retrier or catcher, if present, is the last one.

    Raises:
        ValidationError: INVALID_VALUE when a catch-all precedes other policies
    """
    for position, policy in enumerate(policies[:-1]):
        if policy.is_catch_all:
            raise invalid_value(
                field,
                list(policy.error_equals),
                f"{ALL_ERRORS} must be in the last entry (found at position {position})",
            )
    return policies


def first_match(policies: tuple, error_name: str):
    """Return the first policy matching ``error_name`` in declared order, or None."""
    for policy in policies:
        if policy.matches(error_name):
            return policy
    return None

