"""
Parsing of states language JSON text into builders.

Every field is checked for its JSON type and, for paths, its grammar; any
violation is reported as MALFORMED_DOCUMENT. Graph-level problems (unknown
StartAt, dangling Next, missing transitions) are left to ``build()`` so callers
can repair a parsed document before validating it.
"""

import json
import logging
from typing import Any, Callable, Optional

from states_language.core.conditions import (
    AndConditionBuilder,
    ComparisonConditionBuilder,
    ComparisonOperator,
    ConditionBuilder,
    NotConditionBuilder,
    OrConditionBuilder,
    ValueKind,
    canonical_expected_value,
)
from states_language.core.errors import ErrorKind, ValidationError
from states_language.core.machine import StateMachineBuilder
from states_language.core.paths import PathKind, validate_path
from states_language.core.retry import CatcherBuilder, RetrierBuilder
from states_language.core.states import (
    BranchBuilder,
    ChoiceBuilder,
    ChoiceStateBuilder,
    FailStateBuilder,
    ParallelStateBuilder,
    PassStateBuilder,
    ScopeBuilder,
    StateBuilder,
    SucceedStateBuilder,
    TaskStateBuilder,
    WaitForBuilder,
    WaitForSeconds,
    WaitForSecondsPath,
    WaitForTimestamp,
    WaitForTimestampPath,
    WaitStateBuilder,
)
from states_language.core.transitions import (
    EndTransitionBuilder,
    NextTransitionBuilder,
    TransitionBuilder,
)
from states_language.core.values import is_number, parse_timestamp

logger = logging.getLogger(__name__)

_PATH_STATE_KEYS = {"Type", "Comment", "InputPath", "OutputPath"}
_TRANSITION_KEYS = {"Next", "End"}
_WAIT_KEYS = ("Seconds", "SecondsPath", "Timestamp", "TimestampPath")
_COMPOUND_KEYS = ("And", "Or", "Not")
_BRANCH_KEYS = {"Comment", "StartAt", "States"}
_MACHINE_KEYS = _BRANCH_KEYS | {"TimeoutSeconds", "Version"}


def _malformed(message: str, field: Optional[str] = None, value: Any = None) -> ValidationError:
    return ValidationError(ErrorKind.MALFORMED_DOCUMENT, message, field=field, value=value)


def _reject_constant(name: str) -> Any:
    raise _malformed(f"Non-standard JSON constant {name}", value=name)


def _unique_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    """Object hook rejecting duplicate keys, which would silently drop states."""
    document: dict[str, Any] = {}
    for key, value in pairs:
        if key in document:
            raise _malformed(f"Duplicate key '{key}' in document", field=key, value=key)
        document[key] = value
    return document


class _Reader:
    """Typed access to one JSON object, reporting failures with their location."""

    def __init__(self, data: Any, where: str, allowed: set[str]):
        if not isinstance(data, dict):
            raise _malformed(f"{where} must be a JSON object, got {type(data).__name__}", value=data)
        unknown = sorted(set(data) - allowed)
        if unknown:
            raise _malformed(f"{where} has unknown fields {unknown}", field=unknown[0])
        self.data = data
        self.where = where

    def __contains__(self, key: str) -> bool:
        """A key holding null counts as absent."""
        return self.data.get(key) is not None

    def get(self, key: str, check: Callable[[Any], bool], expected: str, required: bool = False) -> Any:
        if key not in self:
            if required:
                raise _malformed(f"{self.where} requires '{key}'", field=key)
            return None
        value = self.data[key]
        if not check(value):
            raise _malformed(
                f"{self.where}: '{key}' must be {expected}, got {type(value).__name__}",
                field=key,
                value=value,
            )
        return value

    def string(self, key: str, required: bool = False) -> Optional[str]:
        return self.get(key, lambda v: isinstance(v, str), "a string", required)

    def integer(self, key: str, required: bool = False) -> Optional[int]:
        return self.get(key, lambda v: is_number(v) and not isinstance(v, float), "an integer", required)

    def number(self, key: str) -> Optional[float]:
        return self.get(key, is_number, "a number")

    def obj(self, key: str, required: bool = False) -> Optional[dict]:
        return self.get(key, lambda v: isinstance(v, dict), "an object", required)

    def array(self, key: str, required: bool = False) -> Optional[list]:
        return self.get(key, lambda v: isinstance(v, list), "an array", required)

    def path(self, key: str, kind: PathKind) -> Optional[str]:
        value = self.string(key)
        if value is not None:
            try:
                validate_path(value, kind, key)
            except ValidationError as e:
                raise e.as_malformed_document() from e
        return value

    def transition(self, required: bool = False) -> Optional[TransitionBuilder]:
        """
        Read the mutually exclusive Next / End keys.

        Returns None when neither is present and the transition is optional.
        """
        present = [key for key in ("Next", "End") if key in self]
        if len(present) > 1:
            raise _malformed(f"{self.where} has both 'Next' and 'End'", field="Next")
        if not present:
            if required:
                raise _malformed(f"{self.where} requires 'Next' or 'End'", field="Next")
            return None
        if present[0] == "Next":
            return NextTransitionBuilder(self.string("Next"))
        if self.data["End"] is not True:
            raise _malformed(f"{self.where}: 'End' must be true", field="End", value=self.data["End"])
        return EndTransitionBuilder()


# =============================================================================
# Conditions
# =============================================================================


def _read_condition(data: Any, where: str, top_level: bool) -> ConditionBuilder:
    keys = set(data) if isinstance(data, dict) else set()
    compound = [key for key in _COMPOUND_KEYS if key in keys]
    allowed_extra = {"Next"} if top_level else set()

    if compound:
        if len(compound) > 1:
            raise _malformed(f"{where} combines {compound}", field=compound[0])
        key = compound[0]
        reader = _Reader(data, where, {key} | allowed_extra)
        if key == "Not":
            inner = reader.obj("Not")
            return NotConditionBuilder(_read_condition(inner, f"{where}.Not", top_level=False))
        children = reader.array(key)
        if not children:
            raise _malformed(f"{where}: '{key}' requires at least one condition", field=key)
        builder = AndConditionBuilder() if key == "And" else OrConditionBuilder()
        for position, child in enumerate(children):
            builder.condition(_read_condition(child, f"{where}.{key}[{position}]", top_level=False))
        return builder

    operators = [op for op in ComparisonOperator if op.value in keys]
    if len(operators) != 1:
        raise _malformed(
            f"{where} must have exactly one comparison operator, found {len(operators)}",
            field="Variable",
        )
    operator = operators[0]
    reader = _Reader(data, where, {"Variable", operator.value} | allowed_extra)
    variable = reader.path("Variable", PathKind.REFERENCE_PATH)
    if variable is None:
        raise _malformed(f"{where} requires 'Variable'", field="Variable")

    raw = data[operator.value]
    try:
        if operator.value_kind == ValueKind.TIMESTAMP:
            raw = parse_timestamp(raw, field=operator.value)
        value = canonical_expected_value(operator, raw)
    except ValidationError as e:
        raise e.as_malformed_document() from e
    return ComparisonConditionBuilder(operator).variable(variable).expected_value(value)


def _read_choice(data: Any, where: str) -> ChoiceBuilder:
    condition = _read_condition(data, where, top_level=True)
    # Rules always carry Next; End is not part of the choice rule grammar
    next_state = _Reader(data, where, set(data)).string("Next", required=True)
    return ChoiceBuilder().condition(condition).transition(NextTransitionBuilder(next_state))


# =============================================================================
# Error handling
# =============================================================================


def _read_error_equals(reader: _Reader) -> list[str]:
    names = reader.array("ErrorEquals", required=True)
    if not all(isinstance(name, str) for name in names):
        raise _malformed(f"{reader.where}: 'ErrorEquals' must contain strings", field="ErrorEquals", value=names)
    return names


def _read_retrier(data: Any, where: str) -> RetrierBuilder:
    reader = _Reader(data, where, {"ErrorEquals", "IntervalSeconds", "MaxAttempts", "BackoffRate"})
    builder = RetrierBuilder().error_equals(*_read_error_equals(reader))
    if "IntervalSeconds" in reader:
        builder.interval_seconds(reader.integer("IntervalSeconds"))
    if "MaxAttempts" in reader:
        builder.max_attempts(reader.integer("MaxAttempts"))
    if "BackoffRate" in reader:
        builder.backoff_rate(reader.number("BackoffRate"))
    return builder


def _read_catcher(data: Any, where: str) -> CatcherBuilder:
    reader = _Reader(data, where, {"ErrorEquals", "ResultPath"} | _TRANSITION_KEYS)
    return (
        CatcherBuilder()
        .error_equals(*_read_error_equals(reader))
        .result_path(reader.path("ResultPath", PathKind.REFERENCE_PATH))
        .transition(reader.transition(required=True))
    )


def _read_policies(reader: _Reader, builder) -> None:
    for position, retrier in enumerate(reader.array("Retry") or []):
        builder.retrier(_read_retrier(retrier, f"{reader.where}.Retry[{position}]"))
    for position, catcher in enumerate(reader.array("Catch") or []):
        builder.catcher(_read_catcher(catcher, f"{reader.where}.Catch[{position}]"))


# =============================================================================
# States
# =============================================================================


def _read_common(reader: _Reader, builder: StateBuilder) -> None:
    if "Comment" in reader:
        builder.comment(reader.string("Comment"))
    builder.input_path(reader.path("InputPath", PathKind.PATH))
    builder.output_path(reader.path("OutputPath", PathKind.PATH))


def _read_transition(reader: _Reader, builder) -> None:
    transition = reader.transition()
    if transition is not None:
        builder.transition(transition)


def _read_task(data: dict, where: str) -> TaskStateBuilder:
    reader = _Reader(
        data,
        where,
        _PATH_STATE_KEYS | _TRANSITION_KEYS | {
            "Resource", "Parameters", "ResultPath", "TimeoutSeconds", "HeartbeatSeconds", "Retry", "Catch",
        },
    )
    builder = TaskStateBuilder().resource(reader.string("Resource", required=True))
    _read_common(reader, builder)
    builder.parameters(reader.obj("Parameters"))
    builder.result_path(reader.path("ResultPath", PathKind.REFERENCE_PATH))
    if "TimeoutSeconds" in reader:
        builder.timeout_seconds(reader.integer("TimeoutSeconds"))
    if "HeartbeatSeconds" in reader:
        builder.heartbeat_seconds(reader.integer("HeartbeatSeconds"))
    _read_policies(reader, builder)
    _read_transition(reader, builder)
    return builder


def _read_pass(data: dict, where: str) -> PassStateBuilder:
    reader = _Reader(data, where, _PATH_STATE_KEYS | _TRANSITION_KEYS | {"Result", "Parameters", "ResultPath"})
    builder = PassStateBuilder()
    _read_common(reader, builder)
    if "Result" in reader:
        builder.result(data["Result"])
    builder.parameters(reader.obj("Parameters"))
    builder.result_path(reader.path("ResultPath", PathKind.REFERENCE_PATH))
    _read_transition(reader, builder)
    return builder


def _read_wait(data: dict, where: str) -> WaitStateBuilder:
    reader = _Reader(data, where, _PATH_STATE_KEYS | _TRANSITION_KEYS | set(_WAIT_KEYS))
    present = [key for key in _WAIT_KEYS if key in reader]
    if len(present) != 1:
        raise _malformed(
            f"{where} requires exactly one of {list(_WAIT_KEYS)}, found {present}",
            field="wait_for",
        )
    key = present[0]
    if key == "Seconds":
        wait_for = WaitForBuilder(WaitForSeconds, seconds=reader.integer(key))
    elif key == "SecondsPath":
        wait_for = WaitForBuilder(WaitForSecondsPath, seconds_path=reader.path(key, PathKind.REFERENCE_PATH))
    elif key == "Timestamp":
        try:
            instant = parse_timestamp(reader.string(key), field=key)
        except ValidationError as e:
            raise e.as_malformed_document() from e
        wait_for = WaitForBuilder(WaitForTimestamp, timestamp=instant)
    else:
        wait_for = WaitForBuilder(WaitForTimestampPath, timestamp_path=reader.path(key, PathKind.REFERENCE_PATH))

    builder = WaitStateBuilder().wait_for(wait_for)
    _read_common(reader, builder)
    _read_transition(reader, builder)
    return builder


def _read_choice_state(data: dict, where: str) -> ChoiceStateBuilder:
    reader = _Reader(data, where, _PATH_STATE_KEYS | {"Choices", "Default"})
    builder = ChoiceStateBuilder()
    _read_common(reader, builder)
    for position, rule in enumerate(reader.array("Choices", required=True)):
        builder.choice(_read_choice(rule, f"{where}.Choices[{position}]"))
    builder.default_state_name(reader.string("Default"))
    return builder


def _read_succeed(data: dict, where: str) -> SucceedStateBuilder:
    reader = _Reader(data, where, _PATH_STATE_KEYS)
    builder = SucceedStateBuilder()
    _read_common(reader, builder)
    return builder


def _read_fail(data: dict, where: str) -> FailStateBuilder:
    reader = _Reader(data, where, {"Type", "Comment", "Error", "Cause"})
    builder = FailStateBuilder()
    if "Comment" in reader:
        builder.comment(reader.string("Comment"))
    if "Error" in reader:
        builder.error(reader.string("Error"))
    if "Cause" in reader:
        builder.cause(reader.string("Cause"))
    return builder


def _read_parallel(data: dict, where: str) -> ParallelStateBuilder:
    reader = _Reader(
        data,
        where,
        _PATH_STATE_KEYS | _TRANSITION_KEYS | {"Branches", "Parameters", "ResultPath", "Retry", "Catch"},
    )
    builder = ParallelStateBuilder()
    _read_common(reader, builder)
    for position, branch in enumerate(reader.array("Branches", required=True)):
        builder.branch(_read_scope(BranchBuilder(), branch, f"{where}.Branches[{position}]", _BRANCH_KEYS))
    builder.parameters(reader.obj("Parameters"))
    builder.result_path(reader.path("ResultPath", PathKind.REFERENCE_PATH))
    _read_policies(reader, builder)
    _read_transition(reader, builder)
    return builder


# Read-only registry of state type discriminators
STATE_READERS: dict[str, Callable[[dict, str], StateBuilder]] = {
    "Task": _read_task,
    "Pass": _read_pass,
    "Wait": _read_wait,
    "Choice": _read_choice_state,
    "Succeed": _read_succeed,
    "Fail": _read_fail,
    "Parallel": _read_parallel,
}


def _read_state(data: Any, where: str) -> StateBuilder:
    if not isinstance(data, dict):
        raise _malformed(f"{where} must be a JSON object, got {type(data).__name__}", value=data)
    state_type = data.get("Type")
    reader = STATE_READERS.get(state_type) if isinstance(state_type, str) else None
    if reader is None:
        raise _malformed(f"{where} has unknown Type {state_type!r}", field="Type", value=state_type)
    return reader(data, where)


def _read_scope(builder: ScopeBuilder, data: Any, where: str, allowed: set[str]):
    """Fill a machine or branch builder from its JSON object."""
    reader = _Reader(data, where, allowed)
    start_at = reader.string("StartAt")
    if start_at is not None:
        builder.start_at(start_at)
    comment = reader.string("Comment")
    if comment is not None:
        builder.comment(comment)
    for name, state in (reader.obj("States") or {}).items():
        builder.state(name, _read_state(state, f"{where}.States.{name}"))
    return builder


def _read_machine(document: Any) -> StateMachineBuilder:
    builder = StateMachineBuilder()
    _read_scope(builder, document, "StateMachine", _MACHINE_KEYS)
    reader = _Reader(document, "StateMachine", set(document))
    if "TimeoutSeconds" in reader:
        builder.timeout_seconds(reader.integer("TimeoutSeconds"))
    builder.version(reader.string("Version"))
    return builder


def from_dict(document: Any) -> StateMachineBuilder:
    """Parse an already-decoded JSON document into a StateMachineBuilder."""
    try:
        return _read_machine(document)
    except RecursionError as e:
        raise _malformed("Document is nested too deeply") from e


def deserialize(text: Any) -> StateMachineBuilder:
    """
    Parse JSON text into a StateMachineBuilder.

    The result is not validated as a graph; call ``build()`` for that.

    Raises:
        ValidationError: MALFORMED_DOCUMENT for invalid JSON and for fields that
            violate their type or grammar
    """
    if not isinstance(text, (str, bytes, bytearray)):
        raise _malformed(f"Expected JSON text, got {type(text).__name__}", value=text)
    try:
        document = json.loads(text, object_pairs_hook=_unique_keys, parse_constant=_reject_constant)
    except ValueError as e:
        raise _malformed(f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise _malformed("Document is nested too deeply") from e

    builder = from_dict(document)
    logger.debug(f"Deserialized state machine document with states {builder.state_names}")
    return builder
