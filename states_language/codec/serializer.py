"""
Canonical JSON serialization of built state machines.

Key order is fixed per entity so that equal machines always produce identical
text. Unset optional fields are omitted; null is never written.
"""

import json
import logging
from typing import Any, Optional

from states_language.config import CodecSettings, default_codec_settings
from states_language.core.conditions import (
    AndCondition,
    ComparisonCondition,
    Condition,
    NotCondition,
    OrCondition,
    ValueKind,
)
from states_language.core.machine import StateMachine
from states_language.core.retry import Catcher, Retrier
from states_language.core.states import (
    Branch,
    ChoiceState,
    FailState,
    ParallelState,
    PassState,
    SucceedState,
    TaskState,
    WaitForSeconds,
    WaitForSecondsPath,
    WaitForTimestamp,
    WaitForTimestampPath,
    WaitState,
)
from states_language.core.transitions import NextTransition, Transition
from states_language.core.values import timestamp_text

logger = logging.getLogger(__name__)


def _put(document: dict[str, Any], key: str, value: Any) -> None:
    """Set ``key`` only when ``value`` is set."""
    if value is not None:
        document[key] = value


def _transition(document: dict[str, Any], transition: Optional[Transition]) -> None:
    if isinstance(transition, NextTransition):
        document["Next"] = transition.next_state_name
    elif transition is not None:
        document["End"] = True


def condition_to_dict(condition: Condition) -> dict[str, Any]:
    """Wire form of a condition tree (without the rule's Next)."""
    if isinstance(condition, ComparisonCondition):
        value = condition.expected_value
        if condition.operator.value_kind == ValueKind.TIMESTAMP:
            value = timestamp_text(value)
        return {"Variable": condition.variable, condition.operator.value: value}
    if isinstance(condition, AndCondition):
        return {"And": [condition_to_dict(child) for child in condition.conditions]}
    if isinstance(condition, OrCondition):
        return {"Or": [condition_to_dict(child) for child in condition.conditions]}
    if isinstance(condition, NotCondition):
        return {"Not": condition_to_dict(condition.condition)}
    raise TypeError(f"Unknown condition type: {type(condition).__name__}")


def retrier_to_dict(retrier: Retrier) -> dict[str, Any]:
    return {
        "ErrorEquals": list(retrier.error_equals),
        "IntervalSeconds": retrier.interval_seconds,
        "MaxAttempts": retrier.max_attempts,
        "BackoffRate": retrier.backoff_rate,
    }


def catcher_to_dict(catcher: Catcher) -> dict[str, Any]:
    document: dict[str, Any] = {"ErrorEquals": list(catcher.error_equals)}
    _put(document, "ResultPath", catcher.result_path)
    _transition(document, catcher.transition)
    return document


def _policies(document: dict[str, Any], state) -> None:
    if state.retriers:
        document["Retry"] = [retrier_to_dict(r) for r in state.retriers]
    if state.catchers:
        document["Catch"] = [catcher_to_dict(c) for c in state.catchers]


def _io_paths(document: dict[str, Any], state, result_path: bool = False) -> None:
    _put(document, "InputPath", state.input_path)
    if result_path:
        _put(document, "ResultPath", state.result_path)
    _put(document, "OutputPath", state.output_path)


def _task(state: TaskState) -> dict[str, Any]:
    document: dict[str, Any] = {"Type": state.type}
    _put(document, "Comment", state.comment)
    document["Resource"] = state.resource
    _put(document, "Parameters", state.parameters)
    _io_paths(document, state, result_path=True)
    _put(document, "TimeoutSeconds", state.timeout_seconds)
    _put(document, "HeartbeatSeconds", state.heartbeat_seconds)
    _policies(document, state)
    _transition(document, state.transition)
    return document


def _pass(state: PassState) -> dict[str, Any]:
    document: dict[str, Any] = {"Type": state.type}
    _put(document, "Comment", state.comment)
    _put(document, "Result", state.result)
    _put(document, "Parameters", state.parameters)
    _io_paths(document, state, result_path=True)
    _transition(document, state.transition)
    return document


def _wait(state: WaitState) -> dict[str, Any]:
    document: dict[str, Any] = {"Type": state.type}
    _put(document, "Comment", state.comment)
    wait_for = state.wait_for
    if isinstance(wait_for, WaitForSeconds):
        document["Seconds"] = wait_for.seconds
    elif isinstance(wait_for, WaitForSecondsPath):
        document["SecondsPath"] = wait_for.seconds_path
    elif isinstance(wait_for, WaitForTimestamp):
        document["Timestamp"] = timestamp_text(wait_for.timestamp)
    elif isinstance(wait_for, WaitForTimestampPath):
        document["TimestampPath"] = wait_for.timestamp_path
    _io_paths(document, state)
    _transition(document, state.transition)
    return document


def _choice(state: ChoiceState) -> dict[str, Any]:
    document: dict[str, Any] = {"Type": state.type}
    _put(document, "Comment", state.comment)
    _io_paths(document, state)
    document["Choices"] = [
        {**condition_to_dict(choice.condition), "Next": choice.transition.next_state_name}
        for choice in state.choices
    ]
    _put(document, "Default", state.default_state_name)
    return document


def _succeed(state: SucceedState) -> dict[str, Any]:
    document: dict[str, Any] = {"Type": state.type}
    _put(document, "Comment", state.comment)
    _io_paths(document, state)
    return document


def _fail(state: FailState) -> dict[str, Any]:
    document: dict[str, Any] = {"Type": state.type}
    _put(document, "Comment", state.comment)
    _put(document, "Error", state.error)
    _put(document, "Cause", state.cause)
    return document


def _parallel(state: ParallelState) -> dict[str, Any]:
    document: dict[str, Any] = {"Type": state.type}
    _put(document, "Comment", state.comment)
    document["Branches"] = [branch_to_dict(branch) for branch in state.branches]
    _put(document, "Parameters", state.parameters)
    _io_paths(document, state, result_path=True)
    _policies(document, state)
    _transition(document, state.transition)
    return document


_STATE_WRITERS = {
    "Task": _task,
    "Pass": _pass,
    "Wait": _wait,
    "Choice": _choice,
    "Succeed": _succeed,
    "Fail": _fail,
    "Parallel": _parallel,
}


def state_to_dict(state) -> dict[str, Any]:
    """Wire form of a single state."""
    return _STATE_WRITERS[state.type](state)


def branch_to_dict(branch: Branch) -> dict[str, Any]:
    document: dict[str, Any] = {}
    _put(document, "Comment", branch.comment)
    document["StartAt"] = branch.start_at
    document["States"] = {name: state_to_dict(state) for name, state in branch.states.items()}
    return document


def to_dict(machine: StateMachine) -> dict[str, Any]:
    """Wire form of a state machine as plain Python data."""
    document: dict[str, Any] = {}
    _put(document, "Comment", machine.comment)
    document["StartAt"] = machine.start_at
    _put(document, "TimeoutSeconds", machine.timeout_seconds)
    _put(document, "Version", machine.version)
    document["States"] = {name: state_to_dict(state) for name, state in machine.states.items()}
    return document


def serialize(
    machine: StateMachine,
    indent: Optional[int] = None,
    settings: Optional[CodecSettings] = None,
) -> str:
    """
    Serialize a built state machine to canonical JSON text.

    Args:
        machine: Machine to serialize
        indent: Indentation width; falls back to the codec settings
        settings: Codec settings (defaults to the built-in defaults, not the environment)

    Returns:
        JSON text
    """
    settings = settings or default_codec_settings()
    if indent is None:
        indent = settings.indent
    text = json.dumps(
        to_dict(machine),
        indent=indent,
        ensure_ascii=settings.ensure_ascii,
        allow_nan=False,
    )
    logger.debug(f"Serialized state machine ({len(machine.states)} states, {len(text)} chars)")
    return text
