"""
Fluent factory functions for assembling state machines.

Example:
    from states_language.builder import *

    machine = (
        state_machine()
        .start_at("Check")
        .state("Check", choice_state()
               .choice(choice().condition(eq("$.status", "ok")).transition(next_state("Done")))
               .default_state_name("Failed"))
        .state("Done", succeed_state())
        .state("Failed", fail_state().error("Status.NotOk"))
        .build()
    )
"""

from datetime import datetime
from typing import Any

from states_language.core.conditions import (
    AndConditionBuilder,
    Comparator,
    ComparisonConditionBuilder,
    ConditionBuilder,
    NotConditionBuilder,
    OrConditionBuilder,
    comparison,
)
from states_language.core.machine import StateMachineBuilder
from states_language.core.retry import CatcherBuilder, RetrierBuilder
from states_language.core.states import (
    BranchBuilder,
    ChoiceBuilder,
    ChoiceStateBuilder,
    FailStateBuilder,
    ParallelStateBuilder,
    PassStateBuilder,
    SucceedStateBuilder,
    TaskStateBuilder,
    WaitForBuilder,
    WaitForSeconds,
    WaitForSecondsPath,
    WaitForTimestamp,
    WaitForTimestampPath,
    WaitStateBuilder,
)
from states_language.core.transitions import EndTransitionBuilder, NextTransitionBuilder

__all__ = [
    "state_machine",
    "branch",
    "task_state",
    "pass_state",
    "wait_state",
    "choice_state",
    "succeed_state",
    "fail_state",
    "parallel_state",
    "choice",
    "retrier",
    "catcher",
    "next_state",
    "end",
    "seconds",
    "seconds_path",
    "timestamp",
    "timestamp_path",
    "eq",
    "gt",
    "gte",
    "lt",
    "lte",
    "and_",
    "or_",
    "not_",
]


def state_machine() -> StateMachineBuilder:
    return StateMachineBuilder()


def branch() -> BranchBuilder:
    return BranchBuilder()


def task_state() -> TaskStateBuilder:
    return TaskStateBuilder()


def pass_state() -> PassStateBuilder:
    return PassStateBuilder()


def wait_state() -> WaitStateBuilder:
    return WaitStateBuilder()


def choice_state() -> ChoiceStateBuilder:
    return ChoiceStateBuilder()


def succeed_state() -> SucceedStateBuilder:
    return SucceedStateBuilder()


def fail_state() -> FailStateBuilder:
    return FailStateBuilder()


def parallel_state() -> ParallelStateBuilder:
    return ParallelStateBuilder()


def choice() -> ChoiceBuilder:
    return ChoiceBuilder()


def retrier() -> RetrierBuilder:
    return RetrierBuilder()


def catcher() -> CatcherBuilder:
    return CatcherBuilder()


# Transitions


def next_state(name: str) -> NextTransitionBuilder:
    """Transition to the state registered under ``name``."""
    return NextTransitionBuilder(name)


def end() -> EndTransitionBuilder:
    """Terminate the machine (or branch) after this state."""
    return EndTransitionBuilder()


# Wait durations


def seconds(value: int) -> WaitForBuilder:
    return WaitForBuilder(WaitForSeconds, seconds=value)


def seconds_path(path: str) -> WaitForBuilder:
    return WaitForBuilder(WaitForSecondsPath, seconds_path=path)


def timestamp(value: datetime) -> WaitForBuilder:
    """Wait until ``value``; must be timezone-aware."""
    return WaitForBuilder(WaitForTimestamp, timestamp=value)


def timestamp_path(path: str) -> WaitForBuilder:
    return WaitForBuilder(WaitForTimestampPath, timestamp_path=path)


# Conditions
#
# The comparison family follows the expected value's type:
# str -> String*, int/float -> Numeric*, datetime -> Timestamp*, bool -> BooleanEquals.


def eq(variable: str, value: Any) -> ComparisonConditionBuilder:
    return comparison(variable, Comparator.EQUALS, value)


def gt(variable: str, value: Any) -> ComparisonConditionBuilder:
    return comparison(variable, Comparator.GREATER_THAN, value)


def gte(variable: str, value: Any) -> ComparisonConditionBuilder:
    return comparison(variable, Comparator.GREATER_THAN_EQUALS, value)


def lt(variable: str, value: Any) -> ComparisonConditionBuilder:
    return comparison(variable, Comparator.LESS_THAN, value)


def lte(variable: str, value: Any) -> ComparisonConditionBuilder:
    return comparison(variable, Comparator.LESS_THAN_EQUALS, value)


def and_(*conditions: ConditionBuilder) -> AndConditionBuilder:
    return AndConditionBuilder(*conditions)


def or_(*conditions: ConditionBuilder) -> OrConditionBuilder:
    return OrConditionBuilder(*conditions)


def not_(condition: ConditionBuilder) -> NotConditionBuilder:
    return NotConditionBuilder(condition)
