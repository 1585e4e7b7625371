"""
Pytest fixtures and configuration for tests.
"""

import pytest

from states_language.builder import (
    catcher,
    choice,
    choice_state,
    end,
    eq,
    fail_state,
    gt,
    next_state,
    pass_state,
    retrier,
    state_machine,
    succeed_state,
    task_state,
)
from states_language.config import Environment, Settings, ValidationSettings, get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Reload settings per test so environment overrides take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        environment=Environment.TEST,
        log_level="DEBUG",
    )


@pytest.fixture
def strict_validation() -> ValidationSettings:
    """Validation settings that require a Default on every Choice state."""
    return ValidationSettings(require_choice_default=True)


@pytest.fixture
def sample_linear_document() -> dict:
    """Sample linear machine: Start -> Work -> Done."""
    return {
        "Comment": "Linear machine",
        "StartAt": "Start",
        "States": {
            "Start": {"Type": "Pass", "Result": {"greeting": "hello"}, "ResultPath": "$.data", "Next": "Work"},
            "Work": {
                "Type": "Task",
                "Resource": "arn:aws:lambda:us-east-1:123456789012:function:work",
                "TimeoutSeconds": 60,
                "HeartbeatSeconds": 10,
                "Next": "Done",
            },
            "Done": {"Type": "Succeed"},
        },
    }


@pytest.fixture
def sample_choice_document() -> dict:
    """Sample branching machine routed by a Choice state."""
    return {
        "StartAt": "Route",
        "States": {
            "Route": {
                "Type": "Choice",
                "Choices": [
                    {"Variable": "$.value", "NumericEquals": 1, "Next": "One"},
                    {
                        "And": [
                            {"Variable": "$.value", "NumericGreaterThan": 1},
                            {"Not": {"Variable": "$.type", "StringEquals": "Private"}},
                        ],
                        "Next": "Many",
                    },
                ],
                "Default": "Unknown",
            },
            "One": {"Type": "Pass", "End": True},
            "Many": {"Type": "Pass", "End": True},
            "Unknown": {"Type": "Fail", "Error": "Route.Unknown", "Cause": "No matching choice"},
        },
    }


@pytest.fixture
def sample_parallel_document() -> dict:
    """Sample machine with a Parallel state of two branches and error handling."""
    return {
        "StartAt": "FanOut",
        "TimeoutSeconds": 300,
        "Version": "1.0",
        "States": {
            "FanOut": {
                "Type": "Parallel",
                "Branches": [
                    {
                        "StartAt": "Lookup",
                        "States": {
                            "Lookup": {"Type": "Task", "Resource": "arn:lookup", "End": True},
                        },
                    },
                    {
                        "StartAt": "Pause",
                        "States": {
                            "Pause": {"Type": "Wait", "Seconds": 5, "Next": "Finish"},
                            "Finish": {"Type": "Succeed"},
                        },
                    },
                ],
                "ResultPath": "$.results",
                "Retry": [
                    {"ErrorEquals": ["States.Timeout"], "IntervalSeconds": 3, "MaxAttempts": 2, "BackoffRate": 1.5},
                ],
                "Catch": [
                    {"ErrorEquals": ["States.ALL"], "ResultPath": "$.error", "Next": "Recover"},
                ],
                "Next": "Done",
            },
            "Recover": {"Type": "Pass", "Next": "Done"},
            "Done": {"Type": "Succeed"},
        },
    }


@pytest.fixture
def order_machine_builder():
    """Builder for a machine exercising Task, Choice, Pass, Fail and Succeed states."""
    return (
        state_machine()
        .comment("Order processing")
        .start_at("Validate")
        .state(
            "Validate",
            task_state()
            .resource("arn:validate")
            .result_path("$.validation")
            .retrier(retrier().error_equals("Throttled").interval_seconds(2).max_attempts(5))
            .catcher(catcher().catch_all().result_path("$.error").transition(next_state("Rejected")))
            .transition(next_state("Route")),
        )
        .state(
            "Route",
            choice_state()
            .choice(choice().condition(eq("$.validation.ok", True)).transition(next_state("Ship")))
            .choice(choice().condition(gt("$.total", 1000)).transition(next_state("Review")))
            .default_state_name("Rejected"),
        )
        .state("Review", pass_state().result({"review": "manual"}).transition(next_state("Ship")))
        .state("Ship", succeed_state())
        .state("Rejected", fail_state().error("Order.Rejected").cause("Validation failed"))
    )


@pytest.fixture
def minimal_machine_builder():
    """Single Pass state that ends the machine."""
    return state_machine().start_at("Only").state("Only", pass_state().transition(end()))
