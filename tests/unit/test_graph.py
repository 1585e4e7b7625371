"""
Unit tests for state machine graph validation.
"""

import logging

import pytest

from states_language.builder import (
    branch,
    catcher,
    choice,
    choice_state,
    end,
    eq,
    next_state,
    parallel_state,
    pass_state,
    state_machine,
    succeed_state,
    task_state,
)
from states_language.config import ValidationSettings, get_settings
from states_language.core.errors import ErrorKind, ValidationError
from states_language.core.graph import StateGraphValidator


def _states(**builders):
    return {name: builder.build() for name, builder in builders.items()}


class TestStateGraphValidator:
    """Tests for graph validation logic."""

    def test_valid_linear_graph(self):
        states = _states(
            A=pass_state().transition(next_state("B")),
            B=succeed_state(),
        )

        result = StateGraphValidator("A", states).validate()

        assert result.is_valid
        assert result.errors == []
        assert result.reachable_states == {"A", "B"}

    def test_missing_start(self):
        result = StateGraphValidator(None, _states(A=succeed_state())).validate()

        assert not result.is_valid
        assert result.errors[0].code == ErrorKind.MISSING_REQUIRED_FIELD
        assert result.errors[0].field_name == "start_at"

    def test_unknown_start(self):
        result = StateGraphValidator("Nope", _states(A=succeed_state())).validate()

        assert any(e.code == ErrorKind.UNRESOLVED_REFERENCE for e in result.errors)

    def test_no_states(self):
        result = StateGraphValidator("A", {}).validate()

        assert not result.is_valid
        assert result.errors[0].field_name == "states"

    def test_collects_every_error(self):
        """Test all structural problems are reported together."""
        states = _states(
            A=pass_state().transition(next_state("Missing")),
            B=pass_state(),
        )

        result = StateGraphValidator("A", states).validate()

        codes = [e.code for e in result.errors]
        assert ErrorKind.MISSING_REQUIRED_FIELD in codes
        assert ErrorKind.UNRESOLVED_REFERENCE in codes
        assert {e.state_name for e in result.errors} == {"A", "B"}

    def test_catcher_targets_are_references(self):
        states = _states(
            A=task_state()
            .resource("arn:work")
            .catcher(catcher().catch_all().transition(next_state("Gone")))
            .transition(end()),
        )

        result = StateGraphValidator("A", states).validate()

        assert result.errors[0].code == ErrorKind.UNRESOLVED_REFERENCE
        assert result.errors[0].field_name == "catchers"

    def test_no_reachable_terminal(self):
        """Test a loop without an exit is rejected."""
        states = _states(
            A=pass_state().transition(next_state("B")),
            B=pass_state().transition(next_state("A")),
        )

        result = StateGraphValidator("A", states).validate()

        assert not result.is_valid
        assert result.errors[0].code == ErrorKind.MISSING_REQUIRED_FIELD

    def test_loop_with_exit_accepted(self):
        states = _states(
            Check=choice_state()
            .choice(choice().condition(eq("$.done", True)).transition(next_state("Done")))
            .default_state_name("Work"),
            Work=pass_state().transition(next_state("Check")),
            Done=succeed_state(),
        )

        assert StateGraphValidator("Check", states).validate().is_valid

    def test_unreachable_state_warning(self, caplog):
        states = _states(
            A=succeed_state(),
            Orphan=succeed_state(),
        )

        with caplog.at_level(logging.WARNING):
            result = StateGraphValidator("A", states).validate()

        assert result.is_valid
        assert result.warnings[0].details["unreachable_states"] == ["Orphan"]
        assert "Orphan" in caplog.text

    def test_unreachable_warning_disabled(self):
        states = _states(A=succeed_state(), Orphan=succeed_state())

        result = StateGraphValidator("A", states, warn_unreachable_states=False).validate()

        assert result.warnings == []

    def test_dead_end_rejected(self):
        """Test a reachable state that can never finish is an error."""
        states = _states(
            Start=choice_state()
            .choice(choice().condition(eq("$.loop", True)).transition(next_state("Spin")))
            .default_state_name("Done"),
            Spin=pass_state().transition(next_state("Spin")),
            Done=succeed_state(),
        )

        result = StateGraphValidator("Start", states).validate()

        assert not result.is_valid
        assert result.errors[0].code == ErrorKind.MISSING_REQUIRED_FIELD
        assert result.errors[0].state_name == "Spin"
        assert result.errors[0].details["dead_end_states"] == ["Spin"]

    def test_unreachable_dead_end_only_warned(self):
        """Test a cycle nobody can enter is an unreachable warning, not an error."""
        states = _states(
            A=succeed_state(),
            Spin=pass_state().transition(next_state("Spin")),
        )

        result = StateGraphValidator("A", states).validate()

        assert result.is_valid
        assert result.warnings[0].details["unreachable_states"] == ["Spin"]

    def test_choice_default_required_by_setting(self):
        states = _states(
            Route=choice_state().choice(choice().condition(eq("$.v", 1)).transition(next_state("Done"))),
            Done=succeed_state(),
        )

        assert StateGraphValidator("Route", states).validate().is_valid

        result = StateGraphValidator("Route", states, require_choice_default=True).validate()
        assert result.errors[0].field_name == "default_state_name"


class TestMachineBuild:
    """Tests for graph validation through the machine builder."""

    def test_missing_transition(self):
        builder = state_machine().start_at("A").state("A", pass_state())

        with pytest.raises(ValidationError) as exc_info:
            builder.build()

        assert exc_info.value.kind == ErrorKind.MISSING_REQUIRED_FIELD
        assert exc_info.value.field == "transition"

    def test_missing_start_at(self):
        with pytest.raises(ValidationError) as exc_info:
            state_machine().state("A", succeed_state()).build()

        assert exc_info.value.kind == ErrorKind.MISSING_REQUIRED_FIELD
        assert exc_info.value.field == "start_at"

    def test_unresolved_next(self):
        builder = state_machine().start_at("A").state("A", pass_state().transition(next_state("B")))

        with pytest.raises(ValidationError) as exc_info:
            builder.build()

        assert exc_info.value.kind == ErrorKind.UNRESOLVED_REFERENCE
        assert exc_info.value.value == "A"

    def test_error_carries_all_issues(self):
        builder = (
            state_machine()
            .start_at("A")
            .state("A", pass_state().transition(next_state("X")))
            .state("B", pass_state().transition(next_state("Y")))
        )

        with pytest.raises(ValidationError) as exc_info:
            builder.build()

        assert len(exc_info.value.issues) == 2

    def test_strict_settings(self, strict_validation):
        builder = (
            state_machine()
            .start_at("Route")
            .state("Route", choice_state().choice(choice().condition(eq("$.v", 1)).transition(next_state("Done"))))
            .state("Done", succeed_state())
        )

        builder.build()
        with pytest.raises(ValidationError) as exc_info:
            builder.build(validation_settings=strict_validation)

        assert exc_info.value.field == "default_state_name"

    def test_dead_end_fails_build(self):
        builder = (
            state_machine()
            .start_at("Start")
            .state(
                "Start",
                choice_state()
                .choice(choice().condition(eq("$.loop", True)).transition(next_state("Spin")))
                .default_state_name("Done"),
            )
            .state("Spin", pass_state().transition(next_state("Spin")))
            .state("Done", succeed_state())
        )

        with pytest.raises(ValidationError) as exc_info:
            builder.build()

        assert exc_info.value.kind == ErrorKind.MISSING_REQUIRED_FIELD
        assert exc_info.value.value == "Spin"

    def test_environment_ignored(self, monkeypatch):
        """Test build() uses built-in defaults whatever the environment holds."""
        monkeypatch.setenv("STATES_VALIDATION_REQUIRE_CHOICE_DEFAULT", "banana")
        assert state_machine().start_at("A").state("A", succeed_state()).build().start_at == "A"

        monkeypatch.setenv("STATES_VALIDATION_REQUIRE_CHOICE_DEFAULT", "true")
        builder = (
            state_machine()
            .start_at("Route")
            .state("Route", choice_state().choice(choice().condition(eq("$.v", 1)).transition(next_state("Done"))))
            .state("Done", succeed_state())
        )
        assert builder.build().start_at == "Route"

    def test_settings_from_environment_passed_explicitly(self, monkeypatch):
        monkeypatch.setenv("STATES_VALIDATION_REQUIRE_CHOICE_DEFAULT", "true")
        builder = (
            state_machine()
            .start_at("Route")
            .state("Route", choice_state().choice(choice().condition(eq("$.v", 1)).transition(next_state("Done"))))
            .state("Done", succeed_state())
        )

        with pytest.raises(ValidationError):
            builder.build(validation_settings=get_settings().validation)

        relaxed = ValidationSettings(require_choice_default=False)
        assert builder.build(validation_settings=relaxed).start_at == "Route"

    def test_strict_settings_reach_branches(self, strict_validation):
        inner = (
            branch()
            .start_at("Route")
            .state("Route", choice_state().choice(choice().condition(eq("$.v", 1)).transition(next_state("Done"))))
            .state("Done", succeed_state())
        )
        builder = state_machine().start_at("Fan").state("Fan", parallel_state().branch(inner).transition(end()))

        assert builder.build().start_at == "Fan"
        with pytest.raises(ValidationError) as exc_info:
            builder.build(validation_settings=strict_validation)

        assert exc_info.value.field == "default_state_name"
