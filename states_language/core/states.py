"""
State model: the closed set of state kinds and their builders.

Task, Pass, Wait and Parallel are transition states: each must either name a
successor or end the machine. Choice routes through its choice rules; Succeed
and Fail are inherently terminal. Branch is the nested machine fragment owned
by a Parallel state.
"""

import copy
import json
import logging
from datetime import datetime
from typing import Annotated, Any, ClassVar, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from states_language.config import ValidationSettings, default_validation_settings
from states_language.core.base import Builder, FrozenModel, build_model
from states_language.core.conditions import Condition, ConditionBuilder
from states_language.core.errors import ErrorKind, ValidationError, invalid_value, missing_field
from states_language.core.graph import validate_state_graph
from states_language.core.paths import PathKind, validate_optional_path, validate_path
from states_language.core.retry import (
    Catcher,
    CatcherBuilder,
    Retrier,
    RetrierBuilder,
    first_match,
    validate_policy_order,
)
from states_language.core.transitions import (
    NextTransition,
    Transition,
    TransitionBuilder,
)
from states_language.core.values import canonical_timestamp, freeze_json

logger = logging.getLogger(__name__)


def _check_json_value(value: Any, field: str) -> Any:
    """Ensure an opaque value can be written as JSON and return a read-only copy."""
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            ErrorKind.TYPE_MISMATCH,
            f"'{field}' must be JSON-serializable: {e}",
            field=field,
            value=value,
        ) from e
    return freeze_json(value)


def _check_positive(field: str, v: Optional[int]) -> Optional[int]:
    if v is not None and v < 1:
        raise invalid_value(field, v, "must be a positive integer")
    return v


# =============================================================================
# Wait durations
# =============================================================================


class WaitForSeconds(FrozenModel):
    """Wait a fixed number of seconds."""

    seconds: int

    @field_validator("seconds")
    @classmethod
    def validate_seconds(cls, v: int) -> int:
        if v < 0:
            raise invalid_value("seconds", v, "must be non-negative")
        return v


class WaitForSecondsPath(FrozenModel):
    """Wait the number of seconds found at a reference path of the input."""

    seconds_path: str

    @field_validator("seconds_path")
    @classmethod
    def validate_seconds_path(cls, v: str) -> str:
        validate_path(v, PathKind.REFERENCE_PATH, "seconds_path")
        return v


class WaitForTimestamp(FrozenModel):
    """Wait until an absolute instant (UTC, millisecond precision)."""

    timestamp: datetime

    @field_validator("timestamp", mode="before")
    @classmethod
    def normalise_timestamp(cls, v: Any) -> datetime:
        return canonical_timestamp(v, field="timestamp")


class WaitForTimestampPath(FrozenModel):
    """Wait until the instant found at a reference path of the input."""

    timestamp_path: str

    @field_validator("timestamp_path")
    @classmethod
    def validate_timestamp_path(cls, v: str) -> str:
        validate_path(v, PathKind.REFERENCE_PATH, "timestamp_path")
        return v


WaitFor = Union[WaitForSeconds, WaitForSecondsPath, WaitForTimestamp, WaitForTimestampPath]


class WaitForBuilder(Builder[WaitFor]):
    """Builder for one of the wait duration variants."""

    def __init__(self, model: type, **fields: Any):
        self._model = model
        self._fields = fields

    def build(self) -> WaitFor:
        return build_model(self._model, **self._fields)


# =============================================================================
# State models
# =============================================================================


class BaseState(FrozenModel):
    """Fields shared by every state."""

    requires_transition: ClassVar[bool] = False

    comment: Optional[str] = None

    @property
    def is_terminal_state(self) -> bool:
        return False

    def transition_targets(self) -> list[tuple[str, str]]:
        """(field, state name) pairs this state can transfer control to."""
        return []


class PathState(BaseState):
    """State that filters its input and output with general paths."""

    input_path: Optional[str] = None
    output_path: Optional[str] = None

    @field_validator("input_path", "output_path")
    @classmethod
    def validate_io_path(cls, v: Optional[str], info) -> Optional[str]:
        return validate_optional_path(v, PathKind.PATH, info.field_name)


class TransitionState(PathState):
    """
    State that continues with a single transition on success.

    ``transition`` may be unset on the built state; the enclosing machine or
    branch rejects it when built.
    """

    requires_transition: ClassVar[bool] = True

    transition: Optional[Transition] = None

    @property
    def is_terminal_state(self) -> bool:
        return self.transition is not None and self.transition.is_terminal

    def transition_targets(self) -> list[tuple[str, str]]:
        targets = []
        if isinstance(self.transition, NextTransition):
            targets.append(("next", self.transition.next_state_name))
        for catcher in getattr(self, "catchers", ()):
            if isinstance(catcher.transition, NextTransition):
                targets.append(("catchers", catcher.transition.next_state_name))
        return targets


class _ResultPathMixin(FrozenModel):
    result_path: Optional[str] = None

    @field_validator("result_path")
    @classmethod
    def validate_result_path(cls, v: Optional[str]) -> Optional[str]:
        return validate_optional_path(v, PathKind.REFERENCE_PATH, "result_path")


class _ErrorHandlingMixin(FrozenModel):
    retriers: tuple[Retrier, ...] = ()
    catchers: tuple[Catcher, ...] = ()

    @field_validator("retriers", "catchers")
    @classmethod
    def validate_policies(cls, v: tuple, info) -> tuple:
        return validate_policy_order(v, info.field_name)

    def find_retrier(self, error_name: str) -> Optional[Retrier]:
        """First retrier matching ``error_name`` in declared order."""
        return first_match(self.retriers, error_name)

    def find_catcher(self, error_name: str) -> Optional[Catcher]:
        """First catcher matching ``error_name`` in declared order."""
        return first_match(self.catchers, error_name)


class TaskState(_ErrorHandlingMixin, _ResultPathMixin, TransitionState):
    """Performs work through an external resource."""

    type: Literal["Task"] = "Task"
    resource: str
    parameters: Optional[dict[str, Any]] = None
    timeout_seconds: Optional[int] = None
    heartbeat_seconds: Optional[int] = None

    @field_validator("resource")
    @classmethod
    def validate_resource(cls, v: str) -> str:
        if not v:
            raise missing_field("resource", "Task state")
        return v

    @field_validator("parameters")
    @classmethod
    def validate_parameters(cls, v: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
        return _check_json_value(v, "parameters")

    @field_validator("timeout_seconds", "heartbeat_seconds")
    @classmethod
    def validate_seconds(cls, v: Optional[int], info) -> Optional[int]:
        return _check_positive(info.field_name, v)

    @model_validator(mode="after")
    def validate_heartbeat(self) -> "TaskState":
        """Heartbeat must fire before the task times out."""
        if (
            self.timeout_seconds is not None
            and self.heartbeat_seconds is not None
            and self.heartbeat_seconds >= self.timeout_seconds
        ):
            raise invalid_value(
                "heartbeat_seconds",
                self.heartbeat_seconds,
                f"must be less than timeout_seconds ({self.timeout_seconds})",
            )
        return self


class PassState(_ResultPathMixin, TransitionState):
    """Passes its input (or a fixed result) to its output."""

    type: Literal["Pass"] = "Pass"
    result: Any = None
    parameters: Optional[dict[str, Any]] = None

    @field_validator("result", "parameters")
    @classmethod
    def validate_json(cls, v: Any, info) -> Any:
        return _check_json_value(v, info.field_name)


class WaitState(TransitionState):
    """Delays for a duration or until an instant."""

    type: Literal["Wait"] = "Wait"
    wait_for: WaitFor


class Choice(FrozenModel):
    """A condition paired with the state to go to when it holds."""

    condition: Condition
    transition: Transition

    @field_validator("transition")
    @classmethod
    def validate_transition(cls, v: Transition) -> Transition:
        if not isinstance(v, NextTransition):
            raise invalid_value("transition", "End", "choice rules must name a next state")
        return v


class ChoiceState(PathState):
    """Routes to the first choice whose condition holds, else to the default."""

    type: Literal["Choice"] = "Choice"
    choices: tuple[Choice, ...]
    default_state_name: Optional[str] = None

    @field_validator("choices")
    @classmethod
    def validate_choices(cls, v: tuple) -> tuple:
        if not v:
            raise missing_field("choices", "Choice state")
        return v

    def transition_targets(self) -> list[tuple[str, str]]:
        targets = [("choices", choice.transition.next_state_name) for choice in self.choices]
        if self.default_state_name is not None:
            targets.append(("default_state_name", self.default_state_name))
        return targets


class SucceedState(PathState):
    """Stops the machine successfully."""

    type: Literal["Succeed"] = "Succeed"

    @property
    def is_terminal_state(self) -> bool:
        return True


class FailState(BaseState):
    """Stops the machine with an error."""

    type: Literal["Fail"] = "Fail"
    error: Optional[str] = None
    cause: Optional[str] = None

    @property
    def is_terminal_state(self) -> bool:
        return True


class Branch(FrozenModel):
    """Independently rooted fragment run by a Parallel state."""

    start_at: str
    states: dict[str, "State"]
    comment: Optional[str] = None


class ParallelState(_ErrorHandlingMixin, _ResultPathMixin, TransitionState):
    """Runs its branches concurrently and collects their outputs in order."""

    type: Literal["Parallel"] = "Parallel"
    branches: tuple[Branch, ...]
    parameters: Optional[dict[str, Any]] = None

    @field_validator("branches")
    @classmethod
    def validate_branches(cls, v: tuple) -> tuple:
        if not v:
            raise missing_field("branches", "Parallel state")
        return v

    @field_validator("parameters")
    @classmethod
    def validate_parameters(cls, v: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
        return _check_json_value(v, "parameters")


State = Annotated[
    Union[TaskState, PassState, WaitState, ChoiceState, SucceedState, FailState, ParallelState],
    Field(discriminator="type"),
]

Branch.model_rebuild()
ParallelState.model_rebuild()


# =============================================================================
# Builders
# =============================================================================

StateBuilderT = TypeVar("StateBuilderT", bound="StateBuilder")


class StateBuilder(Builder):
    """Common setters for every state builder."""

    _model: ClassVar[type] = BaseState

    def __init__(self):
        self._fields: dict[str, Any] = {}

    def comment(self: StateBuilderT, comment: str) -> StateBuilderT:
        self._fields["comment"] = comment
        return self

    def _build_fields(self) -> dict[str, Any]:
        return dict(self._fields)

    def build(self, validation_settings: Optional[ValidationSettings] = None):
        return build_model(self._model, **self._build_fields())


class PathStateBuilder(StateBuilder):
    """Setters for states with input and output paths."""

    def input_path(self: StateBuilderT, input_path: Optional[str]) -> StateBuilderT:
        """Set the path selecting the state input."""
        self._fields["input_path"] = input_path
        return self

    def output_path(self: StateBuilderT, output_path: Optional[str]) -> StateBuilderT:
        """Set the path selecting the state output."""
        self._fields["output_path"] = output_path
        return self


class TransitionStateBuilder(PathStateBuilder):
    """Setters for states that continue with a single transition."""

    def __init__(self):
        super().__init__()
        self._transition: Optional[TransitionBuilder] = None

    def transition(self: StateBuilderT, transition: TransitionBuilder) -> StateBuilderT:
        """Set the Next or End transition taken on success."""
        self._transition = transition
        return self

    def _build_fields(self) -> dict[str, Any]:
        fields = super()._build_fields()
        if self._transition is not None:
            fields["transition"] = self._transition.build()
        return fields


class _ResultPathBuilderMixin:
    _fields: dict[str, Any]

    def result_path(self, result_path: Optional[str]):
        """Set the reference path where the state result is injected."""
        self._fields["result_path"] = result_path
        return self


class _ErrorHandlingBuilderMixin:
    def _init_policies(self) -> None:
        self._retriers: list[RetrierBuilder] = []
        self._catchers: list[CatcherBuilder] = []

    def retrier(self, retrier: RetrierBuilder):
        """Append a retrier."""
        self._retriers.append(retrier)
        return self

    def retriers(self, *retriers: RetrierBuilder):
        """Append retriers in order."""
        self._retriers.extend(retriers)
        return self

    def catcher(self, catcher: CatcherBuilder):
        """Append a catcher."""
        self._catchers.append(catcher)
        return self

    def catchers(self, *catchers: CatcherBuilder):
        """Append catchers in order."""
        self._catchers.extend(catchers)
        return self

    def _policy_fields(self) -> dict[str, Any]:
        return {
            "retriers": tuple(r.build() for r in self._retriers),
            "catchers": tuple(c.build() for c in self._catchers),
        }


class TaskStateBuilder(_ErrorHandlingBuilderMixin, _ResultPathBuilderMixin, TransitionStateBuilder):
    """Builder for a TaskState."""

    _model = TaskState

    def __init__(self):
        super().__init__()
        self._init_policies()

    def resource(self, resource: str) -> "TaskStateBuilder":
        """Set the identifier of the resource performing the work."""
        self._fields["resource"] = resource
        return self

    def parameters(self, parameters: Optional[dict[str, Any]]) -> "TaskStateBuilder":
        self._fields["parameters"] = copy.deepcopy(parameters)
        return self

    def timeout_seconds(self, timeout_seconds: int) -> "TaskStateBuilder":
        self._fields["timeout_seconds"] = timeout_seconds
        return self

    def heartbeat_seconds(self, heartbeat_seconds: int) -> "TaskStateBuilder":
        self._fields["heartbeat_seconds"] = heartbeat_seconds
        return self

    def _build_fields(self) -> dict[str, Any]:
        if not self._fields.get("resource"):
            raise missing_field("resource", "Task state")
        return {**super()._build_fields(), **self._policy_fields()}


class PassStateBuilder(_ResultPathBuilderMixin, TransitionStateBuilder):
    """Builder for a PassState."""

    _model = PassState

    def result(self, result: Any) -> "PassStateBuilder":
        """
        Set a fixed result.

        Accepts any JSON value; pydantic models are dumped to their JSON form.
        """
        if isinstance(result, BaseModel):
            result = result.model_dump(mode="json", by_alias=True)
        self._fields["result"] = copy.deepcopy(result)
        return self

    def result_json(self, text: str) -> "PassStateBuilder":
        """Set a fixed result from JSON text."""
        try:
            self._fields["result"] = json.loads(text)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                ErrorKind.TYPE_MISMATCH,
                f"'result' is not valid JSON: {e}",
                field="result",
                value=text,
            ) from e
        return self

    def parameters(self, parameters: Optional[dict[str, Any]]) -> "PassStateBuilder":
        self._fields["parameters"] = copy.deepcopy(parameters)
        return self


class WaitStateBuilder(TransitionStateBuilder):
    """Builder for a WaitState."""

    _model = WaitState

    def __init__(self):
        super().__init__()
        self._wait_for: Optional[WaitForBuilder] = None

    def wait_for(self, wait_for: WaitForBuilder) -> "WaitStateBuilder":
        """Set the duration: seconds, seconds path, timestamp or timestamp path."""
        self._wait_for = wait_for
        return self

    def _build_fields(self) -> dict[str, Any]:
        if self._wait_for is None:
            raise missing_field("wait_for", "Wait state")
        return {**super()._build_fields(), "wait_for": self._wait_for.build()}


class ChoiceBuilder(Builder[Choice]):
    """Builder for a single choice rule."""

    def __init__(self):
        self._condition: Optional[ConditionBuilder] = None
        self._transition: Optional[TransitionBuilder] = None

    def condition(self, condition: ConditionBuilder) -> "ChoiceBuilder":
        self._condition = condition
        return self

    def transition(self, transition: TransitionBuilder) -> "ChoiceBuilder":
        self._transition = transition
        return self

    def build(self) -> Choice:
        if self._condition is None:
            raise missing_field("condition", "Choice")
        if self._transition is None:
            raise missing_field("transition", "Choice")
        return build_model(
            Choice,
            condition=self._condition.build(),
            transition=self._transition.build(),
        )


class ChoiceStateBuilder(PathStateBuilder):
    """Builder for a ChoiceState."""

    _model = ChoiceState

    def __init__(self):
        super().__init__()
        self._choices: list[ChoiceBuilder] = []

    def choice(self, choice: ChoiceBuilder) -> "ChoiceStateBuilder":
        """Append a choice rule; rules are evaluated in the order added."""
        self._choices.append(choice)
        return self

    def choices(self, *choices: ChoiceBuilder) -> "ChoiceStateBuilder":
        self._choices.extend(choices)
        return self

    def default_state_name(self, name: Optional[str]) -> "ChoiceStateBuilder":
        """Set the state used when no choice matches."""
        self._fields["default_state_name"] = name
        return self

    def _build_fields(self) -> dict[str, Any]:
        fields = super()._build_fields()
        fields["choices"] = tuple(choice.build() for choice in self._choices)
        return fields


class SucceedStateBuilder(PathStateBuilder):
    """Builder for a SucceedState."""

    _model = SucceedState


class FailStateBuilder(StateBuilder):
    """Builder for a FailState."""

    _model = FailState

    def error(self, error: str) -> "FailStateBuilder":
        self._fields["error"] = error
        return self

    def cause(self, cause: str) -> "FailStateBuilder":
        self._fields["cause"] = cause
        return self


class ScopeBuilder:
    """
    Shared assembly of a start state and named states.

    Registration preserves order; registering a name again replaces the earlier
    builder in place.
    """

    scope_name: ClassVar[str] = "StateMachine"

    def __init__(self):
        self._start_at: Optional[str] = None
        self._comment: Optional[str] = None
        self._states: dict[str, StateBuilder] = {}

    def start_at(self, start_at: str):
        """Set the name of the first state."""
        self._start_at = start_at
        return self

    def comment(self, comment: str):
        self._comment = comment
        return self

    def state(self, name: str, state: StateBuilder):
        """Register a state under ``name`` (last registration wins)."""
        if name in self._states:
            logger.debug(f"{self.scope_name}: replacing state '{name}'")
        self._states[name] = state
        return self

    @property
    def state_names(self) -> list[str]:
        return list(self._states)

    def get_state(self, name: str) -> Optional[StateBuilder]:
        return self._states.get(name)

    def _build_scope(
        self, validation_settings: Optional[ValidationSettings] = None
    ) -> tuple[str, dict[str, Any]]:
        """
        Build every state and validate the resulting graph.

        Nested branches are validated with the same settings.

        Returns:
            (start_at, built states)
        """
        settings = validation_settings or default_validation_settings()
        states = {}
        for name, builder in self._states.items():
            if not name:
                raise missing_field("name", f"{self.scope_name} state")
            states[name] = builder.build(settings)

        validate_state_graph(
            self._start_at,
            states,
            scope=self.scope_name,
            require_choice_default=settings.require_choice_default,
            warn_unreachable_states=settings.warn_unreachable_states,
        )
        return self._start_at, states


class BranchBuilder(ScopeBuilder, Builder[Branch]):
    """Builder for a Branch of a Parallel state."""

    scope_name = "Branch"

    def build(self, validation_settings: Optional[ValidationSettings] = None) -> Branch:
        start_at, states = self._build_scope(validation_settings)
        return build_model(Branch, start_at=start_at, states=states, comment=self._comment)


class ParallelStateBuilder(_ErrorHandlingBuilderMixin, _ResultPathBuilderMixin, TransitionStateBuilder):
    """Builder for a ParallelState."""

    _model = ParallelState

    def __init__(self):
        super().__init__()
        self._init_policies()
        self._branches: list[BranchBuilder] = []

    def branch(self, branch: BranchBuilder) -> "ParallelStateBuilder":
        """Append a branch; branch outputs are collected in this order."""
        self._branches.append(branch)
        return self

    def branches(self, *branches: BranchBuilder) -> "ParallelStateBuilder":
        self._branches.extend(branches)
        return self

    def parameters(self, parameters: Optional[dict[str, Any]]) -> "ParallelStateBuilder":
        self._fields["parameters"] = copy.deepcopy(parameters)
        return self

    def build(self, validation_settings: Optional[ValidationSettings] = None) -> ParallelState:
        return build_model(
            ParallelState,
            **self._build_fields(),
            **self._policy_fields(),
            branches=tuple(branch.build(validation_settings) for branch in self._branches),
        )
