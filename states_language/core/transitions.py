"""
Transitions: what happens after a state completes successfully.

A transition either names the next state or terminates the machine.
"""

from typing import Literal, Optional, Union

from pydantic import field_validator

from states_language.core.base import Builder, FrozenModel, build_model
from states_language.core.errors import ErrorKind, ValidationError, missing_field


class NextTransition(FrozenModel):
    """Transition to another state of the enclosing machine or branch."""

    kind: Literal["Next"] = "Next"
    next_state_name: str

    @field_validator("next_state_name")
    @classmethod
    def validate_next_state_name(cls, v: str) -> str:
        """State names must be non-empty."""
        if not v:
            raise ValidationError(
                ErrorKind.MISSING_REQUIRED_FIELD,
                "Next transition requires a state name",
                field="next_state_name",
                value=v,
            )
        return v

    @property
    def is_terminal(self) -> bool:
        return False


class EndTransition(FrozenModel):
    """Transition that terminates the machine (or branch)."""

    kind: Literal["End"] = "End"

    @property
    def is_terminal(self) -> bool:
        return True


Transition = Union[NextTransition, EndTransition]


class NextTransitionBuilder(Builder[NextTransition]):
    """Builder for a NextTransition."""

    def __init__(self, next_state_name: Optional[str] = None):
        self._next_state_name = next_state_name

    def next_state_name(self, name: str) -> "NextTransitionBuilder":
        self._next_state_name = name
        return self

    def build(self) -> NextTransition:
        if self._next_state_name is None:
            raise missing_field("next_state_name", "Next transition")
        return build_model(NextTransition, next_state_name=self._next_state_name)


class EndTransitionBuilder(Builder[EndTransition]):
    """Builder for an EndTransition."""

    def build(self) -> EndTransition:
        return EndTransition()


TransitionBuilder = Union[NextTransitionBuilder, EndTransitionBuilder]
