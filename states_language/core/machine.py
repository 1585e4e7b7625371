"""
StateMachine root entity and its builder.
"""

import logging
from typing import Optional

from pydantic import field_validator

from states_language.config import CodecSettings, ValidationSettings
from states_language.core.base import Builder, FrozenModel, build_model
from states_language.core.errors import invalid_value
from states_language.core.states import ScopeBuilder, State

logger = logging.getLogger(__name__)


class StateMachine(FrozenModel):
    """
    Complete, validated state machine definition.

    ``states`` keeps registration order, which is also the serialization order.
    """

    start_at: str
    states: dict[str, State]
    timeout_seconds: Optional[int] = None
    comment: Optional[str] = None
    version: Optional[str] = None

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout_seconds(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise invalid_value("timeout_seconds", v, "must be a positive integer")
        return v

    def to_json(self, settings: Optional[CodecSettings] = None) -> str:
        """Serialize to canonical JSON text."""
        from states_language.codec import serialize

        return serialize(self, settings=settings)

    @classmethod
    def from_json(cls, text: str) -> "StateMachine":
        """Parse canonical JSON text and build the machine it describes."""
        from states_language.codec import deserialize

        return deserialize(text).build()


class StateMachineBuilder(ScopeBuilder, Builder[StateMachine]):
    """
    Builder for a StateMachine.

    Example:
        machine = (
            StateMachineBuilder()
            .start_at("Hello")
            .state("Hello", PassStateBuilder().transition(EndTransitionBuilder()))
            .build()
        )
    """

    scope_name = "StateMachine"

    def __init__(self):
        super().__init__()
        self._timeout_seconds: Optional[int] = None
        self._version: Optional[str] = None

    def timeout_seconds(self, timeout_seconds: Optional[int]) -> "StateMachineBuilder":
        """Set the maximum run time of the whole machine."""
        self._timeout_seconds = timeout_seconds
        return self

    def version(self, version: Optional[str]) -> "StateMachineBuilder":
        self._version = version
        return self

    def build(self, validation_settings: Optional[ValidationSettings] = None) -> StateMachine:
        """
        Build every state, validate the graph and return the machine.

        Raises:
            ValidationError: on the first field-level or structural error
        """
        start_at, states = self._build_scope(validation_settings)
        machine = build_model(
            StateMachine,
            start_at=start_at,
            states=states,
            timeout_seconds=self._timeout_seconds,
            comment=self._comment,
            version=self._version,
        )
        logger.debug(f"Built state machine with {len(states)} states starting at '{start_at}'")
        return machine
