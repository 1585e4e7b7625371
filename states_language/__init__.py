"""
States Language

Builder, validator and canonical JSON codec for declarative workflow state
machine documents (Task, Pass, Wait, Choice, Succeed, Fail and Parallel states).
"""

from typing import Optional

from states_language.codec import deserialize, serialize
from states_language.config import CodecSettings
from states_language.core.errors import ErrorKind, ValidationError
from states_language.core.machine import StateMachine, StateMachineBuilder

__version__ = "1.0.0"

__all__ = [
    "ErrorKind",
    "StateMachine",
    "StateMachineBuilder",
    "ValidationError",
    "build",
    "from_text",
    "to_text",
]


def build(builder: StateMachineBuilder) -> StateMachine:
    """Validate a builder and return the immutable machine."""
    return builder.build()


def to_text(machine: StateMachine, settings: Optional[CodecSettings] = None) -> str:
    """Serialize a machine to canonical JSON text."""
    return serialize(machine, settings=settings)


def from_text(text: str) -> StateMachineBuilder:
    """Parse JSON text into a builder (not yet validated)."""
    return deserialize(text)
