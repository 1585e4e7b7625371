"""Core models, builders and validation."""

from states_language.core.errors import ErrorKind, ValidationError
from states_language.core.graph import StateGraphValidator, ValidationResult
from states_language.core.machine import StateMachine, StateMachineBuilder
from states_language.core.paths import PathKind, PathValidator, is_valid_path, validate_path

__all__ = [
    "ErrorKind",
    "PathKind",
    "PathValidator",
    "StateGraphValidator",
    "StateMachine",
    "StateMachineBuilder",
    "ValidationError",
    "ValidationResult",
    "is_valid_path",
    "validate_path",
]
