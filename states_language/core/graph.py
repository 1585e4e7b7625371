"""
Structural validation of a state graph (a state machine or a Parallel branch).

Checks the start state, transition presence, name references, terminal
reachability and unreachable states.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from states_language.core.errors import ErrorKind, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ValidationIssue:
    """Represents a single validation error or warning."""

    code: ErrorKind
    message: str
    state_name: Optional[str] = None
    field_name: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class ValidationResult:
    """Result of graph validation."""

    is_valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    # Populated on successful validation
    reachable_states: set[str] = field(default_factory=set)

    def add_error(
        self,
        code: ErrorKind,
        message: str,
        state_name: Optional[str] = None,
        field: Optional[str] = None,
        **details: Any,
    ) -> None:
        """Add a validation error."""
        self.errors.append(ValidationIssue(code, message, state_name, field, details))
        self.is_valid = False

    def add_warning(
        self,
        code: ErrorKind,
        message: str,
        state_name: Optional[str] = None,
        field: Optional[str] = None,
        **details: Any,
    ) -> None:
        """Add a validation warning."""
        self.warnings.append(ValidationIssue(code, message, state_name, field, details))

    def raise_for_errors(self) -> None:
        """
        Raise the first error, carrying every collected error.

        Raises:
            ValidationError: if any error was recorded
        """
        if self.is_valid:
            return
        first = self.errors[0]
        raise ValidationError(
            first.code,
            first.message,
            field=first.field_name,
            value=first.state_name,
            issues=list(self.errors),
        )


class StateGraphValidator:
    """
    Validates one scope of states: a state machine or a single branch.

    States are only inspected through ``is_terminal_state``,
    ``requires_transition`` and ``transition_targets()``, so nested branches
    are validated independently when their Parallel state is built.
    """

    def __init__(
        self,
        start_at: Optional[str],
        states: Mapping[str, Any],
        scope: str = "StateMachine",
        require_choice_default: bool = False,
        warn_unreachable_states: bool = True,
    ):
        self.start_at = start_at
        self.states = states
        self.scope = scope
        self.require_choice_default = require_choice_default
        self.warn_unreachable_states = warn_unreachable_states
        self._edges: dict[str, list[str]] = {}

        self._build_graph()

    def _build_graph(self) -> None:
        """Build adjacency lists from every state's transition targets."""
        for name, state in self.states.items():
            self._edges[name] = [
                target for _, target in state.transition_targets() if target in self.states
            ]

    def validate(self) -> ValidationResult:
        """
        Perform full validation of the scope.

        Returns:
            ValidationResult with errors, warnings and the reachable state set
        """
        result = ValidationResult(is_valid=True)

        self._validate_states_present(result)
        self._validate_start_at(result)
        self._validate_transitions_present(result)
        self._validate_references(result)
        self._validate_choice_defaults(result)
        self._check_reachability(result)

        for warning in result.warnings:
            logger.warning(f"{self.scope}: {warning.message}")

        return result

    def _validate_states_present(self, result: ValidationResult) -> None:
        if not self.states:
            result.add_error(
                ErrorKind.MISSING_REQUIRED_FIELD,
                f"{self.scope} requires at least one state",
                field="states",
            )

    def _validate_start_at(self, result: ValidationResult) -> None:
        if not self.start_at:
            result.add_error(
                ErrorKind.MISSING_REQUIRED_FIELD,
                f"{self.scope} requires 'start_at'",
                field="start_at",
            )
        elif self.states and self.start_at not in self.states:
            result.add_error(
                ErrorKind.UNRESOLVED_REFERENCE,
                f"{self.scope} starts at unknown state '{self.start_at}'",
                field="start_at",
                target=self.start_at,
            )

    def _validate_transitions_present(self, result: ValidationResult) -> None:
        """Every transition state must either name a successor or end."""
        for name, state in self.states.items():
            if state.requires_transition and state.transition is None:
                result.add_error(
                    ErrorKind.MISSING_REQUIRED_FIELD,
                    f"State '{name}' has neither a Next transition nor End",
                    state_name=name,
                    field="transition",
                )

    def _validate_references(self, result: ValidationResult) -> None:
        """All transition targets must name states of this scope."""
        for name, state in self.states.items():
            for field_name, target in state.transition_targets():
                if target not in self.states:
                    result.add_error(
                        ErrorKind.UNRESOLVED_REFERENCE,
                        f"State '{name}' references non-existent state '{target}' in '{field_name}'",
                        state_name=name,
                        field=field_name,
                        target=target,
                    )

    def _validate_choice_defaults(self, result: ValidationResult) -> None:
        if not self.require_choice_default:
            return
        for name, state in self.states.items():
            if getattr(state, "type", None) == "Choice" and state.default_state_name is None:
                result.add_error(
                    ErrorKind.MISSING_REQUIRED_FIELD,
                    f"Choice state '{name}' has no default state",
                    state_name=name,
                    field="default_state_name",
                )

    def _check_reachability(self, result: ValidationResult) -> None:
        """
        Walk the graph from the start state.

        A reachable state that can never reach a terminal state is an error;
        unreachable states are warnings.
        """
        if not result.is_valid:
            return

        reachable = self._walk([self.start_at], self._edges)
        result.reachable_states = reachable

        terminals = {name for name, state in self.states.items() if state.is_terminal_state}
        if not terminals & reachable:
            result.add_error(
                ErrorKind.MISSING_REQUIRED_FIELD,
                f"{self.scope} has no terminal state reachable from '{self.start_at}'",
                field="states",
            )
            return

        if self.warn_unreachable_states:
            unreachable = [name for name in self.states if name not in reachable]
            if unreachable:
                result.add_warning(
                    ErrorKind.UNRESOLVED_REFERENCE,
                    f"States {unreachable} are not reachable from '{self.start_at}'",
                    unreachable_states=unreachable,
                )

        # Reverse walk from terminal states finds everything that can finish
        reverse: dict[str, list[str]] = {name: [] for name in self.states}
        for source, targets in self._edges.items():
            for target in targets:
                reverse[target].append(source)
        can_finish = self._walk(list(terminals), reverse)

        dead_ends = [name for name in self.states if name in reachable and name not in can_finish]
        if dead_ends:
            result.add_error(
                ErrorKind.MISSING_REQUIRED_FIELD,
                f"States {dead_ends} can never reach a terminal state",
                state_name=dead_ends[0],
                field="transition",
                dead_end_states=dead_ends,
            )

    @staticmethod
    def _walk(roots: list[str], edges: Mapping[str, list[str]]) -> set[str]:
        """Breadth-first search over ``edges`` from ``roots``."""
        seen = set(roots)
        queue = deque(roots)
        while queue:
            name = queue.popleft()
            for neighbour in edges.get(name, []):
                if neighbour not in seen:
                    seen.add(neighbour)
                    queue.append(neighbour)
        return seen


def validate_state_graph(
    start_at: Optional[str],
    states: Mapping[str, Any],
    scope: str = "StateMachine",
    require_choice_default: bool = False,
    warn_unreachable_states: bool = True,
) -> ValidationResult:
    """
    Validate a scope and raise on the first error.

    Returns:
        ValidationResult (always valid) with any warnings

    Raises:
        ValidationError: on the first structural error, with all errors attached
    """
    result = StateGraphValidator(
        start_at,
        states,
        scope=scope,
        require_choice_default=require_choice_default,
        warn_unreachable_states=warn_unreachable_states,
    ).validate()
    result.raise_for_errors()
    return result
