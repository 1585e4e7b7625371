"""
Condition expression trees used by Choice states.

Leaves compare the value at a reference path against a typed expected value;
And/Or/Not combinators own their children exclusively.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import StrictBool, field_validator, model_validator

from states_language.core.base import Builder, FrozenModel, build_model
from states_language.core.errors import ErrorKind, ValidationError, missing_field
from states_language.core.paths import PathKind, validate_path
from states_language.core.values import (
    canonical_number,
    canonical_timestamp,
    number_text,
    timestamp_text,
)


class ValueKind(str, Enum):
    """Type family of a comparison's expected value."""

    STRING = "string"
    NUMERIC = "numeric"
    TIMESTAMP = "timestamp"
    BOOLEAN = "boolean"


class ComparisonOperator(str, Enum):
    """Comparison operators; values are the wire keys."""

    STRING_EQUALS = "StringEquals"
    STRING_GREATER_THAN = "StringGreaterThan"
    STRING_GREATER_THAN_EQUALS = "StringGreaterThanEquals"
    STRING_LESS_THAN = "StringLessThan"
    STRING_LESS_THAN_EQUALS = "StringLessThanEquals"
    NUMERIC_EQUALS = "NumericEquals"
    NUMERIC_GREATER_THAN = "NumericGreaterThan"
    NUMERIC_GREATER_THAN_EQUALS = "NumericGreaterThanEquals"
    NUMERIC_LESS_THAN = "NumericLessThan"
    NUMERIC_LESS_THAN_EQUALS = "NumericLessThanEquals"
    TIMESTAMP_EQUALS = "TimestampEquals"
    TIMESTAMP_GREATER_THAN = "TimestampGreaterThan"
    TIMESTAMP_GREATER_THAN_EQUALS = "TimestampGreaterThanEquals"
    TIMESTAMP_LESS_THAN = "TimestampLessThan"
    TIMESTAMP_LESS_THAN_EQUALS = "TimestampLessThanEquals"
    BOOLEAN_EQUALS = "BooleanEquals"

    @property
    def value_kind(self) -> ValueKind:
        """Type family this operator compares."""
        if self.value.startswith("String"):
            return ValueKind.STRING
        if self.value.startswith("Numeric"):
            return ValueKind.NUMERIC
        if self.value.startswith("Timestamp"):
            return ValueKind.TIMESTAMP
        return ValueKind.BOOLEAN

    @property
    def comparator(self) -> "Comparator":
        """Relation this operator applies, independent of the type family."""
        return Comparator(self.value.removeprefix(self.value_kind.value.capitalize()))


class Comparator(str, Enum):
    """Relation shared by the typed operators (eq, gt, gte, lt, lte)."""

    EQUALS = "Equals"
    GREATER_THAN = "GreaterThan"
    GREATER_THAN_EQUALS = "GreaterThanEquals"
    LESS_THAN = "LessThan"
    LESS_THAN_EQUALS = "LessThanEquals"


# Read-only registry: (value kind, relation) -> operator
OPERATORS: dict[tuple[ValueKind, Comparator], ComparisonOperator] = {
    (op.value_kind, op.comparator): op for op in ComparisonOperator
}


ExpectedValue = Union[StrictBool, int, float, str, datetime]


def canonical_expected_value(operator: ComparisonOperator, value: Any) -> ExpectedValue:
    """
    Check an expected value against the operator's type family and normalise it.

    Raises:
        ValidationError: TYPE_MISMATCH if the value does not fit the operator
    """
    kind = operator.value_kind
    if kind == ValueKind.NUMERIC:
        return canonical_number(value)
    if kind == ValueKind.TIMESTAMP:
        return canonical_timestamp(value, field="expected_value")
    expected_type = str if kind == ValueKind.STRING else bool
    if not isinstance(value, expected_type):
        raise ValidationError(
            ErrorKind.TYPE_MISMATCH,
            f"{operator.value} expects a {expected_type.__name__}, got {type(value).__name__}",
            field="expected_value",
            value=value,
        )
    return value


class ComparisonCondition(FrozenModel):
    """Binary comparison of the value at ``variable`` against ``expected_value``."""

    operator: ComparisonOperator
    variable: str
    expected_value: ExpectedValue

    @model_validator(mode="before")
    @classmethod
    def normalise_expected_value(cls, data: Any) -> Any:
        """Canonicalise the expected value for the operator's type family."""
        if isinstance(data, dict) and "operator" in data and "expected_value" in data:
            operator = ComparisonOperator(data["operator"])
            data = {
                **data,
                "operator": operator,
                "expected_value": canonical_expected_value(operator, data["expected_value"]),
            }
        return data

    @field_validator("variable")
    @classmethod
    def validate_variable(cls, v: str) -> str:
        validate_path(v, PathKind.REFERENCE_PATH, "variable")
        return v

    @property
    def expected_value_text(self) -> str:
        """Canonical text of the expected value."""
        kind = self.operator.value_kind
        if kind == ValueKind.NUMERIC:
            return number_text(self.expected_value)
        if kind == ValueKind.TIMESTAMP:
            return timestamp_text(self.expected_value)
        if kind == ValueKind.BOOLEAN:
            return "true" if self.expected_value else "false"
        return self.expected_value


class AndCondition(FrozenModel):
    """True when every child condition is true."""

    conditions: tuple["Condition", ...]

    @field_validator("conditions")
    @classmethod
    def validate_conditions(cls, v: tuple) -> tuple:
        if not v:
            raise missing_field("conditions", "And condition")
        return v


class OrCondition(FrozenModel):
    """True when any child condition is true."""

    conditions: tuple["Condition", ...]

    @field_validator("conditions")
    @classmethod
    def validate_conditions(cls, v: tuple) -> tuple:
        if not v:
            raise missing_field("conditions", "Or condition")
        return v


class NotCondition(FrozenModel):
    """Negation of a single child condition."""

    condition: "Condition"


Condition = Union[ComparisonCondition, AndCondition, OrCondition, NotCondition]

AndCondition.model_rebuild()
OrCondition.model_rebuild()
NotCondition.model_rebuild()


_UNSET = object()


class ComparisonConditionBuilder(Builder[ComparisonCondition]):
    """Builder for a ComparisonCondition with a fixed operator."""

    def __init__(self, operator: ComparisonOperator):
        self._operator = operator
        self._variable: Optional[str] = None
        self._expected_value: Any = _UNSET

    @property
    def operator(self) -> ComparisonOperator:
        return self._operator

    def variable(self, variable: str) -> "ComparisonConditionBuilder":
        """Set the reference path selecting the compared value."""
        self._variable = variable
        return self

    def expected_value(self, value: Any) -> "ComparisonConditionBuilder":
        self._expected_value = value
        return self

    def build(self) -> ComparisonCondition:
        if self._variable is None:
            raise missing_field("variable", self._operator.value)
        if self._expected_value is _UNSET or self._expected_value is None:
            raise missing_field("expected_value", self._operator.value)
        return build_model(
            ComparisonCondition,
            operator=self._operator,
            variable=self._variable,
            expected_value=self._expected_value,
        )


class _CompoundConditionBuilder(Builder):
    _model: type = AndCondition

    def __init__(self, *conditions: "ConditionBuilder"):
        self._conditions: list[ConditionBuilder] = list(conditions)

    def condition(self, condition: "ConditionBuilder") -> "_CompoundConditionBuilder":
        """Append a child condition."""
        self._conditions.append(condition)
        return self

    @property
    def children(self) -> list["ConditionBuilder"]:
        return list(self._conditions)

    def build(self):
        return build_model(
            self._model,
            conditions=tuple(child.build() for child in self._conditions),
        )


class AndConditionBuilder(_CompoundConditionBuilder):
    """Builder for an AndCondition."""

    _model = AndCondition


class OrConditionBuilder(_CompoundConditionBuilder):
    """Builder for an OrCondition."""

    _model = OrCondition


class NotConditionBuilder(Builder[NotCondition]):
    """Builder for a NotCondition."""

    def __init__(self, condition: Optional["ConditionBuilder"] = None):
        self._condition = condition

    def condition(self, condition: "ConditionBuilder") -> "NotConditionBuilder":
        self._condition = condition
        return self

    def build(self) -> NotCondition:
        if self._condition is None:
            raise missing_field("condition", "Not condition")
        return build_model(NotCondition, condition=self._condition.build())


ConditionBuilder = Union[
    ComparisonConditionBuilder,
    AndConditionBuilder,
    OrConditionBuilder,
    NotConditionBuilder,
]


def value_kind_of(value: Any) -> ValueKind:
    """
    Infer the value kind from a Python value.

    Raises:
        ValidationError: TYPE_MISMATCH for unsupported types
    """
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMERIC
    if isinstance(value, datetime):
        return ValueKind.TIMESTAMP
    if isinstance(value, str):
        return ValueKind.STRING
    raise ValidationError(
        ErrorKind.TYPE_MISMATCH,
        f"Unsupported expected value type: {type(value).__name__}",
        field="expected_value",
        value=value,
    )


def comparison(variable: str, comparator: Comparator, value: Any) -> ComparisonConditionBuilder:
    """
    Create a comparison builder whose operator is chosen from the value's type.

    Raises:
        ValidationError: TYPE_MISMATCH when no operator exists for the type and
            relation (e.g. ordering on booleans)
    """
    kind = value_kind_of(value)
    operator = OPERATORS.get((kind, comparator))
    if operator is None:
        raise ValidationError(
            ErrorKind.TYPE_MISMATCH,
            f"No {comparator.value} comparison exists for {kind.value} values",
            field="expected_value",
            value=value,
        )
    return ComparisonConditionBuilder(operator).variable(variable).expected_value(value)
