"""Shared base classes for immutable model nodes and their builders."""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from states_language.core.errors import ErrorKind, ValidationError

ModelT = TypeVar("ModelT", bound="FrozenModel")


class FrozenModel(BaseModel):
    """
    Base for every built entity.

    Instances are frozen and strictly typed; they are only created by builders.
    """

    model_config = ConfigDict(frozen=True, strict=True, extra="forbid")


def build_model(model_cls: type[ModelT], **fields: Any) -> ModelT:
    """
    Instantiate a model, translating pydantic errors into TYPE_MISMATCH.

    Domain errors raised by field validators propagate unchanged.
    """
    try:
        return model_cls(**fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(
            ErrorKind.TYPE_MISMATCH,
            f"{model_cls.__name__}: {first.get('msg', str(e))}",
            field=field,
            value=first.get("input"),
        ) from e


BuiltT = TypeVar("BuiltT")


class Builder(ABC, Generic[BuiltT]):
    """
    Mutable, single-threaded assembler for an immutable entity.

    ``build()`` validates and returns a new entity on every call.
    """

    @abstractmethod
    def build(self) -> BuiltT:
        """Validate the collected fields and return the immutable entity."""
