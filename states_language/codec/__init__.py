"""Canonical JSON codec for state machine definitions."""

from states_language.codec.deserializer import deserialize, from_dict
from states_language.codec.serializer import serialize, to_dict

__all__ = ["deserialize", "from_dict", "serialize", "to_dict"]
