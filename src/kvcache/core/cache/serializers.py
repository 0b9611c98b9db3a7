"""
Payload Serializers

Two encodings for persisted cache records:

- ``CompactSerializer``: JSON, for values made only of None, bool, int,
  float, str, lists and str-keyed dicts (nested to any depth).
- ``GeneralSerializer``: pickle, for everything else.

Writers pick the encoding with ``is_compact``; readers try the compact
decoder first and fall back to the general one, so files are
self-describing. Pickle payloads execute code when loaded: the cache
directory must only be writable by trusted processes.
"""

import json
import pickle
from abc import ABC, abstractmethod
from typing import Any


_SCALAR_TYPES = (type(None), bool, int, float, str)


class DecodeError(ValueError):
    """Raised when bytes cannot be decoded by any serializer."""


def is_compact(value: Any) -> bool:
    """
    Whether ``value`` round-trips through the compact encoding unchanged.

    Exact types are required so subclasses (IntEnum, OrderedDict, tuples)
    go through the general encoding and keep their type.
    """
    value_type = type(value)
    if value_type in _SCALAR_TYPES:
        return True
    if value_type is list:
        return all(is_compact(item) for item in value)
    if value_type is dict:
        return all(type(k) is str and is_compact(v) for k, v in value.items())
    return False


class Serializer(ABC):
    """Encodes a record mapping to bytes and back."""

    name: str = ""

    @abstractmethod
    def encode(self, data: Any) -> bytes:
        """Encode ``data`` to bytes."""

    @abstractmethod
    def decode(self, payload: bytes) -> Any:
        """Decode bytes produced by ``encode``; raise DecodeError otherwise."""


class CompactSerializer(Serializer):
    """JSON encoding for the compact value space."""

    name = "compact"

    def encode(self, data: Any) -> bytes:
        return json.dumps(data, separators=(',', ':'), ensure_ascii=False).encode('utf-8')

    def decode(self, payload: bytes) -> Any:
        try:
            return json.loads(payload.decode('utf-8'))
        except ValueError as e:
            raise DecodeError(f"Not a compact record: {e}") from e


class GeneralSerializer(Serializer):
    """Pickle encoding for arbitrary Python values."""

    name = "general"

    def encode(self, data: Any) -> bytes:
        return pickle.dumps(data, protocol=pickle.HIGHEST_PROTOCOL)

    def decode(self, payload: bytes) -> Any:
        try:
            return pickle.loads(payload)
        except Exception as e:
            # Corrupt pickles surface as almost any exception type
            raise DecodeError(f"Not a general record: {e}") from e


COMPACT = CompactSerializer()
GENERAL = GeneralSerializer()


def serializer_for(value: Any) -> Serializer:
    """Pick the encoding for a payload value."""
    try:
        return COMPACT if is_compact(value) else GENERAL
    except RecursionError:
        # Self-referencing containers
        return GENERAL


def decode_payload(payload: bytes) -> Any:
    """Decode bytes from either encoding, compact first."""
    try:
        return COMPACT.decode(payload)
    except DecodeError:
        return GENERAL.decode(payload)
