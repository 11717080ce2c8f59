"""Binary codec and the Encodable capability.

The store treats encoded bytes as opaque. Any object with ``serialize`` and
``deserialize`` methods matching :class:`BinaryCodec` can replace the
default pickle codec.
"""
from __future__ import annotations

import pickle
from abc import ABC
from typing import Any, Optional, Protocol, Type, TypeVar

from .errors import CodecError, NotEncodableError

T = TypeVar("T")

_SCALARS = (bool, int, float, complex, str, bytes, bytearray)
_CONTAINERS = (list, tuple, set, frozenset)


class Encodable(ABC):
    """Marker capability for types that may be stored.

    Inherit from it, or register third-party types with
    ``Encodable.register(SomeType)``.
    """

    __slots__ = ()


def is_encodable(obj: Any) -> bool:
    """Return True if obj (and everything it contains) may be handed to the codec."""
    if obj is None or isinstance(obj, Encodable) or isinstance(obj, _SCALARS):
        return True
    if isinstance(obj, _CONTAINERS):
        return all(is_encodable(item) for item in obj)
    if isinstance(obj, dict):
        return all(is_encodable(k) and is_encodable(v) for k, v in obj.items())
    return False


class BinaryCodec(Protocol):
    def serialize(self, obj: Any) -> bytes: ...

    def deserialize(self, data: bytes, expected_type: Optional[Type[T]] = None) -> T: ...


class PickleCodec:
    """Default codec built on pickle's highest protocol."""

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self.protocol = protocol

    def serialize(self, obj: Any) -> bytes:
        try:
            return pickle.dumps(obj, protocol=self.protocol)
        except (pickle.PicklingError, TypeError, AttributeError, RecursionError) as e:
            raise CodecError(f"Cannot encode {type(obj).__name__}: {e}") from e

    def deserialize(self, data: bytes, expected_type: Optional[Type[T]] = None) -> T:
        try:
            obj = pickle.loads(data)
        except Exception as e:
            # Truncated or foreign bytes surface as a variety of exception types.
            raise CodecError(f"Cannot decode {len(data)} bytes: {e}") from e
        if expected_type is not None and not isinstance(obj, expected_type):
            raise CodecError(
                f"Decoded {type(obj).__name__}, expected {expected_type.__name__}"
            )
        return obj


def require_encodable(obj: Any) -> Any:
    if not is_encodable(obj):
        raise NotEncodableError(f"{type(obj).__name__} is not Encodable")
    return obj
