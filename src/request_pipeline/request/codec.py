"""
Pluggable payload codecs.

The pipeline treats response bytes as opaque until it hands them to the
descriptor's codec.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from pydantic import BaseModel, TypeAdapter

logger = logging.getLogger(__name__)


class Codec(ABC):
    """Converts between wire bytes and model values."""

    @abstractmethod
    def decode(self, data: bytes, context: Any = None) -> Any:
        """Decode a response payload into a model value."""

    @abstractmethod
    def encode(self, value: Any) -> bytes:
        """Encode a model value into a request payload."""


class JSONCodec(Codec):
    """
    JSON codec backed by a pydantic TypeAdapter.

    Any type pydantic can validate works as a model type: builtins, dataclasses,
    TypedDicts and BaseModel subclasses. ISO 8601 timestamps are parsed into
    datetimes wherever the model declares one.

    Example:
        class User(BaseModel):
            id: int
            created_at: datetime

        codec = JSONCodec(User)
        user = codec.decode(b'{"id": 1, "created_at": "2021-01-17T10:00:00.000Z"}')
    """

    def __init__(self, model_type: Any = Any, by_alias: bool = True):
        self.model_type = model_type
        self.by_alias = by_alias
        self._adapter: TypeAdapter = TypeAdapter(model_type)

    def decode(self, data: bytes, context: Any = None) -> Any:
        logger.debug("Decoding JSON payload", extra={"bytes_received": len(data)})
        return self._adapter.validate_json(data)

    def encode(self, value: Any) -> bytes:
        if isinstance(value, BaseModel):
            return value.model_dump_json(by_alias=self.by_alias).encode("utf-8")
        return TypeAdapter(type(value)).dump_json(value, by_alias=self.by_alias)

    def __repr__(self) -> str:
        return f"JSONCodec({getattr(self.model_type, '__name__', self.model_type)!s})"


class CallableCodec(Codec):
    """
    Codec built from plain functions.

    Args:
        decoder: Called as decoder(data, context)
        encoder: Called as encoder(value); encoding raises if not provided
    """

    def __init__(
        self,
        decoder: Callable[[bytes, Any], Any],
        encoder: Optional[Callable[[Any], bytes]] = None,
    ):
        self._decoder = decoder
        self._encoder = encoder

    def decode(self, data: bytes, context: Any = None) -> Any:
        return self._decoder(data, context)

    def encode(self, value: Any) -> bytes:
        if self._encoder is None:
            raise TypeError("CallableCodec was created without an encoder")
        return self._encoder(value)


class RawCodec(Codec):
    """Pass-through codec returning the response bytes unchanged."""

    def decode(self, data: bytes, context: Any = None) -> bytes:
        return data

    def encode(self, value: Any) -> bytes:
        if isinstance(value, str):
            return value.encode("utf-8")
        return bytes(value)
