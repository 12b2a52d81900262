"""
Request descriptors.

A descriptor is an immutable value describing one endpoint: how to build the
request and how to judge and decode the response.
"""

from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Mapping, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from request_pipeline.cache import ResponseCache
from request_pipeline.request.codec import Codec, JSONCodec
from request_pipeline.request.url import encode_query

DEFAULT_SUCCESS_STATUS_CODES: FrozenSet[int] = frozenset(range(200, 300))
JSON_CONTENT_TYPE = "application/json"

# Builds a domain-specific error from a rejected status code and the raw body
ErrorMapper = Callable[[int, Optional[bytes]], BaseException]


class HTTPMethod(str, Enum):
    """HTTP methods supported by descriptors."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class BodyStream(NamedTuple):
    """Streamed request body with its declared size in bytes."""

    stream: Any
    size: int


class RequestDescriptor(BaseModel):
    """Schema for one endpoint's request shape and response handling.

    Attributes:
        name: Label used in logs and error reports; also the cache key
        method: HTTP method
        base_url: Absolute base location (falls back to PipelineConfig.base_url)
        path: Raw path resolved relative to base_url
        query_items: Ordered (name, value) pairs; None values emit a bare name
        headers: Applied after pipeline defaults, so these win on collision
        content_type: Content-Type sent with body or body_stream
        body: Request payload (mutually exclusive with body_stream)
        body_stream: Streamed request payload with explicit size
        success_status_codes: Accepted response statuses
        expected_content_type: Required response Content-Type (None = any)
        codec: Decodes the response payload
        error_mapper: Optional factory for errors on rejected statuses
        cache: Optional response cache consulted before dispatch
        progressive: Track the transfer chunk by chunk with progress updates

    Example:
        >>> descriptor = RequestDescriptor(
        ...     name="get_user",
        ...     base_url="https://api.example.test",
        ...     path="/users/42",
        ...     query_items=[("expand", "teams")],
        ...     codec=JSONCodec(User),
        ... )
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: Optional[str] = Field(default=None, description="Endpoint label")
    method: HTTPMethod = HTTPMethod.GET
    base_url: Optional[str] = None
    path: str = ""
    query_items: Tuple[Tuple[str, Optional[str]], ...] = ()
    headers: Dict[str, str] = Field(default_factory=dict)
    content_type: str = JSON_CONTENT_TYPE
    body: Optional[bytes] = None
    body_stream: Optional[BodyStream] = None
    success_status_codes: FrozenSet[int] = DEFAULT_SUCCESS_STATUS_CODES
    expected_content_type: Optional[str] = JSON_CONTENT_TYPE
    codec: Codec = Field(default_factory=JSONCodec)
    error_mapper: Optional[ErrorMapper] = None
    cache: Optional[ResponseCache] = None
    progressive: bool = False

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("query_items", mode="before")
    @classmethod
    def normalize_query_items(cls, v: Any) -> Any:
        if isinstance(v, Mapping):
            v = list(v.items())
        return tuple(
            (str(name), None if value is None else str(value)) for name, value in v
        )

    @field_validator("body_stream")
    @classmethod
    def validate_body_stream(cls, v: Optional[BodyStream]) -> Optional[BodyStream]:
        if v is not None and v.size < 0:
            raise ValueError("body_stream size must not be negative")
        return v

    @model_validator(mode="after")
    def check_single_body(self) -> "RequestDescriptor":
        if self.body is not None and self.body_stream is not None:
            raise ValueError("body and body_stream are mutually exclusive")
        return self

    @property
    def label(self) -> str:
        """Human-readable endpoint label for logs."""
        return self.name or f"{self.method.value} {self.path or '/'}"

    @property
    def cache_key(self) -> str:
        """Identity used to look up cached responses."""
        if self.name:
            return self.name
        query = encode_query(self.query_items)
        key = f"{self.method.value} {self.path or '/'}"
        return f"{key}?{query}" if query else key

    def with_body(self, value: Any, codec: Optional[Codec] = None) -> "RequestDescriptor":
        """
        Return a copy carrying value encoded as the request body.

        Args:
            value: Model to encode
            codec: Codec used for encoding (default: this descriptor's codec)

        Raises:
            pydantic.ValidationError: If the descriptor already has a body_stream
        """
        fields = {name: getattr(self, name) for name in type(self).model_fields}
        fields["body"] = (codec or self.codec).encode(value)
        return type(self).model_validate(fields)
