"""
Request description and construction.

Provides:
- RequestDescriptor: immutable endpoint description
- DescriptorTemplate: explicit defaults for endpoint families
- Codecs for payload decoding/encoding
- URL composition and transport request building
"""

from request_pipeline.request.builder import build_transport_request
from request_pipeline.request.codec import CallableCodec, Codec, JSONCodec, RawCodec
from request_pipeline.request.descriptor import (
    DEFAULT_SUCCESS_STATUS_CODES,
    BodyStream,
    ErrorMapper,
    HTTPMethod,
    RequestDescriptor,
)
from request_pipeline.request.template import DescriptorTemplate
from request_pipeline.request.url import build_url, encode_path, encode_query

__all__ = [
    "RequestDescriptor",
    "DescriptorTemplate",
    "HTTPMethod",
    "BodyStream",
    "ErrorMapper",
    "DEFAULT_SUCCESS_STATUS_CODES",
    "Codec",
    "JSONCodec",
    "CallableCodec",
    "RawCodec",
    "build_url",
    "encode_path",
    "encode_query",
    "build_transport_request",
]
