"""
request_pipeline - declarative HTTP request/response pipeline.

Describe an endpoint once as a RequestDescriptor, then run it:

    from request_pipeline import HTTPMethod, JSONCodec, RequestDescriptor, RequestPipeline

    get_user = RequestDescriptor(
        name="GetUser",
        base_url="https://api.example.test",
        path="users/42",
        codec=JSONCodec(User),
    )

    async with RequestPipeline.create() as pipeline:
        user = await pipeline.start(get_user)
"""

from request_pipeline.cache import InMemoryResponseCache, ResponseCache
from request_pipeline.config import PipelineConfig
from request_pipeline.errors import (
    ConfigurationError,
    ErrorCategory,
    NonHTTPResponseError,
    ParseError,
    PipelineError,
    RequestError,
    ServerFailureError,
    TrackerStateError,
    TransportError,
    TransportErrorCode,
    WrongContentTypeError,
    is_transient_error,
)
from request_pipeline.pipeline import (
    LoggingErrorReporter,
    RequestPipeline,
    get_default_pipeline,
    set_default_pipeline,
    start,
)
from request_pipeline.request import (
    BodyStream,
    CallableCodec,
    Codec,
    DescriptorTemplate,
    HTTPMethod,
    JSONCodec,
    RawCodec,
    RequestDescriptor,
)
from request_pipeline.session import AiohttpSession, Session
from request_pipeline.tracking import Progress, ProgressChannel, TaskDemultiplexer

__version__ = "0.1.0"

__all__ = [
    "RequestPipeline",
    "start",
    "get_default_pipeline",
    "set_default_pipeline",
    "RequestDescriptor",
    "DescriptorTemplate",
    "HTTPMethod",
    "BodyStream",
    "Codec",
    "JSONCodec",
    "CallableCodec",
    "RawCodec",
    "Session",
    "AiohttpSession",
    "TaskDemultiplexer",
    "Progress",
    "ProgressChannel",
    "ResponseCache",
    "InMemoryResponseCache",
    "PipelineConfig",
    "LoggingErrorReporter",
    "PipelineError",
    "RequestError",
    "ConfigurationError",
    "TrackerStateError",
    "NonHTTPResponseError",
    "ServerFailureError",
    "WrongContentTypeError",
    "ParseError",
    "TransportError",
    "TransportErrorCode",
    "ErrorCategory",
    "is_transient_error",
]
