"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- Transient/non-transient classification of transport failures
"""

from request_pipeline.errors.exceptions import (
    # Enums
    ErrorCategory,
    TransportErrorCode,
    TRANSIENT_TRANSPORT_CODES,
    # Base classes
    PipelineError,
    RequestError,
    ConfigurationError,
    TrackerStateError,
    # Request errors
    NonHTTPResponseError,
    ServerFailureError,
    WrongContentTypeError,
    ParseError,
    # Transport errors
    TransportError,
    # Classification utilities
    is_transient_error,
)

__all__ = [
    # Enums
    "ErrorCategory",
    "TransportErrorCode",
    "TRANSIENT_TRANSPORT_CODES",
    # Base classes
    "PipelineError",
    "RequestError",
    "ConfigurationError",
    "TrackerStateError",
    # Request errors
    "NonHTTPResponseError",
    "ServerFailureError",
    "WrongContentTypeError",
    "ParseError",
    # Transport errors
    "TransportError",
    # Classification utilities
    "is_transient_error",
]
