"""
Exception types and error classification for request_pipeline.

Provides:
- ErrorCategory enum for reporting decisions
- Typed exception hierarchy for request failures
- TransportErrorCode and the transient/non-transient classifier
"""

from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """
    Classification of error types for reporting decisions.

    Categories:
        TRANSIENT: Failures expected under normal network conditions
                   (e.g., timeouts, lost connectivity, cancellation)
        PERMANENT: Structural failures that indicate a real problem
                   (e.g., 404, wrong content type, undecodable payloads)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class PipelineError(Exception):
    """
    Base exception for all request_pipeline errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for reporting decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        """Whether this error is expected network noise."""
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class ConfigurationError(PipelineError):
    """Invalid or missing configuration."""

    category = ErrorCategory.PERMANENT


class TrackerStateError(PipelineError):
    """A progress tracker was driven out of order or after its terminal event."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Request Errors (validation and decoding)
# =============================================================================


class RequestError(PipelineError):
    """Base class for errors raised by the request pipeline itself."""

    category = ErrorCategory.PERMANENT


class NonHTTPResponseError(RequestError):
    """The transport completed without an HTTP response."""

    def __init__(self, message: str = "Transport returned a non-HTTP response", **kwargs):
        super().__init__(message, **kwargs)


class ServerFailureError(RequestError):
    """Response status code is outside the accepted set."""

    def __init__(
        self,
        status_code: int,
        body: Optional[bytes] = None,
        url: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        message = f"Server failure ({status_code})"
        if url:
            message = f"{message}: {url}"
        super().__init__(message, cause, {"status_code": status_code, "url": url})
        self.status_code = status_code
        self.body = body


class WrongContentTypeError(RequestError):
    """Response Content-Type does not match the expected type."""

    def __init__(self, expected: str, actual: Optional[str]):
        super().__init__(
            f"Expected content type {expected!r}, got {actual!r}",
            context={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class ParseError(RequestError):
    """Response body was missing or could not be decoded."""

    pass


# =============================================================================
# Transport Errors
# =============================================================================


class TransportErrorCode(Enum):
    """Failure conditions reported by a session adapter."""

    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    CANNOT_FIND_HOST = "cannot_find_host"
    CANNOT_CONNECT_TO_HOST = "cannot_connect_to_host"
    NETWORK_CONNECTION_LOST = "network_connection_lost"
    DNS_LOOKUP_FAILED = "dns_lookup_failed"
    NOT_CONNECTED_TO_INTERNET = "not_connected_to_internet"
    USER_CANCELLED_AUTHENTICATION = "user_cancelled_authentication"
    INTERNATIONAL_ROAMING_OFF = "international_roaming_off"
    CALL_IS_ACTIVE = "call_is_active"
    DATA_NOT_ALLOWED = "data_not_allowed"
    SERVER_CERTIFICATE_UNTRUSTED = "server_certificate_untrusted"
    SECURE_CONNECTION_FAILED = "secure_connection_failed"
    BAD_URL = "bad_url"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    UNKNOWN = "unknown"


TRANSIENT_TRANSPORT_CODES = frozenset(
    {
        TransportErrorCode.CANCELLED,
        TransportErrorCode.TIMED_OUT,
        TransportErrorCode.CANNOT_FIND_HOST,
        TransportErrorCode.CANNOT_CONNECT_TO_HOST,
        TransportErrorCode.NETWORK_CONNECTION_LOST,
        TransportErrorCode.DNS_LOOKUP_FAILED,
        TransportErrorCode.NOT_CONNECTED_TO_INTERNET,
        TransportErrorCode.USER_CANCELLED_AUTHENTICATION,
        TransportErrorCode.INTERNATIONAL_ROAMING_OFF,
        TransportErrorCode.CALL_IS_ACTIVE,
        TransportErrorCode.DATA_NOT_ALLOWED,
    }
)


class TransportError(PipelineError):
    """
    Failure raised by the transport layer.

    Passed through to callers unmodified; the code only decides whether the
    failure is reported to the error sink.
    """

    def __init__(
        self,
        code: TransportErrorCode,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(message or code.value.replace("_", " "), cause, context)
        self.code = code

    @property
    def category(self) -> ErrorCategory:  # type: ignore[override]
        if self.code in TRANSIENT_TRANSPORT_CODES:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.PERMANENT


# =============================================================================
# Error Classification Utilities
# =============================================================================


def is_transient_error(exc: BaseException) -> bool:
    """
    Check whether a failure is expected network noise.

    Only transport-domain failures with a transient code qualify. Anything
    outside the transport's error domain is non-transient.

    Args:
        exc: Exception to classify

    Returns:
        True if the failure is transient
    """
    return isinstance(exc, TransportError) and exc.code in TRANSIENT_TRANSPORT_CODES
