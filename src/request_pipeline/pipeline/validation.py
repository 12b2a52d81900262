"""
Response validation stage.

Checks applied, in order, to every non-cached response before decoding:
status code, then content type, then payload presence.
"""

import re
from typing import Optional

from request_pipeline.errors import ParseError, ServerFailureError, WrongContentTypeError
from request_pipeline.request.descriptor import RequestDescriptor
from request_pipeline.session.base import TransportResponse


def validate_status(
    descriptor: RequestDescriptor, response: TransportResponse, body: Optional[bytes]
) -> None:
    """
    Reject status codes outside the descriptor's accepted set.

    Raises:
        Exception: descriptor.error_mapper(status, body) result, if a mapper is set
        ServerFailureError: otherwise
    """
    if response.status in descriptor.success_status_codes:
        return
    if descriptor.error_mapper is not None:
        raise descriptor.error_mapper(response.status, body or b"")
    raise ServerFailureError(response.status, body=body, url=response.url or None)


def content_type_matches(expected: str, actual: Optional[str]) -> bool:
    """
    True for an exact match or the expected type with a charset qualifier.

    The media type is compared exactly in both forms; only the charset
    parameter name is case-insensitive.
    """
    if actual is None:
        return False
    if actual == expected:
        return True
    return re.match(re.escape(expected) + r";\s*(?i:charset)=", actual) is not None


def validate_content_type(
    descriptor: RequestDescriptor, response: TransportResponse, body: Optional[bytes]
) -> None:
    """
    Reject unexpected content types.

    Skipped when the body is empty or the descriptor expects no particular type.

    Raises:
        WrongContentTypeError: Content-Type is absent or does not match
    """
    expected = descriptor.expected_content_type
    if expected is None or not body:
        return
    actual = response.content_type
    if not content_type_matches(expected, actual):
        raise WrongContentTypeError(expected, actual)


def extract_payload(response: TransportResponse, body: Optional[bytes]) -> bytes:
    """
    Return the bytes to hand to the codec.

    An empty body is decoded only when the response declares a zero length.

    Raises:
        ParseError: Body is empty and the declared length is unknown or non-zero
    """
    if body:
        return body
    if response.content_length == 0:
        return b""
    raise ParseError(
        "Response body is empty",
        context={"http_status": response.status, "content_length": response.content_length},
    )
