"""Transport request construction from descriptors."""

import logging

from multidict import CIMultiDict

from request_pipeline.config import PipelineConfig
from request_pipeline.errors import ConfigurationError
from request_pipeline.logging.utilities import log_with_context
from request_pipeline.request.descriptor import RequestDescriptor
from request_pipeline.request.url import build_url
from request_pipeline.session.base import TransportRequest

logger = logging.getLogger(__name__)


def build_transport_request(
    descriptor: RequestDescriptor, config: PipelineConfig
) -> TransportRequest:
    """
    Build the transport request for a descriptor.

    Header precedence (later wins): config.default_headers, then the body's
    Content-Type/Content-Length, then descriptor.headers.

    Args:
        descriptor: Request descriptor
        config: Pipeline configuration (base URL fallback, default headers)

    Returns:
        TransportRequest ready for a Session

    Raises:
        ConfigurationError: If no absolute base URL is available
    """
    base_url = descriptor.base_url or config.base_url
    if not base_url:
        raise ConfigurationError(
            f"No base URL for {descriptor.label}: set descriptor.base_url or REQUEST_BASE_URL"
        )
    url = build_url(base_url, descriptor.path, descriptor.query_items)

    headers: CIMultiDict = CIMultiDict()
    for key, value in config.default_headers.items():
        headers[key] = value

    request = TransportRequest(method=descriptor.method.value, url=url, headers=headers)

    if descriptor.body is not None:
        headers["Content-Type"] = descriptor.content_type
        request.body = descriptor.body
    elif descriptor.body_stream is not None:
        headers["Content-Type"] = descriptor.content_type
        headers["Content-Length"] = str(descriptor.body_stream.size)
        request.body_stream = descriptor.body_stream.stream

    for key, value in descriptor.headers.items():
        headers[key] = value

    log_with_context(
        logger,
        logging.DEBUG,
        "Request starting",
        http_method=request.method,
        url=url,
    )
    return request
