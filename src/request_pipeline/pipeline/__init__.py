"""
Pipeline orchestration, validation and error reporting.

Provides:
- RequestPipeline: end-to-end request execution
- start / get_default_pipeline / set_default_pipeline: shared-pipeline helpers
- Validation stage functions
- ErrorReporter sink and default LoggingErrorReporter
"""

from request_pipeline.pipeline.orchestrator import (
    RequestPipeline,
    get_default_pipeline,
    set_default_pipeline,
    start,
)
from request_pipeline.pipeline.reporting import ErrorReporter, LoggingErrorReporter, body_text
from request_pipeline.pipeline.validation import (
    content_type_matches,
    extract_payload,
    validate_content_type,
    validate_status,
)

__all__ = [
    "RequestPipeline",
    "start",
    "get_default_pipeline",
    "set_default_pipeline",
    "ErrorReporter",
    "LoggingErrorReporter",
    "body_text",
    "validate_status",
    "validate_content_type",
    "extract_payload",
    "content_type_matches",
]
