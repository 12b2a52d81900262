"""
Structured logging module.

Provides console and JSON logging with request-scoped context propagation.
"""

from request_pipeline.logging.context import (
    clear_log_context,
    generate_request_id,
    get_log_context,
    log_context,
    set_log_context,
)
from request_pipeline.logging.formatters import ConsoleFormatter, JSONFormatter
from request_pipeline.logging.setup import setup_logging
from request_pipeline.logging.utilities import (
    LoggedClass,
    get_logger,
    log_exception,
    log_with_context,
    sanitize_url,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_with_context",
    "log_exception",
    "LoggedClass",
    "sanitize_url",
    "JSONFormatter",
    "ConsoleFormatter",
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "log_context",
    "generate_request_id",
]
