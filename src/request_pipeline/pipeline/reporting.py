"""
Error reporting sink.

The pipeline reports non-transient transport failures and rejected status
codes to an ErrorReporter: a callable taking a message and a mapping of
diagnostic fields. Transient failures are never reported.
"""

import logging
from typing import Any, Callable, Dict, Optional

from request_pipeline.logging.utilities import log_with_context

ErrorReporter = Callable[[str, Dict[str, Any]], None]

NOT_UTF8 = "<not UTF-8>"

logger = logging.getLogger(__name__)


def body_text(data: Optional[bytes]) -> str:
    """Decode a body for reporting; missing bodies are empty."""
    if data is None:
        return ""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return NOT_UTF8


class LoggingErrorReporter:
    """Default reporter: one ERROR log record per report."""

    def __init__(self, logger: logging.Logger = logger, level: int = logging.ERROR):
        self.logger = logger
        self.level = level

    def __call__(self, message: str, fields: Dict[str, Any]) -> None:
        log_with_context(self.logger, self.level, message, **fields)
