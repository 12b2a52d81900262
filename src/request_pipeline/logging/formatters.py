"""Log formatters for JSON and console output."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from request_pipeline.logging.context import get_log_context
from request_pipeline.logging.utilities import sanitize_url


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Sanitizes URLs to remove sensitive tokens before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Request tracking
        "http_method",
        "url",
        "http_status",
        "duration_ms",
        "bytes_received",
        "content_type",
        "cache_key",
        # Errors
        "error_category",
        "error_message",
        "error_code",
        "transient",
        # Error reporter diagnostics
        "request_body",
        "response",
        "error",
        # Progressive transfers
        "task_id",
        "tracked_tasks",
        # Instance context
        "session_name",
        "base_url",
    ]

    # Fields that contain URLs and should be sanitized
    URL_FIELDS = ["url", "base_url"]

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.URL_FIELDS and isinstance(value, str):
            return sanitize_url(value)
        return value

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with sanitized URLs."""
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        for key, value in get_log_context().items():
            if value:
                log_entry[key] = value

        # Add source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = self._sanitize_value(field, value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter.

    Includes the request id and endpoint when available.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
        ]
        if ctx["endpoint"]:
            parts.append(f"[{ctx['endpoint']}]")

        prefix = " - ".join(parts)
        message = record.getMessage()

        url = getattr(record, "url", None)
        if url:
            message = f"{message} {sanitize_url(url)}"
        status = getattr(record, "http_status", None)
        if status is not None:
            message = f"{message} [{status}]"

        if ctx["request_id"]:
            return f"{prefix} - [{ctx['request_id']}] {message}"
        return f"{prefix} - {message}"
