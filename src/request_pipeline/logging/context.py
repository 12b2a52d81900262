"""Log context propagation via contextvars.

Values set here follow asyncio tasks, so every log line emitted while a
request is in flight carries that request's identifiers.
"""

import contextlib
import secrets
from contextvars import ContextVar
from typing import Dict, Iterator, Optional

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_endpoint: ContextVar[Optional[str]] = ContextVar("endpoint", default=None)

_VARS = {
    "request_id": _request_id,
    "endpoint": _endpoint,
}


def set_log_context(
    request_id: Optional[str] = None,
    endpoint: Optional[str] = None,
) -> None:
    """Set log context values. Arguments left as None are unchanged."""
    if request_id is not None:
        _request_id.set(request_id)
    if endpoint is not None:
        _endpoint.set(endpoint)


def get_log_context() -> Dict[str, Optional[str]]:
    """Get current log context as a dict."""
    return {name: var.get() for name, var in _VARS.items()}


def clear_log_context() -> None:
    """Reset all log context values."""
    for var in _VARS.values():
        var.set(None)


@contextlib.contextmanager
def log_context(**values: Optional[str]) -> Iterator[None]:
    """
    Temporarily set log context values.

    Example:
        with log_context(request_id=generate_request_id(), endpoint="GET /users"):
            ...
    """
    tokens = []
    for name, value in values.items():
        if name not in _VARS:
            raise KeyError(f"Unknown log context field: {name}")
        tokens.append((_VARS[name], _VARS[name].set(value)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def generate_request_id() -> str:
    """
    Generate unique request identifier.

    Format: r-XXXXXXXXXXXX where X is random hex.
    """
    return f"r-{secrets.token_hex(6)}"
