"""
Session capability and transport adapters.

Provides:
- Session / SessionDelegate / InFlightTask: transport capability interfaces
- AiohttpSession: production adapter over aiohttp
- translate_client_error: aiohttp failure -> TransportError
"""

from request_pipeline.session.aiohttp_session import (
    AiohttpSession,
    AiohttpTask,
    translate_client_error,
)
from request_pipeline.session.base import (
    CompletionHandler,
    InFlightTask,
    Session,
    SessionDelegate,
    TaskState,
    TransportRequest,
    TransportResponse,
)

__all__ = [
    "Session",
    "SessionDelegate",
    "InFlightTask",
    "TaskState",
    "CompletionHandler",
    "TransportRequest",
    "TransportResponse",
    "AiohttpSession",
    "AiohttpTask",
    "translate_client_error",
]
