"""
In-memory Session for tests.

StubSession answers requests from a list of allowed (request, response)
stubs instead of the network. Requests that match no stub fail with
StubNotAllowedError.

Usage:
    session = StubSession()
    session.allow(StubRequest.get("https://api.test/items"), status=200, body="[1, 2]")

    pipeline = RequestPipeline(session=session)
    items = await pipeline.start(descriptor)
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union

from multidict import CIMultiDict

from request_pipeline.errors import ConfigurationError
from request_pipeline.session.base import (
    CompletionHandler,
    InFlightTask,
    Session,
    SessionDelegate,
    TaskState,
    TransportRequest,
    TransportResponse,
)

DEFAULT_STUB_HEADERS = {"Content-Type": "application/json"}


class StubNotAllowedError(Exception):
    """Request matched no stub."""

    pass


@dataclass(frozen=True)
class StubRequest:
    """Request pattern: method and absolute URL, plus required headers."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def get(cls, url: str, headers: Optional[Mapping[str, str]] = None) -> "StubRequest":
        return cls("GET", url, dict(headers or {}))

    @classmethod
    def post(
        cls, url: str, body: bytes = b"", headers: Optional[Mapping[str, str]] = None
    ) -> "StubRequest":
        return cls("POST", url, dict(headers or {}), body)

    @classmethod
    def put(
        cls, url: str, body: bytes = b"", headers: Optional[Mapping[str, str]] = None
    ) -> "StubRequest":
        return cls("PUT", url, dict(headers or {}), body)

    @classmethod
    def delete(cls, url: str, headers: Optional[Mapping[str, str]] = None) -> "StubRequest":
        return cls("DELETE", url, dict(headers or {}))

    def matches(self, request: TransportRequest) -> bool:
        """Method (case-insensitive) and URL must match; required headers must be present."""
        if request.method.upper() != self.method.upper():
            return False
        if request.url != self.url:
            return False
        return all(request.headers.get(key) == value for key, value in self.headers.items())


@dataclass(frozen=True)
class _StubReply:
    status: int = 0
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    error: Optional[BaseException] = None


class StubTask(InFlightTask):
    """Task that delivers its canned outcome when resumed."""

    def __init__(self, session: "StubSession", deliver):
        super().__init__()
        self._session = session
        self._deliver = deliver
        self.thread: Optional[threading.Thread] = None

    def resume(self) -> None:
        if self.state != TaskState.SUSPENDED:
            return
        self.state = TaskState.RUNNING
        if self._session.threaded:
            self.thread = threading.Thread(target=self._deliver, daemon=True)
            self.thread.start()
        else:
            self._deliver()

    def cancel(self) -> None:
        self.state = TaskState.CANCELLED


class StubSession(Session):
    """
    Session answering from registered stubs.

    Args:
        delegate: Receives events for tracked tasks
        chunk_size: Body bytes per data event in tracked mode
        threaded: Deliver outcomes from a separate thread instead of inline
            on resume(), like a real transport's delivery thread
    """

    def __init__(
        self,
        delegate: Optional[SessionDelegate] = None,
        chunk_size: int = 4,
        threaded: bool = False,
    ):
        super().__init__(delegate=delegate)
        self.chunk_size = chunk_size
        self.threaded = threaded
        self.calls: List[TransportRequest] = []
        self._stubs: List[Tuple[StubRequest, _StubReply]] = []
        self._lock = threading.Lock()

    def reset(self) -> None:
        with self._lock:
            self._stubs = []
            self.calls = []

    def allow(
        self,
        request: StubRequest,
        status: int,
        headers: Optional[Mapping[str, str]] = None,
        body: Union[str, bytes] = "",
    ) -> None:
        """Answer requests matching `request` with an HTTP response."""
        if isinstance(body, str):
            body = body.encode("utf-8")
        reply_headers = dict(DEFAULT_STUB_HEADERS if headers is None else headers)
        reply_headers["Content-Length"] = str(len(body))
        with self._lock:
            self._stubs.append((request, _StubReply(status, reply_headers, body)))

    def allow_error(self, request: StubRequest, error: BaseException) -> None:
        """Fail requests matching `request` with a transport error."""
        with self._lock:
            self._stubs.append((request, _StubReply(error=error)))

    def _reply_for(self, request: TransportRequest) -> _StubReply:
        with self._lock:
            self.calls.append(request)
            for stub, reply in self._stubs:
                if stub.matches(request):
                    return reply
        return _StubReply(
            error=StubNotAllowedError(f"{request.method} {request.url} is not allowed here")
        )

    def _response(self, request: TransportRequest, reply: _StubReply) -> TransportResponse:
        return TransportResponse(
            status=reply.status, headers=CIMultiDict(reply.headers), url=request.url
        )

    def issue_one_shot(
        self, request: TransportRequest, on_complete: CompletionHandler
    ) -> InFlightTask:
        reply = self._reply_for(request)

        def deliver() -> None:
            if reply.error is not None:
                on_complete(None, None, reply.error)
            else:
                on_complete(reply.body, self._response(request, reply), None)

        return StubTask(self, deliver)

    def issue_tracked(self, request: TransportRequest) -> InFlightTask:
        if self.delegate is None:
            raise ConfigurationError("Tracked requests require a session delegate")
        reply = self._reply_for(request)
        delegate = self.delegate
        task: Optional[StubTask] = None

        def deliver() -> None:
            if reply.error is not None:
                delegate.did_complete(task, reply.error)
                return
            delegate.did_receive_response(task, self._response(request, reply))
            for start in range(0, len(reply.body), self.chunk_size):
                delegate.did_receive_data(task, reply.body[start:start + self.chunk_size])
            delegate.did_complete(task, None)

        task = StubTask(self, deliver)
        return task
