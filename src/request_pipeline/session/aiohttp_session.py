"""
aiohttp-backed Session.

Issues transport tasks on a shared aiohttp.ClientSession. One-shot tasks
buffer the whole body and report once; tracked tasks stream the body in
chunks to the session delegate.
"""

import asyncio
import logging
import threading
from typing import Optional, Set

import aiohttp
from multidict import CIMultiDict

from request_pipeline.config import PipelineConfig
from request_pipeline.errors import ConfigurationError, TransportError, TransportErrorCode
from request_pipeline.logging.utilities import LoggedClass
from request_pipeline.session.base import (
    CompletionHandler,
    InFlightTask,
    Session,
    SessionDelegate,
    TaskState,
    TransportRequest,
    TransportResponse,
)


def translate_client_error(exc: BaseException) -> TransportError:
    """
    Map an aiohttp/asyncio failure to a TransportError.

    Subclasses are checked before their parents: certificate errors are SSL
    errors, and SSL and DNS errors are connector errors.
    """
    if isinstance(exc, asyncio.TimeoutError):
        code = TransportErrorCode.TIMED_OUT
    elif isinstance(exc, aiohttp.ClientConnectorCertificateError):
        code = TransportErrorCode.SERVER_CERTIFICATE_UNTRUSTED
    elif isinstance(exc, aiohttp.ClientSSLError):
        code = TransportErrorCode.SECURE_CONNECTION_FAILED
    elif isinstance(exc, aiohttp.ClientConnectorDNSError):
        code = TransportErrorCode.CANNOT_FIND_HOST
    elif isinstance(exc, aiohttp.ClientConnectorError):
        code = TransportErrorCode.CANNOT_CONNECT_TO_HOST
    elif isinstance(
        exc,
        (aiohttp.ServerDisconnectedError, aiohttp.ClientPayloadError, aiohttp.ClientOSError),
    ):
        code = TransportErrorCode.NETWORK_CONNECTION_LOST
    elif isinstance(exc, aiohttp.InvalidURL):
        code = TransportErrorCode.BAD_URL
    elif isinstance(exc, aiohttp.TooManyRedirects):
        code = TransportErrorCode.TOO_MANY_REDIRECTS
    else:
        code = TransportErrorCode.UNKNOWN
    return TransportError(code, message=str(exc) or None, cause=exc)


def _transport_response(response: aiohttp.ClientResponse) -> TransportResponse:
    return TransportResponse(
        status=response.status,
        headers=CIMultiDict(response.headers),
        url=str(response.url),
    )


class AiohttpTask(InFlightTask):
    """
    Suspended aiohttp transfer.

    The terminal outcome is delivered exactly once: to on_complete for
    one-shot tasks, to the delegate's did_complete for tracked tasks.
    """

    def __init__(
        self,
        owner: "AiohttpSession",
        request: TransportRequest,
        on_complete: Optional[CompletionHandler] = None,
        delegate: Optional[SessionDelegate] = None,
    ):
        super().__init__()
        self.request = request
        self._owner = owner
        self._on_complete = on_complete
        self._delegate = delegate
        self._lock = threading.Lock()
        self._finished = False
        self._task: Optional[asyncio.Task] = None

    @property
    def tracked(self) -> bool:
        return self._on_complete is None

    def resume(self) -> None:
        if self.state != TaskState.SUSPENDED:
            return
        self.state = TaskState.RUNNING
        loop = asyncio.get_running_loop()
        if self.tracked:
            coro = self._owner._run_tracked(self)
        else:
            coro = self._owner._run_one_shot(self)
        self._task = loop.create_task(coro)
        self._owner._tasks.add(self._task)
        self._task.add_done_callback(self._on_task_done)

    def cancel(self) -> None:
        if self.state == TaskState.CANCELLED:
            return
        self.state = TaskState.CANCELLED
        if self._task is not None:
            self._task.cancel()
        else:
            self.finish(None, None, TransportError(TransportErrorCode.CANCELLED))

    def finish(
        self,
        data: Optional[bytes],
        response: Optional[TransportResponse],
        error: Optional[BaseException],
    ) -> None:
        with self._lock:
            if self._finished:
                return
            self._finished = True
        if self._on_complete is not None:
            self._on_complete(data, response, error)
        else:
            self._delegate.did_complete(self, error)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._owner._tasks.discard(task)
        if task.cancelled():
            self.finish(None, None, TransportError(TransportErrorCode.CANCELLED))
            return
        exc = task.exception()
        if exc is not None:
            self._owner._log_exception(exc, "Transport task failed", task_id=self.task_id)
            self.finish(None, None, exc)


class AiohttpSession(LoggedClass, Session):
    """
    Session over aiohttp.ClientSession.

    Usage:
        async with AiohttpSession(config, delegate=demultiplexer) as session:
            task = session.issue_one_shot(request, on_complete)
            task.resume()

    Configuration (from PipelineConfig):
        request_timeout_seconds: Total timeout per request
        max_connections: Connector pool size
        max_connections_per_host: Per-host connector limit
        chunk_size: Bytes per delegate data event in tracked mode
    """

    log_component = "transport"

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        delegate: Optional[SessionDelegate] = None,
        session_name: str = "default",
    ):
        self.config = config or PipelineConfig()
        self.session_name = session_name
        self._session: Optional[aiohttp.ClientSession] = None
        self._tasks: Set[asyncio.Task] = set()
        super().__init__(delegate=delegate)

    async def __aenter__(self) -> "AiohttpSession":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Create aiohttp session if not exists."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.config.max_connections,
                limit_per_host=self.config.max_connections_per_host,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_seconds),
            )
        return self._session

    async def close(self) -> None:
        """Cancel outstanding transfers and close the HTTP session."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def issue_one_shot(
        self, request: TransportRequest, on_complete: CompletionHandler
    ) -> InFlightTask:
        return AiohttpTask(self, request, on_complete=on_complete)

    def issue_tracked(self, request: TransportRequest) -> InFlightTask:
        if self.delegate is None:
            raise ConfigurationError("Tracked requests require a session delegate")
        return AiohttpTask(self, request, delegate=self.delegate)

    def _request_kwargs(self, request: TransportRequest) -> dict:
        kwargs = {"headers": request.headers}
        if request.body is not None:
            kwargs["data"] = request.body
        elif request.body_stream is not None:
            kwargs["data"] = request.body_stream
        return kwargs

    async def _run_one_shot(self, task: AiohttpTask) -> None:
        request = task.request
        try:
            session = await self._ensure_session()
            async with session.request(
                request.method, request.url, **self._request_kwargs(request)
            ) as response:
                body = await response.read()
                head = _transport_response(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            task.finish(None, None, self._failed(task, e))
            return

        self._log(
            logging.DEBUG,
            "Response received",
            task_id=task.task_id,
            url=request.url,
            http_status=head.status,
            bytes_received=len(body),
        )
        task.finish(body, head, None)

    async def _run_tracked(self, task: AiohttpTask) -> None:
        request = task.request
        delegate = self.delegate
        try:
            session = await self._ensure_session()
            async with session.request(
                request.method, request.url, **self._request_kwargs(request)
            ) as response:
                delegate.did_receive_response(task, _transport_response(response))
                async for chunk in response.content.iter_chunked(self.config.chunk_size):
                    delegate.did_receive_data(task, chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            task.finish(None, None, self._failed(task, e))
            return

        self._log(logging.DEBUG, "Tracked transfer finished", task_id=task.task_id, url=request.url)
        task.finish(None, None, None)

    def _failed(self, task: AiohttpTask, exc: BaseException) -> TransportError:
        error = translate_client_error(exc)
        self._log(
            logging.DEBUG,
            "Transport failure",
            task_id=task.task_id,
            url=task.request.url,
            error_code=error.code.value,
            transient=error.is_transient,
        )
        return error
