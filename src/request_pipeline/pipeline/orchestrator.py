"""
Request pipeline orchestrator.

Composes the engine end to end:
    cache gate -> build transport request -> dispatch (one-shot or tracked)
    -> validate status/content type -> decode

Every start() produces exactly one decoded model or raises exactly one error.
Logging, metrics and error reporting are side effects that never change the
outcome.
"""

import asyncio
import logging
import threading
import time
from concurrent.futures import Executor
from typing import Any, Dict, Optional, Tuple

from request_pipeline import metrics
from request_pipeline.cache import check_cache
from request_pipeline.config import PipelineConfig
from request_pipeline.errors import (
    ConfigurationError,
    NonHTTPResponseError,
    ParseError,
    PipelineError,
    RequestError,
    TransportError,
    TransportErrorCode,
    is_transient_error,
)
from request_pipeline.logging.context import generate_request_id, log_context
from request_pipeline.logging.utilities import LoggedClass, sanitize_url
from request_pipeline.pipeline.reporting import ErrorReporter, LoggingErrorReporter, body_text
from request_pipeline.pipeline.validation import (
    extract_payload,
    validate_content_type,
    validate_status,
)
from request_pipeline.request.builder import build_transport_request
from request_pipeline.request.descriptor import RequestDescriptor
from request_pipeline.session.aiohttp_session import AiohttpSession
from request_pipeline.session.base import Session, TransportRequest, TransportResponse
from request_pipeline.tracking.demultiplexer import TaskDemultiplexer
from request_pipeline.tracking.progress import ProgressChannel, ProgressTracker


def _resolve(
    future: asyncio.Future,
    data: Optional[bytes],
    response: Optional[Any],
    error: Optional[BaseException],
) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    elif not isinstance(response, TransportResponse):
        future.set_exception(NonHTTPResponseError())
    else:
        future.set_result((data, response))


class RequestPipeline(LoggedClass):
    """
    Executes request descriptors against a shared session.

    Usage:
        async with RequestPipeline.create() as pipeline:
            user = await pipeline.start(descriptor)

        # Progressive download with progress updates
        channel = ProgressChannel()
        result = asyncio.create_task(pipeline.start(download, progress=channel))
        async for update in channel:
            print(update.received, update.total)
        data = await result

    Args:
        session: Transport session shared by all requests
        demultiplexer: Router for tracked-task events; defaults to the
            session's delegate, or a new instance installed as the delegate
            (must be the session's delegate when the session already has one)
        config: Pipeline configuration (defaults to PipelineConfig())
        error_reporter: Sink for non-transient failures and rejected statuses
    """

    log_component = "orchestrator"

    def __init__(
        self,
        session: Session,
        demultiplexer: Optional[TaskDemultiplexer] = None,
        config: Optional[PipelineConfig] = None,
        error_reporter: Optional[ErrorReporter] = None,
    ):
        if demultiplexer is None:
            if isinstance(session.delegate, TaskDemultiplexer):
                demultiplexer = session.delegate
            else:
                demultiplexer = TaskDemultiplexer()
        if session.delegate is None:
            session.delegate = demultiplexer
        elif session.delegate is not demultiplexer:
            # Tracked events would reach a registry that never saw the task
            raise ConfigurationError(
                "Session already has a different delegate; tracked requests would never resolve"
            )

        self.session = session
        self.demultiplexer = demultiplexer
        self.config = config or PipelineConfig()
        self.error_reporter = error_reporter or LoggingErrorReporter()
        super().__init__()

    @classmethod
    def create(
        cls,
        config: Optional[PipelineConfig] = None,
        error_reporter: Optional[ErrorReporter] = None,
    ) -> "RequestPipeline":
        """Build a pipeline over an AiohttpSession wired to a fresh demultiplexer."""
        config = config or PipelineConfig.from_env()
        demultiplexer = TaskDemultiplexer()
        session = AiohttpSession(config, delegate=demultiplexer)
        return cls(session, demultiplexer, config, error_reporter)

    async def __aenter__(self) -> "RequestPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.session.close()

    async def start(
        self,
        descriptor: RequestDescriptor,
        context: Any = None,
        *,
        executor: Optional[Executor] = None,
        progress: Optional[ProgressChannel] = None,
    ) -> Any:
        """
        Run one request through the pipeline.

        Args:
            descriptor: Endpoint description
            context: Opaque value passed to the cache and the codec
            executor: Run decoding on this executor instead of the calling task
            progress: Channel receiving Progress updates (progressive descriptors only)

        Returns:
            Decoded model, or the cached model on a cache hit

        Raises:
            TransportError: Transport failure, passed through unmodified
            NonHTTPResponseError: Transport completed without an HTTP response
            ServerFailureError: Status outside the accepted set (or the
                descriptor's error_mapper result)
            WrongContentTypeError: Unexpected Content-Type
            ParseError: Missing body or codec failure
            ValueError: progress given for a non-progressive descriptor
        """
        if progress is not None and not descriptor.progressive:
            raise ValueError(f"{descriptor.label} is not progressive; progress is not available")

        hit, cached = check_cache(descriptor, context, self.config)
        if hit:
            return cached

        with log_context(request_id=generate_request_id(), endpoint=descriptor.label):
            request = build_transport_request(descriptor, self.config)
            data, response = await self._execute(descriptor, request, progress)

            try:
                validate_status(descriptor, response, data)
            except Exception:
                metrics.record_outcome(request.method, "http_error")
                raise

            try:
                validate_content_type(descriptor, response, data)
                payload = extract_payload(response, data)
            except RequestError as e:
                metrics.record_outcome(request.method, "validation_error")
                self._log(
                    logging.WARNING,
                    "Response failed validation",
                    http_method=request.method,
                    url=request.url,
                    http_status=response.status,
                    content_type=response.content_type,
                    error_message=str(e),
                )
                raise

            try:
                model = await self._decode(descriptor, payload, context, executor)
            except PipelineError as e:
                metrics.record_outcome(request.method, "decode_error")
                self._log_exception(
                    e, "Response decoding failed", level=logging.WARNING, url=request.url
                )
                raise

            metrics.record_outcome(request.method, "success")
            return model

    async def _execute(
        self,
        descriptor: RequestDescriptor,
        request: TransportRequest,
        progress: Optional[ProgressChannel],
    ) -> Tuple[Optional[bytes], TransportResponse]:
        """Dispatch and record timing, volume and transport failures."""
        started = time.perf_counter()
        metrics.requests_in_flight.inc()
        try:
            data, response = await self._dispatch(descriptor, request, progress)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._transport_failed(descriptor, request, e)
            raise
        finally:
            metrics.requests_in_flight.dec()

        elapsed = time.perf_counter() - started
        size = len(data) if data else 0
        metrics.request_duration_seconds.labels(method=request.method).observe(elapsed)
        metrics.response_bytes_total.labels(method=request.method).inc(size)
        self._response_received(descriptor, request, response, data, elapsed)
        return data, response

    async def _dispatch(
        self,
        descriptor: RequestDescriptor,
        request: TransportRequest,
        progress: Optional[ProgressChannel],
    ) -> Tuple[Optional[bytes], TransportResponse]:
        if self.config.simulate_offline:
            raise TransportError(
                TransportErrorCode.NOT_CONNECTED_TO_INTERNET,
                message="Network disabled by SIMULATE_NO_NETWORK",
            )

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def on_complete(
            data: Optional[bytes], response: Optional[Any], error: Optional[BaseException]
        ) -> None:
            loop.call_soon_threadsafe(_resolve, future, data, response, error)

        if descriptor.progressive:
            tracker = ProgressTracker(on_complete, progress)
            task = self.session.issue_tracked(request)
            self.demultiplexer.track(task, tracker)
        else:
            task = self.session.issue_one_shot(request, on_complete)

        task.resume()
        try:
            return await future
        except asyncio.CancelledError:
            task.cancel()
            raise

    async def _decode(
        self,
        descriptor: RequestDescriptor,
        payload: bytes,
        context: Any,
        executor: Optional[Executor],
    ) -> Any:
        codec = descriptor.codec
        try:
            if executor is None:
                return codec.decode(payload, context)
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(executor, codec.decode, payload, context)
        except PipelineError:
            raise
        except Exception as e:
            raise ParseError(f"Could not decode {descriptor.label} response", cause=e) from e

    def _response_received(
        self,
        descriptor: RequestDescriptor,
        request: TransportRequest,
        response: TransportResponse,
        data: Optional[bytes],
        elapsed: float,
    ) -> None:
        fields: Dict[str, Any] = {
            "http_method": request.method,
            "url": request.url,
            "http_status": response.status,
            "bytes_received": len(data) if data else 0,
            "duration_ms": round(elapsed * 1000, 2),
        }
        if response.status in descriptor.success_status_codes:
            self._log(logging.DEBUG, "Request finished", **fields)
            return

        self._log(logging.WARNING, "Request rejected", **fields)
        self._report(
            f"{descriptor.label} {response.status}",
            {
                "url": sanitize_url(request.url),
                "request_body": body_text(request.body),
                "response": body_text(data),
            },
        )

    def _transport_failed(
        self, descriptor: RequestDescriptor, request: TransportRequest, exc: BaseException
    ) -> None:
        transient = is_transient_error(exc)
        metrics.record_outcome(request.method, "transport_error")
        fields: Dict[str, Any] = {
            "http_method": request.method,
            "url": request.url,
            "transient": transient,
        }
        if isinstance(exc, TransportError):
            metrics.record_transport_error(exc.code.value, transient)
            fields["error_code"] = exc.code.value

        if transient:
            self._log(logging.DEBUG, f"Transient transport failure: {exc}", **fields)
            return

        self._log_exception(
            exc, "Request failed", level=logging.WARNING, include_traceback=False, **fields
        )
        self._report(
            f"{descriptor.label} network error",
            {"error": str(exc), "url": sanitize_url(request.url)},
        )

    def _report(self, message: str, fields: Dict[str, Any]) -> None:
        try:
            self.error_reporter(message, fields)
        except Exception as e:
            self._log_exception(e, "Error reporter failed", level=logging.WARNING)


_default_pipeline: Optional[RequestPipeline] = None
_default_lock = threading.Lock()


def get_default_pipeline() -> RequestPipeline:
    """Shared pipeline, built from the environment on first use."""
    global _default_pipeline
    with _default_lock:
        if _default_pipeline is None:
            _default_pipeline = RequestPipeline.create(PipelineConfig.from_env())
        return _default_pipeline


def set_default_pipeline(pipeline: Optional[RequestPipeline]) -> Optional[RequestPipeline]:
    """
    Replace the shared pipeline and return the previous one.

    Intended for tests; swap before any concurrent request activity. Passing
    None makes the next get_default_pipeline() rebuild from the environment.
    """
    global _default_pipeline
    with _default_lock:
        previous = _default_pipeline
        _default_pipeline = pipeline
        return previous


async def start(
    descriptor: RequestDescriptor,
    context: Any = None,
    *,
    executor: Optional[Executor] = None,
    progress: Optional[ProgressChannel] = None,
) -> Any:
    """Run a descriptor through the shared pipeline."""
    return await get_default_pipeline().start(
        descriptor, context, executor=executor, progress=progress
    )
