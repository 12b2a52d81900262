"""
End-to-end tests for RequestPipeline over a StubSession.

Covers:
- Decoding, status and content-type validation
- Transport failure pass-through and transient/non-transient reporting
- Progressive transfers and progress updates
- Cache short-circuit
- Executor decoding, cancellation and the shared default pipeline
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from request_pipeline.cache import InMemoryResponseCache
from request_pipeline.config import PipelineConfig
from request_pipeline.errors import (
    ConfigurationError,
    NonHTTPResponseError,
    ParseError,
    ServerFailureError,
    TrackerStateError,
    TransportError,
    TransportErrorCode,
    WrongContentTypeError,
)
from request_pipeline.pipeline import orchestrator
from request_pipeline.pipeline.orchestrator import RequestPipeline
from request_pipeline.request.codec import CallableCodec
from request_pipeline.request.descriptor import RequestDescriptor
from request_pipeline.session.base import InFlightTask, Session, TaskState
from request_pipeline.testing import StubNotAllowedError, StubRequest, StubSession
from request_pipeline.tracking.demultiplexer import TaskDemultiplexer
from request_pipeline.tracking.progress import Progress, ProgressChannel

from conftest import TEST_URL, RecordingReporter

GET_TEST = StubRequest.get(TEST_URL)


def make_descriptor(**fields):
    fields.setdefault("name", "TestRequest")
    fields.setdefault("base_url", TEST_URL)
    return RequestDescriptor(**fields)


class ManualTask(InFlightTask):
    """Task whose outcome is delivered by the test."""

    def __init__(self, on_complete=None):
        super().__init__()
        self.on_complete = on_complete
        self.cancelled = False

    def resume(self):
        self.state = TaskState.RUNNING

    def cancel(self):
        self.cancelled = True
        self.state = TaskState.CANCELLED


class ManualSession(Session):
    """Session that never answers on its own."""

    def __init__(self):
        super().__init__()
        self.tasks = []

    def issue_one_shot(self, request, on_complete):
        task = ManualTask(on_complete)
        self.tasks.append(task)
        return task

    def issue_tracked(self, request):
        task = ManualTask()
        self.tasks.append(task)
        return task


class TestPipelineResponses:
    """Status, content type and decoding."""

    @pytest.mark.asyncio
    async def test_success_decodes_body(self, pipeline, stub_session, reporter):
        stub_session.allow(GET_TEST, status=200, body="1")

        assert await pipeline.start(make_descriptor()) == 1
        assert reporter.reports == []

    @pytest.mark.asyncio
    async def test_server_failure(self, pipeline, stub_session, reporter):
        stub_session.allow(GET_TEST, status=500, body="1")

        with pytest.raises(ServerFailureError) as exc_info:
            await pipeline.start(make_descriptor())

        assert exc_info.value.status_code == 500
        assert reporter.reports == [
            (
                "TestRequest 500",
                {"url": TEST_URL, "request_body": "", "response": "1"},
            )
        ]

    @pytest.mark.asyncio
    async def test_rejected_status_reports_request_body(self, pipeline, stub_session, reporter):
        stub_session.allow(StubRequest.post(TEST_URL), status=422, body=b"\xff")

        with pytest.raises(ServerFailureError):
            await pipeline.start(make_descriptor(method="POST", body=b'{"a":1}'))

        message, fields = reporter.reports[0]
        assert message == "TestRequest 422"
        assert fields["request_body"] == '{"a":1}'
        assert fields["response"] == "<not UTF-8>"

    @pytest.mark.asyncio
    async def test_custom_error_mapper(self, pipeline, stub_session):
        class DomainError(Exception):
            def __init__(self, status, body):
                super().__init__(status)
                self.status = status
                self.body = body

        stub_session.allow(GET_TEST, status=500, body="{}")
        descriptor = make_descriptor(error_mapper=DomainError)

        with pytest.raises(DomainError) as exc_info:
            await pipeline.start(descriptor)

        assert exc_info.value.status == 500
        assert exc_info.value.body == b"{}"

    @pytest.mark.asyncio
    async def test_wrong_content_type(self, pipeline, stub_session, reporter):
        stub_session.allow(GET_TEST, status=200, headers={"Content-Type": "text/html"}, body="a")

        with pytest.raises(WrongContentTypeError):
            await pipeline.start(make_descriptor())
        assert reporter.reports == []

    @pytest.mark.asyncio
    async def test_charset_qualified_content_type(self, pipeline, stub_session):
        stub_session.allow(
            GET_TEST,
            status=200,
            headers={"Content-Type": "application/json; charset=utf-8"},
            body='{"a": 1}',
        )
        assert await pipeline.start(make_descriptor()) == {"a": 1}

    @pytest.mark.asyncio
    async def test_empty_response_with_zero_length(self, pipeline, stub_session):
        stub_session.allow(GET_TEST, status=204, body="")
        descriptor = make_descriptor(codec=CallableCodec(lambda data, context: 1))

        assert await pipeline.start(descriptor) == 1

    @pytest.mark.asyncio
    async def test_undecodable_body_raises_parse_error(self, pipeline, stub_session, reporter):
        stub_session.allow(GET_TEST, status=200, body="a")

        with pytest.raises(ParseError) as exc_info:
            await pipeline.start(make_descriptor())

        assert exc_info.value.cause is not None
        assert reporter.reports == []

    @pytest.mark.asyncio
    async def test_context_reaches_codec(self, pipeline, stub_session):
        stub_session.allow(GET_TEST, status=200, body="1")
        descriptor = make_descriptor(codec=CallableCodec(lambda data, context: (data, context)))

        assert await pipeline.start(descriptor, "ctx") == (b"1", "ctx")

    @pytest.mark.asyncio
    async def test_decodes_on_executor(self, pipeline, stub_session):
        stub_session.allow(GET_TEST, status=200, body="1")
        descriptor = make_descriptor(
            codec=CallableCodec(lambda data, context: threading.get_ident())
        )

        with ThreadPoolExecutor(max_workers=1) as executor:
            decoded_on = await pipeline.start(descriptor, executor=executor)

        assert decoded_on != threading.get_ident()


class TestPipelineTransportFailures:
    """Transport failures pass through; only non-transient ones are reported."""

    @pytest.mark.asyncio
    async def test_transient_failure_not_reported(self, pipeline, stub_session, reporter, caplog):
        error = TransportError(TransportErrorCode.CANNOT_FIND_HOST)
        stub_session.allow_error(GET_TEST, error)

        with caplog.at_level(logging.DEBUG, logger="request_pipeline"):
            with pytest.raises(TransportError) as exc_info:
                await pipeline.start(make_descriptor())

        assert exc_info.value is error
        assert exc_info.value.is_transient
        assert reporter.reports == []
        assert "Transient transport failure" in caplog.text

    @pytest.mark.asyncio
    async def test_non_transient_failure_reported_once(self, pipeline, stub_session, reporter):
        error = TransportError(TransportErrorCode.SERVER_CERTIFICATE_UNTRUSTED)
        stub_session.allow_error(GET_TEST, error)

        with pytest.raises(TransportError) as exc_info:
            await pipeline.start(make_descriptor())

        assert not exc_info.value.is_transient
        assert reporter.reports == [
            ("TestRequest network error", {"error": str(error), "url": TEST_URL})
        ]

    @pytest.mark.asyncio
    async def test_unmatched_stub_is_reported(self, pipeline, reporter):
        with pytest.raises(StubNotAllowedError):
            await pipeline.start(make_descriptor())
        assert len(reporter.reports) == 1

    @pytest.mark.asyncio
    async def test_simulated_offline_skips_session(self, stub_session, demultiplexer, reporter):
        pipeline = RequestPipeline(
            stub_session,
            demultiplexer=demultiplexer,
            config=PipelineConfig(simulate_offline=True),
            error_reporter=reporter,
        )
        stub_session.allow(GET_TEST, status=200, body="1")

        with pytest.raises(TransportError) as exc_info:
            await pipeline.start(make_descriptor())

        assert exc_info.value.code == TransportErrorCode.NOT_CONNECTED_TO_INTERNET
        assert stub_session.calls == []
        assert reporter.reports == []

    @pytest.mark.asyncio
    async def test_non_http_response(self, config, reporter):
        session = ManualSession()
        pipeline = RequestPipeline(session, config=config, error_reporter=reporter)

        running = asyncio.create_task(pipeline.start(make_descriptor()))
        await asyncio.sleep(0)
        session.tasks[0].on_complete(b"1", object(), None)

        with pytest.raises(NonHTTPResponseError):
            await running
        assert reporter.reports[0][0] == "TestRequest network error"

    @pytest.mark.asyncio
    async def test_second_resolution_ignored(self, config, reporter):
        session = ManualSession()
        pipeline = RequestPipeline(session, config=config, error_reporter=reporter)

        running = asyncio.create_task(pipeline.start(make_descriptor()))
        await asyncio.sleep(0)
        task = session.tasks[0]
        task.on_complete(None, None, TransportError(TransportErrorCode.TIMED_OUT))
        task.on_complete(b"1", None, None)

        with pytest.raises(TransportError):
            await running

    @pytest.mark.asyncio
    async def test_cancellation_cancels_transport_task(self, config, reporter):
        session = ManualSession()
        pipeline = RequestPipeline(session, config=config, error_reporter=reporter)

        running = asyncio.create_task(pipeline.start(make_descriptor()))
        await asyncio.sleep(0)
        running.cancel()

        with pytest.raises(asyncio.CancelledError):
            await running
        assert session.tasks[0].cancelled
        assert reporter.reports == []

    @pytest.mark.asyncio
    async def test_reporter_failure_does_not_change_outcome(self, stub_session, config, caplog):
        def broken_reporter(message, fields):
            raise RuntimeError("sink down")

        pipeline = RequestPipeline(stub_session, config=config, error_reporter=broken_reporter)
        stub_session.allow(GET_TEST, status=500, body="1")

        with pytest.raises(ServerFailureError):
            await pipeline.start(make_descriptor())
        assert "Error reporter failed" in caplog.text


class TestProgressiveRequests:
    """Tracked dispatch through the demultiplexer."""

    @pytest.mark.asyncio
    async def test_progress_updates_and_result(self, pipeline, stub_session, demultiplexer):
        stub_session.allow(GET_TEST, status=200, body="[1,2,3]")
        channel = ProgressChannel()
        updates = []
        channel.subscribe(updates.append)

        result = await pipeline.start(make_descriptor(progressive=True), progress=channel)

        assert result == [1, 2, 3]
        assert updates == [Progress(4, 7), Progress(7, 7)]
        assert channel.closed
        assert len(demultiplexer) == 0

    @pytest.mark.asyncio
    async def test_progressive_failure_removes_entry(self, pipeline, stub_session, demultiplexer):
        stub_session.allow_error(GET_TEST, TransportError(TransportErrorCode.NETWORK_CONNECTION_LOST))

        with pytest.raises(TransportError):
            await pipeline.start(make_descriptor(progressive=True))
        assert len(demultiplexer) == 0

    @pytest.mark.asyncio
    async def test_progressive_validation(self, pipeline, stub_session):
        stub_session.allow(GET_TEST, status=404, body="missing")

        with pytest.raises(ServerFailureError):
            await pipeline.start(make_descriptor(progressive=True))

    @pytest.mark.asyncio
    async def test_progress_requires_progressive_descriptor(self, pipeline, stub_session):
        with pytest.raises(ValueError):
            await pipeline.start(make_descriptor(), progress=ProgressChannel())
        assert stub_session.calls == []

    @pytest.mark.asyncio
    async def test_concurrent_requests_from_delivery_threads(self, demultiplexer, config):
        session = StubSession(delegate=demultiplexer, chunk_size=2, threaded=True)
        session.allow(GET_TEST, status=200, body='"abcdefgh"')
        pipeline = RequestPipeline(
            session, demultiplexer=demultiplexer, config=config, error_reporter=RecordingReporter()
        )
        descriptors = [make_descriptor(progressive=(n % 2 == 0)) for n in range(40)]

        results = await asyncio.wait_for(
            asyncio.gather(*(pipeline.start(d) for d in descriptors)), timeout=10
        )

        assert results == ["abcdefgh"] * 40
        assert len(demultiplexer) == 0


class TestCacheGate:

    @pytest.mark.asyncio
    async def test_cache_hit_skips_session(self, pipeline, stub_session):
        cache = InMemoryResponseCache()
        cache.store("TestRequest", 1)

        assert await pipeline.start(make_descriptor(cache=cache)) == 1
        assert stub_session.calls == []

    @pytest.mark.asyncio
    async def test_cache_returns_value_without_decoding(self, pipeline, stub_session):
        cache = InMemoryResponseCache()
        sentinel = object()
        cache.store("TestRequest", sentinel, context="ctx")
        descriptor = make_descriptor(
            cache=cache, codec=CallableCodec(lambda data, context: pytest.fail("decoded"))
        )

        assert await pipeline.start(descriptor, "ctx") is sentinel
        assert stub_session.calls == []

    @pytest.mark.asyncio
    async def test_cache_miss_goes_to_network(self, pipeline, stub_session):
        stub_session.allow(GET_TEST, status=200, body="2")
        descriptor = make_descriptor(cache=InMemoryResponseCache())

        assert await pipeline.start(descriptor) == 2
        assert len(stub_session.calls) == 1

    @pytest.mark.asyncio
    async def test_disabled_cache_goes_to_network(self, stub_session, demultiplexer, reporter):
        pipeline = RequestPipeline(
            stub_session,
            demultiplexer=demultiplexer,
            config=PipelineConfig(cache_enabled=False),
            error_reporter=reporter,
        )
        cache = InMemoryResponseCache()
        cache.store("TestRequest", 1)
        stub_session.allow(GET_TEST, status=200, body="2")

        assert await pipeline.start(make_descriptor(cache=cache)) == 2


class TestDefaultPipeline:

    @pytest.mark.asyncio
    async def test_module_start_uses_default_pipeline(self, pipeline, stub_session):
        stub_session.allow(GET_TEST, status=200, body="1")
        previous = orchestrator.set_default_pipeline(pipeline)
        try:
            assert orchestrator.get_default_pipeline() is pipeline
            assert await orchestrator.start(make_descriptor()) == 1
        finally:
            orchestrator.set_default_pipeline(previous)

    def test_default_pipeline_built_from_environment(self, monkeypatch):
        monkeypatch.setenv("IGNORE_REQUEST_CACHE", "1")
        previous = orchestrator.set_default_pipeline(None)
        try:
            pipeline = orchestrator.get_default_pipeline()
            assert pipeline.config.cache_enabled is False
            assert pipeline.session.delegate is pipeline.demultiplexer
            assert orchestrator.get_default_pipeline() is pipeline
        finally:
            orchestrator.set_default_pipeline(previous)

    def test_installs_demultiplexer_as_delegate(self, config):
        session = StubSession()
        pipeline = RequestPipeline(session, config=config)
        assert session.delegate is pipeline.demultiplexer


class TestDemultiplexerInjection:
    """The demultiplexer a pipeline registers with is the one the session reports to."""

    def test_conflicting_demultiplexer_rejected(self, config):
        session = StubSession(delegate=TaskDemultiplexer())

        with pytest.raises(ConfigurationError, match="different delegate"):
            RequestPipeline(session, demultiplexer=TaskDemultiplexer(), config=config)

    @pytest.mark.asyncio
    async def test_session_delegate_reused_for_tracked_requests(self, config, reporter):
        demultiplexer = TaskDemultiplexer()
        session = StubSession(delegate=demultiplexer)
        session.allow(GET_TEST, status=200, body="[1]")
        pipeline = RequestPipeline(session, config=config, error_reporter=reporter)

        assert pipeline.demultiplexer is demultiplexer
        result = await asyncio.wait_for(pipeline.start(make_descriptor(progressive=True)), 1)
        assert result == [1]
        assert len(demultiplexer) == 0

    @pytest.mark.asyncio
    async def test_out_of_order_data_fails_the_request(self, config, reporter):
        session = ManualSession()
        pipeline = RequestPipeline(session, config=config, error_reporter=reporter)

        running = asyncio.create_task(pipeline.start(make_descriptor(progressive=True)))
        await asyncio.sleep(0)
        task = session.tasks[0]
        with pytest.raises(TrackerStateError) as exc_info:
            session.delegate.did_receive_data(task, b"early")
        session.delegate.did_complete(task, exc_info.value)

        with pytest.raises(TrackerStateError):
            await running
        assert len(pipeline.demultiplexer) == 0
        assert reporter.reports[0][0] == "TestRequest network error"
