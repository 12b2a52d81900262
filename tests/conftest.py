"""
pytest configuration for request_pipeline tests.

Adds src directory to Python path for imports and provides a pipeline wired
to an in-memory StubSession.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from request_pipeline.config import PipelineConfig  # noqa: E402
from request_pipeline.pipeline.orchestrator import RequestPipeline  # noqa: E402
from request_pipeline.testing import StubSession  # noqa: E402
from request_pipeline.tracking.demultiplexer import TaskDemultiplexer  # noqa: E402

TEST_URL = "https://api/test"


class RecordingReporter:
    """ErrorReporter that keeps every report for assertions."""

    def __init__(self):
        self.reports = []

    def __call__(self, message, fields):
        self.reports.append((message, fields))


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Tests never inherit pipeline toggles from the outer environment."""
    for name in (
        "SIMULATE_NO_NETWORK",
        "IGNORE_REQUEST_CACHE",
        "REQUEST_BASE_URL",
        "REQUEST_TIMEOUT_SECONDS",
        "REQUEST_MAX_CONNECTIONS",
        "REQUEST_MAX_CONNECTIONS_PER_HOST",
        "REQUEST_CHUNK_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def config():
    return PipelineConfig()


@pytest.fixture
def demultiplexer():
    return TaskDemultiplexer()


@pytest.fixture
def stub_session(demultiplexer):
    return StubSession(delegate=demultiplexer)


@pytest.fixture
def pipeline(stub_session, demultiplexer, config, reporter):
    return RequestPipeline(
        stub_session, demultiplexer=demultiplexer, config=config, error_reporter=reporter
    )
