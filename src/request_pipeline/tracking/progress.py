"""
Progress tracking for progressive transfers.

A ProgressTracker accumulates one response's head and body as the session
streams it, publishes (received, total) updates on a ProgressChannel and
resolves the request exactly once.
"""

import asyncio
import threading
from enum import Enum
from typing import AsyncIterator, Callable, List, NamedTuple, Optional

from request_pipeline.errors import TrackerStateError
from request_pipeline.session.base import CompletionHandler, TransportResponse


class Progress(NamedTuple):
    """Bytes received so far and declared total (0 when unknown)."""

    received: int
    total: int

    @property
    def fraction(self) -> Optional[float]:
        if self.total <= 0:
            return None
        return min(self.received / self.total, 1.0)


class ProgressChannel:
    """
    Passthrough channel of Progress updates.

    Listeners only see updates sent after they subscribe. Once closed, the
    channel rejects further sends and ends every async iteration.

    Example:
        channel = ProgressChannel()
        task = asyncio.create_task(pipeline.start(descriptor, progress=channel))
        async for update in channel:
            print(f"{update.received}/{update.total}")
        result = await task
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: List[Callable[[Progress], None]] = []
        self._close_listeners: List[Callable[[], None]] = []
        self._closed = False
        self.last: Optional[Progress] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(
        self,
        on_progress: Callable[[Progress], None],
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        """Register listeners; on_close fires immediately if already closed."""
        with self._lock:
            if not self._closed:
                self._listeners.append(on_progress)
                if on_close is not None:
                    self._close_listeners.append(on_close)
                return
        if on_close is not None:
            on_close()

    def send(self, progress: Progress) -> None:
        with self._lock:
            if self._closed:
                raise TrackerStateError("Progress sent on a closed channel")
            self.last = progress
            listeners = list(self._listeners)
        for listener in listeners:
            listener(progress)

    def close(self) -> None:
        """Close the channel. Closing twice is a no-op."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            close_listeners = list(self._close_listeners)
            self._listeners.clear()
            self._close_listeners.clear()
        for listener in close_listeners:
            listener()

    def __aiter__(self) -> AsyncIterator[Progress]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Progress]:
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[Optional[Progress]]" = asyncio.Queue()

        def _forward(item: Optional[Progress]) -> None:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, item)
            except RuntimeError:
                pass  # Loop already closed; nobody is iterating

        self.subscribe(_forward, lambda: _forward(None))
        while True:
            item = await queue.get()
            if item is None:
                return
            yield item


class TrackerState(Enum):
    REGISTERED = "registered"
    HEADERS_RECEIVED = "headers_received"
    RECEIVING_DATA = "receiving_data"
    COMPLETED = "completed"
    FAILED = "failed"


_TERMINAL_STATES = (TrackerState.COMPLETED, TrackerState.FAILED)


class ProgressTracker:
    """
    Per-request accumulator driven by session events.

    State machine:
        REGISTERED -> HEADERS_RECEIVED (0+) -> RECEIVING_DATA (0+)
                   -> COMPLETED | FAILED

    Exactly one terminal event is accepted. Data before headers and headers
    after data raise TrackerStateError without publishing progress. The channel
    is closed before the completion handler runs.
    """

    def __init__(self, on_complete: CompletionHandler, channel: Optional[ProgressChannel] = None):
        self._on_complete = on_complete
        self._lock = threading.Lock()
        self._data = bytearray()
        self.response: Optional[TransportResponse] = None
        self.progress = channel if channel is not None else ProgressChannel()
        self.state = TrackerState.REGISTERED

    @property
    def data(self) -> bytes:
        with self._lock:
            return bytes(self._data)

    def _require_live(self, event: str) -> None:
        if self.state in _TERMINAL_STATES:
            raise TrackerStateError(f"{event} after tracker reached {self.state.value}")

    def receive_response(self, response: TransportResponse) -> None:
        with self._lock:
            self._require_live("Response")
            if self.state == TrackerState.RECEIVING_DATA:
                raise TrackerStateError("Response received after body data")
            self.response = response
            self.state = TrackerState.HEADERS_RECEIVED

    def receive_data(self, chunk: bytes) -> None:
        with self._lock:
            self._require_live("Data")
            if self.response is None:
                raise TrackerStateError("Body data received before response headers")
            self._data.extend(chunk)
            self.state = TrackerState.RECEIVING_DATA
            update = Progress(
                received=len(self._data), total=self.response.content_length or 0
            )
        self.progress.send(update)

    def complete(self) -> None:
        with self._lock:
            self._require_live("Completion")
            self.state = TrackerState.COMPLETED
            data = bytes(self._data)
            response = self.response
        self.progress.close()
        self._on_complete(data, response, None)

    def fail(self, error: BaseException) -> None:
        with self._lock:
            self._require_live("Failure")
            self.state = TrackerState.FAILED
        self.progress.close()
        self._on_complete(None, None, error)
