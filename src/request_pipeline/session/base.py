"""
Session capability.

A Session wraps a native transport. It creates in-flight tasks in a
suspended state; nothing is sent until the caller resumes the task. One-shot
tasks report through a completion callback. Tracked tasks report header,
data and terminal events to the session's delegate, keyed by task.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from multidict import CIMultiDict

# Called exactly once as on_complete(data, response, error)
CompletionHandler = Callable[[Optional[bytes], Optional[Any], Optional[BaseException]], None]


@dataclass
class TransportRequest:
    """Transport-level request built from a descriptor."""

    method: str
    url: str
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    body: Optional[bytes] = None
    body_stream: Optional[Any] = None


@dataclass(frozen=True)
class TransportResponse:
    """HTTP response head as reported by a session."""

    status: int
    headers: CIMultiDict
    url: str = ""

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")

    @property
    def content_length(self) -> Optional[int]:
        """Declared body length, or None when absent or unparseable."""
        raw = self.headers.get("Content-Length")
        if raw is None:
            return None
        try:
            value = int(raw)
        except ValueError:
            return None
        return value if value >= 0 else None


class TaskState(Enum):
    SUSPENDED = "suspended"
    RUNNING = "running"
    CANCELLED = "cancelled"


_task_ids = itertools.count(1)
_task_ids_lock = threading.Lock()


class InFlightTask(ABC):
    """
    Opaque handle for a dispatched transport task.

    Hashes by identity so it can key the demultiplexer registry.
    """

    def __init__(self):
        with _task_ids_lock:
            self.task_id = next(_task_ids)
        self.state = TaskState.SUSPENDED

    @abstractmethod
    def resume(self) -> None:
        """Start the transfer."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the transfer; reported as a CANCELLED transport failure."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} #{self.task_id} {self.state.value}>"


class SessionDelegate(ABC):
    """Receives lifecycle events for tracked tasks."""

    @abstractmethod
    def did_receive_response(self, task: InFlightTask, response: TransportResponse) -> None:
        ...

    @abstractmethod
    def did_receive_data(self, task: InFlightTask, data: bytes) -> None:
        ...

    @abstractmethod
    def did_complete(self, task: InFlightTask, error: Optional[BaseException]) -> None:
        ...


class Session(ABC):
    """Capability interface over a native transport."""

    def __init__(self, delegate: Optional[SessionDelegate] = None):
        self.delegate = delegate

    @abstractmethod
    def issue_one_shot(
        self, request: TransportRequest, on_complete: CompletionHandler
    ) -> InFlightTask:
        """Create a suspended task reporting through on_complete."""

    @abstractmethod
    def issue_tracked(self, request: TransportRequest) -> InFlightTask:
        """Create a suspended task reporting to the delegate."""

    async def close(self) -> None:
        """Release transport resources."""
