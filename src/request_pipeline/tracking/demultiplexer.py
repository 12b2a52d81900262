"""
Task demultiplexer.

Routes lifecycle events from a single session delegate to the tracker of the
logical request each task belongs to. The registry is the only shared mutable
structure in the engine and is guarded by a lock; tracker callbacks always
run outside it.
"""

import logging
import threading
from typing import Dict, Optional

from request_pipeline.errors import TrackerStateError
from request_pipeline.logging.utilities import LoggedClass
from request_pipeline.session.base import InFlightTask, SessionDelegate, TransportResponse
from request_pipeline.tracking.progress import ProgressTracker


class TaskDemultiplexer(LoggedClass, SessionDelegate):
    """
    Registry of in-flight task -> ProgressTracker.

    Usage:
        demultiplexer = TaskDemultiplexer()
        session = AiohttpSession(delegate=demultiplexer)

        tracker = ProgressTracker(on_complete)
        task = session.issue_tracked(request)
        demultiplexer.track(task, tracker)
        task.resume()

    Entries are removed on the terminal event, whether success or failure.
    Events for unknown tasks indicate a routing defect and are logged, not
    raised, since they arrive on the transport's delivery path.
    """

    log_component = "demultiplexer"

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Dict[InFlightTask, ProgressTracker] = {}
        super().__init__()

    def track(self, task: InFlightTask, tracker: ProgressTracker) -> None:
        """Register a tracker for a suspended task."""
        with self._lock:
            if task in self._active:
                raise TrackerStateError(f"Task #{task.task_id} is already tracked")
            self._active[task] = tracker
            count = len(self._active)
        self._log(logging.DEBUG, "Tracking task", task_id=task.task_id, tracked_tasks=count)

    def tracker_for(self, task: InFlightTask) -> Optional[ProgressTracker]:
        with self._lock:
            return self._active.get(task)

    def __len__(self) -> int:
        with self._lock:
            return len(self._active)

    def __contains__(self, task: object) -> bool:
        with self._lock:
            return task in self._active

    def _untracked(self, task: InFlightTask, event: str) -> None:
        self._log(
            logging.ERROR,
            f"Callback for untracked task ({event})",
            task_id=task.task_id,
        )

    def did_receive_response(self, task: InFlightTask, response: TransportResponse) -> None:
        tracker = self.tracker_for(task)
        if tracker is None:
            self._untracked(task, "response")
            return
        tracker.receive_response(response)

    def did_receive_data(self, task: InFlightTask, data: bytes) -> None:
        tracker = self.tracker_for(task)
        if tracker is None:
            self._untracked(task, "data")
            return
        tracker.receive_data(data)

    def did_complete(self, task: InFlightTask, error: Optional[BaseException]) -> None:
        with self._lock:
            tracker = self._active.pop(task, None)
            count = len(self._active)
        if tracker is None:
            self._untracked(task, "completion")
            return

        self._log(
            logging.DEBUG,
            "Task finished",
            task_id=task.task_id,
            tracked_tasks=count,
            transient=None if error is None else getattr(error, "is_transient", False),
        )
        if error is not None:
            tracker.fail(error)
        else:
            tracker.complete()
