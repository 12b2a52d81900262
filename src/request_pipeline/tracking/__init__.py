"""
Progress tracking for progressive transfers.

Provides:
- ProgressTracker: per-request accumulator and state machine
- ProgressChannel: passthrough channel of Progress updates
- TaskDemultiplexer: thread-safe task -> tracker registry (SessionDelegate)
"""

from request_pipeline.tracking.demultiplexer import TaskDemultiplexer
from request_pipeline.tracking.progress import (
    Progress,
    ProgressChannel,
    ProgressTracker,
    TrackerState,
)

__all__ = [
    "TaskDemultiplexer",
    "ProgressTracker",
    "ProgressChannel",
    "Progress",
    "TrackerState",
]
