"""
Response caches and the pre-dispatch cache gate.

A cache hit substitutes the whole pipeline: no transport request is issued
and the cached model is returned as-is, without validation or decoding.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Hashable, Optional, Tuple

from request_pipeline import metrics
from request_pipeline.logging.utilities import log_with_context

if TYPE_CHECKING:
    from request_pipeline.config import PipelineConfig
    from request_pipeline.request.descriptor import RequestDescriptor

logger = logging.getLogger(__name__)


class ResponseCache(ABC):
    """Source of previously computed models, keyed by descriptor identity."""

    @abstractmethod
    def lookup(self, key: str, context: Any = None) -> Optional[Any]:
        """Return the cached model for (key, context), or None on a miss."""


class InMemoryResponseCache(ResponseCache):
    """
    Process-local cache suitable for development and tests.

    Entries are keyed by (key, context); context must be hashable. Safe for
    concurrent use from multiple threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[str, Hashable], Any] = {}

    def lookup(self, key: str, context: Any = None) -> Optional[Any]:
        with self._lock:
            return self._entries.get((key, context))

    def store(self, key: str, value: Any, context: Any = None) -> None:
        with self._lock:
            self._entries[(key, context)] = value

    def invalidate(self, key: str, context: Any = None) -> None:
        with self._lock:
            self._entries.pop((key, context), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def check_cache(
    descriptor: "RequestDescriptor",
    context: Any,
    config: "PipelineConfig",
) -> Tuple[bool, Any]:
    """
    Consult the descriptor's cache before any request is built.

    Args:
        descriptor: Request descriptor (its cache may be None)
        context: Caller context threaded through to the cache
        config: Pipeline configuration (cache_enabled toggle)

    Returns:
        (hit, value); value is meaningful only when hit is True
    """
    if descriptor.cache is None or not config.cache_enabled:
        return False, None

    value = descriptor.cache.lookup(descriptor.cache_key, context)
    if value is None:
        return False, None

    metrics.cache_hits_total.inc()
    log_with_context(
        logger,
        logging.DEBUG,
        "Returning cached response",
        cache_key=descriptor.cache_key,
    )
    return True, value
