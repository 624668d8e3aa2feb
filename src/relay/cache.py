import logging
import time
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from .text import normalize_query
from .types import ResolutionResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_CAPACITY = 100


class ResponseCache:
    """Time-expiring map from normalized query text to a resolved answer.

    Expired entries are swept only when a put pushes the entry count past
    ``capacity``; between sweeps the map may grow past it.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.capacity = capacity
        self._clock = clock
        self._store: Dict[str, Tuple[float, ResolutionResult]] = {}
        self._lock = Lock()

    def get(self, query_text: str) -> Optional[ResolutionResult]:
        key = normalize_query(query_text)
        now = self._clock()
        with self._lock:
            item = self._store.get(key)
            if item is None:
                return None
            stored_at, result = item
            if now - stored_at >= self.ttl_seconds:
                self._store.pop(key, None)
                return None
            return result

    def put(self, query_text: str, result: ResolutionResult) -> None:
        key = normalize_query(query_text)
        now = self._clock()
        with self._lock:
            self._store[key] = (now, result)
            if len(self._store) > self.capacity:
                self._sweep(now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (stored_at, _) in self._store.items() if now - stored_at >= self.ttl_seconds]
        for key in expired:
            del self._store[key]
        if expired:
            logger.info("Swept %d expired cache entries (%d remain)", len(expired), len(self._store))
