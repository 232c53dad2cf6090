"""
In-memory memoization of beat analysis, keyed by audio resource.

The cache is owned by the application session and injected wherever
analysis is needed. Concurrent requests for a key that is not yet
computed share a single computation.
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable

from beatsync.core.onset import AnalysisResult

logger = logging.getLogger(__name__)

ComputeFn = Callable[[], Awaitable[AnalysisResult]]


@dataclass
class CacheStats:
    """Counters for cache behaviour, mostly useful in logs and tests."""

    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    failures: int = 0
    evictions: int = 0


class AnalysisCache:
    """
    Write-once store of AnalysisResult per key with in-flight coalescing.

    A stored result is never replaced. A failed computation stores
    nothing, so a later call for the same key computes again.
    """

    def __init__(self, max_entries: int | None = None):
        """
        Initialize the cache.

        Args:
            max_entries: Optional bound; the least recently used entry is
                evicted once it is exceeded. None keeps every entry for the
                lifetime of the session.
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.stats = CacheStats()
        self._results: OrderedDict[str, AnalysisResult] = OrderedDict()
        self._in_flight: dict[str, asyncio.Task] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._results

    def __len__(self) -> int:
        return len(self._results)

    def get(self, key: str) -> AnalysisResult | None:
        """Return the stored result for ``key`` without computing anything."""
        return self._results.get(key)

    def in_flight(self, key: str) -> bool:
        """Whether a computation for ``key`` is currently running."""
        return key in self._in_flight

    async def get_or_compute(self, key: str, compute_fn: ComputeFn) -> AnalysisResult:
        """
        Return the result for ``key``, computing it at most once.

        Args:
            key: Audio resource key (see ``resource_key``).
            compute_fn: Zero-argument callable returning an awaitable
                AnalysisResult. Only invoked when no result is stored and
                no computation is in flight.

        Raises:
            Whatever ``compute_fn`` raised. Every caller attached to the
            failed computation receives the same exception.
        """
        result = self._results.get(key)
        if result is not None:
            self.stats.hits += 1
            self._results.move_to_end(key)
            logger.debug("Analysis cache hit: %s", key)
            return result

        task = self._in_flight.get(key)
        if task is None:
            self.stats.misses += 1
            logger.debug("Analysis cache miss, computing: %s", key)
            task = asyncio.create_task(self._compute(key, compute_fn), name=f"analysis:{key}")
            task.add_done_callback(_consume_exception)
            self._in_flight[key] = task
        else:
            self.stats.coalesced += 1
            logger.debug("Attaching to in-flight analysis: %s", key)

        # Cancelling one caller must not cancel the shared computation
        return await asyncio.shield(task)

    async def _compute(self, key: str, compute_fn: ComputeFn) -> AnalysisResult:
        try:
            result = await compute_fn()
            if not isinstance(result, AnalysisResult):
                raise TypeError(
                    f"compute_fn must produce an AnalysisResult, got {type(result).__name__}"
                )
            self._store(key, result)
            return result
        except Exception as e:
            self.stats.failures += 1
            logger.warning("Analysis failed for %s: %s", key, e)
            raise
        finally:
            self._in_flight.pop(key, None)

    def _store(self, key: str, result: AnalysisResult) -> None:
        if key in self._results:
            return
        self._results[key] = result

        if self.max_entries is not None:
            while len(self._results) > self.max_entries:
                evicted, _ = self._results.popitem(last=False)
                self.stats.evictions += 1
                logger.debug("Evicted analysis for %s", evicted)

    def clear(self) -> None:
        """
        Drop every stored result.

        Computations already in flight keep running and store their
        result when they finish.
        """
        logger.debug("Clearing %d cached analyses", len(self._results))
        self._results.clear()


def _consume_exception(task: asyncio.Task) -> None:
    # Mark the exception as retrieved even when every waiter was cancelled
    if not task.cancelled():
        task.exception()
