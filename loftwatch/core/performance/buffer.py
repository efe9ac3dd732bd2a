"""Bounded in-memory storage for performance samples."""

import logging
from collections import deque
from typing import Deque, Iterator, List

from .models import PerformanceSample

logger = logging.getLogger(__name__)


class SampleBuffer:
    """Ring buffer of samples with oldest-first eviction.

    Appends past capacity drop the oldest sample. Not thread-safe: callers
    mutate it from the event loop only.
    """

    def __init__(self, capacity: int = 10000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._samples: Deque[PerformanceSample] = deque(maxlen=capacity)
        self.evicted = 0

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[PerformanceSample]:
        return iter(self._samples)

    def append(self, sample: PerformanceSample) -> None:
        """Store a sample, evicting the oldest one when full."""
        if len(self._samples) == self.capacity:
            self.evicted += 1
        self._samples.append(sample)

    def since(self, cutoff_ms: int) -> List[PerformanceSample]:
        """Samples with a timestamp strictly after the cutoff."""
        return [s for s in self._samples if s.timestamp > cutoff_ms]

    def evict_older_than(self, cutoff_ms: int) -> int:
        """Drop samples at or before the cutoff and return how many went."""
        before = len(self._samples)
        kept = [s for s in self._samples if s.timestamp > cutoff_ms]
        self._samples = deque(kept, maxlen=self.capacity)
        return before - len(self._samples)

    def clear(self) -> None:
        self._samples.clear()
        self.evicted = 0
