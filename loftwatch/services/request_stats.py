"""Process-wide HTTP request statistics."""

import time
from collections import deque
from dataclasses import dataclass
from typing import Deque

from loftwatch.models.stats import RequestStats


@dataclass(frozen=True)
class RequestSample:
    """Outcome of one handled request."""

    timestamp: float
    duration_ms: float
    status_code: int


class RequestStatsRecorder:
    """Rolling record of request durations and status codes."""

    def __init__(self, max_samples: int = 10000) -> None:
        self._samples: Deque[RequestSample] = deque(maxlen=max_samples)

    def record(self, duration_ms: float, status_code: int) -> None:
        self._samples.append(RequestSample(time.time(), duration_ms, status_code))

    def get_stats(self, window_ms: int) -> RequestStats:
        """Average latency, p95 and 5xx rate over the window."""
        cutoff = time.time() - window_ms / 1000
        recent = [s for s in self._samples if s.timestamp > cutoff]
        if not recent:
            return RequestStats()

        durations = sorted(s.duration_ms for s in recent)
        errors = sum(1 for s in recent if s.status_code >= 500)
        p95_index = min(int(len(durations) * 0.95), len(durations) - 1)
        return RequestStats(
            total_requests=len(recent),
            average_response_time=sum(durations) / len(durations),
            p95_response_time=durations[p95_index],
            error_rate=errors / len(recent) * 100,
        )

    def clear(self) -> None:
        self._samples.clear()
