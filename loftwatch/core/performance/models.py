"""Performance monitoring data models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class PerformanceSample:
    """A single timed reservation operation."""

    operation: str
    duration: int  # milliseconds
    timestamp: int  # epoch milliseconds
    success: bool
    error_type: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TimerHandle:
    """An open timing span between start_timing and end_timing."""

    id: str
    start_time: int  # epoch milliseconds
    context: Dict[str, Any] = field(default_factory=dict)


class OperationStats(BaseModel):
    """Aggregated statistics for one operation type."""

    count: int = Field(..., description="Samples recorded for the operation")
    average_time: float = Field(..., description="Average duration in ms")
    success_rate: float = Field(..., description="Successful samples percentage")
    error_types: Dict[str, int] = Field(
        default_factory=dict, description="Failure count per error type"
    )


class SlowOperation(BaseModel):
    """One of the slowest samples of a report window."""

    operation: str
    duration: int
    timestamp: int
    context: Dict[str, Any] = Field(default_factory=dict)


class CachePerformance(BaseModel):
    """Cache hit/miss statistics derived from sample contexts."""

    hit_rate: float = 0.0
    average_hit_time: float = 0.0
    average_miss_time: float = 0.0


class PerformanceReport(BaseModel):
    """Performance report for a time window."""

    time_range: str
    total_operations: int = 0
    success_rate: float = 0.0
    average_response_time: float = 0.0
    p95_response_time: int = 0
    p99_response_time: int = 0
    operation_breakdown: Dict[str, OperationStats] = Field(default_factory=dict)
    slowest_operations: List[SlowOperation] = Field(default_factory=list)
    cache_performance: CachePerformance = Field(default_factory=CachePerformance)
    recommendations: List[str] = Field(default_factory=list)


class RealTimeStats(BaseModel):
    """Rolling statistics for the last few minutes."""

    active_timers: int
    recent_operations: int
    average_response_time: float
    error_rate: float
    cache_hit_rate: float
