"""Aggregation of performance samples into reports."""

import math
from typing import Dict, List, Sequence

from .models import (
    CachePerformance,
    OperationStats,
    PerformanceReport,
    PerformanceSample,
    SlowOperation,
)
from .thresholds import OperationThresholds

# Report tuning
SLOWEST_OPERATIONS_LIMIT = 10
SLOW_AVERAGE_FACTOR = 1.5
MIN_SUCCESS_RATE = 95.0
MIN_CACHE_HIT_RATE = 70.0


def format_time_range(window_ms: int) -> str:
    """Human readable window length."""
    hours = window_ms / (1000 * 60 * 60)
    if hours < 1:
        return f"{round(window_ms / (1000 * 60))} minutes"
    if hours < 24:
        return f"{round(hours)} hours"
    return f"{round(hours / 24)} days"


def nearest_rank(sorted_values: Sequence[int], quantile: float) -> int:
    """Nearest-rank percentile lookup, no interpolation.

    Index is floor(quantile * n), clamped to the last element.
    """
    if not sorted_values:
        return 0
    # epsilon absorbs float error such as 0.95 * 100 == 94.999...
    rank = math.floor(len(sorted_values) * quantile + 1e-9)
    index = min(rank, len(sorted_values) - 1)
    return sorted_values[index]


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class PerformanceReportGenerator:
    """Builds PerformanceReport objects from a list of samples."""

    def __init__(self, thresholds: OperationThresholds) -> None:
        self.thresholds = thresholds

    def empty_report(self, window_ms: int) -> PerformanceReport:
        """Canonical report for a window without samples."""
        return PerformanceReport(time_range=format_time_range(window_ms))

    def generate(
        self, samples: List[PerformanceSample], window_ms: int
    ) -> PerformanceReport:
        """Aggregate samples already filtered to the report window."""
        if not samples:
            return self.empty_report(window_ms)

        total = len(samples)
        successful = sum(1 for s in samples if s.success)
        durations = sorted(s.duration for s in samples)

        breakdown = self.operation_breakdown(samples)
        cache_performance = self.cache_performance(samples)

        slowest = sorted(samples, key=lambda s: s.duration, reverse=True)
        slowest_operations = [
            SlowOperation(
                operation=s.operation,
                duration=s.duration,
                timestamp=s.timestamp,
                context=dict(s.context),
            )
            for s in slowest[:SLOWEST_OPERATIONS_LIMIT]
        ]

        return PerformanceReport(
            time_range=format_time_range(window_ms),
            total_operations=total,
            success_rate=successful / total * 100,
            average_response_time=_average(durations),
            p95_response_time=nearest_rank(durations, 0.95),
            p99_response_time=nearest_rank(durations, 0.99),
            operation_breakdown=breakdown,
            slowest_operations=slowest_operations,
            cache_performance=cache_performance,
            recommendations=self.recommendations(
                samples, breakdown, cache_performance
            ),
        )

    def operation_breakdown(
        self, samples: List[PerformanceSample]
    ) -> Dict[str, OperationStats]:
        """Count, average duration, success rate and error histogram per operation."""
        grouped: Dict[str, List[PerformanceSample]] = {}
        for sample in samples:
            grouped.setdefault(sample.operation, []).append(sample)

        breakdown: Dict[str, OperationStats] = {}
        for operation, op_samples in grouped.items():
            error_types: Dict[str, int] = {}
            for sample in op_samples:
                if not sample.success and sample.error_type:
                    error_types[sample.error_type] = (
                        error_types.get(sample.error_type, 0) + 1
                    )
            count = len(op_samples)
            breakdown[operation] = OperationStats(
                count=count,
                average_time=_average([s.duration for s in op_samples]),
                success_rate=sum(1 for s in op_samples if s.success) / count * 100,
                error_types=error_types,
            )
        return breakdown

    def cache_performance(self, samples: List[PerformanceSample]) -> CachePerformance:
        """Hit rate and latency split by the cacheHit context flag."""
        cache_samples = [s for s in samples if "cacheHit" in s.context]
        if not cache_samples:
            return CachePerformance()

        hits = [s.duration for s in cache_samples if s.context["cacheHit"]]
        misses = [s.duration for s in cache_samples if not s.context["cacheHit"]]
        return CachePerformance(
            hit_rate=len(hits) / len(cache_samples) * 100,
            average_hit_time=_average(hits),
            average_miss_time=_average(misses),
        )

    def recommendations(
        self,
        samples: List[PerformanceSample],
        breakdown: Dict[str, OperationStats],
        cache_performance: CachePerformance,
    ) -> List[str]:
        """One message per violated rule."""
        recommendations: List[str] = []

        for operation, stats in breakdown.items():
            threshold = self.thresholds.for_operation(operation)
            if stats.average_time > threshold * SLOW_AVERAGE_FACTOR:
                recommendations.append(
                    f"Optimize {operation} - average time "
                    f"{stats.average_time:.0f}ms exceeds threshold"
                )
            if stats.success_rate < MIN_SUCCESS_RATE:
                recommendations.append(
                    f"Improve {operation} reliability - success rate is "
                    f"{stats.success_rate:.1f}%"
                )

        if cache_performance.hit_rate < MIN_CACHE_HIT_RATE:
            recommendations.append(
                f"Improve cache hit rate - currently {cache_performance.hit_rate:.1f}%"
            )

        db_durations = [s.duration for s in samples if s.operation == "database_query"]
        if db_durations:
            average_db_time = _average(db_durations)
            if average_db_time > self.thresholds.database_query:
                recommendations.append(
                    f"Optimize database queries - average time {average_db_time:.0f}ms"
                )

        return recommendations
