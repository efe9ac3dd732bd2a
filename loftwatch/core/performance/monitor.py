"""Timing and recording of reservation operation performance."""

import logging
import time
import uuid
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from .buffer import SampleBuffer
from .models import PerformanceReport, PerformanceSample, RealTimeStats, TimerHandle
from .report import PerformanceReportGenerator
from .thresholds import OperationThresholds

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Sample bookkeeping
DEFAULT_MAX_SAMPLES = 10000
SAMPLE_RETENTION_MS = 24 * 60 * 60 * 1000  # 24 hours
STALE_TIMER_MS = 10 * 60 * 1000  # 10 minutes
REAL_TIME_WINDOW_MS = 5 * 60 * 1000  # 5 minutes
DEFAULT_REPORT_WINDOW_MS = 60 * 60 * 1000  # 1 hour

# A search answered faster than this is assumed to come from cache
CACHE_HIT_CUTOFF_MS = 50


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _error_kind(exc: BaseException) -> str:
    return type(exc).__name__


def _result_size(result: Any) -> int:
    return len(result) if isinstance(result, (list, tuple)) else 1


class ReservationPerformanceMonitor:
    """Collects timing samples for reservation operations.

    Threshold violations are only logged. Wrapped operation errors are
    recorded as failed samples and re-raised unchanged.
    """

    def __init__(
        self,
        thresholds: Optional[OperationThresholds] = None,
        max_samples: int = DEFAULT_MAX_SAMPLES,
        retention_ms: int = SAMPLE_RETENTION_MS,
        stale_timer_ms: int = STALE_TIMER_MS,
    ) -> None:
        self.thresholds = thresholds or OperationThresholds()
        self.retention_ms = retention_ms
        self.stale_timer_ms = stale_timer_ms
        self._samples = SampleBuffer(max_samples)
        self._timers: Dict[str, TimerHandle] = {}
        self._reports = PerformanceReportGenerator(self.thresholds)

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def active_timers(self) -> int:
        return len(self._timers)

    def start_timing(
        self, operation: str, context: Optional[Dict[str, Any]] = None
    ) -> str:
        """Open a timer and return its id."""
        started = now_ms()
        timer_id = f"{operation}_{started}_{uuid.uuid4().hex[:9]}"
        self._timers[timer_id] = TimerHandle(
            id=timer_id, start_time=started, context=dict(context or {})
        )

        logger.debug(
            "Started timing",
            extra={"operation": operation, "timer_id": timer_id},
        )
        return timer_id

    def end_timing(
        self,
        timer_id: str,
        operation: str,
        success: bool = True,
        error_type: Optional[str] = None,
        extra_context: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Close a timer, record its sample and return the duration in ms.

        Unknown timer ids are logged and yield 0.
        """
        timer = self._timers.pop(timer_id, None)
        if timer is None:
            logger.warning("Timer not found", extra={"timer_id": timer_id})
            return 0

        finished = now_ms()
        duration = finished - timer.start_time

        context = dict(timer.context)
        if isinstance(extra_context, Mapping):
            context.update(extra_context)
        elif extra_context is not None:
            logger.warning(
                "Ignoring non-mapping timing context",
                extra={
                    "timer_id": timer_id,
                    "context_type": type(extra_context).__name__,
                },
            )

        self.record_metric(
            PerformanceSample(
                operation=operation,
                duration=duration,
                timestamp=finished,
                success=success,
                error_type=error_type,
                context=context,
            )
        )

        logger.debug(
            "Completed timing",
            extra={
                "operation": operation,
                "timer_id": timer_id,
                "duration_ms": duration,
                "success": success,
                "error_type": error_type,
            },
        )
        return duration

    def record_metric(self, sample: PerformanceSample) -> None:
        """Store a complete sample and log it if it breaches its threshold."""
        self._samples.append(sample)
        self._check_threshold(sample)

    def _check_threshold(self, sample: PerformanceSample) -> None:
        threshold = self.thresholds.for_operation(sample.operation)
        if sample.duration <= threshold:
            return

        log_extra = {
            "operation": sample.operation,
            "duration_ms": sample.duration,
            "threshold_ms": threshold,
            "context": sample.context,
        }
        if sample.duration > threshold * 2:
            logger.error("Critical performance issue", extra=log_extra)
        else:
            logger.warning("Performance warning", extra=log_extra)

    def _safe_end(
        self,
        timer_id: str,
        operation: str,
        success: bool,
        error_type: Optional[str] = None,
        extra_context: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            self.end_timing(timer_id, operation, success, error_type, extra_context)
        except Exception as e:
            logger.error(
                f"Failed to record {operation} timing: {e}",
                extra={"timer_id": timer_id},
            )

    async def _measure(
        self,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        context: Dict[str, Any],
        on_success: Callable[[T, int], Dict[str, Any]],
        on_failure: Optional[Callable[[int], Dict[str, Any]]] = None,
    ) -> T:
        """Time fn, deriving extra context from its result or elapsed time."""
        timer_id = self.start_timing(operation, context)
        started = now_ms()
        try:
            result = await fn()
        except Exception as e:
            elapsed = now_ms() - started
            failure_context = on_failure(elapsed) if on_failure else None
            self._safe_end(timer_id, operation, False, _error_kind(e), failure_context)
            raise

        elapsed = now_ms() - started
        try:
            success_context = on_success(result, elapsed)
        except Exception as e:
            logger.warning(f"Could not derive {operation} context: {e}")
            success_context = {}
        self._safe_end(timer_id, operation, True, None, success_context)
        return result

    async def measure_loft_search(
        self,
        search_fn: Callable[[], Awaitable[T]],
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """Time a loft search."""
        return await self._measure(
            "loft_search",
            search_fn,
            dict(context or {}),
            lambda result, elapsed: {
                "cacheHit": elapsed < CACHE_HIT_CUTOFF_MS,
                "dbQueryTime": elapsed,
                "resultCount": _result_size(result),
            },
            lambda elapsed: {"cacheHit": False, "dbQueryTime": elapsed},
        )

    async def measure_loft_details(
        self,
        loft_id: str,
        fetch_fn: Callable[[], Awaitable[T]],
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """Time a loft details fetch."""
        return await self._measure(
            "loft_details",
            fetch_fn,
            {"loftId": loft_id, **(context or {})},
            lambda result, _: {"loftFound": bool(result)},
        )

    async def measure_availability_check(
        self,
        loft_id: str,
        check_in: str,
        check_out: str,
        check_fn: Callable[[], Awaitable[T]],
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """Time an availability check for a date range."""
        return await self._measure(
            "availability_check",
            check_fn,
            {"loftId": loft_id, "dateRange": f"{check_in}_{check_out}", **(context or {})},
            lambda result, _: {"available": bool(result)},
        )

    async def measure_pricing_calculation(
        self,
        loft_id: str,
        guests: int,
        date_range: str,
        calculate_fn: Callable[[], Awaitable[T]],
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """Time a pricing calculation."""
        return await self._measure(
            "pricing_calculation",
            calculate_fn,
            {
                "loftId": loft_id,
                "guestCount": guests,
                "dateRange": date_range,
                **(context or {}),
            },
            lambda result, _: {"pricingCompleted": bool(result)},
        )

    async def measure_reservation_creation(
        self,
        loft_id: str,
        create_fn: Callable[[], Awaitable[T]],
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """Time a reservation creation.

        Validation and database time are estimated from the total: validation
        is taken as 30% of it, capped at 500ms.
        """

        def split(elapsed: int) -> Tuple[int, int]:
            validation_time = min(int(elapsed * 0.3), 500)
            return validation_time, elapsed - validation_time

        def on_success(result: Any, elapsed: int) -> Dict[str, Any]:
            validation_time, db_query_time = split(elapsed)
            return {
                "validationTime": validation_time,
                "dbQueryTime": db_query_time,
                "reservationCreated": bool(result),
            }

        return await self._measure(
            "reservation_creation",
            create_fn,
            {"loftId": loft_id, **(context or {})},
            on_success,
            lambda elapsed: {"validationTime": 0, "dbQueryTime": 0},
        )

    async def measure_database_query(
        self,
        query_type: str,
        query_fn: Callable[[], Awaitable[T]],
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """Time a database query."""
        return await self._measure(
            "database_query",
            query_fn,
            {"queryType": query_type, **(context or {})},
            lambda result, _: {
                "queryType": query_type,
                "resultSize": _result_size(result),
            },
            lambda elapsed: {"queryType": query_type},
        )

    def get_performance_report(
        self, window_ms: int = DEFAULT_REPORT_WINDOW_MS
    ) -> PerformanceReport:
        """Aggregate the samples recorded during the last window_ms."""
        recent = self._samples.since(now_ms() - window_ms)
        return self._reports.generate(recent, window_ms)

    def get_real_time_stats(self) -> RealTimeStats:
        """Rolling statistics over the last five minutes."""
        recent = self._samples.since(now_ms() - REAL_TIME_WINDOW_MS)
        total = len(recent)
        errors = sum(1 for s in recent if not s.success)
        cache_hits = sum(1 for s in recent if s.context.get("cacheHit"))

        return RealTimeStats(
            active_timers=len(self._timers),
            recent_operations=total,
            average_response_time=(
                sum(s.duration for s in recent) / total if total else 0.0
            ),
            error_rate=errors / total * 100 if total else 0.0,
            cache_hit_rate=cache_hits / total * 100 if total else 0.0,
        )

    def clear_metrics(self) -> None:
        """Drop every sample and open timer."""
        self._samples.clear()
        self._timers.clear()
        logger.info("All performance metrics cleared")

    def cleanup_old_metrics(self) -> Tuple[int, int]:
        """Evict expired samples and stale timers.

        Returns:
            Tuple of (samples removed, timers removed)
        """
        current = now_ms()
        removed_samples = self._samples.evict_older_than(current - self.retention_ms)
        if removed_samples:
            logger.info(f"Cleaned up {removed_samples} old performance metrics")

        timer_cutoff = current - self.stale_timer_ms
        stale = [tid for tid, t in self._timers.items() if t.start_time < timer_cutoff]
        for timer_id in stale:
            del self._timers[timer_id]
            logger.warning("Cleaned up stale timer", extra={"timer_id": timer_id})

        return removed_samples, len(stale)
