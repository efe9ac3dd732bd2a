"""Reservation performance monitoring module."""

from .models import (
    CachePerformance,
    OperationStats,
    PerformanceReport,
    PerformanceSample,
    RealTimeStats,
    SlowOperation,
    TimerHandle,
)
from .monitor import ReservationPerformanceMonitor
from .report import PerformanceReportGenerator
from .thresholds import OperationThresholds

__all__ = [
    "CachePerformance",
    "OperationStats",
    "OperationThresholds",
    "PerformanceReport",
    "PerformanceReportGenerator",
    "PerformanceSample",
    "RealTimeStats",
    "ReservationPerformanceMonitor",
    "SlowOperation",
    "TimerHandle",
]
