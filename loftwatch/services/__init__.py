"""Collaborators observed by the monitors."""

from .loft_cache import LoftCacheService
from .request_stats import RequestStatsRecorder
from .reservation_monitoring import ReservationMonitoringService
from .store import PostgrestStore, QueryError, QueryResult

__all__ = [
    "LoftCacheService",
    "PostgrestStore",
    "QueryError",
    "QueryResult",
    "RequestStatsRecorder",
    "ReservationMonitoringService",
]
