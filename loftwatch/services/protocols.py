"""Interfaces of the collaborators the monitors depend on."""

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from loftwatch.models.stats import CacheStats, ReservationMetrics, RequestStats
from loftwatch.services.store import QueryResult


class RelationalStore(Protocol):
    """Row-limited read access to the platform database."""

    async def select(
        self,
        table: str,
        columns: str = "*",
        limit: Optional[int] = None,
        filters: Optional[Dict[str, str]] = None,
    ) -> QueryResult: ...

    async def rpc(
        self,
        function: str,
        params: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> QueryResult: ...


class CacheStatsProvider(Protocol):
    """Loft cache statistics and maintenance."""

    def get_cache_stats(self) -> CacheStats: ...

    def invalidate_all_cache(self) -> int: ...

    async def warm_up_cache(self, loft_ids: list[str]) -> int: ...

    async def cache_test_loft_data(
        self, loader: Callable[[], Awaitable[Dict[str, Any]]]
    ) -> Dict[str, Any]: ...


class ReservationMetricsProvider(Protocol):
    """Reservation funnel metrics and error tracking."""

    async def get_reservation_metrics(self, window: str = "24h") -> ReservationMetrics: ...

    async def track_user_behavior(
        self, action: str, user_id: str, context: Optional[Dict[str, Any]] = None
    ) -> None: ...

    async def track_reservation_error(
        self,
        error: BaseException,
        error_type: str,
        reservation_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None: ...


class RequestStatsProvider(Protocol):
    """Process-wide request latency and error rate."""

    def get_stats(self, window_ms: int) -> RequestStats: ...
