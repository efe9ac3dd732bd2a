"""Shared fixtures: in-memory collaborators for the monitoring services."""

from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest

from loftwatch.core.health import ComponentMonitor, HealthThresholds
from loftwatch.core.lifecycle import ProcessHooks
from loftwatch.core.settings import Settings
from loftwatch.models.stats import CacheStats, ReservationMetrics, RequestStats
from loftwatch.services.store import QueryError, QueryResult


class FakeStore:
    """Relational store answering from canned per-table results."""

    def __init__(self) -> None:
        self.tables: Dict[str, QueryResult] = {
            "lofts": QueryResult(data=[{"id": "loft-1", "name": "Harbour Loft"}]),
            "customers": QueryResult(data=[{"id": "cust-1"}]),
            "reservations": QueryResult(data=[{"id": "res-1", "loft_id": "loft-1"}]),
        }
        self.functions: Dict[str, QueryResult] = {
            "check_foreign_key_constraints": QueryResult(data=[]),
        }
        self.rpc_exception: Optional[Exception] = None
        self.select_exception: Optional[Exception] = None
        self.calls: List[tuple] = []
        self.closed = False

    async def select(
        self,
        table: str,
        columns: str = "*",
        limit: Optional[int] = None,
        filters: Optional[Dict[str, str]] = None,
    ) -> QueryResult:
        self.calls.append(("select", table, columns, limit, filters))
        if self.select_exception is not None:
            raise self.select_exception
        result = self.tables.get(table)
        if result is None:
            return QueryResult(
                error=QueryError(f'relation "{table}" does not exist', "42P01")
            )
        return result

    async def rpc(
        self,
        function: str,
        params: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> QueryResult:
        self.calls.append(("rpc", function, params, limit))
        if self.rpc_exception is not None:
            raise self.rpc_exception
        result = self.functions.get(function)
        if result is None:
            return QueryResult(
                error=QueryError(f"Could not find the function {function}", "PGRST202")
            )
        return result

    async def close(self) -> None:
        self.closed = True


class FakeCache:
    """Cache collaborator with settable statistics."""

    def __init__(self) -> None:
        self.stats = CacheStats(hit_rate=90.0, total_requests=100, cache_size=10)
        self.invalidations = 0
        self.warmed: List[str] = []
        self.warm_up_error: Optional[Exception] = None
        self.test_data_error: Optional[Exception] = None

    def get_cache_stats(self) -> CacheStats:
        return self.stats

    def invalidate_all_cache(self) -> int:
        self.invalidations += 1
        return 0

    async def warm_up_cache(self, loft_ids: List[str]) -> int:
        if self.warm_up_error is not None:
            raise self.warm_up_error
        self.warmed.extend(loft_ids)
        return len(loft_ids)

    async def cache_test_loft_data(self, loader):
        if self.test_data_error is not None:
            raise self.test_data_error
        return await loader()


class FakeReservations:
    """Reservation metrics collaborator recording tracked calls."""

    def __init__(self) -> None:
        self.metrics = ReservationMetrics(
            total_reservations=20, successful_reservations=10, conversion_rate=50.0
        )
        self.behaviors: List[tuple] = []
        self.errors: List[tuple] = []

    async def get_reservation_metrics(self, window: str = "24h") -> ReservationMetrics:
        return self.metrics

    async def track_user_behavior(self, action, user_id, context=None) -> None:
        self.behaviors.append((action, user_id, context))

    async def track_reservation_error(
        self, error, error_type, reservation_id=None, context=None
    ) -> None:
        self.errors.append((error, error_type, reservation_id, context))


class FakeRequestStats:
    """Request statistics collaborator with settable values."""

    def __init__(self) -> None:
        self.stats = RequestStats(total_requests=50, average_response_time=120.0)

    def get_stats(self, window_ms: int) -> RequestStats:
        return self.stats


@pytest.fixture
def store():
    """Store whose probes all succeed."""
    return FakeStore()


@pytest.fixture
def cache():
    """Cache with a healthy hit rate."""
    return FakeCache()


@pytest.fixture
def reservations():
    """Reservation metrics within limits."""
    return FakeReservations()


@pytest.fixture
def request_stats():
    """Request statistics within limits."""
    return FakeRequestStats()


@pytest.fixture
def component_monitor(store, cache, reservations, request_stats):
    """ComponentMonitor over the fake collaborators."""
    return ComponentMonitor(
        store=store,
        cache=cache,
        reservations=reservations,
        request_stats=request_stats,
        thresholds=HealthThresholds(),
    )


@pytest.fixture
def hooks():
    """Process hooks that touch nothing process-wide."""
    return Mock(spec=ProcessHooks)


@pytest.fixture
def test_settings(tmp_path):
    """Settings for an isolated test environment."""
    return Settings(
        environment="test",
        log_dir=tmp_path / "logs",
        cache_warmup_enabled=False,
        health_check_interval=3600,
    )


@pytest.fixture
def monitoring_factory(hooks):
    """Build monitoring services over a fake store and mocked hooks."""
    from loftwatch.bootstrap import build_monitoring_services

    def factory(app_settings):
        return build_monitoring_services(app_settings, store=FakeStore(), hooks=hooks)

    return factory


@pytest.fixture
def client(test_settings, monitoring_factory):
    """Test client with the lifespan running."""
    from fastapi.testclient import TestClient

    from loftwatch.main import create_app

    app = create_app(test_settings, monitoring_factory)
    with TestClient(app) as test_client:
        yield test_client
