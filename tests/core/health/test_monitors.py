"""Tests for component health checks."""

from unittest.mock import patch

import pytest

from loftwatch.core.health.models import ComponentStatus, ProbeOutcome
from loftwatch.core.health.monitors import (
    INTEGRITY_LOOKUP_CHUNK,
    HealthThresholds,
    determine_component_status,
)
from loftwatch.models.stats import CacheStats, ReservationMetrics, RequestStats
from loftwatch.services.store import QueryError, QueryResult


class TestDetermineComponentStatus:
    """Test status derivation from latency and errors."""

    @pytest.mark.parametrize(
        "response_time,errors,expected",
        [
            (10, 0, ComponentStatus.HEALTHY),
            (2000, 0, ComponentStatus.HEALTHY),
            (2001, 0, ComponentStatus.WARNING),
            (5001, 0, ComponentStatus.CRITICAL),
            (10, 1, ComponentStatus.CRITICAL),
        ],
    )
    def test_status(self, response_time, errors, expected):
        """Test the two-tier latency rule and error rule."""
        assert (
            determine_component_status(response_time, errors, HealthThresholds())
            == expected
        )


class TestCheckDatabase:
    """Test the database check."""

    async def test_healthy(self, component_monitor, store):
        """Test every table answering yields a healthy component."""
        health = await component_monitor.check_database()

        assert health.status == ComponentStatus.HEALTHY
        assert health.details == "Database connection healthy"
        assert health.metrics["tables_accessible"] is True
        probed = [call[1] for call in store.calls if call[0] == "select"]
        assert probed == ["lofts", "customers", "reservations"]

    async def test_table_error(self, component_monitor, store):
        """Test a failing table is reported in the details."""
        store.tables["customers"] = QueryResult(
            error=QueryError("permission denied for table customers", "42501")
        )

        health = await component_monitor.check_database()

        assert health.status == ComponentStatus.CRITICAL
        assert health.error_count == 1
        assert "customers table error: permission denied" in health.details
        assert health.metrics["tables_accessible"] is False

    async def test_probe_throws(self, component_monitor, store):
        """Test a thrown probe becomes a critical component with the message."""
        store.select_exception = ConnectionError("connection refused")

        health = await component_monitor.check_database()

        assert health.status == ComponentStatus.CRITICAL
        assert health.error_count >= 1
        assert "connection refused" in health.details


class TestCheckCache:
    """Test the cache check."""

    async def test_healthy(self, component_monitor):
        """Test a good hit rate is healthy."""
        health = await component_monitor.check_cache()

        assert health.status == ComponentStatus.HEALTHY
        assert health.metrics["hit_rate"] == 90.0

    async def test_low_hit_rate(self, component_monitor, cache):
        """Test a low hit rate under traffic is flagged."""
        cache.stats = CacheStats(hit_rate=40.0, total_requests=50)

        health = await component_monitor.check_cache()

        assert health.status == ComponentStatus.CRITICAL
        assert "Low cache hit rate: 40.0%" in health.details

    async def test_idle_cache_is_healthy(self, component_monitor, cache):
        """Test a cache without lookups is not judged by hit rate."""
        cache.stats = CacheStats()

        health = await component_monitor.check_cache()

        assert health.status == ComponentStatus.HEALTHY

    async def test_stats_raise(self, component_monitor, cache):
        """Test a failing cache degrades to critical."""
        with patch.object(cache, "get_cache_stats", side_effect=RuntimeError("gone")):
            health = await component_monitor.check_cache()

        assert health.status == ComponentStatus.CRITICAL
        assert health.details == "Cache system error: gone"


class TestCheckReservationSystem:
    """Test the reservation system check."""

    async def test_healthy(self, component_monitor):
        """Test funnel metrics within limits are healthy."""
        health = await component_monitor.check_reservation_system()
        assert health.status == ComponentStatus.HEALTHY

    async def test_issues(self, component_monitor, reservations):
        """Test error rate, conversion and security incidents are reported."""
        reservations.metrics = ReservationMetrics(
            total_reservations=10,
            conversion_rate=5.0,
            error_rate=12.5,
            security_incidents=2,
        )

        health = await component_monitor.check_reservation_system()

        assert health.status == ComponentStatus.CRITICAL
        assert health.error_count == 3
        assert "High error rate: 12.5%" in health.details
        assert "Low conversion rate: 5.0%" in health.details
        assert "Security incidents: 2" in health.details

    async def test_no_reservations_is_healthy(self, component_monitor, reservations):
        """Test an empty funnel is not judged by conversion rate."""
        reservations.metrics = ReservationMetrics()

        health = await component_monitor.check_reservation_system()

        assert health.status == ComponentStatus.HEALTHY

    async def test_metrics_raise(self, component_monitor, reservations):
        """Test an unreachable monitoring service degrades to critical."""

        async def broken(window="24h"):
            raise TimeoutError("monitoring offline")

        reservations.get_reservation_metrics = broken

        health = await component_monitor.check_reservation_system()

        assert health.status == ComponentStatus.CRITICAL
        assert "monitoring offline" in health.details


class TestConsistencyProbes:
    """Test the data consistency probes."""

    async def test_all_consistent(self, component_monitor):
        """Test clean data is verified."""
        health = await component_monitor.check_data_consistency()

        assert health.status == ComponentStatus.HEALTHY
        assert health.details == "Data consistency verified"
        assert health.metrics["foreign_key_constraints"] == "supported"

    async def test_empty_lofts(self, component_monitor, store):
        """Test an empty lofts table is an issue."""
        store.tables["lofts"] = QueryResult(data=[])

        result = await component_monitor.probe_loft_data()

        assert result.outcome == ProbeOutcome.SUPPORTED
        assert not result.passed
        assert "Lofts table is empty" in result.issues[0]

    async def test_orphaned_reservations(self, component_monitor, store):
        """Test reservations referencing unknown lofts are found."""
        store.tables["reservations"] = QueryResult(
            data=[
                {"id": "res-1", "loft_id": "loft-1"},
                {"id": "res-2", "loft_id": "loft-404"},
            ]
        )

        result = await component_monitor.probe_reservation_integrity()

        assert result.issues == ["Found 1 reservations with invalid loft references"]
        lookup = store.calls[-1]
        assert lookup[1] == "lofts"
        assert lookup[4] == {"id": "in.(loft-1,loft-404)"}

    async def test_integer_loft_ids(self, component_monitor, store):
        """Test integer keys are matched without type errors."""
        store.tables["reservations"] = QueryResult(data=[{"id": 1, "loft_id": 7}])
        store.tables["lofts"] = QueryResult(data=[{"id": 7}])

        health = await component_monitor.check_data_consistency()

        assert health.status == ComponentStatus.HEALTHY
        assert store.calls[-2][4] == {"id": "in.(7)"}

    async def test_loft_lookup_is_chunked(self, component_monitor, store):
        """Test large reference sets are looked up in bounded batches."""
        store.tables["reservations"] = QueryResult(
            data=[{"id": f"res-{i}", "loft_id": f"loft-{i}"} for i in range(250)]
        )
        store.tables["lofts"] = QueryResult(
            data=[{"id": f"loft-{i}"} for i in range(250)]
        )

        result = await component_monitor.probe_reservation_integrity()

        lookups = [call for call in store.calls if call[1] == "lofts"]
        assert result.issues == []
        assert len(lookups) == 3
        for lookup in lookups:
            ids = lookup[4]["id"][len("in.(") : -1].split(",")
            assert len(ids) <= INTEGRITY_LOOKUP_CHUNK

    async def test_missing_reservations_table_unsupported(self, component_monitor, store):
        """Test a missing reservations table is unsupported, not failed."""
        del store.tables["reservations"]

        result = await component_monitor.probe_reservation_integrity()

        assert result.outcome == ProbeOutcome.UNSUPPORTED
        assert result.passed

    async def test_missing_function_unsupported(self, component_monitor, store):
        """Test an absent constraint function does not degrade consistency."""
        store.functions.clear()

        health = await component_monitor.check_data_consistency()

        assert health.status == ComponentStatus.HEALTHY
        assert health.metrics["foreign_key_constraints"] == "unsupported"

    async def test_constraint_violations(self, component_monitor, store):
        """Test reported violations are issues."""
        store.functions["check_foreign_key_constraints"] = QueryResult(
            data=[{"table": "reservations"}, {"table": "payments"}]
        )

        result = await component_monitor.probe_foreign_key_constraints()

        assert result.issues == ["Found 2 foreign key constraint violations"]

    async def test_rpc_exception_is_failure(self, component_monitor, store):
        """Test a thrown constraint check is a failed probe."""
        store.rpc_exception = RuntimeError("rpc transport broke")

        health = await component_monitor.check_data_consistency()

        assert health.status == ComponentStatus.CRITICAL
        assert health.metrics["foreign_key_constraints"] == "failed"
        assert "rpc transport broke" in health.details

    async def test_store_exception(self, component_monitor, store):
        """Test a thrown probe degrades consistency to critical."""
        store.select_exception = ConnectionError("socket closed")

        health = await component_monitor.check_data_consistency()

        assert health.status == ComponentStatus.CRITICAL
        assert "socket closed" in health.details


class TestCollectSystemMetrics:
    """Test system metrics collection."""

    async def test_metrics(self, component_monitor, cache, request_stats):
        """Test metrics come from the collaborators and psutil."""
        request_stats.stats = RequestStats(average_response_time=123.456, error_rate=2.5)
        cache.stats = CacheStats(hit_rate=80.0, total_requests=10)

        with patch("loftwatch.core.health.monitors.psutil.Process") as mock_process:
            mock_process.return_value.memory_percent.return_value = 42.123
            metrics = await component_monitor.collect_system_metrics()

        assert metrics.response_time == 123.46
        assert metrics.error_rate == 2.5
        assert metrics.cache_hit_rate == 80.0
        assert metrics.cache_requests == 10
        assert metrics.memory_usage == 42.12
