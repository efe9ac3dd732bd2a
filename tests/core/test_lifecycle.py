"""Tests for monitoring start-up and shutdown."""

import asyncio
import signal
import sys
from unittest.mock import Mock

import pytest

from loftwatch.core.health import AlertManager, ComponentStatus, SystemHealthMonitor
from loftwatch.core.lifecycle import (
    ALREADY_INITIALIZED_WARNING,
    CRITICAL_INITIAL_HEALTH_WARNING,
    MonitoringConfig,
    PerformanceInitializationService,
    ProcessHooks,
)
from loftwatch.core.performance import ReservationPerformanceMonitor


@pytest.fixture
def performance_monitor():
    """Fresh performance monitor."""
    return ReservationPerformanceMonitor()


@pytest.fixture
def health_monitor(component_monitor):
    """Health monitor over the fake collaborators."""
    return SystemHealthMonitor(component_monitor, AlertManager())


@pytest.fixture
async def lifecycle(performance_monitor, health_monitor, cache, reservations, hooks):
    """Orchestrator with mocked process hooks."""
    service = PerformanceInitializationService(
        performance_monitor=performance_monitor,
        health_monitor=health_monitor,
        cache=cache,
        reservations=reservations,
        hooks=hooks,
        config=MonitoringConfig(warmup_loft_ids=["loft-1", "loft-2"]),
    )
    yield service
    await service.shutdown()


class TestInitialize:
    """Test initialize()."""

    async def test_all_services_start(self, lifecycle, cache, reservations, health_monitor):
        """Test a clean start brings every service up."""
        result = await lifecycle.initialize()

        assert result.success is True
        assert result.errors == []
        assert result.warnings == []
        assert result.services.cache is True
        assert result.services.health_monitor is True
        assert result.services.performance_monitor is True
        assert result.services.reservation_monitor is True
        assert lifecycle.is_initialized()
        assert cache.warmed == ["loft-1", "loft-2"]
        assert reservations.behaviors[0][:2] == ("system_initialization", "system")
        assert health_monitor.is_monitoring
        assert health_monitor.get_health_status().status == ComponentStatus.HEALTHY

    async def test_records_initialization_timing(self, lifecycle, performance_monitor):
        """Test the performance self-test records one sample."""
        await lifecycle.initialize()

        report = performance_monitor.get_performance_report()
        assert "initialization_test" in report.operation_breakdown

    async def test_second_initialize_is_idempotent(self, lifecycle, hooks):
        """Test a repeated initialize warns and installs hooks once."""
        await lifecycle.initialize()
        result = await lifecycle.initialize()

        assert result.success is True
        assert result.warnings == [ALREADY_INITIALIZED_WARNING]
        hooks.install_signal_handlers.assert_called_once()
        hooks.install_error_handlers.assert_called_once()

    async def test_hooks_installed_once_across_restarts(self, lifecycle, hooks):
        """Test shutdown and initialize again do not stack handlers."""
        await lifecycle.initialize()
        await lifecycle.shutdown()
        await lifecycle.initialize()

        hooks.install_signal_handlers.assert_called_once()
        assert lifecycle.is_initialized()

    async def test_release_process_hooks(self, lifecycle, hooks):
        """Test hooks are restored once and reinstalled on the next start."""
        await lifecycle.initialize()
        lifecycle.release_process_hooks()
        lifecycle.release_process_hooks()

        hooks.uninstall.assert_called_once()

        await lifecycle.shutdown()
        await lifecycle.initialize()

        assert hooks.install_signal_handlers.call_count == 2

    async def test_release_without_install(self, lifecycle, hooks):
        """Test releasing before initialization touches nothing."""
        lifecycle.release_process_hooks()

        hooks.uninstall.assert_not_called()

    async def test_warm_up_failure_is_warning(self, lifecycle, cache):
        """Test a failed warm-up does not fail initialization."""
        cache.warm_up_error = RuntimeError("loader offline")

        result = await lifecycle.initialize()

        assert result.success is True
        assert result.services.cache is True
        assert result.warnings == ["Cache warm-up failed: loader offline"]

    async def test_cache_failure_is_error(self, lifecycle, cache):
        """Test a failing cache self-test fails initialization."""
        cache.test_data_error = RuntimeError("cache unavailable")

        result = await lifecycle.initialize()

        assert result.success is False
        assert result.services.cache is False
        assert result.errors == ["Cache initialization failed: cache unavailable"]
        assert result.services.health_monitor is True

    async def test_critical_initial_health_warns(self, lifecycle, store):
        """Test a critical first health check is reported as a warning."""
        store.select_exception = ConnectionError("db down")

        result = await lifecycle.initialize()

        assert result.success is True
        assert CRITICAL_INITIAL_HEALTH_WARNING in result.warnings

    async def test_reservation_failure(self, lifecycle, reservations):
        """Test reservation monitoring errors are collected."""

        async def broken(action, user_id, context=None):
            raise RuntimeError("tracking down")

        reservations.track_user_behavior = broken

        result = await lifecycle.initialize()

        assert result.success is False
        assert result.services.reservation_monitor is False
        assert result.errors == [
            "Reservation monitoring initialization failed: tracking down"
        ]

    async def test_disabled_services_skipped(self, lifecycle, health_monitor, cache):
        """Test disabled services are not started."""
        config = MonitoringConfig(
            enable_caching=False,
            enable_health_monitoring=False,
            enable_performance_monitoring=False,
        )

        result = await lifecycle.initialize(config)

        assert result.success is True
        assert result.services.cache is False
        assert result.services.health_monitor is False
        assert result.services.reservation_monitor is True
        assert not health_monitor.is_monitoring
        assert cache.warmed == []


class TestShutdown:
    """Test shutdown()."""

    async def test_shutdown_clears_state(
        self, lifecycle, health_monitor, performance_monitor, cache
    ):
        """Test shutdown stops monitoring and drops metrics."""
        await lifecycle.initialize()

        await lifecycle.shutdown()

        assert not lifecycle.is_initialized()
        assert not health_monitor.is_monitoring
        assert performance_monitor.sample_count == 0
        assert cache.invalidations == 1

    async def test_production_keeps_cache(
        self, performance_monitor, health_monitor, cache, reservations, hooks
    ):
        """Test the cache survives shutdown in production."""
        service = PerformanceInitializationService(
            performance_monitor, health_monitor, cache, reservations, hooks,
            is_production=True,
        )

        await service.shutdown()

        assert cache.invalidations == 0

    async def test_shutdown_never_raises(self, lifecycle, health_monitor):
        """Test errors during shutdown are logged only."""
        health_monitor.stop_monitoring = Mock(side_effect=RuntimeError("stuck"))

        await lifecycle.shutdown()


class TestServicesStatus:
    """Test get_services_status()."""

    async def test_all_active(self, lifecycle):
        """Test every service reports its snapshot."""
        await lifecycle.initialize()

        status = await lifecycle.get_services_status()

        assert status.initialized is True
        assert set(status.services) == {
            "cache",
            "health_monitor",
            "performance_monitor",
            "reservation_monitor",
        }
        assert all(s.status == "active" for s in status.services.values())

    async def test_failing_service_marked_error(self, lifecycle, reservations):
        """Test a failing service does not hide the others."""

        async def broken(window="24h"):
            raise RuntimeError("metrics down")

        reservations.get_reservation_metrics = broken

        status = await lifecycle.get_services_status()

        assert status.services["reservation_monitor"].status == "error"
        assert status.services["cache"].status == "active"


class TestConfig:
    """Test configuration access."""

    def test_update_config(self, performance_monitor, health_monitor, cache, reservations):
        """Test config updates are validated and copied."""
        service = PerformanceInitializationService(
            performance_monitor, health_monitor, cache, reservations, Mock()
        )

        updated = service.update_config(health_check_interval=30)
        updated.warmup_loft_ids.append("mutated")

        assert service.get_config().health_check_interval == 30
        assert "mutated" not in service.get_config().warmup_loft_ids

    def test_unknown_config_key_rejected(
        self, performance_monitor, health_monitor, cache, reservations
    ):
        """Test unknown configuration keys are rejected."""
        service = PerformanceInitializationService(
            performance_monitor, health_monitor, cache, reservations, Mock()
        )

        with pytest.raises(ValueError):
            service.update_config(enable_teleport=True)


class TestProcessHookCallbacks:
    """Test the callbacks handed to the process hooks."""

    async def test_forwarded_error_is_tracked(self, lifecycle, hooks, reservations):
        """Test unhandled errors reach reservation error tracking."""
        await lifecycle.initialize()
        on_error = hooks.install_error_handlers.call_args.args[0]

        on_error(ValueError("boom"), "uncaught_exception")
        await asyncio.sleep(0.01)

        error, error_type, reservation_id, context = reservations.errors[-1]
        assert str(error) == "boom"
        assert error_type == "uncaught_exception"
        assert context == {"step": "system_error"}

    async def test_signal_triggers_shutdown(self, lifecycle, hooks):
        """Test a termination signal shuts monitoring down."""
        await lifecycle.initialize()
        on_signal = hooks.install_signal_handlers.call_args.args[0]

        on_signal(signal.SIGTERM)
        await asyncio.sleep(0.01)

        assert not lifecycle.is_initialized()


class TestProcessHooks:
    """Test real process hook installation."""

    def test_signal_handler_chains(self):
        """Test installed handlers run before the previous handler."""
        calls = []
        previous = signal.signal(signal.SIGUSR1, lambda s, f: calls.append("previous"))
        hooks = ProcessHooks(signals=(signal.SIGUSR1,))
        try:
            hooks.install_signal_handlers(lambda s: calls.append("monitoring"))
            signal.raise_signal(signal.SIGUSR1)
            hooks.uninstall()
            signal.raise_signal(signal.SIGUSR1)
        finally:
            signal.signal(signal.SIGUSR1, previous)

        assert calls == ["monitoring", "previous", "previous"]

    async def test_error_handlers_forward_and_restore(self):
        """Test uncaught exceptions are forwarded and hooks restored."""
        errors = []
        original = sys.excepthook
        hooks = ProcessHooks(signals=())
        hooks.install_error_handlers(lambda e, kind: errors.append(kind))
        try:
            asyncio.get_running_loop().call_exception_handler(
                {"message": "Task exception was never retrieved", "exception": KeyError("x")}
            )
        finally:
            hooks.uninstall()

        assert errors == ["unhandled_rejection"]
        assert sys.excepthook is original
