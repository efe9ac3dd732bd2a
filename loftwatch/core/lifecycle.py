"""Start-up and shutdown of the monitoring services."""

import asyncio
import logging
import signal
import sys
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from loftwatch.core.health import ComponentStatus, SystemHealthMonitor
from loftwatch.core.performance import ReservationPerformanceMonitor
from loftwatch.services.protocols import CacheStatsProvider, ReservationMetricsProvider

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[BaseException, str], None]
SignalCallback = Callable[[int], None]

ALREADY_INITIALIZED_WARNING = "Services already initialized"
CRITICAL_INITIAL_HEALTH_WARNING = "Initial health check shows critical issues"


class PerformanceThresholdConfig(BaseModel):
    """System-level performance targets reported at start-up."""

    response_time: int = 2000
    error_rate: float = 5.0
    cache_hit_rate: float = 70.0
    memory_usage: float = 80.0


class MonitoringConfig(BaseModel):
    """Which monitoring services to bring up and how."""

    model_config = ConfigDict(extra="forbid")

    enable_caching: bool = True
    enable_health_monitoring: bool = True
    enable_performance_monitoring: bool = True
    health_check_interval: float = Field(60.0, gt=0, description="Seconds")
    cache_warmup_enabled: bool = True
    warmup_loft_ids: List[str] = Field(default_factory=list)
    performance_thresholds: Optional[PerformanceThresholdConfig] = Field(
        default_factory=PerformanceThresholdConfig
    )


class ServiceFlags(BaseModel):
    """Per-service initialization outcome."""

    cache: bool = False
    health_monitor: bool = False
    performance_monitor: bool = False
    reservation_monitor: bool = False


class InitializationResult(BaseModel):
    """Outcome of initialize()."""

    success: bool = True
    services: ServiceFlags = Field(default_factory=ServiceFlags)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ServiceState(BaseModel):
    """Status of one service with its latest snapshot."""

    status: str
    data: Optional[Any] = None


class ServicesStatus(BaseModel):
    """Status of every monitoring service."""

    initialized: bool
    services: Dict[str, ServiceState]


class ProcessHooks:
    """Process-wide error and signal handler registration.

    Handlers chain to whatever was installed before them so servers keep
    their own signal handling.
    """

    def __init__(self, signals: Sequence[int] = (signal.SIGTERM, signal.SIGINT)):
        self.signals = tuple(signals)
        self._previous_excepthook = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_signal_handlers: Dict[int, Any] = {}

    def install_error_handlers(self, on_error: ErrorCallback) -> None:
        """Forward uncaught exceptions and unhandled task errors."""
        previous_hook = sys.excepthook
        self._previous_excepthook = previous_hook

        def excepthook(exc_type, exc, tb):
            on_error(exc, "uncaught_exception")
            previous_hook(exc_type, exc, tb)

        sys.excepthook = excepthook

        loop = asyncio.get_running_loop()
        self._loop = loop
        previous_handler = loop.get_exception_handler()

        def loop_exception_handler(loop, context):
            exc = context.get("exception") or RuntimeError(
                context.get("message", "Unhandled asyncio error")
            )
            on_error(exc, "unhandled_rejection")
            if previous_handler is not None:
                previous_handler(loop, context)
            else:
                loop.default_exception_handler(context)

        loop.set_exception_handler(loop_exception_handler)

    def install_signal_handlers(self, on_signal: SignalCallback) -> None:
        """Call on_signal for each configured signal, then the previous handler."""
        for sig in self.signals:
            try:
                previous = signal.getsignal(sig)

                def handler(signum, frame, previous=previous):
                    on_signal(signum)
                    if callable(previous):
                        previous(signum, frame)

                signal.signal(sig, handler)
                self._previous_signal_handlers[sig] = previous
            except ValueError as e:
                # signal.signal only works from the main thread
                logger.warning(f"Cannot install handler for signal {sig}: {e}")

    def uninstall(self) -> None:
        """Restore the handlers that were active before install."""
        if self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
            self._previous_excepthook = None
        if self._loop is not None and not self._loop.is_closed():
            self._loop.set_exception_handler(None)
            self._loop = None
        for sig, previous in self._previous_signal_handlers.items():
            try:
                signal.signal(sig, previous)
            except (ValueError, TypeError) as e:
                logger.warning(f"Cannot restore handler for signal {sig}: {e}")
        self._previous_signal_handlers.clear()


class PerformanceInitializationService:
    """Brings up caching, health and performance monitoring in order."""

    def __init__(
        self,
        performance_monitor: ReservationPerformanceMonitor,
        health_monitor: SystemHealthMonitor,
        cache: CacheStatsProvider,
        reservations: ReservationMetricsProvider,
        hooks: Optional[ProcessHooks] = None,
        config: Optional[MonitoringConfig] = None,
        is_production: bool = False,
    ) -> None:
        self.performance_monitor = performance_monitor
        self.health_monitor = health_monitor
        self.cache = cache
        self.reservations = reservations
        self.hooks = hooks or ProcessHooks()
        self.config = config or MonitoringConfig()
        self.is_production = is_production
        self._initialized = False
        self._hooks_installed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._background: set = set()

    def is_initialized(self) -> bool:
        return self._initialized

    def get_config(self) -> MonitoringConfig:
        return self.config.model_copy(deep=True)

    def update_config(self, **changes: Any) -> MonitoringConfig:
        """Apply config changes; they take effect on the next initialize()."""
        self.config = MonitoringConfig(**{**self.config.model_dump(), **changes})
        logger.info(
            "Monitoring configuration updated",
            extra={"config": self.config.model_dump()},
        )
        return self.get_config()

    async def initialize(
        self, config: Optional[MonitoringConfig] = None
    ) -> InitializationResult:
        """
        Bring up every enabled monitoring service.

        Args:
            config: Replaces the current configuration when given

        Returns:
            InitializationResult with per-service flags, errors and warnings
        """
        if self._initialized:
            logger.warning("Monitoring services already initialized")
            return InitializationResult(
                success=True,
                services=ServiceFlags(
                    cache=True,
                    health_monitor=True,
                    performance_monitor=True,
                    reservation_monitor=True,
                ),
                warnings=[ALREADY_INITIALIZED_WARNING],
            )

        if config is not None:
            self.config = config

        logger.info(
            "Initializing monitoring services",
            extra={"config": self.config.model_dump()},
        )
        result = InitializationResult()

        try:
            if self.config.enable_caching:
                await self._initialize_caching(result)
            if self.config.enable_health_monitoring:
                await self._initialize_health_monitoring(result)
            if self.config.enable_performance_monitoring:
                await self._initialize_performance_monitoring(result)
            await self._initialize_reservation_monitoring(result)

            self._install_process_hooks()
            self._initialized = True
            result.success = not result.errors

            logger.info(
                "Monitoring services initialization completed",
                extra={
                    "success": result.success,
                    "services": result.services.model_dump(),
                    "error_count": len(result.errors),
                    "warning_count": len(result.warnings),
                },
            )
        except Exception as e:
            result.errors.append(str(e) or "Unknown initialization error")
            result.success = False
            logger.error(f"Monitoring services initialization failed: {e}")

        return result

    async def shutdown(self) -> None:
        """Stop monitoring and drop in-memory state. Never raises."""
        logger.info("Shutting down monitoring services")
        try:
            self.health_monitor.stop_monitoring()
            self.performance_monitor.clear_metrics()
            if not self.is_production:
                self.cache.invalidate_all_cache()
            self._initialized = False
            logger.info("Monitoring services shutdown completed")
        except Exception as e:
            logger.error(f"Error during monitoring services shutdown: {e}")

    async def get_services_status(self) -> ServicesStatus:
        """Snapshot of each service, marking those that fail to report."""

        async def cache_stats():
            return self.cache.get_cache_stats()

        async def health_status():
            return self.health_monitor.get_health_status()

        async def performance_stats():
            return self.performance_monitor.get_real_time_stats()

        probes: Dict[str, Callable[[], Awaitable[Any]]] = {
            "cache": cache_stats,
            "health_monitor": health_status,
            "performance_monitor": performance_stats,
            "reservation_monitor": lambda: self.reservations.get_reservation_metrics(
                "1h"
            ),
        }
        results = await asyncio.gather(
            *(probe() for probe in probes.values()), return_exceptions=True
        )

        services: Dict[str, ServiceState] = {}
        for name, outcome in zip(probes, results):
            if isinstance(outcome, BaseException):
                logger.error(f"Error getting {name} status: {outcome}")
                services[name] = ServiceState(status="error")
            else:
                services[name] = ServiceState(status="active", data=outcome)

        return ServicesStatus(initialized=self._initialized, services=services)

    async def _initialize_caching(self, result: InitializationResult) -> None:
        try:
            logger.info("Initializing caching service")
            async def test_payload():
                return {"test": True, "timestamp": int(time.time() * 1000)}

            await self.cache.cache_test_loft_data(test_payload)

            if self.config.cache_warmup_enabled:
                await self._warm_up_cache(result)

            result.services.cache = True
            logger.info("Caching service initialized successfully")
        except Exception as e:
            result.errors.append(f"Cache initialization failed: {e}")
            logger.error(f"Caching service initialization failed: {e}")

    async def _warm_up_cache(self, result: InitializationResult) -> None:
        loft_ids = self.config.warmup_loft_ids
        try:
            logger.info("Starting cache warm-up", extra={"loft_count": len(loft_ids)})
            await self.cache.warm_up_cache(loft_ids)
        except Exception as e:
            result.warnings.append(f"Cache warm-up failed: {e}")
            logger.warning(f"Cache warm-up failed: {e}")

    async def _initialize_health_monitoring(self, result: InitializationResult) -> None:
        try:
            logger.info("Initializing health monitoring service")
            self.health_monitor.start_monitoring(self.config.health_check_interval)

            initial_health = await self.health_monitor.perform_health_check()
            if initial_health.status == ComponentStatus.CRITICAL:
                result.warnings.append(CRITICAL_INITIAL_HEALTH_WARNING)

            result.services.health_monitor = True
            logger.info(
                "Health monitoring service initialized successfully",
                extra={"initial_status": initial_health.status.value},
            )
        except Exception as e:
            result.errors.append(f"Health monitoring initialization failed: {e}")
            logger.error(f"Health monitoring service initialization failed: {e}")

    async def _initialize_performance_monitoring(
        self, result: InitializationResult
    ) -> None:
        try:
            logger.info("Initializing performance monitoring service")
            if self.config.performance_thresholds is not None:
                logger.info(
                    "Performance thresholds configured",
                    extra={
                        "thresholds": self.config.performance_thresholds.model_dump(),
                        "operation_thresholds": self.performance_monitor.thresholds.as_dict(),
                    },
                )

            timer_id = self.performance_monitor.start_timing("initialization_test")
            await asyncio.sleep(0.01)
            self.performance_monitor.end_timing(timer_id, "initialization_test", True)

            result.services.performance_monitor = True
            logger.info("Performance monitoring service initialized successfully")
        except Exception as e:
            result.errors.append(f"Performance monitoring initialization failed: {e}")
            logger.error(f"Performance monitoring service initialization failed: {e}")

    async def _initialize_reservation_monitoring(
        self, result: InitializationResult
    ) -> None:
        try:
            logger.info("Initializing reservation monitoring service")
            await self.reservations.track_user_behavior("system_initialization", "system")
            result.services.reservation_monitor = True
            logger.info("Reservation monitoring service initialized successfully")
        except Exception as e:
            result.errors.append(f"Reservation monitoring initialization failed: {e}")
            logger.error(f"Reservation monitoring service initialization failed: {e}")

    def _install_process_hooks(self) -> None:
        if self._hooks_installed:
            return
        self._loop = asyncio.get_running_loop()
        self.hooks.install_error_handlers(self._forward_error)
        self.hooks.install_signal_handlers(self._handle_signal)
        self._hooks_installed = True

    def release_process_hooks(self) -> None:
        """Restore the process handlers replaced at first initialization."""
        if not self._hooks_installed:
            return
        self.hooks.uninstall()
        self._hooks_installed = False

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _forward_error(self, error: BaseException, error_type: str) -> None:
        logger.error(
            f"Unhandled error in monitoring process: {error}",
            extra={"error_type": error_type},
        )
        step = "system_error" if error_type == "uncaught_exception" else "promise_rejection"
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(
            lambda: self._spawn(self._track_error(error, error_type, step))
        )

    async def _track_error(
        self, error: BaseException, error_type: str, step: str
    ) -> None:
        try:
            await self.reservations.track_reservation_error(
                error, error_type, None, {"step": step}
            )
        except Exception as e:
            logger.warning(f"Could not track unhandled error: {e}")

    def _handle_signal(self, signum: int) -> None:
        logger.info(
            f"{signal.Signals(signum).name} received, shutting down monitoring services"
        )
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(lambda: self._spawn(self.shutdown()))
