"""Composition root wiring the monitoring services together."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loftwatch.core.health import (
    AlertManager,
    ComponentMonitor,
    HealthThresholds,
    SystemHealthMonitor,
)
from loftwatch.core.exceptions import ProbeError
from loftwatch.core.lifecycle import (
    MonitoringConfig,
    PerformanceInitializationService,
    PerformanceThresholdConfig,
    ProcessHooks,
)
from loftwatch.core.performance import ReservationPerformanceMonitor
from loftwatch.core.settings import Settings
from loftwatch.services import (
    LoftCacheService,
    PostgrestStore,
    RequestStatsRecorder,
    ReservationMonitoringService,
)
from loftwatch.services.protocols import RelationalStore

logger = logging.getLogger(__name__)


@dataclass
class MonitoringServices:
    """Every monitoring service of one application instance."""

    settings: Settings
    store: RelationalStore
    cache: LoftCacheService
    reservations: ReservationMonitoringService
    request_stats: RequestStatsRecorder
    performance: ReservationPerformanceMonitor
    health: SystemHealthMonitor
    lifecycle: PerformanceInitializationService

    async def close(self) -> None:
        """Shut monitoring down, restore process hooks and release the store."""
        await self.lifecycle.shutdown()
        self.lifecycle.release_process_hooks()
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()


def monitoring_config_from_settings(settings: Settings) -> MonitoringConfig:
    return MonitoringConfig(
        enable_caching=settings.enable_caching,
        enable_health_monitoring=settings.enable_health_monitoring,
        enable_performance_monitoring=settings.enable_performance_monitoring,
        health_check_interval=settings.health_check_interval,
        cache_warmup_enabled=settings.cache_warmup_enabled,
        warmup_loft_ids=list(settings.warmup_loft_ids),
        performance_thresholds=PerformanceThresholdConfig(
            response_time=settings.response_time_warning_ms,
            error_rate=settings.error_rate_warning,
            cache_hit_rate=settings.cache_hit_rate_warning,
            memory_usage=settings.memory_usage_warning,
        ),
    )


def build_monitoring_services(
    settings: Settings,
    store: Optional[RelationalStore] = None,
    hooks: Optional[ProcessHooks] = None,
) -> MonitoringServices:
    """
    Construct an isolated set of monitoring services.

    Args:
        settings: Application settings
        store: Relational store; a PostgrestStore is created when omitted
        hooks: Process hook registry; the real process hooks when omitted

    Returns:
        MonitoringServices ready for lifecycle.initialize()
    """
    store = store or PostgrestStore(
        base_url=settings.store_url,
        api_key=settings.store_api_key,
        timeout=settings.store_timeout,
    )

    async def load_loft(loft_id: str) -> Optional[Dict[str, Any]]:
        result = await store.select("lofts", "*", limit=1, filters={"id": f"eq.{loft_id}"})
        if result.error is not None:
            raise ProbeError(
                f"Cannot load loft {loft_id}: {result.error.message}", component="store"
            )
        return result.data[0] if result.data else None

    cache = LoftCacheService(
        loader=load_loft,
        ttl_seconds=settings.cache_ttl_seconds,
        max_entries=settings.cache_max_entries,
    )
    reservations = ReservationMonitoringService()
    request_stats = RequestStatsRecorder()
    performance = ReservationPerformanceMonitor(
        max_samples=settings.max_performance_samples,
        retention_ms=settings.sample_retention_hours * 60 * 60 * 1000,
        stale_timer_ms=settings.stale_timer_minutes * 60 * 1000,
    )
    health = SystemHealthMonitor(
        ComponentMonitor(
            store=store,
            cache=cache,
            reservations=reservations,
            request_stats=request_stats,
            thresholds=HealthThresholds.from_settings(settings),
        ),
        AlertManager(history_size=settings.alert_history_size),
    )
    lifecycle = PerformanceInitializationService(
        performance_monitor=performance,
        health_monitor=health,
        cache=cache,
        reservations=reservations,
        hooks=hooks,
        config=monitoring_config_from_settings(settings),
        is_production=settings.is_production,
    )

    logger.debug("Monitoring services constructed")
    return MonitoringServices(
        settings=settings,
        store=store,
        cache=cache,
        reservations=reservations,
        request_stats=request_stats,
        performance=performance,
        health=health,
        lifecycle=lifecycle,
    )
