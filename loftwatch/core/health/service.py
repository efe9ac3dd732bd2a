"""System health monitor orchestrating the component checks."""

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from .alerts import AlertManager
from .models import (
    AlertSeverity,
    AlertType,
    ComponentHealth,
    ComponentStatus,
    HealthAlert,
    SystemHealthStatus,
    SystemMetrics,
    utcnow,
)
from .monitors import ComponentMonitor

logger = logging.getLogger(__name__)

CustomCheck = Callable[[], Awaitable[ComponentHealth]]

DATABASE = "database"
CACHE = "cache"
RESERVATION_SYSTEM = "reservation_system"
DATA_CONSISTENCY = "data_consistency"
CORE_COMPONENTS = (DATABASE, CACHE, RESERVATION_SYSTEM, DATA_CONSISTENCY)

DEFAULT_INTERVAL_SECONDS = 60.0


def compute_overall_status(statuses: Iterable[ComponentStatus]) -> ComponentStatus:
    """Worst component status wins; unknown unless every component is healthy."""
    statuses = list(statuses)
    if ComponentStatus.CRITICAL in statuses:
        return ComponentStatus.CRITICAL
    if ComponentStatus.WARNING in statuses:
        return ComponentStatus.WARNING
    if statuses and all(s == ComponentStatus.HEALTHY for s in statuses):
        return ComponentStatus.HEALTHY
    return ComponentStatus.UNKNOWN


class SystemHealthMonitor:
    """Polls component health, raises alerts and derives the overall status.

    A health cycle never raises: failing checks degrade their component to
    critical and a failure of the cycle itself is reported as an alert.
    """

    def __init__(
        self,
        components: ComponentMonitor,
        alerts: Optional[AlertManager] = None,
    ) -> None:
        self.components = components
        self.thresholds = components.thresholds
        self.alerts = alerts or AlertManager()
        self._custom_checks: Dict[str, CustomCheck] = {}
        self._start_time = time.time()
        self._task: Optional[asyncio.Task] = None
        self.interval: Optional[float] = None
        self._status = SystemHealthStatus(
            components={name: ComponentHealth.not_checked() for name in CORE_COMPONENTS}
        )

    @property
    def is_monitoring(self) -> bool:
        return self._task is not None and not self._task.done()

    def start_monitoring(self, interval_seconds: float = DEFAULT_INTERVAL_SECONDS) -> None:
        """Run a health cycle every interval; restarting replaces the loop."""
        if self._task is not None:
            self._task.cancel()

        self.interval = interval_seconds
        self._task = asyncio.get_running_loop().create_task(
            self._run_periodically(interval_seconds)
        )
        logger.info(
            "System health monitoring started",
            extra={"interval_seconds": interval_seconds},
        )

    def stop_monitoring(self) -> None:
        """Cancel the periodic loop."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.info("System health monitoring stopped")

    async def _run_periodically(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.perform_health_check()
            except Exception as e:
                logger.error(f"Health check failed: {e}")

    async def perform_health_check(self) -> SystemHealthStatus:
        """Run one full health cycle and return the resulting status."""
        started = time.perf_counter()

        try:
            checks: Dict[str, Awaitable[ComponentHealth]] = {
                DATABASE: self.components.check_database(),
                CACHE: self.components.check_cache(),
                RESERVATION_SYSTEM: self.components.check_reservation_system(),
                DATA_CONSISTENCY: self.components.check_data_consistency(),
            }
            for name, check in self._custom_checks.items():
                checks[name] = self._run_custom_check(check)

            results = await asyncio.gather(*checks.values(), return_exceptions=True)
            for name, result in zip(checks, results):
                self._status.components[name] = self._settled(name, result)

            await self._update_system_metrics()
            self._update_overall_status()
            self._status.recommendations = self._generate_recommendations()
            self._status.timestamp = utcnow()
            self._status.uptime_seconds = round(time.time() - self._start_time, 2)

            logger.debug(
                "Health check completed",
                extra={
                    "duration_ms": int((time.perf_counter() - started) * 1000),
                    "status": self._status.status.value,
                    "active_alerts": len(self.alerts.active()),
                },
            )
        except Exception as e:
            logger.error("Health check error", exc_info=True)
            self._status.status = ComponentStatus.CRITICAL
            self._status.timestamp = utcnow()
            self.alerts.raise_alert(
                AlertType.ERROR,
                AlertSeverity.CRITICAL,
                "Health check system failure",
                "health_monitor",
                "health_check_failure",
                details={"error": str(e)},
            )

        self._status.alerts = self.alerts.all()
        return self.get_health_status()

    def get_health_status(self) -> SystemHealthStatus:
        """Snapshot of the latest health status."""
        return self._status.model_copy(deep=True)

    def get_active_alerts(self) -> List[HealthAlert]:
        return self.alerts.active()

    def resolve_alert(self, alert_id: str) -> bool:
        """Mark an alert resolved; False when the id is unknown."""
        resolved = self.alerts.resolve(alert_id)
        if resolved:
            self._status.alerts = self.alerts.all()
        return resolved

    async def add_custom_check(self, name: str, check: CustomCheck) -> ComponentHealth:
        """
        Register an extra component check and run it once right away.

        The check also runs on every later cycle and counts towards the
        overall status.

        Args:
            name: Component name
            check: Async callable returning the component health

        Returns:
            The first result of the check

        Raises:
            ValueError: If the name belongs to a built-in component
            TypeError: If the check is not an async function
        """
        if name in CORE_COMPONENTS:
            raise ValueError(f"'{name}' is a built-in component")
        if not inspect.iscoroutinefunction(check):
            raise TypeError(f"Custom check '{name}' must be an async function")

        self._custom_checks[name] = check
        try:
            result = await check()
            logger.debug(
                "Custom health check completed",
                extra={"check_name": name, "status": result.status.value},
            )
        except Exception as e:
            logger.error(f"Custom health check {name} failed: {e}")
            result = ComponentHealth.failed(f"Check failed: {e}")

        self._status.components[name] = result
        self._update_overall_status()
        return result

    def remove_custom_check(self, name: str) -> bool:
        if self._custom_checks.pop(name, None) is None:
            return False
        self._status.components.pop(name, None)
        return True

    def reset(self) -> None:
        """Forget alerts and component snapshots."""
        self.alerts.clear()
        self._status = SystemHealthStatus(
            components={name: ComponentHealth.not_checked() for name in CORE_COMPONENTS}
        )

    @staticmethod
    async def _run_custom_check(check: CustomCheck) -> ComponentHealth:
        return await check()

    def _settled(self, name: str, result: object) -> ComponentHealth:
        if isinstance(result, ComponentHealth):
            return result
        logger.error(f"Health check failed for {name}: {result}")
        if isinstance(result, BaseException):
            return ComponentHealth.failed(f"Health check failed: {result}")
        return ComponentHealth.failed(
            f"Health check failed: unexpected result {type(result).__name__}"
        )

    async def _update_system_metrics(self) -> None:
        try:
            metrics = await self.components.collect_system_metrics()
        except Exception as e:
            logger.error(f"Error updating system metrics: {e}")
            return

        self._status.metrics = metrics
        self._check_metric_alerts(metrics)

    def _update_overall_status(self) -> None:
        self._status.status = compute_overall_status(
            c.status for c in self._status.components.values()
        )

    def _evaluate_rule(
        self,
        type: AlertType,
        component: str,
        rule: str,
        severity: Optional[AlertSeverity],
        message: str,
    ) -> None:
        if severity is None:
            self.alerts.clear_condition(type, component, rule)
        else:
            self.alerts.raise_alert(type, severity, message, component, rule)

    def _check_metric_alerts(self, metrics: SystemMetrics) -> None:
        t = self.thresholds

        if metrics.response_time > t.response_time_critical_ms:
            severity, label = AlertSeverity.CRITICAL, "Critical response time"
        elif metrics.response_time > t.response_time_warning_ms:
            severity, label = AlertSeverity.WARNING, "Slow response time"
        else:
            severity, label = None, ""
        self._evaluate_rule(
            AlertType.PERFORMANCE,
            "system",
            "response_time",
            severity,
            f"{label}: {metrics.response_time:.0f}ms",
        )

        if metrics.error_rate > t.error_rate_critical:
            severity, label = AlertSeverity.CRITICAL, "Critical error rate"
        elif metrics.error_rate > t.error_rate_warning:
            severity, label = AlertSeverity.WARNING, "High error rate"
        else:
            severity, label = None, ""
        self._evaluate_rule(
            AlertType.ERROR,
            "system",
            "error_rate",
            severity,
            f"{label}: {metrics.error_rate:.1f}%",
        )

        if metrics.memory_usage > t.memory_usage_critical:
            severity, label = AlertSeverity.CRITICAL, "Critical memory usage"
        elif metrics.memory_usage > t.memory_usage_warning:
            severity, label = AlertSeverity.WARNING, "High memory usage"
        else:
            severity, label = None, ""
        self._evaluate_rule(
            AlertType.PERFORMANCE,
            "system",
            "memory_usage",
            severity,
            f"{label}: {metrics.memory_usage:.1f}%",
        )

        low_hit_rate = (
            metrics.cache_requests > 0
            and metrics.cache_hit_rate < t.cache_hit_rate_warning
        )
        self._evaluate_rule(
            AlertType.PERFORMANCE,
            "cache",
            "cache_hit_rate",
            AlertSeverity.WARNING if low_hit_rate else None,
            f"Low cache hit rate: {metrics.cache_hit_rate:.1f}%",
        )

    def _generate_recommendations(self) -> List[str]:
        recommendations: List[str] = []
        components = self._status.components
        metrics = self._status.metrics
        t = self.thresholds

        if components[DATABASE].status != ComponentStatus.HEALTHY:
            recommendations.append("Check database connection and query performance")
        if metrics.cache_requests > 0 and metrics.cache_hit_rate < t.cache_hit_rate_warning:
            recommendations.append("Optimize caching strategy to improve hit rate")
        if metrics.response_time > t.response_time_warning_ms:
            recommendations.append(
                "Investigate slow response times and optimize critical paths"
            )
        if metrics.error_rate > t.error_rate_warning:
            recommendations.append(
                "Review and fix recurring errors to improve system stability"
            )
        if metrics.memory_usage > t.memory_usage_warning:
            recommendations.append(
                "Monitor memory usage and consider optimization or scaling"
            )
        if components[DATA_CONSISTENCY].status != ComponentStatus.HEALTHY:
            recommendations.append(
                "Review data consistency issues and run database maintenance"
            )

        return recommendations
