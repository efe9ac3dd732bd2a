"""Component health checks."""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import psutil

from loftwatch.core.settings import Settings
from loftwatch.services.protocols import (
    CacheStatsProvider,
    RelationalStore,
    RequestStatsProvider,
    ReservationMetricsProvider,
)

from .models import ComponentHealth, ComponentStatus, ProbeOutcome, SystemMetrics

logger = logging.getLogger(__name__)

# Tables probed for connectivity
PROBED_TABLES = ("lofts", "customers", "reservations")
FOREIGN_KEY_CHECK_FUNCTION = "check_foreign_key_constraints"
INTEGRITY_SCAN_LIMIT = 1000
INTEGRITY_LOOKUP_CHUNK = 100
SYSTEM_METRICS_WINDOW_MS = 5 * 60 * 1000


@dataclass(frozen=True)
class HealthThresholds:
    """Two-tier thresholds used by the health checks and alert rules."""

    response_time_warning_ms: int = 2000
    response_time_critical_ms: int = 5000
    error_rate_warning: float = 5.0
    error_rate_critical: float = 10.0
    cache_hit_rate_warning: float = 70.0
    memory_usage_warning: float = 80.0
    memory_usage_critical: float = 90.0
    min_conversion_rate: float = 15.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "HealthThresholds":
        return cls(
            response_time_warning_ms=settings.response_time_warning_ms,
            response_time_critical_ms=settings.response_time_critical_ms,
            error_rate_warning=settings.error_rate_warning,
            error_rate_critical=settings.error_rate_critical,
            cache_hit_rate_warning=settings.cache_hit_rate_warning,
            memory_usage_warning=settings.memory_usage_warning,
            memory_usage_critical=settings.memory_usage_critical,
            min_conversion_rate=settings.min_conversion_rate,
        )


@dataclass
class ProbeResult:
    """Outcome and findings of one consistency probe."""

    outcome: ProbeOutcome
    issues: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.outcome != ProbeOutcome.FAILED and not self.issues


def determine_component_status(
    response_time_ms: int, error_count: int, thresholds: HealthThresholds
) -> ComponentStatus:
    """Status from error count and check latency."""
    if error_count > 0 or response_time_ms > thresholds.response_time_critical_ms:
        return ComponentStatus.CRITICAL
    if response_time_ms > thresholds.response_time_warning_ms:
        return ComponentStatus.WARNING
    return ComponentStatus.HEALTHY


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class ComponentMonitor:
    """Runs the per-component checks against the platform collaborators."""

    def __init__(
        self,
        store: RelationalStore,
        cache: CacheStatsProvider,
        reservations: ReservationMetricsProvider,
        request_stats: RequestStatsProvider,
        thresholds: Optional[HealthThresholds] = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.reservations = reservations
        self.request_stats = request_stats
        self.thresholds = thresholds or HealthThresholds()

    def _snapshot(
        self, started: float, issues: List[str], healthy_details: str, metrics: dict
    ) -> ComponentHealth:
        response_time = _elapsed_ms(started)
        return ComponentHealth(
            status=determine_component_status(
                response_time, len(issues), self.thresholds
            ),
            response_time_ms=response_time,
            error_count=len(issues),
            details=" | ".join(issues) if issues else healthy_details,
            metrics=metrics,
        )

    async def check_database(self) -> ComponentHealth:
        """Probe each table with a one-row query."""
        started = time.perf_counter()
        issues: List[str] = []

        try:
            for table in PROBED_TABLES:
                result = await self.store.select(table, "id", limit=1)
                if result.error is not None:
                    issues.append(f"{table} table error: {result.error.message}")
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return ComponentHealth.failed(
                f"Database connection failed: {e}", _elapsed_ms(started)
            )

        health = self._snapshot(
            started,
            issues,
            "Database connection healthy",
            {"tables_accessible": not issues},
        )
        health.metrics["connection_time_ms"] = health.response_time_ms
        return health

    async def check_cache(self) -> ComponentHealth:
        """Judge the loft cache by hit rate and lookup latency."""
        started = time.perf_counter()
        issues: List[str] = []

        try:
            stats = self.cache.get_cache_stats()
        except Exception as e:
            logger.error(f"Cache health check failed: {e}")
            return ComponentHealth.failed(
                f"Cache system error: {e}", _elapsed_ms(started)
            )

        # A cache without traffic has no meaningful hit rate yet
        if (
            stats.total_requests > 0
            and stats.hit_rate < self.thresholds.cache_hit_rate_warning
        ):
            issues.append(f"Low cache hit rate: {stats.hit_rate:.1f}%")
        if stats.average_response_time > self.thresholds.response_time_warning_ms:
            issues.append(f"Slow cache response: {stats.average_response_time:.0f}ms")

        return self._snapshot(
            started, issues, "Cache system healthy", stats.model_dump()
        )

    async def check_reservation_system(self) -> ComponentHealth:
        """Judge the booking funnel over the last hour."""
        started = time.perf_counter()
        issues: List[str] = []

        try:
            metrics = await self.reservations.get_reservation_metrics("1h")
        except Exception as e:
            logger.error(f"Reservation system health check failed: {e}")
            return ComponentHealth.failed(
                f"Reservation system error: {e}", _elapsed_ms(started)
            )

        if metrics.error_rate > self.thresholds.error_rate_warning:
            issues.append(f"High error rate: {metrics.error_rate:.1f}%")
        if (
            metrics.total_reservations > 0
            and metrics.conversion_rate < self.thresholds.min_conversion_rate
        ):
            issues.append(f"Low conversion rate: {metrics.conversion_rate:.1f}%")
        if metrics.security_incidents > 0:
            issues.append(f"Security incidents: {metrics.security_incidents}")

        return self._snapshot(
            started, issues, "Reservation system healthy", metrics.model_dump()
        )

    async def check_data_consistency(self) -> ComponentHealth:
        """Run the consistency probes against the store."""
        started = time.perf_counter()

        try:
            lofts = await self.probe_loft_data()
            integrity = await self.probe_reservation_integrity()
            foreign_keys = await self.probe_foreign_key_constraints()
        except Exception as e:
            logger.error(f"Data consistency check failed: {e}")
            return ComponentHealth.failed(
                f"Data consistency check failed: {e}", _elapsed_ms(started)
            )

        probes = (lofts, integrity, foreign_keys)
        issues = [issue for probe in probes for issue in probe.issues]
        error_count = sum(1 for probe in probes if not probe.passed)
        response_time = _elapsed_ms(started)

        return ComponentHealth(
            status=determine_component_status(
                response_time, error_count, self.thresholds
            ),
            response_time_ms=response_time,
            error_count=error_count,
            details=(
                f"Data consistency issues: {', '.join(issues)}"
                if issues
                else "Data consistency verified"
            ),
            metrics={
                "loft_data_consistent": lofts.passed,
                "reservation_integrity": integrity.outcome.value,
                "reservation_integrity_valid": integrity.passed,
                "foreign_key_constraints": foreign_keys.outcome.value,
                "foreign_key_constraints_valid": foreign_keys.passed,
                "issues_found": len(issues),
            },
        )

    async def probe_loft_data(self) -> ProbeResult:
        """The lofts table must be reachable and non-empty."""
        result = await self.store.select("lofts", "id,name", limit=10)
        if result.error is not None:
            return ProbeResult(
                ProbeOutcome.FAILED,
                [f"Cannot access lofts table: {result.error.message}"],
            )
        if not result.data:
            return ProbeResult(
                ProbeOutcome.SUPPORTED,
                ["Lofts table is empty - test data seeding may be required"],
            )
        return ProbeResult(ProbeOutcome.SUPPORTED)

    async def probe_reservation_integrity(self) -> ProbeResult:
        """Reservations must reference existing lofts."""
        reservations = await self.store.select(
            "reservations", "id,loft_id", limit=INTEGRITY_SCAN_LIMIT
        )
        if reservations.error is not None:
            if reservations.error.is_missing_object:
                return ProbeResult(ProbeOutcome.UNSUPPORTED)
            return ProbeResult(
                ProbeOutcome.FAILED,
                [f"Cannot check reservation integrity: {reservations.error.message}"],
            )

        # Keys may be text or integer columns; compare them as strings.
        referenced = [
            str(r["loft_id"])
            for r in reservations.data
            if r.get("loft_id") is not None
        ]
        loft_ids = sorted(set(referenced))
        if not loft_ids:
            return ProbeResult(ProbeOutcome.SUPPORTED)

        known = set()
        for start in range(0, len(loft_ids), INTEGRITY_LOOKUP_CHUNK):
            chunk = loft_ids[start : start + INTEGRITY_LOOKUP_CHUNK]
            lofts = await self.store.select(
                "lofts", "id", filters={"id": f"in.({','.join(chunk)})"}
            )
            if lofts.error is not None:
                return ProbeResult(
                    ProbeOutcome.FAILED,
                    [f"Cannot check reservation integrity: {lofts.error.message}"],
                )
            known.update(str(row["id"]) for row in lofts.data)

        orphans = [loft_id for loft_id in referenced if loft_id not in known]
        if orphans:
            return ProbeResult(
                ProbeOutcome.SUPPORTED,
                [f"Found {len(orphans)} reservations with invalid loft references"],
            )
        return ProbeResult(ProbeOutcome.SUPPORTED)

    async def probe_foreign_key_constraints(self) -> ProbeResult:
        """Optional server-side constraint check; absent function is not a failure."""
        try:
            result = await self.store.rpc(FOREIGN_KEY_CHECK_FUNCTION, limit=5)
        except Exception as e:
            return ProbeResult(
                ProbeOutcome.FAILED, [f"Cannot check foreign key constraints: {e}"]
            )

        if result.error is not None:
            if result.error.is_missing_object:
                return ProbeResult(ProbeOutcome.UNSUPPORTED)
            return ProbeResult(
                ProbeOutcome.FAILED,
                [f"Cannot check foreign key constraints: {result.error.message}"],
            )
        if result.data:
            return ProbeResult(
                ProbeOutcome.SUPPORTED,
                [f"Found {len(result.data)} foreign key constraint violations"],
            )
        return ProbeResult(ProbeOutcome.SUPPORTED)

    async def collect_system_metrics(self) -> SystemMetrics:
        """Request, cache and process memory metrics."""
        request_stats = self.request_stats.get_stats(SYSTEM_METRICS_WINDOW_MS)
        cache_stats = self.cache.get_cache_stats()
        memory_usage = psutil.Process().memory_percent()

        return SystemMetrics(
            response_time=round(request_stats.average_response_time, 2),
            error_rate=round(request_stats.error_rate, 2),
            cache_hit_rate=round(cache_stats.hit_rate, 2),
            memory_usage=round(memory_usage, 2),
            cache_requests=cache_stats.total_requests,
        )
