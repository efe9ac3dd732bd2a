"""Health monitoring module."""

from .alerts import AlertManager
from .models import (
    AlertSeverity,
    AlertType,
    ComponentHealth,
    ComponentStatus,
    HealthAlert,
    ProbeOutcome,
    SystemHealthStatus,
    SystemMetrics,
)
from .monitors import ComponentMonitor, HealthThresholds
from .service import SystemHealthMonitor, compute_overall_status

__all__ = [
    "AlertManager",
    "AlertSeverity",
    "AlertType",
    "ComponentHealth",
    "ComponentMonitor",
    "ComponentStatus",
    "HealthAlert",
    "HealthThresholds",
    "ProbeOutcome",
    "SystemHealthMonitor",
    "SystemHealthStatus",
    "SystemMetrics",
    "compute_overall_status",
]
