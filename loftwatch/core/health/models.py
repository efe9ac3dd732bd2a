"""Health monitoring data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ComponentStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class AlertType(str, Enum):
    """What kind of condition raised an alert."""

    PERFORMANCE = "performance"
    ERROR = "error"
    CONSISTENCY = "consistency"
    SECURITY = "security"


class AlertSeverity(str, Enum):
    """Alert severity enumeration."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ProbeOutcome(str, Enum):
    """Result of an optional consistency probe."""

    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"


class ComponentHealth(BaseModel):
    """Latest health snapshot of one monitored component."""

    status: ComponentStatus
    last_check: datetime = Field(default_factory=utcnow)
    response_time_ms: Optional[int] = None
    error_count: int = 0
    details: str = ""
    metrics: Optional[Dict[str, Any]] = None

    @classmethod
    def not_checked(cls) -> "ComponentHealth":
        return cls(status=ComponentStatus.UNKNOWN, details="Not checked yet")

    @classmethod
    def failed(
        cls, details: str, response_time_ms: Optional[int] = None
    ) -> "ComponentHealth":
        """Snapshot for a component whose check raised."""
        return cls(
            status=ComponentStatus.CRITICAL,
            response_time_ms=response_time_ms,
            error_count=1,
            details=details,
        )


class HealthAlert(BaseModel):
    """A threshold crossing reported by the health monitor."""

    id: str
    type: AlertType
    severity: AlertSeverity
    message: str
    component: str
    rule: str = Field(..., description="Rule that raised the alert")
    timestamp: datetime = Field(default_factory=utcnow)
    first_seen: datetime = Field(default_factory=utcnow)
    occurrences: int = 1
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    details: Optional[Dict[str, Any]] = None


class SystemMetrics(BaseModel):
    """System-wide metrics collected each health cycle."""

    response_time: float = Field(0.0, description="Average request time in ms")
    error_rate: float = Field(0.0, description="Request error percentage")
    cache_hit_rate: float = Field(0.0, description="Loft cache hit percentage")
    memory_usage: float = Field(0.0, description="Process memory percentage")
    cache_requests: int = Field(0, description="Cache lookups behind the hit rate")


class SystemHealthStatus(BaseModel):
    """Aggregate health of the reservation platform."""

    status: ComponentStatus = ComponentStatus.UNKNOWN
    timestamp: datetime = Field(default_factory=utcnow)
    uptime_seconds: float = 0.0
    components: Dict[str, ComponentHealth] = Field(default_factory=dict)
    metrics: SystemMetrics = Field(default_factory=SystemMetrics)
    alerts: List[HealthAlert] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
