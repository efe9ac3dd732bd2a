"""Health monitoring endpoints."""

from typing import List

from fastapi import APIRouter, Request, status

from loftwatch.bootstrap import MonitoringServices
from loftwatch.core.exceptions import AlertNotFoundError
from loftwatch.core.health import HealthAlert, SystemHealthStatus
from loftwatch.core.lifecycle import ServicesStatus
from loftwatch.models.common import AlertResolution

router = APIRouter(tags=["health"])


def get_services(request: Request) -> MonitoringServices:
    return request.app.state.monitoring


@router.get(
    "/health",
    status_code=status.HTTP_200_OK,
    response_model=SystemHealthStatus,
    summary="Health status",
    description="Latest system health snapshot with component status, metrics and alerts",
)
async def health_status(request: Request) -> SystemHealthStatus:
    """Return the most recent health snapshot without running new checks."""
    return get_services(request).health.get_health_status()


@router.post(
    "/health/check",
    status_code=status.HTTP_200_OK,
    response_model=SystemHealthStatus,
    summary="Run health check",
    description="Run every component check now and return the resulting status",
)
async def run_health_check(request: Request) -> SystemHealthStatus:
    return await get_services(request).health.perform_health_check()


@router.get(
    "/health/alerts",
    response_model=List[HealthAlert],
    summary="Active alerts",
    description="Alerts that have not been resolved yet",
)
async def active_alerts(request: Request) -> List[HealthAlert]:
    return get_services(request).health.get_active_alerts()


@router.post(
    "/health/alerts/{alert_id}/resolve",
    response_model=AlertResolution,
    summary="Resolve alert",
    description="Mark an alert as resolved",
    responses={404: {"description": "Alert not found"}},
)
async def resolve_alert(alert_id: str, request: Request) -> AlertResolution:
    """Resolve an alert by id; 404 when the alert is unknown."""
    health = get_services(request).health
    if not health.resolve_alert(alert_id):
        raise AlertNotFoundError(alert_id)
    alert = health.alerts.get(alert_id)
    return AlertResolution(
        alert_id=alert_id,
        component=alert.component,
        rule=alert.rule,
        resolved_at=alert.resolved_at,
        request_id=getattr(request.state, "request_id", None),
    )


@router.get(
    "/services/status",
    response_model=ServicesStatus,
    summary="Monitoring services status",
    description="Whether monitoring is initialized and a snapshot of every service",
)
async def services_status(request: Request) -> ServicesStatus:
    return await get_services(request).lifecycle.get_services_status()
