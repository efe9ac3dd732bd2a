"""Performance reporting endpoints."""

from fastapi import APIRouter, Query, Request

from loftwatch.core.performance import PerformanceReport, RealTimeStats

router = APIRouter(prefix="/performance", tags=["performance"])

MIN_WINDOW_MS = 1000
MAX_WINDOW_MS = 30 * 24 * 60 * 60 * 1000  # 30 days


@router.get(
    "/report",
    response_model=PerformanceReport,
    summary="Performance report",
    description="Aggregated reservation operation performance over a time window",
    responses={422: {"description": "Window outside the accepted range"}},
)
async def performance_report(
    request: Request,
    window_ms: int = Query(
        60 * 60 * 1000,
        ge=MIN_WINDOW_MS,
        le=MAX_WINDOW_MS,
        description="Report window in milliseconds",
    ),
) -> PerformanceReport:
    """Build a report from the samples recorded during the window."""
    return request.app.state.monitoring.performance.get_performance_report(window_ms)


@router.get(
    "/stats",
    response_model=RealTimeStats,
    summary="Real-time statistics",
    description="Rolling statistics over the last five minutes",
)
async def real_time_stats(request: Request) -> RealTimeStats:
    return request.app.state.monitoring.performance.get_real_time_stats()
