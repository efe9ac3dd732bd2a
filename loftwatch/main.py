"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Dict, Optional

from fastapi import FastAPI

from loftwatch import __version__
from loftwatch.api import health, performance
from loftwatch.bootstrap import MonitoringServices, build_monitoring_services
from loftwatch.config import setup_logging
from loftwatch.core.handlers import register_exception_handlers
from loftwatch.core.middleware import LoggingMiddleware, RequestIDMiddleware
from loftwatch.core.settings import Settings, settings
from loftwatch.tasks.sweeper import start_sweeper_task, stop_sweeper_task

logger = logging.getLogger(__name__)

ServicesFactory = Callable[[Settings], MonitoringServices]


def build_lifespan(app_settings: Settings, factory: ServicesFactory):
    """Lifespan bringing the monitoring services up and down with the app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        logger.info(
            "Starting Loftwatch",
            extra={
                "version": __version__,
                "settings": {
                    "environment": app_settings.environment,
                    "store_url": app_settings.store_url,
                    "health_check_interval": app_settings.health_check_interval,
                    "enable_caching": app_settings.enable_caching,
                },
            },
        )

        services = factory(app_settings)
        app.state.monitoring = services

        result = await services.lifecycle.initialize()
        if result.success:
            logger.info("Monitoring services ready", extra={"warnings": result.warnings})
        else:
            logger.error(
                "Monitoring services started with errors",
                extra={"errors": result.errors, "warnings": result.warnings},
            )

        sweeper = None
        try:
            sweeper = start_sweeper_task(
                services.performance, app_settings.metrics_cleanup_interval
            )
        except Exception as e:
            logger.error(f"Failed to start performance sweep task: {e}")

        yield

        # Shutdown
        logger.info("Shutting down Loftwatch")
        await stop_sweeper_task(sweeper)
        try:
            await services.close()
            logger.info("Store connection closed")
        except Exception as e:
            logger.warning(f"Error closing monitoring services: {e}")

    return lifespan


def create_app(
    app_settings: Optional[Settings] = None,
    services_factory: Optional[ServicesFactory] = None,
) -> FastAPI:
    """Create and configure FastAPI application."""
    app_settings = app_settings or settings

    # Setup logging first
    setup_logging(app_settings)

    app = FastAPI(
        title=app_settings.app_name,
        description="Performance and health monitoring for the loft reservation "
        "platform: operation timing, performance reports, component health "
        "checks and alerting.",
        version=__version__,
        lifespan=build_lifespan(
            app_settings, services_factory or build_monitoring_services
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {
                "name": "health",
                "description": "System health, alerts and service status",
            },
            {
                "name": "performance",
                "description": "Reservation operation performance reports",
            },
        ],
    )

    # Add custom middleware
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    @app.get(
        "/api",
        response_model=Dict[str, Any],
        summary="API Information",
        description="Basic information about the Loftwatch API and its endpoints",
        response_description="API metadata and navigation links",
    )
    async def api_info():
        """Get API information and navigation links."""
        return {
            "name": app_settings.app_name,
            "version": __version__,
            "description": "Reservation performance and health monitoring API",
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "health_check": "/health/check",
                "alerts": "/health/alerts",
                "services_status": "/services/status",
                "performance_report": "/performance/report",
                "performance_stats": "/performance/stats",
            },
        }

    # Include routers
    app.include_router(health.router)
    app.include_router(performance.router)

    return app


# Create app instance
app = create_app()
