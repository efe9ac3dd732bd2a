"""Custom exception hierarchy for the monitoring service."""

from typing import Any, Dict, Optional


class LoftwatchError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the error with message and metadata."""
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class ValidationError(LoftwatchError):
    """400-level client errors for invalid requests."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize validation error with 400-level status."""
        super().__init__(message, 400, error_code, details)


class NotFoundError(LoftwatchError):
    """404-level errors for missing resources."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize not found error with 404 status."""
        super().__init__(message, 404, error_code, details)


class AlertNotFoundError(NotFoundError):
    """Raised when resolving an alert id that is not tracked."""

    def __init__(self, alert_id: str) -> None:
        super().__init__(
            f"Alert {alert_id} not found",
            "ALERT_NOT_FOUND",
            {"alert_id": alert_id},
        )


class ServiceError(LoftwatchError):
    """500-level server errors for service failures."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize service error with 500-level status."""
        super().__init__(message, 500, error_code, details)


class ProbeError(ServiceError):
    """A dependency probe could not reach its collaborator."""

    def __init__(self, message: str, component: Optional[str] = None) -> None:
        """Initialize with the probed component."""
        details = {"component": component} if component else {}
        super().__init__(message, "PROBE_FAILED", details)
        self.status_code = 503


class InitializationError(ServiceError):
    """Monitoring services could not be brought up."""

    def __init__(self, message: str, service: Optional[str] = None) -> None:
        """Initialize with the failing service name."""
        details = {"service": service} if service else {}
        super().__init__(message, "INITIALIZATION_FAILED", details)
