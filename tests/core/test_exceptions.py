"""Tests for custom exceptions."""

from loftwatch.core.exceptions import (
    AlertNotFoundError,
    InitializationError,
    LoftwatchError,
    NotFoundError,
    ProbeError,
    ServiceError,
    ValidationError,
)


class TestLoftwatchError:
    """Test base exception class."""

    def test_basic_creation(self):
        """Test creating basic exception."""
        exc = LoftwatchError("Test error")
        assert str(exc) == "Test error"
        assert exc.message == "Test error"
        assert exc.status_code == 500
        assert exc.error_code == "LoftwatchError"
        assert exc.details == {}

    def test_with_all_params(self):
        """Test creating exception with all parameters."""
        exc = LoftwatchError(
            "Test error",
            status_code=418,
            error_code="TEST_ERROR",
            details={"key": "value"},
        )
        assert exc.status_code == 418
        assert exc.error_code == "TEST_ERROR"
        assert exc.details == {"key": "value"}


class TestClientErrors:
    """Test 4xx exceptions."""

    def test_validation_error(self):
        """Test validation error has 400 status code."""
        exc = ValidationError("Bad window", "INVALID_WINDOW")
        assert exc.status_code == 400
        assert exc.error_code == "INVALID_WINDOW"

    def test_not_found(self):
        """Test not found error has 404 status code."""
        assert NotFoundError("missing").status_code == 404

    def test_alert_not_found(self):
        """Test alert not found carries the alert id."""
        exc = AlertNotFoundError("error_system_1")
        assert isinstance(exc, NotFoundError)
        assert exc.status_code == 404
        assert exc.error_code == "ALERT_NOT_FOUND"
        assert exc.details == {"alert_id": "error_system_1"}
        assert "error_system_1" in exc.message


class TestServiceErrors:
    """Test 5xx exceptions."""

    def test_service_error(self):
        """Test service error has 500 status code."""
        assert ServiceError("down").status_code == 500

    def test_probe_error(self):
        """Test probe error is a 503 naming the component."""
        exc = ProbeError("store unreachable", component="database")
        assert isinstance(exc, ServiceError)
        assert exc.status_code == 503
        assert exc.error_code == "PROBE_FAILED"
        assert exc.details == {"component": "database"}

    def test_initialization_error(self):
        """Test initialization error names the service."""
        exc = InitializationError("cache failed", service="cache")
        assert exc.status_code == 500
        assert exc.error_code == "INITIALIZATION_FAILED"
        assert exc.details == {"service": "cache"}
