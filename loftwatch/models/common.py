"""Response envelopes shared by the API routers and exception handlers."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every error answered by the monitoring API."""

    error: str = Field(..., description="Human-readable error message")
    error_code: str = Field(
        ..., description="Stable code such as ALERT_NOT_FOUND or HTTP_404"
    )
    request_id: Optional[str] = Field(None, description="X-Request-ID of the call")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    details: Optional[Dict[str, Any]] = None


class AlertResolution(BaseModel):
    """Result of resolving a health alert by hand."""

    alert_id: str
    component: str
    rule: str
    resolved_at: Optional[datetime] = None
    request_id: Optional[str] = Field(None, description="X-Request-ID of the call")
