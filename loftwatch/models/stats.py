"""Statistics exchanged with the monitored collaborators."""

from pydantic import BaseModel, Field


class CacheStats(BaseModel):
    """Loft cache statistics."""

    hit_rate: float = Field(0.0, description="Cache hit percentage")
    total_requests: int = Field(0, description="Lookups since last reset")
    cache_size: int = Field(0, description="Entries currently cached")
    average_response_time: float = Field(0.0, description="Average lookup time in ms")


class ReservationMetrics(BaseModel):
    """Reservation funnel metrics over a time window."""

    total_reservations: int = 0
    successful_reservations: int = 0
    failed_reservations: int = 0
    cancelled_reservations: int = 0
    conversion_rate: float = 0.0
    average_booking_time: float = 0.0
    payment_success_rate: float = 0.0
    error_rate: float = 0.0
    security_incidents: int = 0


class RequestStats(BaseModel):
    """HTTP request statistics over a time window."""

    total_requests: int = 0
    average_response_time: float = 0.0
    p95_response_time: float = 0.0
    error_rate: float = 0.0
